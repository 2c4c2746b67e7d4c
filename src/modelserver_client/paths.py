"""Endpoint paths of a default model server, relative to the API root."""

API_V1 = "api/v1/"
API_V2 = "api/v2/"


class ModelServerPaths:
    MODEL_URIS = "modeluris"
    MODEL_CRUD = "models"
    MODEL_ELEMENT = "modelelement"

    TYPE_SCHEMA = "typeschema"
    UI_SCHEMA = "uischema"

    SERVER_CONFIGURE = "server/configure"
    SERVER_PING = "server/ping"

    # websocket upgrade
    SUBSCRIPTION = "subscribe"

    EDIT = "edit"

    CLOSE = "close"
    SAVE = "save"
    SAVE_ALL = "saveall"

    UNDO = "undo"
    REDO = "redo"

    VALIDATION = "validation"
    VALIDATION_CONSTRAINTS = "validation/constraints"
