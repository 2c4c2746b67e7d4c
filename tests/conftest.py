from __future__ import annotations

import os
from pathlib import Path

import pytest

from modelserver_client import config as modelserver_config


@pytest.fixture(autouse=True)
def clear_modelserver_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for key in list(os.environ.keys()):
        if key.startswith("MODELSERVER_"):
            monkeypatch.delenv(key, raising=False)


@pytest.fixture(autouse=True)
def isolated_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    config_json = tmp_path / "config" / "config.json"
    monkeypatch.setattr(modelserver_config, "DEFAULT_CONFIG_JSON", config_json)
    return config_json


@pytest.fixture
def coffee_model() -> dict:
    return {
        "$type": "http://www.eclipsesource.com/modelserver/example/coffeemodel#//Machine",
        "$id": "/",
        "name": "Super Brewer 3000",
        "children": [
            {
                "$type": "http://www.eclipsesource.com/modelserver/example/coffeemodel#//BrewingUnit",
                "$id": "//@children.0",
                "name": "Brewer",
            },
            {
                "$type": "http://www.eclipsesource.com/modelserver/example/coffeemodel#//ControlUnit",
                "$id": "//@children.1",
                "name": "Control",
                "processor": {
                    "$type": "http://www.eclipsesource.com/modelserver/example/coffeemodel#//Processor",
                    "$id": "//@children.1/@processor",
                    "clockSpeed": 5,
                },
            },
        ],
        "workflows": [],
    }
