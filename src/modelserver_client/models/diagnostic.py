"""Validation diagnostics: a severity-bitmask tree."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, Field

from modelserver_client.decoder import has_array, has_number, has_string, is_any_object

OK = 0x0
INFO = 0x1
WARNING = 0x2
ERROR = 0x4
CANCEL = 0x8

SeverityLabel = Literal["OK", "INFO", "WARNING", "ERROR", "CANCEL"]


class Diagnostic(BaseModel):
    severity: int = OK
    message: str = ""
    source: str = ""
    code: int = 0
    exception: Any | None = None
    data: list[Any] = Field(default_factory=list)
    children: list["Diagnostic"] = Field(default_factory=list)
    id: str = ""

    @property
    def label(self) -> SeverityLabel:
        return get_severity_label(self)


def is_diagnostic(obj: Any) -> bool:
    return (
        is_any_object(obj)
        and has_number(obj, "severity")
        and has_string(obj, "message")
        and has_string(obj, "source")
        and has_number(obj, "code")
        and has_array(obj, "data")
        and has_array(obj, "children")
        and has_string(obj, "id")
    )


def ok() -> Diagnostic:
    return Diagnostic(severity=OK, code=0, message="OK", source="", data=[], children=[], id="")


def recompute_severity(diagnostic: Diagnostic) -> int:
    """OR the severities of all descendants into every internal node.

    Leaf nodes keep their own severity. Returns the (possibly updated) severity
    of ``diagnostic``.
    """
    if diagnostic.children:
        severity = OK
        for child in diagnostic.children:
            severity |= recompute_severity(child)
        diagnostic.severity = severity
    return diagnostic.severity


def get_severity_label(diagnostic: Diagnostic) -> SeverityLabel:
    severity = diagnostic.severity
    if severity & CANCEL:
        return "CANCEL"
    if severity & ERROR:
        return "ERROR"
    if severity & WARNING:
        return "WARNING"
    if severity & INFO:
        return "INFO"
    return "OK"


def collect_leaves(diagnostic: Diagnostic) -> list[Diagnostic]:
    """Flatten the tree into its problem leaves, depth-first and left to right."""
    if diagnostic.children:
        leaves: list[Diagnostic] = []
        for child in diagnostic.children:
            leaves.extend(collect_leaves(child))
        return leaves
    if diagnostic.severity > OK:
        return [diagnostic]
    return []


def worst_of(diagnostics: list[Diagnostic]) -> Diagnostic:
    if not diagnostics:
        return ok()

    result = diagnostics[0]
    for candidate in diagnostics:
        if candidate.severity > result.severity:
            result = candidate
        if candidate.severity == CANCEL:
            break
    return result


def merge(*diagnostics: Diagnostic | None) -> Diagnostic:
    """Combine several diagnostics into one.

    OK diagnostics are dropped. A single remaining problem is returned as-is;
    several are wrapped in a new root whose severity, source and code come from
    the worst of them. The wrapped children are re-identified in place because
    they now live in a new tree.
    """
    problems = [d for d in diagnostics if d is not None and d.severity > OK]
    if not problems:
        return ok()
    if len(problems) == 1:
        return problems[0]

    worst = worst_of(problems)
    root = Diagnostic(
        severity=worst.severity,
        message=f"Diagnosis of {len(problems)} problems.",
        source=worst.source,
        code=worst.code,
        data=[],
        children=problems,
        id="/",
    )
    return _recompute_ids(root)


def _recompute_ids(diagnostic: Diagnostic, base: str = "/") -> Diagnostic:
    diagnostic.id = base
    prefix = base.rstrip("/")
    for index, child in enumerate(diagnostic.children):
        _recompute_ids(child, f"{prefix}/@children.{index}")
    return diagnostic
