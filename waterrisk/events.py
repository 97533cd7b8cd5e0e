"""
events.py – Structured warning events emitted during a water-risk run.

Recoverable data problems (duplicate embedded sources, unattributable
materials, unknown countries, malformed rows) are never raised.  They are
recorded here as ``WaterRiskEvent`` records so callers and tests can assert
on specific codes, and mirrored to the standard logger for operators.
"""
from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field
from typing import Any

from waterrisk.constants import SEVERITY_INFO, SEVERITY_WARNING

logger = logging.getLogger(__name__)

_LOG_LEVELS = {
    SEVERITY_INFO: logging.INFO,
    SEVERITY_WARNING: logging.WARNING,
}


@dataclass(frozen=True)
class WaterRiskEvent:
    """One recoverable data-quality event."""
    severity: str
    code: str
    facility_id: str | None = None
    detail: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


class EventLog:
    """Collects events for one run, in emission order."""

    def __init__(self) -> None:
        self._events: list[WaterRiskEvent] = []

    def emit(
        self,
        code: str,
        *,
        severity: str = SEVERITY_WARNING,
        facility_id: str | None = None,
        **detail: Any,
    ) -> WaterRiskEvent:
        event = WaterRiskEvent(
            severity=severity,
            code=code,
            facility_id=facility_id,
            detail=detail,
        )
        self._events.append(event)
        logger.log(
            _LOG_LEVELS.get(severity, logging.WARNING),
            "%s facility=%s %s",
            code, facility_id or "-", detail,
        )
        return event

    def warning(self, code: str, *, facility_id: str | None = None, **detail: Any) -> WaterRiskEvent:
        return self.emit(code, severity=SEVERITY_WARNING, facility_id=facility_id, **detail)

    def info(self, code: str, *, facility_id: str | None = None, **detail: Any) -> WaterRiskEvent:
        return self.emit(code, severity=SEVERITY_INFO, facility_id=facility_id, **detail)

    @property
    def events(self) -> list[WaterRiskEvent]:
        return list(self._events)

    def codes(self) -> list[str]:
        return [e.code for e in self._events]

    def by_code(self, code: str) -> list[WaterRiskEvent]:
        return [e for e in self._events if e.code == code]

    def __len__(self) -> int:
        return len(self._events)

    def __iter__(self):
        return iter(list(self._events))
