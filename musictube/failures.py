"""Failure reporting service.

Fetch and playback failures are never raised to the UI layer.  They are caught
where they happen, downgraded to an empty or idle state, and forwarded here.
The service emits structured JSON records through the standard ``logging``
module so log forwarders can pick them up from stdout.
"""
from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
import json
import logging
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


_LOGGER = logging.getLogger("musictube.failures")


class FailureKind(str, Enum):
    """Kinds of failures the application downgrades instead of raising."""

    NETWORK_FAILURE = "network_failure"
    MALFORMED_RESPONSE = "malformed_response"
    WIDGET_LOAD_FAILURE = "widget_load_failure"


class FailureReport(BaseModel):
    """A single failure observed by the fetcher or the playback controller."""

    model_config = ConfigDict(populate_by_name=True)

    kind: FailureKind = Field(..., description="Failure category")
    detail: str = Field("", description="Human readable cause")
    key: Optional[str] = Field(
        None, description="Result set key the fetch was issued for"
    )
    query: Optional[str] = Field(None, description="Search query, if any")
    video_id: Optional[str] = Field(
        None, alias="videoId", description="Identifier of the affected video"
    )


class FailureReporter:
    """Write failure reports to structured logging."""

    def __init__(self, logger: Optional[logging.Logger] = None) -> None:
        self._logger = logger or _LOGGER

    def report(self, report: FailureReport) -> None:
        logged_at = datetime.now(timezone.utc).isoformat()
        payload = report.model_dump(mode="json", exclude_none=True)
        payload["logged_at"] = logged_at
        # sort_keys keeps the output stable for tests.
        message = json.dumps(payload, ensure_ascii=False, sort_keys=True)
        self._logger.warning("failure %s", message)


__all__ = ["FailureKind", "FailureReport", "FailureReporter"]
