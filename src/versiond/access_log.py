"""
=============================================================================
ACCESS LOG
=============================================================================

Every connection produces a ConnectionOutcome. This module turns outcomes
into log lines; it never influences how connections are served.

=============================================================================
LOG FORMATS
=============================================================================

    TEXT (default), one line per connection:

        127.0.0.1:52311 [a1b2c3d4] "/version" 200 OK 78B 1.42ms
        127.0.0.1:52312 [e5f6a7b8] - empty 0B 0.31ms
        127.0.0.1:52313 [c9d0e1f2] - failed: BrokenPipeError: [Errno 32] ... 3.10ms

    JSON, for log aggregators:

        {"connection_id": "a1b2c3d4", "peer": "127.0.0.1:52311",
         "path": "/version", "status": "200 OK", "bytes_read": 78,
         "error": null, "duration_ms": 1.42, "timestamp": "..."}

Successful outcomes are logged at INFO, failed ones at WARNING, and empty
connections (peer closed without sending) at DEBUG because port scans
and health checkers produce a lot of them.

=============================================================================
"""

import json
import logging
import time
from dataclasses import dataclass
from typing import Optional

from .core.handler import ConnectionOutcome


logger = logging.getLogger("versiond.access")

LOG_FORMATS = ("text", "json")


@dataclass
class AccessLogEntry:
    """Structured form of one ConnectionOutcome."""

    connection_id: str
    peer: str
    path: str
    status: str
    bytes_read: int
    error: Optional[str]
    duration_ms: float
    timestamp: str

    @classmethod
    def from_outcome(cls, outcome: ConnectionOutcome) -> "AccessLogEntry":
        return cls(
            connection_id=outcome.connection_id,
            peer=outcome.peer,
            path=outcome.path,
            status=outcome.status_text,
            bytes_read=outcome.bytes_read,
            error=outcome.error,
            duration_ms=outcome.duration_ms,
            timestamp=time.strftime("%d/%b/%Y:%H:%M:%S %z"),
        )

    def to_dict(self) -> dict:
        return {
            "connection_id": self.connection_id,
            "peer": self.peer,
            "path": self.path,
            "status": self.status,
            "bytes_read": self.bytes_read,
            "error": self.error,
            "duration_ms": round(self.duration_ms, 2),
            "timestamp": self.timestamp,
        }

    def to_text(self) -> str:
        prefix = f"{self.peer} [{self.connection_id}]"
        suffix = f"{self.bytes_read}B {self.duration_ms:.2f}ms"

        if self.error is not None:
            return f"{prefix} {self.path or '-'} failed: {self.error} {suffix}"
        if not self.status:
            return f"{prefix} - empty {suffix}"
        return f'{prefix} "{self.path}" {self.status} {suffix}'


class AccessLog:
    """
    Emits one log record per ConnectionOutcome.

    Safe to call from worker threads and from the event loop; it only
    formats a string and hands it to the logging module.

    Usage:
        access_log = AccessLog(log_format="json")
        access_log.record(outcome)
    """

    def __init__(self, log_format: str = "text"):
        if log_format not in LOG_FORMATS:
            raise ValueError(f"log_format must be one of {LOG_FORMATS}, got {log_format!r}")
        self.log_format = log_format

    def format(self, outcome: ConnectionOutcome) -> str:
        entry = AccessLogEntry.from_outcome(outcome)
        if self.log_format == "json":
            return json.dumps(entry.to_dict())
        return entry.to_text()

    def record(self, outcome: ConnectionOutcome) -> None:
        if outcome.is_empty:
            level = logging.DEBUG
        elif outcome.ok:
            level = logging.INFO
        else:
            level = logging.WARNING

        if logger.isEnabledFor(level):
            logger.log(level, self.format(outcome))
