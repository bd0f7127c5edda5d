"""
Calendar Monitor - Structured logging for calendar operations.

One JSON record is emitted per extension point of the engine:
- Credential resolution (start / end)
- Each provider page fetched
- Aggregation totals
- Error classification outcome
- Token rotation persistence (written / failed)

Log Format:
==========
Each log entry includes:
- Event name
- User identity
- Operation-specific fields (calendar, page index, kind, ...)
- Timestamp

Tokens are never logged.
"""

import json
import logging
from datetime import datetime, timezone
from typing import Optional, Dict, Any, Sequence

# Configure the monitoring logger
logger = logging.getLogger("calendar_gateway.monitoring")


class CalendarMonitor:
    """
    Structured logger for calendar operations.

    Usage:
        monitor = CalendarMonitor()

        monitor.log_resolution_start(user_id="user-123")
        monitor.log_page_fetch(
            user_id="user-123",
            calendar_id="primary",
            page_index=0,
            item_count=250,
            has_next=True,
        )
    """

    def __init__(self, log: Optional[logging.Logger] = None):
        """Initialize the monitor (defaults to the calendar_gateway.monitoring logger)."""
        self._logger = log or logger

    def _emit(self, level: int, label: str, log_data: Dict[str, Any]) -> None:
        log_data["timestamp"] = datetime.now(timezone.utc).isoformat()
        self._logger.log(level, f"{label}: {json.dumps(log_data, default=str)}")

    # -------------------------------------------------------------------------
    # CREDENTIAL RESOLUTION
    # -------------------------------------------------------------------------

    def log_resolution_start(self, user_id: str) -> None:
        self._emit(logging.DEBUG, "Credential Resolution", {
            "event": "resolution_start",
            "user_id": user_id,
        })

    def log_resolution_end(
        self,
        user_id: str,
        success: bool,
        error_kind: Optional[str] = None,
        has_refresh_token: bool = False,
    ) -> None:
        """
        Log the outcome of a credential resolution.

        Args:
            user_id: User identity being resolved
            success: Whether a client handle was produced
            error_kind: ErrorKind value when resolution failed
            has_refresh_token: Whether silent rotation is possible
        """
        log_data = {
            "event": "resolution_end",
            "user_id": user_id,
            "success": success,
            "has_refresh_token": has_refresh_token,
        }
        if error_kind:
            log_data["error_kind"] = error_kind

        level = logging.INFO if success else logging.WARNING
        self._emit(level, "Credential Resolution", log_data)

    # -------------------------------------------------------------------------
    # PAGINATION / AGGREGATION
    # -------------------------------------------------------------------------

    def log_page_fetch(
        self,
        user_id: str,
        calendar_id: Optional[str],
        page_index: int,
        item_count: int,
        has_next: bool,
    ) -> None:
        """
        Log one provider page.

        calendar_id is None for calendar-list pages.
        """
        self._emit(logging.DEBUG, "Page Fetch", {
            "event": "page_fetch",
            "user_id": user_id,
            "calendar_id": calendar_id,
            "page_index": page_index,
            "item_count": item_count,
            "has_next": has_next,
        })

    def log_aggregation(
        self,
        user_id: str,
        calendar_ids: Sequence[str],
        total_events: int,
        latency_ms: float,
    ) -> None:
        self._emit(logging.INFO, "Event Aggregation", {
            "event": "aggregation",
            "user_id": user_id,
            "calendar_count": len(calendar_ids),
            "calendar_ids": list(calendar_ids),
            "total_events": total_events,
            "latency_ms": round(latency_ms, 2),
        })

    # -------------------------------------------------------------------------
    # ERRORS
    # -------------------------------------------------------------------------

    def log_classification(
        self,
        operation: str,
        kind: str,
        status_code: Optional[int] = None,
        reason: Optional[str] = None,
        user_id: Optional[str] = None,
    ) -> None:
        """
        Log how a remote failure was classified.

        Args:
            operation: Service operation that failed (e.g. "get_events")
            kind: Resulting ErrorKind value
            status_code: Provider HTTP status, if any
            reason: Provider machine-readable reason, if any
            user_id: User identity, if known
        """
        self._emit(logging.WARNING, "Error Classification", {
            "event": "classification",
            "operation": operation,
            "kind": kind,
            "status_code": status_code,
            "reason": reason,
            "user_id": user_id,
        })

    # -------------------------------------------------------------------------
    # TOKEN ROTATION
    # -------------------------------------------------------------------------

    def log_rotation_persisted(self, user_id: str, fields: Sequence[str]) -> None:
        self._emit(logging.INFO, "Token Rotation", {
            "event": "rotation_persisted",
            "user_id": user_id,
            "fields": sorted(fields),
        })

    def log_rotation_failed(self, user_id: str, error: str) -> None:
        self._emit(logging.ERROR, "Token Rotation", {
            "event": "rotation_failed",
            "user_id": user_id,
            "error": error,
        })


# ---------------------------------------------------------------------------
# DEFAULT INSTANCE
# ---------------------------------------------------------------------------
calendar_monitor = CalendarMonitor()
