"""
Monitoring Module - structured observability for calendar operations.
"""

from calendar_gateway.monitoring.logger import CalendarMonitor, calendar_monitor

__all__ = ["CalendarMonitor", "calendar_monitor"]
