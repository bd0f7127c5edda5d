"""
Google Calendar Service - list calendars, aggregate events, mutate events.

This is what callers talk to. Every operation resolves the user's
credentials first, then calls Google through a fresh GoogleCalendarClient.

Aggregation Rules:
==================
- Calendars: the caller's explicit ids in the given order, or every calendar
  in the user's calendar list, in list order
- Per calendar: recurring events expanded, ordered by start time, 250 per
  page, every page followed until Google stops returning nextPageToken
- Merge: calendar-major concatenation. Results are NOT re-sorted across
  calendars; sort the result yourself if you need one timeline.
- Failure: one failing calendar fails the whole call. No partial results.

Calendars are fetched one after another. Nothing is retried.

Usage:
======
    from calendar_gateway.services.calendar_service import calendar_service

    events = await calendar_service.get_events(
        user_id="user-123",
        window=TimeWindow(time_min=start, time_max=end),
    )
    for event in events:
        print(event.calendar_id, event.summary)
"""

import logging
import time
from typing import List, Optional, Sequence, Union

from calendar_gateway.core.config import settings
from calendar_gateway.environments.base import CalendarIntegrationError
from calendar_gateway.environments.google.calendar.client import GoogleCalendarClient
from calendar_gateway.environments.google.calendar.schemas import (
    CalendarEvent,
    CalendarInfo,
    DeleteResult,
    EventDraft,
    EventPatch,
    TimeWindow,
)
from calendar_gateway.monitoring.logger import CalendarMonitor, calendar_monitor
from calendar_gateway.services.credential_resolver import CredentialResolver
from calendar_gateway.services.error_classifier import classify_error


logger = logging.getLogger("calendar_gateway.services.calendar")

CalendarIds = Union[str, Sequence[str]]


class GoogleCalendarService:
    """
    Calendar Enumerator, Event Aggregator and Mutation Operations.

    Attributes:
        resolver: Turns user ids into authenticated clients
        page_size: maxResults used for every event page
        target_calendar_id: Calendar used by create/update/delete
    """

    def __init__(
        self,
        resolver: Optional[CredentialResolver] = None,
        monitor: CalendarMonitor = calendar_monitor,
        page_size: Optional[int] = None,
        target_calendar_id: Optional[str] = None,
    ):
        self.resolver = resolver or CredentialResolver(monitor=monitor)
        self._monitor = monitor
        self.page_size = page_size or settings.GOOGLE_EVENTS_PAGE_SIZE
        self.target_calendar_id = target_calendar_id or settings.GOOGLE_PRIMARY_CALENDAR_ID

    def _classified(self, operation: str, user_id: str, error: Exception) -> CalendarIntegrationError:
        classified = classify_error(error)
        if classified is not error:
            self._monitor.log_classification(
                operation=operation,
                kind=classified.kind.value,
                status_code=getattr(error, "status_code", None),
                reason=getattr(error, "reason", None),
                user_id=user_id,
            )
        return classified

    # -------------------------------------------------------------------------
    # CALENDAR ENUMERATOR
    # -------------------------------------------------------------------------

    async def _collect_calendars(
        self, client: GoogleCalendarClient, user_id: str
    ) -> List[CalendarInfo]:
        calendars: List[CalendarInfo] = []
        page_token: Optional[str] = None
        page_index = 0

        while True:
            page = await client.list_calendars_page(page_token=page_token)
            calendars.extend(page.items)
            self._monitor.log_page_fetch(
                user_id=user_id,
                calendar_id=None,
                page_index=page_index,
                item_count=len(page.items),
                has_next=page.next_page_token is not None,
            )
            if not page.next_page_token:
                return calendars
            page_token = page.next_page_token
            page_index += 1

    async def list_calendars(self, user_id: str) -> List[CalendarInfo]:
        """
        List every calendar the user can access.

        Returns:
            Calendar descriptors in Google's order; empty if there are none

        Raises:
            CalendarIntegrationError: Resolution or provider failure
        """
        client = await self.resolver.resolve(user_id)
        try:
            return await self._collect_calendars(client, user_id)
        except Exception as e:
            raise self._classified("list_calendars", user_id, e) from e

    # -------------------------------------------------------------------------
    # EVENT AGGREGATOR
    # -------------------------------------------------------------------------

    async def _collect_events(
        self,
        client: GoogleCalendarClient,
        user_id: str,
        calendar_id: str,
        window: TimeWindow,
    ) -> List[CalendarEvent]:
        events: List[CalendarEvent] = []
        time_min = window.resolved_time_min()
        page_token: Optional[str] = None
        page_index = 0

        while True:
            page = await client.list_events_page(
                calendar_id,
                time_min=time_min,
                time_max=window.time_max,
                page_token=page_token,
                page_size=self.page_size,
            )
            events.extend(event.tagged(calendar_id) for event in page.items)
            self._monitor.log_page_fetch(
                user_id=user_id,
                calendar_id=calendar_id,
                page_index=page_index,
                item_count=len(page.items),
                has_next=page.next_page_token is not None,
            )
            if not page.next_page_token:
                return events
            page_token = page.next_page_token
            page_index += 1

    async def get_events(
        self,
        user_id: str,
        window: Optional[TimeWindow] = None,
        calendar_ids: Optional[CalendarIds] = None,
    ) -> List[CalendarEvent]:
        """
        Fetch events from one, several or all of the user's calendars.

        Args:
            user_id: User identity
            window: Time bounds; time_min defaults to now
            calendar_ids: A single id, an ordered list of ids, or None for
                every calendar in the user's list

        Returns:
            Events grouped by calendar (selection order), each group ordered
            by start time, each event tagged with its calendar_id

        Raises:
            CalendarIntegrationError: Resolution failure, or the first
                provider failure of any calendar
        """
        window = window or TimeWindow()
        started = time.perf_counter()

        client = await self.resolver.resolve(user_id)
        try:
            if calendar_ids is None:
                selected = [calendar.id for calendar in await self._collect_calendars(client, user_id)]
            elif isinstance(calendar_ids, str):
                selected = [calendar_ids]
            else:
                selected = list(calendar_ids)

            events: List[CalendarEvent] = []
            for calendar_id in selected:
                events.extend(await self._collect_events(client, user_id, calendar_id, window))
        except Exception as e:
            raise self._classified("get_events", user_id, e) from e

        self._monitor.log_aggregation(
            user_id=user_id,
            calendar_ids=selected,
            total_events=len(events),
            latency_ms=(time.perf_counter() - started) * 1000,
        )
        return events

    # -------------------------------------------------------------------------
    # MUTATIONS (always against the target calendar)
    # -------------------------------------------------------------------------

    async def create_event(self, user_id: str, draft: EventDraft) -> CalendarEvent:
        """Create an event on the user's primary calendar."""
        client = await self.resolver.resolve(user_id)
        try:
            created = await client.insert_event(self.target_calendar_id, draft.to_google_body())
        except Exception as e:
            raise self._classified("create_event", user_id, e) from e

        logger.info(f"Created event {created.id} for user {user_id}")
        return created.tagged(self.target_calendar_id)

    async def update_event(self, user_id: str, event_id: str, patch: EventPatch) -> CalendarEvent:
        """
        Change only the fields set on patch; Google keeps the rest.

        An empty patch is still sent and returns the event unchanged.
        """
        client = await self.resolver.resolve(user_id)
        try:
            updated = await client.patch_event(
                self.target_calendar_id, event_id, patch.to_google_body()
            )
        except Exception as e:
            raise self._classified("update_event", user_id, e) from e

        logger.info(f"Updated event {event_id} for user {user_id}")
        return updated.tagged(self.target_calendar_id)

    async def delete_event(self, user_id: str, event_id: str) -> DeleteResult:
        """
        Delete an event from the user's primary calendar.

        Deleting an event that is already gone fails (typically with a 404
        classified as UpstreamFailure); callers may treat that as done.
        """
        client = await self.resolver.resolve(user_id)
        try:
            await client.delete_event(self.target_calendar_id, event_id)
        except Exception as e:
            raise self._classified("delete_event", user_id, e) from e

        logger.info(f"Deleted event {event_id} for user {user_id}")
        return DeleteResult(success=True)


# ---------------------------------------------------------------------------
# SINGLETON INSTANCE
# ---------------------------------------------------------------------------
calendar_service = GoogleCalendarService()
