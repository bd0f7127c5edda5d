"""
Tests for GoogleCalendarService: enumeration, aggregation and mutations.

The service runs against the fake Google from conftest, end to end through
the resolver and the calendar client.
"""

import json
from dataclasses import replace
from datetime import datetime, timedelta, timezone

import pytest

from conftest import google_error, make_event
from calendar_gateway.environments.base import (
    ApiNotEnabledError,
    AuthExpiredError,
    ErrorKind,
    InsufficientPermissionError,
    NoLinkedAccountError,
    RateLimitedError,
    UpstreamFailureError,
)
from calendar_gateway.environments.google.calendar.schemas import (
    EventDraft,
    EventPatch,
    EventTime,
    TimeWindow,
)


WINDOW = TimeWindow(
    time_min=datetime(2025, 1, 15, tzinfo=timezone.utc),
    time_max=datetime(2025, 1, 22, tzinfo=timezone.utc),
)


@pytest.fixture
def two_calendars(google):
    """Calendar A with 3 events, calendar B with 2; B1 starts before A3."""
    google.calendar_pages = [[
        {"id": "cal-a", "summary": "Work", "primary": True, "accessRole": "owner"},
        {"id": "cal-b", "summary": "Family", "accessRole": "reader"},
    ]]
    google.event_pages["cal-a"] = [[
        make_event("A1", "2025-01-15T09:00:00Z"),
        make_event("A2", "2025-01-16T09:00:00Z"),
        make_event("A3", "2025-01-18T09:00:00Z"),
    ]]
    google.event_pages["cal-b"] = [[
        make_event("B1", "2025-01-15T07:00:00Z"),
        make_event("B2", "2025-01-17T07:00:00Z"),
    ]]
    return google


# ---------------------------------------------------------------------------
# CALENDAR ENUMERATOR
# ---------------------------------------------------------------------------

class TestListCalendars:

    @pytest.mark.asyncio
    async def test_returns_descriptors(self, service, two_calendars):
        calendars = await service.list_calendars("user-123")

        assert [c.id for c in calendars] == ["cal-a", "cal-b"]
        assert calendars[0].summary == "Work"
        assert calendars[0].primary is True
        assert calendars[1].access_role == "reader"

    @pytest.mark.asyncio
    async def test_empty_account(self, service, google):
        assert await service.list_calendars("user-123") == []

    @pytest.mark.asyncio
    async def test_follows_pagination(self, service, google):
        google.calendar_pages = [[{"id": "one"}], [{"id": "two"}], [{"id": "three"}]]

        calendars = await service.list_calendars("user-123")

        assert [c.id for c in calendars] == ["one", "two", "three"]
        assert len(google.api_requests()) == 3

    @pytest.mark.asyncio
    async def test_failure_is_classified(self, service, google, monitor):
        google.failures["calendarList"] = google_error(429, "Rate Limit Exceeded")

        with pytest.raises(RateLimitedError):
            await service.list_calendars("user-123")

        monitor.log_classification.assert_called_once()
        assert monitor.log_classification.call_args.kwargs["operation"] == "list_calendars"

    @pytest.mark.asyncio
    async def test_resolution_failure_makes_no_remote_call(self, service, mock_store, google):
        mock_store.get.return_value = None

        with pytest.raises(NoLinkedAccountError):
            await service.list_calendars("user-123")

        assert google.requests == []


# ---------------------------------------------------------------------------
# EVENT AGGREGATOR
# ---------------------------------------------------------------------------

class TestGetEvents:

    @pytest.mark.asyncio
    async def test_calendar_major_order_without_global_sort(self, service, two_calendars):
        events = await service.get_events("user-123", WINDOW)

        assert [e.id for e in events] == ["A1", "A2", "A3", "B1", "B2"]

    @pytest.mark.asyncio
    async def test_every_event_tagged_with_source(self, service, two_calendars):
        events = await service.get_events("user-123", WINDOW)

        assert [e.calendar_id for e in events] == ["cal-a"] * 3 + ["cal-b"] * 2

    @pytest.mark.asyncio
    async def test_explicit_ids_in_caller_order(self, service, two_calendars):
        events = await service.get_events("user-123", WINDOW, calendar_ids=["cal-b", "cal-a"])

        assert [e.id for e in events] == ["B1", "B2", "A1", "A2", "A3"]
        # No calendar-list lookup when ids are given
        assert all("calendarList" not in r.url.path for r in two_calendars.api_requests())

    @pytest.mark.asyncio
    async def test_single_id(self, service, two_calendars):
        events = await service.get_events("user-123", WINDOW, calendar_ids="cal-b")

        assert [e.id for e in events] == ["B1", "B2"]
        assert {e.calendar_id for e in events} == {"cal-b"}

    @pytest.mark.asyncio
    async def test_drains_every_page(self, service, google):
        google.event_pages["primary"] = [
            [make_event(f"P{page}-{i}", "2025-01-15T09:00:00Z") for i in range(3)]
            for page in range(4)
        ]

        events = await service.get_events("user-123", WINDOW, calendar_ids="primary")

        requests = google.event_list_requests("primary")
        assert len(requests) == 4
        assert [r.url.params.get("pageToken") for r in requests] == [None, "1", "2", "3"]
        assert all(r.url.params["maxResults"] == "250" for r in requests)
        assert [e.id for e in events] == [f"P{page}-{i}" for page in range(4) for i in range(3)]

    @pytest.mark.asyncio
    async def test_window_is_sent_to_every_calendar(self, service, two_calendars):
        await service.get_events("user-123", WINDOW)

        for calendar_id in ("cal-a", "cal-b"):
            params = two_calendars.event_list_requests(calendar_id)[0].url.params
            assert params["timeMin"] == "2025-01-15T00:00:00Z"
            assert params["timeMax"] == "2025-01-22T00:00:00Z"
            assert params["singleEvents"] == "true"
            assert params["orderBy"] == "startTime"

    @pytest.mark.asyncio
    async def test_time_min_defaults_to_now(self, service, google):
        before = datetime.now(timezone.utc).replace(microsecond=0)

        await service.get_events("user-123", calendar_ids="primary")

        params = google.event_list_requests("primary")[0].url.params
        sent = datetime.fromisoformat(params["timeMin"].replace("Z", "+00:00"))
        assert sent >= before
        assert "timeMax" not in params

    @pytest.mark.asyncio
    async def test_empty_calendars_give_empty_result(self, service, google):
        google.calendar_pages = [[{"id": "cal-a"}, {"id": "cal-b"}]]

        assert await service.get_events("user-123", WINDOW) == []

    @pytest.mark.asyncio
    async def test_one_failing_calendar_fails_everything(self, service, two_calendars):
        two_calendars.failures["cal-b"] = google_error(
            403, "Calendar API has not been used in project 42 before or it is disabled."
        )

        with pytest.raises(ApiNotEnabledError):
            await service.get_events("user-123", WINDOW)

        # cal-a was fetched first, its events are discarded with the failure
        assert len(two_calendars.event_list_requests("cal-a")) == 1

    @pytest.mark.asyncio
    async def test_failure_stops_later_calendars(self, service, two_calendars):
        two_calendars.failures["cal-a"] = google_error(500, "Backend Error")

        with pytest.raises(UpstreamFailureError) as exc_info:
            await service.get_events("user-123", WINDOW)

        assert exc_info.value.status_code == 500
        assert two_calendars.event_list_requests("cal-b") == []

    @pytest.mark.asyncio
    async def test_idempotent(self, service, two_calendars):
        first = await service.get_events("user-123", WINDOW)
        second = await service.get_events("user-123", WINDOW)

        assert first == second

    @pytest.mark.asyncio
    async def test_expired_auth_without_refresh_token(
        self, service, mock_store, credential_record, google
    ):
        mock_store.get.return_value = replace(credential_record, refresh_token=None)
        google.rejected_tokens.add("ya29.valid")

        with pytest.raises(AuthExpiredError) as exc_info:
            await service.get_events("user-123", WINDOW, calendar_ids="primary")

        assert exc_info.value.kind == ErrorKind.AUTH_EXPIRED

    @pytest.mark.asyncio
    async def test_unreachable_token_endpoint_near_expiry_still_lists(
        self, service, mock_store, credential_record, google
    ):
        mock_store.get.return_value = replace(
            credential_record,
            expires_at=datetime.now(timezone.utc) + timedelta(minutes=2),
        )
        google.token_endpoint_down = True
        google.calendar_pages = [[{"id": "primary", "summary": "Me", "primary": True}]]

        calendars = await service.list_calendars("user-123")

        assert [c.id for c in calendars] == ["primary"]
        mock_store.update.assert_not_called()

    @pytest.mark.asyncio
    async def test_unreachable_token_endpoint_after_expiry_is_upstream_failure(
        self, service, mock_store, credential_record, google
    ):
        mock_store.get.return_value = replace(
            credential_record,
            expires_at=datetime.now(timezone.utc) - timedelta(minutes=1),
        )
        google.token_endpoint_down = True

        with pytest.raises(UpstreamFailureError) as exc_info:
            await service.get_events("user-123", WINDOW, calendar_ids="primary")

        assert exc_info.value.status_code is None
        assert google.api_requests() == []

    @pytest.mark.asyncio
    async def test_logs_aggregation(self, service, two_calendars, monitor):
        await service.get_events("user-123", WINDOW)

        monitor.log_aggregation.assert_called_once()
        kwargs = monitor.log_aggregation.call_args.kwargs
        assert kwargs["calendar_ids"] == ["cal-a", "cal-b"]
        assert kwargs["total_events"] == 5
        # one calendar-list page + one page per calendar
        assert monitor.log_page_fetch.call_count == 3


# ---------------------------------------------------------------------------
# MUTATIONS
# ---------------------------------------------------------------------------

class TestMutations:

    @pytest.mark.asyncio
    async def test_create_targets_primary(self, service, google):
        draft = EventDraft(
            summary="Team Meeting",
            description="Weekly sync",
            start=EventTime(date_time=datetime(2025, 1, 15, 18, 0), time_zone="America/New_York"),
            end=EventTime(date_time=datetime(2025, 1, 15, 19, 0), time_zone="America/New_York"),
            attendees=["ana@example.com"],
        )

        event = await service.create_event("user-123", draft)

        request = google.api_requests("POST")[0]
        assert request.url.path == "/calendar/v3/calendars/primary/events"
        body = json.loads(request.content)
        assert body["summary"] == "Team Meeting"
        assert body["start"] == {"dateTime": "2025-01-15T18:00:00", "timeZone": "America/New_York"}
        assert body["attendees"] == [{"email": "ana@example.com"}]
        assert event.id == "created-1"
        assert event.calendar_id == "primary"
        assert event.attendee_emails() == ["ana@example.com"]

    @pytest.mark.asyncio
    async def test_create_all_day(self, service, google):
        draft = EventDraft(
            summary="Holiday",
            start=EventTime(date="2025-01-20"),
            end=EventTime(date="2025-01-21"),
        )

        event = await service.create_event("user-123", draft)

        body = json.loads(google.api_requests("POST")[0].content)
        assert body["start"] == {"date": "2025-01-20"}
        assert event.is_all_day()

    @pytest.mark.asyncio
    async def test_update_sends_only_supplied_fields(self, service, google):
        event = await service.update_event("user-123", "evt-9", EventPatch(summary="Renamed"))

        request = google.api_requests("PATCH")[0]
        assert request.url.path == "/calendar/v3/calendars/primary/events/evt-9"
        assert json.loads(request.content) == {"summary": "Renamed"}
        assert event.summary == "Renamed"
        assert event.location == "Room 1"

    @pytest.mark.asyncio
    async def test_update_can_clear_a_field(self, service, google):
        await service.update_event("user-123", "evt-9", EventPatch(location=None))

        assert json.loads(google.api_requests("PATCH")[0].content) == {"location": None}

    @pytest.mark.asyncio
    async def test_delete_returns_success(self, service, google):
        result = await service.delete_event("user-123", "evt-9")

        assert result.success is True
        assert google.api_requests("DELETE")[0].url.path == "/calendar/v3/calendars/primary/events/evt-9"

    @pytest.mark.asyncio
    async def test_delete_missing_event_is_surfaced(self, service, google):
        google.failures["primary"] = google_error(404, "Not Found", "notFound")

        with pytest.raises(UpstreamFailureError) as exc_info:
            await service.delete_event("user-123", "evt-9")

        assert exc_info.value.status_code == 404

    @pytest.mark.asyncio
    async def test_mutation_failures_are_classified(self, service, google):
        google.failures["primary"] = google_error(
            403, "Request had insufficient authentication scopes.", "insufficientPermissions"
        )

        with pytest.raises(InsufficientPermissionError):
            await service.create_event(
                "user-123",
                EventDraft(
                    summary="x",
                    start=EventTime(date="2025-01-20"),
                    end=EventTime(date="2025-01-21"),
                ),
            )



class TestDrafts:

    def test_draft_requires_boundaries(self):
        with pytest.raises(ValueError):
            EventDraft(summary="x", start=EventTime(), end=EventTime(date="2025-01-21"))

    def test_draft_without_offset_or_zone_is_rejected(self):
        with pytest.raises(ValueError):
            EventDraft(
                summary="x",
                start=EventTime(date_time=datetime(2025, 1, 15, 18, 0)),
                end=EventTime(date_time=datetime(2025, 1, 15, 19, 0)),
            )

    def test_draft_with_offset_is_accepted(self):
        draft = EventDraft(
            summary="x",
            start=EventTime(date_time=datetime(2025, 1, 15, 18, 0, tzinfo=timezone.utc)),
            end=EventTime(date_time=datetime(2025, 1, 15, 19, 0, tzinfo=timezone.utc)),
        )

        assert draft.to_google_body()["start"] == {"dateTime": "2025-01-15T18:00:00+00:00"}

    def test_draft_with_zone_name_is_accepted(self):
        draft = EventDraft(
            summary="x",
            start=EventTime(date_time=datetime(2025, 1, 15, 18, 0), time_zone="Europe/Madrid"),
            end=EventTime(date="2025-01-16"),
        )

        assert draft.start.time_zone == "Europe/Madrid"

    def test_patch_without_offset_or_zone_is_rejected(self):
        with pytest.raises(ValueError):
            EventPatch(start=EventTime(date_time=datetime(2025, 1, 15, 18, 0)))

    def test_empty_patch_has_no_changes(self):
        assert not EventPatch().has_changes()
        assert EventPatch(summary="x").has_changes()
