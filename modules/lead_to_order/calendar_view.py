"""
Calendar events.

Three kinds of event appear on the calendar: a lead's next follow-up, a
lead's planned date, and a recorded interaction. Each kind is its own
dataclass carrying the record it came from.
"""

from dataclasses import dataclass
from datetime import date
from typing import ClassVar, Iterable, Union

from .dates import parse_optional_date
from .models import FollowUp, Lead


@dataclass(frozen=True)
class LeadFollowupEvent:
    kind: ClassVar[str] = 'lead-followup'
    color: ClassVar[str] = 'orange'
    day: date
    lead: Lead

    @property
    def title(self) -> str:
        return f"Follow-up: {self.lead.company_name}"

    @property
    def scheduled(self) -> bool:
        return True


@dataclass(frozen=True)
class LeadPlannedEvent:
    kind: ClassVar[str] = 'lead-planned'
    color: ClassVar[str] = 'blue'
    day: date
    lead: Lead

    @property
    def title(self) -> str:
        return f"Planned: {self.lead.company_name}"

    @property
    def scheduled(self) -> bool:
        return True


@dataclass(frozen=True)
class InteractionEvent:
    kind: ClassVar[str] = 'interaction'
    color: ClassVar[str] = 'green'
    day: date
    follow_up: FollowUp

    @property
    def title(self) -> str:
        return f"Call: {self.follow_up.lead_no}"

    @property
    def scheduled(self) -> bool:
        return False


CalendarEvent = Union[LeadFollowupEvent, LeadPlannedEvent, InteractionEvent]


def build_events(leads: Iterable[Lead], follow_ups: Iterable[FollowUp]) -> list[CalendarEvent]:
    """
    Calendar events for the given records.

    Dates that cannot be read are left off the calendar rather than pinned
    to today.
    """
    events: list[CalendarEvent] = []

    for lead in leads:
        followup_day = parse_optional_date(lead.next_followup_date)
        if followup_day:
            events.append(LeadFollowupEvent(followup_day, lead))
        planned_day = parse_optional_date(lead.planned)
        if planned_day:
            events.append(LeadPlannedEvent(planned_day, lead))

    for fu in follow_ups:
        if not fu.timestamp_fallback:
            events.append(InteractionEvent(fu.timestamp_parsed.local_date(), fu))

    return events


def events_on(events: Iterable[CalendarEvent], day: date) -> list[CalendarEvent]:
    return [event for event in events if event.day == day]


def event_days(events: Iterable[CalendarEvent]) -> dict[date, list[str]]:
    """Days with events and the kinds found on each (for calendar markers)."""
    days: dict[date, list[str]] = {}
    for event in events:
        kinds = days.setdefault(event.day, [])
        if event.kind not in kinds:
            kinds.append(event.kind)
    return days
