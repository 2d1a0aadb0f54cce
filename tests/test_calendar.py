from datetime import date

from conftest import follow_up_row, lead_row
from modules.lead_to_order.calendar_view import (
    InteractionEvent,
    LeadFollowupEvent,
    LeadPlannedEvent,
    build_events,
    event_days,
    events_on,
)
from modules.lead_to_order.models import FollowUp, Lead, LeadStatus


def test_build_events():
    leads = [Lead.from_row(lead_row(planned="10/01/2025", next_date="12/01/2025"), LeadStatus.FOLLOW_UP)]
    follow_ups = [
        FollowUp.from_row(follow_up_row(timestamp="11/01/2025 10:00:00"), LeadStatus.FOLLOW_UP),
        FollowUp.from_row(follow_up_row(timestamp="whenever"), LeadStatus.FOLLOW_UP),
    ]

    events = build_events(leads, follow_ups)

    assert sorted((type(e).__name__, e.day) for e in events) == [
        ("InteractionEvent", date(2025, 1, 11)),
        ("LeadFollowupEvent", date(2025, 1, 12)),
        ("LeadPlannedEvent", date(2025, 1, 10)),
    ]


def test_unparsable_lead_dates_are_skipped():
    leads = [Lead.from_row(lead_row(planned="tbd", next_date=""), LeadStatus.FOLLOW_UP)]
    assert build_events(leads, []) == []


def test_event_kinds_and_titles():
    lead = Lead.from_row(lead_row(company="Acme Clinic"), LeadStatus.FOLLOW_UP)
    fu = FollowUp.from_row(follow_up_row(lead_no="LN-001"), LeadStatus.FOLLOW_UP)

    followup = LeadFollowupEvent(date(2025, 1, 12), lead)
    planned = LeadPlannedEvent(date(2025, 1, 10), lead)
    interaction = InteractionEvent(date(2025, 1, 11), fu)

    assert (followup.kind, followup.color, followup.title) == ("lead-followup", "orange", "Follow-up: Acme Clinic")
    assert (planned.kind, planned.color) == ("lead-planned", "blue")
    assert (interaction.kind, interaction.color, interaction.title) == ("interaction", "green", "Call: LN-001")
    assert followup.scheduled and planned.scheduled and not interaction.scheduled


def test_events_on_and_days():
    leads = [
        Lead.from_row(lead_row(lead_no="LN-1", planned="10/01/2025", next_date="10/01/2025"), LeadStatus.FOLLOW_UP),
        Lead.from_row(lead_row(lead_no="LN-2", planned="12/01/2025"), LeadStatus.FOLLOW_UP),
    ]
    events = build_events(leads, [])

    assert len(events_on(events, date(2025, 1, 10))) == 2
    assert events_on(events, date(2025, 1, 11)) == []
    assert event_days(events) == {
        date(2025, 1, 10): ["lead-followup", "lead-planned"],
        date(2025, 1, 12): ["lead-planned"],
    }
