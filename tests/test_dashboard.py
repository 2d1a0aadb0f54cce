from datetime import date

from conftest import enquiry_row, follow_up_row, lead_row
from modules.lead_to_order.dashboard import (
    UNKNOWN_LEAD,
    filter_follow_ups,
    get_call_tracker_rows,
    get_dashboard_stats,
    get_received_patients,
    get_recent_leads,
    search_enquiries,
    status_color,
)
from modules.lead_to_order.models import Enquiry, FollowUp, Lead, LeadStatus

TODAY = date(2025, 1, 11)


def make_lead(**kwargs):
    return Lead.from_row(lead_row(**kwargs), LeadStatus.FOLLOW_UP)


def make_fu(**kwargs):
    return FollowUp.from_row(follow_up_row(**kwargs), LeadStatus.FOLLOW_UP)


def test_dashboard_stats():
    leads = [
        make_lead(lead_no="LN-1", next_date="10/01/2025"),
        make_lead(lead_no="LN-2", next_date="11/01/2025"),
        make_lead(lead_no="LN-3", next_date="20/01/2025"),
        make_lead(lead_no="LN-4", status="received", next_date="01/01/2025"),
        make_lead(lead_no="LN-5", status="cancelled"),
    ]
    enquiries = [Enquiry.from_row(enquiry_row())]

    stats = get_dashboard_stats(leads, enquiries, today=TODAY)

    assert stats == {
        'total_leads': 5,
        'follow_up_leads': 3,
        'received_patients': 1,
        'total_enquiries': 1,
        'pending_follow_ups': 2,
    }


def test_recent_leads_newest_first():
    leads = [make_lead(lead_no=f"LN-{day}", timestamp=f"{day:02d}/01/2025 09:00:00") for day in range(1, 9)]

    recent = get_recent_leads(leads)

    assert [lead.lead_no for lead in recent] == ["LN-8", "LN-7", "LN-6", "LN-5", "LN-4"]


def test_status_color():
    assert status_color("received") == "green"
    assert status_color(LeadStatus.CANCELLED) == "red"
    assert status_color("follow-up") == "blue"
    assert status_color("whatever") == "blue"


def test_filter_follow_ups():
    follow_ups = [make_fu(lead_no="LN-1", said="Wants a quote"), make_fu(lead_no="LN-2", said="Call back")]

    assert len(filter_follow_ups(follow_ups, "quote")) == 1
    assert len(filter_follow_ups(follow_ups, "ln-")) == 2
    assert [fu.lead_no for fu in filter_follow_ups(follow_ups, lead_no="LN-2")] == ["LN-2"]


def test_call_tracker_rows():
    leads = [make_lead(lead_no="LN-1", company="Acme Clinic")]
    follow_ups = [
        make_fu(lead_no="LN-1", timestamp="11/01/2025 14:05:00", status="received", next_date="15/01/2025"),
        make_fu(lead_no="LN-9"),
    ]

    rows = get_call_tracker_rows(follow_ups, leads)

    assert rows[0]['lead_name'] == "Acme Clinic"
    assert rows[0]['date'] == "Jan 11, 2025"
    assert rows[0]['time'] == "2:05 PM"
    assert rows[0]['status_color'] == "green"
    assert rows[0]['next_action'] == "Jan 15, 2025"
    assert rows[1]['lead_name'] == UNKNOWN_LEAD
    assert rows[1]['next_action'] == "-"


def test_received_patients():
    leads = [make_lead(lead_no="LN-1", status="received"), make_lead(lead_no="LN-2")]
    enquiries = [
        Enquiry.from_row(enquiry_row(ref="DIR0001", timestamp="09/01/2025", total="1", names="Anil")),
        Enquiry.from_row(enquiry_row(ref="LN-1", received_type="lead", timestamp="10/01/2025", total="3", names="Meera")),
        Enquiry.from_row(enquiry_row(ref="LN-2", received_type="lead", total="5")),
    ]

    view = get_received_patients(enquiries, leads)

    assert [e.direct_no_or_lead_no for e in view['enquiries']] == ["LN-1", "DIR0001"]
    assert view['total_patients'] == 4

    filtered = get_received_patients(enquiries, leads, query="anil")
    assert [e.direct_no_or_lead_no for e in filtered['enquiries']] == ["DIR0001"]


def test_search_enquiries():
    enquiries = [Enquiry.from_row(enquiry_row(names="Anil")), Enquiry.from_row(enquiry_row(names="Meera"))]
    assert len(search_enquiries(enquiries, "meera")) == 1
    assert len(search_enquiries(enquiries, "")) == 2
