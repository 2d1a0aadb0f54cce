"""
Dashboard views for Lead to Order.

Functions that turn loaded records into the data each page displays:
summary cards, the call-tracker table and the received-patients list.
"""

import logging
from datetime import date
from typing import Iterable, Optional, Sequence

from .dates import format_day, parse_optional_date
from .models import Enquiry, FollowUp, Lead, LeadStatus, ReceivedType
from .reconcile import unique_leads

logger = logging.getLogger(__name__)

UNKNOWN_LEAD = 'Unknown Lead'

STATUS_COLORS = {
    LeadStatus.RECEIVED: 'green',
    LeadStatus.CANCELLED: 'red',
    LeadStatus.FOLLOW_UP: 'blue',
}


def status_color(status) -> str:
    """Badge colour for a lead status (blue for anything unrecognized)."""
    try:
        return STATUS_COLORS[LeadStatus(status)]
    except ValueError:
        return 'blue'


def lead_name(lead_no: str, leads: Iterable[Lead]) -> str:
    """Company name behind a lead number."""
    for lead in leads:
        if lead.lead_no.strip() == lead_no.strip():
            return lead.company_name
    return UNKNOWN_LEAD


def _matches(record, query: str) -> bool:
    query = query.strip().lower()
    if not query:
        return True
    return any(query in str(value).lower() for value in record.to_dict().values())


# ==========================================================================
# Dashboard
# ==========================================================================

def get_dashboard_stats(
    leads: Sequence[Lead],
    enquiries: Sequence[Enquiry],
    today: Optional[date] = None,
) -> dict:
    """
    Summary card counts.

    Pending follow-ups are follow-up leads whose next follow-up date is today
    or earlier.
    """
    today = today or date.today()
    leads = unique_leads(leads)

    follow_up_leads = [lead for lead in leads if lead.lead_status == LeadStatus.FOLLOW_UP]
    received_leads = [lead for lead in leads if lead.lead_status == LeadStatus.RECEIVED]

    pending = 0
    for lead in follow_up_leads:
        due = parse_optional_date(lead.next_followup_date)
        if due is not None and due <= today:
            pending += 1

    return {
        'total_leads': len(leads),
        'follow_up_leads': len(follow_up_leads),
        'received_patients': len(received_leads),
        'total_enquiries': len(enquiries),
        'pending_follow_ups': pending,
    }


def get_recent_leads(leads: Sequence[Lead], limit: int = 5) -> list[Lead]:
    """Most recently received leads, newest first."""
    ordered = sorted(unique_leads(leads), key=lambda lead: lead.timestamp_parsed.sort_key, reverse=True)
    return ordered[:limit]


# ==========================================================================
# Call tracker
# ==========================================================================

def filter_follow_ups(
    follow_ups: Iterable[FollowUp],
    query: str = '',
    lead_no: str = 'all',
) -> list[FollowUp]:
    """Follow-ups matching the search box and the lead selector."""
    query = query.strip().lower()
    result = []
    for fu in follow_ups:
        matches_search = (
            not query
            or query in fu.lead_no.lower()
            or query in fu.what_did_customer_say.lower()
        )
        matches_lead = lead_no == 'all' or fu.lead_no.strip() == lead_no.strip()
        if matches_search and matches_lead:
            result.append(fu)
    return result


def get_call_tracker_rows(
    follow_ups: Iterable[FollowUp],
    leads: Sequence[Lead],
    query: str = '',
    lead_no: str = 'all',
) -> list[dict]:
    """Rows of the interaction history table."""
    rows = []
    for fu in filter_follow_ups(follow_ups, query, lead_no):
        rows.append({
            'id': fu.id,
            'lead_no': fu.lead_no,
            'lead_name': lead_name(fu.lead_no, leads),
            'date': format_day(fu.timestamp),
            'time': '-' if fu.timestamp_fallback else fu.timestamp_at.astimezone().strftime('%I:%M %p').lstrip('0'),
            'notes': fu.what_did_customer_say,
            'status': fu.lead_status.value,
            'status_color': status_color(fu.lead_status),
            'next_action': format_day(fu.next_followup_date) if fu.next_followup_date else '-',
        })
    return rows


# ==========================================================================
# Received patients
# ==========================================================================

def get_received_patients(
    enquiries: Iterable[Enquiry],
    leads: Sequence[Lead],
    query: str = '',
) -> dict:
    """
    Enquiries that turned into patients.

    Direct enquiries always count; lead enquiries count once their lead is
    received.
    """
    statuses = {lead.lead_no.strip(): lead.lead_status for lead in unique_leads(leads)}

    received = []
    for enquiry in enquiries:
        if enquiry.received_type == ReceivedType.DIRECT:
            received.append(enquiry)
        elif statuses.get(enquiry.direct_no_or_lead_no.strip()) == LeadStatus.RECEIVED:
            received.append(enquiry)

    received.sort(key=lambda e: e.timestamp_parsed.sort_key, reverse=True)

    return {
        'enquiries': [e for e in received if _matches(e, query)],
        'total_patients': sum(e.total_patient for e in received),
    }


def search_enquiries(enquiries: Iterable[Enquiry], query: str = '') -> list[Enquiry]:
    return [e for e in enquiries if _matches(e, query)]
