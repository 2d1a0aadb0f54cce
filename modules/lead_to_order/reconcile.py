"""
Reconciliation Engine - joins leads with their follow-up history.

Handles:
- Active-lead filter (planned but not yet actualized)
- Latest follow-up selection per lead number
- Status overlay onto a copy of each active lead
- Activity counters for the call tracker

Everything here is a pure function of its inputs and ``now``; the input
records are never modified.
"""

import logging
from collections import defaultdict
from dataclasses import dataclass, field, replace
from datetime import date, datetime
from typing import Iterable, Optional, Sequence

from .models import FollowUp, Lead, LeadStatus

logger = logging.getLogger(__name__)

MISSING_LEAD_NO = 'missing-lead-no'
DUPLICATE_LEAD_NO = 'duplicate-lead-no'


@dataclass(frozen=True)
class DroppedRecord:
    """A record excluded from the merge, and why."""
    kind: str  # 'lead' or 'follow_up'
    reason: str
    index: int  # position in the input collection
    lead_no: str = ''


@dataclass(frozen=True)
class ActivityCounters:
    total_interactions: int = 0
    todays_activity: int = 0
    pending_follow_ups: int = 0


@dataclass
class MergedLead:
    """An active lead with its latest follow-up laid over it."""
    lead: Lead
    latest_follow_up: Optional[FollowUp] = None
    follow_up_count: int = 0

    @property
    def lead_no(self) -> str:
        return self.lead.lead_no

    @property
    def lead_status(self) -> LeadStatus:
        return self.lead.lead_status


@dataclass
class Reconciliation:
    """Result of one reconciliation pass."""
    leads: list[MergedLead] = field(default_factory=list)
    counters: ActivityCounters = field(default_factory=ActivityCounters)
    dropped: list[DroppedRecord] = field(default_factory=list)
    inactive_count: int = 0

    def dropped_count(self, kind: Optional[str] = None) -> int:
        return sum(1 for d in self.dropped if kind is None or d.kind == kind)


def is_blank(value) -> bool:
    return value is None or not str(value).strip()


def is_active(lead: Lead) -> bool:
    """A lead is active when it has a planned date and no actual date."""
    return not is_blank(lead.planned) and is_blank(lead.actual)


def latest_follow_up(follow_ups: Sequence[FollowUp]) -> Optional[FollowUp]:
    """
    Most recent follow-up by timestamp.

    Unparsable timestamps count as epoch 0. Equal timestamps keep input
    order, so the earlier record wins a tie.
    """
    if not follow_ups:
        return None
    ordered = sorted(follow_ups, key=lambda fu: fu.timestamp_parsed.sort_key, reverse=True)
    return ordered[0]


def group_follow_ups(
    follow_ups: Iterable[FollowUp],
    dropped: Optional[list[DroppedRecord]] = None,
) -> dict[str, list[FollowUp]]:
    """Follow-ups keyed by lead number; ones without a lead number are dropped."""
    grouped: dict[str, list[FollowUp]] = defaultdict(list)
    for position, fu in enumerate(follow_ups):
        if is_blank(fu.lead_no):
            if dropped is not None:
                dropped.append(DroppedRecord('follow_up', MISSING_LEAD_NO, position))
            continue
        grouped[fu.lead_no.strip()].append(fu)
    return dict(grouped)


def unique_leads(leads: Iterable[Lead], dropped: Optional[list[DroppedRecord]] = None) -> list[Lead]:
    """Leads with a lead number, first occurrence of each number only."""
    seen = set()
    result = []
    for position, lead in enumerate(leads):
        if is_blank(lead.lead_no):
            if dropped is not None:
                dropped.append(DroppedRecord('lead', MISSING_LEAD_NO, position))
            continue
        key = lead.lead_no.strip()
        if key in seen:
            if dropped is not None:
                dropped.append(DroppedRecord('lead', DUPLICATE_LEAD_NO, position, key))
            continue
        seen.add(key)
        result.append(lead)
    return result


def _is_on_day(fu: FollowUp, day: date) -> bool:
    return not fu.timestamp_fallback and fu.timestamp_parsed.local_date() == day


def count_todays_activity(follow_ups: Iterable[FollowUp], now: Optional[datetime] = None) -> int:
    """Follow-ups stamped on the local calendar day of ``now``."""
    now = now or datetime.now()
    today = now.astimezone().date() if now.tzinfo else now.date()
    return sum(1 for fu in follow_ups if _is_on_day(fu, today))


def overlay_latest(leads: Sequence[Lead], follow_ups: Sequence[FollowUp]) -> list[Lead]:
    """Every keyed lead (active or not) with its latest follow-up laid over it."""
    history = group_follow_ups(follow_ups)
    result = []
    for lead in unique_leads(leads):
        latest = latest_follow_up(history.get(lead.lead_no.strip(), []))
        result.append(lead.with_follow_up(latest) if latest else replace(lead))
    return result


def reconcile(
    leads: Sequence[Lead],
    follow_ups: Sequence[FollowUp],
    now: Optional[datetime] = None,
) -> Reconciliation:
    """
    Build the call-tracker view model.

    Args:
        leads: Leads as mapped from the leads sheet
        follow_ups: Follow-ups as mapped from the follow-up sheet
        now: Reference instant for "today" (defaults to the current time)

    Returns:
        Reconciliation with the merged active leads in input order, the
        activity counters and every record that was excluded.
    """
    dropped: list[DroppedRecord] = []
    candidates = unique_leads(leads, dropped)
    history = group_follow_ups(follow_ups, dropped)
    valid_follow_ups = [fu for group in history.values() for fu in group]

    merged = []
    inactive = 0
    for lead in candidates:
        if not is_active(lead):
            inactive += 1
            continue

        matches = history.get(lead.lead_no.strip(), [])
        latest = latest_follow_up(matches)
        projected = lead.with_follow_up(latest) if latest else replace(lead)
        merged.append(MergedLead(lead=projected, latest_follow_up=latest, follow_up_count=len(matches)))

    counters = ActivityCounters(
        total_interactions=len(valid_follow_ups),
        todays_activity=count_todays_activity(valid_follow_ups, now),
        pending_follow_ups=sum(1 for m in merged if m.lead_status == LeadStatus.FOLLOW_UP),
    )

    for record in dropped:
        logger.warning(f"Dropped {record.kind} at index {record.index}: {record.reason} {record.lead_no}".rstrip())

    logger.debug(
        f"Reconciled {len(merged)} active leads ({inactive} inactive, "
        f"{len(dropped)} dropped, {counters.total_interactions} interactions)"
    )

    return Reconciliation(leads=merged, counters=counters, dropped=dropped, inactive_count=inactive)
