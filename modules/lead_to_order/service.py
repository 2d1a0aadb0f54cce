"""
Lead to Order application service.

The operations behind each dashboard page: fetch rows from the sheet, map
them to records, reconcile, and append new rows both to the local echo
store and to the sheet. Sheet failures never escape these methods; they
come back as notices and the previously loaded data stays in place.
"""

import logging
import random
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Callable, Mapping, Optional

from .config import config
from .dates import sheet_timestamp
from .exceptions import SchemaMismatchError, SheetError
from .models import (
    ENQUIRY_SCHEMA,
    FOLLOW_UP_SCHEMA,
    LEAD_SCHEMA,
    Enquiry,
    FollowUp,
    Lead,
    LeadStatus,
    ReceivedType,
)
from .reconcile import Reconciliation, reconcile
from .sheet_client import SheetClient
from .store import LocalEchoStore
from .validation import validate_enquiry, validate_follow_up, validate_lead

logger = logging.getLogger(__name__)

# Columns left for the sheet's own workflow when a lead is created
_WORKFLOW_COLUMNS = (
    'planned', 'actual', 'time_delay', 'lead_status',
    'next_followup_date', 'what_did_customer_say',
)


class NoticeLevel(str, Enum):
    SUCCESS = 'success'
    INFO = 'info'
    WARNING = 'warning'
    ERROR = 'error'


@dataclass(frozen=True)
class Notice:
    """A transient message for the user (toast/banner)."""
    level: NoticeLevel
    title: str
    message: str

    def __str__(self) -> str:
        return f"{self.title}: {self.message}"


class SubmitStatus(str, Enum):
    SYNCED = 'synced'
    LOCAL_ONLY = 'local-only'
    INVALID = 'invalid'
    BUSY = 'busy'


@dataclass
class SubmitResult:
    """Outcome of a form submission."""
    status: SubmitStatus
    record: Optional[object] = None
    notice: Optional[Notice] = None
    errors: dict = field(default_factory=dict)

    @property
    def saved(self) -> bool:
        return self.status in (SubmitStatus.SYNCED, SubmitStatus.LOCAL_ONLY)


@dataclass
class LoadResult:
    """Records of one collection after a fetch attempt."""
    records: list
    ok: bool = True
    notice: Optional[Notice] = None


@dataclass
class CallTrackerState:
    reconciliation: Reconciliation
    leads: list[Lead]
    follow_ups: list[FollowUp]  # newest first
    notices: list[Notice] = field(default_factory=list)


def format_next_lead_no(last: str, prefix: str = 'LN') -> str:
    """
    Lead number following ``last``.

    ``LN-015`` becomes ``LN-016``; an empty or unreadable value starts the
    sequence at ``LN-001``.
    """
    last = (last or '').strip()
    number = 0
    if last:
        try:
            number = int(last.split('-')[1])
        except (IndexError, ValueError):
            logger.warning(f"Unreadable last lead number {last!r}, restarting sequence")
    return f"{prefix}-{number + 1:03d}"


def new_direct_reference() -> str:
    """Reference for an enquiry that did not come through a lead."""
    return f"DIR{random.randint(0, 9999):04d}"


class LeadToOrderService:
    """Operations behind the dashboard pages."""

    def __init__(
        self,
        client: SheetClient,
        store: LocalEchoStore,
        settings=config,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.client = client
        self.store = store
        self.settings = settings
        self._clock = clock or (lambda: datetime.now().astimezone())

        # Last successfully loaded state
        self.leads: list[Lead] = []
        self.follow_ups: list[FollowUp] = []
        self.enquiries: list[Enquiry] = []

        # Collections with a fetch in flight
        self.loading: set[str] = set()
        self._saving_follow_up = False

    @contextmanager
    def _fetching(self, name: str):
        self.loading.add(name)
        try:
            yield
        finally:
            self.loading.discard(name)

    def _fetch_rows(self, name: str, fetch: Callable[[], list], schema) -> Optional[list]:
        """Rows from the sheet, or None after logging the failure."""
        try:
            with self._fetching(name):
                rows = fetch()
            schema.check_rows(rows)
            return rows
        except SchemaMismatchError as e:
            logger.error(f"Sheet layout mismatch for {name}: {e}")
            raise
        except SheetError as e:
            logger.error(f"Sheet fetch error for {name}: {e}")
            return None

    def _load(self, name: str, fetch, schema, mapper, current: list, local: list) -> LoadResult:
        try:
            rows = self._fetch_rows(name, fetch, schema)
        except SchemaMismatchError as e:
            return LoadResult(
                list(current), ok=False,
                notice=Notice(NoticeLevel.ERROR, 'Error', f"The {name} sheet layout changed: {e}"),
            )

        if rows is None:
            fallback = current or local
            return LoadResult(
                list(fallback), ok=False,
                notice=Notice(NoticeLevel.ERROR, 'Error', f"Failed to load {name} from sheet"),
            )

        return LoadResult([mapper(row) for row in rows])

    # ==========================================================================
    # Loading
    # ==========================================================================

    def load_leads(self) -> LoadResult:
        result = self._load(
            'leads',
            lambda: self.client.get_leads(self.settings.LEADS_SHEET),
            LEAD_SCHEMA,
            lambda row: Lead.from_row(row, status_default=LeadStatus.FOLLOW_UP),
            self.leads,
            self.store.leads.get_all(),
        )
        self.leads = result.records
        return result

    def load_follow_ups(self) -> LoadResult:
        result = self._load(
            'follow-ups',
            self.client.get_follow_ups,
            FOLLOW_UP_SCHEMA,
            lambda row: FollowUp.from_row(row, status_default=LeadStatus.FOLLOW_UP),
            self.follow_ups,
            self.store.follow_ups.get_all(),
        )
        self.follow_ups = result.records
        return result

    def load_enquiries(self) -> LoadResult:
        result = self._load(
            'enquiries',
            lambda: self.client.get_enquiries(self.settings.ENQUIRY_SHEET),
            ENQUIRY_SCHEMA,
            Enquiry.from_row,
            self.enquiries,
            self.store.enquiries.get_all(),
        )
        self.enquiries = result.records
        return result

    def refresh_call_tracker(self, now: Optional[datetime] = None) -> CallTrackerState:
        """Fetch both tables and reconcile them."""
        notices = []
        for result in (self.load_leads(), self.load_follow_ups()):
            if result.notice:
                notices.append(result.notice)

        reconciliation = reconcile(self.leads, self.follow_ups, now=now or self._clock())

        skipped = reconciliation.dropped_count()
        if skipped:
            notices.append(Notice(
                NoticeLevel.WARNING,
                'Skipped rows',
                f"{skipped} row(s) without a usable lead number were left out",
            ))

        newest_first = sorted(
            self.follow_ups,
            key=lambda fu: fu.timestamp_parsed.sort_key,
            reverse=True,
        )
        return CallTrackerState(
            reconciliation=reconciliation,
            leads=list(self.leads),
            follow_ups=newest_first,
            notices=notices,
        )

    # ==========================================================================
    # Writes
    # ==========================================================================

    def _write(self, what: str, send: Callable[[], dict]) -> bool:
        """Send a row to the sheet; True only when the sheet confirmed it."""
        try:
            result = send()
        except SheetError as e:
            logger.error(f"Failed to save {what} to sheet: {e}")
            return False
        if not result.get('success'):
            logger.warning(f"Sheet rejected {what}: {result.get('error', 'no reason given')}")
            return False
        return True

    def _saved(self, record, synced: bool, what: str) -> SubmitResult:
        if synced:
            return SubmitResult(
                SubmitStatus.SYNCED, record,
                Notice(NoticeLevel.SUCCESS, 'Success', f"{what} saved successfully"),
            )
        return SubmitResult(
            SubmitStatus.LOCAL_ONLY, record,
            Notice(NoticeLevel.WARNING, 'Saved locally', f"{what} saved locally but not synced to the sheet"),
        )

    def _invalid(self, errors: dict, what: str) -> SubmitResult:
        logger.info(f"{what} form rejected: {sorted(errors)}")
        return SubmitResult(
            SubmitStatus.INVALID,
            notice=Notice(NoticeLevel.ERROR, 'Invalid input', f"Please correct the {what.lower()} form"),
            errors=errors,
        )

    def next_lead_no(self) -> str:
        """Allocate the next sequential lead number."""
        prefix = self.settings.LEAD_NO_PREFIX
        try:
            last = self.client.get_last_lead_no()
        except SheetError as e:
            logger.error(f"Failed to fetch last lead no: {e}")
            last = self._highest_known_lead_no(prefix)
        return format_next_lead_no(last, prefix)

    def _highest_known_lead_no(self, prefix: str) -> str:
        highest, best = -1, ''
        for lead in self.leads + self.store.leads.get_all():
            parts = lead.lead_no.strip().split('-')
            if len(parts) == 2 and parts[0] == prefix and parts[1].isdigit() and int(parts[1]) > highest:
                highest, best = int(parts[1]), lead.lead_no.strip()
        return best

    def add_lead(self, form: Mapping) -> SubmitResult:
        """Validate a new lead, number it, store it locally and append it to the sheet."""
        errors = validate_lead(form)
        if errors:
            return self._invalid(errors, 'Lead')

        values = {name: str(form.get(name) or '').strip() for name in LEAD_SCHEMA.columns}
        lead = Lead(
            lead_no=self.next_lead_no(),
            timestamp=sheet_timestamp(self._clock()),
            lead_received_name=values['lead_received_name'],
            lead_source=values['lead_source'],
            company_name=values['company_name'],
            phone_number=values['phone_number'],
            person_name=values['person_name'],
            location=values['location'],
            email_address=values['email_address'],
            state=values['state'],
            address=values['address'],
            nob=values['nob'],
            remarks=values['remarks'],
        )
        self.store.leads.add(lead)

        row = lead.to_row()
        for name in _WORKFLOW_COLUMNS:
            row[LEAD_SCHEMA.index(name)] = ''

        synced = self._write(f"lead {lead.lead_no}", lambda: self.client.insert(self.settings.LEADS_SHEET, row))
        if synced:
            self.load_leads()
        return self._saved(lead, synced, f"Lead {lead.lead_no}")

    def add_follow_up(self, form: Mapping) -> SubmitResult:
        """
        Record an interaction with a lead.

        The follow-up is appended locally, always written back to the sheet,
        and laid over the matching local lead. Only one submission runs at a
        time; a second call while one is in flight is turned away.
        """
        if self._saving_follow_up:
            return SubmitResult(
                SubmitStatus.BUSY,
                notice=Notice(NoticeLevel.WARNING, 'Please wait', 'A follow-up is already being saved'),
            )

        self._saving_follow_up = True
        try:
            errors = validate_follow_up(form)
            if errors:
                return self._invalid(errors, 'Follow-up')

            follow_up = FollowUp(
                lead_no=str(form['lead_no']).strip(),
                timestamp=self._clock().isoformat(timespec='seconds'),
                lead_status=LeadStatus(str(form['lead_status']).strip().lower()),
                next_followup_date=str(form.get('next_followup_date') or '').strip(),
                what_did_customer_say=str(form['what_did_customer_say']).strip(),
            )
            self.store.follow_ups.add(follow_up)

            synced = self._write(
                f"follow-up for {follow_up.lead_no}",
                lambda: self.client.insert_follow_up(
                    lead_no=follow_up.lead_no,
                    lead_status=follow_up.lead_status.value,
                    next_followup_date=follow_up.next_followup_date,
                    what_did_customer_say=follow_up.what_did_customer_say,
                    sheet_name=self.settings.FOLLOW_UP_SHEET,
                ),
            )

            for lead in self.store.leads.get_all():
                if lead.lead_no.strip() == follow_up.lead_no:
                    self.store.leads.update(
                        lead.id,
                        lead_status=follow_up.lead_status.value,
                        next_followup_date=follow_up.next_followup_date,
                        what_did_customer_say=follow_up.what_did_customer_say,
                    )

            # The sheet may not show the new row yet
            self.load_follow_ups()
            return self._saved(follow_up, synced, 'Follow-up')
        finally:
            self._saving_follow_up = False

    def add_enquiry(self, form: Mapping) -> SubmitResult:
        errors = validate_enquiry(form)
        if errors:
            return self._invalid(errors, 'Enquiry')

        enquiry = Enquiry(
            direct_no_or_lead_no=str(form['direct_no_or_lead_no']).strip(),
            timestamp=self._clock().isoformat(timespec='seconds'),
            received_type=ReceivedType(str(form['received_type']).strip().lower()),
            person_name=str(form['person_name']).strip(),
            total_patient=int(str(form['total_patient']).strip()),
            patient_name=str(form['patient_name']).strip(),
            patient_phone_number=str(form['patient_phone_number']).strip(),
            patient_address=str(form['patient_address']).strip(),
        )
        self.store.enquiries.add(enquiry)

        synced = self._write(
            f"enquiry {enquiry.direct_no_or_lead_no}",
            lambda: self.client.insert(self.settings.ENQUIRY_SHEET, enquiry.to_row()),
        )
        if synced:
            self.load_enquiries()
        return self._saved(enquiry, synced, 'Enquiry')

    # ==========================================================================
    # Local-only edits
    # ==========================================================================

    def update_enquiry(self, enquiry_id: str, **changes) -> Notice:
        if self.store.enquiries.update(enquiry_id, **changes):
            self.enquiries = [
                Enquiry.from_dict({**e.to_dict(), **changes}) if e.id == enquiry_id else e
                for e in self.enquiries
            ]
            return Notice(NoticeLevel.SUCCESS, 'Updated', 'Enquiry updated locally')
        return Notice(NoticeLevel.INFO, 'Not found', f"No local enquiry {enquiry_id}")

    def delete_enquiry(self, enquiry_id: str) -> Notice:
        self.enquiries = [e for e in self.enquiries if e.id != enquiry_id]
        if self.store.enquiries.delete(enquiry_id):
            return Notice(NoticeLevel.SUCCESS, 'Deleted', 'Enquiry deleted locally')
        return Notice(NoticeLevel.INFO, 'Not found', f"No local enquiry {enquiry_id}")

    def delete_lead(self, lead_id: str) -> Notice:
        """Hide a lead from this session; the sheet keeps the row."""
        self.store.leads.delete(lead_id)
        self.leads = [lead for lead in self.leads if lead.id != lead_id]
        return Notice(NoticeLevel.SUCCESS, 'Deleted', 'Lead removed from the view')
