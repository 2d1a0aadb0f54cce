"""
Data models for Lead to Order.

Typed records for the three sheets plus the session user, and the fixed
column layouts used to map raw sheet rows to and from those records.
"""

import logging
import re
import uuid
from dataclasses import asdict, dataclass, field, fields, replace
from datetime import datetime
from enum import Enum
from typing import Optional, Sequence

from .dates import ParsedDate, parse_sheet_datetime
from .exceptions import SchemaMismatchError

logger = logging.getLogger(__name__)

# Stand-in for blank display cells
MISSING = 'N/A'


def _new_id() -> str:
    return uuid.uuid4().hex


class LeadStatus(str, Enum):
    """Where a lead stands after its latest interaction."""
    FOLLOW_UP = 'follow-up'
    RECEIVED = 'received'
    CANCELLED = 'cancelled'

    @classmethod
    def coerce(cls, value, default: 'LeadStatus') -> 'LeadStatus':
        """Map a cell to a status, falling back to ``default``."""
        if isinstance(value, cls):
            return value
        text = str(value).strip().lower() if value is not None else ''
        try:
            return cls(text)
        except ValueError:
            if text:
                logger.debug(f"Unknown lead status {value!r}, using {default.value}")
            return default


class ReceivedType(str, Enum):
    """How an enquiry reached us."""
    DIRECT = 'direct'
    LEAD = 'lead'

    @classmethod
    def coerce(cls, value, default: 'ReceivedType' = None) -> 'ReceivedType':
        default = default or cls.DIRECT
        if isinstance(value, cls):
            return value
        text = str(value).strip().lower() if value is not None else ''
        try:
            return cls(text)
        except ValueError:
            return default


# ==========================================================================
# Column layouts
# ==========================================================================

def _label_key(label) -> str:
    return re.sub(r'[^a-z0-9]', '', str(label or '').lower())


@dataclass(frozen=True)
class SheetSchema:
    """
    Positional layout of one sheet.

    ``columns`` names the record field stored at each index, ``labels`` the
    header text the sheet shows for it. ``min_width`` is the number of
    leading columns every data row must carry.
    """
    name: str
    columns: tuple
    labels: tuple
    min_width: int

    @property
    def width(self) -> int:
        return len(self.columns)

    def index(self, column: str) -> int:
        return self.columns.index(column)

    def check_header(self, cells: Sequence) -> None:
        """Raise SchemaMismatchError unless ``cells`` matches the layout."""
        actual = [_label_key(c) for c in list(cells)[:self.width]]
        expected = [_label_key(label) for label in self.labels]
        if actual != expected:
            mismatched = [
                f"{i}: expected {self.labels[i]!r}, got {cells[i] if i < len(cells) else None!r}"
                for i in range(self.width)
                if i >= len(actual) or actual[i] != expected[i]
            ]
            raise SchemaMismatchError(
                f"{self.name} header does not match column layout ({'; '.join(mismatched[:3])})"
            )

    def check_rows(self, rows: Sequence[Sequence]) -> None:
        """Raise SchemaMismatchError if any non-empty row is too narrow."""
        for position, row in enumerate(rows):
            if row and len(row) < self.min_width:
                raise SchemaMismatchError(
                    f"{self.name} row {position} has {len(row)} columns, "
                    f"expected at least {self.min_width}"
                )


LEAD_SCHEMA = SheetSchema(
    name='leads',
    columns=(
        'timestamp', 'lead_no', 'lead_received_name', 'lead_source',
        'company_name', 'phone_number', 'person_name', 'location',
        'email_address', 'state', 'address', 'nob', 'remarks',
        'planned', 'actual', 'time_delay', 'lead_status',
        'next_followup_date', 'what_did_customer_say',
    ),
    labels=(
        'Timestamp', 'Lead No', 'Lead Received Name', 'Lead Source',
        'Company Name', 'Phone Number', 'Person Name', 'Location',
        'Email Address', 'State', 'Address', 'NOB', 'Remarks',
        'Planned', 'Actual', 'Time Delay', 'Lead Status',
        'Next Followup Date', 'What Did Customer Say',
    ),
    min_width=15,  # through "actual"
)

FOLLOW_UP_SCHEMA = SheetSchema(
    name='follow_ups',
    columns=('timestamp', 'lead_no', 'lead_status', 'next_followup_date', 'what_did_customer_say'),
    labels=('Timestamp', 'Lead No', 'Lead Status', 'Next Followup Date', 'What Did Customer Say'),
    min_width=3,
)

ENQUIRY_SCHEMA = SheetSchema(
    name='enquiries',
    columns=(
        'timestamp', 'direct_no_or_lead_no', 'received_type', 'person_name',
        'total_patient', 'patient_name', 'patient_phone_number', 'patient_address',
    ),
    labels=(
        'Timestamp', 'Direct No / Lead No', 'Received Type', 'Person Name',
        'Total Patient', 'Patient Name', 'Patient Phone Number', 'Patient Address',
    ),
    min_width=2,
)


# ==========================================================================
# Cell helpers
# ==========================================================================

def _cell(row: Sequence, index: int) -> str:
    """Raw cell text, '' for missing, None or whitespace-only cells."""
    if index >= len(row):
        return ''
    value = row[index]
    if value is None:
        return ''
    text = str(value)
    return text if text.strip() else ''


def _display(row: Sequence, index: int) -> str:
    return _cell(row, index) or MISSING


def _int_cell(row: Sequence, index: int) -> int:
    text = _cell(row, index).strip()
    # nan raises ValueError, inf and 1e400 raise OverflowError
    try:
        number = int(float(text))
    except (ValueError, OverflowError):
        return 0
    return max(number, 0)


class _RecordMixin:
    """Dict conversion shared by the sheet records."""

    def to_dict(self) -> dict:
        data = asdict(self)
        data.pop('timestamp_parsed', None)
        for key, value in data.items():
            if isinstance(value, Enum):
                data[key] = value.value
        return data

    @classmethod
    def _init_kwargs(cls, data: dict) -> dict:
        names = {f.name for f in fields(cls) if f.init and f.name != 'timestamp_parsed'}
        return {k: v for k, v in data.items() if k in names}

    @property
    def timestamp_fallback(self) -> bool:
        """True when the timestamp cell could not be parsed."""
        return self.timestamp_parsed.fallback

    @property
    def timestamp_at(self) -> datetime:
        return self.timestamp_parsed.value


# ==========================================================================
# Records
# ==========================================================================

@dataclass
class Lead(_RecordMixin):
    """A prospective customer, one row of the leads sheet."""
    lead_no: str = ''
    timestamp: str = ''
    lead_received_name: str = ''
    lead_source: str = ''
    company_name: str = ''
    phone_number: str = ''
    person_name: str = ''
    location: str = ''
    email_address: str = ''
    state: str = ''
    address: str = ''
    nob: str = ''  # Nature of business
    remarks: str = ''
    planned: str = ''
    actual: str = ''
    time_delay: str = ''
    lead_status: LeadStatus = LeadStatus.FOLLOW_UP
    next_followup_date: str = ''
    what_did_customer_say: str = ''
    id: str = field(default_factory=_new_id)
    timestamp_parsed: Optional[ParsedDate] = field(default=None, compare=False, repr=False)

    def __post_init__(self):
        self.lead_status = LeadStatus.coerce(self.lead_status, LeadStatus.FOLLOW_UP)
        if self.timestamp_parsed is None:
            self.timestamp_parsed = parse_sheet_datetime(self.timestamp)

    @classmethod
    def from_row(cls, row: Sequence, status_default: LeadStatus, now: Optional[datetime] = None) -> 'Lead':
        """
        Map a leads-sheet row to a Lead.

        Non-blank cells are kept as they are (``lead_no`` included; callers
        strip it when matching). Blank display cells become MISSING, blank
        date cells stay '', and a blank or unknown status becomes
        ``status_default``. Never raises.
        """
        row = list(row or [])
        col = LEAD_SCHEMA.index
        timestamp = _cell(row, col('timestamp'))
        return cls(
            lead_no=_cell(row, col('lead_no')),
            timestamp=timestamp,
            lead_received_name=_display(row, col('lead_received_name')),
            lead_source=_display(row, col('lead_source')),
            company_name=_display(row, col('company_name')),
            phone_number=_display(row, col('phone_number')),
            person_name=_display(row, col('person_name')),
            location=_display(row, col('location')),
            email_address=_display(row, col('email_address')),
            state=_display(row, col('state')),
            address=_display(row, col('address')),
            nob=_display(row, col('nob')),
            remarks=_display(row, col('remarks')),
            planned=_cell(row, col('planned')),
            actual=_cell(row, col('actual')),
            time_delay=_display(row, col('time_delay')),
            lead_status=LeadStatus.coerce(_cell(row, col('lead_status')), status_default),
            next_followup_date=_cell(row, col('next_followup_date')),
            what_did_customer_say=_display(row, col('what_did_customer_say')),
            timestamp_parsed=parse_sheet_datetime(timestamp, now=now),
        )

    def to_row(self) -> list:
        values = self.to_dict()
        return [values[name] for name in LEAD_SCHEMA.columns]

    @classmethod
    def from_dict(cls, data: dict) -> 'Lead':
        return cls(**cls._init_kwargs(data))

    def with_follow_up(self, follow_up: 'FollowUp') -> 'Lead':
        """Copy of this lead with the follow-up's status fields laid over it."""
        return replace(
            self,
            lead_status=follow_up.lead_status,
            next_followup_date=follow_up.next_followup_date,
            what_did_customer_say=follow_up.what_did_customer_say,
        )


@dataclass
class FollowUp(_RecordMixin):
    """One recorded interaction with a lead."""
    lead_no: str = ''
    timestamp: str = ''
    lead_status: LeadStatus = LeadStatus.FOLLOW_UP
    next_followup_date: str = ''
    what_did_customer_say: str = ''
    id: str = field(default_factory=_new_id)
    timestamp_parsed: Optional[ParsedDate] = field(default=None, compare=False, repr=False)

    def __post_init__(self):
        self.lead_status = LeadStatus.coerce(self.lead_status, LeadStatus.FOLLOW_UP)
        if self.timestamp_parsed is None:
            self.timestamp_parsed = parse_sheet_datetime(self.timestamp)

    @classmethod
    def from_row(cls, row: Sequence, status_default: LeadStatus, now: Optional[datetime] = None) -> 'FollowUp':
        """Map a follow-up sheet row. Never raises."""
        row = list(row or [])
        col = FOLLOW_UP_SCHEMA.index
        timestamp = _cell(row, col('timestamp'))
        return cls(
            lead_no=_cell(row, col('lead_no')),
            timestamp=timestamp,
            lead_status=LeadStatus.coerce(_cell(row, col('lead_status')), status_default),
            next_followup_date=_cell(row, col('next_followup_date')),
            what_did_customer_say=_display(row, col('what_did_customer_say')),
            timestamp_parsed=parse_sheet_datetime(timestamp, now=now),
        )

    def to_row(self) -> list:
        values = self.to_dict()
        return [values[name] for name in FOLLOW_UP_SCHEMA.columns]

    @classmethod
    def from_dict(cls, data: dict) -> 'FollowUp':
        return cls(**cls._init_kwargs(data))


@dataclass
class Enquiry(_RecordMixin):
    """Patient/customer enquiry, directly received or tied to a lead."""
    direct_no_or_lead_no: str = ''
    timestamp: str = ''
    received_type: ReceivedType = ReceivedType.DIRECT
    person_name: str = ''
    total_patient: int = 0
    patient_name: str = ''  # comma-joined when several
    patient_phone_number: str = ''
    patient_address: str = ''
    id: str = field(default_factory=_new_id)
    timestamp_parsed: Optional[ParsedDate] = field(default=None, compare=False, repr=False)

    def __post_init__(self):
        self.received_type = ReceivedType.coerce(self.received_type)
        if self.timestamp_parsed is None:
            self.timestamp_parsed = parse_sheet_datetime(self.timestamp)

    @classmethod
    def from_row(cls, row: Sequence, now: Optional[datetime] = None) -> 'Enquiry':
        """Map an enquiry sheet row. Never raises."""
        row = list(row or [])
        col = ENQUIRY_SCHEMA.index
        timestamp = _cell(row, col('timestamp'))
        return cls(
            direct_no_or_lead_no=_cell(row, col('direct_no_or_lead_no')),
            timestamp=timestamp,
            received_type=ReceivedType.coerce(_cell(row, col('received_type'))),
            person_name=_display(row, col('person_name')),
            total_patient=_int_cell(row, col('total_patient')),
            patient_name=_display(row, col('patient_name')),
            patient_phone_number=_display(row, col('patient_phone_number')),
            patient_address=_display(row, col('patient_address')),
            timestamp_parsed=parse_sheet_datetime(timestamp, now=now),
        )

    def to_row(self) -> list:
        values = self.to_dict()
        values['total_patient'] = str(self.total_patient)
        return [values[name] for name in ENQUIRY_SCHEMA.columns]

    @classmethod
    def from_dict(cls, data: dict) -> 'Enquiry':
        return cls(**cls._init_kwargs(data))

    @property
    def patient_names(self) -> list[str]:
        return [name.strip() for name in self.patient_name.split(',') if name.strip()]


@dataclass
class User:
    """Logged-in session principal."""
    id: str
    username: str
    email: str

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> 'User':
        return cls(
            id=str(data.get('id', '')),
            username=data.get('username', ''),
            email=data.get('email', ''),
        )
