"""
Form validation for new leads, follow-ups and enquiries.

Each validator returns a ``{field: message}`` mapping; an empty mapping
means the form can be submitted.
"""

import re
from typing import Mapping

from .dates import parse_sheet_datetime
from .models import LeadStatus, ReceivedType

EMAIL_RE = re.compile(r'^[^@\s]+@[^@\s]+\.[^@\s]+$')
MIN_PHONE_DIGITS = 10

LEAD_REQUIRED = {
    'lead_received_name': 'Receiver Name is required',
    'lead_source': 'Source is required',
    'company_name': 'Company Name is required',
    'person_name': 'Contact Person is required',
    'location': 'Location is required',
    'state': 'State is required',
    'address': 'Address is required',
    'nob': 'Nature of Business is required',
}

ENQUIRY_REQUIRED = {
    'direct_no_or_lead_no': 'Direct No / Lead No is required',
    'person_name': 'Person Name is required',
    'patient_name': 'Patient Name is required',
    'patient_address': 'Patient Address is required',
}


def _text(form: Mapping, name: str) -> str:
    value = form.get(name)
    return str(value).strip() if value is not None else ''


def _require(form: Mapping, required: Mapping[str, str]) -> dict[str, str]:
    return {name: message for name, message in required.items() if not _text(form, name)}


def is_valid_phone(value: str) -> bool:
    return len(re.sub(r'\D', '', value or '')) >= MIN_PHONE_DIGITS


def is_valid_email(value: str) -> bool:
    return bool(EMAIL_RE.match(value or ''))


def validate_lead(form: Mapping) -> dict[str, str]:
    errors = _require(form, LEAD_REQUIRED)

    if not is_valid_phone(_text(form, 'phone_number')):
        errors['phone_number'] = 'Valid phone number required'

    if not is_valid_email(_text(form, 'email_address')):
        errors['email_address'] = 'Invalid email'

    return errors


def validate_follow_up(form: Mapping) -> dict[str, str]:
    errors = {}

    if not _text(form, 'lead_no'):
        errors['lead_no'] = 'Lead is required'

    try:
        LeadStatus(_text(form, 'lead_status').lower())
    except ValueError:
        errors['lead_status'] = 'Status must be follow-up, received or cancelled'

    next_date = _text(form, 'next_followup_date')
    if next_date and parse_sheet_datetime(next_date).fallback:
        errors['next_followup_date'] = 'Next follow-up date is not a valid date'

    if not _text(form, 'what_did_customer_say'):
        errors['what_did_customer_say'] = 'Customer feedback is required'

    return errors


def validate_enquiry(form: Mapping) -> dict[str, str]:
    errors = _require(form, ENQUIRY_REQUIRED)

    try:
        ReceivedType(_text(form, 'received_type').lower())
    except ValueError:
        errors['received_type'] = 'Received type must be direct or lead'

    try:
        total = int(_text(form, 'total_patient'))
    except ValueError:
        total = 0
    if total < 1:
        errors['total_patient'] = 'Total patients must be at least 1'

    if not is_valid_phone(_text(form, 'patient_phone_number')):
        errors['patient_phone_number'] = 'Valid phone number is required'

    return errors
