import pytest

from modules.lead_to_order.validation import (
    is_valid_email,
    is_valid_phone,
    validate_enquiry,
    validate_follow_up,
    validate_lead,
)

LEAD_FORM = {
    'lead_received_name': 'Ravi',
    'lead_source': 'Website',
    'company_name': 'Acme Clinic',
    'phone_number': '+91 98765-43210',
    'person_name': 'Asha Rao',
    'location': 'Pune',
    'email_address': 'asha@example.com',
    'state': 'Maharashtra',
    'address': '12 MG Road',
    'nob': 'Healthcare',
}


def test_valid_lead():
    assert validate_lead(LEAD_FORM) == {}


def test_lead_missing_everything():
    errors = validate_lead({})
    assert errors['company_name'] == 'Company Name is required'
    assert errors['phone_number'] == 'Valid phone number required'
    assert errors['email_address'] == 'Invalid email'
    assert 'remarks' not in errors


@pytest.mark.parametrize("phone,ok", [("9876543210", True), ("98765 43210", True), ("12345", False), ("", False)])
def test_phone(phone, ok):
    assert is_valid_phone(phone) is ok


@pytest.mark.parametrize("email,ok", [("a@b.co", True), ("no-at.example.com", False), ("a@b", False)])
def test_email(email, ok):
    assert is_valid_email(email) is ok


def test_follow_up():
    form = {'lead_no': 'LN-001', 'lead_status': 'Cancelled', 'what_did_customer_say': 'No budget'}
    assert validate_follow_up(form) == {}

    errors = validate_follow_up({**form, 'lead_status': 'lost', 'next_followup_date': 'someday'})
    assert set(errors) == {'lead_status', 'next_followup_date'}


def test_enquiry():
    form = {
        'direct_no_or_lead_no': 'DIR0001',
        'received_type': 'direct',
        'person_name': 'Suresh',
        'total_patient': 1,
        'patient_name': 'Anil',
        'patient_phone_number': '9123456789',
        'patient_address': '5 Lake View',
    }
    assert validate_enquiry(form) == {}

    errors = validate_enquiry({**form, 'total_patient': '0', 'received_type': 'walk-in'})
    assert set(errors) == {'total_patient', 'received_type'}
