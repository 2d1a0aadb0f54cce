"""
Application service tests against a mocked sheet client and a real local store.
"""
import re
from datetime import datetime

import pytest

from conftest import enquiry_row, follow_up_row, lead_row
from modules.lead_to_order.config import config
from modules.lead_to_order.exceptions import SheetConnectionError, SheetTimeoutError
from modules.lead_to_order.models import LEAD_SCHEMA, Lead, LeadStatus
from modules.lead_to_order.service import (
    LeadToOrderService,
    NoticeLevel,
    SubmitStatus,
    format_next_lead_no,
    new_direct_reference,
)

NOW = datetime(2025, 1, 11, 12, 0, 0).astimezone()

LEAD_FORM = {
    'lead_received_name': 'Ravi',
    'lead_source': 'Website',
    'company_name': 'Acme Clinic',
    'phone_number': '98765 43210',
    'person_name': 'Asha Rao',
    'location': 'Pune',
    'email_address': 'asha@example.com',
    'state': 'Maharashtra',
    'address': '12 MG Road',
    'nob': 'Healthcare',
    'remarks': '',
}


@pytest.fixture
def service(mock_client, store):
    return LeadToOrderService(mock_client, store, clock=lambda: NOW)


class TestLoading:

    def test_load_leads(self, service, mock_client):
        mock_client.get_leads.return_value = [lead_row(), lead_row(lead_no="LN-002")]

        result = service.load_leads()

        assert result.ok
        assert result.notice is None
        assert [lead.lead_no for lead in service.leads] == ["LN-001", "LN-002"]
        mock_client.get_leads.assert_called_once_with(config.LEADS_SHEET)

    def test_failure_keeps_previous_state(self, service, mock_client):
        mock_client.get_leads.return_value = [lead_row()]
        service.load_leads()

        mock_client.get_leads.side_effect = SheetTimeoutError("timed out")
        result = service.load_leads()

        assert not result.ok
        assert result.notice.level == NoticeLevel.ERROR
        assert [lead.lead_no for lead in service.leads] == ["LN-001"]
        assert service.loading == set()

    def test_failure_falls_back_to_local_store(self, service, mock_client, store):
        store.leads.add(Lead.from_row(lead_row(lead_no="LN-007"), LeadStatus.FOLLOW_UP))
        mock_client.get_leads.side_effect = SheetConnectionError("refused")

        result = service.load_leads()

        assert not result.ok
        assert [lead.lead_no for lead in result.records] == ["LN-007"]

    def test_layout_change_reported(self, service, mock_client):
        mock_client.get_leads.return_value = [lead_row()[:8]]

        result = service.load_leads()

        assert not result.ok
        assert "layout" in result.notice.message
        assert service.leads == []

    def test_load_enquiries(self, service, mock_client):
        mock_client.get_enquiries.return_value = [enquiry_row()]

        result = service.load_enquiries()

        assert result.records[0].total_patient == 2
        mock_client.get_enquiries.assert_called_once_with(config.ENQUIRY_SHEET)

    def test_unreadable_patient_count_does_not_fail_load(self, service, mock_client):
        mock_client.get_enquiries.return_value = [enquiry_row(total="inf"), enquiry_row(total="1e400")]

        result = service.load_enquiries()

        assert result.ok
        assert [e.total_patient for e in result.records] == [0, 0]

    def test_refresh_call_tracker(self, service, mock_client):
        mock_client.get_leads.return_value = [lead_row(lead_no="LN-001"), lead_row(lead_no="")]
        mock_client.get_follow_ups.return_value = [
            follow_up_row(timestamp="10/01/2025 09:00:00", said="older"),
            follow_up_row(timestamp="11/01/2025 09:00:00", status="received", said="newer"),
        ]

        state = service.refresh_call_tracker()

        assert state.reconciliation.leads[0].lead_status == LeadStatus.RECEIVED
        assert state.reconciliation.counters.todays_activity == 1
        assert [fu.what_did_customer_say for fu in state.follow_ups] == ["newer", "older"]
        assert any(n.title == "Skipped rows" for n in state.notices)


class TestLeadNumbers:

    @pytest.mark.parametrize("last,expected", [
        ("", "LN-001"),
        ("LN-015", "LN-016"),
        ("LN-999", "LN-1000"),
        ("garbage", "LN-001"),
        ("LN-abc", "LN-001"),
    ])
    def test_format_next_lead_no(self, last, expected):
        assert format_next_lead_no(last) == expected

    def test_next_from_sheet(self, service, mock_client):
        mock_client.get_last_lead_no.return_value = "LN-041"
        assert service.next_lead_no() == "LN-042"

    def test_next_when_sheet_unreachable(self, service, mock_client, store):
        store.leads.add(Lead.from_row(lead_row(lead_no="LN-009"), LeadStatus.FOLLOW_UP))
        store.leads.add(Lead.from_row(lead_row(lead_no="LN-012"), LeadStatus.FOLLOW_UP))
        mock_client.get_last_lead_no.side_effect = SheetConnectionError("refused")

        assert service.next_lead_no() == "LN-013"

    def test_direct_reference(self):
        assert re.match(r"^DIR\d{4}$", new_direct_reference())


class TestAddLead:

    def test_invalid_form(self, service, mock_client, store):
        result = service.add_lead({**LEAD_FORM, 'phone_number': '123', 'company_name': ''})

        assert result.status == SubmitStatus.INVALID
        assert set(result.errors) == {'phone_number', 'company_name'}
        assert not result.saved
        mock_client.insert.assert_not_called()
        assert store.leads.get_all() == []

    def test_synced(self, service, mock_client, store):
        mock_client.get_last_lead_no.return_value = "LN-015"

        result = service.add_lead(LEAD_FORM)

        assert result.status == SubmitStatus.SYNCED
        assert result.record.lead_no == "LN-016"
        assert store.leads.get_all()[-1].lead_no == "LN-016"

        sheet_name, row = mock_client.insert.call_args[0]
        assert sheet_name == config.LEADS_SHEET
        assert len(row) == LEAD_SCHEMA.width
        assert row[LEAD_SCHEMA.index('lead_no')] == "LN-016"
        assert row[LEAD_SCHEMA.index('timestamp')] == "11/01/2025 12:00:00"
        assert row[LEAD_SCHEMA.index('lead_status')] == ""
        assert row[LEAD_SCHEMA.index('planned')] == ""

    def test_sheet_down_saves_locally(self, service, mock_client, store):
        mock_client.insert.side_effect = SheetConnectionError("refused")

        result = service.add_lead(LEAD_FORM)

        assert result.status == SubmitStatus.LOCAL_ONLY
        assert result.saved
        assert result.notice.level == NoticeLevel.WARNING
        assert len(store.leads.get_all()) == 1

    def test_sheet_rejection_saves_locally(self, service, mock_client):
        mock_client.insert.return_value = {"success": False, "error": "locked"}
        assert service.add_lead(LEAD_FORM).status == SubmitStatus.LOCAL_ONLY


class TestAddFollowUp:

    FORM = {
        'lead_no': 'LN-001',
        'lead_status': 'received',
        'next_followup_date': '',
        'what_did_customer_say': 'Booked for Monday',
    }

    def test_updates_local_lead_and_writes_back(self, service, mock_client, store):
        lead = Lead.from_row(lead_row(lead_no="LN-001"), LeadStatus.FOLLOW_UP)
        store.leads.add(lead)

        result = service.add_follow_up(self.FORM)

        assert result.status == SubmitStatus.SYNCED
        assert store.follow_ups.get_all()[-1].what_did_customer_say == 'Booked for Monday'
        assert store.leads.get_by_id(lead.id).lead_status == LeadStatus.RECEIVED
        mock_client.insert_follow_up.assert_called_once_with(
            lead_no='LN-001',
            lead_status='received',
            next_followup_date='',
            what_did_customer_say='Booked for Monday',
            sheet_name=config.FOLLOW_UP_SHEET,
        )
        mock_client.get_follow_ups.assert_called_once()

    def test_padded_lead_no_in_store_is_updated(self, service, store):
        lead = Lead.from_row(lead_row(lead_no=" LN-001 "), LeadStatus.FOLLOW_UP)
        store.leads.add(lead)

        service.add_follow_up(self.FORM)

        assert store.leads.get_by_id(lead.id).lead_status == LeadStatus.RECEIVED

    def test_busy_guard(self, service, mock_client, store):
        service._saving_follow_up = True

        result = service.add_follow_up(self.FORM)

        assert result.status == SubmitStatus.BUSY
        mock_client.insert_follow_up.assert_not_called()
        assert store.follow_ups.get_all() == []

    def test_guard_released_after_failure(self, service, mock_client):
        mock_client.insert_follow_up.side_effect = SheetTimeoutError("timed out")

        assert service.add_follow_up(self.FORM).status == SubmitStatus.LOCAL_ONLY
        assert service._saving_follow_up is False
        assert service.add_follow_up(self.FORM).status == SubmitStatus.LOCAL_ONLY

    def test_invalid_status(self, service):
        result = service.add_follow_up({**self.FORM, 'lead_status': 'won'})
        assert result.status == SubmitStatus.INVALID
        assert 'lead_status' in result.errors


class TestEnquiries:

    FORM = {
        'direct_no_or_lead_no': 'DIR1234',
        'received_type': 'direct',
        'person_name': 'Suresh',
        'total_patient': '2',
        'patient_name': 'Anil, Meera',
        'patient_phone_number': '9123456789',
        'patient_address': '5 Lake View',
    }

    def test_add_enquiry(self, service, mock_client, store):
        result = service.add_enquiry(self.FORM)

        assert result.status == SubmitStatus.SYNCED
        assert store.enquiries.get_all()[0].patient_names == ['Anil', 'Meera']
        sheet_name, row = mock_client.insert.call_args[0]
        assert sheet_name == config.ENQUIRY_SHEET
        assert row[1:5] == ['DIR1234', 'direct', 'Suresh', '2']

    def test_update_and_delete_local(self, service, store):
        enquiry = service.add_enquiry(self.FORM).record

        assert service.update_enquiry(enquiry.id, person_name='Suresh K').level == NoticeLevel.SUCCESS
        assert store.enquiries.get_by_id(enquiry.id).person_name == 'Suresh K'
        assert service.update_enquiry('missing', person_name='x').level == NoticeLevel.INFO

        assert service.delete_enquiry(enquiry.id).level == NoticeLevel.SUCCESS
        assert store.enquiries.get_all() == []
        assert service.delete_enquiry(enquiry.id).level == NoticeLevel.INFO
