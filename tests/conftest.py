"""
pytest configuration and fixtures for Lead to Order tests.
"""
import sys
from datetime import datetime
from pathlib import Path

import httpx
import pytest

# Add project root to Python path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from modules.lead_to_order.sheet_client import SheetClient  # noqa: E402
from modules.lead_to_order.store import LocalEchoStore  # noqa: E402

SCRIPT_URL = "https://script.example.com/macros/s/abc/exec"


def lead_row(
    lead_no="LN-001",
    timestamp="10/01/2025 09:00:00",
    company="Acme Clinic",
    planned="10/01/2025",
    actual="",
    status="",
    next_date="",
    said="",
):
    """A full-width leads sheet row."""
    return [
        timestamp, lead_no, "Ravi", "Website", company, "9876543210",
        "Asha Rao", "Pune", "asha@example.com", "Maharashtra", "12 MG Road",
        "Healthcare", "Met at expo", planned, actual, "", status, next_date, said,
    ]


def follow_up_row(lead_no="LN-001", timestamp="11/01/2025 10:00:00", status="follow-up", next_date="", said="Call back"):
    return [timestamp, lead_no, status, next_date, said]


def enquiry_row(ref="DIR0042", timestamp="11/01/2025 10:00:00", received_type="direct", total="2", names="Anil, Meera"):
    return [timestamp, ref, received_type, "Suresh", total, names, "9123456789", "5 Lake View"]


@pytest.fixture
def project_root():
    """Return the project root path."""
    return PROJECT_ROOT


@pytest.fixture
def test_db_path(tmp_path):
    """Create a temporary database path for testing."""
    return tmp_path / "test_lead_to_order.db"


@pytest.fixture
def store(test_db_path):
    """Local echo store on a temporary database."""
    return LocalEchoStore(test_db_path)


@pytest.fixture
def fixed_now():
    return datetime(2025, 1, 11, 12, 0, 0)


@pytest.fixture
def mock_client(mocker):
    """SheetClient double with empty sheets."""
    client = mocker.Mock(spec=SheetClient)
    client.get_leads.return_value = []
    client.get_follow_ups.return_value = []
    client.get_enquiries.return_value = []
    client.get_last_lead_no.return_value = ""
    client.insert.return_value = {"success": True}
    client.insert_follow_up.return_value = {"success": True}
    return client


@pytest.fixture
def make_client():
    """Build a real SheetClient answering through an httpx MockTransport."""
    def _make(handler):
        return SheetClient(base_url=SCRIPT_URL, timeout=5, transport=httpx.MockTransport(handler))
    return _make
