"""
Lead to Order - lead tracking on a shared spreadsheet

Leads, follow-ups and enquiries live in a Google Sheet; this package maps
the rows, reconciles leads with their latest follow-up and keeps a local
echo of everything entered here.
"""

__version__ = "0.1.0"

# Dashboard integration exports
from .dashboard import (
    get_call_tracker_rows,
    get_dashboard_stats,
    get_received_patients,
    get_recent_leads,
)
from .reconcile import reconcile
