"""
Lead to Order CLI entry point.

Usage:
    python -m modules.lead_to_order test            Test sheet connection
    python -m modules.lead_to_order login           Log in against the login sheet
    python -m modules.lead_to_order logout          Forget the session user
    python -m modules.lead_to_order whoami          Show the session user
    python -m modules.lead_to_order dashboard       Summary cards and recent leads
    python -m modules.lead_to_order leads           Lead list
    python -m modules.lead_to_order call-tracker    Active leads and interactions
    python -m modules.lead_to_order calendar        Events for a day
    python -m modules.lead_to_order enquiries       Enquiry list
    python -m modules.lead_to_order received        Received patients
    python -m modules.lead_to_order add-lead        Record a new lead
    python -m modules.lead_to_order add-follow-up   Record an interaction
    python -m modules.lead_to_order add-enquiry     Record an enquiry
    python -m modules.lead_to_order clear-data      Wipe local data
    python -m modules.lead_to_order watch           Refresh the call tracker on an interval
"""

import argparse
import getpass
import sys
from dataclasses import dataclass
from datetime import date

from .auth import AuthGate
from .calendar_view import build_events, event_days, events_on
from .config import config
from .dashboard import (
    get_call_tracker_rows,
    get_dashboard_stats,
    get_received_patients,
    get_recent_leads,
    search_enquiries,
)
from .exceptions import NotAuthenticated, SheetError
from .log_setup import get_logger, setup_logging
from .models import ReceivedType
from .reconcile import overlay_latest, unique_leads
from .service import LeadToOrderService, SubmitStatus, new_direct_reference
from .sheet_client import SheetClient
from .store import LocalEchoStore

logger = get_logger(__name__)

RULE = "=" * 60


@dataclass
class App:
    client: SheetClient
    store: LocalEchoStore
    auth: AuthGate
    service: LeadToOrderService


def build_app() -> App:
    client = SheetClient()
    store = LocalEchoStore(config.DB_PATH)
    return App(
        client=client,
        store=store,
        auth=AuthGate(client, store),
        service=LeadToOrderService(client, store),
    )


def _header(title: str):
    print(RULE)
    print(title)
    print(RULE)


def _print_notices(notices):
    for notice in notices:
        if notice:
            print(f"  ! {notice}")


def _print_result(result) -> int:
    if result.notice:
        print(f"  {result.notice}")
    for name, message in sorted(result.errors.items()):
        print(f"    - {name}: {message}")
    if result.status == SubmitStatus.SYNCED:
        print(f"  ✓ {getattr(result.record, 'lead_no', '') or getattr(result.record, 'direct_no_or_lead_no', '')}")
    return 0 if result.saved else 1


# ==========================================================================
# Commands
# ==========================================================================

def cmd_test(app: App, args) -> int:
    """Test the sheet connection."""
    _header("Lead to Order Connection Test")

    errors = config.validate()
    if errors:
        print("\n[CONFIG ERRORS]")
        for err in errors:
            print(f"  - {err}")
        return 1

    print(f"\nEnvironment: {config.LTO_ENV}")
    print(f"Database: {config.DB_PATH}")

    print("\n[Sheet Connection]")
    try:
        leads = app.client.get_leads(config.LEADS_SHEET)
        print(f"  ✓ {config.LEADS_SHEET}: {len(leads)} rows")
        follow_ups = app.client.get_follow_ups()
        print(f"  ✓ {config.FOLLOW_UP_SHEET}: {len(follow_ups)} rows")
        enquiries = app.client.get_enquiries(config.ENQUIRY_SHEET)
        print(f"  ✓ {config.ENQUIRY_SHEET}: {len(enquiries)} rows")
        print(f"  ✓ Last lead no: {app.client.get_last_lead_no() or '(none)'}")
    except SheetError as e:
        print(f"  ✗ Sheet connection failed: {e}")
        return 1

    print("\n[Local Store]")
    user = app.store.user.get()
    print(f"  ✓ Session: {user.username if user else 'not logged in'}")
    print(f"  ✓ Local leads: {len(app.store.leads.get_all())}")

    print("\n" + RULE)
    print("All checks passed!")
    print(RULE)
    return 0


def cmd_login(app: App, args) -> int:
    username = args.username or input("Username: ")
    password = args.password or getpass.getpass("Password: ")
    result = app.auth.login(username, password)
    if not result.success:
        print(f"✗ {result.error}")
        return 1
    print(f"✓ Logged in as {result.user.username}")
    return 0


def cmd_logout(app: App, args) -> int:
    app.auth.logout()
    print("Logged out")
    return 0


def cmd_whoami(app: App, args) -> int:
    user = app.auth.require_user()
    print(f"{user.username} <{user.email}>")
    return 0


def cmd_dashboard(app: App, args) -> int:
    _header("Dashboard")
    leads_result = app.service.load_leads()
    follow_result = app.service.load_follow_ups()
    enquiry_result = app.service.load_enquiries()
    _print_notices([leads_result.notice, follow_result.notice, enquiry_result.notice])

    leads = overlay_latest(leads_result.records, follow_result.records)
    stats = get_dashboard_stats(leads, enquiry_result.records)

    print(f"\n  Total Leads:        {stats['total_leads']}")
    print(f"  Follow-up Leads:    {stats['follow_up_leads']}")
    print(f"  Received Patients:  {stats['received_patients']}")
    print(f"  Total Enquiries:    {stats['total_enquiries']}")
    print(f"  Pending Follow-ups: {stats['pending_follow_ups']}")

    print("\n[Recent Leads]")
    for lead in get_recent_leads(leads):
        print(f"  {lead.lead_no:8} | {lead.company_name:30} | {lead.lead_status.value}")
    return 0


def cmd_leads(app: App, args) -> int:
    _header("Lead Details")
    result = app.service.load_leads()
    _print_notices([result.notice])

    query = (args.search or '').lower()
    shown = 0
    for lead in unique_leads(result.records):
        text = ' '.join(str(v) for v in lead.to_dict().values()).lower()
        if query and query not in text:
            continue
        shown += 1
        print(f"  {lead.lead_no:8} | {lead.company_name:30} | {lead.person_name:20} | {lead.phone_number}")
    print(f"\n  {shown} lead(s)")
    return 0


def cmd_call_tracker(app: App, args) -> int:
    _header("Call Tracker")
    state = app.service.refresh_call_tracker()
    _print_notices(state.notices)

    counters = state.reconciliation.counters
    print(f"\n  Total Interactions: {counters.total_interactions}")
    print(f"  Pending Follow-ups: {counters.pending_follow_ups}")
    print(f"  Today's Activity:   {counters.todays_activity}")

    print("\n[Active Leads]")
    for merged in state.reconciliation.leads:
        lead = merged.lead
        next_date = lead.next_followup_date or '-'
        print(f"  {lead.lead_no:8} | {lead.company_name:30} | {lead.lead_status.value:10} | next: {next_date}")

    print("\n[Interactions]")
    rows = get_call_tracker_rows(state.follow_ups, state.leads, query=args.search or '', lead_no=args.lead or 'all')
    if not rows:
        print("  No follow-up history found.")
    for row in rows:
        print(f"  {row['date']} {row['time']:>8} | {row['lead_no']:8} | {row['lead_name']:24} | {row['status']:10} | {row['notes']}")
    return 0


def cmd_calendar(app: App, args) -> int:
    try:
        day = date.fromisoformat(args.date) if args.date else date.today()
    except ValueError:
        print(f"✗ Invalid --date {args.date!r}, expected YYYY-MM-DD")
        return 1
    _header(f"Calendar - {day.isoformat()}")

    leads_result = app.service.load_leads()
    follow_result = app.service.load_follow_ups()
    _print_notices([leads_result.notice, follow_result.notice])

    leads = overlay_latest(leads_result.records, follow_result.records)
    events = build_events(leads, follow_result.records)

    todays = events_on(events, day)
    if not todays:
        print("  No events scheduled for this day")
    for event in todays:
        label = 'Scheduled' if event.scheduled else 'Completed'
        print(f"  [{event.kind:13}] {event.title} ({label})")

    upcoming = sorted(d for d in event_days(events) if d > day)[:5]
    if upcoming:
        print("\n[Upcoming]")
        for d in upcoming:
            print(f"  {d.isoformat()}: {len(events_on(events, d))} event(s)")
    return 0


def cmd_enquiries(app: App, args) -> int:
    _header("Enquiries")
    result = app.service.load_enquiries()
    _print_notices([result.notice])
    for enquiry in search_enquiries(result.records, args.search or ''):
        print(
            f"  {enquiry.direct_no_or_lead_no:8} | {enquiry.received_type.value:6} | "
            f"{enquiry.person_name:20} | {enquiry.total_patient} patient(s): {enquiry.patient_name}"
        )
    return 0


def cmd_received(app: App, args) -> int:
    _header("Received Patients")
    leads_result = app.service.load_leads()
    follow_result = app.service.load_follow_ups()
    enquiry_result = app.service.load_enquiries()
    _print_notices([leads_result.notice, follow_result.notice, enquiry_result.notice])

    leads = overlay_latest(leads_result.records, follow_result.records)
    view = get_received_patients(enquiry_result.records, leads, query=args.search or '')
    print(f"\n  Total patients: {view['total_patients']}")
    for enquiry in view['enquiries']:
        print(f"  {enquiry.direct_no_or_lead_no:8} | {enquiry.patient_name:30} | {enquiry.patient_phone_number}")
    return 0


def cmd_add_lead(app: App, args) -> int:
    form = {
        'lead_received_name': args.received_by,
        'lead_source': args.source,
        'company_name': args.company,
        'phone_number': args.phone,
        'person_name': args.person,
        'location': args.location,
        'email_address': args.email,
        'state': args.state,
        'address': args.address,
        'nob': args.nob,
        'remarks': args.remarks,
    }
    return _print_result(app.service.add_lead(form))


def cmd_add_follow_up(app: App, args) -> int:
    form = {
        'lead_no': args.lead_no,
        'lead_status': args.status,
        'next_followup_date': args.next_date,
        'what_did_customer_say': args.notes,
    }
    return _print_result(app.service.add_follow_up(form))


def cmd_add_enquiry(app: App, args) -> int:
    received_type = ReceivedType.LEAD.value if args.lead_no else ReceivedType.DIRECT.value
    form = {
        'direct_no_or_lead_no': args.lead_no or new_direct_reference(),
        'received_type': received_type,
        'person_name': args.person,
        'total_patient': args.total,
        'patient_name': ', '.join(args.patient),
        'patient_phone_number': args.phone,
        'patient_address': args.address,
    }
    return _print_result(app.service.add_enquiry(form))


def cmd_clear_data(app: App, args) -> int:
    if not args.yes:
        answer = input("This deletes ALL local leads, enquiries and history. Continue? [y/N] ")
        if answer.strip().lower() != 'y':
            print("Aborted")
            return 1
    app.store.clear_all()
    print("Local data cleared")
    return 0


def cmd_watch(app: App, args) -> int:
    from .poller import Poller

    interval = args.interval or config.REFRESH_INTERVAL
    _header("Starting Call Tracker Refresh")
    print(f"Refresh interval: {interval}s")
    print("\nPress Ctrl+C to stop\n")

    Poller(app.service, interval=interval).start()
    return 0


# Commands that work without a session user
PUBLIC_COMMANDS = {'test', 'login'}

COMMANDS = {
    'test': cmd_test,
    'login': cmd_login,
    'logout': cmd_logout,
    'whoami': cmd_whoami,
    'dashboard': cmd_dashboard,
    'leads': cmd_leads,
    'call-tracker': cmd_call_tracker,
    'calendar': cmd_calendar,
    'enquiries': cmd_enquiries,
    'received': cmd_received,
    'add-lead': cmd_add_lead,
    'add-follow-up': cmd_add_follow_up,
    'add-enquiry': cmd_add_enquiry,
    'clear-data': cmd_clear_data,
    'watch': cmd_watch,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description='Lead to Order - lead and follow-up tracking')
    sub = parser.add_subparsers(dest='command', required=True)

    sub.add_parser('test', help='Test sheet connection')

    login = sub.add_parser('login', help='Log in')
    login.add_argument('--username')
    login.add_argument('--password')

    sub.add_parser('logout', help='Log out')
    sub.add_parser('whoami', help='Show the session user')
    sub.add_parser('dashboard', help='Summary cards')

    leads = sub.add_parser('leads', help='Lead list')
    leads.add_argument('--search')

    tracker = sub.add_parser('call-tracker', help='Active leads and interactions')
    tracker.add_argument('--search')
    tracker.add_argument('--lead', help='Only interactions for this lead no')

    cal = sub.add_parser('calendar', help='Events for a day')
    cal.add_argument('--date', help='YYYY-MM-DD (default today)')

    enquiries = sub.add_parser('enquiries', help='Enquiry list')
    enquiries.add_argument('--search')

    received = sub.add_parser('received', help='Received patients')
    received.add_argument('--search')

    add_lead = sub.add_parser('add-lead', help='Record a new lead')
    add_lead.add_argument('--received-by', required=True)
    add_lead.add_argument('--source', required=True)
    add_lead.add_argument('--company', required=True)
    add_lead.add_argument('--phone', required=True)
    add_lead.add_argument('--person', required=True)
    add_lead.add_argument('--location', required=True)
    add_lead.add_argument('--email', required=True)
    add_lead.add_argument('--state', required=True)
    add_lead.add_argument('--address', required=True)
    add_lead.add_argument('--nob', required=True, help='Nature of business')
    add_lead.add_argument('--remarks', default='')

    add_fu = sub.add_parser('add-follow-up', help='Record an interaction')
    add_fu.add_argument('--lead-no', required=True)
    add_fu.add_argument('--status', default='follow-up', choices=['follow-up', 'received', 'cancelled'])
    add_fu.add_argument('--next-date', default='')
    add_fu.add_argument('--notes', required=True, help='What did the customer say')

    add_enq = sub.add_parser('add-enquiry', help='Record an enquiry')
    add_enq.add_argument('--lead-no', help='Lead no (omit for a direct enquiry)')
    add_enq.add_argument('--person', required=True)
    add_enq.add_argument('--total', type=int, default=1)
    add_enq.add_argument('--patient', action='append', required=True, help='Repeat for each patient')
    add_enq.add_argument('--phone', required=True)
    add_enq.add_argument('--address', required=True)

    clear = sub.add_parser('clear-data', help='Wipe local data')
    clear.add_argument('--yes', action='store_true')

    watch = sub.add_parser('watch', help='Refresh the call tracker on an interval')
    watch.add_argument('--interval', type=int)

    return parser


def main(argv=None, app: App = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(config.LOG_LEVEL, config.LOG_FILE or None)

    app = app or build_app()

    if args.command not in PUBLIC_COMMANDS:
        try:
            app.auth.require_user()
        except NotAuthenticated:
            logger.info(f"Refused {args.command}: no session user")
            print("Not logged in. Run 'python -m modules.lead_to_order login' first.")
            return 1

    logger.debug(f"Running {args.command}")
    return COMMANDS[args.command](app, args)


if __name__ == '__main__':
    sys.exit(main())
