"""
Command-line interface for BP Tracker.

Usage:
    bp patient add            - Register a patient
    bp patient list           - List all patients
    bp patient show <who>     - Show a patient's profile
    bp patient catalogue      - List the medications and conditions to pick from
    bp patient link <who>     - Set a patient's medications and conditions

    bp measure add <who>      - Record a blood pressure measurement
    bp measure list <who>     - Show measurement history (newest first)

    bp classify <sys> <dia>   - Check a reading against the crisis thresholds
    bp thresholds             - Show the configured crisis thresholds

    bp share link <who>       - Create a 2-day read-only link to the history
    bp share check <token>    - Open a share link from the terminal

    bp notify add <who>       - Add a reminder
    bp notify list <who>      - List reminders
    bp notify delete <who> <id>

    bp web start              - Start the web API

<who> is a patient ID or email address.

The CLI uses Click, a Python library for building command-line tools.
"""

import click
from tabulate import tabulate

from . import __version__
from . import config
from .blood_pressure import classify, to_number
from .database import init_database
from .errors import BPTrackerError, ConfigurationError
from .models import (
    add_patient,
    find_patient,
    get_all_patients,
    update_patient,
    get_medications,
    get_relevant_conditions,
    get_patient_medications,
    get_patient_relevant_conditions,
    add_measurement,
    list_measurements,
)
from .notifications import (
    NOTIFICATION_TYPES,
    REPEAT_INTERVALS,
    add_notification,
    get_notifications,
    delete_notification,
    format_notification,
)
from .sharing import ShareTokenService


STATUS_LABELS = {
    'high': 'HYPERTENSIVE CRISIS',
    'low': 'HYPOTENSIVE CRISIS',
    'normal': 'Normal',
}


def _resolve_patient(identifier: str) -> dict:
    """Look up a patient by ID or email, or stop with an error."""
    patient = find_patient(identifier)
    if patient is None:
        raise click.ClickException(
            f"Patient '{identifier}' not found. Use 'bp patient list' to see all patients.")
    return patient


def _share_service() -> ShareTokenService:
    try:
        return ShareTokenService.from_config()
    except ConfigurationError:
        missing = ", ".join(config.get_missing_share_config())
        raise click.ClickException(
            f"Share links are not configured. Set these environment variables: {missing}")


def _echo_crisis_warning(status: str):
    if status == 'high':
        click.secho("\n  !! HYPERTENSIVE CRISIS - seek medical attention now !!", fg='red', bold=True)
    elif status == 'low':
        click.secho("\n  !! HYPOTENSIVE CRISIS - seek medical attention now !!", fg='blue', bold=True)


# ============================================================
# MAIN CLI GROUP
# ============================================================

@click.group()
@click.version_option(version=__version__, prog_name="BP Tracker")
def cli():
    """
    BP Tracker - Blood Pressure Tracking Tool

    Record readings, get crisis alerts, and share your history.
    """
    config.configure_logging("WARNING")
    # Silent if tables already exist
    init_database()


# ============================================================
# PATIENT COMMANDS
# ============================================================

@cli.group()
def patient():
    """Register and look up patients."""
    pass


@patient.command("add")
@click.option("--name", "-n", prompt="Name", help="Patient's name")
@click.option("--email", "-e", prompt="Email", help="Patient's email (must be unique)")
@click.option("--birthdate", "-b", default=None, help="Birthdate (YYYY-MM-DD)")
@click.option("--gender", "-g", default=None, help="Gender")
@click.option("--height", type=float, default=None, help="Height in cm")
@click.option("--weight", type=float, default=None, help="Weight in kg")
def patient_add(name, email, birthdate, gender, height, weight):
    """Register a new patient."""
    try:
        patient_id = add_patient(name, email, birthdate, gender, height, weight)
    except BPTrackerError as e:
        raise click.ClickException(e.message)

    click.echo(f"\nRegistered: {name}")
    click.echo(f"  Email: {email.strip().lower()}")
    click.echo(f"  ID: {patient_id}")
    click.echo("\nUse 'bp measure add' to record a reading.")


@patient.command("list")
def patient_list():
    """List all patients."""
    patients = get_all_patients()

    if not patients:
        click.echo("No patients found. Use 'bp patient add' to add one.")
        return

    table_data = [[p['id'], p['name'], p['email']] for p in patients]

    click.echo("\nPatients:")
    click.echo(tabulate(table_data, headers=["ID", "Name", "Email"], tablefmt="simple"))
    click.echo()


@patient.command("show")
@click.argument("who")
def patient_show(who):
    """Show a patient's profile."""
    p = _resolve_patient(who)

    click.echo(f"\n  {p['name']} <{p['email']}>")
    click.echo(f"  ├─ ID: {p['id']}")
    click.echo(f"  ├─ Birthdate: {p['birthdate'] or '-'}")
    click.echo(f"  ├─ Gender: {p['gender'] or '-'}")
    click.echo(f"  ├─ Height: {p['height'] or '-'}")
    click.echo(f"  ├─ Weight: {p['weight'] or '-'}")

    medications = ", ".join(m['name'] for m in get_patient_medications(p['id']))
    conditions = ", ".join(c['name'] for c in get_patient_relevant_conditions(p['id']))
    click.echo(f"  ├─ Medications: {medications or '-'}")
    click.echo(f"  └─ Relevant conditions: {conditions or '-'}")
    click.echo()


@patient.command("catalogue")
def patient_catalogue():
    """List the medications and relevant conditions patients can pick."""
    click.echo("\nMedications:")
    click.echo(tabulate([[m['id'], m['name']] for m in get_medications()],
                        headers=["ID", "Name"], tablefmt="simple"))

    click.echo("\nRelevant conditions:")
    click.echo(tabulate([[c['id'], c['name']] for c in get_relevant_conditions()],
                        headers=["ID", "Name"], tablefmt="simple"))
    click.echo()


@patient.command("link")
@click.argument("who")
@click.option("--medication", "-m", "medications", type=int, multiple=True,
              help="Medication ID (repeat for several)")
@click.option("--condition", "-c", "conditions", type=int, multiple=True,
              help="Relevant condition ID (repeat for several)")
@click.option("--clear", is_flag=True, help="Remove all medications and conditions first")
def patient_link(who, medications, conditions, clear):
    """
    Set a patient's medications and relevant conditions.

    Each list given replaces the current one. See 'bp patient catalogue' for IDs.

    Example:
        bp patient link ana@example.com -m 4 -m 1 -c 2
    """
    p = _resolve_patient(who)
    if not (medications or conditions or clear):
        raise click.UsageError("Give at least one --medication, --condition or --clear")

    try:
        update_patient(
            p['id'],
            medications=list(medications) if medications or clear else None,
            relevant_conditions=list(conditions) if conditions or clear else None,
        )
    except BPTrackerError as e:
        raise click.ClickException(e.message)

    click.echo(f"Updated {p['name']}.")


# ============================================================
# MEASUREMENT COMMANDS
# ============================================================

@cli.group()
def measure():
    """Record and review blood pressure measurements."""
    pass


@measure.command("add")
@click.argument("who")
@click.option("--systolic", "-s", prompt="Systolic (mmHg)", help="Systolic pressure")
@click.option("--diastolic", "-d", prompt="Diastolic (mmHg)", help="Diastolic pressure")
@click.option("--heart-rate", "-r", prompt="Heart rate (bpm)", help="Heart rate")
@click.option("--tag", "-t", "tags", multiple=True,
              help="Tag for this reading (repeat for several). See 'bp measure tags'.")
def measure_add(who, systolic, diastolic, heart_rate, tags):
    """
    Record a blood pressure measurement.

    Examples:
        bp measure add ana@example.com -s 128 -d 82 -r 70 -t Resting
        bp measure add ana@example.com -s 185 -d 100 -r 90 -t Morning -t Stressed
    """
    p = _resolve_patient(who)

    if not tags:
        allowed = config.get_allowed_tags()
        click.echo("\nTags: " + ", ".join(allowed))
        tags = [click.prompt("Tag", type=click.Choice(allowed))]

    try:
        measurement_id = add_measurement(p['id'], systolic, diastolic, heart_rate, list(tags))
    except BPTrackerError as e:
        raise click.ClickException(e.message)

    assessment = classify(to_number(systolic), to_number(diastolic),
                          config.get_crisis_thresholds())

    click.echo(f"\n✓ Logged: {systolic}/{diastolic} mmHg, {heart_rate} bpm")
    click.echo(f"  Tags: {', '.join(tags)}")
    click.echo(f"  Status: {STATUS_LABELS[assessment.status]}")
    click.echo(f"  ID: {measurement_id}")
    _echo_crisis_warning(assessment.status)
    click.echo()


@measure.command("tags")
def measure_tags():
    """List the tags a measurement can carry."""
    click.echo("\nAvailable tags:")
    for tag in config.get_allowed_tags():
        click.echo(f"  - {tag}")
    click.echo()


@measure.command("list")
@click.argument("who")
@click.option("--limit", "-l", default=20, type=int, help="How many readings to show (default: 20)")
def measure_list(who, limit):
    """Show measurement history, newest first."""
    p = _resolve_patient(who)
    measurements = list_measurements(p['id'], limit=limit)

    if not measurements:
        click.echo(f"No measurements for {p['name']}. Use 'bp measure add' to record one.")
        return

    thresholds = config.get_crisis_thresholds()
    table_data = []
    for m in measurements:
        status = classify(m['systolic_pressure'], m['diastolic_pressure'], thresholds).status
        table_data.append([
            m['created_at'].strftime("%Y-%m-%d %H:%M"),
            f"{m['systolic_pressure']}/{m['diastolic_pressure']}",
            m['heart_rate'],
            ", ".join(m['tags']) or "-",
            STATUS_LABELS[status],
        ])

    headers = ["Date", "BP (mmHg)", "HR (bpm)", "Tags", "Status"]
    click.echo(f"\nMeasurements for {p['name']}:")
    click.echo(tabulate(table_data, headers=headers, tablefmt="simple"))
    click.echo()


# ============================================================
# CLASSIFICATION COMMANDS
# ============================================================

@cli.command("classify")
@click.argument("systolic")
@click.argument("diastolic")
def classify_reading(systolic, diastolic):
    """
    Check a reading against the crisis thresholds.

    Example:
        bp classify 182 95
    """
    sys_value = to_number(systolic)
    dia_value = to_number(diastolic)
    if sys_value is None or dia_value is None:
        # The checks treat unreadable input as "no crisis"; say so
        click.echo("Warning: reading is not numeric, it cannot be classified.")

    assessment = classify(sys_value, dia_value, config.get_crisis_thresholds())
    click.echo(f"{systolic}/{diastolic} mmHg: {STATUS_LABELS[assessment.status]}")
    _echo_crisis_warning(assessment.status)


@cli.command("thresholds")
def show_thresholds():
    """Show the configured crisis thresholds."""
    t = config.get_crisis_thresholds()
    table_data = [
        ["Hypertensive crisis", f"systolic >= {t.systolic_high}", f"diastolic >= {t.diastolic_high}"],
        ["Hypotensive crisis", f"systolic <= {t.systolic_low}", f"diastolic <= {t.diastolic_low}"],
    ]
    click.echo("\nCrisis thresholds (either value is enough):")
    click.echo(tabulate(table_data, headers=["", "Systolic", "Diastolic"], tablefmt="simple"))
    click.echo()


# ============================================================
# SHARE COMMANDS
# ============================================================

@cli.group()
def share():
    """Share a read-only view of a patient's history."""
    pass


@share.command("link")
@click.argument("who")
def share_link(who):
    """Create a link that is valid for 2 days."""
    service = _share_service()
    p = _resolve_patient(who)

    try:
        result = service.issue_share_link(p['id'])
    except BPTrackerError as e:
        raise click.ClickException(e.message)

    click.echo(f"\nShare link for {p['name']} (valid {config.SHARE_LINK_DAYS} days):")
    click.echo(f"  {result['share_url']}\n")


@share.command("check")
@click.argument("token")
def share_check(token):
    """Open a share link (paste the token or the whole URL)."""
    service = _share_service()
    token = token.rstrip('/').rsplit('/', 1)[-1]

    try:
        shared = service.verify_and_fetch(token)
    except BPTrackerError as e:
        raise click.ClickException(e.message)

    user = shared['user']
    info = shared['token_info']
    click.echo(f"\nShared history of {user['name']} <{user['email']}>")
    click.echo(f"  Valid until: {info['expires_at'].strftime('%Y-%m-%d %H:%M %Z')}")

    if not shared['measurements']:
        click.echo("\nNo measurements recorded.\n")
        return

    table_data = [
        [m['date'], f"{m['systolic_pressure']}/{m['diastolic_pressure']}",
         m['heart_rate'], m['tags'] or "-"]
        for m in shared['measurements']
    ]
    click.echo()
    click.echo(tabulate(table_data, headers=["Date", "BP (mmHg)", "HR (bpm)", "Tags"],
                        tablefmt="simple"))
    click.echo()


# ============================================================
# NOTIFICATION COMMANDS
# ============================================================

@cli.group()
def notify():
    """Manage reminders."""
    pass


@notify.command("add")
@click.argument("who")
@click.option("--title", prompt="Title", help="Reminder title")
@click.option("--type", "kind", prompt="Type", type=click.Choice(list(NOTIFICATION_TYPES)),
              help="What the reminder is for")
@click.option("--start", prompt="Start (YYYY-MM-DD HH:MM)", help="First occurrence")
@click.option("--repeat", default="0", type=click.Choice([str(h) for h in REPEAT_INTERVALS]),
              help="Hours between repeats (0 = once)")
@click.option("--notes", default="", help="Additional notes")
def notify_add(who, title, kind, start, repeat, notes):
    """Add a reminder for a patient."""
    p = _resolve_patient(who)

    try:
        notification_id = add_notification(p['id'], title, kind, start, int(repeat), notes)
    except BPTrackerError as e:
        raise click.ClickException(e.message)

    click.echo(f"\n✓ Reminder added: {title} (ID {notification_id})\n")


@notify.command("list")
@click.argument("who")
def notify_list(who):
    """List a patient's reminders."""
    p = _resolve_patient(who)
    notifications = get_notifications(p['id'])

    if not notifications:
        click.echo("No reminders. Use 'bp notify add' to add one.")
        return

    click.echo(f"\nReminders for {p['name']}:")
    for n in notifications:
        click.echo(f"  [{n['id']}] {format_notification(n)}")
    click.echo()


@notify.command("delete")
@click.argument("who")
@click.argument("notification_id", type=int)
def notify_delete(who, notification_id):
    """Delete a reminder."""
    p = _resolve_patient(who)
    if not delete_notification(p['id'], notification_id):
        raise click.ClickException(f"Reminder {notification_id} not found.")
    click.echo(f"✓ Reminder {notification_id} deleted.")


# ============================================================
# WEB COMMANDS
# ============================================================

@cli.group()
def web():
    """Manage the web API."""
    pass


@web.command("start")
@click.option("--host", "-h", default="0.0.0.0", help="Host to bind to (default: 0.0.0.0)")
@click.option("--port", "-p", default=5000, type=int, help="Port to run on (default: 5000)")
@click.option("--debug", "-d", is_flag=True, help="Run in debug mode")
def web_start(host, port, debug):
    """
    Start the web API.

    Examples:
        bp web start              # Start on default port 5000
        bp web start -p 8080      # Start on port 8080
    """
    if not config.is_share_configured():
        missing = ", ".join(config.get_missing_share_config())
        raise click.ClickException(f"Cannot start: set {missing} first.")

    from web.app import run_server
    run_server(host=host, port=port, debug=debug)


# ============================================================
# ENTRY POINT
# ============================================================

def main():
    """Entry point for the CLI."""
    cli()


if __name__ == "__main__":
    main()
