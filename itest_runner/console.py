import logging
from typing import Dict, List

from itest_runner.config import effective_settings as config
from itest_runner.appointments import AppointmentAPIError, AppointmentClient, ask_confirmation, build_appointment
from itest_runner.supervisor import CancellationToken, Orchestrator, RunConfig, signal_cancellation

log = logging.getLogger(__name__)

ADD_OPTIONS = {
    "--id": "appointment_id",
    "--date": "date_str",
    "--time": "time_str",
    "--location": "location",
    "--city": "city",
    "--examType": "exam_type",
    "--status": "status",
    "--price": "price",
    "--registrationUrl": "registration_url",
}


def _api_client() -> AppointmentClient:
    base_url = f"http://{config.TEST_SERVER_HOST}:{config.TEST_SERVER_PORT}"
    return AppointmentClient(base_url, config.APPOINTMENTS_PATH, config.API_REQUEST_TIMEOUT)


def handle_run_command(args: List[str]) -> int:
    """Runs one orchestration episode with SIGINT/SIGTERM bound to its cancellation token."""
    token = CancellationToken()
    with signal_cancellation(token):
        outcome = Orchestrator(RunConfig.from_settings(), cancel=token).run()
    return outcome.exit_code


def handle_config_command(args: List[str]) -> int:
    """Prints the effective configuration."""
    print("\n--- Current Test Runner Configuration ---")
    print(f"(Overrides file: {config.OVERRIDES_JSON_PATH})")
    for key, value in sorted(config.as_dict().items()):
        marker = "*" if key in config.MODIFIABLE_SETTINGS else " "
        print(f" {marker} {key} = {value}")
    print("(* = can be set in the overrides file)\n")
    return 0


def handle_list_command(args: List[str]) -> int:
    """Lists the appointments stored by the running server."""
    try:
        appointments = _api_client().list_appointments()
    except AppointmentAPIError as e:
        log.error(f"Could not list appointments: {e}")
        return 1

    if not appointments:
        print("No appointments found.")
        return 0
    print(f"Found {len(appointments)} appointment{'' if len(appointments) == 1 else 's'}:")
    for index, apt in enumerate(appointments, start=1):
        print(f"  {index}. {apt.get('id')} - {apt.get('date')} {apt.get('time')} ({apt.get('examType')}, {apt.get('city')})")
    return 0


def _parse_options(args: List[str]) -> Dict[str, str]:
    """Parses '--key value' pairs for the add command."""
    parsed: Dict[str, str] = {}
    i = 0
    while i < len(args):
        flag = args[i]
        if flag not in ADD_OPTIONS:
            raise ValueError(f"Unknown argument {flag}")
        if i + 1 >= len(args) or args[i + 1].startswith("--"):
            raise ValueError(f"Missing value for argument {flag}")
        parsed[ADD_OPTIONS[flag]] = args[i + 1]
        i += 2
    return parsed


def handle_add_command(args: List[str]) -> int:
    """Adds one appointment through the server's API."""
    try:
        options = _parse_options(args)
        if "price" in options:
            options["price"] = int(options["price"])
        appointment = build_appointment(**options)
    except (TypeError, ValueError) as e:
        print(f"Error: {e}")
        print("Usage: add --id <id> [--date YYYY-MM-DD] [--time HH:MM] [--location ...] [--city ...]")
        print("           [--examType IELTS|CDIELTS] [--status available|full|pending] [--price N] [--registrationUrl URL]")
        return 1

    try:
        created = _api_client().create_appointment(appointment)
    except AppointmentAPIError as e:
        log.error(f"Error adding appointment: {e}")
        return 1
    print(f"Appointment added: {created.get('id')} on {created.get('date')} {created.get('time')}")
    return 0


def handle_clear_command(args: List[str]) -> int:
    """Removes every appointment, asking for confirmation unless --force is given."""
    unknown = [a for a in args if a != "--force"]
    if unknown:
        print(f"Error: Unknown argument {unknown[0]}")
        return 1

    client = _api_client()
    try:
        count = len(client.list_appointments())
        if count == 0:
            print("No appointments found. Nothing to clear.")
            return 0
        if "--force" not in args:
            question = f"Are you sure you want to delete ALL {count} appointment{'' if count == 1 else 's'}? This cannot be undone. (y/N): "
            if not ask_confirmation(question):
                print("Operation cancelled by user.")
                return 0
        client.clear_appointments()
    except AppointmentAPIError as e:
        log.error(f"Error clearing appointments: {e}")
        return 1
    print(f"Cleared {count} appointment{'' if count == 1 else 's'}.")
    return 0


def print_help(args: List[str]) -> int:
    """Prints the main help text."""
    print("\nUsage: itest-runner [command] [args] [--verbose]\n")
    print("Available commands:")
    print("  run                    - Start the test server, run the integration tests, stop the server (default).")
    print("  config                 - Show the effective configuration.")
    print("  list                   - List appointments on the running test server.")
    print("  add --id ID [...]      - Add an appointment to the running test server.")
    print("  clear [--force]        - Remove all appointments from the running test server.")
    print("  help                   - Show this help message.")
    print()
    return 0


COMMANDS = {
    "run": handle_run_command,
    "config": handle_config_command,
    "list": handle_list_command,
    "add": handle_add_command,
    "clear": handle_clear_command,
    "help": print_help,
}


def execute_command(command: str, args: List[str]) -> int:
    """
    Executes a single command.

    :param command: The command name (e.g., 'run', 'clear').
    :param args: The arguments following the command.
    :return int: The process exit code.
    """
    log.debug(f"Executing command: {command}, args: {args}")
    handler = COMMANDS.get(command)
    if handler is None:
        print(f"Unknown command: '{command}'. Type 'help' for a list of commands.")
        return 1
    return handler(args)
