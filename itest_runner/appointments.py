"""
Thin client for the simulated server's appointment API, plus the yes/no
confirmation prompt used by destructive commands.

The server owns the data; this module only calls its HTTP endpoints.
"""
import re
import logging
import requests
from datetime import date, timedelta
from typing import Any, Callable, Dict, List, Optional

log = logging.getLogger(__name__)

AFFIRMATIVE_ANSWERS = {"y", "yes"}
EXAM_TYPES = ("IELTS", "CDIELTS")
STATUSES = ("available", "full", "pending")
DEFAULT_PRICES = {"IELTS": 5200000, "CDIELTS": 4500000}
EXAM_DURATION_HOURS = 3

_RANGE_RE = re.compile(r"^\d{2}:\d{2}-\d{2}:\d{2}$")
_TIME_RE = re.compile(r"^(\d{1,2}):(\d{2})\s*(AM|PM)?$", re.IGNORECASE)


class AppointmentAPIError(Exception):
    """The appointment API could not be reached or rejected the request."""


def format_time_slot(value: str) -> str:
    """
    Normalizes a time to an 'HH:MM-HH:MM' slot.

    Accepts 'HH:MM-HH:MM' as is, and turns 'HH:MM' or 'HH:MM AM/PM' into a
    slot of EXAM_DURATION_HOURS starting at that time.

    :raises ValueError: If the value is not a recognized time.
    """
    value = value.strip()
    if _RANGE_RE.match(value):
        return value

    match = _TIME_RE.match(value)
    if not match:
        raise ValueError(f"Invalid time format: {value}. Use HH:MM, HH:MM AM/PM, or HH:MM-HH:MM format.")

    hours, minutes, period = int(match.group(1)), match.group(2), match.group(3)
    if period:
        period = period.upper()
        if period == "PM" and hours != 12:
            hours += 12
        elif period == "AM" and hours == 12:
            hours = 0
    if hours > 23:
        raise ValueError(f"Invalid hour: {hours}. Hours must be 0-23.")

    end_hours = (hours + EXAM_DURATION_HOURS) % 24
    return f"{hours:02d}:{minutes}-{end_hours:02d}:{minutes}"


def build_appointment(
    appointment_id: str,
    date_str: Optional[str] = None,
    time_str: Optional[str] = None,
    location: Optional[str] = None,
    city: str = "Isfahan",
    exam_type: str = "CDIELTS",
    status: str = "available",
    price: Optional[int] = None,
    registration_url: Optional[str] = None,
    today: Optional[date] = None,
) -> Dict[str, Any]:
    """
    Builds an appointment record, filling defaults the same way for every caller.

    The date defaults to one week from today, the slot to 09:00-12:00, the
    location to the city's test center, and the price to the exam type's
    standard fee. Available appointments get a registration URL.

    :raises ValueError: For an empty id, an unknown exam type or status, or a bad time.
    """
    if not appointment_id:
        raise ValueError("Appointment ID is required.")
    if exam_type not in EXAM_TYPES:
        raise ValueError(f"Invalid exam type '{exam_type}'. Expected one of {', '.join(EXAM_TYPES)}.")
    if status not in STATUSES:
        raise ValueError(f"Invalid status '{status}'. Expected one of {', '.join(STATUSES)}.")

    today = today or date.today()
    if location is None:
        location = "Isfahan Test Center - Room A" if city == "Isfahan" else f"{city} Test Center - Main Hall"

    appointment = {
        "id": appointment_id,
        "date": date_str or (today + timedelta(days=7)).isoformat(),
        "time": format_time_slot(time_str) if time_str else "09:00-12:00",
        "location": location,
        "city": city,
        "examType": exam_type,
        "status": status,
        "price": int(price) if price is not None else DEFAULT_PRICES[exam_type],
    }
    if registration_url:
        appointment["registrationUrl"] = registration_url
    elif status == "available":
        appointment["registrationUrl"] = f"https://example.com/register/{appointment_id}"
    return appointment


class AppointmentClient:
    """Calls the appointment endpoints of the simulated server."""

    def __init__(self, base_url: str, path: str = "/api/appointments", timeout: float = 5) -> None:
        self.url = f"{base_url.rstrip('/')}{path}"
        self.timeout = timeout

    def _request(self, method: str, **kwargs) -> requests.Response:
        try:
            response = requests.request(method, self.url, timeout=self.timeout, **kwargs)
            response.raise_for_status()
            return response
        except requests.RequestException as e:
            detail = ""
            if getattr(e, "response", None) is not None:
                try:
                    detail = f" ({e.response.json().get('error', e.response.text)})"
                except ValueError:
                    detail = f" ({e.response.text})"
            raise AppointmentAPIError(f"{method} {self.url} failed: {e}{detail}") from e

    def list_appointments(self) -> List[Dict[str, Any]]:
        return self._request("GET").json()

    def create_appointment(self, appointment: Dict[str, Any]) -> Dict[str, Any]:
        created = self._request("POST", json=appointment).json()
        log.info(f"Appointment '{created.get('id')}' added.")
        return created

    def clear_appointments(self) -> None:
        self._request("DELETE")
        log.info("All appointments cleared.")


def ask_confirmation(message: str, input_func: Callable[[str], str] = input) -> bool:
    """
    Asks a yes/no question. Only 'y' or 'yes' (any case) count as yes.

    End of input counts as no.
    """
    try:
        answer = input_func(message)
    except EOFError:
        return False
    return answer.strip().lower() in AFFIRMATIVE_ANSWERS
