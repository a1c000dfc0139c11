"""Business rule thresholds."""

import re

EMAIL_RE = re.compile(r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$")

MIN_LOCATION_LENGTH = 3
MIN_MEETING_DURATION_MINUTES = 15
MAX_MEETING_DURATION_HOURS = 8
LONG_MEETING_HOURS = 2

MAX_ATTENDEES = 100
MANY_ATTENDEES_WARNING = 10
MIN_ATTENDEES_FOR_ONLINE = 1

BUSINESS_HOURS_START = 8
BUSINESS_HOURS_END = 18

AGENDA_MIN_LENGTH = 50
AGENDA_MAX_LENGTH = 5000
AGENDA_LONG_WARNING = 2000

DEFAULT_MEETING_MINUTES = 60
