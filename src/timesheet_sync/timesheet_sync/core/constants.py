"""Constants and defaults.

Note: Keep constants here to avoid magic numbers spread across code.
"""

DEFAULT_HISTORY_LIMIT = 50
DEFAULT_ISSUE_LIMIT = 100
DEFAULT_PAGE_SIZE = 500

SYSTEM_ACTOR = "system"
SYSTEM_RECORD_ID = "job"

DAY_KEY_FORMAT = "%Y-%m-%d"
CLOCK_FORMAT = "%H:%M"

SYNTHESIZED_PRESENCE_NOTE = "Auto-generated from timesheet data"
