"""Constants and defaults.

Note: Keep constants here to avoid magic numbers spread across code.
"""

DEFAULT_SYNC_INTERVAL_SECONDS = 30
DEFAULT_API_TIMEOUT_SECONDS = 10
AUDIT_TRAIL_LIMIT = 1000
MAX_ATTENDANCE_AGE_DAYS = 365

VALID_YEARS = ("1", "2", "3", "4", "5", "6", "7")
DEFAULT_SECTION = "A"
COMMON_DIVISION = "common"
GENERAL_PERIOD = "general"

# Local store keys / prefixes
ATTENDANCE_PREFIX = "attendance_"
NAMAZ_PREFIX = "namaz_"
AUDIT_PREFIX = "audit_"
ARCHIVE_PREFIX = "archive_section_"
BACKUP_MARKER = "_backup_"
LEAVES_KEY = "leaves"
SYNC_QUEUE_KEY = "syncQueue"
SESSION_ID_KEY = "sessionId"
STUDENT_DATA_LAST_SYNC_KEY = "studentDataLastSync"

# Written by the remote leave endpoint on behalf of the marking teacher.
LEAVE_CREATED_BY = "teacher"
