"""Constants and defaults.

Note: Keep constants here to avoid magic numbers spread across code.
"""

APP_VERSION = "1.0.0"

DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100
DEFAULT_ACTIVITY_LIMIT = 50

PROJECT_CODE_PREFIX = "PRJ"
DEFAULT_TASK_KEY_PREFIX = "TSK"
DEFAULT_RISK_KEY_PREFIX = "RSK"
DEFAULT_CR_KEY_PREFIX = "CR"

DEFAULT_RISK_PROBABILITY = 3
DEFAULT_RISK_IMPACT = 3
RISK_SCALE_MIN = 1
RISK_SCALE_MAX = 5

MAX_HOURS_PER_ENTRY = 24
DEFAULT_REJECTION_REASON = "Rejected"

DEFAULT_ROLE_NAME = "Viewer"
