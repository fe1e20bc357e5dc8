"""
Application Constants

Centralizes the enumerations and limits shared by validation, ingestion
and analytics. Avoids hardcoded values scattered throughout the codebase.

Usage:
    from config.constants import FIELD_TYPES, TOP_VALUES_LIMIT
"""

# =============================================================================
# Form Definition
# =============================================================================

FIELD_TYPES = (
    "text", "email", "number", "textarea", "select", "radio", "checkbox",
    "date", "file", "phone", "url", "rating", "toggle",
)

# Field types whose options list is meaningful
CHOICE_FIELD_TYPES = ("select", "radio", "checkbox")

# Field types whose answers are numeric
NUMERIC_FIELD_TYPES = ("number", "rating")

FORM_THEMES = ("default", "dark", "light", "blue", "green", "purple")

DEFAULT_THEME = "default"


# =============================================================================
# Response Metadata
# =============================================================================

DEVICE_TYPES = ("desktop", "mobile", "tablet")

UNKNOWN_AGENT_VALUE = "Unknown"


# =============================================================================
# Analytics Limits
# =============================================================================

# Top values reported per field
TOP_VALUES_LIMIT = 10

# Window for daily trend charts
TREND_WINDOW_DAYS = 30

# Dashboard overview
RECENT_FORMS_LIMIT = 5
TOP_FORMS_LIMIT = 5
RECENT_RESPONSES_LIMIT = 10

# Management overview
RECENT_ACTIVITY_LIMIT = 15
CREATION_TREND_MONTHS = 6

# Profile overview
PROFILE_RECENT_SUBMISSIONS = 5
PROFILE_ACTIVITY_DAYS = 30

# Response listing
ALL_RESPONSES_LIMIT = 100
DEFAULT_PAGE_SIZE = 20
