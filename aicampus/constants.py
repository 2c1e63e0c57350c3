"""
AICAMPUS Backend - Frozen Enum Constants.
Import these everywhere instead of using raw strings.
"""

INTEREST_TAGS = [
    "technology",
    "business",
    "arts",
    "social",
    "academic",
    "sports",
    "leadership",
    "environment",
]

# Used when free-text interests match no keyword at all
DEFAULT_INTEREST_TAGS = ["technology", "academic"]

CHAT_MODES = ["uns", "campus", "general", "aicampus"]

TASK_ANALYSIS_TYPES = ["prioritize", "estimate"]

TASK_PRIORITIES = ["low", "medium", "high"]

GROUP_VIEW_STATES = ["unselected", "loading", "active"]

WS_TYPES_IN = [
    "select_group",
    "send_message",
    "leave_group",
]

MAX_HISTORY = 10
GROUP_MESSAGE_LIMIT = 50
FALLBACK_RECOMMENDATION_LIMIT = 5
MAX_RECOMMENDATIONS = 7
