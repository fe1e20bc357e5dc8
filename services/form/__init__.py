from .lifecycle import FormService
from .ingestion import RequestMeta, ResponseService, resolve_answers
from .user_agent import AgentProfile, classify_user_agent
from .validation import normalize_field_definitions, normalize_submission

__all__ = [
    "FormService",
    "RequestMeta",
    "ResponseService",
    "resolve_answers",
    "AgentProfile",
    "classify_user_agent",
    "normalize_field_definitions",
    "normalize_submission",
]
