from app.services.intent_service import Intent, classify_intent
from app.services.keyword_service import match_keyword_rule
from app.services.menu_service import resolve_persistent_menu
from app.services.recap_service import format_recap
from app.services.result import Result
from app.services.state_machine import (
    ConversationState,
    InvalidTransitionError,
    StepOutcome,
    advance_conversation,
    can_transition,
    enter_flow,
    reset,
    transition,
)
from app.services.suggestion_service import rank_quick_replies
