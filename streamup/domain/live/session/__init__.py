from .session_controller import SessionController
from .session_domain import SessionService
from .session_models import SessionCreateParams, SessionMetrics
from .session_state_machine import SessionStateMachine

__all__ = [
    "SessionController",
    "SessionCreateParams",
    "SessionMetrics",
    "SessionService",
    "SessionStateMachine",
]
