"""Flow execution runtime."""

from convoflow.runtime.session import (
    Message,
    MessageRole,
    Session,
    SessionStatus,
    Transcript,
)
from convoflow.runtime.dispatcher import (
    ActionDispatcher,
    DispatchContext,
    DispatchResult,
    SimulatedActionDispatcher,
)
from convoflow.runtime.interpreter import FlowInterpreter
from convoflow.runtime.manager import SessionManager

__all__ = [
    "Message",
    "MessageRole",
    "Session",
    "SessionStatus",
    "Transcript",
    "ActionDispatcher",
    "DispatchContext",
    "DispatchResult",
    "SimulatedActionDispatcher",
    "FlowInterpreter",
    "SessionManager",
]
