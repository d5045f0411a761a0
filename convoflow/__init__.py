"""
Conversational Flow Execution Engine
====================================

Runs declarative conversation flows (greetings, branching questions,
API calls, keypad menus, hand-offs) and records a transcript.

- Flow graph model, builder, loader and validator (``convoflow.flow``)
- Action dispatcher, interpreter and session log (``convoflow.runtime``)
- Command-line test panel (``convoflow.cli``)
"""

__version__ = "1.0.0"

from convoflow.exceptions import (
    FlowEngineError,
    MalformedFlowError,
    DanglingReferenceError,
)
from convoflow.flow import (
    Flow,
    FlowEdge,
    FlowNode,
    NodeType,
    Condition,
    FlowBuilder,
    evaluate,
    load_flow,
    flow_from_dict,
)
from convoflow.runtime import (
    FlowInterpreter,
    SessionManager,
    SessionStatus,
    Message,
    MessageRole,
    ActionDispatcher,
    SimulatedActionDispatcher,
)

__all__ = [
    "__version__",
    "FlowEngineError",
    "MalformedFlowError",
    "DanglingReferenceError",
    "Flow",
    "FlowEdge",
    "FlowNode",
    "NodeType",
    "Condition",
    "FlowBuilder",
    "evaluate",
    "load_flow",
    "flow_from_dict",
    "FlowInterpreter",
    "SessionManager",
    "SessionStatus",
    "Message",
    "MessageRole",
    "ActionDispatcher",
    "SimulatedActionDispatcher",
]
