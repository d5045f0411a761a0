"""Shared pytest fixtures for testing."""

import logging

import pytest
import structlog

from convoflow.config import ExecutionConfig, PacingConfig
from convoflow.flow.builder import FlowTemplates
from convoflow.flow.graph import Flow
from convoflow.runtime.dispatcher import SimulatedActionDispatcher
from convoflow.runtime.interpreter import FlowInterpreter


# =============================================================================
# Configuration Fixtures
# =============================================================================


@pytest.fixture(autouse=True)
def reset_logging():
    """Undo logging setup done by CLI invocations."""
    yield
    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        if type(handler) is logging.StreamHandler:
            root_logger.removeHandler(handler)
    root_logger.setLevel(logging.WARNING)
    structlog.reset_defaults()


@pytest.fixture
def pacing() -> PacingConfig:
    """Pacing with every delay disabled."""
    return PacingConfig.instant()


@pytest.fixture
def execution() -> ExecutionConfig:
    """Default execution limits."""
    return ExecutionConfig()


# =============================================================================
# Runtime Fixtures
# =============================================================================


@pytest.fixture
def dispatcher(pacing) -> SimulatedActionDispatcher:
    """Simulated dispatcher that never sleeps."""
    return SimulatedActionDispatcher(pacing=pacing)


@pytest.fixture
def interpreter(dispatcher, execution) -> FlowInterpreter:
    """Interpreter wired to the instant dispatcher."""
    return FlowInterpreter(dispatcher=dispatcher, execution=execution, session_id="test")


# =============================================================================
# Flow Fixtures
# =============================================================================


@pytest.fixture
def refund_flow() -> Flow:
    """start -> greet -> ask_refund (contains "refund") -> Yes/No branches."""
    return FlowTemplates.refund_flow().build()


@pytest.fixture
def support_menu_flow() -> Flow:
    """Keypad menu routing to billing, assistant or agent."""
    return FlowTemplates.support_menu_flow().build()


@pytest.fixture
def editor_export() -> dict:
    """Flow in the shape the visual editor exports."""
    return {
        "id": "flow_123",
        "name": "Support line",
        "nodes": [
            {"id": "start", "type": "start", "data": {"label": "Start"}},
            {"id": "hello", "type": "message", "data": {"label": "Greeting", "content": "Hello!"}},
            {
                "id": "ask",
                "type": "condition",
                "data": {
                    "label": "Billing?",
                    "condition": {"operator": "contains", "value": "billing", "variable": "intent"},
                    "yesConnection": "lookup",
                    "noConnection": "menu",
                },
            },
            {
                "id": "lookup",
                "type": "api_call",
                "data": {
                    "apiConfig": {
                        "method": "post",
                        "url": "https://api.example.com/billing",
                        "headers": {"Authorization": "Bearer x"},
                        "body": "{}",
                    },
                },
            },
            {
                "id": "menu",
                "type": "dtmf",
                "data": {
                    "dtmfConfig": {
                        "prompt": "Press 1 for sales",
                        "timeout": 10,
                        "maxDigits": 2,
                        "branches": [
                            {"key": "1", "label": "Sales", "targetNodeId": "agent"},
                        ],
                    },
                },
            },
            {
                "id": "helper",
                "type": "assistant",
                "data": {"assistantConfig": {"personaId": "p_1", "personaName": "Ava"}},
            },
            {"id": "agent", "type": "transfer", "data": {"transferTo": "Sales"}},
            {"id": "done", "type": "end", "data": {"label": "End"}},
        ],
        "edges": [
            {"id": "e1", "source": "start", "target": "hello"},
            {"id": "e2", "source": "hello", "target": "ask"},
            {"id": "e3", "source": "lookup", "target": "done"},
            {"id": "e4", "source": "menu", "target": "helper"},
            {"id": "e5", "source": "helper", "target": "done"},
            {"id": "e6", "source": "agent", "target": "done"},
        ],
    }
