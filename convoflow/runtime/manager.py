"""Registry of live interpreters, one per conversation."""

from typing import Any, Callable, Dict, List, Optional

import structlog

from convoflow.config import ExecutionConfig, PacingConfig
from convoflow.flow.graph import Flow
from convoflow.runtime.dispatcher import ActionDispatcher, SimulatedActionDispatcher
from convoflow.runtime.interpreter import FlowInterpreter
from convoflow.runtime.session import Session, SessionStatus


logger = structlog.get_logger(__name__)

DispatcherFactory = Callable[[], ActionDispatcher]


class SessionManager:
    """
    Keeps one :class:`FlowInterpreter` per conversation id.

    Interpreters share nothing mutable, so many conversations can run
    concurrently on one event loop. Each gets its own dispatcher from
    ``dispatcher_factory``.
    """

    def __init__(
        self,
        dispatcher_factory: Optional[DispatcherFactory] = None,
        pacing: Optional[PacingConfig] = None,
        execution: Optional[ExecutionConfig] = None,
    ):
        self._pacing = pacing or PacingConfig()
        self._execution = execution or ExecutionConfig()
        self._dispatcher_factory = dispatcher_factory or (
            lambda: SimulatedActionDispatcher(pacing=self._pacing)
        )
        self._interpreters: Dict[str, FlowInterpreter] = {}

    def get(self, conversation_id: str) -> Optional[FlowInterpreter]:
        """Get the interpreter for a conversation."""
        return self._interpreters.get(conversation_id)

    def get_or_create(self, conversation_id: str) -> FlowInterpreter:
        """Get the interpreter for a conversation, creating it if needed."""
        interpreter = self._interpreters.get(conversation_id)
        if interpreter is None:
            interpreter = FlowInterpreter(
                dispatcher=self._dispatcher_factory(),
                execution=self._execution,
                session_id=conversation_id,
            )
            self._interpreters[conversation_id] = interpreter
            logger.debug("interpreter_created", conversation_id=conversation_id)
        return interpreter

    async def start(self, conversation_id: str, flow: Flow) -> Session:
        """Start (or restart) ``flow`` for a conversation."""
        return await self.get_or_create(conversation_id).start(flow)

    async def submit_input(self, conversation_id: str, text: str) -> bool:
        """Forward user input; False if the conversation is unknown or not waiting."""
        interpreter = self._interpreters.get(conversation_id)
        if interpreter is None:
            return False
        return await interpreter.submit_input(text)

    async def submit_dtmf(self, conversation_id: str, digits: str) -> bool:
        """Forward keypad input; False if the conversation is unknown or not waiting."""
        interpreter = self._interpreters.get(conversation_id)
        if interpreter is None:
            return False
        return await interpreter.submit_dtmf(digits)

    def end(self, conversation_id: str) -> bool:
        """Reset and forget a conversation."""
        interpreter = self._interpreters.pop(conversation_id, None)
        if interpreter is None:
            return False
        interpreter.reset()
        logger.debug("interpreter_removed", conversation_id=conversation_id)
        return True

    def active_conversations(self) -> List[str]:
        """Conversations that are running or waiting for input."""
        return [
            conversation_id
            for conversation_id, interpreter in self._interpreters.items()
            if interpreter.status in (SessionStatus.RUNNING, SessionStatus.WAITING_FOR_INPUT)
        ]

    def get_statistics(self) -> Dict[str, Any]:
        """Get manager statistics."""
        by_status: Dict[str, int] = {}
        for interpreter in self._interpreters.values():
            by_status[interpreter.status.value] = by_status.get(interpreter.status.value, 0) + 1
        return {
            "conversations": len(self._interpreters),
            "by_status": by_status,
        }

    def __len__(self) -> int:
        return len(self._interpreters)

    def __contains__(self, conversation_id: str) -> bool:
        return conversation_id in self._interpreters
