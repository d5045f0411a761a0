"""Flow interpreter: the state machine that runs one conversation."""

import re
from datetime import datetime
from typing import Callable, List, Optional

import structlog

from convoflow.config import ExecutionConfig
from convoflow.exceptions import DanglingReferenceError, RunCancelled
from convoflow.flow.condition import evaluate
from convoflow.flow.graph import (
    NO_LABEL,
    YES_LABEL,
    Flow,
    get_start_node,
    resolve_default_successor,
    resolve_labeled_successor,
    resolve_reference,
)
from convoflow.flow.node import FlowNode, NodeType
from convoflow.runtime.dispatcher import (
    ActionDispatcher,
    DispatchContext,
    SimulatedActionDispatcher,
)
from convoflow.runtime.session import (
    Message,
    MessageRole,
    Session,
    SessionStatus,
    Transcript,
)


logger = structlog.get_logger(__name__)

DTMF_DIGITS = re.compile(r"[0-9*#]+")


class FlowInterpreter:
    """
    Runs a flow, one node at a time.

    States move ``IDLE -> RUNNING -> (WAITING_FOR_INPUT <-> RUNNING) ->
    COMPLETED``. Processing continues in a loop until a node needs input,
    the flow ends, or there is no successor. Each run carries a generation
    number; :meth:`reset` bumps it, so a continuation still sleeping in a
    pacing delay finds itself stale on wake-up and leaves the new session
    alone.
    """

    def __init__(
        self,
        dispatcher: Optional[ActionDispatcher] = None,
        execution: Optional[ExecutionConfig] = None,
        session_id: Optional[str] = None,
    ):
        self.dispatcher = dispatcher or SimulatedActionDispatcher()
        self.execution = execution or ExecutionConfig()
        self.session_id = session_id
        self._generation = 0
        self._session = Session(generation=0)
        self._flow: Optional[Flow] = None
        self._listeners: List[Callable[[Message], None]] = []
        self._session.transcript.subscribe(self._notify)

    # -------------------------------------------------------------------------
    # Read-only views
    # -------------------------------------------------------------------------

    @property
    def session(self) -> Session:
        return self._session

    @property
    def status(self) -> SessionStatus:
        return self._session.status

    @property
    def transcript(self) -> Transcript:
        return self._session.transcript

    @property
    def flow(self) -> Optional[Flow]:
        return self._flow

    @property
    def current_node(self) -> Optional[FlowNode]:
        if self._flow is None or self._session.current_node_id is None:
            return None
        return self._flow.get_node(self._session.current_node_id)

    def subscribe(self, listener: Callable[[Message], None]) -> Callable[[], None]:
        """
        Subscribe to transcript messages of this and every later session.

        Returns:
            A callable that removes the listener
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    # -------------------------------------------------------------------------
    # Commands
    # -------------------------------------------------------------------------

    def reset(self) -> None:
        """Discard the session and return to IDLE. Safe in any state."""
        self._generation += 1
        self._session = Session(generation=self._generation)
        self._flow = None
        self._session.transcript.subscribe(self._notify)

        logger.debug(
            "flow_reset",
            session_id=self.session_id,
            generation=self._generation,
        )

    async def start(self, flow: Flow) -> Session:
        """
        Start a new run of ``flow``.

        Any previous run is discarded first. Returns the session of this run
        once it waits for input or completes, even if a later start or reset
        has superseded it by then.

        Raises:
            MalformedFlowError: If the flow lacks a unique start node; the
                session stays IDLE
        """
        self.reset()
        start_node = get_start_node(flow)

        generation = self._generation
        self._flow = flow
        self._session.flow_id = flow.id
        self._session.started_at = datetime.utcnow()
        self._session.status = SessionStatus.RUNNING

        logger.info(
            "flow_run_started",
            session_id=self.session_id,
            flow_id=flow.id,
            node_count=len(flow.nodes),
            generation=generation,
        )

        session = self._session
        await self._run_from(start_node, generation)
        return session

    async def submit_input(self, text: str) -> bool:
        """
        Answer the condition node the run is waiting on.

        A no-op (returning False) unless the session is waiting at a
        condition node, so duplicate submissions are harmless. Blank input
        is ignored as well.

        Returns:
            True if the input was consumed
        """
        node = self._waiting_node(NodeType.CONDITION)
        if node is None or not text.strip():
            logger.debug("input_ignored", session_id=self.session_id, status=self.status.value)
            return False

        generation = self._generation
        self._session.status = SessionStatus.RUNNING

        try:
            outcome = evaluate(node.data.condition, text)
            self._append(MessageRole.USER, text, node.id, generation)
            self._append(
                MessageRole.SYSTEM,
                f"Condition evaluated: {YES_LABEL if outcome else NO_LABEL}",
                node.id,
                generation,
            )

            logger.debug(
                "condition_evaluated",
                session_id=self.session_id,
                node_id=node.id,
                outcome=outcome,
            )

            successor = self._safely_resolve(
                node, lambda: self._condition_successor(node, outcome), generation
            )
            await self._run_from(successor, generation)
        except RunCancelled:
            self._discard_stale(generation)

        return True

    async def submit_dtmf(self, digits: str) -> bool:
        """
        Answer the DTMF node the run is waiting on.

        Digits outside ``0-9*#`` are rejected; input longer than the node's
        ``max_digits`` is cut to that length.

        Returns:
            True if the digits were consumed
        """
        node = self._waiting_node(NodeType.DTMF)
        if node is None or not DTMF_DIGITS.fullmatch(digits or ""):
            logger.debug("dtmf_ignored", session_id=self.session_id, status=self.status.value)
            return False

        digits = digits[: max(node.data.max_digits, 1)]
        generation = self._generation
        self._session.status = SessionStatus.RUNNING

        try:
            self._append(MessageRole.USER, f"DTMF: {digits}", node.id, generation)
            self._append(
                MessageRole.SYSTEM,
                f'DTMF received: "{digits}" → Processing...',
                node.id,
                generation,
            )

            successor = self._safely_resolve(
                node, lambda: self._dtmf_successor(node, digits), generation
            )
            await self._run_from(successor, generation)
        except RunCancelled:
            self._discard_stale(generation)

        return True

    # -------------------------------------------------------------------------
    # Processing
    # -------------------------------------------------------------------------

    async def _run_from(self, node: Optional[FlowNode], generation: int) -> None:
        """Process nodes from ``node`` until input is needed or the run ends."""
        steps = 0

        try:
            while node is not None:
                if steps >= self.execution.max_steps:
                    logger.warning(
                        "step_limit_reached",
                        session_id=self.session_id,
                        node_id=node.id,
                        max_steps=self.execution.max_steps,
                    )
                    self._append(
                        MessageRole.SYSTEM,
                        f"⚠ step limit reached at node {node.id}",
                        node.id,
                        generation,
                    )
                    break
                steps += 1

                self._session.move_to(node.id)
                ctx = DispatchContext(
                    node,
                    self._session.transcript,
                    generation,
                    self._is_current,
                )
                result = await self.dispatcher.dispatch(node, ctx)
                ctx.ensure_current()

                if result.awaits_input:
                    self._session.status = SessionStatus.WAITING_FOR_INPUT
                    logger.info(
                        "flow_waiting_for_input",
                        session_id=self.session_id,
                        node_id=node.id,
                        node_type=node.type.value,
                    )
                    return

                if result.completes:
                    break

                node = self._safely_resolve(
                    node, self._default_successor(node, result.next_hint), generation
                )

            self._finish(generation)

        except RunCancelled:
            self._discard_stale(generation)
        except Exception:
            if self._is_current(generation):
                logger.exception(
                    "flow_dispatch_failed",
                    session_id=self.session_id,
                    node_id=self._session.current_node_id,
                )
                self._session.complete()
            raise

    def _default_successor(self, node: FlowNode, next_hint: Optional[str]):
        if next_hint:
            return lambda: resolve_reference(self._flow, node.id, next_hint)
        return lambda: resolve_default_successor(self._flow, node.id)

    def _condition_successor(self, node: FlowNode, outcome: bool) -> Optional[FlowNode]:
        """Labeled Yes/No edge first, then the node's legacy branch field."""
        label = YES_LABEL if outcome else NO_LABEL
        legacy = node.data.yes_connection if outcome else node.data.no_connection

        try:
            successor = resolve_labeled_successor(self._flow, node.id, label)
        except DanglingReferenceError:
            if not legacy:
                raise
            successor = None

        if successor is None:
            successor = resolve_reference(self._flow, node.id, legacy)
        return successor

    def _dtmf_successor(self, node: FlowNode, digits: str) -> Optional[FlowNode]:
        """Branch bound to the digits, then an edge labeled with them, then the default."""
        branch = node.data.branch_for(digits)
        if branch is not None and branch.target_node_id:
            return resolve_reference(self._flow, node.id, branch.target_node_id)

        successor = resolve_labeled_successor(self._flow, node.id, digits)
        if successor is not None:
            return successor
        return resolve_default_successor(self._flow, node.id)

    def _safely_resolve(
        self,
        node: FlowNode,
        resolver: Callable[[], Optional[FlowNode]],
        generation: int,
    ) -> Optional[FlowNode]:
        """Run a successor lookup, turning a dangling reference into a graceful stop."""
        try:
            return resolver()
        except DanglingReferenceError as e:
            logger.warning(
                "flow_misconfigured",
                session_id=self.session_id,
                flow_id=self._flow.id if self._flow else None,
                node_id=e.source_id,
                missing_target=e.target_id,
            )
            self._append(
                MessageRole.SYSTEM,
                f"⚠ flow misconfigured at node {e.source_id}",
                node.id,
                generation,
            )
            return None

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def _is_current(self, generation: int) -> bool:
        return generation == self._generation

    def _notify(self, message: Message) -> None:
        for listener in list(self._listeners):
            listener(message)

    def _waiting_node(self, node_type: NodeType) -> Optional[FlowNode]:
        if self.status != SessionStatus.WAITING_FOR_INPUT:
            return None
        node = self.current_node
        if node is None or node.type != node_type:
            return None
        return node

    def _append(self, role: MessageRole, content: str, node_id: Optional[str], generation: int) -> None:
        if not self._is_current(generation):
            raise RunCancelled(generation)
        self._session.transcript.append(Message(role=role, content=content, node_id=node_id))

    def _finish(self, generation: int) -> None:
        if not self._is_current(generation):
            raise RunCancelled(generation)
        self._session.complete()
        logger.info(
            "flow_run_completed",
            session_id=self.session_id,
            flow_id=self._session.flow_id,
            last_node=self._session.current_node_id,
            nodes_visited=len(self._session.visited_nodes),
            duration_seconds=self._session.get_duration_seconds(),
        )

    def _discard_stale(self, generation: int) -> None:
        logger.debug(
            "stale_continuation_discarded",
            session_id=self.session_id,
            generation=generation,
            current_generation=self._generation,
        )
