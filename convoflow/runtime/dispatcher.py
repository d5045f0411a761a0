"""
Action dispatch for flow nodes.

The interpreter hands every node to an :class:`ActionDispatcher`, which
performs the node's side effect and reports what happened. The default
:class:`SimulatedActionDispatcher` only models timing and outcome; a real
deployment swaps in a dispatcher that talks to telephony, HTTP or LLM
backends behind the same interface.
"""

import asyncio
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Dict, List, Optional, Sequence

import structlog

from convoflow.config import PacingConfig
from convoflow.exceptions import RunCancelled
from convoflow.flow.node import FlowNode, NodeType
from convoflow.runtime.session import Message, MessageRole, Transcript


logger = structlog.get_logger(__name__)


@dataclass
class DispatchResult:
    """Outcome of dispatching one node."""
    emitted: List[Message] = field(default_factory=list)
    awaits_input: bool = False  # Suspend until the caller submits input
    next_hint: Optional[str] = None  # Successor chosen by the handler itself
    completes: bool = False  # The run ends at this node


class DispatchContext:
    """
    Handle given to dispatcher methods for producing output.

    Messages go straight into the live transcript so a rendering surface
    sees them while later work in the same node is still pending. Every
    call first checks that the run it belongs to is still current.
    """

    def __init__(
        self,
        node: FlowNode,
        transcript: Transcript,
        generation: int,
        is_current: Callable[[int], bool],
    ):
        self.node = node
        self.generation = generation
        self._transcript = transcript
        self._is_current = is_current
        self.emitted: List[Message] = []

    def ensure_current(self) -> None:
        """
        Raises:
            RunCancelled: If the run was reset or restarted
        """
        if not self._is_current(self.generation):
            raise RunCancelled(self.generation)

    def emit(self, role: MessageRole, content: str) -> Message:
        """Append a message attributed to the current node."""
        self.ensure_current()
        message = Message(role=role, content=content, node_id=self.node.id)
        self._transcript.append(message)
        self.emitted.append(message)
        return message

    def bot(self, content: str) -> Message:
        return self.emit(MessageRole.BOT, content)

    def system(self, content: str) -> Message:
        return self.emit(MessageRole.SYSTEM, content)

    async def pause(self, seconds: float) -> None:
        """Suspend for a pacing delay, then re-check the run."""
        if seconds > 0:
            await asyncio.sleep(seconds)
        self.ensure_current()

    def result(self, **kwargs) -> DispatchResult:
        return DispatchResult(emitted=list(self.emitted), **kwargs)


Handler = Callable[[FlowNode, DispatchContext], Awaitable[DispatchResult]]


class ActionDispatcher(ABC):
    """
    Capability interface: one coroutine per node type.

    Implementations emit through the context and return a
    :class:`DispatchResult`. They must not resolve successors through the
    graph themselves; ``next_hint`` exists for handlers whose own payload
    names the next node.
    """

    def __init__(self):
        self._handlers: Dict[NodeType, Handler] = {
            NodeType.START: self.start,
            NodeType.MESSAGE: self.message,
            NodeType.CONDITION: self.condition,
            NodeType.API_CALL: self.api_call,
            NodeType.DTMF: self.dtmf,
            NodeType.ASSISTANT: self.assistant,
            NodeType.TRANSFER: self.transfer,
            NodeType.END: self.end,
        }
        missing = set(NodeType) - set(self._handlers)
        if missing:
            raise TypeError(f"No handler for node types: {sorted(t.value for t in missing)}")

    async def dispatch(self, node: FlowNode, ctx: DispatchContext) -> DispatchResult:
        """Run the handler matching the node type."""
        logger.debug(
            "dispatching_node",
            node_id=node.id,
            node_type=node.type.value,
            generation=ctx.generation,
        )
        return await self._handlers[node.type](node, ctx)

    @abstractmethod
    async def start(self, node: FlowNode, ctx: DispatchContext) -> DispatchResult: ...

    @abstractmethod
    async def message(self, node: FlowNode, ctx: DispatchContext) -> DispatchResult: ...

    @abstractmethod
    async def condition(self, node: FlowNode, ctx: DispatchContext) -> DispatchResult: ...

    @abstractmethod
    async def api_call(self, node: FlowNode, ctx: DispatchContext) -> DispatchResult: ...

    @abstractmethod
    async def dtmf(self, node: FlowNode, ctx: DispatchContext) -> DispatchResult: ...

    @abstractmethod
    async def assistant(self, node: FlowNode, ctx: DispatchContext) -> DispatchResult: ...

    @abstractmethod
    async def transfer(self, node: FlowNode, ctx: DispatchContext) -> DispatchResult: ...

    @abstractmethod
    async def end(self, node: FlowNode, ctx: DispatchContext) -> DispatchResult: ...


DEFAULT_ASSISTANT_RESPONSES = (
    "I understand your concern. Let me help you with that right away.",
    "Based on your account information, I can see the details you need.",
    "I've reviewed your request and here's what I found.",
    "Thank you for your patience. I have the information ready for you.",
)

EMPTY_MESSAGE_PLACEHOLDER = "No message configured"
DEFAULT_TRANSFER_TARGET = "Agent"


class SimulatedActionDispatcher(ActionDispatcher):
    """
    Dispatcher that fakes every external action.

    API calls always succeed, the assistant answers from a fixed set of
    replies in rotation, and transfers only announce themselves.
    """

    def __init__(
        self,
        pacing: Optional[PacingConfig] = None,
        assistant_responses: Sequence[str] = DEFAULT_ASSISTANT_RESPONSES,
    ):
        super().__init__()
        self.pacing = pacing or PacingConfig()
        if not assistant_responses:
            raise ValueError("assistant_responses must not be empty")
        self._assistant_responses = tuple(assistant_responses)
        self._assistant_turn = 0

    async def start(self, node: FlowNode, ctx: DispatchContext) -> DispatchResult:
        ctx.system("→ Start")
        return ctx.result()

    async def message(self, node: FlowNode, ctx: DispatchContext) -> DispatchResult:
        ctx.bot(node.data.content or EMPTY_MESSAGE_PLACEHOLDER)
        await ctx.pause(self.pacing.message_delay)
        return ctx.result()

    async def condition(self, node: FlowNode, ctx: DispatchContext) -> DispatchResult:
        return ctx.result(awaits_input=True)

    async def api_call(self, node: FlowNode, ctx: DispatchContext) -> DispatchResult:
        config = node.data
        ctx.system(f"📡 Calling {config.method} {config.url}...")
        await ctx.pause(self.pacing.api_call_delay)
        ctx.system("✓ API call successful")
        return ctx.result()

    async def dtmf(self, node: FlowNode, ctx: DispatchContext) -> DispatchResult:
        config = node.data
        ctx.bot(config.prompt)
        ctx.system(
            f"Waiting for DTMF input (max {config.max_digits} digits, "
            f"{config.timeout}s timeout)..."
        )
        return ctx.result(awaits_input=True)

    async def assistant(self, node: FlowNode, ctx: DispatchContext) -> DispatchResult:
        ctx.system("AI Assistant processing...")
        await ctx.pause(self.pacing.assistant_delay)
        response = self._assistant_responses[self._assistant_turn % len(self._assistant_responses)]
        self._assistant_turn += 1
        ctx.bot(response)
        return ctx.result()

    async def transfer(self, node: FlowNode, ctx: DispatchContext) -> DispatchResult:
        target = node.data.transfer_to or DEFAULT_TRANSFER_TARGET
        ctx.bot(f"Transferring you to {target}...")
        await ctx.pause(self.pacing.transfer_delay)
        return ctx.result()

    async def end(self, node: FlowNode, ctx: DispatchContext) -> DispatchResult:
        ctx.system("🏁 Flow completed")
        return ctx.result(completes=True)
