"""Unit tests for action dispatch."""

import pytest

from convoflow.config import PacingConfig
from convoflow.exceptions import RunCancelled
from convoflow.flow.node import (
    ApiCallData,
    DTMFData,
    FlowNode,
    MessageData,
    NodeType,
    TransferData,
)
from convoflow.runtime.dispatcher import (
    DEFAULT_ASSISTANT_RESPONSES,
    ActionDispatcher,
    DispatchContext,
    SimulatedActionDispatcher,
)
from convoflow.runtime.session import MessageRole, Transcript


def _context(node, transcript=None, current=True):
    return DispatchContext(
        node,
        transcript if transcript is not None else Transcript(),
        generation=1,
        is_current=lambda generation: current,
    )


def _contents(messages):
    return [(m.role, m.content) for m in messages]


class TestDispatchContext:
    """Tests for DispatchContext."""

    def test_emit_appends_to_transcript(self):
        """Test emitted messages land in the live transcript immediately."""
        transcript = Transcript()
        node = FlowNode(id="m", type=NodeType.MESSAGE)
        ctx = _context(node, transcript)

        message = ctx.bot("Hello")

        assert transcript[0] is message
        assert message.node_id == "m"
        assert ctx.emitted == [message]

    def test_stale_context_refuses_emit(self):
        """Test a context of a superseded run cannot write."""
        transcript = Transcript()
        ctx = _context(FlowNode(id="m", type=NodeType.MESSAGE), transcript, current=False)

        with pytest.raises(RunCancelled):
            ctx.system("late")

        assert len(transcript) == 0

    @pytest.mark.asyncio
    async def test_pause_checks_generation(self):
        ctx = _context(FlowNode(id="m", type=NodeType.MESSAGE), current=False)

        with pytest.raises(RunCancelled):
            await ctx.pause(0)

    def test_result_copies_emitted(self):
        ctx = _context(FlowNode(id="m", type=NodeType.MESSAGE))
        ctx.bot("one")

        result = ctx.result(awaits_input=True)

        assert [m.content for m in result.emitted] == ["one"]
        assert result.awaits_input is True
        assert result.completes is False
        assert result.next_hint is None


class TestActionDispatcher:
    """Tests for the dispatcher interface."""

    def test_incomplete_dispatcher_cannot_be_created(self):
        """Test every node type needs a handler."""

        class MessagesOnly(ActionDispatcher):
            async def message(self, node, ctx):
                return ctx.result()

        with pytest.raises(TypeError):
            MessagesOnly()


class TestSimulatedActionDispatcher:
    """Tests for SimulatedActionDispatcher."""

    def setup_method(self):
        self.dispatcher = SimulatedActionDispatcher(pacing=PacingConfig.instant())

    async def _dispatch(self, node):
        ctx = _context(node)
        return await self.dispatcher.dispatch(node, ctx)

    @pytest.mark.asyncio
    async def test_start(self):
        result = await self._dispatch(FlowNode(id="s", type=NodeType.START))

        assert _contents(result.emitted) == [(MessageRole.SYSTEM, "→ Start")]
        assert not result.awaits_input
        assert not result.completes

    @pytest.mark.asyncio
    async def test_message(self):
        node = FlowNode(id="m", type=NodeType.MESSAGE, data=MessageData(content="Hi"))

        result = await self._dispatch(node)

        assert _contents(result.emitted) == [(MessageRole.BOT, "Hi")]

    @pytest.mark.asyncio
    async def test_empty_message_placeholder(self):
        """Test empty content is replaced by a placeholder."""
        for data in (MessageData(), MessageData(content="")):
            result = await self._dispatch(FlowNode(id="m", type=NodeType.MESSAGE, data=data))
            assert result.emitted[0].content == "No message configured"

    @pytest.mark.asyncio
    async def test_condition_waits_silently(self):
        result = await self._dispatch(FlowNode(id="c", type=NodeType.CONDITION))

        assert result.emitted == []
        assert result.awaits_input is True

    @pytest.mark.asyncio
    async def test_api_call(self):
        """Test the call is announced, then reported successful."""
        node = FlowNode(
            id="api",
            type=NodeType.API_CALL,
            data=ApiCallData(method="POST", url="https://api.example.com/orders"),
        )

        result = await self._dispatch(node)

        assert _contents(result.emitted) == [
            (MessageRole.SYSTEM, "📡 Calling POST https://api.example.com/orders..."),
            (MessageRole.SYSTEM, "✓ API call successful"),
        ]

    @pytest.mark.asyncio
    async def test_dtmf_prompts_and_waits(self):
        node = FlowNode(id="d", type=NodeType.DTMF, data=DTMFData(max_digits=4, timeout=8))

        result = await self._dispatch(node)

        assert _contents(result.emitted) == [
            (MessageRole.BOT, "Please enter your selection"),
            (MessageRole.SYSTEM, "Waiting for DTMF input (max 4 digits, 8s timeout)..."),
        ]
        assert result.awaits_input is True

    @pytest.mark.asyncio
    async def test_assistant_rotates_responses(self):
        """Test the assistant answers from the canned set in order."""
        node = FlowNode(id="a", type=NodeType.ASSISTANT)
        replies = []

        for _ in range(len(DEFAULT_ASSISTANT_RESPONSES) + 1):
            result = await self._dispatch(node)
            assert result.emitted[0].content == "AI Assistant processing..."
            replies.append(result.emitted[1].content)

        assert replies[:-1] == list(DEFAULT_ASSISTANT_RESPONSES)
        assert replies[-1] == DEFAULT_ASSISTANT_RESPONSES[0]

    def test_assistant_responses_required(self):
        with pytest.raises(ValueError):
            SimulatedActionDispatcher(assistant_responses=())

    @pytest.mark.asyncio
    async def test_transfer(self):
        node = FlowNode(id="t", type=NodeType.TRANSFER, data=TransferData(transfer_to="Billing"))

        result = await self._dispatch(node)

        assert _contents(result.emitted) == [(MessageRole.BOT, "Transferring you to Billing...")]

    @pytest.mark.asyncio
    async def test_transfer_default_target(self):
        result = await self._dispatch(FlowNode(id="t", type=NodeType.TRANSFER))
        assert result.emitted[0].content == "Transferring you to Agent..."

    @pytest.mark.asyncio
    async def test_end(self):
        result = await self._dispatch(FlowNode(id="e", type=NodeType.END))

        assert _contents(result.emitted) == [(MessageRole.SYSTEM, "🏁 Flow completed")]
        assert result.completes is True
