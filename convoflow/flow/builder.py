"""Flow builder for creating conversation flows programmatically."""

import json
from typing import Any, Dict, List, Optional

import yaml

from convoflow.flow.graph import NO_LABEL, YES_LABEL, Flow, FlowEdge
from convoflow.flow.loader import flow_to_dict
from convoflow.flow.node import (
    ApiCallData,
    AssistantData,
    Condition,
    ConditionData,
    DTMFBranch,
    DTMFData,
    FlowNode,
    MessageData,
    NodeType,
    TransferData,
)


class FlowBuilder:
    """
    Builder for creating conversation flows.

    Each added node is linked to the previous one with a default edge,
    except after condition, DTMF and end nodes, which branch explicitly.

    Example:
        flow = (
            FlowBuilder("refund")
            .start()
            .message("greet", "Hi")
            .condition("ask", operator="contains", value="refund")
                .yes("refund")
                .no("other")
            .message("refund", "Processing refund")
            .end("done_refund")
            .message("other", "Let me help another way", link=False)
            .end("done_other")
            .build()
        )
    """

    def __init__(self, flow_id: str, name: Optional[str] = None):
        self.flow_id = flow_id
        self.name = name or flow_id
        self._nodes: List[FlowNode] = []
        self._edges: List[FlowEdge] = []
        self._current_node: Optional[FlowNode] = None

    def start(self, node_id: str = "start", label: str = "Start") -> "FlowBuilder":
        """Add start node."""
        return self._add_node(FlowNode(id=node_id, type=NodeType.START, label=label))

    def message(
        self,
        node_id: str,
        content: Optional[str],
        label: str = "",
        link: bool = True,
    ) -> "FlowBuilder":
        """Add message node."""
        node = FlowNode(
            id=node_id,
            type=NodeType.MESSAGE,
            data=MessageData(content=content),
            label=label,
        )
        return self._add_node(node, link=link)

    def condition(
        self,
        node_id: str,
        operator: str = "equals",
        value: str = "",
        variable: str = "user_input",
        label: str = "",
        link: bool = True,
    ) -> "ConditionBuilder":
        """Add condition node (returns ConditionBuilder)."""
        node = FlowNode(
            id=node_id,
            type=NodeType.CONDITION,
            data=ConditionData(
                condition=Condition(operator=operator, value=value, variable=variable),
            ),
            label=label,
        )
        self._add_node(node, link=link)
        return ConditionBuilder(self, node)

    def api_call(
        self,
        node_id: str,
        url: str,
        method: str = "GET",
        headers: Optional[Dict[str, str]] = None,
        body: Optional[str] = None,
        label: str = "",
        link: bool = True,
    ) -> "FlowBuilder":
        """Add API call node."""
        node = FlowNode(
            id=node_id,
            type=NodeType.API_CALL,
            data=ApiCallData(
                method=method.upper(),
                url=url,
                headers=tuple(sorted((headers or {}).items())),
                body=body,
            ),
            label=label,
        )
        return self._add_node(node, link=link)

    def dtmf(
        self,
        node_id: str,
        prompt: str,
        branches: Optional[Dict[str, str]] = None,
        max_digits: int = 1,
        timeout: int = 5,
        label: str = "",
        link: bool = True,
    ) -> "FlowBuilder":
        """
        Add DTMF node.

        Args:
            branches: Mapping of keypad input to target node id
        """
        node = FlowNode(
            id=node_id,
            type=NodeType.DTMF,
            data=DTMFData(
                prompt=prompt,
                timeout=timeout,
                max_digits=max_digits,
                branches=tuple(
                    DTMFBranch(key=key, label=f"Option {key}", target_node_id=target)
                    for key, target in (branches or {}).items()
                ),
            ),
            label=label,
        )
        return self._add_node(node, link=link)

    def assistant(
        self,
        node_id: str,
        persona_name: Optional[str] = None,
        persona_id: Optional[str] = None,
        handoff_condition: Optional[str] = None,
        label: str = "",
        link: bool = True,
    ) -> "FlowBuilder":
        """Add AI assistant node."""
        node = FlowNode(
            id=node_id,
            type=NodeType.ASSISTANT,
            data=AssistantData(
                persona_id=persona_id,
                persona_name=persona_name,
                handoff_condition=handoff_condition,
            ),
            label=label,
        )
        return self._add_node(node, link=link)

    def transfer(
        self,
        node_id: str,
        target: str,
        label: str = "",
        link: bool = True,
    ) -> "FlowBuilder":
        """Add transfer node."""
        node = FlowNode(
            id=node_id,
            type=NodeType.TRANSFER,
            data=TransferData(transfer_to=target),
            label=label,
        )
        return self._add_node(node, link=link)

    def end(self, node_id: str = "end", label: str = "End", link: bool = True) -> "FlowBuilder":
        """Add end node."""
        return self._add_node(FlowNode(id=node_id, type=NodeType.END, label=label), link=link)

    def edge(self, source: str, target: str, label: Optional[str] = None) -> "FlowBuilder":
        """Add an explicit edge."""
        edge_id = f"e{len(self._edges)}"
        self._edges.append(FlowEdge(source=source, target=target, label=label, id=edge_id))
        return self

    def goto(self, target_node_id: str) -> "FlowBuilder":
        """Add a default edge from the current node."""
        if self._current_node:
            self.edge(self._current_node.id, target_node_id)
        return self

    def _add_node(self, node: FlowNode, link: bool = True) -> "FlowBuilder":
        """Add node and link it from the previous one."""
        previous = self._current_node
        if (
            link
            and previous is not None
            and previous.type not in (NodeType.CONDITION, NodeType.DTMF, NodeType.END)
        ):
            self.edge(previous.id, node.id)

        self._nodes.append(node)
        self._current_node = node
        return self

    def build(self) -> Flow:
        """Build and return the flow."""
        return Flow.from_parts(self._nodes, self._edges, flow_id=self.flow_id, name=self.name)

    def to_dict(self) -> Dict[str, Any]:
        """Export flow as dictionary."""
        return flow_to_dict(self.build())

    def to_json(self) -> str:
        """Export flow as JSON."""
        return json.dumps(self.to_dict(), indent=2)

    def to_yaml(self) -> str:
        """Export flow as YAML."""
        return yaml.dump(self.to_dict(), default_flow_style=False, sort_keys=False)


class ConditionBuilder:
    """Builder for condition node branches."""

    def __init__(self, parent: FlowBuilder, node: FlowNode):
        self._parent = parent
        self._node = node

    def yes(self, target_node: str) -> "ConditionBuilder":
        """Route matching input to ``target_node``."""
        self._parent.edge(self._node.id, target_node, YES_LABEL)
        return self

    def no(self, target_node: str) -> FlowBuilder:
        """Route non-matching input to ``target_node`` and return to parent builder."""
        self._parent.edge(self._node.id, target_node, NO_LABEL)
        return self._parent

    def end_condition(self) -> FlowBuilder:
        """End condition without a No branch (non-matching input ends the run)."""
        return self._parent


# Pre-built flow templates
class FlowTemplates:
    """Common flow templates."""

    @staticmethod
    def refund_flow() -> FlowBuilder:
        """Greeting, refund question and two closing branches."""
        return (
            FlowBuilder("refund", "Refund triage")
            .start()
            .message("greet", "Hi")
            .condition("ask_refund", operator="contains", value="refund")
                .yes("refund")
                .no("other")
            .message("refund", "Processing refund")
            .end("end_refund")
            .message("other", "Let me help another way", link=False)
            .end("end_other")
        )

    @staticmethod
    def support_menu_flow() -> FlowBuilder:
        """Keypad menu routing to billing lookup, assistant or a human."""
        return (
            FlowBuilder("support_menu", "Support menu")
            .start()
            .message("welcome", "Thanks for calling support.")
            .dtmf(
                "menu",
                "Press 1 for billing, 2 for technical help, 0 for an agent.",
                branches={"1": "billing_lookup", "2": "tech_assistant", "0": "to_agent"},
            )
            .api_call("billing_lookup", "https://api.example.com/billing", link=False)
            .message("billing_done", "Your billing details have been sent by SMS.")
            .end("end_billing")
            .assistant("tech_assistant", persona_name="Tech Support", link=False)
            .end("end_tech")
            .transfer("to_agent", "Support Team", link=False)
            .end("end_agent")
        )
