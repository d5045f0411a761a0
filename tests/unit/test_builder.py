"""Unit tests for the flow builder."""

import json

import yaml

from convoflow.flow.builder import FlowBuilder, FlowTemplates
from convoflow.flow.graph import FlowEdge
from convoflow.flow.loader import flow_from_dict
from convoflow.flow.node import NodeType


def _edge_pairs(flow):
    return [(e.source, e.target, e.label) for e in flow.edges]


class TestFlowBuilder:
    """Tests for FlowBuilder."""

    def test_linear_chain_links_nodes(self):
        """Test consecutive nodes get default edges."""
        flow = (
            FlowBuilder("linear")
            .start()
            .message("a", "First")
            .message("b", "Second")
            .end()
            .build()
        )

        assert flow.id == "linear"
        assert flow.name == "linear"
        assert _edge_pairs(flow) == [
            ("start", "a", None),
            ("a", "b", None),
            ("b", "end", None),
        ]

    def test_edge_ids_are_sequential(self):
        flow = FlowBuilder("f").start().message("a", "x").end().build()
        assert [e.id for e in flow.edges] == ["e0", "e1"]

    def test_link_false_skips_edge(self):
        """Test link=False starts a detached chain."""
        flow = (
            FlowBuilder("f")
            .start()
            .message("a", "x")
            .message("orphan", "y", link=False)
            .build()
        )

        assert _edge_pairs(flow) == [("start", "a", None)]

    def test_no_edge_after_end(self):
        """Test nodes added after an end node are not linked from it."""
        flow = FlowBuilder("f").start().end("first").message("next", "x").build()
        assert flow.outgoing_edges("first") == []

    def test_condition_branches(self):
        """Test yes/no add labeled edges and nothing links from the condition."""
        flow = (
            FlowBuilder("f")
            .start()
            .condition("ask", operator="contains", value="refund")
                .yes("y")
                .no("n")
            .message("y", "Yes path")
            .end("end_y")
            .message("n", "No path", link=False)
            .end("end_n")
            .build()
        )

        ask_edges = [(e.target, e.label) for e in flow.outgoing_edges("ask")]
        assert ask_edges == [("y", "Yes"), ("n", "No")]
        assert flow.get_node("ask").data.condition.operator == "contains"

    def test_end_condition_without_no_branch(self):
        flow = (
            FlowBuilder("f")
            .start()
            .condition("ask", value="ok")
                .yes("done")
                .end_condition()
            .end("done", link=False)
            .build()
        )

        assert [e.label for e in flow.outgoing_edges("ask")] == ["Yes"]

    def test_dtmf_branches(self):
        """Test DTMF branches are stored in the payload, not as edges."""
        flow = (
            FlowBuilder("f")
            .start()
            .dtmf("menu", "Press 1", branches={"1": "one"}, max_digits=2)
            .end("one", link=False)
            .build()
        )

        data = flow.get_node("menu").data
        assert data.max_digits == 2
        assert data.branch_for("1").target_node_id == "one"
        assert data.branch_for("1").label == "Option 1"
        assert flow.outgoing_edges("menu") == []

    def test_api_call_normalises_method(self):
        flow = (
            FlowBuilder("f")
            .api_call("call", "https://api.example.com/x", method="post", headers={"X-Key": "1"})
            .build()
        )

        data = flow.get_node("call").data
        assert data.method == "POST"
        assert data.headers == (("X-Key", "1"),)

    def test_goto_and_edge(self):
        """Test explicit edges alongside automatic ones."""
        flow = (
            FlowBuilder("f")
            .start()
            .message("loop", "Again")
            .goto("loop")
            .edge("loop", "start", label="restart")
            .build()
        )

        assert FlowEdge("loop", "loop", id="e1") in flow.edges
        assert ("loop", "start", "restart") in _edge_pairs(flow)

    def test_exports(self):
        """Test dict, JSON and YAML exports load back."""
        builder = FlowBuilder("f", "Exported").start().message("a", "Hi").end()

        from_json = flow_from_dict(json.loads(builder.to_json()))
        from_yaml = flow_from_dict(yaml.safe_load(builder.to_yaml()))

        assert builder.to_dict()["name"] == "Exported"
        assert from_json.nodes == builder.build().nodes
        assert from_yaml.edges == builder.build().edges


class TestFlowTemplates:
    """Tests for the bundled templates."""

    def test_refund_flow_shape(self, refund_flow):
        assert len(refund_flow.nodes_of_type(NodeType.START)) == 1
        assert len(refund_flow.nodes_of_type(NodeType.END)) == 2
        assert {e.label for e in refund_flow.outgoing_edges("ask_refund")} == {"Yes", "No"}

    def test_support_menu_branches(self, support_menu_flow):
        data = support_menu_flow.get_node("menu").data
        targets = {b.key: b.target_node_id for b in data.branches}
        assert targets == {"1": "billing_lookup", "2": "tech_assistant", "0": "to_agent"}
