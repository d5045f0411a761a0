"""
Flow Validator.

Structural checks for flow definitions. The interpreter never calls the
validator: a run only needs a single start node, and it recovers from
broken references on its own. Authoring tools and the CLI use it to
surface problems before a flow goes live.
"""

from collections import deque
from dataclasses import dataclass, field
from typing import List, Optional, Set, Tuple

import structlog

from convoflow.flow.graph import NO_LABEL, YES_LABEL, Flow
from convoflow.flow.node import ConditionData, ConditionOperator, DTMFData, NodeType


logger = structlog.get_logger(__name__)


@dataclass
class ValidationIssue:
    """A single validation finding."""

    severity: str  # "error" or "warning"
    message: str
    node_id: Optional[str] = None

    def to_dict(self):
        return {
            "severity": self.severity,
            "message": self.message,
            "node_id": self.node_id,
        }


@dataclass
class ValidationResult:
    """Outcome of validating a flow."""

    valid: bool
    issues: List[ValidationIssue] = field(default_factory=list)

    @property
    def errors(self) -> List[ValidationIssue]:
        return [i for i in self.issues if i.severity == "error"]

    @property
    def warnings(self) -> List[ValidationIssue]:
        return [i for i in self.issues if i.severity == "warning"]


class FlowValidator:
    """
    Validates flow structure.

    Checks:
    - Exactly one start node
    - Edge, connection and branch targets exist
    - Every non-end node has a way forward
    - Condition nodes have a usable condition and both branches
    - Unreachable nodes
    """

    def validate(self, flow: Flow) -> ValidationResult:
        """
        Validate a complete flow.

        Args:
            flow: Flow to validate

        Returns:
            ValidationResult with issues found
        """
        issues: List[ValidationIssue] = []

        issues.extend(self._validate_start(flow))
        issues.extend(self._validate_references(flow))
        issues.extend(self._validate_successors(flow))
        issues.extend(self._validate_conditions(flow))
        issues.extend(self._validate_reachability(flow))

        valid = all(i.severity != "error" for i in issues)

        logger.debug(
            "flow_validated",
            flow_id=flow.id,
            valid=valid,
            issue_count=len(issues),
        )

        return ValidationResult(valid=valid, issues=issues)

    def _validate_start(self, flow: Flow) -> List[ValidationIssue]:
        starts = flow.nodes_of_type(NodeType.START)
        if not starts:
            return [ValidationIssue("error", "Flow must have a start node")]
        if len(starts) > 1:
            return [
                ValidationIssue("error", "Flow has more than one start node", node_id=n.id)
                for n in starts
            ]
        return []

    def _validate_references(self, flow: Flow) -> List[ValidationIssue]:
        issues = []
        seen_edges: Set[Tuple[str, str, Optional[str]]] = set()

        for edge in flow.edges:
            key = (edge.source, edge.target, edge.label)
            if key in seen_edges:
                issues.append(ValidationIssue(
                    "warning",
                    f"Duplicate edge {edge.source} -> {edge.target}",
                    node_id=edge.source,
                ))
            seen_edges.add(key)

            if edge.source not in flow.nodes:
                issues.append(ValidationIssue(
                    "error",
                    f"Edge source does not exist: {edge.source}",
                ))
            if edge.target not in flow.nodes:
                issues.append(ValidationIssue(
                    "error",
                    f"Edge target does not exist: {edge.target}",
                    node_id=edge.source,
                ))

        for node in flow:
            targets = list(node.connections)
            if isinstance(node.data, ConditionData):
                targets.extend(t for t in (node.data.yes_connection, node.data.no_connection) if t)
            if isinstance(node.data, DTMFData):
                targets.extend(b.target_node_id for b in node.data.branches if b.target_node_id)

            for target in targets:
                if target not in flow.nodes:
                    issues.append(ValidationIssue(
                        "error",
                        f"Reference to missing node: {target}",
                        node_id=node.id,
                    ))

        return issues

    def _validate_successors(self, flow: Flow) -> List[ValidationIssue]:
        issues = []
        for node in flow:
            if node.type == NodeType.END:
                continue
            if not self._successor_ids(flow, node.id):
                issues.append(ValidationIssue(
                    "error",
                    f"Node has no successor: {node.id}",
                    node_id=node.id,
                ))
        return issues

    def _validate_conditions(self, flow: Flow) -> List[ValidationIssue]:
        issues = []
        for node in flow.nodes_of_type(NodeType.CONDITION):
            condition = node.data.condition
            if condition is None:
                issues.append(ValidationIssue(
                    "warning",
                    "Condition node has no condition and always answers No",
                    node_id=node.id,
                ))
            elif condition.operator not in {op.value for op in ConditionOperator}:
                issues.append(ValidationIssue(
                    "warning",
                    f"Unsupported operator {condition.operator!r} always answers No",
                    node_id=node.id,
                ))

            labels = {e.label for e in flow.outgoing_edges(node.id)}
            if YES_LABEL not in labels and not node.data.yes_connection:
                issues.append(ValidationIssue("warning", "Condition has no Yes branch", node_id=node.id))
            if NO_LABEL not in labels and not node.data.no_connection:
                issues.append(ValidationIssue("warning", "Condition has no No branch", node_id=node.id))
        return issues

    def _validate_reachability(self, flow: Flow) -> List[ValidationIssue]:
        starts = flow.nodes_of_type(NodeType.START)
        if len(starts) != 1:
            return []

        reachable: Set[str] = set()
        queue = deque([starts[0].id])
        while queue:
            node_id = queue.popleft()
            if node_id in reachable or node_id not in flow.nodes:
                continue
            reachable.add(node_id)
            queue.extend(self._successor_ids(flow, node_id))

        return [
            ValidationIssue("warning", f"Node is unreachable: {node_id}", node_id=node_id)
            for node_id in flow.nodes
            if node_id not in reachable
        ]

    def _successor_ids(self, flow: Flow, node_id: str) -> List[str]:
        """Every id a run could move to from ``node_id``."""
        node = flow.get_node(node_id)
        ids = [e.target for e in flow.outgoing_edges(node_id)]
        if node is None:
            return ids

        ids.extend(node.connections)
        if isinstance(node.data, ConditionData):
            ids.extend(t for t in (node.data.yes_connection, node.data.no_connection) if t)
        if isinstance(node.data, DTMFData):
            ids.extend(b.target_node_id for b in node.data.branches if b.target_node_id)
        return ids
