"""Flow graph: nodes, edges and successor lookup."""

from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Optional, Tuple

import structlog

from convoflow.exceptions import DanglingReferenceError, MalformedFlowError
from convoflow.flow.node import FlowNode, NodeType


logger = structlog.get_logger(__name__)

YES_LABEL = "Yes"
NO_LABEL = "No"


@dataclass(frozen=True)
class FlowEdge:
    """Directed connection between two nodes. No label means default successor."""
    source: str
    target: str
    label: Optional[str] = None
    id: Optional[str] = None

    @property
    def is_default(self) -> bool:
        return not self.label

    def to_dict(self) -> Dict[str, Optional[str]]:
        return {
            "id": self.id,
            "source": self.source,
            "target": self.target,
            "label": self.label,
        }


@dataclass(frozen=True)
class Flow:
    """
    A complete conversational script.

    Flows arrive fully built from the authoring side and are never
    mutated while a run is in progress.
    """

    nodes: Dict[str, FlowNode]
    edges: Tuple[FlowEdge, ...] = ()
    id: str = "flow"
    name: str = "Untitled flow"
    _outgoing: Dict[str, List[FlowEdge]] = field(
        default_factory=dict, init=False, repr=False, compare=False
    )

    def __post_init__(self):
        for node_id, node in self.nodes.items():
            if node_id != node.id:
                raise MalformedFlowError(
                    f"Node keyed as {node_id} has id {node.id}"
                )

        outgoing: Dict[str, List[FlowEdge]] = {}
        for edge in self.edges:
            outgoing.setdefault(edge.source, []).append(edge)
        object.__setattr__(self, "_outgoing", outgoing)

    def __hash__(self):
        return hash((self.id, self.name, self.edges))

    @classmethod
    def from_parts(
        cls,
        nodes: List[FlowNode],
        edges: Optional[List[FlowEdge]] = None,
        flow_id: str = "flow",
        name: str = "Untitled flow",
    ) -> "Flow":
        """Build a flow from node and edge lists, rejecting duplicate node ids."""
        node_map: Dict[str, FlowNode] = {}
        for node in nodes:
            if node.id in node_map:
                raise MalformedFlowError(f"Duplicate node ID: {node.id}")
            node_map[node.id] = node
        return cls(nodes=node_map, edges=tuple(edges or ()), id=flow_id, name=name)

    def get_node(self, node_id: str) -> Optional[FlowNode]:
        return self.nodes.get(node_id)

    def outgoing_edges(self, node_id: str) -> List[FlowEdge]:
        """Edges leaving a node, in definition order."""
        return list(self._outgoing.get(node_id, ()))

    def nodes_of_type(self, node_type: NodeType) -> List[FlowNode]:
        return [n for n in self.nodes.values() if n.type == node_type]

    def __iter__(self) -> Iterator[FlowNode]:
        return iter(self.nodes.values())

    def __len__(self) -> int:
        return len(self.nodes)


# =============================================================================
# Lookup
# =============================================================================


def get_start_node(flow: Flow) -> FlowNode:
    """
    Get the unique start node of a flow.

    Raises:
        MalformedFlowError: If the flow has zero or several start nodes
    """
    starts = flow.nodes_of_type(NodeType.START)

    if not starts:
        raise MalformedFlowError(f"Flow {flow.id} has no start node")
    if len(starts) > 1:
        ids = ", ".join(n.id for n in starts)
        raise MalformedFlowError(f"Flow {flow.id} has {len(starts)} start nodes: {ids}")

    return starts[0]


def _first_existing(
    flow: Flow,
    source_id: str,
    candidates: List[str],
) -> Optional[FlowNode]:
    """Return the first candidate present in the flow; raise if all dangle."""
    if not candidates:
        return None

    for target_id in candidates:
        node = flow.get_node(target_id)
        if node is not None:
            return node
        logger.warning(
            "dangling_reference",
            flow_id=flow.id,
            source_id=source_id,
            target_id=target_id,
        )

    raise DanglingReferenceError(source_id, candidates[0])


def resolve_default_successor(flow: Flow, node_id: str) -> Optional[FlowNode]:
    """
    Resolve the unconditional successor of a node.

    Unlabeled edges are tried first, then the first id of the node's legacy
    ``connections`` list. Returns None when the node is terminal.

    Raises:
        DanglingReferenceError: If every candidate points at a missing node
    """
    candidates = [e.target for e in flow.outgoing_edges(node_id) if e.is_default]

    node = flow.get_node(node_id)
    if node is not None and node.connections:
        candidates.append(node.connections[0])

    return _first_existing(flow, node_id, candidates)


def resolve_labeled_successor(
    flow: Flow,
    node_id: str,
    label: str,
) -> Optional[FlowNode]:
    """
    Resolve the successor reached through an edge with exactly ``label``.

    Labels compare case-sensitively. Legacy ``connections`` carry no labels
    and are not consulted.

    Raises:
        DanglingReferenceError: If every matching edge points at a missing node
    """
    candidates = [
        e.target for e in flow.outgoing_edges(node_id)
        if e.label == label
    ]
    return _first_existing(flow, node_id, candidates)


def resolve_reference(flow: Flow, source_id: str, target_id: Optional[str]) -> Optional[FlowNode]:
    """
    Resolve a direct node reference stored in a node payload.

    Raises:
        DanglingReferenceError: If ``target_id`` is set but missing
    """
    if not target_id:
        return None
    return _first_existing(flow, source_id, [target_id])
