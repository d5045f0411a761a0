"""
Loading and dumping flow definitions.

Accepts the editor's export shape (camelCase payload keys, node label
inside ``data``) as well as the snake_case shape produced by
:func:`flow_to_dict`.
"""

import json
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import structlog
import yaml

from convoflow.exceptions import MalformedFlowError
from convoflow.flow.graph import NO_LABEL, YES_LABEL, Flow, FlowEdge
from convoflow.flow.node import (
    ApiCallData,
    AssistantData,
    Condition,
    ConditionData,
    DTMFBranch,
    DTMFData,
    EndData,
    FlowNode,
    MessageData,
    NodeData,
    NodeType,
    StartData,
    TransferData,
)


logger = structlog.get_logger(__name__)


def _pick(data: Dict[str, Any], *keys: str, default: Any = None) -> Any:
    """Get the first key present in ``data``."""
    for key in keys:
        if key in data and data[key] is not None:
            return data[key]
    return default


def _parse_condition_data(data: Dict[str, Any]) -> ConditionData:
    raw = data.get("condition")
    return ConditionData(
        condition=Condition.from_dict(raw) if isinstance(raw, dict) else None,
        yes_connection=_pick(data, "yes_connection", "yesConnection"),
        no_connection=_pick(data, "no_connection", "noConnection"),
    )


def _parse_api_call_data(data: Dict[str, Any]) -> ApiCallData:
    config = _pick(data, "api_config", "apiConfig", default=data)
    headers = config.get("headers") or {}
    return ApiCallData(
        method=str(config.get("method") or "GET").upper(),
        url=config.get("url") or "https://api.example.com",
        headers=tuple(sorted((str(k), str(v)) for k, v in headers.items())),
        body=config.get("body"),
    )


def _parse_dtmf_data(data: Dict[str, Any]) -> DTMFData:
    config = _pick(data, "dtmf_config", "dtmfConfig", default=data)
    branches = tuple(
        DTMFBranch(
            key=str(b["key"]),
            label=b.get("label", ""),
            target_node_id=_pick(b, "target_node_id", "targetNodeId"),
        )
        for b in config.get("branches") or []
    )
    return DTMFData(
        prompt=config.get("prompt") or "Please enter your selection",
        timeout=int(config.get("timeout") or 5),
        max_digits=int(_pick(config, "max_digits", "maxDigits", default=1) or 1),
        branches=branches,
    )


def _parse_assistant_data(data: Dict[str, Any]) -> AssistantData:
    config = _pick(data, "assistant_config", "assistantConfig", default=data)
    return AssistantData(
        persona_id=_pick(config, "persona_id", "personaId"),
        persona_name=_pick(config, "persona_name", "personaName"),
        handoff_condition=_pick(config, "handoff_condition", "handoffCondition"),
    )


def _parse_node_data(node_type: NodeType, data: Dict[str, Any]) -> NodeData:
    if node_type == NodeType.START:
        return StartData()
    if node_type == NodeType.MESSAGE:
        return MessageData(content=data.get("content"))
    if node_type == NodeType.CONDITION:
        return _parse_condition_data(data)
    if node_type == NodeType.API_CALL:
        return _parse_api_call_data(data)
    if node_type == NodeType.DTMF:
        return _parse_dtmf_data(data)
    if node_type == NodeType.ASSISTANT:
        return _parse_assistant_data(data)
    if node_type == NodeType.TRANSFER:
        return TransferData(transfer_to=_pick(data, "transfer_to", "transferTo"))
    return EndData()


def node_from_dict(raw: Dict[str, Any]) -> FlowNode:
    """
    Create a node from its dictionary form.

    Raises:
        MalformedFlowError: On a missing id or an unknown node type
    """
    node_id = raw.get("id")
    if not node_id:
        raise MalformedFlowError(f"Node without id: {raw!r}")

    try:
        node_type = NodeType(raw.get("type"))
    except ValueError:
        raise MalformedFlowError(
            f"Node {node_id} has unsupported type {raw.get('type')!r}"
        ) from None

    data = raw.get("data") or {}
    try:
        payload = _parse_node_data(node_type, data)
    except (KeyError, TypeError, ValueError, AttributeError) as e:
        raise MalformedFlowError(f"Node {node_id} has an invalid payload: {e}") from e

    return FlowNode(
        id=str(node_id),
        type=node_type,
        data=payload,
        label=raw.get("label") or data.get("label") or "",
        connections=tuple(str(c) for c in raw.get("connections") or ()),
    )


def _edge_label(value: Any) -> Optional[str]:
    # YAML 1.1 reads unquoted Yes/No as booleans
    if isinstance(value, bool):
        return YES_LABEL if value else NO_LABEL
    if value is None or value == "":
        return None
    return str(value)


def edge_from_dict(raw: Dict[str, Any]) -> FlowEdge:
    try:
        return FlowEdge(
            source=str(raw["source"]),
            target=str(raw["target"]),
            label=_edge_label(raw.get("label")),
            id=raw.get("id"),
        )
    except KeyError as e:
        raise MalformedFlowError(f"Edge missing field {e}: {raw!r}") from e


def flow_from_dict(data: Dict[str, Any]) -> Flow:
    """
    Create a flow from its dictionary form.

    Raises:
        MalformedFlowError: If the definition cannot be loaded
    """
    if not isinstance(data, dict):
        raise MalformedFlowError("Flow definition must be a mapping")

    nodes: List[FlowNode] = [node_from_dict(n) for n in data.get("nodes") or []]
    edges: List[FlowEdge] = [edge_from_dict(e) for e in data.get("edges") or []]

    flow = Flow.from_parts(
        nodes,
        edges,
        flow_id=str(data.get("id") or "flow"),
        name=data.get("name") or "Untitled flow",
    )

    logger.debug(
        "flow_loaded",
        flow_id=flow.id,
        node_count=len(flow.nodes),
        edge_count=len(flow.edges),
    )

    return flow


def flow_to_dict(flow: Flow) -> Dict[str, Any]:
    """Convert a flow to its dictionary form."""
    return {
        "id": flow.id,
        "name": flow.name,
        "nodes": [node.to_dict() for node in flow.nodes.values()],
        "edges": [edge.to_dict() for edge in flow.edges],
    }


def load_flow(path: Union[str, Path], format: Optional[str] = None) -> Flow:
    """
    Load a flow from a JSON or YAML file.

    Args:
        path: File to read
        format: ``json`` or ``yaml``; guessed from the suffix when omitted

    Raises:
        MalformedFlowError: If the file cannot be parsed into a flow
    """
    path = Path(path)
    text = path.read_text(encoding="utf-8")

    if format is None:
        format = "yaml" if path.suffix.lower() in (".yaml", ".yml") else "json"

    try:
        if format == "yaml":
            data = yaml.safe_load(text)
        else:
            data = json.loads(text)
    except (yaml.YAMLError, json.JSONDecodeError) as e:
        raise MalformedFlowError(f"Could not parse {path}: {e}") from e

    return flow_from_dict(data)
