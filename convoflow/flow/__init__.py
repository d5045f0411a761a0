"""Conversation flow graph model."""

from convoflow.flow.node import (
    FlowNode,
    NodeType,
    Condition,
    ConditionOperator,
    StartData,
    MessageData,
    ConditionData,
    ApiCallData,
    DTMFBranch,
    DTMFData,
    AssistantData,
    TransferData,
    EndData,
)
from convoflow.flow.graph import (
    Flow,
    FlowEdge,
    get_start_node,
    resolve_default_successor,
    resolve_labeled_successor,
)
from convoflow.flow.condition import evaluate
from convoflow.flow.loader import flow_from_dict, flow_to_dict, load_flow
from convoflow.flow.builder import FlowBuilder, FlowTemplates
from convoflow.flow.validator import FlowValidator, ValidationResult, ValidationIssue

__all__ = [
    "FlowNode",
    "NodeType",
    "Condition",
    "ConditionOperator",
    "StartData",
    "MessageData",
    "ConditionData",
    "ApiCallData",
    "DTMFBranch",
    "DTMFData",
    "AssistantData",
    "TransferData",
    "EndData",
    "Flow",
    "FlowEdge",
    "get_start_node",
    "resolve_default_successor",
    "resolve_labeled_successor",
    "evaluate",
    "flow_from_dict",
    "flow_to_dict",
    "load_flow",
    "FlowBuilder",
    "FlowTemplates",
    "FlowValidator",
    "ValidationResult",
    "ValidationIssue",
]
