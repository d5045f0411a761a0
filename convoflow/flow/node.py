"""Flow node definitions."""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional, Tuple, Union


class NodeType(str, Enum):
    """Types of flow nodes."""
    START = "start"
    MESSAGE = "message"  # Send a message
    CONDITION = "condition"  # Branch on user input
    API_CALL = "api_call"  # Call an external API
    DTMF = "dtmf"  # Collect keypad digits
    ASSISTANT = "assistant"  # Hand the turn to an AI assistant
    TRANSFER = "transfer"  # Transfer to human
    END = "end"


class ConditionOperator(str, Enum):
    """Operators understood by the condition evaluator."""
    EQUALS = "equals"
    CONTAINS = "contains"


@dataclass(frozen=True)
class Condition:
    """
    Comparison applied to user input at a condition node.

    ``operator`` is kept as a plain string so definitions written with an
    operator the evaluator does not know still load; they evaluate to False.
    """

    operator: str = ConditionOperator.EQUALS.value
    value: str = ""
    variable: str = "user_input"  # Display only

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Condition":
        operator = data.get("operator") or ConditionOperator.EQUALS.value
        if isinstance(operator, ConditionOperator):
            operator = operator.value
        value = data.get("value")
        return cls(
            operator=str(operator),
            value="" if value is None else str(value),
            variable=data.get("variable") or "user_input",
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "operator": self.operator,
            "value": self.value,
            "variable": self.variable,
        }


# =============================================================================
# Node payloads
# =============================================================================


@dataclass(frozen=True)
class StartData:
    """Payload of a start node."""

    def to_dict(self) -> Dict[str, Any]:
        return {}


@dataclass(frozen=True)
class MessageData:
    """Payload of a message node."""
    content: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {"content": self.content}


@dataclass(frozen=True)
class ConditionData:
    """Payload of a condition node."""
    condition: Optional[Condition] = None
    # Legacy branch targets, used when no Yes/No edge exists
    yes_connection: Optional[str] = None
    no_connection: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "condition": self.condition.to_dict() if self.condition else None,
            "yes_connection": self.yes_connection,
            "no_connection": self.no_connection,
        }


@dataclass(frozen=True)
class ApiCallData:
    """Payload of an API call node."""
    method: str = "GET"
    url: str = "https://api.example.com"
    headers: Tuple[Tuple[str, str], ...] = ()
    body: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "method": self.method,
            "url": self.url,
            "headers": dict(self.headers),
            "body": self.body,
        }


@dataclass(frozen=True)
class DTMFBranch:
    """A keypad branch of a DTMF node."""
    key: str
    label: str = ""
    target_node_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "key": self.key,
            "label": self.label,
            "target_node_id": self.target_node_id,
        }


@dataclass(frozen=True)
class DTMFData:
    """Payload of a DTMF node."""
    prompt: str = "Please enter your selection"
    timeout: int = 5  # Seconds
    max_digits: int = 1
    branches: Tuple[DTMFBranch, ...] = ()

    def branch_for(self, digits: str) -> Optional[DTMFBranch]:
        """Get the branch bound to the given digits, if any."""
        for branch in self.branches:
            if branch.key == digits:
                return branch
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "prompt": self.prompt,
            "timeout": self.timeout,
            "max_digits": self.max_digits,
            "branches": [b.to_dict() for b in self.branches],
        }


@dataclass(frozen=True)
class AssistantData:
    """Payload of an AI assistant node."""
    persona_id: Optional[str] = None
    persona_name: Optional[str] = None
    handoff_condition: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "persona_id": self.persona_id,
            "persona_name": self.persona_name,
            "handoff_condition": self.handoff_condition,
        }


@dataclass(frozen=True)
class TransferData:
    """Payload of a transfer node."""
    transfer_to: Optional[str] = None  # Department or number

    def to_dict(self) -> Dict[str, Any]:
        return {"transfer_to": self.transfer_to}


@dataclass(frozen=True)
class EndData:
    """Payload of an end node."""

    def to_dict(self) -> Dict[str, Any]:
        return {}


NodeData = Union[
    StartData,
    MessageData,
    ConditionData,
    ApiCallData,
    DTMFData,
    AssistantData,
    TransferData,
    EndData,
]

NODE_DATA_TYPES: Dict[NodeType, type] = {
    NodeType.START: StartData,
    NodeType.MESSAGE: MessageData,
    NodeType.CONDITION: ConditionData,
    NodeType.API_CALL: ApiCallData,
    NodeType.DTMF: DTMFData,
    NodeType.ASSISTANT: AssistantData,
    NodeType.TRANSFER: TransferData,
    NodeType.END: EndData,
}


@dataclass(frozen=True)
class FlowNode:
    """
    A node in the conversation flow.

    ``data`` holds the payload variant matching ``type``; ``connections``
    is the pre-edge adjacency list kept for older definitions.
    """

    id: str
    type: NodeType
    data: Optional[NodeData] = None
    label: str = ""
    connections: Tuple[str, ...] = ()

    def __post_init__(self):
        expected = NODE_DATA_TYPES[self.type]
        if self.data is None:
            object.__setattr__(self, "data", expected())
        elif not isinstance(self.data, expected):
            raise TypeError(
                f"Node {self.id} of type {self.type.value} needs "
                f"{expected.__name__}, got {type(self.data).__name__}"
            )

    @property
    def is_terminal(self) -> bool:
        return self.type == NodeType.END

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "id": self.id,
            "type": self.type.value,
            "label": self.label,
            "data": self.data.to_dict(),
            "connections": list(self.connections),
        }

    def __repr__(self):
        return f"<FlowNode id={self.id} type={self.type.value} label='{self.label}'>"
