"""Session state and transcript."""

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict, Iterator, List, Optional

import structlog


logger = structlog.get_logger(__name__)


class SessionStatus(str, Enum):
    """Status of a run."""
    IDLE = "idle"
    RUNNING = "running"
    WAITING_FOR_INPUT = "waiting_for_input"
    COMPLETED = "completed"


class MessageRole(str, Enum):
    """Who produced a transcript message."""
    BOT = "bot"
    USER = "user"
    SYSTEM = "system"


@dataclass(frozen=True)
class Message:
    """A single transcript entry. Immutable once created."""

    role: MessageRole
    content: str
    node_id: Optional[str] = None
    id: str = field(default_factory=lambda: f"msg_{uuid.uuid4().hex[:12]}")
    timestamp: datetime = field(default_factory=datetime.utcnow)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "role": self.role.value,
            "content": self.content,
            "node_id": self.node_id,
            "timestamp": self.timestamp.isoformat(),
        }

    def __str__(self):
        return f"{self.role.value}: {self.content}"


TranscriptListener = Callable[[Message], None]


class Transcript:
    """
    Ordered, append-only log of messages produced by a run.

    Rendering surfaces can either poll it (it behaves like a read-only
    sequence) or subscribe to be told about each appended message.
    """

    def __init__(self):
        self._messages: List[Message] = []
        self._listeners: List[TranscriptListener] = []

    def append(self, message: Message) -> None:
        """Append a message and notify subscribers."""
        self._messages.append(message)
        for listener in list(self._listeners):
            listener(message)

    def subscribe(self, listener: TranscriptListener) -> Callable[[], None]:
        """
        Register a listener for new messages.

        Returns:
            A callable that removes the listener
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def by_role(self, role: MessageRole) -> List[Message]:
        return [m for m in self._messages if m.role == role]

    @property
    def messages(self) -> List[Message]:
        """Copy of the messages, oldest first."""
        return list(self._messages)

    def __len__(self) -> int:
        return len(self._messages)

    def __iter__(self) -> Iterator[Message]:
        return iter(list(self._messages))

    def __getitem__(self, index):
        return self._messages[index]

    def to_list(self) -> List[Dict[str, Any]]:
        return [m.to_dict() for m in self._messages]


@dataclass
class Session:
    """
    One live execution of a flow.

    ``generation`` identifies the run; continuations holding an older
    generation must not touch the session.
    """

    generation: int = 0
    flow_id: Optional[str] = None
    current_node_id: Optional[str] = None
    status: SessionStatus = SessionStatus.IDLE
    transcript: Transcript = field(default_factory=Transcript)
    visited_nodes: List[str] = field(default_factory=list)
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    @property
    def pending_input(self) -> bool:
        return self.status == SessionStatus.WAITING_FOR_INPUT

    def move_to(self, node_id: str) -> None:
        """Record arrival at a node."""
        logger.debug(
            "session_transition",
            flow_id=self.flow_id,
            from_node=self.current_node_id,
            to_node=node_id,
            generation=self.generation,
        )
        self.current_node_id = node_id
        self.visited_nodes.append(node_id)

    def complete(self) -> None:
        self.status = SessionStatus.COMPLETED
        self.completed_at = datetime.utcnow()

    def get_duration_seconds(self) -> float:
        """Get run duration in seconds."""
        if not self.started_at:
            return 0.0
        end = self.completed_at or datetime.utcnow()
        return (end - self.started_at).total_seconds()

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for rendering surfaces."""
        return {
            "flow_id": self.flow_id,
            "generation": self.generation,
            "current_node_id": self.current_node_id,
            "status": self.status.value,
            "pending_input": self.pending_input,
            "visited_nodes": list(self.visited_nodes),
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "transcript": self.transcript.to_list(),
        }
