"""Exceptions raised by the flow engine."""

from typing import Optional


# =============================================================================
# Exceptions
# =============================================================================


class FlowEngineError(Exception):
    """Base exception for flow engine errors."""
    pass


class MalformedFlowError(FlowEngineError):
    """Flow definition cannot be run (bad start node, bad payload, duplicate ids)."""
    pass


class DanglingReferenceError(FlowEngineError):
    """An edge or connection points to a node id that does not exist."""

    def __init__(self, source_id: str, target_id: Optional[str]):
        self.source_id = source_id
        self.target_id = target_id
        super().__init__(
            f"Node {source_id} references missing node {target_id}"
        )


class RunCancelled(FlowEngineError):
    """A continuation belongs to a run that has since been reset."""

    def __init__(self, generation: int):
        self.generation = generation
        super().__init__(f"Run generation {generation} was cancelled")


__all__ = [
    "FlowEngineError",
    "MalformedFlowError",
    "DanglingReferenceError",
    "RunCancelled",
]
