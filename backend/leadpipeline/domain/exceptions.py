"""
Pipeline Exceptions
"""
from typing import Optional


class PipelineError(Exception):
    """Base class for lead pipeline errors."""
    def __init__(self, message: str):
        self.message = message
        super().__init__(self.message)


class InvalidTransitionError(PipelineError):
    """Stage move violates the stage order or lacks a required outcome payload."""
    def __init__(self, message: str, current_stage: Optional[str] = None, next_stage: Optional[str] = None):
        self.current_stage = current_stage
        self.next_stage = next_stage
        super().__init__(message)


class NoCapacityError(PipelineError):
    """No active agent has spare capacity for the lead."""
    def __init__(self, message: str = "No commercial agent with spare capacity", lead_id: Optional[str] = None):
        self.lead_id = lead_id
        super().__init__(message)


class CardNotFoundError(PipelineError):
    def __init__(self, card_id: str):
        self.card_id = card_id
        super().__init__(f"Pipeline card not found: {card_id}")


class AgentNotFoundError(PipelineError):
    def __init__(self, agent_id: str):
        self.agent_id = agent_id
        super().__init__(f"Commercial team member not found: {agent_id}")


class TaskNotFoundError(PipelineError):
    def __init__(self, task_id: str):
        self.task_id = task_id
        super().__init__(f"Lead task not found: {task_id}")


class InvalidAttemptError(PipelineError):
    """Contact attempt rejected (e.g. timestamp too far in the future)."""


class StorageError(PipelineError):
    """Persistence boundary failed after retries were exhausted."""
    def __init__(self, message: str, operation: Optional[str] = None):
        self.operation = operation
        super().__init__(message)


class NotificationError(PipelineError):
    """Notification delivery failed. Logged, never propagated past the scheduler."""
