"""
Pipeline Stage Enumerations
"""
from enum import Enum
from typing import Optional, Tuple


class PipelineStage(str, Enum):
    """Stages of the lead-qualification workflow, in pipeline order"""
    NEW_LEAD = "new_lead"
    CALL_1 = "call_1"
    CALL_2 = "call_2"
    MESSAGE = "message"
    RECONTACT = "recontact"
    OUTCOME = "outcome"          # Terminal

    @property
    def is_terminal(self) -> bool:
        return self is PipelineStage.OUTCOME

    @property
    def position(self) -> int:
        return STAGE_ORDER.index(self)

    def next_stage(self) -> Optional["PipelineStage"]:
        """Adjacent stage in pipeline order (None for the terminal stage)."""
        index = self.position + 1
        return STAGE_ORDER[index] if index < len(STAGE_ORDER) else None


STAGE_ORDER: Tuple[PipelineStage, ...] = tuple(PipelineStage)

# Stages the recontact loop may return to
RECONTACT_LOOP_TARGETS = frozenset({PipelineStage.CALL_1, PipelineStage.CALL_2})


class QualificationStatus(str, Enum):
    """Qualification state of a card"""
    QUALIFIED = "qualified"
    UNQUALIFIED = "unqualified"
    UNDETERMINED = "undetermined"


class Qualification(str, Enum):
    """Final qualification recorded in an outcome (outcome sub-states)"""
    QUALIFIED = "qualified"
    UNQUALIFIED = "unqualified"
