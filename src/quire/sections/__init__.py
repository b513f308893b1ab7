"""
quire.sections - Section mutation engine, batches and moves
"""

from quire.sections.engine import (
    OPERATIONS,
    SectionEditResult,
    SectionLimits,
    apply_section_operation,
)
from quire.sections.history import MutationEntry, MutationLog
from quire.sections.operations import (
    MAX_BATCH_SIZE,
    BatchResult,
    MoveResult,
    apply_batch,
    edit_section,
    move_section,
)

__all__ = [
    "MAX_BATCH_SIZE",
    "OPERATIONS",
    "BatchResult",
    "MoveResult",
    "MutationEntry",
    "MutationLog",
    "SectionEditResult",
    "SectionLimits",
    "apply_batch",
    "apply_section_operation",
    "edit_section",
    "move_section",
]
