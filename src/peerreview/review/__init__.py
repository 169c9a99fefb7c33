"""Review coordination core for peerreview.

This module provides the Mapper, the request-scoped cache of a review
container's records, the ReviewerAllocation entity that enforces the per-phase
reviewer quorum, and the workflow operations built on both.
"""

from peerreview.review.allocation import (
    AllocationState,
    QuorumUnresolvedError,
    ReviewerAllocation,
    resolve_quorum,
)
from peerreview.review.mapper import Mapper
from peerreview.review.workflow import (
    AllocationError,
    allocate_phase,
    configure_phase,
    finish_questions,
    remove_phase,
    reviewed_questions,
    submit_review,
    unallocated_questions,
)

__all__ = [
    "Mapper",
    "ReviewerAllocation",
    "AllocationState",
    "QuorumUnresolvedError",
    "resolve_quorum",
    "AllocationError",
    "configure_phase",
    "remove_phase",
    "allocate_phase",
    "unallocated_questions",
    "reviewed_questions",
    "submit_review",
    "finish_questions",
]
