"""SQLAlchemy ORM models for peerreview.

This module defines the schema of a review container: cycle questions,
review forms, reviewer allocation rows and cycle phase configuration.

All models use SQLAlchemy 2.0 declarative style with Mapped[] type annotations.
"""

from peerreview.database.models.allocation import AllocationRow, CyclePhase
from peerreview.database.models.base import (
    Base,
    CacheBucket,
    EntityRecord,
    Filterable,
    TimestampMixin,
    UnknownAttributeError,
)
from peerreview.database.models.cycle_question import CycleQuestion
from peerreview.database.models.review_form import ReviewForm, ReviewFormState

__all__ = [
    "Base",
    "TimestampMixin",
    "CacheBucket",
    "Filterable",
    "EntityRecord",
    "UnknownAttributeError",
    "CycleQuestion",
    "ReviewForm",
    "ReviewFormState",
    "AllocationRow",
    "CyclePhase",
]
