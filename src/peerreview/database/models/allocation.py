"""Reviewer allocation and cycle phase models for peerreview.

AllocationRow stores one reviewer of one (phase, author, review container)
allocation per row; the ReviewerAllocation entity aggregates these rows.
CyclePhase holds the per-phase configuration of a review container, most
importantly the number of reviewers an allocation needs.
"""

from __future__ import annotations

from sqlalchemy import Integer
from sqlalchemy.orm import Mapped, mapped_column

from peerreview.database.models.base import Base, Filterable


class AllocationRow(Filterable, Base):
    """One reviewer assigned to an author's questions in one phase.

    Attributes:
        phase_nr: Review phase number.
        review_obj: Id of the owning review container.
        author: User id of the reviewed author.
        reviewer: User id of the allocated reviewer.
    """

    __tablename__ = "reviewer_allocations"

    FILTERABLE_FIELDS = ("phase_nr", "review_obj", "author", "reviewer")

    phase_nr: Mapped[int] = mapped_column(Integer, primary_key=True)
    review_obj: Mapped[int] = mapped_column(Integer, primary_key=True)
    author: Mapped[int] = mapped_column(Integer, primary_key=True)
    reviewer: Mapped[int] = mapped_column(Integer, primary_key=True)


class CyclePhase(Filterable, Base):
    """Configuration of one review phase.

    Attributes:
        review_obj: Id of the owning review container.
        phase_nr: Review phase number.
        nr_reviewers: Distinct reviewers an allocation of this phase needs.
    """

    __tablename__ = "cycle_phases"

    FILTERABLE_FIELDS = ("review_obj", "phase_nr", "nr_reviewers")

    review_obj: Mapped[int] = mapped_column(Integer, primary_key=True)
    phase_nr: Mapped[int] = mapped_column(Integer, primary_key=True)
    nr_reviewers: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
