"""Cycle question model for peerreview.

Defines the CycleQuestion table. A cycle question is one authored question
progressing through the review phases of a review container. Questions are
created by the authoring flow; this layer loads them, marks them finished and
saves them back, but never deletes them.
"""

from __future__ import annotations

from sqlalchemy import Boolean, Integer, Text
from sqlalchemy.orm import Mapped, mapped_column

from peerreview.database.models.base import Base, CacheBucket, EntityRecord, TimestampMixin


class CycleQuestion(EntityRecord, TimestampMixin, Base):
    """An authored question under review.

    Attributes:
        id: Integer primary key.
        review_obj: Id of the owning review container.
        question_id: Id of the authored question in the host system.
        author: User id of the author.
        phase_nr: Review phase the question is currently in.
        finished: True once the question left the review cycle.
        title: Question title, passed through to collaborators.
    """

    __tablename__ = "cycle_questions"

    FILTERABLE_FIELDS = (
        "id",
        "review_obj",
        "question_id",
        "author",
        "phase_nr",
        "finished",
        "title",
    )
    CACHE_BUCKET = CacheBucket.CYCLE_QUESTIONS

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    review_obj: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    question_id: Mapped[int] = mapped_column(Integer, nullable=False)
    author: Mapped[int] = mapped_column(Integer, nullable=False)
    phase_nr: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    finished: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    title: Mapped[str | None] = mapped_column(Text, nullable=True)

    def mark_finished(self) -> bool:
        """Remove the question from the review cycle.

        Returns:
            True if the question was not finished before.
        """
        if self.finished:
            return False
        self.finished = True
        return True
