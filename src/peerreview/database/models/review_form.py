"""Review form model for peerreview.

Defines the ReviewForm table and ReviewFormState enum. A review form is one
reviewer's response to one cycle question: it is created pending when the
reviewer is allocated and becomes submitted once the reviewer scores it.
"""

from __future__ import annotations

import enum

from sqlalchemy import ForeignKey, Integer, Text
from sqlalchemy.orm import Mapped, mapped_column

from peerreview.database.models.base import Base, CacheBucket, EntityRecord, TimestampMixin
from peerreview.rubrics import (
    RATING_FIELDS,
    Evaluation,
    Expertise,
    KnowledgeDimension,
    Rating,
    ReviewScores,
    Taxonomy,
)


class ReviewFormState(str, enum.Enum):
    """Lifecycle of a review form.

    States:
        pending: Reviewer allocated, no scores submitted yet.
        submitted: Reviewer submitted scores.
    """

    pending = "pending"
    submitted = "submitted"


class ReviewForm(EntityRecord, TimestampMixin, Base):
    """One reviewer's response to one cycle question.

    Attributes:
        id: Integer primary key.
        review_obj: Id of the owning review container.
        question_id: Id of the reviewed CycleQuestion.
        reviewer: User id of the reviewer.
        state: Pending until the reviewer submits scores.
        desc_corr .. answ_expr: Ratings of description, question and answers.
        taxonomy: Cognitive process the question targets.
        knowledge_dimension: Knowledge dimension the question targets.
        evaluation: Overall verdict.
        expertise: Reviewer's self-assessed expertise.
        comment: Free-text remarks.
    """

    __tablename__ = "review_forms"

    FILTERABLE_FIELDS = (
        "id",
        "review_obj",
        "question_id",
        "reviewer",
        "state",
        *RATING_FIELDS,
        "taxonomy",
        "knowledge_dimension",
        "evaluation",
        "expertise",
    )
    CACHE_BUCKET = CacheBucket.REVIEW_FORMS

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    review_obj: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    question_id: Mapped[int] = mapped_column(
        ForeignKey("cycle_questions.id"),
        nullable=False,
    )
    reviewer: Mapped[int] = mapped_column(Integer, nullable=False)
    state: Mapped[ReviewFormState] = mapped_column(
        default=ReviewFormState.pending,
        nullable=False,
    )
    desc_corr: Mapped[Rating | None] = mapped_column(nullable=True)
    desc_relv: Mapped[Rating | None] = mapped_column(nullable=True)
    desc_expr: Mapped[Rating | None] = mapped_column(nullable=True)
    quest_corr: Mapped[Rating | None] = mapped_column(nullable=True)
    quest_relv: Mapped[Rating | None] = mapped_column(nullable=True)
    quest_expr: Mapped[Rating | None] = mapped_column(nullable=True)
    answ_corr: Mapped[Rating | None] = mapped_column(nullable=True)
    answ_relv: Mapped[Rating | None] = mapped_column(nullable=True)
    answ_expr: Mapped[Rating | None] = mapped_column(nullable=True)
    taxonomy: Mapped[Taxonomy | None] = mapped_column(nullable=True)
    knowledge_dimension: Mapped[KnowledgeDimension | None] = mapped_column(nullable=True)
    evaluation: Mapped[Evaluation | None] = mapped_column(nullable=True)
    expertise: Mapped[Expertise | None] = mapped_column(nullable=True)
    comment: Mapped[str | None] = mapped_column(Text, nullable=True)

    def apply_scores(self, scores: ReviewScores) -> None:
        """Copy submitted scores onto the form and mark it submitted."""
        for name, value in scores.model_dump().items():
            setattr(self, name, value)
        self.state = ReviewFormState.submitted

    @property
    def is_submitted(self) -> bool:
        return self.state == ReviewFormState.submitted
