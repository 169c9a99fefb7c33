"""Initial schema for peerreview.

Creates the tables of a review container: cycle_questions, review_forms,
reviewer_allocations and cycle_phases, plus the enum types of the review
form state and scoring rubrics.

Revision ID: 001
Revises: None
Create Date: 2026-10-16
"""

from __future__ import annotations

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

# Enum type names match the ones SQLAlchemy derives from the model annotations
ENUM_TYPES: dict[str, tuple[str, ...]] = {
    "reviewformstate": ("pending", "submitted"),
    "rating": ("good", "correct", "wrong"),
    "taxonomy": ("remember", "understand", "apply", "analyze", "evaluate", "create"),
    "knowledgedimension": ("factual", "conceptual", "procedural", "metacognitive"),
    "evaluation": ("accepted", "revision", "rejected"),
    "expertise": ("none", "low", "medium", "high", "expert"),
}

RATING_COLUMNS = (
    "desc_corr",
    "desc_relv",
    "desc_expr",
    "quest_corr",
    "quest_relv",
    "quest_expr",
    "answ_corr",
    "answ_relv",
    "answ_expr",
)


def _enum(name: str) -> sa.Enum:
    return sa.Enum(*ENUM_TYPES[name], name=name, create_type=False)


def upgrade() -> None:
    for name, values in ENUM_TYPES.items():
        sa.Enum(*values, name=name).create(op.get_bind(), checkfirst=True)

    # Cycle questions
    op.create_table(
        "cycle_questions",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("review_obj", sa.Integer(), nullable=False),
        sa.Column("question_id", sa.Integer(), nullable=False),
        sa.Column("author", sa.Integer(), nullable=False),
        sa.Column("phase_nr", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.Column("finished", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("title", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_cycle_questions_review_obj", "cycle_questions", ["review_obj"])

    # Review forms
    op.create_table(
        "review_forms",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("review_obj", sa.Integer(), nullable=False),
        sa.Column(
            "question_id",
            sa.Integer(),
            sa.ForeignKey("cycle_questions.id"),
            nullable=False,
        ),
        sa.Column("reviewer", sa.Integer(), nullable=False),
        sa.Column(
            "state",
            _enum("reviewformstate"),
            nullable=False,
            server_default="pending",
        ),
        *(sa.Column(name, _enum("rating"), nullable=True) for name in RATING_COLUMNS),
        sa.Column("taxonomy", _enum("taxonomy"), nullable=True),
        sa.Column("knowledge_dimension", _enum("knowledgedimension"), nullable=True),
        sa.Column("evaluation", _enum("evaluation"), nullable=True),
        sa.Column("expertise", _enum("expertise"), nullable=True),
        sa.Column("comment", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_review_forms_review_obj", "review_forms", ["review_obj"])

    # One row per reviewer per (phase, container, author) allocation
    op.create_table(
        "reviewer_allocations",
        sa.Column("phase_nr", sa.Integer(), primary_key=True),
        sa.Column("review_obj", sa.Integer(), primary_key=True),
        sa.Column("author", sa.Integer(), primary_key=True),
        sa.Column("reviewer", sa.Integer(), primary_key=True),
    )

    # Phase configuration
    op.create_table(
        "cycle_phases",
        sa.Column("review_obj", sa.Integer(), primary_key=True),
        sa.Column("phase_nr", sa.Integer(), primary_key=True),
        sa.Column("nr_reviewers", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.CheckConstraint("nr_reviewers >= 1", name="ck_cycle_phases_nr_reviewers"),
    )


def downgrade() -> None:
    op.drop_table("cycle_phases")
    op.drop_table("reviewer_allocations")
    op.drop_index("ix_review_forms_review_obj", table_name="review_forms")
    op.drop_table("review_forms")
    op.drop_index("ix_cycle_questions_review_obj", table_name="cycle_questions")
    op.drop_table("cycle_questions")

    for name in reversed(list(ENUM_TYPES)):
        sa.Enum(name=name).drop(op.get_bind(), checkfirst=True)
