"""Fixed scoring rubrics for peer reviews.

A review scores one cycle question along five fixed scales:

- Rating: correctness, relevance and expression of the question's
  description, question text and answers (nine ratings in total)
- Taxonomy: the cognitive process the question targets
- KnowledgeDimension: the kind of knowledge the question targets
- Evaluation: the reviewer's overall verdict
- Expertise: the reviewer's self-assessed expertise on the topic

ReviewScores is the validated record a reviewer submits; ReviewForm copies it
onto its columns.
"""

from __future__ import annotations

import enum

from pydantic import BaseModel, ConfigDict, Field


class Rating(str, enum.Enum):
    """Rating of one aspect of a question."""

    good = "good"
    correct = "correct"
    wrong = "wrong"


class Taxonomy(str, enum.Enum):
    """Cognitive process dimension, from lowest to highest order."""

    remember = "remember"
    understand = "understand"
    apply = "apply"
    analyze = "analyze"
    evaluate = "evaluate"
    create = "create"


class KnowledgeDimension(str, enum.Enum):
    """Kind of knowledge a question targets."""

    factual = "factual"
    conceptual = "conceptual"
    procedural = "procedural"
    metacognitive = "metacognitive"


class Evaluation(str, enum.Enum):
    """Overall verdict of a review."""

    accepted = "accepted"
    revision = "revision"
    rejected = "rejected"


class Expertise(str, enum.Enum):
    """Self-assessed expertise of the reviewer."""

    none = "none"
    low = "low"
    medium = "medium"
    high = "high"
    expert = "expert"


RATING_FIELDS: tuple[str, ...] = (
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


class ReviewScores(BaseModel):
    """Scores submitted by a reviewer for one review form.

    Attributes:
        desc_corr: Correctness of the question description.
        desc_relv: Relevance of the question description.
        desc_expr: Expression of the question description.
        quest_corr: Correctness of the question text.
        quest_relv: Relevance of the question text.
        quest_expr: Expression of the question text.
        answ_corr: Correctness of the answers.
        answ_relv: Relevance of the answers.
        answ_expr: Expression of the answers.
        taxonomy: Cognitive process the question targets.
        knowledge_dimension: Knowledge dimension the question targets.
        evaluation: Overall verdict.
        expertise: Reviewer's expertise on the topic.
        comment: Free-text remarks for the author.
    """

    model_config = ConfigDict(extra="forbid")

    desc_corr: Rating
    desc_relv: Rating
    desc_expr: Rating
    quest_corr: Rating
    quest_relv: Rating
    quest_expr: Rating
    answ_corr: Rating
    answ_relv: Rating
    answ_expr: Rating
    taxonomy: Taxonomy
    knowledge_dimension: KnowledgeDimension
    evaluation: Evaluation
    expertise: Expertise
    comment: str = Field(default="", max_length=4000)


def rubric_options() -> dict[str, list[str]]:
    """Allowed values per rubric, in display order."""
    return {
        "rating": [member.value for member in Rating],
        "taxonomy": [member.value for member in Taxonomy],
        "knowledge_dimension": [member.value for member in KnowledgeDimension],
        "evaluation": [member.value for member in Evaluation],
        "expertise": [member.value for member in Expertise],
    }
