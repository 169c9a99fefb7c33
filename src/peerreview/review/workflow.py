"""Review workflow operations on top of the Mapper and reviewer allocations.

These are the container-level operations presentation collaborators trigger:
configuring phases, allocating reviewers to the authors of a phase, listing
questions that still lack an allocation or whose reviews are all in,
submitting review scores and finishing questions. Each operation takes the
request's StorageGateway and Mapper and keeps the Mapper's buckets coherent
with what it writes.
"""

from __future__ import annotations

from typing import Iterable, Mapping

import structlog
from sqlalchemy import delete

from peerreview.config import ReviewConfig
from peerreview.database.gateway import StorageGateway
from peerreview.database.models import (
    CacheBucket,
    CyclePhase,
    CycleQuestion,
    ReviewForm,
    ReviewFormState,
)
from peerreview.review.allocation import ReviewerAllocation, resolve_quorum
from peerreview.review.mapper import Mapper
from peerreview.rubrics import ReviewScores

logger = structlog.get_logger(__name__)


class AllocationError(ValueError):
    """Raised when a requested reviewer allocation violates allocation rules.

    Attributes:
        author: Author whose allocation was rejected.
    """

    def __init__(self, author: int, reason: str) -> None:
        self.author = author
        super().__init__(f"Invalid allocation for author {author}: {reason}")


async def configure_phase(
    gateway: StorageGateway,
    mapper: Mapper,
    phase_nr: int,
    nr_reviewers: int | None = None,
    config: ReviewConfig | None = None,
) -> CyclePhase:
    """Create or update the configuration of a review phase.

    Args:
        gateway: Storage gateway of the current request.
        mapper: Mapper of the review container.
        phase_nr: Review phase number.
        nr_reviewers: Reviewer quorum; defaults to config.default_nr_reviewers.
        config: Review policy configuration.

    Returns:
        The stored CyclePhase.

    Raises:
        ValueError: If nr_reviewers is below 1.
    """
    config = config or ReviewConfig()
    if nr_reviewers is None:
        nr_reviewers = config.default_nr_reviewers
    if nr_reviewers < 1:
        raise ValueError(f"nr_reviewers must be at least 1, got {nr_reviewers}")

    existing = await mapper.get_cycle_phases({"phase_nr": phase_nr})
    if existing:
        phase = existing[0]
        phase.nr_reviewers = nr_reviewers
    else:
        phase = CyclePhase(
            review_obj=mapper.review_obj,
            phase_nr=phase_nr,
            nr_reviewers=nr_reviewers,
        )

    async with gateway.transaction():
        await gateway.save(phase)
    mapper.notify_invalidated(CacheBucket.CYCLE_PHASES)

    logger.info(
        "cycle_phase_configured",
        review_obj=mapper.review_obj,
        phase_nr=phase_nr,
        nr_reviewers=nr_reviewers,
    )
    return phase


async def remove_phase(gateway: StorageGateway, mapper: Mapper, phase_nr: int) -> bool:
    """Remove a phase configuration together with all its allocations.

    Returns:
        True if the phase was configured.
    """
    allocation = ReviewerAllocation(
        gateway, mapper, phase_nr=phase_nr, review_obj=mapper.review_obj
    )
    async with gateway.transaction():
        removed = await gateway.execute(
            delete(CyclePhase)
            .where(CyclePhase.review_obj == mapper.review_obj)
            .where(CyclePhase.phase_nr == phase_nr)
        )
        await allocation.delete_from_db()
    mapper.notify_invalidated(CacheBucket.CYCLE_PHASES)

    logger.info(
        "cycle_phase_removed",
        review_obj=mapper.review_obj,
        phase_nr=phase_nr,
        existed=removed > 0,
    )
    return removed > 0


async def allocate_phase(
    gateway: StorageGateway,
    mapper: Mapper,
    phase_nr: int,
    assignments: Mapping[int, Iterable[int]],
    config: ReviewConfig | None = None,
) -> list[ReviewerAllocation]:
    """Allocate reviewers to the authors of a phase.

    Every allocation is validated before anything is written. Each author's
    allocation then replaces the stored one, and a pending review form is
    created for every unfinished question of the author in this phase and
    every allocated reviewer that has no form for it yet.

    Args:
        gateway: Storage gateway of the current request.
        mapper: Mapper of the review container.
        phase_nr: Review phase number.
        assignments: Author user id to reviewer user ids.
        config: Review policy configuration.

    Returns:
        The stored allocations, in assignment order.

    Raises:
        AllocationError: If an author reviews themselves or too few
            reviewers are assigned.
        QuorumUnresolvedError: If the phase is not configured.
        StorageError: If storing fails; nothing is committed.
    """
    config = config or ReviewConfig()
    quorum = await resolve_quorum(mapper, phase_nr)

    allocations: list[ReviewerAllocation] = []
    for author, reviewers in assignments.items():
        allocation = ReviewerAllocation(
            gateway,
            mapper,
            phase_nr=phase_nr,
            author=author,
            reviewers=reviewers,
            review_obj=mapper.review_obj,
        )
        if not config.allow_self_review and author in allocation.reviewers:
            raise AllocationError(author, "author cannot review own questions")
        if len(allocation.reviewers) < quorum:
            raise AllocationError(
                author,
                f"{len(allocation.reviewers)} reviewers assigned, phase {phase_nr} needs {quorum}",
            )
        allocations.append(allocation)

    existing = {
        (form.question_id, form.reviewer) for form in await mapper.get_review_forms()
    }
    new_forms: list[ReviewForm] = []
    async with gateway.transaction():
        for allocation in allocations:
            await allocation.store_to_db()
            questions = await mapper.get_cycle_questions(
                {"author": allocation.author, "phase_nr": phase_nr, "finished": False}
            )
            for question in questions:
                for reviewer in allocation.reviewers:
                    if (question.id, reviewer) in existing:
                        continue
                    new_forms.append(
                        ReviewForm(
                            review_obj=mapper.review_obj,
                            question_id=question.id,
                            reviewer=reviewer,
                            state=ReviewFormState.pending,
                        )
                    )
                    existing.add((question.id, reviewer))
        if new_forms:
            await gateway.save(*new_forms)

    mapper.notify_invalidated(CacheBucket.REVIEW_FORMS)

    logger.info(
        "phase_allocated",
        review_obj=mapper.review_obj,
        phase_nr=phase_nr,
        authors=len(allocations),
        review_forms_created=len(new_forms),
    )
    return allocations


async def unallocated_questions(mapper: Mapper) -> list[CycleQuestion]:
    """Unfinished questions whose author has no allocation in their phase."""
    allocated = {
        (row.phase_nr, row.author) for row in await mapper.get_reviewer_allocations()
    }
    questions = await mapper.get_cycle_questions({"finished": False})
    return [q for q in questions if (q.phase_nr, q.author) not in allocated]


async def reviewed_questions(mapper: Mapper) -> list[CycleQuestion]:
    """Unfinished questions whose review forms are all submitted.

    These are the questions ready to be finished. A question without any
    review form is not reviewed.
    """
    states: dict[int, list[bool]] = {}
    for form in await mapper.get_review_forms():
        states.setdefault(form.question_id, []).append(form.is_submitted)
    questions = await mapper.get_cycle_questions({"finished": False})
    return [q for q in questions if q.id in states and all(states[q.id])]


async def submit_review(
    gateway: StorageGateway,
    mapper: Mapper,
    form_id: int,
    scores: ReviewScores,
) -> ReviewForm:
    """Store a reviewer's scores on a review form of the container.

    Raises:
        LookupError: If the form does not exist in this review container.
        StorageError: If storing fails.
    """
    forms = await mapper.get_review_forms({"id": form_id})
    if not forms:
        raise LookupError(
            f"Review form {form_id} not found in review object {mapper.review_obj}"
        )
    form = forms[0]
    form.apply_scores(scores)
    await form.store_to_db(gateway, mapper)

    logger.info(
        "review_submitted",
        review_obj=mapper.review_obj,
        form_id=form_id,
        reviewer=form.reviewer,
        evaluation=scores.evaluation.value,
    )
    return form


async def finish_questions(
    gateway: StorageGateway,
    mapper: Mapper,
    question_ids: Iterable[int],
) -> int:
    """Take questions of the container out of the review cycle.

    Ids that do not belong to the container are ignored.

    Returns:
        Number of questions that were not finished before.
    """
    wanted = set(question_ids)
    changed = [
        question
        for question in await mapper.get_cycle_questions()
        if question.id in wanted and question.mark_finished()
    ]
    if changed:
        async with gateway.transaction():
            for question in changed:
                await question.store_to_db(gateway, mapper)

    logger.info(
        "questions_finished",
        review_obj=mapper.review_obj,
        requested=len(wanted),
        finished=len(changed),
    )
    return len(changed)
