"""Reviewer allocation entity for peerreview.

A ReviewerAllocation assigns a set of distinct reviewers to the questions of
one author in one review phase of one review container. It is stored as one
AllocationRow per reviewer and enforces the quorum read from the phase
configuration: an allocation with fewer stored reviewers than the phase
requires does not exist as far as loading is concerned.

Lifecycle:
    UNBOUND -> LOADED | ABSENT   (load_from_db)
    any     -> DIRTY             (author or reviewers changed in memory)
    any     -> LOADED            (store_to_db, once committed)
    any     -> ABSENT            (delete_from_db, once committed)

Precondition failures (missing phase, review container or, for stores, author)
are reported as a False return without touching storage. Storage failures
propagate as StorageError. A store or delete rolled back by an enclosing
transaction leaves the state as it was before.
"""

from __future__ import annotations

from enum import Enum
from typing import Callable, Iterable

import structlog
from sqlalchemy import delete, select

from peerreview.database.gateway import StorageError, StorageGateway
from peerreview.database.models import AllocationRow, CacheBucket
from peerreview.review.mapper import Mapper

logger = structlog.get_logger(__name__)


class AllocationState(str, Enum):
    """Lifecycle states of a reviewer allocation.

    States:
        UNBOUND: Constructed, no persisted identity assumed.
        LOADED: Matches storage, quorum satisfied.
        ABSENT: Storage holds no complete allocation for the key.
        DIRTY: Changed in memory, not yet stored.
    """

    UNBOUND = "unbound"
    LOADED = "loaded"
    ABSENT = "absent"
    DIRTY = "dirty"


class QuorumUnresolvedError(StorageError):
    """Raised when no phase configuration yields the reviewer quorum."""

    def __init__(self, review_obj: int, phase_nr: int) -> None:
        self.review_obj = review_obj
        self.phase_nr = phase_nr
        super().__init__(
            "quorum",
            f"no configuration for phase {phase_nr} of review object {review_obj}",
        )


def _distinct(reviewers: Iterable[int]) -> list[int]:
    return list(dict.fromkeys(reviewers))


async def resolve_quorum(mapper: Mapper, phase_nr: int) -> int:
    """Number of reviewers an allocation of the given phase needs.

    Raises:
        QuorumUnresolvedError: If the phase is not configured.
    """
    phases = await mapper.get_cycle_phases({"phase_nr": phase_nr})
    if not phases:
        raise QuorumUnresolvedError(mapper.review_obj, phase_nr)
    return phases[0].nr_reviewers


def _check_container(mapper: Mapper, review_obj: int | None) -> None:
    if review_obj is not None and review_obj != mapper.review_obj:
        raise ValueError(
            f"Allocation for review object {review_obj} cannot use the mapper of "
            f"review object {mapper.review_obj}"
        )


class ReviewerAllocation:
    """Reviewers allocated to one author in one phase of a review container.

    The Mapper reference is non-owning: it is only used to look up the phase
    quorum and to invalidate the allocation bucket after writes. Both only
    hold for the Mapper's own review container, so an allocation is bound to
    that container.

    Raises:
        ValueError: If review_obj names another container than the Mapper's.
    """

    def __init__(
        self,
        gateway: StorageGateway,
        mapper: Mapper,
        phase_nr: int | None = None,
        author: int | None = None,
        reviewers: Iterable[int] = (),
        review_obj: int | None = None,
    ) -> None:
        _check_container(mapper, review_obj)
        self._gateway = gateway
        self._mapper = mapper
        self._phase_nr = phase_nr
        self._author = author
        self._reviewers = _distinct(reviewers)
        self._review_obj = review_obj
        self._state = AllocationState.UNBOUND

    @property
    def state(self) -> AllocationState:
        return self._state

    @property
    def phase_nr(self) -> int | None:
        return self._phase_nr

    @property
    def review_obj(self) -> int | None:
        return self._review_obj

    @property
    def author(self) -> int | None:
        return self._author

    @author.setter
    def author(self, author: int) -> None:
        self._author = author
        self._state = AllocationState.DIRTY

    @property
    def reviewers(self) -> list[int]:
        return list(self._reviewers)

    @reviewers.setter
    def reviewers(self, reviewers: Iterable[int]) -> None:
        self._reviewers = _distinct(reviewers)
        self._state = AllocationState.DIRTY

    def _mark(self, state: AllocationState) -> Callable[[], None]:
        def apply() -> None:
            self._state = state

        return apply

    async def load_from_db(self, phase_nr: int, review_obj: int, author: int) -> bool:
        """Load the allocation stored for a (phase, review container, author) key.

        The allocation only counts as present when storage holds at least as
        many distinct reviewers as the phase quorum. Otherwise nothing is
        changed apart from the state, which becomes ABSENT.

        Args:
            phase_nr: Review phase number.
            review_obj: Id of the review container.
            author: User id of the author.

        Returns:
            True if the allocation was loaded.

        Raises:
            ValueError: If review_obj is not the Mapper's container.
            QuorumUnresolvedError: If the phase is not configured.
            StorageError: If a query fails.
        """
        _check_container(self._mapper, review_obj)
        stmt = (
            select(AllocationRow)
            .where(AllocationRow.phase_nr == phase_nr)
            .where(AllocationRow.review_obj == review_obj)
            .where(AllocationRow.author == author)
            .order_by(AllocationRow.reviewer)
        )
        rows = await self._gateway.query(stmt)
        quorum = await resolve_quorum(self._mapper, phase_nr)
        reviewers = _distinct(row.reviewer for row in rows)

        if len(reviewers) < quorum:
            self._state = AllocationState.ABSENT
            logger.debug(
                "reviewer_allocation_absent",
                phase_nr=phase_nr,
                review_obj=review_obj,
                author=author,
                stored=len(reviewers),
                quorum=quorum,
            )
            return False

        self._phase_nr = phase_nr
        self._review_obj = review_obj
        self._author = author
        self._reviewers = reviewers
        self._state = AllocationState.LOADED
        return True

    async def store_to_db(self) -> bool:
        """Replace the stored reviewer set of this allocation's key.

        Existing rows for (phase, review container, author) are deleted and
        one row per reviewer is inserted, in a single transaction.

        Returns:
            False if phase_nr, review_obj or author is unset, True once
            stored.

        Raises:
            StorageError: If the store fails; the transaction is rolled back.
        """
        if self._phase_nr is None or self._review_obj is None or self._author is None:
            return False

        async with self._gateway.transaction():
            await self._gateway.execute(
                delete(AllocationRow)
                .where(AllocationRow.phase_nr == self._phase_nr)
                .where(AllocationRow.review_obj == self._review_obj)
                .where(AllocationRow.author == self._author)
            )
            await self._gateway.insert(
                AllocationRow,
                (
                    {
                        "phase_nr": self._phase_nr,
                        "review_obj": self._review_obj,
                        "author": self._author,
                        "reviewer": reviewer,
                    }
                    for reviewer in self._reviewers
                ),
            )

        self._mapper.notify_invalidated(CacheBucket.REVIEWER_ALLOCATIONS)
        self._gateway.after_commit(self._mark(AllocationState.LOADED))

        logger.info(
            "reviewer_allocation_stored",
            phase_nr=self._phase_nr,
            review_obj=self._review_obj,
            author=self._author,
            reviewers=self._reviewers,
        )
        return True

    async def delete_from_db(self) -> bool:
        """Delete every allocation of this phase in the review container.

        All authors' rows for (phase, review container) are removed, not only
        this allocation's author.

        Returns:
            False if phase_nr or review_obj is unset, True once deleted.

        Raises:
            StorageError: If the delete fails.
        """
        if self._phase_nr is None or self._review_obj is None:
            return False

        async with self._gateway.transaction():
            deleted = await self._gateway.execute(
                delete(AllocationRow)
                .where(AllocationRow.phase_nr == self._phase_nr)
                .where(AllocationRow.review_obj == self._review_obj)
            )

        self._mapper.notify_invalidated(CacheBucket.REVIEWER_ALLOCATIONS)
        self._gateway.after_commit(self._mark(AllocationState.ABSENT))

        logger.info(
            "reviewer_allocations_deleted",
            phase_nr=self._phase_nr,
            review_obj=self._review_obj,
            rows=deleted,
        )
        return True
