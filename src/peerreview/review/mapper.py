"""Lazily-populated, filterable entity cache for one review container.

The Mapper is the single point of read access to the review forms, cycle
questions, cycle phases and reviewer allocation rows of a review container.
Each collection lives in its own cache bucket with two states:

    unloaded (None) -> loaded (tuple of records, possibly empty)

The first read of a bucket loads the whole collection of the container, in
storage order; later reads filter the cached tuple in memory. Writers call
notify_invalidated() after changing data a bucket may hold, which drops the
bucket back to unloaded so the next read reloads it.

A Mapper is request-scoped: it must not be shared between concurrent
requests, because clear-on-write invalidation only holds for a single writer.
"""

from __future__ import annotations

from typing import Any, Mapping

import structlog
from sqlalchemy import select

from peerreview.database.gateway import StorageGateway
from peerreview.database.models import (
    AllocationRow,
    CacheBucket,
    CyclePhase,
    CycleQuestion,
    ReviewForm,
)

logger = structlog.get_logger(__name__)

# Model and storage order of each bucket
_BUCKET_SOURCES: dict[CacheBucket, tuple[Any, tuple[Any, ...]]] = {
    CacheBucket.REVIEW_FORMS: (ReviewForm, (ReviewForm.id,)),
    CacheBucket.CYCLE_QUESTIONS: (CycleQuestion, (CycleQuestion.id,)),
    CacheBucket.CYCLE_PHASES: (CyclePhase, (CyclePhase.phase_nr,)),
    CacheBucket.REVIEWER_ALLOCATIONS: (
        AllocationRow,
        (AllocationRow.phase_nr, AllocationRow.author, AllocationRow.reviewer),
    ),
}


class Mapper:
    """Cached, filterable read access to the records of one review container.

    Attributes:
        gateway: Storage gateway of the current request.
        review_obj: Id of the review container every query is scoped to.
    """

    def __init__(self, gateway: StorageGateway, review_obj: int) -> None:
        self.gateway = gateway
        self.review_obj = review_obj
        self._buckets: dict[CacheBucket, tuple[Any, ...] | None] = dict.fromkeys(CacheBucket)
        # A rollback expires every record the session handed out
        gateway.add_rollback_hook(self.invalidate_all)

    async def get_review_forms(
        self, conditions: Mapping[str, Any] | None = None
    ) -> list[ReviewForm]:
        """Review forms of the container matching all conditions.

        Args:
            conditions: Field name to expected value; empty or None matches all.

        Returns:
            Matching forms in cache order.

        Raises:
            UnknownAttributeError: If a condition names an unknown field.
            StorageError: If loading the bucket fails.
        """
        return await self._select(CacheBucket.REVIEW_FORMS, conditions)

    async def get_cycle_questions(
        self, conditions: Mapping[str, Any] | None = None
    ) -> list[CycleQuestion]:
        """Cycle questions of the container matching all conditions."""
        return await self._select(CacheBucket.CYCLE_QUESTIONS, conditions)

    async def get_cycle_phases(
        self, conditions: Mapping[str, Any] | None = None
    ) -> list[CyclePhase]:
        """Phase configuration records of the container matching all conditions."""
        return await self._select(CacheBucket.CYCLE_PHASES, conditions)

    async def get_reviewer_allocations(
        self, conditions: Mapping[str, Any] | None = None
    ) -> list[AllocationRow]:
        """Reviewer allocation rows of the container matching all conditions."""
        return await self._select(CacheBucket.REVIEWER_ALLOCATIONS, conditions)

    def notify_invalidated(self, bucket: CacheBucket | str) -> None:
        """Drop a cache bucket so the next read reloads it from storage.

        Args:
            bucket: The bucket, or its name.

        Raises:
            ValueError: If bucket does not name a cache bucket.
        """
        bucket = CacheBucket(bucket)
        was_loaded = self._buckets[bucket] is not None
        self._buckets[bucket] = None
        logger.debug(
            "mapper_bucket_invalidated",
            bucket=bucket.value,
            review_obj=self.review_obj,
            was_loaded=was_loaded,
        )

    def invalidate_all(self) -> None:
        for bucket in CacheBucket:
            self._buckets[bucket] = None

    def is_loaded(self, bucket: CacheBucket | str) -> bool:
        return self._buckets[CacheBucket(bucket)] is not None

    async def _select(
        self, bucket: CacheBucket, conditions: Mapping[str, Any] | None
    ) -> list[Any]:
        model, _ = _BUCKET_SOURCES[bucket]
        conditions = dict(conditions or {})
        # Unknown names fail before the cache is consulted
        model.check_conditions(conditions)

        records = self._buckets[bucket]
        if records is None:
            records = await self._load(bucket)
        return [record for record in records if record.matches(conditions)]

    async def _load(self, bucket: CacheBucket) -> tuple[Any, ...]:
        model, order_by = _BUCKET_SOURCES[bucket]
        stmt = (
            select(model)
            .where(model.review_obj == self.review_obj)
            .order_by(*order_by)
            .execution_options(populate_existing=True)
        )
        records = tuple(await self.gateway.query(stmt))
        self._buckets[bucket] = records

        logger.debug(
            "mapper_bucket_loaded",
            bucket=bucket.value,
            review_obj=self.review_obj,
            count=len(records),
        )
        return records
