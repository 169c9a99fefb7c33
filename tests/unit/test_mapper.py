"""Unit tests for the Mapper cache.

The storage gateway is mocked so that every storage round trip is counted.

Tests cover:
- Lazy loading on first read and reuse afterwards
- In-memory filtering in cache order
- Unknown filter attributes failing before storage access
- Bucket invalidation by enum member and by name
- Loaded-but-empty buckets staying loaded
"""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest

from peerreview.database.gateway import StorageGateway
from peerreview.database.models import (
    CacheBucket,
    CyclePhase,
    CycleQuestion,
    ReviewForm,
    ReviewFormState,
    UnknownAttributeError,
)
from peerreview.review.mapper import Mapper


def _form(form_id: int, question_id: int, reviewer: int) -> ReviewForm:
    return ReviewForm(
        id=form_id,
        review_obj=10,
        question_id=question_id,
        reviewer=reviewer,
        state=ReviewFormState.pending,
    )


@pytest.fixture
def forms() -> list[ReviewForm]:
    return [_form(1, 100, 7), _form(2, 100, 8), _form(3, 101, 7)]


@pytest.fixture
def gateway(forms: list[ReviewForm]) -> MagicMock:
    """Gateway mock whose query returns the given forms."""
    gateway = MagicMock(spec=StorageGateway)
    gateway.query = AsyncMock(return_value=forms)
    return gateway


@pytest.fixture
def mapper(gateway: MagicMock) -> Mapper:
    return Mapper(gateway, review_obj=10)


class TestLazyLoading:
    """Test the unloaded -> loaded bucket transition."""

    def test_registers_rollback_hook(self, gateway: MagicMock, mapper: Mapper) -> None:
        gateway.add_rollback_hook.assert_called_once_with(mapper.invalidate_all)

    def test_buckets_start_unloaded(self, mapper: Mapper) -> None:
        assert all(not mapper.is_loaded(bucket) for bucket in CacheBucket)

    @pytest.mark.asyncio
    async def test_first_read_loads_bucket(self, gateway: MagicMock, mapper: Mapper) -> None:
        await mapper.get_review_forms({})

        assert gateway.query.await_count == 1
        assert mapper.is_loaded(CacheBucket.REVIEW_FORMS)
        assert not mapper.is_loaded(CacheBucket.CYCLE_QUESTIONS)

    @pytest.mark.asyncio
    async def test_repeated_reads_hit_storage_once(
        self, gateway: MagicMock, mapper: Mapper
    ) -> None:
        first = await mapper.get_review_forms({"reviewer": 7})
        second = await mapper.get_review_forms({"reviewer": 7})
        await mapper.get_review_forms({"question_id": 100})

        assert first == second
        assert gateway.query.await_count == 1

    @pytest.mark.asyncio
    async def test_empty_bucket_stays_loaded(self, gateway: MagicMock, mapper: Mapper) -> None:
        gateway.query.return_value = []

        assert await mapper.get_cycle_questions() == []
        assert await mapper.get_cycle_questions() == []

        assert mapper.is_loaded(CacheBucket.CYCLE_QUESTIONS)
        assert gateway.query.await_count == 1


class TestFiltering:
    """Test in-memory filtering of a loaded bucket."""

    @pytest.mark.asyncio
    async def test_no_conditions_returns_everything(
        self, mapper: Mapper, forms: list[ReviewForm]
    ) -> None:
        assert await mapper.get_review_forms() == forms
        assert await mapper.get_review_forms({}) == forms

    @pytest.mark.asyncio
    async def test_filter_keeps_cache_order(self, mapper: Mapper, forms: list[ReviewForm]) -> None:
        result = await mapper.get_review_forms({"reviewer": 7})

        assert [form.id for form in result] == [1, 3]

    @pytest.mark.asyncio
    async def test_all_conditions_apply(self, mapper: Mapper) -> None:
        result = await mapper.get_review_forms({"reviewer": 7, "question_id": 101})

        assert [form.id for form in result] == [3]

    @pytest.mark.asyncio
    async def test_no_match_returns_empty_list(self, mapper: Mapper) -> None:
        assert await mapper.get_review_forms({"reviewer": 99}) == []

    @pytest.mark.asyncio
    async def test_unknown_attribute_raises_before_loading(
        self, gateway: MagicMock, mapper: Mapper
    ) -> None:
        with pytest.raises(UnknownAttributeError):
            await mapper.get_review_forms({"author": 5})

        gateway.query.assert_not_awaited()
        assert not mapper.is_loaded(CacheBucket.REVIEW_FORMS)

    @pytest.mark.asyncio
    async def test_unknown_attribute_raises_when_loaded(self, mapper: Mapper) -> None:
        await mapper.get_review_forms()

        with pytest.raises(UnknownAttributeError):
            await mapper.get_review_forms({"reviewer": 7, "getReviewer": 7})

    @pytest.mark.asyncio
    async def test_fields_are_checked_per_entity_type(
        self, gateway: MagicMock, mapper: Mapper
    ) -> None:
        gateway.query.return_value = [CyclePhase(review_obj=10, phase_nr=1, nr_reviewers=2)]

        phases = await mapper.get_cycle_phases({"phase_nr": 1})

        assert phases[0].nr_reviewers == 2
        with pytest.raises(UnknownAttributeError):
            await mapper.get_cycle_questions({"nr_reviewers": 2})


class TestInvalidation:
    """Test notify_invalidated and invalidate_all."""

    @pytest.mark.asyncio
    async def test_invalidated_bucket_reloads(self, gateway: MagicMock, mapper: Mapper) -> None:
        await mapper.get_review_forms()
        mapper.notify_invalidated(CacheBucket.REVIEW_FORMS)

        assert not mapper.is_loaded(CacheBucket.REVIEW_FORMS)
        await mapper.get_review_forms()
        assert gateway.query.await_count == 2

    @pytest.mark.asyncio
    async def test_reload_observes_new_storage_state(
        self, gateway: MagicMock, mapper: Mapper
    ) -> None:
        await mapper.get_review_forms()
        gateway.query.return_value = [_form(4, 102, 9)]

        assert [form.id for form in await mapper.get_review_forms()] == [1, 2, 3]
        mapper.notify_invalidated("review_forms")
        assert [form.id for form in await mapper.get_review_forms()] == [4]

    @pytest.mark.asyncio
    async def test_invalidation_is_per_bucket(self, gateway: MagicMock, mapper: Mapper) -> None:
        await mapper.get_review_forms()
        gateway.query.return_value = [
            CycleQuestion(id=100, review_obj=10, question_id=1, author=5, phase_nr=1, finished=False)
        ]
        await mapper.get_cycle_questions()

        mapper.notify_invalidated(CacheBucket.CYCLE_QUESTIONS)

        assert mapper.is_loaded(CacheBucket.REVIEW_FORMS)
        assert not mapper.is_loaded(CacheBucket.CYCLE_QUESTIONS)

    def test_unknown_bucket_name_raises(self, mapper: Mapper) -> None:
        with pytest.raises(ValueError):
            mapper.notify_invalidated("forms")

    @pytest.mark.asyncio
    async def test_invalidate_all(self, mapper: Mapper) -> None:
        await mapper.get_review_forms()
        await mapper.get_cycle_phases()

        mapper.invalidate_all()

        assert all(not mapper.is_loaded(bucket) for bucket in CacheBucket)

    @pytest.mark.asyncio
    async def test_failed_load_leaves_bucket_unloaded(
        self, gateway: MagicMock, mapper: Mapper
    ) -> None:
        gateway.query.side_effect = RuntimeError("connection lost")

        with pytest.raises(RuntimeError):
            await mapper.get_review_forms()

        assert not mapper.is_loaded(CacheBucket.REVIEW_FORMS)
