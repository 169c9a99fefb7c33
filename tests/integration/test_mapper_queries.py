"""Integration tests for Mapper reads against storage.

Tests container scoping, storage order, cache reuse and reloads after writes.
Storage round trips are counted by wrapping the gateway's query primitive.
"""

from __future__ import annotations

from unittest.mock import patch

import pytest
import pytest_asyncio

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


@pytest_asyncio.fixture
async def questions(seed) -> list[CycleQuestion]:
    return await seed(
        CycleQuestion(review_obj=1, question_id=100, author=5, phase_nr=1, title="Q1"),
        CycleQuestion(review_obj=1, question_id=101, author=6, phase_nr=1, title="Q2"),
        CycleQuestion(review_obj=1, question_id=102, author=5, phase_nr=2, title="Q3"),
        CycleQuestion(review_obj=2, question_id=200, author=5, phase_nr=1, title="Other"),
    )


@pytest.mark.asyncio
async def test_reads_are_scoped_to_container(mapper: Mapper, questions) -> None:
    """Test that records of other containers never appear."""
    result = await mapper.get_cycle_questions()

    assert [q.title for q in result] == ["Q1", "Q2", "Q3"]


@pytest.mark.asyncio
async def test_filtering_keeps_storage_order(mapper: Mapper, questions) -> None:
    """Test conjunctive filtering on the cached collection."""
    assert [q.title for q in await mapper.get_cycle_questions({"author": 5})] == ["Q1", "Q3"]
    assert [
        q.title for q in await mapper.get_cycle_questions({"author": 5, "phase_nr": 2})
    ] == ["Q3"]
    assert await mapper.get_cycle_questions({"author": 99}) == []


@pytest.mark.asyncio
async def test_bucket_loaded_once(gateway: StorageGateway, mapper: Mapper, questions) -> None:
    """Test that repeated reads hit storage once per bucket."""
    with patch.object(gateway, "query", wraps=gateway.query) as query:
        await mapper.get_cycle_questions()
        await mapper.get_cycle_questions({"author": 5})
        await mapper.get_cycle_questions({"finished": False})

    assert query.await_count == 1


@pytest.mark.asyncio
async def test_empty_bucket_stays_cached(gateway: StorageGateway, mapper: Mapper) -> None:
    """Test that an empty collection counts as loaded."""
    with patch.object(gateway, "query", wraps=gateway.query) as query:
        assert await mapper.get_review_forms() == []
        assert await mapper.get_review_forms() == []

    assert query.await_count == 1
    assert mapper.is_loaded(CacheBucket.REVIEW_FORMS)


@pytest.mark.asyncio
async def test_unknown_attribute_does_not_query(
    gateway: StorageGateway, mapper: Mapper
) -> None:
    """Test that unknown condition names fail without a storage call."""
    with patch.object(gateway, "query", wraps=gateway.query) as query:
        with pytest.raises(UnknownAttributeError):
            await mapper.get_cycle_questions({"colour": "red"})

    query.assert_not_awaited()


@pytest.mark.asyncio
async def test_store_reloads_bucket(
    gateway: StorageGateway, mapper: Mapper, questions
) -> None:
    """Test that a stored record is visible to the next read."""
    question = (await mapper.get_cycle_questions({"title": "Q2"}))[0]
    assert question.mark_finished()

    await question.store_to_db(gateway, mapper)
    assert not mapper.is_loaded(CacheBucket.CYCLE_QUESTIONS)

    with patch.object(gateway, "query", wraps=gateway.query) as query:
        finished = await mapper.get_cycle_questions({"finished": True})

    assert [q.title for q in finished] == ["Q2"]
    assert query.await_count == 1


@pytest.mark.asyncio
async def test_new_record_visible_after_store(
    gateway: StorageGateway, mapper: Mapper, questions
) -> None:
    """Test that inserting through an entity record invalidates its bucket."""
    assert await mapper.get_review_forms() == []

    form = ReviewForm(review_obj=1, question_id=questions[0].id, reviewer=7)
    await form.store_to_db(gateway, mapper)

    forms = await mapper.get_review_forms({"reviewer": 7})
    assert [f.id for f in forms] == [form.id]
    assert forms[0].state == ReviewFormState.pending


@pytest.mark.asyncio
async def test_invalidation_is_per_bucket(
    gateway: StorageGateway, mapper: Mapper, questions, seed
) -> None:
    """Test that invalidating one bucket leaves the others cached."""
    await seed(CyclePhase(review_obj=1, phase_nr=1, nr_reviewers=2))
    await mapper.get_cycle_questions()
    await mapper.get_cycle_phases()

    mapper.notify_invalidated("cycle_phases")

    assert mapper.is_loaded(CacheBucket.CYCLE_QUESTIONS)
    assert not mapper.is_loaded(CacheBucket.CYCLE_PHASES)


@pytest.mark.asyncio
async def test_load_from_db_by_id(gateway: StorageGateway, questions) -> None:
    """Test loading a single entity record by primary key."""
    loaded = await CycleQuestion.load_from_db(gateway, questions[1].id)

    assert loaded is not None
    assert loaded.title == "Q2"
    assert await CycleQuestion.load_from_db(gateway, 9999) is None


@pytest.mark.asyncio
async def test_containers_are_isolated(
    gateway: StorageGateway, mapper: Mapper, questions
) -> None:
    """Test that two Mappers on one gateway keep separate caches."""
    other = Mapper(gateway, review_obj=2)

    assert [q.title for q in await other.get_cycle_questions()] == ["Other"]
    assert not mapper.is_loaded(CacheBucket.CYCLE_QUESTIONS)
