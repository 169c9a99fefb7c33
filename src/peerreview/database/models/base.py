"""SQLAlchemy declarative base and the shared entity-record contract.

This module defines:
- Base: the DeclarativeBase every peerreview table inherits from
- TimestampMixin: created_at/updated_at columns
- CacheBucket: the closed set of collections a Mapper caches
- EntityRecord: the self-loading, self-persisting, filterable record mixin
  shared by ReviewForm and CycleQuestion

Filtering goes through an explicit enumeration of field names per entity type.
The name-to-accessor mapping is built once, when the model class is created,
and anything outside it is rejected with UnknownAttributeError.

Example:
    >>> class MyRecord(EntityRecord, TimestampMixin, Base):
    ...     __tablename__ = "my_records"
    ...     FILTERABLE_FIELDS = ("id", "review_obj")
    ...     CACHE_BUCKET = CacheBucket.REVIEW_FORMS
"""

from __future__ import annotations

import enum
from datetime import datetime
from operator import attrgetter
from typing import TYPE_CHECKING, Any, Callable, Mapping

import structlog
from sqlalchemy import DateTime, func, select
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

if TYPE_CHECKING:
    from peerreview.database.gateway import StorageGateway
    from peerreview.review.mapper import Mapper

logger = structlog.get_logger(__name__)


class Base(DeclarativeBase):
    """SQLAlchemy 2.0 declarative base for all peerreview models."""

    pass


class TimestampMixin:
    """Mixin providing created_at and updated_at columns.

    Server-generated values are fetched eagerly on flush so they can be read
    from async code without a lazy load.
    """

    __mapper_args__ = {"eager_defaults": True}

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
    )


class CacheBucket(str, enum.Enum):
    """Independently invalidatable collections held by a Mapper."""

    REVIEW_FORMS = "review_forms"
    CYCLE_QUESTIONS = "cycle_questions"
    CYCLE_PHASES = "cycle_phases"
    REVIEWER_ALLOCATIONS = "reviewer_allocations"


class UnknownAttributeError(AttributeError):
    """Raised when a filter condition names a field the entity does not expose.

    Attributes:
        entity: Name of the entity type the condition was applied to.
        attribute: The rejected attribute name.
    """

    def __init__(self, entity: str, attribute: str) -> None:
        self.entity = entity
        self.attribute = attribute
        super().__init__(f"{entity} has no filterable attribute '{attribute}'")


class Filterable:
    """Explicit field-name to accessor dispatch for in-memory filtering.

    Subclasses list their filterable fields in FILTERABLE_FIELDS; the accessor
    table is built once per subclass.
    """

    FILTERABLE_FIELDS = ()
    _accessors = {}

    def __init_subclass__(cls, **kwargs: Any) -> None:
        super().__init_subclass__(**kwargs)
        cls._accessors = {name: attrgetter(name) for name in cls.FILTERABLE_FIELDS}

    @classmethod
    def accessor_for(cls, name: str) -> Callable[[Any], Any]:
        """Return the accessor for a filterable field.

        Raises:
            UnknownAttributeError: If name is not in FILTERABLE_FIELDS.
        """
        try:
            return cls._accessors[name]
        except KeyError:
            raise UnknownAttributeError(cls.__name__, name) from None

    @classmethod
    def check_conditions(cls, conditions: Mapping[str, Any]) -> None:
        """Reject conditions naming unknown fields."""
        for name in conditions:
            cls.accessor_for(name)

    def field_value(self, name: str) -> Any:
        return self.accessor_for(name)(self)

    def matches(self, conditions: Mapping[str, Any]) -> bool:
        """True if every condition's field value equals the expected value."""
        return all(
            self.accessor_for(name)(self) == value
            for name, value in conditions.items()
        )

    def as_record(self) -> dict[str, Any]:
        """Plain mapping of the filterable fields, for presentation collaborators."""
        return {name: accessor(self) for name, accessor in self._accessors.items()}


class EntityRecord(Filterable):
    """Self-loading, self-persisting record bound to one cached collection.

    Subclasses must be mapped models with an ``id`` primary key and set
    CACHE_BUCKET to the Mapper bucket holding them.
    """

    CACHE_BUCKET = None

    @classmethod
    async def load_from_db(
        cls,
        gateway: StorageGateway,
        record_id: int,
    ) -> Any | None:
        """Load a single record by id.

        Args:
            gateway: Storage gateway of the current request.
            record_id: Primary key of the record.

        Returns:
            The record if found, None otherwise.
        """
        stmt = (
            select(cls)
            .where(cls.id == record_id)  # type: ignore[attr-defined]
            .execution_options(populate_existing=True)
        )
        rows = await gateway.query(stmt)
        return rows[0] if rows else None

    async def store_to_db(
        self,
        gateway: StorageGateway,
        mapper: Mapper | None = None,
    ) -> None:
        """Persist this record and invalidate the Mapper bucket caching it.

        Args:
            gateway: Storage gateway of the current request.
            mapper: Mapper to notify, if the caller holds one.
        """
        async with gateway.transaction():
            await gateway.save(self)

        logger.debug(
            "entity_record_stored",
            entity=type(self).__name__,
            record_id=self.id,  # type: ignore[attr-defined]
        )

        if mapper is not None:
            mapper.notify_invalidated(self.CACHE_BUCKET)
