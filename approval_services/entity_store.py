"""
approval_services.entity_store -- Persistence of approvable business entities.

Responsibility:
    Load entity snapshots, write approval instances back with a conditional
    (compare-and-set) update, and run the queries the escalation monitor
    and reports need.  One store per entity type; ``EntityStoreRegistry``
    maps entity type strings to stores.

Architecture position:
    Services -- the only module that reads or writes ``ApprovableMixin``
    columns.  Works over any ORM model that uses the mixin.

Invariants enforced:
    - Every instance write is ``UPDATE ... WHERE id = :id AND
      lock_version = :expected`` and bumps ``lock_version``.  A write that
      matches no row raises InvalidLevelTransitionError and changes nothing.
    - Reads for mutation take a row lock (``SELECT ... FOR UPDATE``) where
      the dialect supports it.
    - The store flushes but never commits; the caller owns the transaction.

Failure modes:
    - InvalidLevelTransitionError on a lost race.
    - UnknownEntityTypeError from the registry for unregistered types.
"""

from __future__ import annotations

from dataclasses import replace
from datetime import datetime
from typing import Iterable, Protocol, Sequence
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session

from approval_kernel.domain.approval import ApprovableEntity, EntityStatus
from approval_kernel.exceptions import (
    InvalidLevelTransitionError,
    UnknownEntityTypeError,
)
from approval_kernel.logging_config import get_logger
from approval_kernel.models.approvable import ApprovableMixin, entity_column_values
from approval_kernel.models.requests import ExpenseClaimModel, LeaveRequestModel

logger = get_logger("services.entity_store")

DEFAULT_ENTITY_MODELS: tuple[type[ApprovableMixin], ...] = (
    LeaveRequestModel,
    ExpenseClaimModel,
)


class EntityStore(Protocol):
    """Storage for one entity type."""

    entity_type: str

    def get(self, entity_id: UUID, for_update: bool = False) -> ApprovableEntity | None:
        ...

    def save_instance(self, entity: ApprovableEntity) -> ApprovableEntity:
        """Conditionally persist ``entity``; returns it with the new version."""
        ...

    def find_breached(self, now: datetime) -> list[ApprovableEntity]:
        ...

    def find_pending(self) -> list[ApprovableEntity]:
        ...

    def count_by_status(self) -> dict[str, int]:
        ...


class SqlEntityStore:
    """SQLAlchemy-backed store over a model using ``ApprovableMixin``."""

    def __init__(self, session: Session, model_cls: type[ApprovableMixin]) -> None:
        self._session = session
        self._model = model_cls
        self.entity_type: str = model_cls.entity_type

    @property
    def model_cls(self) -> type[ApprovableMixin]:
        return self._model

    def add(self, model: ApprovableMixin) -> ApprovableEntity:
        """Persist a new entity row (hosts normally do this themselves)."""
        self._session.add(model)
        self._session.flush()
        return model.to_entity()

    def get(self, entity_id: UUID, for_update: bool = False) -> ApprovableEntity | None:
        model = self._model
        stmt = (
            select(model)
            .where(model.id == entity_id)  # type: ignore[attr-defined]
            .execution_options(populate_existing=True)
        )
        if for_update:
            stmt = stmt.with_for_update()
        row = self._session.execute(stmt).scalars().first()
        return row.to_entity() if row is not None else None

    def save_instance(self, entity: ApprovableEntity) -> ApprovableEntity:
        model = self._model
        expected = entity.lock_version
        stmt = (
            update(model)
            .where(
                model.id == entity.entity_id,  # type: ignore[attr-defined]
                model.lock_version == expected,
            )
            .values(**entity_column_values(entity), lock_version=expected + 1)
            .execution_options(synchronize_session=False)
        )
        result = self._session.execute(stmt)
        if result.rowcount != 1:
            level = entity.instance.current_level if entity.instance else 0
            logger.warning(
                "conditional_write_lost",
                extra={
                    "entity_type": self.entity_type,
                    "entity_id": str(entity.entity_id),
                    "expected_version": expected,
                },
            )
            raise InvalidLevelTransitionError(
                str(entity.entity_id), level,
                "entity was modified concurrently",
            )
        self._session.flush()
        return replace(entity, lock_version=expected + 1)

    def find_breached(self, now: datetime) -> list[ApprovableEntity]:
        model = self._model
        stmt = (
            select(model)
            .where(
                model.status == EntityStatus.PENDING.value,
                model.is_escalated == False,  # noqa: E712
                model.current_level_deadline.is_not(None),
                model.current_level_deadline <= now,
            )
            .order_by(model.current_level_deadline)
            .execution_options(populate_existing=True)
        )
        return [row.to_entity() for row in self._session.execute(stmt).scalars()]

    def find_pending(self) -> list[ApprovableEntity]:
        model = self._model
        stmt = (
            select(model)
            .where(model.status == EntityStatus.PENDING.value)
            .order_by(model.current_level_deadline)
            .execution_options(populate_existing=True)
        )
        return [row.to_entity() for row in self._session.execute(stmt).scalars()]

    def count_by_status(self) -> dict[str, int]:
        model = self._model
        stmt = select(model.status, func.count()).group_by(model.status)
        return {status: count for status, count in self._session.execute(stmt)}


class EntityStoreRegistry:
    """Registry mapping entity type strings to stores.

    Contract:
        - ``register()`` adds a store; raises ValueError on duplicate.
        - ``get()`` retrieves by entity type; raises UnknownEntityTypeError
          if missing.
    """

    def __init__(self, stores: Iterable[EntityStore] = ()) -> None:
        self._stores: dict[str, EntityStore] = {}
        for store in stores:
            self.register(store)

    @classmethod
    def for_session(
        cls,
        session: Session,
        models: Sequence[type[ApprovableMixin]] = DEFAULT_ENTITY_MODELS,
    ) -> EntityStoreRegistry:
        return cls(SqlEntityStore(session, m) for m in models)

    def register(self, store: EntityStore) -> None:
        if store.entity_type in self._stores:
            raise ValueError(
                f"Entity type '{store.entity_type}' is already registered"
            )
        self._stores[store.entity_type] = store

    def get(self, entity_type: str) -> EntityStore:
        try:
            return self._stores[entity_type]
        except KeyError:
            raise UnknownEntityTypeError(entity_type, self.entity_types()) from None

    def entity_types(self) -> tuple[str, ...]:
        return tuple(sorted(self._stores))

    def stores(self) -> tuple[EntityStore, ...]:
        return tuple(self._stores[t] for t in self.entity_types())

    def __len__(self) -> int:
        return len(self._stores)

    def __contains__(self, entity_type: str) -> bool:
        return entity_type in self._stores
