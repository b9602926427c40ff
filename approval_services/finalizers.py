"""
approval_services.finalizers -- Domain actions on terminal approval.

Responsibility:
    Map entity types to the callback a host runs once an entity is fully
    approved (deduct leave balance, release an expense payout, ...).  The
    approval processor invokes the callback exactly once, after its
    conditional write succeeded.

Architecture position:
    Services -- registry only; the callbacks themselves belong to the
    host's domain code.
"""

from __future__ import annotations

from typing import Callable

from sqlalchemy.orm import Session

from approval_kernel.domain.approval import ApprovableEntity
from approval_kernel.logging_config import get_logger

logger = get_logger("services.finalizers")

Finalizer = Callable[[ApprovableEntity, Session], None]


class FinalizerRegistry:
    """Registry of per-entity-type approval finalizers.

    Contract:
        - ``register()`` adds a finalizer; raises ValueError on duplicate.
        - ``finalize()`` runs the finalizer if one exists and reports
          whether it did.  Finalizer exceptions propagate so the caller's
          transaction rolls back.
    """

    def __init__(self) -> None:
        self._finalizers: dict[str, Finalizer] = {}

    def register(self, entity_type: str, finalizer: Finalizer) -> None:
        if entity_type in self._finalizers:
            raise ValueError(
                f"Finalizer for '{entity_type}' is already registered"
            )
        self._finalizers[entity_type] = finalizer

    def finalize(self, entity: ApprovableEntity, session: Session) -> bool:
        finalizer = self._finalizers.get(entity.entity_type)
        if finalizer is None:
            logger.debug(
                "no_finalizer_registered",
                extra={"entity_type": entity.entity_type},
            )
            return False
        finalizer(entity, session)
        logger.info(
            "approval_finalized",
            extra={
                "entity_type": entity.entity_type,
                "entity_id": str(entity.entity_id),
            },
        )
        return True

    def __contains__(self, entity_type: str) -> bool:
        return entity_type in self._finalizers
