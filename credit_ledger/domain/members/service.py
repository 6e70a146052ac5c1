"""Member registry: the users the identity provider has presented to the ledger."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from credit_ledger.domain.common.clock import Clock, as_utc, utcnow
from credit_ledger.domain.common.errors import NotFoundError
from credit_ledger.domain.wallets.coordinator import TransferCoordinator
from credit_ledger.infrastructure.database.models import Member as MemberModel
from credit_ledger.infrastructure.database.repositories.member_repository import SqlMemberRepository
from credit_ledger.infrastructure.locks import member_key

from .models import Member

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class MemberService:
    coordinator: TransferCoordinator
    clock: Clock = utcnow

    async def register(self, user_id: str, role: str | None = None) -> Member:
        async with self.coordinator.scope(member_key(user_id)) as scope:
            model = await SqlMemberRepository(scope.session).upsert(
                user_id, role=role, seen_at=self.clock()
            )
            logger.debug("Member %s seen (role=%s)", user_id, model.role)
            return self._to_domain(model)

    async def ensure(self, user_id: str, role: str | None = None) -> Member:
        """Return the member, registering only when unknown or the role changed."""
        member = await self.get(user_id)
        if member is not None and (not role or member.role == role):
            return member
        return await self.register(user_id, role)

    async def get(self, user_id: str) -> Member | None:
        async with self.coordinator.reader() as session:
            model = await SqlMemberRepository(session).get(user_id)
            return self._to_domain(model) if model else None

    async def require(self, *user_ids: str) -> None:
        """Raise :class:`NotFoundError` unless every id is an active member."""
        async with self.coordinator.reader() as session:
            repository = SqlMemberRepository(session)
            for user_id in user_ids:
                model = await repository.get(user_id)
                if model is None or not model.is_active:
                    raise NotFoundError(f"Member {user_id} not found")

    @staticmethod
    def _to_domain(model: MemberModel) -> Member:
        return Member(
            id=model.id,
            role=model.role,
            is_active=model.is_active,
            created_at=as_utc(model.created_at),
            last_seen_at=as_utc(model.last_seen_at),
        )
