"""
In-process store with the same interface as DatabaseClient
Used for local development without Supabase and throughout the test suite
"""

import asyncio
import uuid
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional, Set, Tuple

from arena402.errors import AlreadyExists
from arena402.models import (
    AccessGrant,
    PaymentRecord,
    PaymentStatus,
    PaywallConfig,
    PaywallSummary,
    UserRecord,
)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class InMemoryDatabase:
    """
    Dict-backed tables guarded by one asyncio.Lock.
    Mutations that check-then-write hold the lock for the whole step so
    they behave like the unique constraints of the SQL schema.
    """

    def __init__(self):
        self.users: Dict[str, UserRecord] = {}
        self.paywalls: Dict[int, PaywallConfig] = {}
        self.payments: Dict[str, PaymentRecord] = {}
        self.grants: Dict[Tuple[int, str], AccessGrant] = {}
        self._lock = asyncio.Lock()

    def clear(self) -> None:
        self.users.clear()
        self.paywalls.clear()
        self.payments.clear()
        self.grants.clear()

    def _with_owner(self, paywall: PaywallConfig) -> PaywallConfig:
        owner = self.users.get(paywall.owner_id) if paywall.owner_id else None
        return paywall.model_copy(update={
            "owner_username": owner.arena_username if owner else None,
            "owner_slug": owner.arena_slug if owner else None,
        })

    # ===== USER OPERATIONS =====

    async def get_user(self, user_id: str) -> Optional[UserRecord]:
        return self.users.get(user_id)

    async def get_user_by_arena_id(self, arena_user_id: int) -> Optional[UserRecord]:
        return next((u for u in self.users.values() if u.arena_user_id == arena_user_id), None)

    async def upsert_user(
        self,
        arena_user_id: int,
        arena_username: Optional[str],
        arena_slug: Optional[str],
        arena_access_token: Optional[str],
    ) -> UserRecord:
        async with self._lock:
            existing = await self.get_user_by_arena_id(arena_user_id)
            now = _utcnow()
            if existing:
                user = existing.model_copy(update={
                    "arena_username": arena_username,
                    "arena_slug": arena_slug,
                    "arena_access_token": arena_access_token,
                    "updated_at": now,
                })
            else:
                user = UserRecord(
                    id=str(uuid.uuid4()),
                    arena_user_id=arena_user_id,
                    arena_username=arena_username,
                    arena_slug=arena_slug,
                    arena_access_token=arena_access_token,
                    created_at=now,
                    updated_at=now,
                )
            self.users[user.id] = user
            return user

    async def update_user_wallet(self, user_id: str, wallet_address: Optional[str]) -> Optional[UserRecord]:
        user = self.users.get(user_id)
        if user is None:
            return None
        updated = user.model_copy(update={"wallet_address": wallet_address, "updated_at": _utcnow()})
        self.users[user_id] = updated
        return updated

    # ===== PAYWALL OPERATIONS =====

    async def insert_paywall(
        self,
        content_id: int,
        owner_id: Optional[str],
        price_usdc: Decimal,
        payout_address: str,
    ) -> PaywallConfig:
        async with self._lock:
            if content_id in self.paywalls:
                raise AlreadyExists("Paywall already exists for this block", content_id=content_id)
            now = _utcnow()
            paywall = PaywallConfig(
                id=str(uuid.uuid4()),
                content_id=content_id,
                owner_id=owner_id,
                price_usdc=price_usdc,
                payout_address=payout_address,
                active=True,
                created_at=now,
                updated_at=now,
            )
            self.paywalls[content_id] = paywall
            return self._with_owner(paywall)

    async def get_paywall(self, content_id: int) -> Optional[PaywallConfig]:
        paywall = self.paywalls.get(content_id)
        return self._with_owner(paywall) if paywall else None

    async def get_paywalls_by_owner(self, owner_id: str) -> List[PaywallConfig]:
        owned = [p for p in self.paywalls.values() if p.owner_id == owner_id]
        owned.sort(key=lambda p: p.created_at, reverse=True)
        return [self._with_owner(p) for p in owned]

    async def update_paywall(self, content_id: int, fields: Dict[str, Any]) -> Optional[PaywallConfig]:
        async with self._lock:
            paywall = self.paywalls.get(content_id)
            if paywall is None:
                return None
            updated = paywall.model_copy(update={**fields, "updated_at": _utcnow()})
            self.paywalls[content_id] = updated
            return self._with_owner(updated)

    async def delete_paywall(self, content_id: int) -> bool:
        async with self._lock:
            paywall = self.paywalls.pop(content_id, None)
            if paywall is None:
                return False
            # ON DELETE SET NULL
            for payment_id, payment in self.payments.items():
                if payment.paywall_id == paywall.id:
                    self.payments[payment_id] = payment.model_copy(update={"paywall_id": None})
            return True

    async def get_active_paywalls(self, content_ids: Iterable[int]) -> Dict[int, PaywallSummary]:
        wanted = set(content_ids)
        return {
            content_id: PaywallSummary(price_usdc=p.price_usdc, active=p.active)
            for content_id, p in self.paywalls.items()
            if content_id in wanted and p.active
        }

    # ===== PAYMENT OPERATIONS =====

    async def insert_payment(
        self,
        paywall_id: Optional[str],
        payer_address: str,
        amount_usdc: Decimal,
        payer_user_id: Optional[str] = None,
    ) -> PaymentRecord:
        payment = PaymentRecord(
            id=str(uuid.uuid4()),
            paywall_id=paywall_id,
            payer_address=payer_address,
            payer_user_id=payer_user_id,
            amount_usdc=amount_usdc,
            status=PaymentStatus.PENDING,
            created_at=_utcnow(),
        )
        self.payments[payment.id] = payment
        return payment

    async def transition_payment(
        self,
        payment_id: str,
        status: PaymentStatus,
        settlement_ref: Optional[str] = None,
        failure_reason: Optional[str] = None,
    ) -> Optional[PaymentRecord]:
        async with self._lock:
            payment = self.payments.get(payment_id)
            if payment is None or payment.status != PaymentStatus.PENDING:
                return None
            if status == PaymentStatus.SETTLED:
                update = {"status": status, "settlement_ref": settlement_ref, "settled_at": _utcnow()}
            else:
                update = {"status": status, "failure_reason": failure_reason}
            updated = payment.model_copy(update=update)
            self.payments[payment_id] = updated
            return updated

    async def get_payment(self, payment_id: str) -> Optional[PaymentRecord]:
        return self.payments.get(payment_id)

    async def get_payments_by_paywall(self, paywall_id: str) -> List[PaymentRecord]:
        found = [p for p in self.payments.values() if p.paywall_id == paywall_id]
        return sorted(found, key=lambda p: p.created_at, reverse=True)

    async def get_payments_by_payer(self, payer_address: str) -> List[PaymentRecord]:
        found = [p for p in self.payments.values() if p.payer_address == payer_address]
        return sorted(found, key=lambda p: p.created_at, reverse=True)

    # ===== ACCESS GRANT OPERATIONS =====

    async def insert_grant_if_absent(
        self,
        content_id: int,
        payer_address: str,
        payment_record_id: Optional[str] = None,
    ) -> AccessGrant:
        async with self._lock:
            key = (content_id, payer_address)
            existing = self.grants.get(key)
            if existing is not None:
                return existing
            grant = AccessGrant(
                id=str(uuid.uuid4()),
                content_id=content_id,
                payer_address=payer_address,
                payment_record_id=payment_record_id,
                granted_at=_utcnow(),
            )
            self.grants[key] = grant
            return grant

    async def get_grant(self, content_id: int, payer_address: str) -> Optional[AccessGrant]:
        return self.grants.get((content_id, payer_address))

    async def delete_grant(self, content_id: int, payer_address: str) -> bool:
        async with self._lock:
            return self.grants.pop((content_id, payer_address), None) is not None

    async def get_grants_by_payer(self, payer_address: str) -> List[AccessGrant]:
        found = [g for g in self.grants.values() if g.payer_address == payer_address]
        return sorted(found, key=lambda g: g.granted_at, reverse=True)

    async def get_grants_by_content(self, content_id: int) -> List[AccessGrant]:
        found = [g for g in self.grants.values() if g.content_id == content_id]
        return sorted(found, key=lambda g: g.granted_at, reverse=True)

    async def get_granted_content_ids(self, content_ids: Iterable[int], payer_address: str) -> Set[int]:
        wanted = set(content_ids)
        return {cid for (cid, payer) in self.grants if payer == payer_address and cid in wanted}
