"""
Supabase database client for Arena402
Provides typed operations over the users, paywalls, payments and access_grants tables
"""

from typing import Optional, List, Dict, Any, Iterable, Set
from datetime import datetime, timezone
from decimal import Decimal

from postgrest.exceptions import APIError
from supabase import create_client, Client
import structlog

from arena402.errors import AlreadyExists
from arena402.models import (
    AccessGrant,
    PaymentRecord,
    PaymentStatus,
    PaywallConfig,
    PaywallSummary,
    UserRecord,
)

logger = structlog.get_logger()

UNIQUE_VIOLATION = "23505"

PAYWALL_COLUMNS = "*, owner:users(arena_username, arena_slug)"


def _utcnow() -> str:
    return datetime.now(timezone.utc).isoformat()


def _paywall_from_row(row: Dict[str, Any]) -> PaywallConfig:
    owner = row.get("owner") or {}
    return PaywallConfig(
        id=row["id"],
        content_id=row["block_id"],
        owner_id=row.get("owner_user_id"),
        price_usdc=Decimal(str(row["price_usdc"])),
        payout_address=row["recipient_wallet"],
        active=row["active"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
        owner_username=owner.get("arena_username"),
        owner_slug=owner.get("arena_slug"),
    )


def _payment_from_row(row: Dict[str, Any]) -> PaymentRecord:
    return PaymentRecord(
        id=row["id"],
        paywall_id=row.get("paywall_id"),
        payer_address=row["payer_wallet"],
        payer_user_id=row.get("payer_user_id"),
        amount_usdc=Decimal(str(row["amount_usdc"])),
        settlement_ref=row.get("tx_hash"),
        status=PaymentStatus(row["status"]),
        failure_reason=row.get("failure_reason"),
        settled_at=row.get("settled_at"),
        created_at=row["created_at"],
    )


def _grant_from_row(row: Dict[str, Any]) -> AccessGrant:
    return AccessGrant(
        id=row["id"],
        content_id=row["block_id"],
        payer_address=row["payer_wallet"],
        payment_record_id=row.get("payment_id"),
        granted_at=row["granted_at"],
    )


def _user_from_row(row: Dict[str, Any]) -> UserRecord:
    return UserRecord(**row)


class DatabaseClient:
    """
    Supabase-backed store for Arena402

    Every state change is a single PostgREST statement, so each one commits
    in its own transaction and is never half-visible to concurrent readers.
    """

    def __init__(self, supabase_url: str, supabase_key: str, client: Optional[Client] = None):
        """Initialize Supabase client"""
        self.client: Client = client or create_client(supabase_url, supabase_key)

    # ===== USER OPERATIONS =====

    async def get_user(self, user_id: str) -> Optional[UserRecord]:
        result = self.client.table("users").select("*").eq("id", user_id).limit(1).execute()
        return _user_from_row(result.data[0]) if result.data else None

    async def get_user_by_arena_id(self, arena_user_id: int) -> Optional[UserRecord]:
        result = self.client.table("users").select("*").eq("arena_user_id", arena_user_id).limit(1).execute()
        return _user_from_row(result.data[0]) if result.data else None

    async def upsert_user(
        self,
        arena_user_id: int,
        arena_username: Optional[str],
        arena_slug: Optional[str],
        arena_access_token: Optional[str],
    ) -> UserRecord:
        """Create or refresh a user keyed by Are.na user id"""
        result = self.client.table("users").upsert(
            {
                "arena_user_id": arena_user_id,
                "arena_username": arena_username,
                "arena_slug": arena_slug,
                "arena_access_token": arena_access_token,
                "updated_at": _utcnow(),
            },
            on_conflict="arena_user_id",
        ).execute()
        return _user_from_row(result.data[0])

    async def update_user_wallet(self, user_id: str, wallet_address: Optional[str]) -> Optional[UserRecord]:
        result = self.client.table("users").update({
            "wallet_address": wallet_address,
            "updated_at": _utcnow(),
        }).eq("id", user_id).execute()
        return _user_from_row(result.data[0]) if result.data else None

    # ===== PAYWALL OPERATIONS =====

    async def insert_paywall(
        self,
        content_id: int,
        owner_id: Optional[str],
        price_usdc: Decimal,
        payout_address: str,
    ) -> PaywallConfig:
        """Insert an active paywall; the block_id unique key rejects duplicates"""
        try:
            result = self.client.table("paywalls").insert({
                "block_id": content_id,
                "owner_user_id": owner_id,
                "price_usdc": f"{price_usdc:.6f}",
                "recipient_wallet": payout_address,
                "active": True,
            }).execute()
        except APIError as e:
            if e.code == UNIQUE_VIOLATION:
                raise AlreadyExists("Paywall already exists for this block", content_id=content_id) from e
            raise

        created = await self.get_paywall(content_id)
        return created or _paywall_from_row(result.data[0])

    async def get_paywall(self, content_id: int) -> Optional[PaywallConfig]:
        """Get paywall by block id, joined with the owner's Are.na profile"""
        result = self.client.table("paywalls").select(PAYWALL_COLUMNS).eq("block_id", content_id).limit(1).execute()
        return _paywall_from_row(result.data[0]) if result.data else None

    async def get_paywalls_by_owner(self, owner_id: str) -> List[PaywallConfig]:
        result = self.client.table("paywalls").select(PAYWALL_COLUMNS).eq(
            "owner_user_id", owner_id
        ).order("created_at", desc=True).execute()
        return [_paywall_from_row(row) for row in result.data]

    async def update_paywall(self, content_id: int, fields: Dict[str, Any]) -> Optional[PaywallConfig]:
        """
        Apply a partial update. Accepts model field names
        (price_usdc, payout_address, active, owner_id) and bumps updated_at.
        """
        column_map = {
            "price_usdc": "price_usdc",
            "payout_address": "recipient_wallet",
            "active": "active",
            "owner_id": "owner_user_id",
        }
        update_data: Dict[str, Any] = {"updated_at": _utcnow()}
        for name, value in fields.items():
            if isinstance(value, Decimal):
                value = f"{value:.6f}"
            update_data[column_map[name]] = value

        result = self.client.table("paywalls").update(update_data).eq("block_id", content_id).execute()
        if not result.data:
            return None
        return await self.get_paywall(content_id)

    async def delete_paywall(self, content_id: int) -> bool:
        result = self.client.table("paywalls").delete().eq("block_id", content_id).execute()
        return len(result.data) > 0

    async def get_active_paywalls(self, content_ids: Iterable[int]) -> Dict[int, PaywallSummary]:
        """Bulk lookup of active paywalls in a single IN (...) query"""
        ids = sorted(set(content_ids))
        if not ids:
            return {}

        result = self.client.table("paywalls").select(
            "block_id, price_usdc, active"
        ).in_("block_id", ids).eq("active", True).execute()

        return {
            row["block_id"]: PaywallSummary(
                price_usdc=Decimal(str(row["price_usdc"])),
                active=row["active"],
            )
            for row in result.data
        }

    # ===== PAYMENT OPERATIONS =====

    async def insert_payment(
        self,
        paywall_id: Optional[str],
        payer_address: str,
        amount_usdc: Decimal,
        payer_user_id: Optional[str] = None,
    ) -> PaymentRecord:
        """Insert a payment in pending state"""
        result = self.client.table("payments").insert({
            "paywall_id": paywall_id,
            "payer_wallet": payer_address,
            "payer_user_id": payer_user_id,
            "amount_usdc": f"{amount_usdc:.6f}",
            "status": PaymentStatus.PENDING.value,
        }).execute()
        return _payment_from_row(result.data[0])

    async def transition_payment(
        self,
        payment_id: str,
        status: PaymentStatus,
        settlement_ref: Optional[str] = None,
        failure_reason: Optional[str] = None,
    ) -> Optional[PaymentRecord]:
        """
        Move a pending payment to a terminal state.
        The status filter makes this a compare-and-set: returns None when the
        payment is missing or no longer pending.
        """
        update_data: Dict[str, Any] = {"status": status.value}
        if status == PaymentStatus.SETTLED:
            update_data["tx_hash"] = settlement_ref
            update_data["settled_at"] = _utcnow()
        else:
            update_data["failure_reason"] = failure_reason

        result = self.client.table("payments").update(update_data).eq(
            "id", payment_id
        ).eq("status", PaymentStatus.PENDING.value).execute()
        return _payment_from_row(result.data[0]) if result.data else None

    async def get_payment(self, payment_id: str) -> Optional[PaymentRecord]:
        result = self.client.table("payments").select("*").eq("id", payment_id).limit(1).execute()
        return _payment_from_row(result.data[0]) if result.data else None

    async def get_payments_by_paywall(self, paywall_id: str) -> List[PaymentRecord]:
        result = self.client.table("payments").select("*").eq(
            "paywall_id", paywall_id
        ).order("created_at", desc=True).execute()
        return [_payment_from_row(row) for row in result.data]

    async def get_payments_by_payer(self, payer_address: str) -> List[PaymentRecord]:
        result = self.client.table("payments").select("*").eq(
            "payer_wallet", payer_address
        ).order("created_at", desc=True).execute()
        return [_payment_from_row(row) for row in result.data]

    # ===== ACCESS GRANT OPERATIONS =====

    async def insert_grant_if_absent(
        self,
        content_id: int,
        payer_address: str,
        payment_record_id: Optional[str] = None,
    ) -> AccessGrant:
        """
        Atomic insert-or-return on (block_id, payer_wallet).
        ON CONFLICT DO NOTHING never overwrites an existing grant's payment_id.
        """
        result = self.client.table("access_grants").upsert(
            {
                "block_id": content_id,
                "payer_wallet": payer_address,
                "payment_id": payment_record_id,
            },
            on_conflict="block_id,payer_wallet",
            ignore_duplicates=True,
        ).execute()

        if result.data:
            return _grant_from_row(result.data[0])

        existing = await self.get_grant(content_id, payer_address)
        if existing is None:
            # Revoked between the conflict and the read
            raise RuntimeError(f"Access grant for block {content_id} vanished during insert")
        return existing

    async def get_grant(self, content_id: int, payer_address: str) -> Optional[AccessGrant]:
        result = self.client.table("access_grants").select("*").eq(
            "block_id", content_id
        ).eq("payer_wallet", payer_address).limit(1).execute()
        return _grant_from_row(result.data[0]) if result.data else None

    async def delete_grant(self, content_id: int, payer_address: str) -> bool:
        result = self.client.table("access_grants").delete().eq(
            "block_id", content_id
        ).eq("payer_wallet", payer_address).execute()
        return len(result.data) > 0

    async def get_grants_by_payer(self, payer_address: str) -> List[AccessGrant]:
        result = self.client.table("access_grants").select("*").eq(
            "payer_wallet", payer_address
        ).order("granted_at", desc=True).execute()
        return [_grant_from_row(row) for row in result.data]

    async def get_grants_by_content(self, content_id: int) -> List[AccessGrant]:
        result = self.client.table("access_grants").select("*").eq(
            "block_id", content_id
        ).order("granted_at", desc=True).execute()
        return [_grant_from_row(row) for row in result.data]

    async def get_granted_content_ids(self, content_ids: Iterable[int], payer_address: str) -> Set[int]:
        """Which of these blocks the payer holds grants for, in one query"""
        ids = sorted(set(content_ids))
        if not ids:
            return set()

        result = self.client.table("access_grants").select("block_id").eq(
            "payer_wallet", payer_address
        ).in_("block_id", ids).execute()
        return {row["block_id"] for row in result.data}
