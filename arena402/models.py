"""
Arena402 Core Data Models
Shared records for the paywall registry, payment store and access ledger
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional
from pydantic import BaseModel, Field, field_serializer


class PaymentStatus(str, Enum):
    """Payment lifecycle states (pending -> settled | failed)"""
    PENDING = "pending"
    SETTLED = "settled"
    FAILED = "failed"


class PaywallConfig(BaseModel):
    """Price and payout address for one monetized block"""
    id: str
    content_id: int
    owner_id: Optional[str] = None
    price_usdc: Decimal
    payout_address: str
    active: bool = True
    created_at: datetime
    updated_at: datetime

    # Joined from the owner's user record when available
    owner_username: Optional[str] = None
    owner_slug: Optional[str] = None

    @field_serializer("price_usdc")
    def serialize_price(self, price: Decimal) -> str:
        return f"{price:.6f}"


class PaywallSummary(BaseModel):
    """Per-block annotation returned by batch lookups"""
    price_usdc: Decimal
    active: bool

    @field_serializer("price_usdc")
    def serialize_price(self, price: Decimal) -> str:
        return f"{price:.6f}"


class PaymentRecord(BaseModel):
    """One attempt to pay for access"""
    id: str
    paywall_id: Optional[str] = None
    payer_address: str
    payer_user_id: Optional[str] = None
    amount_usdc: Decimal
    settlement_ref: Optional[str] = None
    status: PaymentStatus = PaymentStatus.PENDING
    failure_reason: Optional[str] = None
    settled_at: Optional[datetime] = None
    created_at: datetime

    @field_serializer("amount_usdc")
    def serialize_amount(self, amount: Decimal) -> str:
        return f"{amount:.6f}"


class AccessGrant(BaseModel):
    """Durable record that a payer address may read a block"""
    id: str
    content_id: int
    payer_address: str
    payment_record_id: Optional[str] = None
    granted_at: datetime


class AccessStatus(BaseModel):
    """Composite paywall/access decision for one block and caller"""
    content_id: int
    is_paywalled: bool
    has_access: bool
    price_usdc: Optional[Decimal] = None
    payout_address: Optional[str] = None

    @field_serializer("price_usdc")
    def serialize_price(self, price: Optional[Decimal]) -> Optional[str]:
        return f"{price:.6f}" if price is not None else None


class PaywallStats(BaseModel):
    """Payment totals for one paywall"""
    total_payments: int
    total_settled: int
    total_revenue: str = Field(description="Exact 6-decimal USDC string")


class UserRecord(BaseModel):
    """User linked to an Are.na account"""
    id: str
    arena_user_id: int
    arena_username: Optional[str] = None
    arena_slug: Optional[str] = None
    arena_access_token: Optional[str] = None
    wallet_address: Optional[str] = None
    created_at: datetime
    updated_at: datetime
