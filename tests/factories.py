"""
Factory Boy factories for generating test data
"""

import uuid
from datetime import datetime, timezone
from decimal import Decimal

import factory
from eth_account import Account

from arena402.models import AccessGrant, PaymentRecord, PaymentStatus, PaywallConfig, UserRecord


def _now():
    return datetime.now(timezone.utc)


class UserRecordFactory(factory.Factory):
    """Factory for UserRecord"""
    class Meta:
        model = UserRecord

    id = factory.LazyFunction(lambda: str(uuid.uuid4()))
    arena_user_id = factory.Sequence(lambda n: 2000 + n)
    arena_username = factory.Sequence(lambda n: f"Reader {n}")
    arena_slug = factory.Sequence(lambda n: f"reader-{n}")
    arena_access_token = factory.Sequence(lambda n: f"token-{n}")
    wallet_address = factory.LazyFunction(lambda: Account.create().address)
    created_at = factory.LazyFunction(_now)
    updated_at = factory.LazyFunction(_now)


class PaywallConfigFactory(factory.Factory):
    """Factory for PaywallConfig"""
    class Meta:
        model = PaywallConfig

    id = factory.LazyFunction(lambda: str(uuid.uuid4()))
    content_id = factory.Sequence(lambda n: 100 + n)
    owner_id = factory.LazyFunction(lambda: str(uuid.uuid4()))
    price_usdc = Decimal("0.050000")
    payout_address = "0x742d35Cc6634C0532925a3b844Bc9e7595f0bEb1"
    active = True
    created_at = factory.LazyFunction(_now)
    updated_at = factory.LazyFunction(_now)


class PaymentRecordFactory(factory.Factory):
    """Factory for PaymentRecord"""
    class Meta:
        model = PaymentRecord

    id = factory.LazyFunction(lambda: str(uuid.uuid4()))
    paywall_id = factory.LazyFunction(lambda: str(uuid.uuid4()))
    payer_address = factory.LazyFunction(lambda: Account.create().address.lower())
    amount_usdc = Decimal("0.050000")
    status = PaymentStatus.PENDING
    created_at = factory.LazyFunction(_now)


class AccessGrantFactory(factory.Factory):
    """Factory for AccessGrant"""
    class Meta:
        model = AccessGrant

    id = factory.LazyFunction(lambda: str(uuid.uuid4()))
    content_id = factory.Sequence(lambda n: 100 + n)
    payer_address = factory.LazyFunction(lambda: Account.create().address.lower())
    payment_record_id = None
    granted_at = factory.LazyFunction(_now)
