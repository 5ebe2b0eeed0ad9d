"""
Payment record store
Owns the pending -> settled | failed lifecycle of each payment attempt
"""

from decimal import Decimal
from typing import List, Optional

import structlog

from arena402.models import PaymentRecord, PaymentStatus, PaywallStats
from arena402.users import normalize_address

logger = structlog.get_logger()

UNKNOWN_PAYER = "unknown"


class PaymentStateError(RuntimeError):
    """A terminal transition was attempted on a payment that is not pending"""


class PaymentRecordStore:
    """Records payment attempts; a record reaches exactly one terminal state"""

    def __init__(self, db):
        self.db = db

    async def record_pending(
        self,
        paywall_id: Optional[str],
        payer_address: Optional[str],
        amount_usdc: Decimal,
        payer_user_id: Optional[str] = None,
    ) -> PaymentRecord:
        """Create a payment in pending state"""
        payer = normalize_address(payer_address) if payer_address else UNKNOWN_PAYER
        payment = await self.db.insert_payment(
            paywall_id=paywall_id,
            payer_address=payer,
            amount_usdc=amount_usdc,
            payer_user_id=payer_user_id,
        )
        logger.info(
            "payment_recorded",
            payment_id=payment.id,
            paywall_id=paywall_id,
            payer=payer,
            amount=f"{amount_usdc:.6f}",
        )
        return payment

    async def mark_settled(self, payment_id: str, settlement_ref: Optional[str]) -> PaymentRecord:
        """pending -> settled, storing the on-chain transaction reference"""
        updated = await self.db.transition_payment(
            payment_id, PaymentStatus.SETTLED, settlement_ref=settlement_ref
        )
        if updated is None:
            raise PaymentStateError(f"Payment {payment_id} is not pending")
        logger.info("payment_settled", payment_id=payment_id, tx_hash=settlement_ref)
        return updated

    async def mark_failed(self, payment_id: str, reason: Optional[str] = None) -> PaymentRecord:
        """pending -> failed, keeping the reason for the audit trail"""
        updated = await self.db.transition_payment(
            payment_id, PaymentStatus.FAILED, failure_reason=reason
        )
        if updated is None:
            raise PaymentStateError(f"Payment {payment_id} is not pending")
        logger.warning("payment_failed", payment_id=payment_id, reason=reason)
        return updated

    async def get(self, payment_id: str) -> Optional[PaymentRecord]:
        return await self.db.get_payment(payment_id)

    async def list_by_paywall(self, paywall_id: str) -> List[PaymentRecord]:
        return await self.db.get_payments_by_paywall(paywall_id)

    async def list_by_payer(self, payer_address: str) -> List[PaymentRecord]:
        return await self.db.get_payments_by_payer(normalize_address(payer_address))

    async def stats_for_paywall(self, paywall_id: str) -> PaywallStats:
        """Totals over all attempts; revenue counts settled payments only"""
        payments = await self.list_by_paywall(paywall_id)
        settled = [p for p in payments if p.status == PaymentStatus.SETTLED]
        revenue = sum((p.amount_usdc for p in settled), Decimal("0"))
        return PaywallStats(
            total_payments=len(payments),
            total_settled=len(settled),
            total_revenue=f"{revenue:.6f}",
        )
