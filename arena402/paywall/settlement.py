"""
Settlement coordinator
Validates a submitted x402 proof, drives the facilitator through verify and settle,
and leaves the payment record and access ledger in a consistent terminal state
"""

import asyncio
from typing import Optional, Union

import structlog

from arena402.errors import (
    GatewayError,
    OracleUnavailable,
    ProofExpired,
    RequirementMismatch,
    SettlementFailed,
    VerificationFailed,
)
from arena402.models import PaymentRecord, PaywallConfig
from arena402.payments.codec import decode_payment_payload
from arena402.payments.facilitator import SettlementOracle
from arena402.payments.models import PaymentPayload, PaymentRequirements, SettlementReceipt
from arena402.paywall.challenge import ChallengeBuilder
from arena402.paywall.ledger import AccessLedger
from arena402.paywall.payments import UNKNOWN_PAYER, PaymentRecordStore, PaymentStateError
from arena402.users import normalize_address

logger = structlog.get_logger()


class SettlementCoordinator:
    """
    One settle() call per payment attempt:

        decode -> match requirement -> [expiry] -> [lock] -> pending
            -> verify -> settle -> settled + grant

    Everything before the pending record is local and never calls the
    facilitator. Once a record is pending it is always finalized to settled
    or failed before settle() returns or raises.
    """

    def __init__(
        self,
        builder: ChallengeBuilder,
        oracle: SettlementOracle,
        payments: PaymentRecordStore,
        ledger: AccessLedger,
        issuance_log=None,
        lock=None,
    ):
        self.builder = builder
        self.oracle = oracle
        self.payments = payments
        self.ledger = ledger
        self.issuance_log = issuance_log
        self.lock = lock

    def check_requirement(self, accepted: PaymentRequirements, expected: PaymentRequirements, content_id: int) -> None:
        """Exact minor-unit amount string and case-insensitive payout address"""
        amount = accepted.amount
        if not (amount.isascii() and amount.isdigit()) or amount != expected.amount:
            raise RequirementMismatch(
                "Payment amount does not match the required price",
                content_id=content_id,
                expected_amount=expected.amount,
                accepted_amount=accepted.amount,
            )
        if accepted.payTo.strip().lower() != expected.payTo.strip().lower():
            raise RequirementMismatch(
                "Payment recipient does not match the paywall payout address",
                content_id=content_id,
                expected_pay_to=expected.payTo,
                accepted_pay_to=accepted.payTo,
            )

    async def check_expiry(self, accepted: PaymentRequirements, content_id: int) -> None:
        challenge_id = accepted.extra.get("challengeId")
        if not challenge_id:
            raise ProofExpired("Payment proof does not reference an issued challenge", content_id=content_id)
        issued_at = await self.issuance_log.issued_at(str(challenge_id), content_id)
        if issued_at is None:
            raise ProofExpired(
                "Payment challenge expired or unknown; request a new one",
                content_id=content_id,
                challenge_id=challenge_id,
            )

    async def settle(
        self,
        paywall: PaywallConfig,
        content_id: int,
        proof: Union[str, PaymentPayload],
        claimed_payer: Optional[str] = None,
        payer_user_id: Optional[str] = None,
    ) -> SettlementReceipt:
        """Settle a proof for one block; raises a GatewayError on any failure"""
        payload = proof if isinstance(proof, PaymentPayload) else decode_payment_payload(proof)

        expected = self.builder.build(paywall, content_id)
        self.check_requirement(payload.accepted, expected, content_id)

        if self.issuance_log is not None:
            await self.check_expiry(payload.accepted, content_id)
            # Facilitator sees the challenge that was actually issued
            expected = expected.model_copy(
                update={"extra": {**expected.extra, "challengeId": payload.accepted.extra["challengeId"]}}
            )

        resolved_payer = claimed_payer or payload.claimed_payer()
        resolved_payer = normalize_address(resolved_payer) if resolved_payer else None

        if self.lock is not None and resolved_payer is not None:
            async with self.lock.hold(content_id, resolved_payer):
                return await self._settle_recorded(
                    paywall, content_id, payload, expected, resolved_payer, payer_user_id
                )
        return await self._settle_recorded(paywall, content_id, payload, expected, resolved_payer, payer_user_id)

    async def _settle_recorded(
        self,
        paywall: PaywallConfig,
        content_id: int,
        payload: PaymentPayload,
        requirements: PaymentRequirements,
        resolved_payer: Optional[str],
        payer_user_id: Optional[str],
    ) -> SettlementReceipt:
        payment = await self.payments.record_pending(
            paywall_id=paywall.id,
            payer_address=resolved_payer,
            amount_usdc=paywall.price_usdc,
            payer_user_id=payer_user_id,
        )
        try:
            return await self._verify_and_settle(payment, content_id, payload, requirements, resolved_payer)
        except BaseException as e:
            # Covers cancellation and store errors after an on-chain success
            await asyncio.shield(self._fail_if_pending(payment.id, f"settlement interrupted: {type(e).__name__}"))
            raise

    async def _fail_if_pending(self, payment_id: str, reason: str) -> None:
        try:
            await self.payments.mark_failed(payment_id, reason=reason)
        except PaymentStateError:
            # already settled or failed
            return
        logger.warning("payment_finalized_after_interruption", payment_id=payment_id, reason=reason)

    async def _verify_and_settle(
        self,
        payment: PaymentRecord,
        content_id: int,
        payload: PaymentPayload,
        requirements: PaymentRequirements,
        resolved_payer: Optional[str],
    ) -> SettlementReceipt:
        log = logger.bind(payment_id=payment.id, content_id=content_id, payer=payment.payer_address)

        # Verify
        try:
            verification = await self.oracle.verify(payload, requirements)
        except Exception as e:
            await self.payments.mark_failed(payment.id, reason=f"verify error: {e}")
            if isinstance(e, GatewayError):
                raise
            raise OracleUnavailable(f"Facilitator verify failed: {e}", payment_id=payment.id) from e

        if not verification.isValid:
            reason = verification.invalidReason or "Payment verification failed"
            await self.payments.mark_failed(payment.id, reason=reason)
            log.warning("payment_verification_rejected", reason=reason)
            raise VerificationFailed(reason, payment_id=payment.id, content_id=content_id)

        # Settle
        try:
            settlement = await self.oracle.settle(payload, requirements)
        except Exception as e:
            await self.payments.mark_failed(payment.id, reason=f"settle error: {e}")
            raise SettlementFailed(
                f"Payment settlement failed: {e}", payment_id=payment.id, content_id=content_id
            ) from e

        if not settlement.success:
            reason = settlement.errorReason or "Payment settlement failed"
            await self.payments.mark_failed(payment.id, reason=reason)
            log.warning("payment_settlement_rejected", reason=reason)
            raise SettlementFailed(reason, payment_id=payment.id, content_id=content_id)

        await self.payments.mark_settled(payment.id, settlement.transaction)

        grantee = settlement.payer or verification.payer or resolved_payer
        if grantee:
            grant = await self.ledger.grant(content_id, grantee, payment_record_id=payment.id)
            log.info("payment_completed", tx_hash=settlement.transaction, grant_id=grant.id)
            grantee = grant.payer_address
        else:
            log.warning("payment_completed_without_payer", tx_hash=settlement.transaction)
            grantee = UNKNOWN_PAYER

        return SettlementReceipt(
            paymentId=payment.id,
            txHash=settlement.transaction,
            network=settlement.network or requirements.network,
            payer=grantee,
            contentId=content_id,
        )
