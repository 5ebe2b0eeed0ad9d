"""
Content-serving decision point
Every path that serves a block asks the gateway first
"""

from dataclasses import dataclass
from typing import Optional, Union

import structlog

from arena402.errors import GatewayError
from arena402.models import AccessStatus, PaywallConfig
from arena402.payments.codec import encode_header
from arena402.payments.models import PaymentPayload, PaymentRequired, PaymentRequirements, SettlementReceipt
from arena402.paywall.challenge import ChallengeBuilder
from arena402.paywall.issuance import new_challenge_id
from arena402.paywall.ledger import AccessLedger
from arena402.paywall.registry import PaywallRegistry
from arena402.paywall.settlement import SettlementCoordinator

logger = structlog.get_logger()


@dataclass
class Allow:
    """Serve the content; receipt is set when this request paid for it"""
    status: Optional[AccessStatus] = None
    receipt: Optional[SettlementReceipt] = None


@dataclass
class Challenge:
    """Payment required before the content is served"""
    paywall: PaywallConfig
    requirements: PaymentRequirements
    payment_required: PaymentRequired

    @property
    def header(self) -> str:
        return encode_header(self.payment_required)


@dataclass
class Reject:
    """A submitted payment was refused"""
    error: GatewayError


Decision = Union[Allow, Challenge]
PaymentOutcome = Union[Allow, Reject]


class PaywallGateway:
    def __init__(
        self,
        registry: PaywallRegistry,
        ledger: AccessLedger,
        builder: ChallengeBuilder,
        coordinator: SettlementCoordinator,
        issuance_log=None,
    ):
        self.registry = registry
        self.ledger = ledger
        self.builder = builder
        self.coordinator = coordinator
        self.issuance_log = issuance_log

    async def decide(self, content_id: int, wallet: Optional[str] = None) -> Decision:
        """Allow free or already-granted content, otherwise issue a challenge"""
        status = await self.ledger.status_for(content_id, wallet)
        if not status.is_paywalled or status.has_access:
            return Allow(status=status)

        paywall = await self.registry.get_active(content_id)
        if paywall is None:
            # Deactivated between the two reads
            return Allow(status=AccessStatus(content_id=content_id, is_paywalled=False, has_access=True))

        return await self.challenge(paywall, content_id)

    async def challenge(
        self,
        paywall: PaywallConfig,
        content_id: int,
        error: Optional[str] = "Payment required to access this content",
    ) -> Challenge:
        requirements = self.builder.build(paywall, content_id)
        if self.issuance_log is not None:
            challenge_id = new_challenge_id()
            issued_at = await self.issuance_log.record(
                challenge_id, content_id, requirements.maxTimeoutSeconds
            )
            requirements = requirements.model_copy(
                update={"extra": {**requirements.extra, "challengeId": challenge_id, "issuedAt": int(issued_at)}}
            )

        logger.info(
            "payment_challenge_issued",
            content_id=content_id,
            amount=requirements.amount,
            pay_to=requirements.payTo,
        )
        return Challenge(
            paywall=paywall,
            requirements=requirements,
            payment_required=self.builder.payment_required(requirements, content_id, error=error),
        )

    async def submit_payment(
        self,
        content_id: int,
        proof: Union[str, PaymentPayload],
        wallet: Optional[str] = None,
        payer_user_id: Optional[str] = None,
    ) -> PaymentOutcome:
        """
        Settle a proof for a block.

        Free blocks and payers who already hold a grant are allowed without
        touching the proof.
        """
        status = await self.ledger.status_for(content_id, wallet)
        if not status.is_paywalled or status.has_access:
            return Allow(status=status)

        paywall = await self.registry.get_active(content_id)
        if paywall is None:
            return Allow(status=AccessStatus(content_id=content_id, is_paywalled=False, has_access=True))

        try:
            receipt = await self.coordinator.settle(
                paywall, content_id, proof, claimed_payer=wallet, payer_user_id=payer_user_id
            )
        except GatewayError as e:
            logger.warning("payment_rejected", content_id=content_id, error=e.code, message=e.message)
            return Reject(error=e)

        return Allow(
            status=AccessStatus(
                content_id=content_id,
                is_paywalled=True,
                has_access=True,
                price_usdc=paywall.price_usdc,
                payout_address=paywall.payout_address,
            ),
            receipt=receipt,
        )
