"""
Payment challenge construction
Turns a paywall configuration into the x402 requirement a buyer must satisfy
"""

from decimal import Decimal, InvalidOperation, ROUND_DOWN
from typing import Optional, Union

from arena402.models import PaywallConfig
from arena402.payments.models import PaymentRequired, PaymentRequirements, ResourceInfo

# USDC has 6 decimals
USDC_DECIMALS = 6

NETWORK_IDS = {
    "base": "eip155:8453",
    "base-sepolia": "eip155:84532",
}

# EIP-712 domain of the USDC contract on each network
USDC_DOMAINS = {
    "base": {"name": "USD Coin", "version": "2"},
    "base-sepolia": {"name": "USDC", "version": "2"},
}

DEFAULT_TIMEOUT_SECONDS = 300


def to_minor_units(amount: Union[str, Decimal], decimals: int = USDC_DECIMALS) -> int:
    """
    Convert a decimal token amount to integer minor units.
    Digits beyond the token's precision are truncated; no binary floats involved.
    """
    try:
        value = amount if isinstance(amount, Decimal) else Decimal(amount)
    except InvalidOperation:
        raise ValueError(f"Not a decimal amount: {amount!r}")
    if not value.is_finite():
        raise ValueError(f"Not a finite amount: {amount!r}")
    return int(value.scaleb(decimals).to_integral_value(rounding=ROUND_DOWN))


def from_minor_units(units: Union[int, str], decimals: int = USDC_DECIMALS) -> str:
    """Convert integer minor units back to a fixed-precision decimal string"""
    return f"{Decimal(int(units)).scaleb(-decimals):.{decimals}f}"


class ChallengeBuilder:
    """
    Builds payment requirements for paywalled blocks.

    build() is a pure function of its inputs: same paywall and block id,
    same requirement.
    """

    def __init__(
        self,
        network: str = "base-sepolia",
        asset: str = "0x036CbD53842c5426634e7929541eC2318f3dCF7e",
        max_timeout_seconds: int = DEFAULT_TIMEOUT_SECONDS,
        resource_prefix: str = "/v2/blocks",
        decimals: int = USDC_DECIMALS,
    ):
        if network not in NETWORK_IDS:
            raise ValueError(f"Unsupported network: {network}")
        self.network = network
        self.network_id = NETWORK_IDS[network]
        self.asset = asset
        self.max_timeout_seconds = max_timeout_seconds
        self.resource_prefix = resource_prefix.rstrip("/")
        self.decimals = decimals

    def resource_path(self, content_id: int) -> str:
        return f"{self.resource_prefix}/{content_id}"

    def build(self, paywall: PaywallConfig, content_id: int) -> PaymentRequirements:
        """Requirement descriptor for one block"""
        extra = {
            **USDC_DOMAINS[self.network],
            "contentId": content_id,
            "displayName": f"Block {content_id}",
        }
        if paywall.owner_username:
            extra["ownerUsername"] = paywall.owner_username

        return PaymentRequirements(
            scheme="exact",
            network=self.network_id,
            amount=str(to_minor_units(paywall.price_usdc, self.decimals)),
            asset=self.asset,
            payTo=paywall.payout_address,
            resource=self.resource_path(content_id),
            maxTimeoutSeconds=self.max_timeout_seconds,
            extra=extra,
        )

    def payment_required(
        self,
        requirements: PaymentRequirements,
        content_id: int,
        error: Optional[str] = "Payment required to access this content",
    ) -> PaymentRequired:
        """Wrap a requirement in the x402 402 envelope"""
        return PaymentRequired(
            error=error,
            resource=ResourceInfo(
                url=self.resource_path(content_id),
                description=f"Access to block {content_id}",
            ),
            accepts=[requirements],
        )
