"""
Paywall core: registry, access ledger, payment records, challenges and settlement
"""

from arena402.paywall.challenge import ChallengeBuilder, from_minor_units, to_minor_units, USDC_DECIMALS
from arena402.paywall.gateway import Allow, Challenge, PaywallGateway, Reject
from arena402.paywall.ledger import AccessLedger
from arena402.paywall.payments import PaymentRecordStore
from arena402.paywall.registry import PaywallPatch, PaywallRegistry
from arena402.paywall.settlement import SettlementCoordinator

__all__ = [
    "AccessLedger",
    "Allow",
    "Challenge",
    "ChallengeBuilder",
    "PaymentRecordStore",
    "PaywallGateway",
    "PaywallPatch",
    "PaywallRegistry",
    "Reject",
    "SettlementCoordinator",
    "USDC_DECIMALS",
    "from_minor_units",
    "to_minor_units",
]
