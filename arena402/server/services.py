"""
Service wiring for the gateway
Everything a request needs is constructed once here and shared via app.state
"""

from dataclasses import dataclass
from typing import Optional

import structlog
from upstash_redis.asyncio import Redis

from arena402.auth.arena_oauth import ArenaOAuth
from arena402.config import GatewayConfig
from arena402.database import Database, create_database
from arena402.payments.facilitator import FacilitatorClient, SettlementOracle
from arena402.paywall.challenge import ChallengeBuilder
from arena402.paywall.gateway import PaywallGateway
from arena402.paywall.issuance import LocalIssuanceLog, RedisIssuanceLog
from arena402.paywall.ledger import AccessLedger
from arena402.paywall.locks import LocalSettlementLock, RedisSettlementLock
from arena402.paywall.payments import PaymentRecordStore
from arena402.paywall.registry import PaywallRegistry
from arena402.paywall.settlement import SettlementCoordinator
from arena402.upstream.arena import ArenaClient
from arena402.users import UserDirectory

logger = structlog.get_logger()


@dataclass
class GatewayServices:
    config: GatewayConfig
    db: Database
    oracle: SettlementOracle
    arena: ArenaClient
    oauth: ArenaOAuth
    users: UserDirectory
    registry: PaywallRegistry
    ledger: AccessLedger
    payments: PaymentRecordStore
    builder: ChallengeBuilder
    coordinator: SettlementCoordinator
    gateway: PaywallGateway

    async def aclose(self) -> None:
        for client in (self.oracle, self.arena, self.oauth):
            close = getattr(client, "aclose", None)
            if close is not None:
                await close()


def _redis_client(config: GatewayConfig):
    return Redis(url=config.upstash_redis_rest_url, token=config.upstash_redis_rest_token)


def build_services(
    config: GatewayConfig,
    db: Optional[Database] = None,
    oracle: Optional[SettlementOracle] = None,
    arena: Optional[ArenaClient] = None,
    redis=None,
) -> GatewayServices:
    """Construct the service graph; collaborators may be injected for tests"""
    db = db if db is not None else create_database(config)
    oracle = oracle or FacilitatorClient(
        config.facilitator_url, timeout_seconds=config.facilitator_timeout_seconds
    )
    arena = arena or ArenaClient(config.arena_api_url)

    if redis is None and config.uses_redis and (config.enforce_proof_expiry or config.settlement_lock_enabled):
        redis = _redis_client(config)

    issuance_log = None
    if config.enforce_proof_expiry:
        issuance_log = RedisIssuanceLog(redis) if redis is not None else LocalIssuanceLog()

    lock = None
    if config.settlement_lock_enabled:
        lock = (
            RedisSettlementLock(redis, ttl_seconds=config.settlement_lock_ttl_seconds)
            if redis is not None
            else LocalSettlementLock(ttl_seconds=config.settlement_lock_ttl_seconds)
        )

    users = UserDirectory(db)
    registry = PaywallRegistry(db, min_price_usdc=config.min_price_usdc, upstream=arena)
    ledger = AccessLedger(db, registry)
    payments = PaymentRecordStore(db)
    builder = ChallengeBuilder(
        network=config.network,
        asset=config.usdc_contract_address,
        max_timeout_seconds=config.payment_timeout_seconds,
        resource_prefix=config.resource_path_prefix,
        decimals=config.usdc_decimals,
    )
    coordinator = SettlementCoordinator(
        builder, oracle, payments, ledger, issuance_log=issuance_log, lock=lock
    )
    gateway = PaywallGateway(registry, ledger, builder, coordinator, issuance_log=issuance_log)

    logger.info(
        "gateway_services_built",
        store=type(db).__name__,
        oracle=type(oracle).__name__,
        proof_expiry=issuance_log is not None,
        settlement_lock=lock is not None,
    )

    return GatewayServices(
        config=config,
        db=db,
        oracle=oracle,
        arena=arena,
        oauth=ArenaOAuth(
            config.arena_client_id,
            config.arena_client_secret,
            config.arena_redirect_uri,
            arena=arena,
        ),
        users=users,
        registry=registry,
        ledger=ledger,
        payments=payments,
        builder=builder,
        coordinator=coordinator,
        gateway=gateway,
    )
