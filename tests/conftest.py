"""
Pytest configuration and shared fixtures
"""

import pytest
from eth_account import Account
from fastapi.testclient import TestClient

from arena402.buyer.signer import PaymentSigner
from arena402.config import GatewayConfig
from arena402.database.memory import InMemoryDatabase
from arena402.payments.models import PaymentPayload, PaymentRequirements
from arena402.paywall.challenge import ChallengeBuilder
from arena402.paywall.ledger import AccessLedger
from arena402.paywall.payments import PaymentRecordStore
from arena402.paywall.registry import PaywallRegistry
from arena402.paywall.settlement import SettlementCoordinator
from arena402.paywall.gateway import PaywallGateway
from arena402.server.app import create_app
from arena402.server.services import build_services
from tests.factories import UserRecordFactory
from tests.fakes import BUYER_KEY, OWNER_ARENA_ID, RECIPIENT, FakeArena, FakeOracle


@pytest.fixture
def test_buyer_account():
    """Create a test buyer account"""
    return Account.from_key(BUYER_KEY)


@pytest.fixture
def config() -> GatewayConfig:
    """Gateway config isolated from any local .env"""
    return GatewayConfig(
        _env_file=None,
        network="base-sepolia",
        jwt_secret="test-secret",
        admin_api_key="admin-key",
        log_format="text",
    )


@pytest.fixture
def db() -> InMemoryDatabase:
    return InMemoryDatabase()


@pytest.fixture
def oracle() -> FakeOracle:
    return FakeOracle()


@pytest.fixture
def arena() -> FakeArena:
    return FakeArena()


@pytest.fixture
def builder() -> ChallengeBuilder:
    return ChallengeBuilder(network="base-sepolia")


@pytest.fixture
def registry(db, arena) -> PaywallRegistry:
    return PaywallRegistry(db, min_price_usdc="0.01", upstream=arena)


@pytest.fixture
def ledger(db, registry) -> AccessLedger:
    return AccessLedger(db, registry)


@pytest.fixture
def payments(db) -> PaymentRecordStore:
    return PaymentRecordStore(db)


@pytest.fixture
def coordinator(builder, oracle, payments, ledger) -> SettlementCoordinator:
    return SettlementCoordinator(builder, oracle, payments, ledger)


@pytest.fixture
def gateway(registry, ledger, builder, coordinator) -> PaywallGateway:
    return PaywallGateway(registry, ledger, builder, coordinator)


@pytest.fixture
def owner(db):
    """Block owner with a payout wallet on file"""
    user = UserRecordFactory(
        arena_user_id=OWNER_ARENA_ID,
        arena_username="Owner",
        arena_slug="owner",
        arena_access_token="owner-token",
        wallet_address=RECIPIENT,
    )
    db.users[user.id] = user
    return user


@pytest.fixture
def services(config, db, oracle, arena):
    return build_services(config, db=db, oracle=oracle, arena=arena)


@pytest.fixture
def client(config, services) -> TestClient:
    """Create FastAPI test client (sync)"""
    return TestClient(create_app(config, services=services))


@pytest.fixture
def make_proof(builder):
    """Sign a proof for a requirement, optionally tampering with the accepted fields"""
    signer = PaymentSigner(BUYER_KEY)

    def _make(requirements: PaymentRequirements, content_id: int = 42, **overrides) -> PaymentPayload:
        accepted = requirements.model_copy(update=overrides) if overrides else requirements
        return signer.sign(builder.payment_required(accepted, content_id))

    return _make
