import pytest
from fastapi.testclient import TestClient
from solders.keypair import Keypair
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import captcha_provider.main as main_module
from captcha_provider.database import Base, get_db
from captcha_provider.main import app
from captcha_provider.middleware.rate_limit import limiter
from captcha_provider.services.chain_client import get_chain
from tests.test_utils import FakeChain


@pytest.fixture
def db_session():
    """Create a fresh in-memory database for each test."""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def fake_chain():
    return FakeChain()


@pytest.fixture
def user_keypair():
    return Keypair()


@pytest.fixture
def dapp_keypair():
    return Keypair()


@pytest.fixture
def client(db_session, fake_chain):
    """Create a test client with the test database, an in-memory chain and no rate limiting."""

    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_chain] = lambda: fake_chain

    # Disable rate limiting for tests
    limiter.enabled = False

    # Override the engine used by check_database_tables() so it checks the test database
    original_engine = main_module.engine
    main_module.engine = db_session.get_bind()

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()
    limiter.enabled = True
    main_module.engine = original_engine
