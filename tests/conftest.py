import boto3
import pytest
from botocore.stub import Stubber
from datetime import timedelta
from decimal import Decimal
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.pool import StaticPool

from app.db.database import Base, get_db
from app.core.config import settings
from app.core.security import create_access_token, get_password_hash
from app.core.tenant import TenantContext
from app.models import *  # noqa: F401,F403
from app.models.bank_account import BankAccount
from app.models.company import Company, UserCompany
from app.models.ml_integration import MLIntegration
from app.models.user import User
from app.services.storage_service import ObjectStorage
from app.utils.dates import utcnow

ML_API = "https://api.mercadolibre.com"


@pytest.fixture(autouse=True)
def ml_credentials(monkeypatch):
    """Mercado Livre app credentials for every test."""
    monkeypatch.setattr(settings, "ML_CLIENT_ID", "test-client")
    monkeypatch.setattr(settings, "ML_CLIENT_SECRET", "test-secret")
    monkeypatch.setattr(settings, "ML_API_URL", ML_API)


@pytest.fixture
async def test_engine():
    """Create test database engine."""
    engine = create_async_engine(
        settings.TEST_DATABASE_URL,
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False}
    )

    # Create tables
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    # Drop tables
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture
def session_maker(test_engine):
    return async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db_session(session_maker):
    """Create test database session."""
    async with session_maker() as session:
        yield session


@pytest.fixture
async def user(db_session):
    user = User(email="owner@example.com", name="Owner", password_hash=get_password_hash("secret123"))
    db_session.add(user)
    await db_session.commit()
    return user


@pytest.fixture
async def company(db_session, user):
    company = Company(name="Loja Teste")
    db_session.add(company)
    await db_session.flush()
    db_session.add(UserCompany(user_id=user.id, company_id=company.id, role="owner", is_default=True))
    await db_session.commit()
    return company


@pytest.fixture
def tenant(user, company):
    return TenantContext(user_id=user.id, company_id=company.id)


@pytest.fixture
async def bank_account(db_session, company):
    account = BankAccount(
        company_id=company.id,
        name="Conta principal",
        initial_balance=Decimal("1000.00"),
        current_balance=Decimal("1000.00"),
        overdraft_limit=Decimal("0"),
        is_default=True,
        is_active=True,
    )
    db_session.add(account)
    await db_session.commit()
    return account


@pytest.fixture
async def integration(db_session, company, user):
    now = utcnow()
    integration = MLIntegration(
        company_id=company.id,
        user_id=user.id,
        ml_user_id="123456",
        nickname="LOJATESTE",
        site_id="MLB",
        access_token="APP_USR-old",
        refresh_token="TG-refresh",
        access_token_expires_at=now + timedelta(hours=6),
        status="active",
        connected_at=now,
        expires_at=now + timedelta(days=365),
    )
    db_session.add(integration)
    await db_session.commit()
    return integration


@pytest.fixture
def auth_headers(user):
    return {"Authorization": f"Bearer {create_access_token(subject=user.id)}"}


@pytest.fixture
async def client(session_maker):
    """HTTP client against the app with the database dependency pointed at the test engine."""
    from main import app

    async def override_get_db():
        async with session_maker() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as http_client:
        yield http_client
    app.dependency_overrides.clear()


@pytest.fixture
def s3_stub():
    """Object storage on a real boto3 client whose calls are answered by a botocore Stubber."""
    s3_client = boto3.client(
        "s3", region_name="us-east-1", aws_access_key_id="testing", aws_secret_access_key="testing"
    )
    with Stubber(s3_client) as stubber:
        yield ObjectStorage(client=s3_client, bucket="imagens"), stubber
        stubber.assert_no_pending_responses()
