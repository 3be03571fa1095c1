import pytest
from httpx import ASGITransport, AsyncClient

from connectpay.config import Settings
from connectpay.container import build_services
from connectpay.main import create_app
from stripe_fakes import WEBHOOK_SECRET


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def settings():
    """Settings isolated from any local .env file."""
    return Settings(
        _env_file=None,
        STRIPE_SECRET_KEY="sk_test_123",
        STRIPE_WEBHOOK_SECRET=WEBHOOK_SECRET,
        APP_URL="https://api.example.com",
        FRONTEND_APP_URL="https://app.example.com",
        APP_ENV="test",
    )


@pytest.fixture
def services(settings):
    return build_services(settings)


@pytest.fixture
async def client(services):
    # Unhandled errors still get the 500 envelope; don't re-raise them here.
    transport = ASGITransport(app=create_app(services), raise_app_exceptions=False)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
