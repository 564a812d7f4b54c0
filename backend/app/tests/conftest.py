"""Pytest configuration for app tests

WHAT: Provides shared fixtures for service, HTTP endpoint and database tests
WHY: Ensures consistent test setup, database isolation, and fakes for the
     Google Ads REST API and OpenAI so no test touches the network
REFERENCES:
    - app/main.py: FastAPI application
    - app/database.py: Database configuration
    - app/deps.py: Dependency injection
    - app/routers/google_ads_deps.py: Google Ads client dependencies
"""

import json
import os
from datetime import datetime
from typing import Any, Dict, Generator, List, Optional
from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

# Set test environment
os.environ.setdefault("JWT_SECRET", "test-jwt-secret")
# Must be URL-safe base64-encoded 32-byte string (app.security validates at import time)
os.environ.setdefault("TOKEN_ENCRYPTION_KEY", "MDAwMDAwMDAwMDAwMDAwMDAwMDAwMDAwMDAwMDAwMDA=")
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("OPENAI_API_KEY", "test-api-key")


# ============================================================================
# Fakes
# ============================================================================

class FakeResponse:
    """Minimal stand-in for httpx.Response."""

    def __init__(self, status_code: int = 200, body: Any = None):
        self.status_code = status_code
        self._body = body if body is not None else {}
        self.text = json.dumps(self._body) if body is not None else ""

    def json(self):
        return self._body


class FakeHttp:
    """Scriptable HTTP transport for GAdsClient.

    Responses are matched by URL suffix (first match wins) and consumed in
    order when a list is given. Every call is recorded.
    """

    def __init__(self):
        self.routes: List[tuple] = []
        self.calls: List[Dict[str, Any]] = []

    def add(self, url_suffix: str, *responses: FakeResponse, when=None):
        self.routes.append((url_suffix, list(responses), when))
        return self

    def request(self, method, url, headers=None, json=None):
        self.calls.append({"method": method, "url": url, "headers": dict(headers or {}), "json": json})
        for suffix, responses, when in self.routes:
            if url.endswith(suffix) and (when is None or when(headers or {}, json)):
                if len(responses) > 1:
                    return responses.pop(0)
                return responses[0]
        return FakeResponse(404, {"error": {"code": 404, "message": f"no route for {url}", "status": "NOT_FOUND"}})

    def post(self, url, data=None):
        self.calls.append({"method": "POST", "url": url, "data": data})
        for suffix, responses, when in self.routes:
            if url.endswith(suffix):
                if len(responses) > 1:
                    return responses.pop(0)
                return responses[0]
        return FakeResponse(404, {"error": "not_found"})


class FakeAdsClient:
    """In-memory GAdsClient with canned snapshots; mutations are recorded."""

    def __init__(
        self,
        campaigns: Optional[List[Dict[str, Any]]] = None,
        keywords: Optional[List[Dict[str, Any]]] = None,
        ads: Optional[List[Dict[str, Any]]] = None,
        search_terms: Optional[List[Dict[str, Any]]] = None,
        baseline_campaigns: Optional[List[Dict[str, Any]]] = None,
        sitelinks: int = 4,
        fail_on: Optional[Dict[str, Exception]] = None,
    ):
        self.campaigns = campaigns or []
        self.keywords = keywords or []
        self.ads = ads or []
        self.search_terms = search_terms or []
        self.baseline_campaigns = baseline_campaigns
        self.sitelinks = sitelinks
        self.fail_on = fail_on or {}
        self.login_customer_id = None
        self.mutations: List[tuple] = []
        self._campaign_calls = 0

    def _maybe_fail(self, name):
        if name in self.fail_on:
            raise self.fail_on[name]

    def list_campaigns(self, customer_id, date_range="LAST_30_DAYS", active_only=False):
        self._campaign_calls += 1
        if self.baseline_campaigns is not None and self._campaign_calls % 2 == 0:
            return list(self.baseline_campaigns)
        rows = self.campaigns
        if active_only:
            rows = [c for c in rows if c.get("status") == "ENABLED"]
        return list(rows)

    def list_keywords(self, customer_id, campaign_id=None, date_range="LAST_30_DAYS"):
        return [k for k in self.keywords if campaign_id is None or k["campaign_id"] == str(campaign_id)]

    def list_ads(self, customer_id, campaign_id=None):
        return list(self.ads)

    def list_search_terms(self, customer_id, campaign_id=None, date_range="LAST_30_DAYS"):
        return list(self.search_terms)

    def count_sitelinks(self, customer_id):
        return self.sitelinks

    def list_accessible_customers(self):
        return ["1234567890"]

    def list_accounts(self):
        return [{"customer_id": "1234567890", "name": "Main", "accessible": True}]

    def get_campaign_budget(self, customer_id, campaign_id):
        self._maybe_fail("get_campaign_budget")
        for c in self.campaigns:
            if c["id"] == str(campaign_id):
                return {"resource_name": c.get("budget_resource_name"), "amount": c.get("budget")}
        raise ValueError(f"Campaign {campaign_id} not found")

    def pause_campaign(self, customer_id, campaign_id):
        self._maybe_fail("pause_campaign")
        self.mutations.append(("pause_campaign", campaign_id))
        return {"results": [{"resourceName": f"customers/{customer_id}/campaigns/{campaign_id}"}]}

    def enable_campaign(self, customer_id, campaign_id):
        self.mutations.append(("enable_campaign", campaign_id))
        return {"results": [{"resourceName": f"customers/{customer_id}/campaigns/{campaign_id}"}]}

    def update_campaign_budget(self, customer_id, budget_resource_name, amount):
        self._maybe_fail("update_campaign_budget")
        self.mutations.append(("update_campaign_budget", budget_resource_name, amount))
        return {"results": [{"resourceName": budget_resource_name}]}

    def add_negative_keywords(self, customer_id, campaign_id, keywords, match_type="BROAD"):
        self._maybe_fail("add_negative_keywords")
        self.mutations.append(("add_negative_keywords", campaign_id, list(keywords), match_type))
        return {"results": [{"resourceName": f"criterion-{i}"} for i, _ in enumerate(keywords)]}

    def update_keyword_bids(self, customer_id, updates):
        self.mutations.append(("update_keyword_bids", list(updates)))
        return {"results": [{"resourceName": f"bid-{i}"} for i, _ in enumerate(updates)]}

    def create_campaign(self, customer_id, draft):
        self.mutations.append(("create_campaign", draft))
        return {
            "budget": f"customers/{customer_id}/campaignBudgets/1",
            "campaign": f"customers/{customer_id}/campaigns/99",
            "campaign_id": "99",
            "ad_group": f"customers/{customer_id}/adGroups/5",
            "keywords": [],
            "ad": None,
        }


def make_campaign(**overrides) -> Dict[str, Any]:
    campaign = {
        "id": "111",
        "name": "Brand Search",
        "status": "ENABLED",
        "channel_type": "SEARCH",
        "budget": 50.0,
        "budget_resource_name": "customers/1234567890/campaignBudgets/9",
        "impressions": 1000,
        "clicks": 40,
        "cost": 80.0,
        "conversions": 4.0,
        "conversion_value": 400.0,
        "ctr": 0.04,
        "average_cpc": 2.0,
        "search_impression_share": None,
    }
    campaign.update(overrides)
    return campaign


@pytest.fixture
def fake_http():
    return FakeHttp()


@pytest.fixture
def campaign_factory():
    return make_campaign


@pytest.fixture
def fake_ads():
    return FakeAdsClient(campaigns=[make_campaign()])


# ============================================================================
# Database Fixtures
# ============================================================================

@pytest.fixture
def test_db_engine():
    """Create in-memory test database engine."""
    # StaticPool: TestClient runs sync endpoints on worker threads
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    from app.models import Base
    Base.metadata.create_all(bind=engine)

    yield engine

    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def test_db_session(test_db_engine) -> Generator[Session, None, None]:
    """Create test database session with rollback."""
    SessionLocal = sessionmaker(
        autocommit=False,
        autoflush=False,
        bind=test_db_engine
    )

    session = SessionLocal()
    yield session
    session.rollback()
    session.close()


# ============================================================================
# Model Fixtures
# ============================================================================

@pytest.fixture
def test_user(test_db_session):
    """Create test user."""
    from app.models import User

    user = User(
        email="test@example.com",
        name="Test User",
        created_at=datetime.utcnow()
    )

    test_db_session.add(user)
    test_db_session.commit()
    test_db_session.refresh(user)

    return user


@pytest.fixture
def shared_settings():
    """Settings with shared service credentials configured."""
    from app.deps import Settings

    return Settings(
        GOOGLE_DEVELOPER_TOKEN="shared-dev-token",
        GOOGLE_CLIENT_ID="shared-client",
        GOOGLE_CLIENT_SECRET="shared-secret",
        GOOGLE_REFRESH_TOKEN="shared-refresh",
        GOOGLE_CUSTOMER_ID="111-222-3333",
        _env_file=None,
    )


@pytest.fixture
def empty_settings():
    """Settings with no shared credentials."""
    from app.deps import Settings

    return Settings(
        GOOGLE_DEVELOPER_TOKEN=None,
        GOOGLE_CLIENT_ID=None,
        GOOGLE_CLIENT_SECRET=None,
        GOOGLE_REFRESH_TOKEN=None,
        GOOGLE_CUSTOMER_ID=None,
        _env_file=None,
    )


# ============================================================================
# Application & Client Fixtures
# ============================================================================

@pytest.fixture
def app(test_db_session):
    """Create FastAPI test application."""
    from app.main import create_app
    from app.database import get_db

    test_app = create_app()

    def override_get_db():
        yield test_db_session

    test_app.dependency_overrides[get_db] = override_get_db

    return test_app


@pytest.fixture
def client(app) -> TestClient:
    """Create TestClient for HTTP testing."""
    return TestClient(app)


@pytest.fixture
def auth_headers(test_user):
    """Standard auth headers for requests."""
    from app.security import create_access_token

    token = create_access_token(test_user.email)
    return {
        "Authorization": f"Bearer {token}",
        "Content-Type": "application/json"
    }


@pytest.fixture
def use_fake_ads(app):
    """Route every Google Ads dependency to a FakeAdsClient.

    Usage:
        def test_x(client, auth_headers, use_fake_ads):
            fake = use_fake_ads(FakeAdsClient(campaigns=[...]))
    """
    from app.routers.google_ads_deps import get_base_client, get_credentials, get_customer_client
    from app.services.credential_service import GoogleAdsCredentials

    def install(fake):
        app.dependency_overrides[get_customer_client] = lambda: fake
        app.dependency_overrides[get_base_client] = lambda: fake
        app.dependency_overrides[get_credentials] = lambda: GoogleAdsCredentials(
            customer_id="1234567890",
            developer_token="dev",
            access_token="access",
            uses_own_credentials=False,
        )
        return fake

    return install


# ============================================================================
# Mock Fixtures
# ============================================================================

@pytest.fixture
def mock_llm():
    """Mock OpenAI client with configurable responses."""
    mock_client = MagicMock()

    mock_response = MagicMock()
    mock_response.choices = [MagicMock()]
    mock_response.choices[0].message.content = json.dumps({})
    mock_response.usage = None
    mock_client.chat.completions.create.return_value = mock_response

    def set_response(response):
        """Set the model output; dicts are JSON-encoded, strings used as-is."""
        content = response if isinstance(response, str) else json.dumps(response)
        mock_response.choices[0].message.content = content

    mock_client.set_response = set_response
    return mock_client


@pytest.fixture(autouse=True)
def clear_login_customer_id_cache():
    """The MCC memo cache is process-wide; isolate tests from each other."""
    from app.services.mcc_resolver import login_customer_id_cache

    login_customer_id_cache._entries.clear()
    yield
    login_customer_id_cache._entries.clear()
