"""Tests for credential resolution: own vs shared, token caching and refresh."""

from datetime import datetime, timedelta

import pytest

from app.models import McCHierarchyRecord, UserGoogleAdsCredentials
from app.security import decrypt_secret, encrypt_secret
from app.services.credential_service import (
    GoogleAdsCredentials,
    create_client,
    credentials_status,
    refresh_access_token,
    resolve_credentials,
    save_user_credentials,
)
from app.services.exceptions import CredentialsNotConfiguredError, TokenRefreshError
from app.services.mcc_resolver import _MISSING, ManagerAccountResolver, login_customer_id_cache

from conftest import FakeResponse

NOW = datetime(2024, 6, 15, 12, 0, 0)


def token_endpoint(fake_http, access_token="fresh-token", expires_in=3600):
    fake_http.add("oauth2.googleapis.com/token", FakeResponse(200, {"access_token": access_token, "expires_in": expires_in}))
    return fake_http


def save_own(db, user, **overrides):
    values = dict(
        uses_own_credentials=True,
        customer_id="123-456-7890",
        developer_token="own-dev",
        client_id="own-client",
        client_secret="own-secret",
        refresh_token="own-refresh",
    )
    values.update(overrides)
    return save_user_credentials(db, user, **values)


class DirectAccessClient:
    def __init__(self, accessible):
        self.accessible = accessible
        self.list_calls = 0

    def list_accessible_customers(self):
        self.list_calls += 1
        return list(self.accessible)


class TestRefreshAccessToken:
    def test_success(self, fake_http):
        token_endpoint(fake_http, expires_in=1800)
        token, expires_in = refresh_access_token("cid", "secret", "refresh", http_client=fake_http)

        assert token == "fresh-token"
        assert expires_in == 1800
        assert fake_http.calls[0]["data"]["grant_type"] == "refresh_token"

    def test_rejected_grant(self, fake_http):
        fake_http.add("oauth2.googleapis.com/token", FakeResponse(400, {"error": "invalid_grant"}))

        with pytest.raises(TokenRefreshError) as exc:
            refresh_access_token("cid", "secret", "refresh", http_client=fake_http)

        assert "invalid_grant" in exc.value.message
        assert exc.value.to_dict()["needs_reauth"] is True

    def test_missing_access_token(self, fake_http):
        fake_http.add("oauth2.googleapis.com/token", FakeResponse(200, {"expires_in": 3600}))
        with pytest.raises(TokenRefreshError):
            refresh_access_token("cid", "secret", "refresh", http_client=fake_http)


class TestSaveUserCredentials:
    def test_secrets_are_encrypted(self, test_db_session, test_user):
        record = save_own(test_db_session, test_user)

        assert record.is_configured is True
        assert record.customer_id == "1234567890"
        assert record.refresh_token_enc != "own-refresh"
        assert decrypt_secret(record.refresh_token_enc, context="test") == "own-refresh"

    def test_partial_update_keeps_existing_secrets(self, test_db_session, test_user):
        first = save_own(test_db_session, test_user)
        stored = first.developer_token_enc

        record = save_user_credentials(
            test_db_session, test_user, uses_own_credentials=True, customer_id="999-999-9999"
        )

        assert record.developer_token_enc == stored
        assert record.customer_id == "9999999999"
        assert record.is_configured is True

    def test_incomplete_own_credentials_not_configured(self, test_db_session, test_user):
        record = save_user_credentials(
            test_db_session, test_user, uses_own_credentials=True, developer_token="only-this"
        )
        assert record.is_configured is False

    def test_save_drops_cached_access_token(self, test_db_session, test_user):
        record = save_own(test_db_session, test_user)
        record.access_token_enc = encrypt_secret("cached", context="test")
        record.access_token_expires_at = NOW + timedelta(hours=1)
        test_db_session.commit()

        record = save_own(test_db_session, test_user)

        assert record.access_token_enc is None
        assert record.access_token_expires_at is None

    def test_new_identity_forgets_resolved_managers(self, test_db_session, test_user):
        save_own(test_db_session, test_user)
        scope = str(test_user.id)
        test_db_session.add_all([
            McCHierarchyRecord(user_id=test_user.id, customer_id="1111111111", is_manager=True, level=0),
            McCHierarchyRecord(
                user_id=test_user.id, customer_id="9999999999", manager_customer_id="1111111111", level=1
            ),
        ])
        test_db_session.commit()
        login_customer_id_cache.set(scope, "9999999999", "1111111111")

        save_own(test_db_session, test_user, refresh_token="other-refresh")

        assert login_customer_id_cache.get(scope, "9999999999") is _MISSING
        assert test_db_session.query(McCHierarchyRecord).count() == 0

        # The new identity reaches the account directly
        client = DirectAccessClient(["9999999999"])
        resolver = ManagerAccountResolver(client, db=test_db_session, user_id=test_user.id)
        assert resolver.resolve("9999999999") is None
        assert resolver.last_method == "direct_access"
        assert client.list_calls == 1

    def test_customer_id_change_keeps_hierarchy(self, test_db_session, test_user):
        save_own(test_db_session, test_user)
        test_db_session.add(McCHierarchyRecord(user_id=test_user.id, customer_id="1111111111", level=0))
        test_db_session.commit()
        login_customer_id_cache.set(str(test_user.id), "9999999999", "1111111111")

        save_user_credentials(test_db_session, test_user, uses_own_credentials=True, customer_id="999-999-9999")

        assert test_db_session.query(McCHierarchyRecord).count() == 1
        assert login_customer_id_cache.get(str(test_user.id), "9999999999") is _MISSING


class TestResolveCredentials:
    def test_own_credentials_refresh_and_persist(self, test_db_session, test_user, shared_settings, fake_http):
        save_own(test_db_session, test_user)
        token_endpoint(fake_http, access_token="own-access", expires_in=3600)

        creds = resolve_credentials(test_db_session, test_user, settings=shared_settings, http_client=fake_http, now=NOW)

        assert creds.uses_own_credentials is True
        assert creds.developer_token == "own-dev"
        assert creds.access_token == "own-access"
        assert creds.customer_id == "1234567890"
        assert fake_http.calls[0]["data"]["client_id"] == "own-client"

        record = test_db_session.query(UserGoogleAdsCredentials).one()
        assert decrypt_secret(record.access_token_enc, context="test") == "own-access"
        assert record.access_token_expires_at == NOW + timedelta(seconds=3600)

    def test_cached_access_token_reused(self, test_db_session, test_user, shared_settings, fake_http):
        record = save_own(test_db_session, test_user)
        record.access_token_enc = encrypt_secret("cached-access", context="test")
        record.access_token_expires_at = NOW + timedelta(minutes=30)
        test_db_session.commit()

        creds = resolve_credentials(test_db_session, test_user, settings=shared_settings, http_client=fake_http, now=NOW)

        assert creds.access_token == "cached-access"
        assert fake_http.calls == []

    def test_nearly_expired_token_is_refreshed(self, test_db_session, test_user, shared_settings, fake_http):
        record = save_own(test_db_session, test_user)
        record.access_token_enc = encrypt_secret("stale", context="test")
        record.access_token_expires_at = NOW + timedelta(seconds=30)
        test_db_session.commit()
        token_endpoint(fake_http)

        creds = resolve_credentials(test_db_session, test_user, settings=shared_settings, http_client=fake_http, now=NOW)

        assert creds.access_token == "fresh-token"
        assert len(fake_http.calls) == 1

    def test_shared_credentials_when_no_record(self, test_db_session, test_user, shared_settings, fake_http):
        token_endpoint(fake_http, access_token="shared-access")

        creds = resolve_credentials(test_db_session, test_user, settings=shared_settings, http_client=fake_http, now=NOW)

        assert creds.uses_own_credentials is False
        assert creds.developer_token == "shared-dev-token"
        assert creds.access_token == "shared-access"
        assert creds.customer_id == "1112223333"
        assert fake_http.calls[0]["data"]["refresh_token"] == "shared-refresh"

    def test_incomplete_own_falls_back_to_shared(self, test_db_session, test_user, shared_settings, fake_http):
        save_user_credentials(test_db_session, test_user, uses_own_credentials=True, customer_id="555-555-5555")
        token_endpoint(fake_http)

        creds = resolve_credentials(test_db_session, test_user, settings=shared_settings, http_client=fake_http, now=NOW)

        assert creds.uses_own_credentials is False
        assert creds.customer_id == "5555555555"

    def test_not_configured(self, test_db_session, test_user, empty_settings, fake_http):
        with pytest.raises(CredentialsNotConfiguredError) as exc:
            resolve_credentials(test_db_session, test_user, settings=empty_settings, http_client=fake_http)

        assert exc.value.http_status == 412
        assert exc.value.to_dict()["needs_setup"] is True

    def test_refresh_rejected_propagates(self, test_db_session, test_user, shared_settings, fake_http):
        save_own(test_db_session, test_user)
        fake_http.add("oauth2.googleapis.com/token", FakeResponse(401, {"error": "invalid_client"}))

        with pytest.raises(TokenRefreshError):
            resolve_credentials(test_db_session, test_user, settings=shared_settings, http_client=fake_http, now=NOW)


class TestCredentialsStatus:
    def test_shared_only(self, test_db_session, test_user, shared_settings):
        status = credentials_status(test_db_session, test_user, settings=shared_settings)

        assert status == {
            "configured": True,
            "uses_own_credentials": False,
            "own_credentials_complete": False,
            "shared_available": True,
            "customer_id": "1112223333",
        }

    def test_nothing_configured(self, test_db_session, test_user, empty_settings):
        status = credentials_status(test_db_session, test_user, settings=empty_settings)
        assert status["configured"] is False
        assert status["customer_id"] is None

    def test_own_complete(self, test_db_session, test_user, empty_settings):
        save_own(test_db_session, test_user)
        status = credentials_status(test_db_session, test_user, settings=empty_settings)

        assert status["configured"] is True
        assert status["own_credentials_complete"] is True
        assert status["customer_id"] == "1234567890"


class TestCreateClient:
    def test_login_customer_id_from_credentials(self, empty_settings):
        credentials = GoogleAdsCredentials(
            customer_id="1234567890",
            developer_token="dev",
            access_token="access",
            uses_own_credentials=True,
            login_customer_id="111-111-1111",
        )

        assert credentials.login_customer_id == "111-111-1111"
        assert create_client(credentials, settings=empty_settings).login_customer_id == "1111111111"
        assert create_client(credentials, "2222222222", settings=empty_settings).login_customer_id == "2222222222"

    def test_resolved_credentials_start_unscoped(self, test_db_session, test_user, shared_settings, fake_http):
        token_endpoint(fake_http)

        credentials = resolve_credentials(test_db_session, test_user, settings=shared_settings, http_client=fake_http)

        assert credentials.login_customer_id is None
