"""
Tests for the MSAL authenticator with keyring and file token caches.
"""

import pytest
from keyring.errors import KeyringError, PasswordDeleteError

from slotpicker.adapters import graph_authenticator
from slotpicker.adapters.graph_authenticator import GraphAuthenticator
from slotpicker.domain.exceptions import AuthenticationError


class FakeKeyring:
    def __init__(self, broken: bool = False):
        self.store = {}
        self.broken = broken

    def get_password(self, service, key):
        if self.broken:
            raise KeyringError("no backend")
        return self.store.get((service, key))

    def set_password(self, service, key, value):
        if self.broken:
            raise KeyringError("no backend")
        self.store[(service, key)] = value

    def delete_password(self, service, key):
        if (service, key) not in self.store:
            raise PasswordDeleteError("not found")
        del self.store[(service, key)]


class FakeApp:
    """Stands in for msal.PublicClientApplication."""

    accounts = []
    silent_result = None
    flow = {"user_code": "ABC123", "verification_uri": "https://microsoft.com/devicelogin"}
    device_result = {"access_token": "fresh-token"}

    def __init__(self, client_id, authority, token_cache):
        self.token_cache = token_cache

    def get_accounts(self):
        return self.accounts

    def acquire_token_silent(self, scopes, account):
        return self.silent_result

    def initiate_device_flow(self, scopes):
        return self.flow

    def acquire_token_by_device_flow(self, flow):
        return self.device_result


@pytest.fixture
def fake_keyring(monkeypatch):
    fake = FakeKeyring()
    for name in ("get_password", "set_password", "delete_password"):
        monkeypatch.setattr(graph_authenticator.keyring, name, getattr(fake, name))
    return fake


@pytest.fixture(autouse=True)
def fake_msal(monkeypatch):
    monkeypatch.setattr(graph_authenticator.msal, "PublicClientApplication", FakeApp)
    FakeApp.accounts = []
    FakeApp.silent_result = None
    FakeApp.flow = {"user_code": "ABC123", "verification_uri": "https://microsoft.com/devicelogin"}
    FakeApp.device_result = {"access_token": "fresh-token"}


def build(tmp_path):
    return GraphAuthenticator(
        client_id="client",
        tenant_id="common",
        cache_file=tmp_path / "cache.json",
    )


def test_cached_token_is_used(tmp_path, fake_keyring):
    FakeApp.accounts = [{"username": "owner@example.com"}]
    FakeApp.silent_result = {"access_token": "cached-token"}

    assert build(tmp_path).get_access_token() == "cached-token"


def test_device_flow_when_no_account(tmp_path, fake_keyring):
    authenticator = build(tmp_path)

    assert authenticator.get_access_token() == "fresh-token"
    assert authenticator.cache_backend == "keyring"


def test_force_refresh_skips_cache(tmp_path, fake_keyring):
    FakeApp.accounts = [{"username": "owner@example.com"}]
    FakeApp.silent_result = {"access_token": "cached-token"}

    assert build(tmp_path).get_access_token(force_refresh=True) == "fresh-token"


def test_device_flow_initiation_failure(tmp_path, fake_keyring):
    FakeApp.flow = {"error_description": "invalid client"}

    with pytest.raises(AuthenticationError, match="invalid client"):
        build(tmp_path).get_access_token()


def test_device_flow_denied(tmp_path, fake_keyring):
    FakeApp.device_result = {"error_description": "user declined"}

    with pytest.raises(AuthenticationError, match="user declined"):
        build(tmp_path).get_access_token()


def test_broken_keyring_falls_back_to_file(tmp_path, monkeypatch):
    broken = FakeKeyring(broken=True)
    monkeypatch.setattr(graph_authenticator.keyring, "get_password", broken.get_password)

    authenticator = build(tmp_path)

    assert authenticator.cache_backend == "file"


def test_clear_cache(tmp_path, fake_keyring):
    cache_file = tmp_path / "cache.json"
    cache_file.write_text("{}", encoding="utf-8")
    fake_keyring.store[("slotpicker", "client:common")] = "{}"
    authenticator = build(tmp_path)

    authenticator.clear_cache()

    assert not cache_file.exists()
    assert fake_keyring.store == {}
