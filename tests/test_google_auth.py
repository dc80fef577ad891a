"""
Tests for OAuth credential handling.
"""

import pytest

from src.utils.config_loader import GoogleAuthConfig
from src.utils.exceptions import AuthenticationError
from src.utils.google_auth import AppsScriptAuth, SCRIPT_SCOPES


def test_missing_token_file(tmp_path):
    auth = AppsScriptAuth(tmp_path / "token.json", auth_config=GoogleAuthConfig())

    with pytest.raises(AuthenticationError) as exc_info:
        auth.get_credentials()

    assert exc_info.value.auth_method == "token_file"
    assert "--authorize" in str(exc_info.value)


def test_invalid_token_file(tmp_path):
    token_path = tmp_path / "token.json"
    token_path.write_text("not json")
    auth = AppsScriptAuth(token_path, auth_config=GoogleAuthConfig())

    with pytest.raises(AuthenticationError):
        auth.get_credentials()


def test_refresh_token_credentials_take_precedence(tmp_path, monkeypatch):
    refreshed = []
    monkeypatch.setattr(
        "src.utils.google_auth.Credentials.refresh",
        lambda self, request: refreshed.append(self)
    )
    config = GoogleAuthConfig(client_id="id", client_secret="secret", refresh_token="refresh")
    token_path = tmp_path / "token.json"
    auth = AppsScriptAuth(token_path, auth_config=config)

    credentials = auth.get_credentials()

    assert credentials.refresh_token == "refresh"
    assert credentials.client_id == "id"
    assert credentials.scopes == SCRIPT_SCOPES
    assert refreshed == [credentials]
    assert not token_path.exists()


def test_authorize_requires_client_secrets(tmp_path):
    auth = AppsScriptAuth(tmp_path / "token.json", auth_config=GoogleAuthConfig())

    with pytest.raises(AuthenticationError) as exc_info:
        auth.authorize(tmp_path / "client_secret.json")

    assert exc_info.value.auth_method == "installed_app"
