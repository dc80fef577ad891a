"""
Google OAuth 2.0 credential management for the Apps Script API.
Handles token loading, refresh and the installed-app authorization flow.
"""

import json
from pathlib import Path
from typing import Optional, List

from google.auth.exceptions import RefreshError
from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials
from google_auth_oauthlib.flow import InstalledAppFlow
from googleapiclient.discovery import build

from src.utils.exceptions import AuthenticationError
from src.utils.config_loader import GoogleAuthConfig

# Apps Script API scopes
SCRIPT_SCOPES = [
    "https://www.googleapis.com/auth/script.projects",
]

TOKEN_URI = "https://oauth2.googleapis.com/token"


class AppsScriptAuth:
    """
    OAuth 2.0 credentials for the Apps Script API.

    Credentials come from a client ID / secret / refresh token triple when all
    three are configured, otherwise from an authorized-user token file.
    """

    def __init__(
        self,
        token_path: Path,
        auth_config: Optional[GoogleAuthConfig] = None,
        scopes: Optional[List[str]] = None
    ):
        """
        Initialize credential manager.

        Args:
            token_path: Path to store/load the authorized-user token
            auth_config: Refresh-token credentials from the environment
            scopes: OAuth scopes to request
        """
        self.token_path = Path(token_path)
        self.auth_config = auth_config or GoogleAuthConfig()
        self.scopes = scopes or SCRIPT_SCOPES
        self._credentials: Optional[Credentials] = None

    def get_credentials(self) -> Credentials:
        """
        Get valid OAuth credentials, refreshing them if needed.

        Raises:
            AuthenticationError: If no credentials are available or refresh fails
        """
        if self._credentials is None:
            if self.auth_config.has_refresh_token_credentials():
                self._credentials = Credentials(
                    token=None,
                    refresh_token=self.auth_config.refresh_token,
                    token_uri=TOKEN_URI,
                    client_id=self.auth_config.client_id,
                    client_secret=self.auth_config.client_secret,
                    scopes=self.scopes,
                )
            else:
                self._credentials = self._load_token()

        if self._credentials is None:
            raise AuthenticationError(
                f"OAuth token not found at {self.token_path}. "
                "Run with --authorize or set GOOGLE_APP_SCRIPT_API_REFRESH_TOKEN.",
                auth_method="token_file"
            )

        if not self._credentials.valid and self._credentials.refresh_token:
            try:
                self._credentials.refresh(Request())
            except RefreshError as e:
                self._credentials = None
                raise AuthenticationError(
                    f"Token refresh failed. Please re-authenticate: {e}",
                    auth_method="refresh_token"
                ) from e
            if not self.auth_config.has_refresh_token_credentials():
                self._save_token(self._credentials)

        return self._credentials

    def authorize(self, client_secrets_path: Path, port: int = 0) -> Credentials:
        """
        Run the installed-app consent flow and store the resulting token.

        Args:
            client_secrets_path: OAuth client JSON downloaded from Google Cloud Console
            port: Local redirect port (0 picks a free port)
        """
        client_secrets_path = Path(client_secrets_path)
        if not client_secrets_path.exists():
            raise AuthenticationError(
                f"Client secrets file not found at {client_secrets_path}. "
                "Please download OAuth2 credentials from Google Cloud Console.",
                auth_method="installed_app"
            )

        flow = InstalledAppFlow.from_client_secrets_file(str(client_secrets_path), self.scopes)
        credentials = flow.run_local_server(port=port)
        self._save_token(credentials)
        self._credentials = credentials
        return credentials

    def build_script_service(self):
        """Build an Apps Script API v1 client."""
        return build("script", "v1", credentials=self.get_credentials(), cache_discovery=False)

    def _load_token(self) -> Optional[Credentials]:
        """Load token from file."""
        if not self.token_path.exists():
            return None

        try:
            with open(self.token_path, "r") as f:
                token_data = json.load(f)
            return Credentials.from_authorized_user_info(token_data, self.scopes)
        except (ValueError, KeyError) as e:
            raise AuthenticationError(
                f"Invalid token file {self.token_path}: {e}",
                auth_method="token_file"
            ) from e

    def _save_token(self, credentials: Credentials) -> None:
        """Save token to file."""
        self.token_path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.token_path, "w") as token:
            token.write(credentials.to_json())
