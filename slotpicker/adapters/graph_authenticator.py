"""
Microsoft Graph API authentication using MSAL (Device Code Flow).

The calendar owner signs in once; the token cache is kept in the system
keyring, or in a private file when no keyring backend works.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

import keyring
import msal
from keyring.errors import KeyringError
from rich.console import Console

from ..domain.exceptions import AuthenticationError

logger = logging.getLogger(__name__)

console = Console()


KEYRING_SERVICE_NAME = "slotpicker"


class GraphAuthenticator:
    """
    Handles authentication with Microsoft Graph API using Device Code Flow.

    This flow suits a CLI run by the calendar owner:
    1. App displays a code and URL
    2. Owner visits URL in browser and enters code
    3. App receives access token and caches it
    """

    # Free/busy of the owner's own calendar only
    SCOPES = ["Calendars.Read"]

    def __init__(
        self,
        client_id: str,
        tenant_id: str,
        authority_url: str | None = None,
        cache_file: Path | None = None
    ):
        self.client_id = client_id
        self.tenant_id = tenant_id
        self.authority = authority_url or f"https://login.microsoftonline.com/{tenant_id}"

        self.cache_file = cache_file or Path.home() / ".slotpicker_token_cache.json"
        self._key_identifier = f"{self.client_id}:{self.tenant_id}"
        self._use_keyring = True
        self.cache = self._load_cache()

        self.app = msal.PublicClientApplication(
            client_id=self.client_id,
            authority=self.authority,
            token_cache=self.cache
        )

    @property
    def cache_backend(self) -> str:
        """Return the active cache backend (keyring or file)."""
        return "keyring" if self._use_keyring else "file"

    def _load_cache(self) -> msal.SerializableTokenCache:
        """Load token cache from keyring, falling back to disk."""
        cache = msal.SerializableTokenCache()

        serialized: Optional[str] = None
        try:
            serialized = keyring.get_password(KEYRING_SERVICE_NAME, self._key_identifier)
        except KeyringError as exc:  # pragma: no cover - environment dependent
            self._disable_keyring(f"reading credentials failed: {exc}")

        if serialized is None and self.cache_file.exists():
            try:
                serialized = self.cache_file.read_text(encoding="utf-8")
            except OSError as exc:
                logger.warning("Could not load token cache file %s: %s", self.cache_file, exc)

        if serialized:
            try:
                cache.deserialize(serialized)
            except ValueError as exc:
                logger.warning("Could not deserialize token cache: %s", exc)

        return cache

    def _save_cache(self) -> None:
        """Save token cache to the active backend."""
        if not self.cache.has_state_changed:
            return

        serialized = self.cache.serialize()

        if self._use_keyring:
            try:
                keyring.set_password(KEYRING_SERVICE_NAME, self._key_identifier, serialized)
                return
            except KeyringError as exc:  # pragma: no cover - environment dependent
                self._disable_keyring(f"writing credentials failed: {exc}")

        try:
            self.cache_file.parent.mkdir(parents=True, exist_ok=True)
            self.cache_file.write_text(serialized, encoding="utf-8")
            self.cache_file.chmod(0o600)
        except OSError as exc:
            logger.warning("Could not save token cache to %s: %s", self.cache_file, exc)

    def _disable_keyring(self, reason: str) -> None:
        logger.warning(
            "Secure credential storage unavailable (%s). Falling back to plaintext cache at %s.",
            reason,
            self.cache_file,
        )
        self._use_keyring = False

    def get_access_token(self, force_refresh: bool = False) -> str:
        """
        Get a valid access token, using cache or requesting new one.

        Args:
            force_refresh: Force authentication even if cached token exists

        Returns:
            Access token string

        Raises:
            AuthenticationError: If authentication fails
        """
        if not force_refresh:
            accounts = self.app.get_accounts()
            if accounts:
                result = self.app.acquire_token_silent(scopes=self.SCOPES, account=accounts[0])
                if result and "access_token" in result:
                    self._save_cache()
                    return result["access_token"]

        return self._authenticate_device_code_flow()

    def _authenticate_device_code_flow(self) -> str:
        console.print("\n[bold cyan]🔐 Microsoft Authentication Required[/bold cyan]")
        console.print("Sign in to let slotpicker read your calendar's free/busy times.\n")

        flow = self.app.initiate_device_flow(scopes=self.SCOPES)

        if "user_code" not in flow:
            raise AuthenticationError(
                f"Failed to initiate device flow: {flow.get('error_description', 'Unknown error')}"
            )

        console.print(f"1. Open a browser and go to: [bold cyan]{flow['verification_uri']}[/bold cyan]")
        console.print(f"2. Enter this code: [bold yellow]{flow['user_code']}[/bold yellow]")
        console.print("[dim]Waiting for authentication...[/dim]\n")

        result = self.app.acquire_token_by_device_flow(flow)

        if "access_token" not in result:
            error = result.get("error_description", "Unknown error")
            raise AuthenticationError(f"Authentication failed: {error}")

        console.print("[bold green]✓ Authentication successful![/bold green]\n")
        self._save_cache()

        return result["access_token"]

    def clear_cache(self) -> None:
        """Clear the token cache (force re-authentication next time)."""
        if self.cache_file.exists():
            self.cache_file.unlink()
        try:
            keyring.delete_password(KEYRING_SERVICE_NAME, self._key_identifier)
        except KeyringError as exc:
            logger.debug("No keyring entry removed: %s", exc)
        self.cache = msal.SerializableTokenCache()
