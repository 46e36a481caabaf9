"""Access key storage for the Inkdrop API.

A credential is resolved from an ordered chain of sources:
1. INKDROP_ACCESS_KEY_ID / INKDROP_SECRET_ACCESS_KEY environment variables
2. The OS keyring (macOS Keychain, Windows Credential Locker, or Linux
   Secret Service)

Environment variables only shadow the stored entry; they are never written back.
"""

from __future__ import annotations

import json
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from typing import Any

import keyring
import keyring.errors
from loguru import logger

from ipm_cli.config import Settings
from ipm_cli.launcher import LaunchWarning, UriLauncher, WebBrowserLauncher

# Keyring service name for storing the access key
KEYRING_SERVICE = "inkdrop-ipm"
KEYRING_USERNAME = "access-key"

# Asks the desktop app to show the user's access key
ACCESS_KEY_URI = "inkdrop://command/application:display-access-key"


class StorageError(Exception):
    """Raised when the access key cannot be written to the keyring."""


class MalformedTokenError(StorageError):
    """Raised when a pasted access token cannot be decoded."""


@dataclass(frozen=True)
class Credential:
    """Access key pair identifying an Inkdrop account.

    Attributes:
        access_key_id: Public half of the key pair.
        secret_access_key: Secret half. Empty when the user pasted an opaque
            key; the API decides whether it is usable.
    """

    access_key_id: str
    secret_access_key: str

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "accessKeyId": self.access_key_id,
            "secretAccessKey": self.secret_access_key,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Credential:
        """Create Credential from dictionary."""
        return cls(
            access_key_id=data["accessKeyId"],
            secret_access_key=data.get("secretAccessKey", ""),
        )


def parse_access_token(token: str) -> Credential:
    """Decode the token string shown by the desktop app.

    Accepted forms:
      {"accessKeyId": "...", "secretAccessKey": "..."}
      <access_key_id>:<secret_access_key>
      <opaque key>

    Only structurally broken input is rejected here; whether the key is
    actually valid is left to the API.

    Raises:
        MalformedTokenError: If the token is empty or a recognized form is
            missing one of its parts.
    """
    token = token.strip()
    if not token:
        raise MalformedTokenError("Access token is empty")

    if token.startswith("{"):
        try:
            data = json.loads(token)
        except json.JSONDecodeError as e:
            raise MalformedTokenError(f"Access token is not valid JSON: {e}") from e
        if not isinstance(data, dict):
            raise MalformedTokenError("Access token JSON must be an object")
        key_id = data.get("accessKeyId")
        secret = data.get("secretAccessKey")
        if not isinstance(key_id, str) or not isinstance(secret, str):
            raise MalformedTokenError(
                "Access token JSON must contain accessKeyId and secretAccessKey"
            )
        if not key_id or not secret:
            raise MalformedTokenError("Access token JSON has an empty key")
        return Credential(access_key_id=key_id, secret_access_key=secret)

    if ":" in token:
        key_id, _, secret = token.partition(":")
        if not key_id or not secret:
            raise MalformedTokenError(
                "Access token must be in the form <access_key_id>:<secret_access_key>"
            )
        return Credential(access_key_id=key_id, secret_access_key=secret)

    return Credential(access_key_id=token, secret_access_key="")


# --- Resolvers ---

Resolver = Callable[[], Credential | None]


def environment_resolver(settings: Settings) -> Resolver:
    """Build a resolver reading the INKDROP_* credential variables."""

    def resolve() -> Credential | None:
        if not settings.has_credential_override:
            return None
        logger.debug("Using access key from environment")
        return Credential(
            access_key_id=settings.access_key_id or "",
            secret_access_key=settings.secret_access_key or "",
        )

    return resolve


def keyring_resolver(
    service: str = KEYRING_SERVICE, username: str = KEYRING_USERNAME
) -> Resolver:
    """Build a resolver reading the stored keyring entry.

    A missing, unreadable, or corrupt entry resolves to None.
    """

    def resolve() -> Credential | None:
        try:
            stored = keyring.get_password(service, username)
        except keyring.errors.KeyringError as e:
            logger.debug(f"Keyring unavailable: {e}")
            return None
        if not stored:
            return None
        try:
            return Credential.from_dict(json.loads(stored))
        except (json.JSONDecodeError, KeyError, TypeError) as e:
            logger.debug(f"Ignoring invalid keyring entry: {e}")
            return None

    return resolve


def resolve_credential(resolvers: Iterable[Resolver]) -> Credential | None:
    """Return the first credential produced by the resolvers, in order."""
    for resolver in resolvers:
        credential = resolver()
        if credential is not None:
            return credential
    return None


class CredentialStore:
    """Reads and writes the single stored access key.

    Args:
        settings: Settings carrying the environment override.
        launcher: Opens the desktop app's access key page. Defaults to
            WebBrowserLauncher.
        service: Keyring service name.
        username: Keyring entry name within the service.

    Example:
        store = CredentialStore(load_settings())
        credential = store.get_access_token()
        if credential is None:
            store.save_access_token("key-id:secret")
    """

    def __init__(
        self,
        settings: Settings,
        launcher: UriLauncher | None = None,
        service: str = KEYRING_SERVICE,
        username: str = KEYRING_USERNAME,
    ) -> None:
        self._service = service
        self._username = username
        self._launcher = launcher or WebBrowserLauncher()
        self._resolvers: list[Resolver] = [
            environment_resolver(settings),
            keyring_resolver(service, username),
        ]

    @property
    def resolvers(self) -> list[Resolver]:
        """Resolvers in precedence order."""
        return list(self._resolvers)

    def get_access_token(self) -> Credential | None:
        """Resolve the current credential, or None if there is none."""
        return resolve_credential(self._resolvers)

    def save_access_token(self, token: str) -> Credential:
        """Parse a pasted token and store it in the OS keyring.

        Returns:
            The stored Credential.

        Raises:
            MalformedTokenError: If the token cannot be decoded.
            StorageError: If the keyring rejects the write or is unavailable.
        """
        credential = parse_access_token(token)
        try:
            keyring.set_password(
                self._service, self._username, json.dumps(credential.to_dict())
            )
        except keyring.errors.KeyringError as e:
            raise StorageError(f"Could not save access key to OS keyring: {e}") from e
        logger.debug(f"Access key saved to keyring service '{self._service}'")
        return credential

    def open_access_key_page(self) -> bool:
        """Ask the desktop app to display the access key.

        Returns:
            True if the URI was handed off, False if launching failed.
        """
        try:
            self._launcher.launch(ACCESS_KEY_URI)
        except LaunchWarning as e:
            logger.warning(f"Could not open the Inkdrop app: {e}")
            return False
        return True
