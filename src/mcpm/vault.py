# Credential vault backed by OS secure storage
# ABOUTME: Secrets live in the OS keyring under service "mcpm", account "<server>.<key>"
# ABOUTME: The registry only ever holds VaultRef placeholders for them
import logging
from typing import Mapping

import keyring
from keyring.errors import KeyringError, PasswordDeleteError

from mcpm.errors import VaultError
from mcpm.models import KEYCHAIN_PREFIX, RegistryServer, StoredValue, VaultRef

logger = logging.getLogger(__name__)

SERVICE = "mcpm"
_PROBE_ACCOUNT = "__probe__"

__all__ = [
    "KEYCHAIN_PREFIX",
    "SERVICE",
    "VaultRef",
    "delete_secret",
    "delete_server_secrets",
    "get_secret",
    "is_vault_available",
    "is_vault_ref",
    "resolve_credentials",
    "resolve_value",
    "store_secret",
]


def is_vault_ref(value: object) -> bool:
    """True for a VaultRef or a string in ``keychain:<server>.<key>`` form."""
    if isinstance(value, VaultRef):
        return True
    return isinstance(value, str) and VaultRef.parse(value) is not None


def is_vault_available() -> bool:
    """Check whether a usable keyring backend is configured.

    ABOUTME: A missing entry still counts as available
    ABOUTME: Only a backend error (e.g. no keyring installed) counts as unavailable
    """
    try:
        keyring.get_password(SERVICE, _PROBE_ACCOUNT)
    except KeyringError as e:
        logger.debug(f"Secure storage unavailable: {e}")
        return False
    return True


def store_secret(server: str, key: str, value: str) -> VaultRef:
    """Store a secret and return the reference that stands in for it.

    Raises:
        VaultError: If the keyring rejects the write
    """
    ref = VaultRef(server=server, key=key)
    try:
        keyring.set_password(SERVICE, ref.account, value)
    except KeyringError as e:
        raise VaultError(f"Failed to store secret {ref}: {e}") from e
    return ref


def get_secret(server: str, key: str) -> str | None:
    """Secret for (server, key), or None if absent or storage fails."""
    account = VaultRef(server=server, key=key).account
    try:
        return keyring.get_password(SERVICE, account)
    except KeyringError as e:
        logger.warning(f"Failed to read secret {account}: {e}")
        return None


def delete_secret(server: str, key: str) -> bool:
    """Delete one secret; False if it was not there."""
    account = VaultRef(server=server, key=key).account
    try:
        keyring.delete_password(SERVICE, account)
    except PasswordDeleteError:
        return False
    except KeyringError as e:
        logger.warning(f"Failed to delete secret {account}: {e}")
        return False
    return True


def delete_server_secrets(server: RegistryServer) -> int:
    """Delete every secret referenced by a server's env and headers.

    Returns:
        Number of secrets actually deleted
    """
    deleted = 0
    for value in [*server.env.values(), *server.headers.values()]:
        if isinstance(value, VaultRef) and delete_secret(value.server, value.key):
            deleted += 1
    return deleted


def resolve_value(value: StoredValue) -> str:
    """Literal for a stored value, fetching vault references.

    ABOUTME: A reference whose secret is missing resolves to its own string form
    ABOUTME: so one stale secret never aborts a whole sync
    """
    if not isinstance(value, VaultRef):
        return value
    secret = get_secret(value.server, value.key)
    if secret is None:
        logger.warning(f"Secret not found in secure storage: {value}")
        return value.to_string()
    return secret


def resolve_credentials(values: Mapping[str, StoredValue]) -> dict[str, str]:
    return {key: resolve_value(value) for key, value in values.items()}
