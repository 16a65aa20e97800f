# Add flow: parsed configs into the registry
import logging
from pathlib import Path
from typing import Mapping

from mcpm.credentials import ConfirmProtect, protect_credentials
from mcpm.errors import RegistryError
from mcpm.models import ConnectorRecord, CredentialValue, ParsedConfig, RegistryServer
from mcpm.naming import to_registry_name
from mcpm.registry import add_server
from mcpm.schema import build_schema

logger = logging.getLogger(__name__)


def _fill(values: Mapping[str, CredentialValue], provided: Mapping[str, str]) -> dict[str, CredentialValue]:
    filled = dict(values)
    for key in values:
        if key in provided:
            filled[key] = provided[key]
    return filled


def record_to_server(
    name: str,
    record: ConnectorRecord,
    provided: Mapping[str, str] | None = None,
    available: bool | None = None,
    confirm: ConfirmProtect | None = None,
) -> RegistryServer:
    """Build a registry server from a parsed record.

    ABOUTME: Schema is snapshotted from the record as parsed (metadata, no values)
    ABOUTME: provided fills env/header keys by name before secrets are protected

    Raises:
        RegistryError: The record has neither a command nor a url
    """
    if not record.command and not record.url:
        raise RegistryError(f"Server '{name}' needs a command or a url")
    provided = provided or {}
    clean = to_registry_name(name)
    server = RegistryServer(
        name=clean,
        transport=record.transport,
        schema=build_schema(record),
        env=protect_credentials(clean, _fill(record.env, provided), available, confirm),
    )
    if server.transport == "stdio":
        server.command = record.command
        server.args = list(record.args)
    else:
        server.url = record.url
        server.headers = protect_credentials(clean, _fill(record.headers, provided), available, confirm)
    return server


def add_parsed_config(
    parsed: ParsedConfig,
    values: Mapping[str, Mapping[str, str]] | None = None,
    registry_path: Path | None = None,
    available: bool | None = None,
    confirm: ConfirmProtect | None = None,
) -> list[RegistryServer]:
    """Upsert every server of a parsed config into the registry.

    Args:
        parsed: Output of detect.parse_config
        values: Credential values per server name, e.g. {"github": {"GITHUB_TOKEN": "..."}}
        registry_path: Registry override
        available: Vault availability; probed per credential map when None
        confirm: Optional veto for each detected secret

    Returns:
        Servers as stored, in parsed order
    """
    values = values or {}
    stored: list[RegistryServer] = []
    for name, record in parsed.servers.items():
        server = record_to_server(name, record, values.get(name), available, confirm)
        stored.append(add_server(server, registry_path))
        logger.debug(f"Added {server.name} ({server.transport}) to registry")
    return stored
