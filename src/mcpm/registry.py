# Registry store for mcpm
# ABOUTME: The only module that reads or writes registry.json
# ABOUTME: Degrades to an empty registry on corruption instead of blocking the user
import json
import logging
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterable

from mcpm.errors import RegistryError
from mcpm.models import (
    TRANSPORT_TYPES,
    CredentialSchema,
    ReadStatus,
    Registry,
    RegistryServer,
    StoredValue,
    VaultRef,
)
from mcpm.utils.backup import create_backup
from mcpm.utils.files import atomic_write_text

logger = logging.getLogger(__name__)

REGISTRY_VERSION = "1.0"
REGISTRY_FILENAME = "registry.json"

# ABOUTME: Order of keys in a persisted schema entry
_SCHEMA_FIELDS = ("description", "note", "required", "hidden")


def now_iso() -> str:
    """Current UTC time as ISO 8601 with milliseconds, e.g. 2026-10-17T12:30:00.123Z."""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def get_mcpm_dir() -> Path:
    """Return the mcpm data directory.

    ABOUTME: $MCPM_HOME if set, otherwise ~/.mcpm
    ABOUTME: Does not create the directory
    """
    override = os.environ.get("MCPM_HOME", "").strip()
    return Path(override) if override else Path.home() / ".mcpm"


def get_registry_path() -> Path:
    return get_mcpm_dir() / REGISTRY_FILENAME


def get_backup_dir() -> Path:
    """Return the default backup directory (<mcpm dir>/backups)."""
    return get_mcpm_dir() / "backups"


def ensure_mcpm_dir() -> Path:
    """Create the mcpm directory if it doesn't exist.

    Returns:
        Path to the directory (guaranteed to exist)
    """
    mcpm_dir = get_mcpm_dir()
    mcpm_dir.mkdir(parents=True, exist_ok=True)
    return mcpm_dir


def _stored_to_json(values: dict[str, StoredValue]) -> dict[str, str]:
    return {
        key: value.to_string() if isinstance(value, VaultRef) else value
        for key, value in values.items()
    }


def _stored_from_json(values: Any) -> dict[str, StoredValue]:
    if not isinstance(values, dict):
        return {}
    result: dict[str, StoredValue] = {}
    for key, value in values.items():
        text = str(value)
        result[str(key)] = VaultRef.parse(text) or text
    return result


def _schema_to_json(schema: dict[str, dict[str, CredentialSchema]]) -> dict[str, Any]:
    result: dict[str, Any] = {}
    for section, entries in schema.items():
        result[section] = {
            key: {
                field: getattr(entry, field)
                for field in _SCHEMA_FIELDS
                if getattr(entry, field) is not None
            }
            for key, entry in entries.items()
        }
    return result


def _schema_from_json(data: Any) -> dict[str, dict[str, CredentialSchema]]:
    if not isinstance(data, dict):
        return {}
    schema: dict[str, dict[str, CredentialSchema]] = {}
    for section in ("env", "headers"):
        entries = data.get(section)
        if not isinstance(entries, dict):
            continue
        schema[section] = {
            str(key): CredentialSchema(
                **{field: entry.get(field) for field in _SCHEMA_FIELDS}
            )
            for key, entry in entries.items()
            if isinstance(entry, dict)
        }
    return schema


def server_to_dict(server: RegistryServer) -> dict[str, Any]:
    """Convert RegistryServer to its persisted camelCase form.

    ABOUTME: VaultRef values are written as keychain:<server>.<key> strings
    ABOUTME: Omits empty and unset fields for cleaner output
    """
    result: dict[str, Any] = {"name": server.name, "transport": server.transport}
    if server.command:
        result["command"] = server.command
    if server.args:
        result["args"] = list(server.args)
    if server.url:
        result["url"] = server.url
    if server.headers:
        result["headers"] = _stored_to_json(server.headers)
    if server.env:
        result["env"] = _stored_to_json(server.env)
    result["createdAt"] = server.created_at
    if server.last_synced_at:
        result["lastSyncedAt"] = server.last_synced_at
    if server.description:
        result["description"] = server.description
    if server.imported_from:
        result["importedFrom"] = server.imported_from
    if server.schema:
        result["schema"] = _schema_to_json(server.schema)
    return result


def dict_to_server(name: str, data: Any) -> RegistryServer:
    """Convert a persisted entry to RegistryServer.

    ABOUTME: Infers transport from command/url when missing or invalid
    ABOUTME: Rejects entries with neither command nor url

    Raises:
        RegistryError: If the entry is not an object or has nothing to run
    """
    if not isinstance(data, dict):
        raise RegistryError(f"Server '{name}' must be an object")

    command = data.get("command") or None
    url = data.get("url") or None
    if not command and not url:
        raise RegistryError(f"Server '{name}' needs a command or a url")

    transport = data.get("transport")
    if transport not in TRANSPORT_TYPES:
        if command:
            transport = "stdio"
        else:
            transport = "sse" if "/sse" in str(url) else "http"

    args = data.get("args") or []
    return RegistryServer(
        name=str(data.get("name") or name),
        transport=transport,
        command=command,
        args=[str(arg) for arg in args] if isinstance(args, list) else [],
        url=url,
        headers=_stored_from_json(data.get("headers")),
        env=_stored_from_json(data.get("env")),
        created_at=str(data.get("createdAt") or ""),
        last_synced_at=data.get("lastSyncedAt"),
        description=data.get("description"),
        imported_from=data.get("importedFrom"),
        schema=_schema_from_json(data.get("schema")),
    )


def registry_to_dict(registry: Registry) -> dict[str, Any]:
    result: dict[str, Any] = {
        "version": registry.version,
        "servers": {name: server_to_dict(server) for name, server in registry.servers.items()},
    }
    if registry.meta:
        result["meta"] = dict(registry.meta)
    return result


def read_registry(path: Path | None = None) -> tuple[Registry, ReadStatus]:
    """Read the registry without side effects.

    ABOUTME: Missing file -> empty registry, MISSING
    ABOUTME: Unparseable file -> empty registry, CORRUPT (logged)
    ABOUTME: Invalid individual servers are skipped with a warning

    Returns:
        The registry and how the read went
    """
    path = path or get_registry_path()
    if not path.exists():
        return Registry(), ReadStatus.MISSING

    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        logger.warning(f"Registry {path} is unreadable, treating it as empty: {e}")
        return Registry(), ReadStatus.CORRUPT

    if not isinstance(data, dict) or not isinstance(data.get("servers", {}), dict):
        logger.warning(f"Registry {path} has an unexpected shape, treating it as empty")
        return Registry(), ReadStatus.CORRUPT

    servers: dict[str, RegistryServer] = {}
    for name, entry in data.get("servers", {}).items():
        try:
            servers[name] = dict_to_server(name, entry)
        except RegistryError as e:
            logger.warning(f"Skipping registry entry: {e}")

    meta = data.get("meta")
    return (
        Registry(
            version=str(data.get("version") or REGISTRY_VERSION),
            servers=servers,
            meta={str(k): str(v) for k, v in meta.items()} if isinstance(meta, dict) else {},
        ),
        ReadStatus.OK,
    )


def load_registry(path: Path | None = None) -> Registry:
    """Load the registry, creating an empty one on first use.

    ABOUTME: Creates the directory and an empty versioned document if absent
    ABOUTME: A corrupt file yields an empty registry that is NOT written back
    """
    path = path or get_registry_path()
    registry, status = read_registry(path)
    if status is ReadStatus.MISSING:
        save_registry(registry, path)
    return registry


def _load_for_update(path: Path | None) -> Registry:
    """Load before a mutation; a corrupt file is backed up before it gets replaced."""
    path = path or get_registry_path()
    registry, status = read_registry(path)
    if status is ReadStatus.CORRUPT:
        try:
            backup = backup_registry(path)
            logger.warning(f"Saved unreadable registry to {backup}")
        except OSError as e:
            logger.warning(f"Failed to back up unreadable registry {path}: {e}")
    return registry


def save_registry(registry: Registry, path: Path | None = None) -> None:
    """Stamp meta.lastModified and atomically rewrite the whole file."""
    path = path or get_registry_path()
    registry.meta["lastModified"] = now_iso()
    text = json.dumps(registry_to_dict(registry), indent=2, ensure_ascii=False) + "\n"
    atomic_write_text(path, text)


def backup_registry(path: Path | None = None, backup_dir: Path | None = None) -> Path | None:
    """Copy the registry to registry-<timestamp>.json; None if there is nothing to copy."""
    path = path or get_registry_path()
    if not path.exists():
        return None
    # Backups sit next to the registry they came from
    return create_backup(path, backup_dir or path.parent / "backups", "registry")


def add_server(server: RegistryServer, path: Path | None = None) -> RegistryServer:
    """Upsert a server by clean name.

    ABOUTME: Preserves the original created_at when the name already exists

    Returns:
        The server as stored
    """
    registry = _load_for_update(path)
    existing = registry.servers.get(server.name)
    if existing is not None and existing.created_at:
        server.created_at = existing.created_at
    elif not server.created_at:
        server.created_at = now_iso()
    registry.servers[server.name] = server
    save_registry(registry, path)
    return server


def remove_server(name: str, path: Path | None = None) -> bool:
    """Remove a server; False if it was not registered."""
    registry = _load_for_update(path)
    if name not in registry.servers:
        return False
    del registry.servers[name]
    save_registry(registry, path)
    return True


def get_server(name: str, path: Path | None = None) -> RegistryServer | None:
    registry, _ = read_registry(path)
    return registry.servers.get(name)


def list_servers(path: Path | None = None) -> list[RegistryServer]:
    """All registered servers, sorted by name."""
    registry, _ = read_registry(path)
    return [registry.servers[name] for name in sorted(registry.servers)]


def server_exists(name: str, path: Path | None = None) -> bool:
    registry, _ = read_registry(path)
    return name in registry.servers


def get_servers_by_transport(transport: str, path: Path | None = None) -> list[RegistryServer]:
    return [server for server in list_servers(path) if server.transport == transport]


def mark_synced(names: Iterable[str], path: Path | None = None) -> int:
    """Stamp last_synced_at on the given servers.

    Returns:
        Number of servers stamped (unknown names are ignored)
    """
    registry = _load_for_update(path)
    stamp = now_iso()
    count = 0
    for name in set(names):
        server = registry.servers.get(name)
        if server is not None:
            server.last_synced_at = stamp
            count += 1
    if count:
        save_registry(registry, path)
    return count
