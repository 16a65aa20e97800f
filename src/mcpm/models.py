# Core data models for mcpm
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Literal, Mapping, Protocol, Union, runtime_checkable

# ABOUTME: Transport kinds understood by every agent format
TransportType = Literal["stdio", "http", "sse"]
TRANSPORT_TYPES: tuple[str, ...] = ("stdio", "http", "sse")

ConfigFormat = Literal["json", "yaml", "toml", "xml"]

# ABOUTME: Prefix of the string form of a vault reference
KEYCHAIN_PREFIX = "keychain:"


@dataclass(frozen=True)
class CredentialField:
    """Env/header value carrying prompt metadata.

    ABOUTME: value is None until the user provides it
    ABOUTME: Metadata survives into the registry schema snapshot
    """
    value: str | None = None
    description: str | None = None
    note: str | None = None
    required: bool | None = None
    hidden: bool | None = None

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> CredentialField:
        value = data.get("value")
        return cls(
            value=None if value is None else str(value),
            description=data.get("description"),
            note=data.get("note"),
            required=data.get("required"),
            hidden=data.get("hidden"),
        )

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"value": self.value}
        for key in ("description", "note", "required", "hidden"):
            attr = getattr(self, key)
            if attr is not None:
                result[key] = attr
        return result


# ABOUTME: Plain string, "not yet provided", or value plus metadata
CredentialValue = Union[str, None, CredentialField]


@dataclass(frozen=True)
class VaultRef:
    """Reference to a secret held in OS secure storage.

    ABOUTME: Tagged form used in memory; string form only at the storage boundary
    ABOUTME: Addresses exactly one keyring entry: (server, key)
    """
    server: str
    key: str

    @property
    def account(self) -> str:
        return f"{self.server}.{self.key}"

    def to_string(self) -> str:
        return f"{KEYCHAIN_PREFIX}{self.account}"

    @classmethod
    def parse(cls, value: str) -> VaultRef | None:
        """Parse ``keychain:<server>.<key>``; None if the grammar does not match.

        The server part never contains a dot, so everything after the first
        dot belongs to the key.
        """
        if not value.startswith(KEYCHAIN_PREFIX):
            return None
        server, sep, key = value[len(KEYCHAIN_PREFIX):].partition(".")
        if not sep or not server or not key:
            return None
        return cls(server=server, key=key)

    def __str__(self) -> str:
        return self.to_string()


# ABOUTME: Registry-side credential value: literal or vault indirection
StoredValue = Union[str, VaultRef]


@dataclass(frozen=True)
class ConnectorRecord:
    """Canonical, agent-independent MCP server definition.

    ABOUTME: Uses frozen dataclass to prevent accidental mutation
    ABOUTME: type may be None for loosely specified input; see transport
    """
    type: TransportType | None = None
    command: str | None = None
    args: list[str] = field(default_factory=list)
    env: dict[str, CredentialValue] = field(default_factory=dict)
    url: str | None = None
    headers: dict[str, CredentialValue] = field(default_factory=dict)

    @property
    def transport(self) -> TransportType:
        """Explicit type, otherwise inferred from command/url."""
        if self.type is not None:
            return self.type
        if self.command:
            return "stdio"
        if self.url and "/sse" in self.url:
            return "sse"
        if self.url:
            return "http"
        return "stdio"

    @property
    def is_remote(self) -> bool:
        return not self.command and (bool(self.url) or self.type in ("http", "sse"))


@dataclass(frozen=True)
class CredentialSchema:
    """Metadata of one env/header key with the value stripped."""
    description: str | None = None
    note: str | None = None
    required: bool | None = None
    hidden: bool | None = None


@dataclass
class RegistryServer:
    """Persisted canonical server, keyed by its clean (unprefixed) name.

    ABOUTME: Credential values are literals or VaultRef, never resolved secrets
    ABOUTME: schema keeps credential metadata for later re-entry
    """
    name: str
    transport: TransportType
    command: str | None = None
    args: list[str] = field(default_factory=list)
    url: str | None = None
    headers: dict[str, StoredValue] = field(default_factory=dict)
    env: dict[str, StoredValue] = field(default_factory=dict)
    created_at: str = ""
    last_synced_at: str | None = None
    description: str | None = None
    imported_from: str | None = None
    schema: dict[str, dict[str, CredentialSchema]] = field(default_factory=dict)


@dataclass
class Registry:
    """The whole registry document.

    ABOUTME: Exactly one per user profile (registry.json)
    ABOUTME: Server insertion order carries no meaning
    """
    version: str = "1.0"
    servers: dict[str, RegistryServer] = field(default_factory=dict)
    meta: dict[str, str] = field(default_factory=dict)


class ReadStatus(str, Enum):
    """Outcome of a best-effort read."""
    OK = "ok"
    MISSING = "missing"
    CORRUPT = "corrupt"


@dataclass
class AgentMcpConfig:
    """Snapshot of one agent file after parsing.

    ABOUTME: Transient: read, inspect, discard
    ABOUTME: raw is kept so unrelated sections survive a rewrite
    """
    agent: str
    config_path: Path
    servers: dict[str, ConnectorRecord] = field(default_factory=dict)
    raw: Any = None
    status: ReadStatus = ReadStatus.OK
    error: str | None = None


@dataclass(frozen=True)
class WriteOptions:
    """Options for AgentParser.write."""
    create_if_missing: bool = True
    backup: bool = True
    merge: bool = True


@dataclass
class ParsedConfig:
    """Result of normalizing externally sourced config text.

    ABOUTME: branch records whether a wrapper key matched or the direct fallback fired
    """
    servers: dict[str, ConnectorRecord]
    source_format: Literal["json", "yaml"]
    source_wrapper_key: str
    branch: Literal["wrapper", "direct"] = "wrapper"


@runtime_checkable
class AgentParser(Protocol):
    """Protocol for per-format agent config parsers.

    ABOUTME: Defines interface all format parsers must implement
    ABOUTME: Uses @runtime_checkable for isinstance() support
    """

    @property
    def agent(self) -> str:
        """Agent identifier this parser handles."""
        ...

    @property
    def format(self) -> ConfigFormat:
        """File format handled by this parser."""
        ...

    @property
    def config_path(self) -> Path:
        """Path of the file this parser reads and writes."""
        ...

    def exists(self) -> bool:
        """True iff the target file is present."""
        ...

    def read(self) -> AgentMcpConfig:
        """Read servers; missing or corrupt files yield an empty map."""
        ...

    def write(
        self,
        servers: Mapping[str, ConnectorRecord],
        options: WriteOptions | None = None,
    ) -> None:
        """Write servers under the agent's wrapper key."""
        ...

    def get_installed_server_names(self) -> list[str]:
        """Names currently present under the wrapper key."""
        ...

    def remove_servers(self, names: list[str]) -> None:
        """Best-effort removal of specific server names."""
        ...

    def expected_record(self, record: ConnectorRecord) -> ConnectorRecord:
        """What read() would return for record after a write."""
        ...
