# Agent parser base utilities
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Mapping

from mcpm.agents import AgentProfile, Quirk
from mcpm.credentials import flatten_credentials
from mcpm.detect import record_from_entry
from mcpm.errors import AgentConfigError, ConfigParseError
from mcpm.models import (
    AgentMcpConfig,
    ConfigFormat,
    ConnectorRecord,
    ReadStatus,
    WriteOptions,
)
from mcpm.registry import get_backup_dir
from mcpm.utils.backup import create_backup
from mcpm.utils.files import atomic_write_text

logger = logging.getLogger(__name__)


def get_nested(document: Mapping[str, Any], key: str) -> Any:
    """Get a value by dotted key (e.g. 'provider.mcpServers'); None if any part is missing."""
    current: Any = document
    for part in key.split("."):
        if not isinstance(current, Mapping):
            return None
        current = current.get(part)
    return current


def set_nested(document: dict[str, Any], key: str, value: Any) -> None:
    """Set a value by dotted key, replacing non-mapping intermediates."""
    parts = key.split(".")
    current = document
    for part in parts[:-1]:
        if not isinstance(current.get(part), dict):
            current[part] = {}
        current = current[part]
    current[parts[-1]] = value


def transform_server(profile: AgentProfile, record: ConnectorRecord) -> dict[str, Any]:
    """Convert a ConnectorRecord to the agent's native entry.

    ABOUTME: Driven entirely by profile quirks and remote-shape fields
    ABOUTME: Credential metadata is flattened; unset values are not written
    ABOUTME: Omits empty args/env/headers for cleaner output
    """
    env = flatten_credentials(record.env)
    headers = flatten_credentials(record.headers)
    result: dict[str, Any] = {}

    if Quirk.COMMAND_ARRAY in profile.quirks:
        if record.command:
            result["command"] = [record.command, *record.args]
        if env:
            result["environment"] = env
        if record.type:
            result["type"] = record.type
        if record.url:
            result["url"] = record.url
        if headers:
            result["headers"] = headers
        return result

    is_stdio = bool(record.command) or record.type == "stdio"
    if is_stdio or Quirk.STDIO_ONLY in profile.quirks:
        if Quirk.ALWAYS_TYPE in profile.quirks:
            result["type"] = "stdio"
        if record.command:
            result["command"] = record.command
        if record.args:
            result["args"] = list(record.args)
        if env:
            result["env"] = env
        return result

    if profile.remote_type_field:
        remote_type = record.type or profile.default_remote_type
        if remote_type:
            result[profile.remote_type_field] = remote_type
    if record.url:
        result[profile.url_field] = record.url
    if headers:
        result["headers"] = headers
    return result


def normalize_entries(raw_servers: Any) -> dict[str, ConnectorRecord]:
    """Normalize every entry under a wrapper key; non-object entries are skipped."""
    if not isinstance(raw_servers, Mapping):
        return {}
    servers: dict[str, ConnectorRecord] = {}
    for name, entry in raw_servers.items():
        if not isinstance(entry, Mapping):
            logger.debug(f"Ignoring non-object server entry {name!r}")
            continue
        servers[str(name)] = record_from_entry(entry)
    return servers


class BaseParser(ABC):
    """Shared read/write/remove flow for one agent config file.

    ABOUTME: Subclasses supply document (de)serialization and entry extraction
    ABOUTME: read() never raises; write() refuses to clobber an unreadable file
    """

    format: ConfigFormat = "json"

    def __init__(
        self,
        profile: AgentProfile,
        config_path: Path | None = None,
        backup_dir: Path | None = None,
    ) -> None:
        """Initialize parser with optional custom paths.

        ABOUTME: Defaults to the profile's global config path
        ABOUTME: Backups default to <mcpm dir>/backups
        """
        self.profile = profile
        self._config_path = config_path if config_path else profile.config_path
        self._backup_dir = backup_dir

    @property
    def agent(self) -> str:
        return self.profile.id

    @property
    def config_path(self) -> Path:
        return self._config_path

    def exists(self) -> bool:
        return self._config_path.is_file()

    # Format hooks

    @abstractmethod
    def load_document(self, text: str) -> Any:
        """Parse file text; raise ConfigParseError when it cannot be parsed."""

    def extract_servers(self, document: Any) -> dict[str, ConnectorRecord]:
        return normalize_entries(get_nested(document, self.profile.wrapper_key))

    @abstractmethod
    def render(self, document: Any, existing_text: str, entries: dict[str, dict[str, Any]], merge: bool) -> str:
        """Produce the new file text with entries at the wrapper key."""

    def empty_document(self) -> Any:
        return {}

    # Contract

    def read(self) -> AgentMcpConfig:
        """Read servers from the agent config.

        ABOUTME: Missing file -> empty servers, status MISSING
        ABOUTME: Unparseable file -> empty servers, status CORRUPT (logged)
        """
        path = self._config_path
        if not self.exists():
            return AgentMcpConfig(agent=self.agent, config_path=path, status=ReadStatus.MISSING)

        try:
            text = path.read_text(encoding="utf-8")
            document = self.load_document(text) if text.strip() else self.empty_document()
            servers = self.extract_servers(document)
        except (ConfigParseError, OSError, ValueError) as e:
            logger.warning(f"Ignoring unreadable {self.profile.display_name} config {path}: {e}")
            return AgentMcpConfig(
                agent=self.agent,
                config_path=path,
                status=ReadStatus.CORRUPT,
                error=str(e),
            )

        return AgentMcpConfig(agent=self.agent, config_path=path, servers=servers, raw=document)

    def _load_existing(self) -> tuple[Any, str]:
        if not self.exists():
            return self.empty_document(), ""
        text = self._config_path.read_text(encoding="utf-8")
        if not text.strip():
            return self.empty_document(), text
        try:
            return self.load_document(text), text
        except ConfigParseError as e:
            raise AgentConfigError(
                f"Refusing to overwrite unreadable config {self._config_path}: {e}"
            ) from e

    def _backup(self) -> None:
        try:
            create_backup(self._config_path, self._backup_dir or get_backup_dir(), self.agent)
        except OSError as e:
            logger.warning(f"Backup of {self._config_path} failed, writing anyway: {e}")

    def _prepare_parent(self, options: WriteOptions) -> None:
        parent = self._config_path.parent
        if parent.exists():
            return
        if not options.create_if_missing:
            raise AgentConfigError(f"Config directory does not exist: {parent}")
        parent.mkdir(parents=True, exist_ok=True)

    def _commit(self, text: str) -> None:
        atomic_write_text(self._config_path, text)

    def write(
        self,
        servers: Mapping[str, ConnectorRecord],
        options: WriteOptions | None = None,
    ) -> None:
        """Write servers under the wrapper key.

        ABOUTME: merge=True unions with existing entries, new ones win
        ABOUTME: Everything outside the wrapper key is preserved

        Raises:
            AgentConfigError: Parent directory missing with create_if_missing=False,
                or the existing file cannot be parsed
                or the new content cannot be rendered
        """
        options = options or WriteOptions()
        self._prepare_parent(options)
        document, existing_text = self._load_existing()

        if options.backup and self.exists():
            self._backup()

        entries = {name: transform_server(self.profile, record) for name, record in servers.items()}
        self._commit(self._render(document, existing_text, entries, options.merge))

    def get_installed_server_names(self) -> list[str]:
        return list(self.read().servers)

    def remove_servers(self, names: list[str]) -> None:
        """Best-effort removal; absent file or names are a no-op, failures are logged."""
        if not self.exists() or not names:
            return
        try:
            self._remove(names)
        except (AgentConfigError, OSError, ValueError) as e:
            logger.warning(f"Failed to remove {names} from {self._config_path}: {e}")

    def _remove(self, names: list[str]) -> None:
        document, existing_text = self._load_existing()
        current = get_nested(document, self.profile.wrapper_key)
        if not isinstance(current, Mapping) or not any(name in current for name in names):
            return
        remaining = {key: value for key, value in current.items() if key not in names}
        self._commit(self._render(document, existing_text, remaining, merge=False))

    def _render(self, document: Any, existing_text: str, entries: dict[str, Any], merge: bool) -> str:
        try:
            return self.render(document, existing_text, entries, merge)
        except (AttributeError, TypeError, ValueError) as e:
            raise AgentConfigError(f"Could not render {self._config_path}: {e}") from e

    def expected_record(self, record: ConnectorRecord) -> ConnectorRecord:
        """What read() returns for record after a write."""
        return record_from_entry(transform_server(self.profile, record))
