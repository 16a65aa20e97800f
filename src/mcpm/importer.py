# Import servers from agent configs into the registry
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Literal, Mapping

from mcpm.agents import detect_installed_agents
from mcpm.credentials import flatten_credentials, protect_credentials
from mcpm.models import ConnectorRecord, RegistryServer, TransportType
from mcpm.naming import has_prefix, to_registry_name
from mcpm.parsers import ParserFactory, create_parser
from mcpm.registry import add_server, list_servers, now_iso
from mcpm.schema import build_schema

logger = logging.getLogger(__name__)

ImportConflictStrategy = Literal["replace", "skip", "rename"]
IMPORT_STRATEGIES: tuple[str, ...] = ("replace", "skip", "rename")

MIN_NAME_LENGTH = 2


@dataclass
class ImportCandidate:
    """A foreign server found in one or more agents.

    ABOUTME: Keyed by clean name; record is the first agent's shape
    """
    name: str
    record: ConnectorRecord
    agents: list[str] = field(default_factory=list)

    @property
    def from_agent(self) -> str:
        return self.agents[0]


@dataclass
class ImportedServer:
    name: str
    original_name: str
    from_agent: str
    server: RegistryServer


@dataclass
class ImportResult:
    """Outcome of an import batch, one entry per candidate."""
    imported: list[ImportedServer] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)


def extract_servers_from_agent(
    agent_id: str,
    parser_factory: ParserFactory = create_parser,
) -> dict[str, ConnectorRecord]:
    """Installed servers of one agent; empty when the file is missing or unreadable."""
    config = parser_factory(agent_id).read()
    if config.error:
        logger.warning(f"Could not read {agent_id} config: {config.error}")
    return dict(config.servers)


def _import_transport(record: ConnectorRecord) -> TransportType | None:
    if record.command:
        return "stdio"
    if not record.url:
        return None
    if record.type in ("http", "sse"):
        return record.type
    return "sse" if "/sse" in record.url else "http"


def record_to_registry_server(
    name: str,
    record: ConnectorRecord,
    from_agent: str | None = None,
) -> RegistryServer | None:
    """Convert an agent's record to a registry server.

    ABOUTME: Prefixed installed names are cleaned; credential values stay literal
    ABOUTME: The credential schema snapshot is taken before values are flattened

    Returns:
        RegistryServer, or None when the record has neither command nor url
    """
    transport = _import_transport(record)
    if transport is None:
        return None

    server = RegistryServer(
        name=to_registry_name(name),
        transport=transport,
        created_at=now_iso(),
        imported_from=from_agent,
        env=flatten_credentials(record.env),
        schema=build_schema(record),
    )
    if transport == "stdio":
        server.command = record.command
        server.args = list(record.args)
    else:
        server.url = record.url
        server.headers = flatten_credentials(record.headers)
    return server


def scan_agents_for_import(
    agent_ids: Iterable[str] | None = None,
    include_managed: bool = False,
    parser_factory: ParserFactory = create_parser,
) -> dict[str, ImportCandidate]:
    """Find servers across agents that could be imported.

    ABOUTME: mcpm-managed (prefixed) names are skipped unless include_managed
    ABOUTME: The same clean name in several agents yields one candidate listing all of them

    Args:
        agent_ids: Agents to scan (default: installed agents)
        include_managed: Also offer prefixed entries
        parser_factory: Parser constructor (overridable in tests)

    Returns:
        Clean name to ImportCandidate, in discovery order
    """
    agents = list(agent_ids) if agent_ids is not None else detect_installed_agents()
    found: dict[str, ImportCandidate] = {}

    for agent_id in agents:
        for name, record in extract_servers_from_agent(agent_id, parser_factory).items():
            if not include_managed and has_prefix(name):
                continue
            clean = to_registry_name(name)
            if clean in found:
                found[clean].agents.append(agent_id)
            else:
                found[clean] = ImportCandidate(name=clean, record=record, agents=[agent_id])

    return found


def validate_new_name(name: str, taken: Iterable[str]) -> str | None:
    """Check a rename target.

    Returns:
        Error message, or None when the name can be used

    Examples:
        >>> validate_new_name("x", [])
        'Name too short'
        >>> validate_new_name("github", ["github"])
        'Name already exists'
    """
    if not name or len(name) < MIN_NAME_LENGTH:
        return "Name too short"
    if name in set(taken):
        return "Name already exists"
    return None


def default_rename(name: str) -> str:
    return f"{name}-imported"


def import_servers(
    candidates: Mapping[str, ImportCandidate],
    names: Iterable[str] | None = None,
    strategy: ImportConflictStrategy = "skip",
    renames: Mapping[str, str] | None = None,
    registry_path: Path | None = None,
    protect: bool = True,
) -> ImportResult:
    """Import selected candidates into the registry.

    ABOUTME: Collisions with registry names follow strategy (replace, skip, rename)
    ABOUTME: Rename targets must be unique against the registry AND this batch

    Args:
        candidates: Output of scan_agents_for_import
        names: Candidate names to import (default: all)
        strategy: Policy for names already in the registry
        renames: New names for colliding candidates when strategy is "rename"
            (default: "<name>-imported")
        registry_path: Registry override
        protect: Move secret-looking credential values into secure storage

    Returns:
        ImportResult with imported servers, skipped names and error messages
    """
    result = ImportResult()
    renames = renames or {}
    existing = {server.name for server in list_servers(registry_path)}
    chosen: set[str] = set()

    for name in (list(names) if names is not None else list(candidates)):
        candidate = candidates.get(name)
        if candidate is None:
            result.errors.append(f"{name}: not found in any agent")
            continue

        server = record_to_registry_server(name, candidate.record, candidate.from_agent)
        if server is None:
            result.errors.append(f"{name}: Invalid config format")
            continue

        if server.name in existing or server.name in chosen:
            if strategy == "skip":
                result.skipped.append(name)
                continue
            if strategy == "rename":
                new_name = renames.get(name) or default_rename(name)
                error = validate_new_name(new_name, existing | chosen)
                if error:
                    result.errors.append(f"{name}: {error} ({new_name})")
                    continue
                server.name = new_name

        if protect:
            server.env = protect_credentials(server.name, server.env)
            server.headers = protect_credentials(server.name, server.headers)

        add_server(server, registry_path)
        chosen.add(server.name)
        result.imported.append(ImportedServer(
            name=server.name,
            original_name=name,
            from_agent=candidate.from_agent,
            server=server,
        ))
        logger.debug(f"Imported {name} from {candidate.from_agent} as {server.name}")

    return result


def import_server_by_name(
    server_name: str,
    from_agent: str | None = None,
    strategy: ImportConflictStrategy = "skip",
    registry_path: Path | None = None,
    parser_factory: ParserFactory = create_parser,
) -> bool:
    """Import one server non-interactively from the first agent that has it.

    Returns:
        True if the server was written to the registry
    """
    agents = [from_agent] if from_agent else detect_installed_agents()

    for agent_id in agents:
        record = extract_servers_from_agent(agent_id, parser_factory).get(server_name)
        if record is None:
            continue
        candidate = ImportCandidate(name=to_registry_name(server_name), record=record, agents=[agent_id])
        result = import_servers(
            {server_name: candidate},
            strategy=strategy,
            registry_path=registry_path,
        )
        return bool(result.imported)

    return False
