# Sync orchestration for mcpm
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Literal, Sequence

from mcpm.agents import detect_installed_agents, get_agent
from mcpm.errors import McpmError
from mcpm.models import ConnectorRecord, RegistryServer, VaultRef, WriteOptions
from mcpm.naming import add_prefix, sanitize_name
from mcpm.parsers import ParserFactory, create_parser
from mcpm.registry import list_servers, mark_synced
from mcpm.utils.validation import LiveValidator
from mcpm.vault import resolve_credentials

logger = logging.getLogger(__name__)

ConflictStrategy = Literal["skip", "replace", "suffix"]
SyncAction = Literal["added", "replaced", "skipped", "unsupported", "error"]
CONFLICT_STRATEGIES: tuple[str, ...] = ("skip", "replace", "suffix")


@dataclass
class ServerSyncResult:
    """Outcome of syncing one server to one agent."""
    server: str
    agent: str
    action: SyncAction
    installed_name: str | None = None
    message: str = ""

    @property
    def success(self) -> bool:
        return self.action in ("added", "replaced", "skipped")


@dataclass
class AgentSyncResult:
    """Report from syncing the registry into one agent.

    ABOUTME: Tracks per-server outcomes for a single agent
    ABOUTME: Errors are non-fatal, other agents still sync
    """
    agent: str
    added: list[str] = field(default_factory=list)
    replaced: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    unsupported: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)

    def add_result(self, result: ServerSyncResult) -> None:
        if result.action == "error":
            self.errors.append(f"{result.server}: {result.message}")
        else:
            getattr(self, result.action).append(result.server)

    @property
    def synced(self) -> list[str]:
        return [*self.added, *self.replaced]


@dataclass
class ServerConflict:
    """A registry server whose clean or prefixed name already exists in an agent file."""
    server_name: str
    agent: str
    existing_name: str
    registry_server: RegistryServer
    existing_record: ConnectorRecord


def registry_server_to_record(server: RegistryServer, resolve: bool = True) -> ConnectorRecord:
    """Convert RegistryServer to ConnectorRecord.

    ABOUTME: resolve=True fetches vault references in env AND headers
    ABOUTME: resolve=False leaves references in their keychain: string form
    """
    if resolve:
        env = resolve_credentials(server.env)
        headers = resolve_credentials(server.headers)
    else:
        env = {k: v.to_string() if isinstance(v, VaultRef) else v for k, v in server.env.items()}
        headers = {k: v.to_string() if isinstance(v, VaultRef) else v for k, v in server.headers.items()}

    if server.transport == "stdio":
        return ConnectorRecord(
            type="stdio",
            command=server.command,
            args=list(server.args),
            env=dict(env),
        )
    return ConnectorRecord(type=server.transport, url=server.url, headers=dict(headers))


def _suffixed_name(name: str, agent_id: str, taken: set[str]) -> str:
    """First prefixed <name>_<n> (n >= 2) that collides with nothing in taken."""
    clean = sanitize_name(name)
    n = 2
    while True:
        candidate = f"{clean}_{n}"
        installed = add_prefix(candidate, agent_id)
        if candidate not in taken and installed not in taken:
            return installed
        n += 1


def sync_servers_to_agent(
    servers: Sequence[RegistryServer],
    agent_id: str,
    strategy: ConflictStrategy = "skip",
    project_dir: Path | None = None,
    parser_factory: ParserFactory = create_parser,
    validator: LiveValidator | None = None,
) -> list[ServerSyncResult]:
    """Sync several registry servers into one agent with a single merged write.

    ABOUTME: One read, per-server conflict resolution, one write (one backup)
    ABOUTME: A conflict is an existing entry under the clean OR the prefixed name,
    ABOUTME: or a prefixed name already placed earlier in this batch
    ABOUTME: Transports the agent cannot represent are reported as "unsupported"

    Args:
        servers: Registry servers to install
        agent_id: Target agent
        strategy: skip (keep existing), replace (overwrite), suffix (install as <name>_N)
        project_dir: Target the agent's project-scoped file
        parser_factory: Parser constructor (overridable in tests)
        validator: Optional gate; servers it rejects are reported as errors

    Returns:
        One ServerSyncResult per input server, in input order

    Raises:
        UnknownAgentError: agent_id is not in the catalog
        AgentConfigError: project scope requested for an agent without one
    """
    profile = get_agent(agent_id)
    parser = parser_factory(agent_id, project_dir=project_dir)
    existing = parser.read().servers
    taken = set(existing)

    results: list[ServerSyncResult] = []
    pending: dict[str, ConnectorRecord] = {}
    pending_results: list[ServerSyncResult] = []

    for server in servers:
        if not profile.supports(server.transport):
            results.append(ServerSyncResult(
                server=server.name,
                agent=agent_id,
                action="unsupported",
                message=f"{profile.display_name} does not support {server.transport}",
            ))
            continue

        record = registry_server_to_record(server)
        if validator is not None and not validator(server.name, record):
            results.append(ServerSyncResult(
                server=server.name, agent=agent_id, action="error", message="validation failed"
            ))
            continue

        installed = add_prefix(server.name, agent_id)
        conflict = server.name in existing or installed in taken
        action: SyncAction = "added"

        if conflict and strategy == "skip":
            results.append(ServerSyncResult(
                server=server.name,
                agent=agent_id,
                action="skipped",
                installed_name=installed if installed in taken else server.name,
                message=f'Skipped existing server "{server.name}"',
            ))
            continue
        if conflict and strategy == "suffix":
            installed = _suffixed_name(server.name, agent_id, taken)
        elif conflict:
            action = "replaced"

        taken.add(installed)
        pending[installed] = record
        result = ServerSyncResult(server=server.name, agent=agent_id, action=action, installed_name=installed)
        results.append(result)
        pending_results.append(result)

    if pending:
        try:
            parser.write(pending, WriteOptions(merge=True))
        except (McpmError, OSError) as e:
            logger.warning(f"Failed to write {profile.display_name} config: {e}")
            for result in pending_results:
                result.action = "error"
                result.message = f"Failed to write config: {e}"

    return results


def sync_server_to_agent(
    server: RegistryServer,
    agent_id: str,
    strategy: ConflictStrategy = "skip",
    project_dir: Path | None = None,
    parser_factory: ParserFactory = create_parser,
) -> ServerSyncResult:
    """Single-server form of sync_servers_to_agent."""
    return sync_servers_to_agent(
        [server], agent_id, strategy, project_dir=project_dir, parser_factory=parser_factory
    )[0]


def sync_registry_to_agents(
    agent_ids: Iterable[str] | None = None,
    server_names: Iterable[str] | None = None,
    strategy: ConflictStrategy = "skip",
    project_dir: Path | None = None,
    registry_path: Path | None = None,
    parser_factory: ParserFactory = create_parser,
    validator: LiveValidator | None = None,
) -> list[AgentSyncResult]:
    """Sync registry servers into every target agent.

    ABOUTME: Agents are independent; one agent's failure never blocks the others
    ABOUTME: Servers synced anywhere get last_synced_at stamped in the registry

    Args:
        agent_ids: Target agents (default: installed agents)
        server_names: Restrict to these registry names (default: all)
        strategy: Conflict strategy applied to every agent
        project_dir: Target project-scoped files
        registry_path: Registry override
        parser_factory: Parser constructor (overridable in tests)
        validator: Optional gate passed through to each agent

    Returns:
        One AgentSyncResult per agent; empty when there is nothing to sync
    """
    agents = list(agent_ids) if agent_ids is not None else detect_installed_agents()
    servers = list_servers(registry_path)
    if server_names is not None:
        wanted = set(server_names)
        servers = [server for server in servers if server.name in wanted]

    if not servers:
        logger.warning("No servers in registry to sync")
        return []

    results: list[AgentSyncResult] = []
    synced: set[str] = set()
    for agent_id in agents:
        agent_result = AgentSyncResult(agent=agent_id)
        try:
            server_results = sync_servers_to_agent(
                servers,
                agent_id,
                strategy,
                project_dir=project_dir,
                parser_factory=parser_factory,
                validator=validator,
            )
        except McpmError as e:
            logger.warning(f"Skipping {agent_id}: {e}")
            agent_result.errors.append(str(e))
            results.append(agent_result)
            continue

        for server_result in server_results:
            agent_result.add_result(server_result)
        synced.update(agent_result.synced)
        results.append(agent_result)

    if synced:
        mark_synced(synced, registry_path)
    return results


def detect_duplicates(
    agent_ids: Iterable[str] | None = None,
    servers: Sequence[RegistryServer] | None = None,
    registry_path: Path | None = None,
    parser_factory: ParserFactory = create_parser,
) -> dict[str, list[ServerConflict]]:
    """Registry servers whose clean or prefixed name already exists in an agent.

    ABOUTME: Read-only pre-sync warning; unreadable agents are skipped (logged)

    Returns:
        Agent id to conflicts; agents without conflicts are omitted
    """
    agents = list(agent_ids) if agent_ids is not None else detect_installed_agents()
    candidates = list(servers) if servers is not None else list_servers(registry_path)
    conflicts: dict[str, list[ServerConflict]] = {}

    for agent_id in agents:
        try:
            existing = parser_factory(agent_id).read().servers
        except McpmError as e:
            logger.warning(f"Skipping {agent_id} during duplicate scan: {e}")
            continue

        agent_conflicts: list[ServerConflict] = []
        for server in candidates:
            prefixed = add_prefix(server.name, agent_id)
            for name in (server.name, prefixed):
                if name in existing:
                    agent_conflicts.append(ServerConflict(
                        server_name=server.name,
                        agent=agent_id,
                        existing_name=name,
                        registry_server=server,
                        existing_record=existing[name],
                    ))
                    break
        if agent_conflicts:
            conflicts[agent_id] = agent_conflicts

    return conflicts


def detect_drift(
    agent_ids: Iterable[str] | None = None,
    registry_path: Path | None = None,
    parser_factory: ParserFactory = create_parser,
) -> dict[str, list[str]]:
    """Registry servers whose installed copy differs from what sync would write.

    ABOUTME: Compares the prefixed entry with parser.expected_record(resolved record)
    ABOUTME: Read-only; unreadable agents are skipped (logged)

    Returns:
        Agent id to drifted server names; agents without drift are omitted
    """
    agents = list(agent_ids) if agent_ids is not None else detect_installed_agents()
    servers = list_servers(registry_path)
    drift: dict[str, list[str]] = {}

    for agent_id in agents:
        try:
            parser = parser_factory(agent_id)
            existing = parser.read().servers
        except McpmError as e:
            logger.warning(f"Skipping {agent_id} during drift scan: {e}")
            continue

        drifted = []
        for server in servers:
            installed = existing.get(add_prefix(server.name, agent_id))
            if installed is None:
                continue
            expected = parser.expected_record(registry_server_to_record(server))
            if installed != expected:
                logger.debug(f"{server.name} drifted in {agent_id}: {installed} != {expected}")
                drifted.append(server.name)
        if drifted:
            drift[agent_id] = drifted

    return drift
