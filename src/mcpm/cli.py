# CLI interface for mcpm
import argparse
import logging
import sys
from pathlib import Path

from mcpm import __version__
from mcpm.agents import all_agent_ids, detect_installed_agents, get_agent
from mcpm.detect import parse_config
from mcpm.errors import McpmError
from mcpm.importer import IMPORT_STRATEGIES, import_servers, scan_agents_for_import
from mcpm.install import add_parsed_config
from mcpm.models import ConnectorRecord, ParsedConfig, ReadStatus
from mcpm.naming import add_prefix, has_prefix
from mcpm.parsers import create_parser
from mcpm.registry import get_registry_path, get_server, list_servers, read_registry, remove_server
from mcpm.sync import (
    CONFLICT_STRATEGIES,
    detect_drift,
    detect_duplicates,
    registry_server_to_record,
    sync_registry_to_agents,
)
from mcpm.utils.validation import static_validator, validate_record
from mcpm.vault import delete_server_secrets

# ABOUTME: Exit codes
# 0 = success, 1 = partial success, 2 = config error, 3 = fatal
EXIT_SUCCESS = 0
EXIT_PARTIAL = 1
EXIT_CONFIG_ERROR = 2
EXIT_FATAL = 3


def parse_pairs(text: str | None) -> dict[str, str]:
    """Parse comma-separated KEY=VALUE pairs; entries without '=' are ignored."""
    pairs: dict[str, str] = {}
    if not text:
        return pairs
    for pair in text.split(","):
        if "=" in pair:
            key, value = pair.split("=", 1)
            pairs[key.strip()] = value.strip()
    return pairs


def _agents_from_args(args: argparse.Namespace) -> list[str]:
    if args.agent:
        for agent_id in args.agent:
            get_agent(agent_id)
        return list(args.agent)
    return detect_installed_agents()


def cmd_list(args: argparse.Namespace) -> int:
    """Execute list command.

    ABOUTME: Displays every registry server; secrets show as their keychain reference
    """
    print(f"mcpm list v{__version__}")
    print()

    registry_path = get_registry_path()
    _, status = read_registry(registry_path)
    if status == ReadStatus.CORRUPT:
        print(f"Error: {registry_path} is not valid JSON")
        return EXIT_CONFIG_ERROR

    servers = list_servers(registry_path)
    print(f"MCP Servers in {registry_path}:")
    print()

    for server in servers:
        record = registry_server_to_record(server, resolve=False)
        print(f"  {server.name}")
        print(f"    type: {server.transport}")
        if server.transport == "stdio":
            print(f"    command: {server.command}")
            if server.args:
                print(f"    args: {' '.join(server.args)}")
            if record.env:
                print(f"    env: {', '.join(f'{k}={v}' for k, v in record.env.items())}")
        else:
            print(f"    url: {server.url}")
            if record.headers:
                print(f"    headers: {', '.join(f'{k}={v}' for k, v in record.headers.items())}")
        if server.imported_from:
            print(f"    imported from: {server.imported_from}")
        if server.last_synced_at:
            print(f"    last synced: {server.last_synced_at}")
        print()

    print(f"Total: {len(servers)} server(s)")
    return EXIT_SUCCESS


def _parsed_from_args(args: argparse.Namespace) -> ParsedConfig:
    if args.from_file:
        parsed = parse_config(Path(args.from_file).read_text(encoding="utf-8"))
        if args.name:
            if args.name not in parsed.servers:
                raise McpmError(f"Server '{args.name}' not found in {args.from_file}")
            parsed.servers = {args.name: parsed.servers[args.name]}
        return parsed

    if not args.name:
        raise McpmError("A server name is required")
    if args.command:
        record = ConnectorRecord(
            type="stdio",
            command=args.command,
            args=[arg.strip() for arg in args.args.split(",")] if args.args else [],
            env=dict(parse_pairs(args.env)),
        )
    elif args.url:
        record = ConnectorRecord(
            type=args.type,
            url=args.url,
            headers=dict(parse_pairs(args.headers)),
        )
    else:
        raise McpmError("One of --command, --url or --from-file is required")
    return ParsedConfig(servers={args.name: record}, source_format="json", source_wrapper_key="mcpServers")


def cmd_add(args: argparse.Namespace) -> int:
    """Execute add command.

    ABOUTME: Adds servers from flags or a pasted config file to the registry
    ABOUTME: Secret-looking credentials go to secure storage unless --plain
    """
    print(f"mcpm add v{__version__}")
    print()

    try:
        parsed = _parsed_from_args(args)
        stored = add_parsed_config(parsed, available=False if args.plain else None)
    except (McpmError, OSError) as e:
        print(f"Error: {e}")
        return EXIT_CONFIG_ERROR

    for server in stored:
        print(f"  Added '{server.name}' ({server.transport})")
        protected = [key for key, value in {**server.env, **server.headers}.items() if not isinstance(value, str)]
        if protected:
            print(f"    stored in secure storage: {', '.join(protected)}")
    print()
    print("Run 'mcpm sync' to install into your agents.")
    return EXIT_SUCCESS


def cmd_remove(args: argparse.Namespace) -> int:
    """Execute remove command.

    ABOUTME: Removes a server from the registry, its secrets, and its managed copies
    ABOUTME: Agent cleanup is best-effort; unmanaged entries are never touched
    """
    print(f"mcpm remove v{__version__}")
    print()

    server = get_server(args.name)
    if server is None or not remove_server(args.name):
        print(f"  Server '{args.name}' not found in registry.")
        return EXIT_CONFIG_ERROR
    print(f"  Removed '{args.name}' from {get_registry_path()}")

    deleted = delete_server_secrets(server)
    if deleted:
        print(f"  Deleted {deleted} secret(s) from secure storage")

    for agent_id in _agents_from_args(args):
        parser = create_parser(agent_id)
        installed = add_prefix(args.name, agent_id)
        if installed in parser.get_installed_server_names():
            parser.remove_servers([installed])
            print(f"  Removed '{installed}' from {get_agent(agent_id).display_name}")

    return EXIT_SUCCESS


def cmd_sync(args: argparse.Namespace) -> int:
    """Execute sync command.

    ABOUTME: Pushes registry servers into agents using the chosen conflict strategy
    ABOUTME: Returns EXIT_PARTIAL when any agent or server failed
    """
    print(f"mcpm sync v{__version__}")
    print()

    agents = _agents_from_args(args)
    if not agents:
        print("No installed agents found.")
        return EXIT_SUCCESS

    names = args.names or None
    servers = [server for server in list_servers() if names is None or server.name in names]
    if servers and args.strategy == "skip":
        for agent_id, conflicts in detect_duplicates(agents, servers).items():
            for conflict in conflicts:
                print(f"  Warning: '{conflict.existing_name}' already exists in {agent_id}, skipping")

    project_dir = Path(args.project) if args.project else None
    results = sync_registry_to_agents(
        agents,
        names,
        args.strategy,
        project_dir=project_dir,
        validator=static_validator if args.validate else None,
    )
    if not results:
        print("No servers in registry to sync.")
        return EXIT_SUCCESS

    failed = 0
    for result in results:
        display = get_agent(result.agent).display_name
        print(f"  {display} - {len(result.synced)} synced, {len(result.skipped)} skipped")
        if result.unsupported:
            print(f"    unsupported: {', '.join(result.unsupported)}")
        for error in result.errors:
            print(f"    Error: {error}")
        if result.errors:
            failed += 1

    print()
    if failed:
        print(f"Sync complete: {len(results) - failed}/{len(results)} agents updated, {failed} failed")
        return EXIT_PARTIAL
    print(f"Sync complete: {len(results)}/{len(results)} agents updated")
    return EXIT_SUCCESS


def cmd_status(args: argparse.Namespace) -> int:
    """Execute status command.

    ABOUTME: Shows managed server counts per agent and any hand-edited (drifted) entries
    """
    print(f"mcpm status v{__version__}")
    print()

    agents = _agents_from_args(args)
    drift = detect_drift(agents)
    for agent_id in agents:
        config = create_parser(agent_id).read()
        managed = [name for name in config.servers if has_prefix(name)]
        state = config.status.value if config.status != ReadStatus.OK else f"{len(managed)} managed"
        print(f"  {get_agent(agent_id).display_name}: {state} ({config.config_path})")
        for name in drift.get(agent_id, []):
            print(f"    drifted: {name}")

    print()
    if drift:
        print("Run 'mcpm sync --strategy replace' to restore drifted servers.")
        return EXIT_PARTIAL
    print("No drift detected.")
    return EXIT_SUCCESS


def cmd_import(args: argparse.Namespace) -> int:
    """Execute import command.

    ABOUTME: Pulls foreign (unprefixed) servers from agents into the registry
    """
    print(f"mcpm import v{__version__}")
    print()

    candidates = scan_agents_for_import(_agents_from_args(args), include_managed=args.all)
    if not candidates:
        print("No non-managed servers found in agents.")
        return EXIT_SUCCESS

    for name, candidate in candidates.items():
        print(f"  {name} (in {', '.join(candidate.agents)})")
    print()

    result = import_servers(
        candidates,
        names=args.names or None,
        strategy=args.strategy,
        renames=parse_pairs(args.rename),
    )
    for imported in result.imported:
        print(f"  Imported '{imported.name}' from {imported.from_agent}")
    for name in result.skipped:
        print(f"  Skipped '{name}' (already in registry)")
    for error in result.errors:
        print(f"  Error: {error}")

    return EXIT_PARTIAL if result.errors else EXIT_SUCCESS


def cmd_validate(args: argparse.Namespace) -> int:
    """Execute validate command.

    ABOUTME: Static checks on every registry server without modifying files
    """
    print(f"mcpm validate v{__version__}")
    print()

    error_count = 0
    servers = list_servers()
    for server in servers:
        issues = validate_record(server.name, registry_server_to_record(server))
        if not issues:
            print(f"  ✓ {server.name}")
        for issue in issues:
            marker = "✗" if issue.severity == "error" else "!"
            print(f"  {marker} {server.name}: {issue.message}")
            if issue.severity == "error":
                error_count += 1

    print()
    if error_count:
        print(f"Validation failed: {error_count} error(s)")
        return EXIT_CONFIG_ERROR
    print(f"Validation passed: {len(servers)} server(s)")
    return EXIT_SUCCESS


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="mcpm",
        description="Sync one MCP server registry into every AI coding agent"
    )
    parser.add_argument(
        "--version", "-V",
        action="version",
        version=f"mcpm v{__version__}"
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Show debug logging"
    )

    subparsers = parser.add_subparsers(dest="subcommand", help="Available commands")

    agent_help = f"Target agent (repeatable): {', '.join(all_agent_ids())}"

    subparsers.add_parser("list", help="List servers in the registry")

    add_parser = subparsers.add_parser("add", help="Add a server to the registry")
    add_parser.add_argument("name", nargs="?", help="Server name (optional with --from-file)")
    add_parser.add_argument("--command", help="Command to run (stdio)")
    add_parser.add_argument("--args", help="Comma-separated arguments (stdio); write --args=-y,pkg when the first starts with -")
    add_parser.add_argument("--env", help="Comma-separated KEY=VALUE environment variables")
    add_parser.add_argument("--url", help="URL endpoint (http/sse)")
    add_parser.add_argument("--type", choices=["http", "sse"], help="Remote transport (default: inferred from URL)")
    add_parser.add_argument("--headers", help="Comma-separated KEY=VALUE headers (http/sse)")
    add_parser.add_argument("--from-file", help="Read servers from a JSON/YAML MCP config")
    add_parser.add_argument("--plain", action="store_true", help="Keep secrets in the registry instead of secure storage")

    remove_parser = subparsers.add_parser("remove", help="Remove a server from the registry and agents")
    remove_parser.add_argument("name", help="Server name")
    remove_parser.add_argument("--agent", action="append", help=agent_help)

    sync_parser = subparsers.add_parser("sync", help="Sync registry servers into agents")
    sync_parser.add_argument("names", nargs="*", help="Servers to sync (default: all)")
    sync_parser.add_argument("--agent", action="append", help=agent_help)
    sync_parser.add_argument("--strategy", choices=CONFLICT_STRATEGIES, default="skip")
    sync_parser.add_argument("--project", help="Write project-scoped configs under this directory")
    sync_parser.add_argument("--validate", action="store_true", help="Skip servers that fail static validation")

    status_parser = subparsers.add_parser("status", help="Show managed servers and drift per agent")
    status_parser.add_argument("--agent", action="append", help=agent_help)

    import_parser = subparsers.add_parser("import", help="Import agent servers into the registry")
    import_parser.add_argument("names", nargs="*", help="Servers to import (default: all found)")
    import_parser.add_argument("--agent", action="append", help=agent_help)
    import_parser.add_argument("--strategy", choices=IMPORT_STRATEGIES, default="skip")
    import_parser.add_argument("--rename", help="Comma-separated OLD=NEW names for --strategy rename")
    import_parser.add_argument("--all", action="store_true", help="Include mcpm-managed servers")

    subparsers.add_parser("validate", help="Validate registry servers")

    return parser


COMMANDS = {
    "list": cmd_list,
    "add": cmd_add,
    "remove": cmd_remove,
    "sync": cmd_sync,
    "status": cmd_status,
    "import": cmd_import,
    "validate": cmd_validate,
}


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point.

    ABOUTME: Parses args and dispatches to appropriate command
    ABOUTME: Returns exit code for sys.exit()
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(message)s",
    )

    command = COMMANDS.get(args.subcommand)
    if command is None:
        parser.print_help()
        return EXIT_SUCCESS

    try:
        return command(args)
    except McpmError as e:
        print(f"Error: {e}")
        return EXIT_CONFIG_ERROR
    except Exception as e:
        print(f"Fatal error: {e}")
        return EXIT_FATAL


if __name__ == "__main__":
    sys.exit(main())
