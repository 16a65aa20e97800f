# ABOUTME: Backup utilities for agent config files and the registry.
# ABOUTME: Handles timestamped backups with automatic retention cleanup (keep last 10 per agent).
import logging
import re
import shutil
from datetime import datetime, timezone
from pathlib import Path

logger = logging.getLogger(__name__)

MAX_BACKUPS_PER_AGENT = 10

# Pattern matches: {agent}-{YYYY-MM-DDTHH-MM-SS-mmmZ}[-N].{ext}
# e.g., cursor-2026-10-17T12-30-00-123Z.json
BACKUP_PATTERN = re.compile(
    r"^(.+?)-(\d{4}-\d{2}-\d{2}T\d{2}-\d{2}-\d{2}-\d{3}Z)(?:-(\d+))?\.(.+)$"
)


def backup_timestamp(now: datetime | None = None) -> str:
    """ISO 8601 UTC timestamp with ':' and '.' replaced by '-'.

    Examples:
        >>> backup_timestamp(datetime(2026, 10, 17, 12, 30, 0, 123000, tzinfo=timezone.utc))
        '2026-10-17T12-30-00-123Z'
    """
    moment = (now or datetime.now(timezone.utc)).astimezone(timezone.utc)
    return moment.strftime("%Y-%m-%dT%H-%M-%S-") + f"{moment.microsecond // 1000:03d}Z"


def create_backup(
    source_path: Path,
    backup_dir: Path,
    label: str,
    now: datetime | None = None,
) -> Path:
    """Create a timestamped backup of a file.

    ABOUTME: Backup format: {label}-{ISO8601-with-dashes}.{ext}
    ABOUTME: Uses shutil.copy2() to preserve file metadata
    ABOUTME: Creates backup_dir if it doesn't exist

    Args:
        source_path: Path to file to backup
        backup_dir: Directory where backup should be created
        label: Agent id (or "registry") used as the file name prefix
        now: Timestamp override

    Returns:
        Path to created backup file

    Raises:
        FileNotFoundError: If source_path doesn't exist
        OSError: If backup creation fails

    Examples:
        >>> backup_path = create_backup(Path("~/.cursor/mcp.json").expanduser(), backup_dir, "cursor")
        >>> backup_path.name
        'cursor-2026-10-17T12-30-00-123Z.json'
    """
    if not source_path.exists():
        raise FileNotFoundError(f"Source file not found: {source_path}")

    backup_dir.mkdir(parents=True, exist_ok=True)

    timestamp = backup_timestamp(now)
    extension = source_path.suffix.lstrip(".") or "bak"
    backup_path = backup_dir / f"{label}-{timestamp}.{extension}"

    # Two writes within the same millisecond get a numeric suffix
    counter = 2
    while backup_path.exists():
        backup_path = backup_dir / f"{label}-{timestamp}-{counter}.{extension}"
        counter += 1

    shutil.copy2(source_path, backup_path)
    logger.debug(f"Backed up {source_path} to {backup_path}")

    cleanup_old_backups(backup_dir)

    return backup_path


def cleanup_old_backups(backup_dir: Path, max_backups_per_agent: int = MAX_BACKUPS_PER_AGENT) -> list[Path]:
    """Remove old backup files, keeping only the most recent per agent.

    ABOUTME: Groups backups by label prefix (before -timestamp)
    ABOUTME: Deletes backups beyond max_backups_per_agent for each label
    ABOUTME: Logs warnings on errors but does not raise exceptions

    Args:
        backup_dir: Directory containing backup files
        max_backups_per_agent: Maximum backups to keep per label

    Returns:
        List of paths that were deleted
    """
    deleted_files: list[Path] = []

    if not backup_dir.exists():
        return deleted_files

    backups_by_label: dict[str, list[tuple[str, int, Path]]] = {}

    for file_path in backup_dir.iterdir():
        if not file_path.is_file():
            continue

        match = BACKUP_PATTERN.match(file_path.name)
        if not match:
            continue

        label, timestamp, suffix = match.group(1), match.group(2), match.group(3)
        backups_by_label.setdefault(label, []).append((timestamp, int(suffix or 1), file_path))

    for backups in backups_by_label.values():
        # Newest first
        backups.sort(key=lambda x: (x[0], x[1]), reverse=True)

        for _, _, file_path in backups[max_backups_per_agent:]:
            try:
                file_path.unlink()
                deleted_files.append(file_path)
                logger.debug(f"Deleted old backup: {file_path}")
            except OSError as e:
                logger.warning(f"Failed to delete old backup {file_path}: {e}")

    return deleted_files
