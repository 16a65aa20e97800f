# ABOUTME: Utility modules for mcpm
# ABOUTME: Exports backup, atomic write, and TOML writing helpers

from mcpm.utils.backup import cleanup_old_backups, create_backup
from mcpm.utils.files import atomic_write_text
from mcpm.utils.toml_writer import format_tables, replace_tables

__all__ = [
    "create_backup",
    "cleanup_old_backups",
    "atomic_write_text",
    "format_tables",
    "replace_tables",
]
