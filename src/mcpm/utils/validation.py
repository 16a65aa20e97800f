# ABOUTME: Static validation of connector records before they are synced
# ABOUTME: Live connect-and-list-tools validation is an external collaborator (LiveValidator)
import logging
import shutil
from dataclasses import dataclass
from typing import Callable, Literal
from urllib.parse import urlparse

from mcpm.credentials import credential_literal, missing_credentials
from mcpm.models import ConnectorRecord, VaultRef

logger = logging.getLogger(__name__)

# ABOUTME: Connects to a server and lists its tools; True on success
LiveValidator = Callable[[str, ConnectorRecord], bool]


@dataclass(frozen=True)
class ValidationIssue:
    """Represents a validation error or warning.

    ABOUTME: Uses frozen dataclass for immutability
    ABOUTME: Severity level distinguishes between blocking errors and warnings
    """
    server_name: str
    message: str
    severity: Literal["error", "warning"]


def validate_command_exists(command: str) -> ValidationIssue | None:
    """Validate that a command exists on the system.

    ABOUTME: Uses shutil.which() for cross-platform command lookup
    ABOUTME: Returns None if command found, ValidationIssue otherwise

    Examples:
        >>> validate_command_exists("nonexistent_cmd")
        ValidationIssue(server_name='', message='Command not found: nonexistent_cmd', severity='error')
    """
    if shutil.which(command) is None:
        return ValidationIssue(server_name="", message=f"Command not found: {command}", severity="error")
    return None


def validate_url(url: str) -> ValidationIssue | None:
    """Validate that a URL is properly formatted.

    ABOUTME: Requires HTTP or HTTPS scheme and a host
    """
    try:
        parsed = urlparse(url)
    except ValueError as e:
        return ValidationIssue(server_name="", message=f"Invalid URL format '{url}': {e}", severity="error")
    if parsed.scheme not in ("http", "https"):
        return ValidationIssue(
            server_name="",
            message=f"URL must use HTTP or HTTPS scheme: {url}",
            severity="error",
        )
    if not parsed.netloc:
        return ValidationIssue(server_name="", message=f"URL missing host/domain: {url}", severity="error")
    return None


def validate_record(name: str, record: ConnectorRecord) -> list[ValidationIssue]:
    """Validate a connector record.

    ABOUTME: stdio: command must be on PATH; http/sse: URL must be well formed
    ABOUTME: Warns about unset credentials and unresolved vault references

    Args:
        name: Server name used in messages
        record: Record to validate (normally with credentials resolved)

    Returns:
        List of ValidationIssue instances (empty if valid)
    """
    issues: list[ValidationIssue] = []

    def add(found: ValidationIssue | None) -> None:
        if found:
            issues.append(ValidationIssue(server_name=name, message=found.message, severity=found.severity))

    if record.command:
        add(validate_command_exists(record.command))
    elif record.url:
        add(validate_url(record.url))
    else:
        add(ValidationIssue(server_name=name, message="Server has neither a command nor a url", severity="error"))

    for key in missing_credentials(record):
        add(ValidationIssue(server_name=name, message=f"No value set for {key}", severity="warning"))

    for key, value in [*record.env.items(), *record.headers.items()]:
        literal = credential_literal(value)
        if literal and VaultRef.parse(literal) is not None:
            add(ValidationIssue(
                server_name=name,
                message=f"{key} still points at secure storage ({literal})",
                severity="warning",
            ))

    return issues


def static_validator(name: str, record: ConnectorRecord) -> bool:
    """LiveValidator-compatible gate built from the static checks; issues are logged."""
    ok = True
    for issue in validate_record(name, record):
        if issue.severity == "error":
            logger.warning(f"{name}: {issue.message}")
            ok = False
        else:
            logger.debug(f"{name}: {issue.message}")
    return ok
