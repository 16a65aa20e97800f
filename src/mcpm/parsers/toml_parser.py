# TOML agent config parser
from typing import Any

import tomli

from mcpm.errors import ConfigParseError
from mcpm.parsers.base import BaseParser, get_nested
from mcpm.utils.toml_writer import replace_tables


class TomlParser(BaseParser):
    """Parser for TOML agent configs (Codex CLI, ~/.codex/config.toml).

    ABOUTME: Reads with tomli; writes by regenerating only [<wrapper>.*] tables
    ABOUTME: Other sections ([profile], comments, top-level keys) are kept verbatim
    """

    format = "toml"

    def load_document(self, text: str) -> Any:
        try:
            return tomli.loads(text)
        except tomli.TOMLDecodeError as e:
            raise ConfigParseError(f"Invalid TOML in {self.config_path}: {e}") from e

    def render(self, document: Any, existing_text: str, entries: dict[str, dict[str, Any]], merge: bool) -> str:
        existing = get_nested(document, self.profile.wrapper_key)
        if not isinstance(existing, dict):
            existing = {}
        if merge:
            servers = {**existing, **entries}
        else:
            # Wrapper-level settings survive a full replace
            settings = {key: value for key, value in existing.items() if not isinstance(value, dict)}
            servers = {**settings, **entries}
        return replace_tables(existing_text, self.profile.wrapper_key, servers)
