# JSON agent config parser
import json
from typing import Any

from mcpm.errors import ConfigParseError
from mcpm.parsers.base import BaseParser, get_nested, set_nested


class JsonParser(BaseParser):
    """Parser for JSON agent configs (Claude Code, Cursor, VS Code, Zed, ...).

    ABOUTME: Keeps key order of the existing document
    ABOUTME: Uses 2-space indentation with a trailing newline
    """

    format = "json"

    def load_document(self, text: str) -> Any:
        try:
            document = json.loads(text)
        except json.JSONDecodeError as e:
            raise ConfigParseError(f"Invalid JSON in {self.config_path}: {e}") from e
        if not isinstance(document, dict):
            raise ConfigParseError(f"Invalid JSON in {self.config_path}: top level must be an object")
        return document

    def dump(self, document: dict[str, Any]) -> str:
        return json.dumps(document, indent=2, ensure_ascii=False) + "\n"

    def render(self, document: Any, existing_text: str, entries: dict[str, dict[str, Any]], merge: bool) -> str:
        wrapper_key = self.profile.wrapper_key
        existing = get_nested(document, wrapper_key)
        if merge and isinstance(existing, dict):
            servers = {**existing, **entries}
        else:
            servers = dict(entries)
        set_nested(document, wrapper_key, servers)
        return self.dump(document)
