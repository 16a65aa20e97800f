# YAML agent config parser
from typing import Any

import yaml

from mcpm.errors import ConfigParseError
from mcpm.parsers.json_parser import JsonParser


class YamlParser(JsonParser):
    """Parser for YAML agent configs (Continue).

    ABOUTME: Same wrapper/merge logic as JSON; only (de)serialization differs
    ABOUTME: Uses safe_load/safe_dump, block style, original key order
    """

    format = "yaml"

    def load_document(self, text: str) -> Any:
        try:
            document = yaml.safe_load(text)
        except yaml.YAMLError as e:
            raise ConfigParseError(f"Invalid YAML in {self.config_path}: {e}") from e
        if document is None:
            return {}
        if not isinstance(document, dict):
            raise ConfigParseError(f"Invalid YAML in {self.config_path}: top level must be a mapping")
        return document

    def dump(self, document: dict[str, Any]) -> str:
        return yaml.safe_dump(document, default_flow_style=False, sort_keys=False, allow_unicode=True)
