# Credential schema snapshots
# ABOUTME: Keeps env/header metadata (values stripped) on registry servers
# ABOUTME: so a blank re-entry form can be rebuilt later
from typing import Mapping

from mcpm.models import ConnectorRecord, CredentialField, CredentialSchema, CredentialValue, RegistryServer

SCHEMA_SECTIONS = ("env", "headers")


def extract_credential_schema(values: Mapping[str, CredentialValue]) -> dict[str, CredentialSchema]:
    """Strip values, keep metadata; plain or unset entries get an empty schema."""
    schema: dict[str, CredentialSchema] = {}
    for key, value in values.items():
        if isinstance(value, CredentialField):
            schema[key] = CredentialSchema(
                description=value.description,
                note=value.note,
                required=value.required,
                hidden=value.hidden,
            )
        else:
            schema[key] = CredentialSchema()
    return schema


def build_schema(record: ConnectorRecord) -> dict[str, dict[str, CredentialSchema]]:
    """Schema snapshot of a record; sections without keys are omitted."""
    schema: dict[str, dict[str, CredentialSchema]] = {}
    if record.env:
        schema["env"] = extract_credential_schema(record.env)
    if record.headers:
        schema["headers"] = extract_credential_schema(record.headers)
    return schema


def _blank_credentials(entries: Mapping[str, CredentialSchema]) -> dict[str, CredentialField]:
    # Required first (unset counts as required), then alphabetical
    ordered = sorted(entries.items(), key=lambda item: (item[1].required is False, item[0]))
    return {
        key: CredentialField(
            value=None,
            description=meta.description,
            note=meta.note,
            required=meta.required,
            hidden=meta.hidden,
        )
        for key, meta in ordered
    }


def create_blank_config_from_schema(
    schema: Mapping[str, Mapping[str, CredentialSchema]],
) -> dict[str, dict[str, CredentialField]]:
    """Blank env/header maps for re-entering credentials.

    Examples:
        >>> blank = create_blank_config_from_schema({"env": {"B": CredentialSchema(), "A": CredentialSchema(required=False)}})
        >>> list(blank["env"])
        ['B', 'A']
    """
    return {
        section: _blank_credentials(schema[section])
        for section in SCHEMA_SECTIONS
        if schema.get(section)
    }


def has_schema(server: RegistryServer) -> bool:
    return any(server.schema.get(section) for section in SCHEMA_SECTIONS)
