"""
Persona catalogs.

A catalog is a YAML (or JSON) document mapping persona names to their
guardrail configuration::

    personas:
      support:
        enabled: [safety, pii, length]
        guardrails:
          length: {min_length: 5, max_length: 1000}
"""

from __future__ import annotations

import json
from importlib import resources
from pathlib import Path
from typing import TYPE_CHECKING, Any

import yaml
from pydantic import ValidationError as PydanticValidationError

from guardrail_engine.errors import ValidationError
from guardrail_engine.types import PersonaGuardrailConfig

if TYPE_CHECKING:
    from collections.abc import Mapping

    from guardrail_engine.registry import GuardrailRegistry

DEFAULT_CATALOG = "personas.yaml"


def parse_personas(data: Any, source: str = "<memory>") -> dict[str, PersonaGuardrailConfig]:
    """Validate a parsed catalog document.

    Args:
        data: Parsed document
        source: Where the document came from, for error messages

    Returns:
        Persona name to configuration, names lower-cased

    Raises:
        ValidationError: If the document is malformed
    """
    if not isinstance(data, dict) or not isinstance(data.get("personas"), dict):
        raise ValidationError(
            f"Persona catalog {source} must contain a 'personas' mapping",
            field="personas",
            expected="mapping",
            actual=type(data.get("personas") if isinstance(data, dict) else data).__name__,
        )

    personas: dict[str, PersonaGuardrailConfig] = {}
    for name, entry in data["personas"].items():
        if not isinstance(entry, dict) or not isinstance(entry.get("enabled"), list):
            raise ValidationError(
                f"Persona '{name}' in {source} must have an enabled list",
                field=f"personas.{name}.enabled",
                expected="list",
            )
        try:
            personas[str(name).lower()] = PersonaGuardrailConfig.model_validate(entry)
        except PydanticValidationError as e:
            raise ValidationError(
                f"Invalid persona '{name}' in {source}",
                field=f"personas.{name}",
                actual=e.errors(include_url=False),
            ) from e

    return personas


def load_persona_file(path: str | Path) -> dict[str, PersonaGuardrailConfig]:
    """Load a persona catalog from disk.

    Raises:
        ValidationError: If the file is missing or malformed
    """
    path = Path(path)
    try:
        content = path.read_text(encoding="utf-8")
        data = json.loads(content) if path.suffix == ".json" else yaml.safe_load(content)
    except (OSError, ValueError, yaml.YAMLError) as e:
        raise ValidationError(f"Cannot read persona catalog {path}: {e}") from e

    return parse_personas(data, source=str(path))


def load_default_personas() -> dict[str, PersonaGuardrailConfig]:
    """Load the catalog bundled with the package."""
    content = (
        resources.files("guardrail_engine")
        .joinpath("data")
        .joinpath(DEFAULT_CATALOG)
        .read_text(encoding="utf-8")
    )
    return parse_personas(yaml.safe_load(content), source=DEFAULT_CATALOG)


def apply_personas(
    registry: GuardrailRegistry,
    personas: Mapping[str, PersonaGuardrailConfig],
) -> None:
    """Configure every persona of a catalog on ``registry``."""
    for name, config in personas.items():
        registry.configure_persona(name, config)
