"""
Load and validate the desired-state YAML document.

Validation happens once, here. Everything downstream (diff, deploy) works
on a typed ConfigDocument whose natural keys are known to be unique.
"""

import logging
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from shopform.core.document.schema import ConfigDocument, ensure_unique_keys
from shopform.core.errors import ConfiguratorError

logger = logging.getLogger(__name__)

DEFAULT_DOCUMENT_PATH = Path("config.yml")


def format_validation_errors(error: ValidationError) -> list[str]:
    """
    Flatten a pydantic ValidationError into ``path: message`` lines.

    Example:
        >>> format_validation_errors(exc)
        ["channels.0.currencyCode: Value error, Invalid currency code 'eur'"]
    """
    lines = []
    for item in error.errors():
        path = ".".join(str(part) for part in item["loc"]) or "<document>"
        lines.append(f"{path}: {item['msg']}")
    return lines


def parse_document(data: dict[str, Any], *, source: str | None = None) -> ConfigDocument:
    """
    Validate a parsed mapping into a ConfigDocument.

    Args:
        data: Mapping as loaded from YAML
        source: Optional file name, added to error context

    Returns:
        The validated document

    Raises:
        ConfiguratorError: VALIDATION on schema failures, DUPLICATE when a
            collection repeats a natural key
    """
    try:
        document = ConfigDocument.model_validate(data)
    except ValidationError as e:
        errors = format_validation_errors(e)
        details = "\n".join(f"  - {line}" for line in errors)
        message = f"Configuration validation failed:\n{details}"
        raise ConfiguratorError.validation(message, file=source, errors=errors) from e

    ensure_unique_keys(document)
    return document


def load_document(path: Path) -> ConfigDocument:
    """
    Read a YAML document from disk and validate it.

    Args:
        path: Path to the YAML file

    Returns:
        The validated document

    Raises:
        FileNotFoundError: If the file does not exist
        ConfiguratorError: VALIDATION for malformed YAML or schema errors,
            DUPLICATE for repeated natural keys
    """
    if not path.exists():
        raise FileNotFoundError(f"Configuration file not found: {path}")

    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as e:
        raise ConfiguratorError.validation(f"Invalid YAML in {path}: {e}", file=str(path)) from e

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfiguratorError.validation(
            f"Configuration in {path} must be a mapping of sections", file=str(path)
        )

    document = parse_document(data, source=str(path))
    logger.debug("Loaded configuration from %s", path)
    return document


__all__ = [
    "DEFAULT_DOCUMENT_PATH",
    "format_validation_errors",
    "load_document",
    "parse_document",
]
