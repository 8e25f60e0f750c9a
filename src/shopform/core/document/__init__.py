"""Desired-state document: schemas and YAML loading."""

from shopform.core.document.loader import load_document, parse_document
from shopform.core.document.schema import ConfigDocument, Entity, Section

__all__ = ["ConfigDocument", "Entity", "Section", "load_document", "parse_document"]
