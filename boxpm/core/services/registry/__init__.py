"""
NUR registry access.

Public API:
    from boxpm.core.services.registry import RegistryClient
    from boxpm.core.services.registry import parse_document, DocumentError
"""

from boxpm.core.services.registry.client import RegistryClient, metadata_from_document
from boxpm.core.services.registry.document import (
    DocumentError,
    decode_document,
    parse_document,
)

__all__ = [
    "DocumentError",
    "RegistryClient",
    "decode_document",
    "metadata_from_document",
    "parse_document",
]
