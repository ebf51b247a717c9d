"""Normalization layer converting source records into canonical companies.

This module provides:
- SourceKind: record layouts understood by the normalizer
- SOURCE_FIELD_MAPS: per-layout fallback chains, declared as data
- CompanyNormalizer: service turning a raw record into a Company (or None)
"""

from .models import SOURCE_FIELD_MAPS, FieldMap, SourceKind, resolve
from .service import UNKNOWN_SECTOR_LABEL, CompanyNormalizer

__all__ = [
    "CompanyNormalizer",
    "FieldMap",
    "SOURCE_FIELD_MAPS",
    "SourceKind",
    "UNKNOWN_SECTOR_LABEL",
    "resolve",
]
