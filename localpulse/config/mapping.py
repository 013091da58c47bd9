"""Versioned field mapping from canonical item fields to destination columns.

The mapping is validated against the live table once at process start (see
``localpulse.db.writer.AdaptiveWriter.prepare``), so a drifted schema fails the
run up front instead of silently writing nothing.
"""

from pathlib import Path
from typing import Dict, List, Optional

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

from ..errors import MappingError

MAPPING_VERSION = 1

CANONICAL_FIELDS = (
    "source_id",
    "title",
    "link",
    "published_at",
    "summary",
    "content_hash",
    "state",
    "county",
    "region",
    "provider",
    "query",
    "domain",
    "image",
    "fetched_at",
)

REGION_FIELDS = ("state", "county", "region")

# Columns that identify an item by link when a table has a unique index on them
LINK_KEY_COLUMNS = ("url", "link", "canonical_url", "guid", "external_id", "source_url")


class MappingFlags(BaseModel):
    """Named behaviour switches for the writer."""

    fill_region_columns: bool = Field(True, description="Write state/county/region columns")
    use_upsert_on_conflict: bool = Field(True, description="Overwrite non-key columns on a link-key conflict")
    strict: bool = Field(True, description="Fail when a mapped column is missing from the table")


class FieldMapping(BaseModel):
    """Canonical field -> destination columns."""

    version: int = Field(MAPPING_VERSION)
    table: str = Field("feed_items")
    columns: Dict[str, List[str]] = Field(default_factory=dict)
    unique_key: Optional[List[str]] = Field(None, description="Explicit conflict target")
    flags: MappingFlags = Field(default_factory=MappingFlags)

    @field_validator("version")
    @classmethod
    def validate_version(cls, v: int) -> int:
        """Only the current mapping version is understood."""
        if v != MAPPING_VERSION:
            raise ValueError(f"Unsupported mapping version {v} (expected {MAPPING_VERSION})")
        return v

    @field_validator("columns")
    @classmethod
    def validate_columns(cls, v: Dict[str, List[str]]) -> Dict[str, List[str]]:
        """Reject unknown canonical fields and empty mappings."""
        unknown = sorted(set(v) - set(CANONICAL_FIELDS))
        if unknown:
            raise ValueError(f"Unknown canonical fields: {', '.join(unknown)}")
        if not any(v.values()):
            raise ValueError("Mapping does not name any destination column")
        return v

    def active_columns(self) -> Dict[str, List[str]]:
        """Mapping with flag-disabled fields removed."""
        active = {}
        for field, cols in self.columns.items():
            if field in REGION_FIELDS and not self.flags.fill_region_columns:
                continue
            if cols:
                active[field] = list(cols)
        return active


def default_mapping(table: Optional[str] = None) -> FieldMapping:
    """Mapping for the schema created by ``localpulse init``."""
    return FieldMapping(
        table=table or "feed_items",
        columns={
            "source_id": ["source_id"],
            "title": ["title"],
            "link": ["link"],
            "published_at": ["published_at"],
            "summary": ["summary"],
            "content_hash": ["content_hash"],
        },
        flags=MappingFlags(fill_region_columns=False),
    )


def load_mapping(mapping_path: Optional[Path], table: Optional[str] = None) -> FieldMapping:
    """Load a mapping file, or fall back to the built-in default."""
    if mapping_path is None:
        return default_mapping(table)

    if not mapping_path.exists():
        raise MappingError(f"Field mapping file not found: {mapping_path}")

    try:
        with open(mapping_path) as f:
            data = yaml.safe_load(f) or {}
        mapping = FieldMapping(**data)
    except yaml.YAMLError as e:
        raise MappingError(f"Invalid YAML in mapping file: {e}")
    except (TypeError, ValidationError) as e:
        raise MappingError(f"Invalid field mapping {mapping_path}: {e}")

    if table:
        mapping.table = table
    return mapping
