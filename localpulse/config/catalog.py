"""Source catalog loaded from sources.yaml.

The catalog groups sources by state and county::

    states:
      FL:
        Escambia:
          enabled: true
          search_queries: ["Escambia County Florida"]
          sources:
            - source_name: Pensacola News
              rss_url: https://example.com/feed

A county block must be enabled for any of its sources (or its search
queries) to be used. Individual sources may be switched off with
``enabled: false``.
"""

import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from pydantic import ValidationError

from ..errors import CatalogError
from .models import RegionConfig, SourceConfig

logger = logging.getLogger(__name__)

STATE_NAMES = {
    "AL": "Alabama", "AK": "Alaska", "AZ": "Arizona", "AR": "Arkansas", "CA": "California",
    "CO": "Colorado", "CT": "Connecticut", "DE": "Delaware", "DC": "District of Columbia",
    "FL": "Florida", "GA": "Georgia", "HI": "Hawaii", "ID": "Idaho", "IL": "Illinois",
    "IN": "Indiana", "IA": "Iowa", "KS": "Kansas", "KY": "Kentucky", "LA": "Louisiana",
    "ME": "Maine", "MD": "Maryland", "MA": "Massachusetts", "MI": "Michigan", "MN": "Minnesota",
    "MS": "Mississippi", "MO": "Missouri", "MT": "Montana", "NE": "Nebraska", "NV": "Nevada",
    "NH": "New Hampshire", "NJ": "New Jersey", "NM": "New Mexico", "NY": "New York",
    "NC": "North Carolina", "ND": "North Dakota", "OH": "Ohio", "OK": "Oklahoma", "OR": "Oregon",
    "PA": "Pennsylvania", "RI": "Rhode Island", "SC": "South Carolina", "SD": "South Dakota",
    "TN": "Tennessee", "TX": "Texas", "UT": "Utah", "VT": "Vermont", "VA": "Virginia",
    "WA": "Washington", "WV": "West Virginia", "WI": "Wisconsin", "WY": "Wyoming",
}

_URL_FIELDS = ("website_url", "rss_url", "facebook_url", "x_url")


def default_queries(state: str, county: str) -> List[str]:
    """Two phrasings per county: plain and quoted."""
    state_name = STATE_NAMES.get(state.upper(), state)
    return [
        f"{county} County {state_name}",
        f'"{county} County" "{state_name}"',
    ]


class SourceCatalog:
    """In-memory view of the configured sources."""

    def __init__(self, sources: List[SourceConfig], regions: List[RegionConfig]) -> None:
        self._sources = sources
        self._regions = regions

    @classmethod
    def from_dict(cls, data: Any) -> "SourceCatalog":
        """Build a catalog from parsed YAML."""
        if not isinstance(data, dict) or not isinstance(data.get("states"), dict):
            raise CatalogError("Catalog must contain a 'states' mapping")

        sources: List[SourceConfig] = []
        regions: List[RegionConfig] = []

        for state, counties in data["states"].items():
            if not isinstance(counties, dict):
                raise CatalogError(f"State {state!r} must map county names to county blocks")

            for county, block in counties.items():
                if not isinstance(block, dict):
                    raise CatalogError(f"County block {state}/{county} must be a mapping")

                county_enabled = bool(block.get("enabled", False))
                entries = block.get("sources") or []
                if not isinstance(entries, list):
                    raise CatalogError(f"{state}/{county}: 'sources' must be a list")

                for entry in entries:
                    sources.append(_parse_source(str(state), str(county), entry, county_enabled))

                if county_enabled:
                    queries = block.get("search_queries")
                    if queries is None:
                        queries = default_queries(str(state), str(county))
                    elif not isinstance(queries, list):
                        raise CatalogError(f"{state}/{county}: 'search_queries' must be a list")
                    regions.append(
                        RegionConfig(
                            state=str(state),
                            county=str(county),
                            queries=[str(q) for q in queries],
                        )
                    )

        return cls(sources, regions)

    def all_sources(self) -> List[SourceConfig]:
        """Every source, enabled or not (used for catalog sync)."""
        return list(self._sources)

    def list_enabled_sources(self) -> List[SourceConfig]:
        """Sources eligible for fetching."""
        return [s for s in self._sources if s.enabled]

    def list_regions(self) -> List[RegionConfig]:
        """Enabled regions with their search queries."""
        return list(self._regions)

    def find(self, name: str) -> List[SourceConfig]:
        """Sources with the given display name."""
        return [s for s in self._sources if s.source_name == name]


def _parse_source(state: str, county: str, entry: Any, county_enabled: bool) -> SourceConfig:
    if not isinstance(entry, dict):
        raise CatalogError(f"{state}/{county}: source entries must be mappings")

    data: Dict[str, Any] = dict(entry)
    # YAML nulls for unused URLs are common
    for field in _URL_FIELDS:
        if data.get(field) is None:
            data[field] = ""
        else:
            data[field] = str(data[field]).strip()

    data["enabled"] = county_enabled and bool(data.get("enabled", True))

    try:
        return SourceConfig(state=state, county=county, **data)
    except (TypeError, ValidationError) as e:
        name = data.get("source_name", "unknown")
        raise CatalogError(f"Invalid source {state}/{county} {name}: {e}")


def load_catalog(catalog_path: Path) -> SourceCatalog:
    """Load the catalog from YAML. Any problem is fatal for the run."""
    if not catalog_path.exists():
        raise CatalogError(f"Sources file not found: {catalog_path}")

    try:
        with open(catalog_path) as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise CatalogError(f"Invalid YAML in sources file: {e}")

    catalog = SourceCatalog.from_dict(data)
    logger.info(
        "Loaded catalog %s: %d sources (%d enabled), %d regions",
        catalog_path,
        len(catalog.all_sources()),
        len(catalog.list_enabled_sources()),
        len(catalog.list_regions()),
    )
    return catalog


def save_catalog(sources: List[SourceConfig], catalog_path: Path, regions: Optional[List[RegionConfig]] = None) -> None:
    """Write sources back out in the catalog layout."""
    states: Dict[str, Dict[str, Any]] = {}
    for region in regions or []:
        block = states.setdefault(region.state, {}).setdefault(region.county, {"enabled": True, "sources": []})
        block["search_queries"] = list(region.queries)

    for source in sources:
        block = states.setdefault(source.state, {}).setdefault(
            source.county, {"enabled": True, "sources": []}
        )
        entry = source.model_dump(exclude={"state", "county"})
        block["sources"].append(entry)

    catalog_path.parent.mkdir(parents=True, exist_ok=True)
    with open(catalog_path, "w") as f:
        yaml.dump({"states": states}, f, default_flow_style=False, sort_keys=False)
