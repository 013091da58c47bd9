"""Source row model."""

from pydantic import Field

from .base import DBModel


class Source(DBModel):
    """Persisted source, keyed by (state, county, source_name)."""

    state: str = Field(..., description="State code")
    county: str = Field(..., description="County name")
    source_name: str = Field(..., description="Display name")
    source_type: str = Field("rss", description="rss or search")
    tier: str = Field("secondary", description="Source tier")
    website_url: str = Field("", description="Site homepage")
    rss_url: str = Field("", description="Configured feed URL")
    enabled: bool = Field(True, description="Whether the source is fetched")

    @property
    def region(self) -> str:
        """Region label, e.g. FL/Escambia."""
        return f"{self.state}/{self.county}"
