"""Configuration models."""

from typing import List, Optional

from pydantic import BaseModel, Field, field_validator


class PostgresConfig(BaseModel):
    """Postgres configuration."""

    dsn: Optional[str] = Field(None, description="Full connection string (overrides host/port/...)")
    host: str = Field("localhost", description="Database host")
    port: int = Field(5432, description="Database port")
    database: str = Field("localpulse", description="Database name")
    user: str = Field("localpulse", description="Database user")
    password: Optional[str] = Field(None, description="Database password")
    password_env: Optional[str] = Field(None, description="Environment variable for password")
    sslmode: Optional[str] = Field(None, description="libpq sslmode (disable, require, ...)")
    max_pool_size: int = Field(4, ge=1, le=32)


class IngestConfig(BaseModel):
    """Feed and search ingestion parameters."""

    lookback_hours: int = Field(12, description="Search window length in hours", ge=1, le=24 * 30)
    max_records: int = Field(50, description="Max results per search query", ge=1, le=250)
    min_keyword_len: int = Field(4, description="Shortest query sent upstream", ge=1)
    request_timeout: float = Field(20.0, description="Per-request timeout in seconds", gt=0)
    request_delay: float = Field(1.0, description="Pause between outbound requests in seconds", ge=0)
    max_concurrent: int = Field(1, description="Sources probed concurrently", ge=1, le=16)
    user_agent: str = Field("LocalPulseBot/0.1 (+https://localpulse.news)")
    search_api: str = Field("https://api.gdeltproject.org/api/v2/doc/doc")
    search_source_name: str = Field("GDELT Search", description="Source row owning search results")


class SynthesisConfig(BaseModel):
    """Roundup synthesis parameters."""

    window_hours: int = Field(24, description="Story window length in hours", ge=1, le=24 * 7)
    min_group_size: int = Field(3, description="Fewest items that make a roundup", ge=1)
    max_items_per_group: int = Field(40, description="Items loaded per region/window", ge=1)
    max_prompt_items: int = Field(20, description="Items numbered in the prompt", ge=1)
    fallback_citations: int = Field(6, description="Citations used when the model names none", ge=1)
    snippet_chars: int = Field(240, ge=40)
    story_type: str = Field("roundup")
    prompt_version: str = Field("v1")
    story_status: str = Field("published")

    @field_validator("story_status")
    @classmethod
    def validate_status(cls, v: str) -> str:
        """Only draft and published are written on success."""
        if v not in ("draft", "published"):
            raise ValueError(f"story_status must be draft or published, got {v!r}")
        return v


class LLMConfig(BaseModel):
    """Generation provider configuration."""

    provider: str = Field("http", description="Generation provider (http, openai, mock)")
    model: str = Field("gpt-4o-mini", description="Model name")
    endpoint: Optional[str] = Field(None, description="Endpoint for the http provider")
    api_key_env: Optional[str] = Field("AI_API_KEY", description="Environment variable for API key")
    api_key: Optional[str] = Field(None, description="API key (prefer api_key_env)")
    base_url: Optional[str] = Field(None, description="Base URL override for the openai provider")
    timeout: float = Field(60.0, gt=0)
    temperature: float = Field(0.3, ge=0.0, le=2.0)

    @field_validator("provider")
    @classmethod
    def validate_provider(cls, v: str) -> str:
        """Restrict to known providers."""
        if v not in ("http", "openai", "mock"):
            raise ValueError(f"Unknown provider {v!r} (expected http, openai or mock)")
        return v


class ConfigModel(BaseModel):
    """Main configuration model."""

    catalog_path: str = Field("~/.config/localpulse/sources.yaml", description="Source catalog YAML")
    mapping_path: Optional[str] = Field(None, description="Field mapping YAML (default: built-in feed_items)")
    target_table: Optional[str] = Field(None, description="Overrides the mapping's table")
    postgres: PostgresConfig = Field(default_factory=PostgresConfig)
    ingest: IngestConfig = Field(default_factory=IngestConfig)
    synthesis: SynthesisConfig = Field(default_factory=SynthesisConfig)
    llm: LLMConfig = Field(default_factory=LLMConfig)


class SourceConfig(BaseModel):
    """Source entry from the catalog."""

    state: str = Field(..., description="State code (FL, AL, ...)")
    county: str = Field(..., description="County name")
    source_name: str = Field(..., min_length=1, description="Display name")
    source_type: str = Field("rss", description="Source type (rss, search)")
    tier: str = Field("secondary", description="Source tier (primary, secondary, ...)")
    website_url: str = Field("", description="Site homepage")
    rss_url: str = Field("", description="Explicitly configured feed URL")
    facebook_url: str = Field("", description="Facebook page (not fetched)")
    x_url: str = Field("", description="X profile (not fetched)")
    enabled: bool = Field(True, description="Whether the source is enabled")

    @property
    def key(self) -> tuple:
        """Identity key."""
        return (self.state, self.county, self.source_name)

    @property
    def label(self) -> str:
        """Short log label."""
        return f"{self.state}/{self.county} {self.source_name}"


class RegionConfig(BaseModel):
    """Enabled (state, county) region with its search phrasings."""

    state: str
    county: str
    queries: List[str] = Field(default_factory=list)

    @property
    def tag(self) -> str:
        """Log tag, e.g. FL/Escambia."""
        return f"{self.state}/{self.county}"
