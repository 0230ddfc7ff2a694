"""
Configuration for price-scout.
"""

import os
from dataclasses import dataclass, field
from datetime import timedelta
from pathlib import Path
from typing import Any

import yaml

from .firecrawl import EXTRACTION_PROMPT, FIRECRAWL_API_BASE

PLUGIN_NAME = "datasette-price-scout"


@dataclass
class FirecrawlConfig:
    """Search/extraction provider configuration."""

    api_base: str = FIRECRAWL_API_BASE
    api_key: str | None = None
    api_key_env: str | None = "FIRECRAWL_API_KEY"
    timeout_seconds: float = 60.0
    max_results: int = 5
    search_suffix: str = "medicine price India"
    prompt: str = EXTRACTION_PROMPT

    def get_api_key(self) -> str | None:
        """Get API key from config or environment."""
        if self.api_key:
            return self.api_key
        if self.api_key_env:
            return os.environ.get(self.api_key_env)
        return None


@dataclass
class MatchingConfig:
    """Fuzzy matching knobs."""

    similarity_threshold: float = 0.3
    limit: int = 10


@dataclass
class FreshnessConfig:
    """When catalog matches are good enough to skip enrichment."""

    min_matches: int = 3
    max_age_hours: float = 24.0

    @property
    def max_age(self) -> timedelta:
        return timedelta(hours=self.max_age_hours)


@dataclass
class JobsConfig:
    """Enrichment job reuse and retention."""

    cooldown_minutes: float = 60.0
    retention_days: int = 30
    max_jobs_per_run: int = 50

    @property
    def cooldown(self) -> timedelta:
        return timedelta(minutes=self.cooldown_minutes)


@dataclass
class ScoutConfig:
    """Complete price-scout configuration."""

    db_path: Path = field(default_factory=lambda: Path("price_scout.db"))
    poll_interval_seconds: float = 60.0

    firecrawl: FirecrawlConfig = field(default_factory=FirecrawlConfig)
    matching: MatchingConfig = field(default_factory=MatchingConfig)
    freshness: FreshnessConfig = field(default_factory=FreshnessConfig)
    jobs: JobsConfig = field(default_factory=JobsConfig)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ScoutConfig":
        """Create config from a dictionary (e.g., from YAML)."""
        config = cls()

        if "db_path" in data:
            config.db_path = Path(data["db_path"])
        if "poll_interval_seconds" in data:
            config.poll_interval_seconds = float(data["poll_interval_seconds"])

        if "firecrawl" in data:
            fc = data["firecrawl"] or {}
            defaults = FirecrawlConfig()
            config.firecrawl = FirecrawlConfig(
                api_base=fc.get("api_base", defaults.api_base),
                api_key=fc.get("api_key"),
                api_key_env=fc.get("api_key_env", defaults.api_key_env),
                timeout_seconds=fc.get("timeout_seconds", defaults.timeout_seconds),
                max_results=fc.get("max_results", defaults.max_results),
                search_suffix=fc.get("search_suffix", defaults.search_suffix),
                prompt=fc.get("prompt", defaults.prompt),
            )

        if "matching" in data:
            m = data["matching"] or {}
            config.matching = MatchingConfig(
                similarity_threshold=m.get("similarity_threshold", 0.3),
                limit=m.get("limit", 10),
            )

        if "freshness" in data:
            f = data["freshness"] or {}
            config.freshness = FreshnessConfig(
                min_matches=f.get("min_matches", 3),
                max_age_hours=f.get("max_age_hours", 24.0),
            )

        if "jobs" in data:
            j = data["jobs"] or {}
            config.jobs = JobsConfig(
                cooldown_minutes=j.get("cooldown_minutes", 60.0),
                retention_days=j.get("retention_days", 30),
                max_jobs_per_run=j.get("max_jobs_per_run", 50),
            )

        return config

    @classmethod
    def from_plugin_config(cls, plugin_config: dict[str, Any] | None) -> "ScoutConfig":
        """
        Build from the plugin's section of datasette.yaml.

        The engine settings live under a "scout" key; a top-level
        "db_path" is honoured when the scout section does not set one.
        """
        plugin_config = plugin_config or {}
        scout_config = plugin_config.get("scout") or {}
        config = cls.from_dict(scout_config)
        if "db_path" not in scout_config and "db_path" in plugin_config:
            config.db_path = Path(plugin_config["db_path"])
        return config

    @classmethod
    def from_yaml(cls, path: Path) -> "ScoutConfig":
        """Load config from a YAML file (datasette.yaml format)."""
        if not path.exists():
            return cls()

        with open(path) as f:
            data = yaml.safe_load(f) or {}

        return cls.from_plugin_config(data.get("plugins", {}).get(PLUGIN_NAME))

    def to_dict(self) -> dict[str, Any]:
        """Convert config to dictionary for logging. The API key is never included."""
        return {
            "db_path": str(self.db_path),
            "poll_interval_seconds": self.poll_interval_seconds,
            "firecrawl": {
                "api_base": self.firecrawl.api_base,
                "api_key_env": self.firecrawl.api_key_env,
                "timeout_seconds": self.firecrawl.timeout_seconds,
                "max_results": self.firecrawl.max_results,
                "search_suffix": self.firecrawl.search_suffix,
            },
            "matching": {
                "similarity_threshold": self.matching.similarity_threshold,
                "limit": self.matching.limit,
            },
            "freshness": {
                "min_matches": self.freshness.min_matches,
                "max_age_hours": self.freshness.max_age_hours,
            },
            "jobs": {
                "cooldown_minutes": self.jobs.cooldown_minutes,
                "retention_days": self.jobs.retention_days,
                "max_jobs_per_run": self.jobs.max_jobs_per_run,
            },
        }
