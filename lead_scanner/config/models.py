"""Configuration schema models using Pydantic."""

from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from lead_scanner.domain.models import MAX_DAYS

from .duration import DurationParseError, parse_duration, validate_duration_range

DEFAULT_PARTITIONS = ["44", "49", "53", "72", "85"]

DEFAULT_USER_AGENTS = [
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
    "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
]

# Consumer-facing NAF divisions: retail, food service, personal services,
# construction trades, crafts, lodging, real estate, rental, leisure
DEFAULT_B2C_PREFIXES = [
    "47", "56", "96", "41", "43", "46", "10", "14", "15", "16",
    "31", "32", "33", "52", "55", "68", "77", "82", "90", "93", "95",
]

DEFAULT_SECTOR_LABELS = {
    "01": "Agriculture",
    "10": "Industrie alimentaire",
    "14": "Habillement",
    "16": "Travail du bois",
    "22": "Caoutchouc/plastique",
    "25": "Métallurgie",
    "28": "Machines/équipements",
    "41": "Construction",
    "43": "Travaux construction",
    "45": "Commerce/réparation auto",
    "46": "Commerce de gros",
    "47": "Commerce de détail",
    "49": "Transports terrestres",
    "55": "Hébergement",
    "56": "Restauration",
    "62": "Informatique",
    "64": "Activités financières",
    "68": "Immobilier",
    "69": "Activités juridiques/comptables",
    "70": "Conseil de gestion",
    "71": "Architecture/ingénierie",
    "73": "Publicité",
    "77": "Location",
    "82": "Activités administratives",
    "85": "Enseignement",
    "86": "Santé humaine",
    "88": "Action sociale",
    "90": "Arts/spectacles",
    "93": "Sports/loisirs",
    "94": "Activités associatives",
    "95": "Réparation ordinateurs",
    "96": "Services personnels",
}


def _clean_codes(values: List[str]) -> List[str]:
    """Strip codes, drop blanks and keep first occurrences."""
    cleaned: List[str] = []
    for value in values:
        code = str(value).strip()
        if code and code not in cleaned:
            cleaned.append(code)
    return cleaned


class SourceType(str, Enum):
    """Supported upstream company sources."""

    REGISTRY_SEARCH = "registry_search"
    HTML_SCRAPE = "html_scrape"
    KEYED_API = "keyed_api"


class LogLevel(str, Enum):
    """Logging levels."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class LogFormat(str, Enum):
    """Log output formats."""

    JSON = "json"
    KEY_VALUE = "key-value"


class SourceConfig(BaseModel):
    """Configuration for a single upstream source."""

    name: str = Field(..., min_length=1, description="Human-readable name for the source")
    type: SourceType = Field(
        ..., description="Source type (registry_search, html_scrape, keyed_api)"
    )
    enabled: bool = Field(True, description="Whether to scan this source")
    region: Optional[str] = Field(
        None, description="Region filter sent along with the department (html_scrape only)"
    )

    @field_validator("name")
    @classmethod
    def strip_whitespace(cls, v: str) -> str:
        """Strip whitespace from the name."""
        stripped = v.strip()
        if not stripped:
            raise ValueError("Field cannot be empty or whitespace-only")
        return stripped

    model_config = {"use_enum_values": True}


class ScoringWeights(BaseModel):
    """Points awarded per scoring rule."""

    no_website: int = Field(30, ge=0, le=100)
    recently_created: int = Field(20, ge=0, le=100)
    b2c_sector: int = Field(20, ge=0, le=100)
    target_region: int = Field(10, ge=0, le=100)
    has_email: int = Field(10, ge=0, le=100)
    has_phone: int = Field(10, ge=0, le=100)


class ScoringConfig(BaseModel):
    """Opportunity scoring rules."""

    weights: ScoringWeights = Field(default_factory=ScoringWeights)
    b2c_sector_prefixes: List[str] = Field(
        default_factory=lambda: list(DEFAULT_B2C_PREFIXES),
        description="Two-digit sector code prefixes considered consumer-facing",
    )
    target_postal_prefixes: List[str] = Field(
        default_factory=lambda: list(DEFAULT_PARTITIONS),
        description="Postal code prefixes of the target region",
    )
    recent_months: int = Field(
        3, ge=1, le=24, description="Calendar months counted as recently created"
    )

    @field_validator("b2c_sector_prefixes", "target_postal_prefixes")
    @classmethod
    def normalize_prefixes(cls, v: List[str]) -> List[str]:
        return _clean_codes(v)


class ProbeConfig(BaseModel):
    """Website liveness probe settings."""

    timeout_seconds: float = Field(8.0, gt=0, le=60, description="Per-request timeout")
    fallback_to_http: bool = Field(
        True, description="Retry over plain http when https fails"
    )
    max_workers: int = Field(8, ge=1, le=64, description="Concurrent probes")


class RetryPolicy(BaseModel):
    """Retry schedule for transient upstream failures."""

    max_attempts: int = Field(3, ge=1, le=10, description="Total attempts per request")
    initial_delay_seconds: float = Field(1.0, ge=0, le=60)
    backoff_multiplier: float = Field(2.0, ge=1.0, le=5.0)

    def delay_for(self, attempt: int) -> float:
        """Delay before retrying after the given (1-based) failed attempt."""
        return self.initial_delay_seconds * (self.backoff_multiplier ** (attempt - 1))


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: LogLevel = Field(LogLevel.INFO, description="Log level")
    format: LogFormat = Field(
        LogFormat.KEY_VALUE, description="Log output format (json or key-value)"
    )

    model_config = {"use_enum_values": True}


class AdvancedConfig(BaseModel):
    """Advanced runtime settings."""

    http_request_timeout: int = Field(
        30, ge=5, le=300, description="Request timeout for upstream calls (seconds)"
    )
    user_agents: List[str] = Field(
        default_factory=lambda: list(DEFAULT_USER_AGENTS),
        description="User-Agent pool rotated across requests",
    )
    max_pages: int = Field(20, ge=1, le=500, description="Page cap per partition")
    partition_delay_seconds: float = Field(
        0.3, ge=0, le=60, description="Pause between partitions"
    )
    detail_workers: int = Field(4, ge=1, le=32, description="Concurrent detail fetches")

    @field_validator("user_agents")
    @classmethod
    def strip_user_agents(cls, v: List[str]) -> List[str]:
        """Strip user agents and require at least one."""
        agents = [agent.strip() for agent in v if agent and agent.strip()]
        if not agents:
            raise ValueError("user_agents must contain at least one non-empty value")
        return agents


class ExportConfig(BaseModel):
    """CSV export settings."""

    output_dir: str = Field("output", min_length=1)
    literal_has_website: bool = Field(
        False,
        description="Write HasWebsite=Yes for companies with a website "
        "(default keeps the inverted column: Yes means no website)",
    )


class ScanDefaults(BaseModel):
    """Default scrape options when the CLI does not override them."""

    days: int = Field(30, gt=0, le=MAX_DAYS)
    limit: int = Field(50, gt=0)


class AppConfig(BaseModel):
    """Root configuration object for the Company Lead Scanner."""

    sources: List[SourceConfig] = Field(
        default_factory=lambda: [
            SourceConfig(name="Registre des entreprises", type=SourceType.REGISTRY_SEARCH)
        ],
        min_length=1,
        description="Upstream sources to scan",
    )
    partitions: List[str] = Field(
        default_factory=lambda: list(DEFAULT_PARTITIONS),
        min_length=1,
        description="Department codes scanned when no partition is requested",
    )
    region_label: str = Field("pdl", min_length=1, description="Label used in export names")
    scoring: ScoringConfig = Field(default_factory=ScoringConfig)
    sector_labels: Dict[str, str] = Field(
        default_factory=lambda: dict(DEFAULT_SECTOR_LABELS),
        description="Two-digit sector code prefix to label",
    )
    probe: ProbeConfig = Field(default_factory=ProbeConfig)
    retry: RetryPolicy = Field(default_factory=RetryPolicy)
    advanced: AdvancedConfig = Field(default_factory=AdvancedConfig)
    export: ExportConfig = Field(default_factory=ExportConfig)
    defaults: ScanDefaults = Field(default_factory=ScanDefaults)
    scan_interval: str = Field("24h", description="Interval between scheduled scans")
    logging: LoggingConfig = Field(
        default_factory=LoggingConfig, description="Logging configuration"
    )

    # Computed field
    scan_interval_seconds: Optional[int] = None

    @field_validator("partitions")
    @classmethod
    def normalize_partitions(cls, v: List[str]) -> List[str]:
        cleaned = _clean_codes(v)
        if not cleaned:
            raise ValueError("partitions must contain at least one department code")
        return cleaned

    @field_validator("sector_labels")
    @classmethod
    def validate_sector_labels(cls, v: Dict[str, str]) -> Dict[str, str]:
        labels = {}
        for prefix, label in v.items():
            key = str(prefix).strip()
            if len(key) != 2 or not key.isdigit():
                raise ValueError(f"Sector label key must be two digits, got '{prefix}'")
            labels[key] = str(label).strip()
        return labels

    @field_validator("scan_interval")
    @classmethod
    def validate_scan_interval(cls, v: str) -> str:
        """Validate and parse scan interval."""
        try:
            validate_duration_range(parse_duration(v))
            return v
        except DurationParseError as e:
            raise ValueError(str(e)) from e

    @model_validator(mode="after")
    def validate_sources_and_compute_fields(self):
        """Validate sources and compute derived fields."""
        if not self.get_enabled_sources():
            raise ValueError(
                "At least one source must be enabled. All sources have enabled=false."
            )

        seen_types = set()
        for source in self.sources:
            if source.type in seen_types:
                raise ValueError(f"Duplicate source type: {source.type} appears multiple times")
            seen_types.add(source.type)

        self.scan_interval_seconds = parse_duration(self.scan_interval)
        return self

    def get_enabled_sources(self) -> List[SourceConfig]:
        """Get list of enabled sources."""
        return [source for source in self.sources if source.enabled]

    def get_source_by_type(self, source_type: str) -> Optional[SourceConfig]:
        """Get a source by its type value."""
        for source in self.sources:
            if source.type == source_type:
                return source
        return None
