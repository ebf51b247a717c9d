"""Opportunity scoring for discovered companies."""

from dataclasses import asdict, dataclass
from datetime import date, datetime
from typing import Dict, Optional

from lead_scanner.config.models import ScoringConfig
from lead_scanner.domain.models import Company
from lead_scanner.utils.timestamps import ensure_utc, subtract_months, utc_now

MAX_SCORE = 100


@dataclass(frozen=True)
class ScoreBreakdown:
    """Points contributed by each scoring rule.

    ``total`` is the sum of the contributions, clamped to [0, 100].
    """

    no_website: int = 0
    recently_created: int = 0
    b2c_sector: int = 0
    target_region: int = 0
    has_email: int = 0
    has_phone: int = 0

    @property
    def total(self) -> int:
        raw = sum(asdict(self).values())
        return max(0, min(raw, MAX_SCORE))

    def to_dict(self) -> Dict[str, int]:
        return {**asdict(self), "total": self.total}


class OpportunityScorer:
    """Scores how likely a company is to need a website.

    Rules and weights come from ScoringConfig:
    - no confirmed website
    - created within the last ``recent_months`` calendar months (inclusive)
    - sector code starting with a consumer-facing prefix
    - postal code inside the target region
    - an email, and a phone number, to reach the company
    """

    def __init__(self, config: Optional[ScoringConfig] = None):
        self.config = config or ScoringConfig()
        self._sector_prefixes = tuple(self.config.b2c_sector_prefixes)
        self._postal_prefixes = tuple(self.config.target_postal_prefixes)

    def score(self, company: Company, now: Optional[datetime] = None) -> int:
        """Return the opportunity score of a company, in [0, 100]."""
        return self.breakdown(company, now).total

    def breakdown(self, company: Company, now: Optional[datetime] = None) -> ScoreBreakdown:
        """Return the per-rule contributions for a company."""
        weights = self.config.weights
        today = ensure_utc(now or utc_now()).date()

        return ScoreBreakdown(
            no_website=weights.no_website if not company.has_website else 0,
            recently_created=(
                weights.recently_created if self.is_recent(company.created_at, today) else 0
            ),
            b2c_sector=(
                weights.b2c_sector
                if self._has_prefix(company.sector_code, self._sector_prefixes)
                else 0
            ),
            target_region=(
                weights.target_region
                if self._has_prefix(company.postal_code, self._postal_prefixes)
                else 0
            ),
            has_email=weights.has_email if company.email else 0,
            has_phone=weights.has_phone if company.phone else 0,
        )

    def is_recent(self, created_at: date, today: date) -> bool:
        """True when created on or after the same day ``recent_months`` months ago."""
        return created_at >= subtract_months(today, self.config.recent_months)

    @staticmethod
    def _has_prefix(value: Optional[str], prefixes: tuple) -> bool:
        return bool(value) and bool(prefixes) and value.startswith(prefixes)
