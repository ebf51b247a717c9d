"""Core domain models for discovered companies and scan requests.

This module defines the data structures used throughout the application:
- RawRecord: source-shaped record returned by adapters, before normalization
- Company: canonical, immutable company entity produced by the normalizer
- ScrapeOptions: parameters of one scan run
"""

from datetime import date
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field, field_validator

RawRecord = Dict[str, Any]

# Widest recency window accepted (about a century)
MAX_DAYS = 36500


class Company(BaseModel):
    """Canonical company record.

    Created by the normalizer; the liveness probe and the scorer produce
    updated copies with ``model_copy(update=...)``. The registry identifier
    (SIREN for French sources) is the deduplication key.
    """

    registry_id: str = Field(..., min_length=1, description="Registry identifier (SIREN)")
    name: str = Field(..., min_length=1, description="Company display name")
    city: Optional[str] = Field(None, description="City of the registered office")
    postal_code: Optional[str] = Field(None, description="Postal code of the registered office")
    created_at: date = Field(..., description="Registration date, never in the future")
    sector_code: Optional[str] = Field(None, description="Activity code (NAF/APE), e.g. 56.10A")
    sector_label: str = Field("Other", description="Label derived from the sector code")
    website_url: Optional[str] = Field(None, description="Website claimed by the source")
    has_website: bool = Field(False, description="True once the website is confirmed live")
    email: Optional[str] = Field(None, description="Contact email")
    phone: Optional[str] = Field(None, description="Contact phone number")
    score: int = Field(0, ge=0, le=100, description="Opportunity score")

    @field_validator("registry_id", "name")
    @classmethod
    def strip_required(cls, v: str) -> str:
        """Strip whitespace from required string fields."""
        stripped = v.strip()
        if not stripped:
            raise ValueError("Field cannot be empty or whitespace-only")
        return stripped

    @field_validator("city", "postal_code", "sector_code", "website_url", "email", "phone")
    @classmethod
    def blank_to_none(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        stripped = v.strip()
        return stripped or None

    @property
    def location(self) -> str:
        """Postal code and city joined for display."""
        return " ".join(part for part in (self.postal_code, self.city) if part)

    model_config = {
        "frozen": True,
        "json_schema_extra": {"example": {
            "registry_id": "912345678",
            "name": "Boulangerie Martin",
            "city": "Nantes",
            "postal_code": "44000",
            "created_at": "2025-10-02",
            "sector_code": "10.71C",
            "sector_label": "Industrie alimentaire",
            "website_url": None,
            "has_website": False,
            "email": "contact@boulangerie-martin.fr",
            "phone": "0240000000",
            "score": 90,
        }},
    }


class ScrapeOptions(BaseModel):
    """Parameters of a scan run.

    Invalid values raise ``pydantic.ValidationError`` at construction, i.e.
    before any network call is made.
    """

    days: int = Field(
        30, gt=0, le=MAX_DAYS, description="Only keep companies created in the last N days"
    )
    limit: int = Field(50, gt=0, description="Maximum number of companies returned")
    partition: Optional[str] = Field(None, description="Single department code to scan")
    city: Optional[str] = Field(None, description="Only keep companies in this city")

    @field_validator("partition", "city")
    @classmethod
    def blank_to_none(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        stripped = v.strip()
        return stripped or None

    model_config = {"frozen": True}
