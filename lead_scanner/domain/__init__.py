"""Domain models for the Company Lead Scanner."""

from .models import MAX_DAYS, Company, RawRecord, ScrapeOptions

__all__ = ["Company", "RawRecord", "ScrapeOptions", "MAX_DAYS"]
