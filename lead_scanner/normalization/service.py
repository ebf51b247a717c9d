"""Company normalization service converting raw records to Company models.

This module implements the normalization logic that:
1. Resolves each canonical field through the source's fallback chain
2. Rejects records without a registry identifier or a location
3. Parses creation dates and clamps them to the evaluation date
4. Derives the sector label from the sector code
5. Cleans contact fields (email syntax, phone digits)
"""

import logging
import re
from datetime import date, datetime
from typing import Any, Dict, Mapping, Optional

from email_validator import EmailNotValidError, validate_email

from lead_scanner.domain.models import Company, RawRecord
from lead_scanner.logging import get_logger
from lead_scanner.utils.timestamps import ensure_utc, parse_registry_date, utc_now

from .models import SOURCE_FIELD_MAPS, FieldMap, resolve

logger = get_logger(__name__, component="normalization")

UNKNOWN_SECTOR_LABEL = "Other"

_NON_PHONE_CHARS = re.compile(r"[^\d]")


class CompanyNormalizer:
    """Normalizes raw source records into canonical Company models.

    Pure with respect to its inputs: the sector label table and the
    evaluation time are injected, so the same record always yields the same
    Company.
    """

    def __init__(
        self,
        sector_labels: Mapping[str, str],
        now: Optional[datetime] = None,
        logger_instance: Optional[logging.Logger] = None,
    ):
        """Initialize CompanyNormalizer.

        Args:
            sector_labels: Two-digit sector code prefix -> label
            now: Evaluation time (UTC). Defaults to utc_now()
            logger_instance: Logger instance (defaults to module logger)
        """
        self.sector_labels = dict(sector_labels)
        self.now = ensure_utc(now or utc_now())
        self.today: date = self.now.date()
        self.logger = logger_instance or logger

    def normalize(self, raw: RawRecord, source_kind: str) -> Optional[Company]:
        """Normalize a single raw record.

        Args:
            raw: Source-shaped record
            source_kind: Layout of the record (see SourceKind)

        Returns:
            Company, or None when the record has no registry identifier or no
            location (neither city nor postal code)

        Raises:
            ValueError: If source_kind is not a known layout
        """
        field_map = SOURCE_FIELD_MAPS.get(str(getattr(source_kind, "value", source_kind)))
        if field_map is None:
            raise ValueError(f"Unknown source kind: {source_kind}")

        registry_id = self._clean_registry_id(resolve(raw, field_map.chain("registry_id")))
        if not registry_id:
            self._log_dropped(source_kind, "missing_registry_id", raw)
            return None

        city = self._sanitize_text(resolve(raw, field_map.chain("city")))
        postal_code = self._sanitize_text(resolve(raw, field_map.chain("postal_code")))
        if not city and not postal_code:
            self._log_dropped(source_kind, "missing_location", raw, registry_id=registry_id)
            return None

        sector_code = self._sanitize_text(resolve(raw, field_map.chain("sector_code")))

        return Company(
            registry_id=registry_id,
            name=self._resolve_name(raw, field_map),
            city=city,
            postal_code=postal_code,
            created_at=self._resolve_created_at(resolve(raw, field_map.chain("created_at"))),
            sector_code=sector_code,
            sector_label=self.sector_label(sector_code),
            website_url=self._clean_url(resolve(raw, field_map.chain("website_url"))),
            has_website=bool(raw.get("has_website")) if field_map.reads_has_website else False,
            email=self._clean_email(resolve(raw, field_map.chain("email")), registry_id),
            phone=self._clean_phone(resolve(raw, field_map.chain("phone"))),
        )

    def sector_label(self, sector_code: Optional[str]) -> str:
        """Label for the first two characters of a sector code, or "Other"."""
        if not sector_code:
            return UNKNOWN_SECTOR_LABEL
        return self.sector_labels.get(sector_code[:2], UNKNOWN_SECTOR_LABEL)

    def _resolve_name(self, raw: RawRecord, field_map: FieldMap) -> str:
        name = self._sanitize_text(resolve(raw, field_map.chain("name")))
        return name or field_map.defaults.get("name", "Unknown")

    def _resolve_created_at(self, value: Any) -> date:
        """Parse the creation date; unknown falls back to, and future clamps to, today."""
        created = parse_registry_date(value)
        if created is None or created > self.today:
            return self.today
        return created

    @staticmethod
    def _clean_registry_id(value: Any) -> Optional[str]:
        if value is None:
            return None
        cleaned = re.sub(r"\s+", "", str(value))
        return cleaned or None

    @staticmethod
    def _clean_url(value: Any) -> Optional[str]:
        if not isinstance(value, str):
            return None
        return value.strip() or None

    def _clean_email(self, value: Any, registry_id: str) -> Optional[str]:
        """Syntax-check an email address; invalid addresses are discarded."""
        if not isinstance(value, str) or not value.strip():
            return None
        try:
            return validate_email(value.strip(), check_deliverability=False).normalized
        except EmailNotValidError as e:
            self.logger.debug(
                "Discarding invalid email",
                extra={
                    "event": "normalization.email.invalid",
                    "registry_id": registry_id,
                    "error": str(e),
                },
            )
            return None

    @staticmethod
    def _clean_phone(value: Any) -> Optional[str]:
        """Keep digits, plus a leading '+' for international numbers."""
        if value is None:
            return None
        text = str(value).strip()
        digits = _NON_PHONE_CHARS.sub("", text)
        if not digits:
            return None
        return f"+{digits}" if text.startswith("+") else digits

    @staticmethod
    def _sanitize_text(value: Any) -> Optional[str]:
        """Trim and collapse whitespace; blank values become None."""
        if value is None:
            return None
        sanitized = re.sub(r"\s+", " ", str(value)).strip()
        return sanitized or None

    def _log_dropped(
        self, source_kind: str, reason: str, raw: RawRecord, registry_id: Optional[str] = None
    ) -> None:
        extra: Dict[str, Any] = {
            "event": "normalization.record.dropped",
            "source_kind": str(getattr(source_kind, "value", source_kind)),
            "reason": reason,
        }
        if registry_id:
            extra["registry_id"] = registry_id
        if isinstance(raw, dict) and raw.get("detail_url"):
            extra["detail_url"] = raw["detail_url"]
        self.logger.debug("Dropping unusable record", extra=extra)
