"""Unit tests for domain models (Company, ScrapeOptions)."""

from datetime import date

import pytest
from pydantic import ValidationError

from lead_scanner.domain.models import MAX_DAYS, Company, ScrapeOptions


def make_company(**overrides) -> Company:
    data = {
        "registry_id": "912345678",
        "name": "Boulangerie Martin",
        "city": "Nantes",
        "postal_code": "44000",
        "created_at": date(2025, 10, 2),
    }
    data.update(overrides)
    return Company(**data)


class TestCompany:
    def test_defaults(self):
        company = make_company()

        assert company.sector_label == "Other"
        assert company.has_website is False
        assert company.score == 0
        assert company.website_url is None

    def test_required_fields_are_stripped(self):
        company = make_company(registry_id=" 912345678 ", name="  Boulangerie Martin ")

        assert company.registry_id == "912345678"
        assert company.name == "Boulangerie Martin"

    def test_blank_name_rejected(self):
        with pytest.raises(ValidationError):
            make_company(name="   ")

    def test_blank_optional_fields_become_none(self):
        company = make_company(city="  ", email="", phone="   ")

        assert company.city is None
        assert company.email is None
        assert company.phone is None

    @pytest.mark.parametrize("score", [-1, 101])
    def test_score_bounds(self, score):
        with pytest.raises(ValidationError):
            make_company(score=score)

    def test_frozen(self):
        company = make_company()

        with pytest.raises(ValidationError):
            company.score = 50

    def test_model_copy_update(self):
        company = make_company()

        scored = company.model_copy(update={"score": 70, "has_website": True})

        assert scored.score == 70
        assert scored.has_website is True
        assert company.score == 0

    def test_location(self):
        assert make_company().location == "44000 Nantes"
        assert make_company(postal_code=None).location == "Nantes"

    def test_dump_and_validate(self):
        company = make_company(score=40, sector_code="56.10A")

        assert Company.model_validate(company.model_dump()) == company


class TestScrapeOptions:
    def test_defaults(self):
        options = ScrapeOptions()

        assert options.days == 30
        assert options.limit == 50
        assert options.partition is None
        assert options.city is None

    @pytest.mark.parametrize("field", ["days", "limit"])
    @pytest.mark.parametrize("value", [0, -5])
    def test_non_positive_values_rejected(self, field, value):
        with pytest.raises(ValidationError):
            ScrapeOptions(**{field: value})

    def test_days_upper_bound(self):
        assert ScrapeOptions(days=MAX_DAYS).days == MAX_DAYS

        with pytest.raises(ValidationError):
            ScrapeOptions(days=MAX_DAYS + 1)

    def test_blank_filters_become_none(self):
        options = ScrapeOptions(partition=" ", city="  ")

        assert options.partition is None
        assert options.city is None

    def test_filters_are_stripped(self):
        options = ScrapeOptions(partition=" 44 ", city=" Nantes ")

        assert options.partition == "44"
        assert options.city == "Nantes"
