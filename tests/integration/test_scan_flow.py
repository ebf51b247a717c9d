"""End-to-end tests for a full scan.

These tests exercise the whole flow with fixture adapters and a fake HTTP
layer behind the real LivenessProbe:
fetch -> normalize -> probe -> score -> dedupe -> cutoff -> rank -> export
"""

import csv
import threading
from datetime import datetime, timezone
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest
import requests

from lead_scanner.config.environment import EnvironmentConfig
from lead_scanner.config.models import AppConfig
from lead_scanner.domain.models import ScrapeOptions
from lead_scanner.main import main
from lead_scanner.pipeline import ScanPipeline
from lead_scanner.probe import LivenessProbe
from tests.helpers.fixture_adapter import FixtureAdapter, load_fixture_partitions

NOW = datetime(2025, 10, 18, 9, 0, tzinfo=timezone.utc)
FIXTURES = Path(__file__).parent.parent / "fixtures" / "partitions.yaml"


class FakeWeb:
    """Stands in for requests.request; only URLs in ``live`` answer."""

    def __init__(self, live=(), timeouts=()):
        self.live = set(live)
        self.timeouts = set(timeouts)
        self.calls = []
        self._lock = threading.Lock()

    def __call__(self, method, url, **kwargs):
        with self._lock:
            self.calls.append((method, url))
        if url in self.timeouts:
            raise requests.Timeout(f"timed out: {url}")
        if url in self.live:
            return MagicMock(status_code=200)
        raise requests.ConnectionError(f"refused: {url}")


def serve(partitions):
    def fake_get_adapter(source_config, app_config, env_config, options, cancel_event=None):
        return FixtureAdapter(partitions, cancel_event=cancel_event)
    return fake_get_adapter


@pytest.fixture
def app_config():
    return AppConfig(
        sources=[{"name": "Registre", "type": "registry_search"}],
        partitions=["44", "85"],
        advanced={"partition_delay_seconds": 0},
    )


def run_pipeline(app_config, partitions, web, options):
    pipeline = ScanPipeline(
        app_config=app_config,
        env_config=EnvironmentConfig(),
        probe=LivenessProbe(timeout=1, request_func=web, max_workers=4),
        clock=lambda: NOW,
    )
    with patch("lead_scanner.pipeline.runner.get_adapter", side_effect=serve(partitions)):
        return pipeline.run(options)


class TestDepartmentScan:
    def test_drops_cutoff_and_probing(self, app_config):
        records = []
        for i in range(5):
            records.append({"name": f"No id {i}", "city": "Nantes", "created_at": "2025-10-10"})
        for i in range(10):
            records.append({
                "registry_id": f"3000000{i:02d}",
                "name": f"Old {i}",
                "city": "Nantes",
                "postal_code": "44000",
                "created_at": "2025-08-01",
                "sector_code": "56.10A",
            })
        for i in range(25):
            records.append({
                "registry_id": f"4000000{i:02d}",
                "name": f"Recent {i}",
                "city": "Nantes",
                "postal_code": "44000",
                "created_at": "2025-10-05",
                "sector_code": "56.10A",
                "website_url": f"https://site-{i}.fr",
            })
        web = FakeWeb(live={f"https://site-{i}.fr" for i in range(5)})

        result = run_pipeline(
            app_config, {"44": [records]}, web, ScrapeOptions(days=30, partition="44")
        )

        companies = result.companies
        assert len(companies) == 25
        assert result.total_fetched == 40
        assert result.total_dropped == 5
        assert result.outdated_removed == 10
        assert all(c.created_at >= NOW.date().replace(month=9) for c in companies)

        scores = [c.score for c in companies]
        assert scores == sorted(scores, reverse=True)
        assert scores.count(80) == 20
        assert scores.count(50) == 5
        assert {c.registry_id for c in companies if c.has_website} == {
            f"4000000{i:02d}" for i in range(5)
        }

    def test_scheme_less_website_falls_back_to_http(self, app_config):
        record = {
            "registry_id": "500000001",
            "name": "Example",
            "city": "Nantes",
            "postal_code": "44000",
            "created_at": "2025-10-05",
            "sector_code": "56.10A",
            "website_url": "example.com",
        }
        web = FakeWeb(live={"http://example.com"}, timeouts={"https://example.com"})

        result = run_pipeline(app_config, {"44": [[record]]}, web, ScrapeOptions(partition="44"))

        assert web.calls == [("HEAD", "https://example.com"), ("HEAD", "http://example.com")]
        company = result.companies[0]
        assert company.has_website is True
        assert company.website_url == "example.com"
        assert company.score == 50

    def test_same_company_in_two_departments(self, app_config):
        first = {
            "registry_id": "600000001",
            "name": "Boulangerie Nantes",
            "city": "Nantes",
            "created_at": "2025-10-05",
        }
        second = dict(first, name="Boulangerie Vendée", city="La Roche-sur-Yon")

        result = run_pipeline(
            app_config, {"44": [[first]], "85": [[second]]}, FakeWeb(), ScrapeOptions()
        )

        assert [c.name for c in result.companies] == ["Boulangerie Nantes"]
        assert result.duplicates_removed == 1


class TestCommandLine:
    @pytest.fixture
    def config_file(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text(
            "sources:\n"
            "  - name: Registre\n"
            "    type: registry_search\n"
            "partitions: ['44', '85']\n"
            "region_label: pdl\n"
            "advanced:\n"
            "  partition_delay_seconds: 0\n",
            encoding="utf-8",
        )
        return path

    def test_scan_writes_csv(self, config_file, tmp_path, capsys):
        partitions = load_fixture_partitions(FIXTURES)
        output_dir = tmp_path / "out"

        with patch("lead_scanner.pipeline.runner.get_adapter", side_effect=serve(partitions)), \
                patch("lead_scanner.main.configure_logging"), \
                patch("lead_scanner.main.signal.signal"):
            exit_code = main([
                "--config", str(config_file),
                "--days", "3650",
                "--output-dir", str(output_dir),
            ])

        assert exit_code == 0
        exported = list(output_dir.glob("leads-pdl-*.csv"))
        assert len(exported) == 1

        with open(exported[0], newline="", encoding="utf-8") as f:
            rows = list(csv.reader(f))

        header, body = rows[0], rows[1:]
        assert header[0] == "Name"
        assert header[-1] == "RegistryId"
        by_id = {row[-1]: row for row in body}
        assert set(by_id) == {"912345678", "923456789", "934567890", "945678901"}
        assert by_id["912345678"][1] == "Nantes"
        assert by_id["923456789"][0] == 'O"Brien Conseil'
        assert by_id["934567890"][0] == "Restaurant Le Quai, Nantes"

        scores = [int(row[header.index("Score")]) for row in body]
        assert scores == sorted(scores, reverse=True)

        output = capsys.readouterr().out
        assert "Companies created in the last 3650 days: 4" in output
        assert f"Exported: {exported[0]}" in output

    def test_missing_config_file(self, tmp_path, capsys):
        with patch("lead_scanner.main.configure_logging"):
            exit_code = main(["--config", str(tmp_path / "missing.yaml")])

        assert exit_code == 1
        assert "Configuration Error" in capsys.readouterr().err
