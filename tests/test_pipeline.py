"""Unit tests for the pipeline runner.

Tests the ScanPipeline orchestration including:
- Partition iteration, normalization, probing and scoring
- Deduplication (first partition wins), recency cutoff, ordering and limit
- Error isolation (one failing partition doesn't stop the others)
- Cancellation (partition in flight discarded, completed ones kept)
- Lock behavior (prevents concurrent runs)
"""

import threading
from datetime import datetime, timezone
from unittest.mock import MagicMock, patch

import pytest

from lead_scanner.adapters.exceptions import AdapterHTTPError, AdapterTimeoutError
from lead_scanner.config.environment import EnvironmentConfig
from lead_scanner.config.exceptions import MissingCredentialError
from lead_scanner.config.models import AppConfig
from lead_scanner.domain.models import MAX_DAYS, ScrapeOptions
from lead_scanner.pipeline import PipelineRunResult, ScanPipeline
from lead_scanner.probe import LivenessProbe
from tests.helpers.fixture_adapter import FixtureAdapter

NOW = datetime(2025, 10, 18, 9, 0, tzinfo=timezone.utc)


def record(registry_id, created_at="2025-10-10", city="Nantes", postal_code="44000",
           sector_code="56.10A", **extra):
    """Canonical-shaped raw record."""
    data = {
        "registry_id": registry_id,
        "name": f"Company {registry_id}",
        "city": city,
        "postal_code": postal_code,
        "created_at": created_at,
        "sector_code": sector_code,
    }
    data.update(extra)
    return data


@pytest.fixture
def app_config():
    return AppConfig(
        sources=[{"name": "Registre", "type": "registry_search"}],
        partitions=["44", "49"],
        advanced={"partition_delay_seconds": 0},
    )


@pytest.fixture
def env_config():
    return EnvironmentConfig()


@pytest.fixture
def live_urls():
    """URLs the fake probe reports as reachable."""
    return set()


@pytest.fixture
def probe(live_urls):
    fake = MagicMock(spec=LivenessProbe)
    fake.probe_many.side_effect = lambda urls, cancel_event=None: {
        url: url in live_urls for url in urls
    }
    return fake


@pytest.fixture
def make_pipeline(app_config, env_config, probe):
    def factory(config=None):
        return ScanPipeline(
            app_config=config or app_config,
            env_config=env_config,
            probe=probe,
            clock=lambda: NOW,
        )
    return factory


def serve(partitions, **adapter_kwargs):
    """get_adapter replacement serving the same fixtures for every source."""
    adapters = []

    def fake_get_adapter(source_config, app_config, env_config, options, cancel_event=None):
        adapter = FixtureAdapter(partitions, cancel_event=cancel_event, **adapter_kwargs)
        adapters.append(adapter)
        return adapter

    fake_get_adapter.adapters = adapters
    return fake_get_adapter


class TestScanPipeline:
    """Test suite for ScanPipeline."""

    def test_basic_flow(self, make_pipeline):
        fixtures = {
            "44": [[record("100000001"), record("100000002", sector_code="62.01Z")]],
            "49": [[record("200000001", city="Angers", postal_code="49000")]],
        }

        with patch("lead_scanner.pipeline.runner.get_adapter", side_effect=serve(fixtures)):
            result = make_pipeline().run(ScrapeOptions(days=30, limit=50))

        assert isinstance(result, PipelineRunResult)
        assert [c.registry_id for c in result.companies] == [
            "100000001", "200000001", "100000002",
        ]
        assert [c.score for c in result.companies] == [80, 80, 60]
        assert result.total_fetched == 3
        assert result.total_normalized == 3
        assert result.had_errors is False
        assert result.cancelled is False
        assert [(s.partition, s.source) for s in result.partition_stats] == [
            ("44", "registry_search"),
            ("49", "registry_search"),
        ]

    def test_pages_are_concatenated(self, make_pipeline):
        fixtures = {"44": [[record("100000001")], [record("100000002")], [record("100000003")]]}
        fake = serve(fixtures)

        with patch("lead_scanner.pipeline.runner.get_adapter", side_effect=fake):
            result = make_pipeline().run(ScrapeOptions(partition="44"))

        assert len(result.companies) == 3
        assert result.partition_stats[0].pages_fetched == 3
        assert fake.adapters[0].closed is True

    def test_default_options_from_config(self, app_config, make_pipeline):
        config = app_config.model_copy(update={"defaults": app_config.defaults.model_copy(
            update={"limit": 1}
        )})
        fixtures = {"44": [[record("100000001"), record("100000002")]]}

        with patch("lead_scanner.pipeline.runner.get_adapter", side_effect=serve(fixtures)):
            result = make_pipeline(config).run()

        assert len(result.companies) == 1

    def test_single_partition_option(self, make_pipeline):
        fake = serve({"44": [[record("100000001")]], "49": [[record("200000001")]]})

        with patch("lead_scanner.pipeline.runner.get_adapter", side_effect=fake):
            result = make_pipeline().run(ScrapeOptions(partition="49"))

        assert [c.registry_id for c in result.companies] == ["200000001"]
        assert fake.adapters[0].requested == [("49", 1)]

    def test_dropped_records_are_counted(self, make_pipeline):
        fixtures = {"44": [[record("100000001"), {"name": "No id"}, record("100000002", city=None,
                                                                            postal_code=None)]]}

        with patch("lead_scanner.pipeline.runner.get_adapter", side_effect=serve(fixtures)):
            result = make_pipeline().run(ScrapeOptions(partition="44"))

        stats = result.partition_stats[0]
        assert stats.fetched_count == 3
        assert stats.normalized_count == 1
        assert stats.dropped_count == 2
        assert result.total_dropped == 2


class TestAggregation:
    def test_duplicate_keeps_first_partition(self, make_pipeline):
        fixtures = {
            "44": [[record("300000001", name="From 44")]],
            "49": [[record("300000001", name="From 49", city="Angers", postal_code="49000")]],
        }

        with patch("lead_scanner.pipeline.runner.get_adapter", side_effect=serve(fixtures)):
            result = make_pipeline().run(ScrapeOptions())

        assert len(result.companies) == 1
        assert result.companies[0].name == "From 44"
        assert result.duplicates_removed == 1

    def test_recency_cutoff_is_inclusive(self, make_pipeline):
        fixtures = {
            "44": [[
                record("100000001", created_at="2025-09-18"),
                record("100000002", created_at="2025-09-17"),
                record("100000003", created_at="2025-10-18"),
            ]],
        }

        with patch("lead_scanner.pipeline.runner.get_adapter", side_effect=serve(fixtures)):
            result = make_pipeline().run(ScrapeOptions(days=30, partition="44"))

        assert sorted(c.registry_id for c in result.companies) == ["100000001", "100000003"]
        assert result.outdated_removed == 1

    def test_widest_window_keeps_old_companies(self, make_pipeline):
        fixtures = {"44": [[record("100000001", created_at="1950-01-02")]]}

        with patch("lead_scanner.pipeline.runner.get_adapter", side_effect=serve(fixtures)):
            result = make_pipeline().run(ScrapeOptions(days=MAX_DAYS, partition="44"))

        assert [c.registry_id for c in result.companies] == ["100000001"]

    def test_ties_keep_discovery_order(self, make_pipeline):
        fixtures = {
            "44": [[record("100000003"), record("100000001")]],
            "49": [[record("200000002", postal_code="49000"), record("200000001",
                                                                     postal_code="49000")]],
        }

        with patch("lead_scanner.pipeline.runner.get_adapter", side_effect=serve(fixtures)):
            result = make_pipeline().run(ScrapeOptions())

        assert [c.registry_id for c in result.companies] == [
            "100000003", "100000001", "200000002", "200000001",
        ]

    def test_limit_truncates_after_sorting(self, make_pipeline):
        fixtures = {
            "44": [[
                record("100000001", sector_code="62.01Z", postal_code="75001"),
                record("100000002"),
                record("100000003", sector_code="62.01Z"),
            ]],
        }

        with patch("lead_scanner.pipeline.runner.get_adapter", side_effect=serve(fixtures)):
            result = make_pipeline().run(ScrapeOptions(limit=2, partition="44"))

        assert [c.registry_id for c in result.companies] == ["100000002", "100000003"]

    def test_scores_are_non_increasing(self, make_pipeline):
        fixtures = {
            "44": [[
                record(str(100000000 + i), sector_code=code, postal_code=postal)
                for i, (code, postal) in enumerate(
                    [("62.01Z", "75001"), ("56.10A", "44000"), ("62.01Z", "44000"),
                     ("47.11B", "75001")]
                )
            ]],
        }

        with patch("lead_scanner.pipeline.runner.get_adapter", side_effect=serve(fixtures)):
            result = make_pipeline().run(ScrapeOptions(partition="44"))

        scores = [c.score for c in result.companies]
        assert scores == sorted(scores, reverse=True)

    def test_city_filter_is_case_insensitive(self, make_pipeline):
        fixtures = {
            "44": [[
                record("100000001", city="NANTES"),
                record("100000002", city="Saint-Nazaire"),
                record("100000003", city=None),
            ]],
        }

        with patch("lead_scanner.pipeline.runner.get_adapter", side_effect=serve(fixtures)):
            result = make_pipeline().run(ScrapeOptions(partition="44", city="nantes"))

        assert [c.registry_id for c in result.companies] == ["100000001"]
        assert result.partition_stats[0].filtered_count == 2


class TestProbing:
    def test_live_website_lowers_score(self, make_pipeline, probe, live_urls):
        live_urls.add("https://live.example")
        fixtures = {
            "44": [[
                record("100000001", website_url="https://live.example"),
                record("100000002", website_url="https://dead.example"),
                record("100000003"),
            ]],
        }

        with patch("lead_scanner.pipeline.runner.get_adapter", side_effect=serve(fixtures)):
            result = make_pipeline().run(ScrapeOptions(partition="44"))

        by_id = {c.registry_id: c for c in result.companies}
        assert by_id["100000001"].has_website is True
        assert by_id["100000002"].has_website is False
        assert by_id["100000001"].score == by_id["100000002"].score - 30
        assert result.companies[-1].registry_id == "100000001"

        probed = probe.probe_many.call_args.args[0]
        assert sorted(probed) == ["https://dead.example", "https://live.example"]
        assert result.partition_stats[0].probed_count == 2
        assert result.partition_stats[0].reachable_count == 1

    def test_confirmed_websites_are_not_probed_again(self, make_pipeline, probe):
        fixtures = {
            "44": [[record("100000001", website_url="https://a.example", has_website=True)]],
        }

        with patch("lead_scanner.pipeline.runner.get_adapter", side_effect=serve(fixtures)):
            result = make_pipeline().run(ScrapeOptions(partition="44"))

        probe.probe_many.assert_not_called()
        assert result.companies[0].has_website is True

    def test_no_urls_no_probe(self, make_pipeline, probe):
        with patch("lead_scanner.pipeline.runner.get_adapter",
                   side_effect=serve({"44": [[record("100000001")]]})):
            make_pipeline().run(ScrapeOptions(partition="44"))

        probe.probe_many.assert_not_called()


class TestErrorIsolation:
    def test_failed_partition_contributes_nothing(self, make_pipeline):
        fixtures = {
            "44": [
                [record("100000001")],
                AdapterHTTPError("HTTP 503", status_code=503, url="https://registry.test"),
            ],
            "49": [[record("200000001", postal_code="49000")]],
        }

        with patch("lead_scanner.pipeline.runner.get_adapter", side_effect=serve(fixtures)):
            result = make_pipeline().run(ScrapeOptions())

        assert [c.registry_id for c in result.companies] == ["200000001"]
        assert result.had_errors is True
        assert result.total_errors == 1

        failed = result.partition_stats[0]
        assert failed.had_errors is True
        assert failed.pages_fetched == 1
        assert failed.fetched_count == 0
        assert "503" in failed.error_message

    def test_every_partition_failing_yields_empty_result(self, make_pipeline):
        error = AdapterTimeoutError("timed out", url="https://registry.test")
        fixtures = {"44": [error], "49": [error]}

        with patch("lead_scanner.pipeline.runner.get_adapter", side_effect=serve(fixtures)):
            result = make_pipeline().run(ScrapeOptions())

        assert result.companies == []
        assert result.total_errors == 2
        assert result.cancelled is False

    def test_missing_credential_propagates(self, make_pipeline):
        error = MissingCredentialError(source="keyed_api", variable="PAPPERS_API_TOKEN")
        pipeline = make_pipeline()

        with patch("lead_scanner.pipeline.runner.get_adapter", side_effect=error):
            with pytest.raises(MissingCredentialError):
                pipeline.run(ScrapeOptions())

        # lock released despite the error
        with patch("lead_scanner.pipeline.runner.get_adapter",
                   side_effect=serve({"44": [[record("100000001")]]})):
            assert pipeline.run(ScrapeOptions(partition="44")).skipped is False

    def test_missing_credential_fails_before_any_request(self, app_config, make_pipeline):
        config = app_config.model_copy(update={
            "sources": AppConfig(sources=[
                {"name": "Registre", "type": "registry_search"},
                {"name": "Pappers", "type": "keyed_api"},
            ]).sources,
        })

        with patch("lead_scanner.adapters.base.BaseAdapter._send") as mock_send:
            with pytest.raises(MissingCredentialError) as exc_info:
                make_pipeline(config).run(ScrapeOptions())

        assert exc_info.value.variable == "PAPPERS_API_TOKEN"
        mock_send.assert_not_called()


class TestMultipleSources:
    def test_sources_run_in_config_order_per_partition(self, app_config, make_pipeline):
        config = app_config.model_copy(update={
            "sources": AppConfig(sources=[
                {"name": "Registre", "type": "registry_search"},
                {"name": "Site", "type": "html_scrape"},
            ]).sources,
        })
        per_source = {
            "registry_search": {"44": [[record("100000001", name="Registry")]]},
            "html_scrape": {"44": [[record("100000001", name="Html"), record("100000002")]]},
        }

        def fake_get_adapter(source_config, app_config, env_config, options, cancel_event=None):
            return FixtureAdapter(per_source[source_config.type], cancel_event=cancel_event)

        with patch("lead_scanner.pipeline.runner.get_adapter", side_effect=fake_get_adapter):
            result = make_pipeline(config).run(ScrapeOptions(partition="44"))

        by_id = {c.registry_id: c for c in result.companies}
        assert by_id["100000001"].name == "Registry"
        assert len(result.companies) == 2
        assert [s.source for s in result.partition_stats] == ["registry_search", "html_scrape"]


class TestCancellation:
    def test_partition_in_flight_is_discarded(self, app_config, make_pipeline):
        config = app_config.model_copy(update={"partitions": ["44", "49", "53"]})
        cancel_event = threading.Event()

        def cancel_during_49(partition_key, cursor):
            if partition_key == "49":
                cancel_event.set()

        fixtures = {
            "44": [[record("100000001")]],
            "49": [[record("200000001")], [record("200000002")]],
            "53": [[record("300000001")]],
        }
        fake = serve(fixtures, on_fetch=cancel_during_49)

        with patch("lead_scanner.pipeline.runner.get_adapter", side_effect=fake):
            result = make_pipeline(config).run(ScrapeOptions(), cancel_event=cancel_event)

        assert result.cancelled is True
        assert [c.registry_id for c in result.companies] == ["100000001"]
        assert [s.partition for s in result.partition_stats] == ["44", "49"]
        assert result.partition_stats[1].cancelled is True
        assert len(fake.adapters) == 2

    def test_cancelled_before_start(self, make_pipeline):
        cancel_event = threading.Event()
        cancel_event.set()

        with patch("lead_scanner.pipeline.runner.get_adapter") as mock_get_adapter:
            result = make_pipeline().run(ScrapeOptions(), cancel_event=cancel_event)

        mock_get_adapter.assert_not_called()
        assert result.cancelled is True
        assert result.companies == []

    def test_error_during_cancellation_is_not_reported_as_failure(self, make_pipeline):
        cancel_event = threading.Event()

        def cancel_and_fail(partition_key, cursor):
            cancel_event.set()
            raise AdapterTimeoutError("interrupted", url="https://registry.test")

        fake = serve({"44": [[record("100000001")]]}, on_fetch=cancel_and_fail)

        with patch("lead_scanner.pipeline.runner.get_adapter", side_effect=fake):
            result = make_pipeline().run(ScrapeOptions(), cancel_event=cancel_event)

        assert result.cancelled is True
        assert result.had_errors is False


class TestLocking:
    def test_concurrent_run_is_skipped(self, make_pipeline):
        pipeline = make_pipeline()
        pipeline._lock.acquire()
        try:
            with patch("lead_scanner.pipeline.runner.get_adapter") as mock_get_adapter:
                result = pipeline.run(ScrapeOptions())
        finally:
            pipeline._lock.release()

        assert result.skipped is True
        assert result.companies == []
        mock_get_adapter.assert_not_called()

    def test_lock_released_after_run(self, make_pipeline):
        pipeline = make_pipeline()

        with patch("lead_scanner.pipeline.runner.get_adapter",
                   side_effect=serve({"44": [[record("100000001")]]})):
            pipeline.run(ScrapeOptions(partition="44"))

        assert pipeline._lock.acquire(blocking=False) is True
        pipeline._lock.release()
