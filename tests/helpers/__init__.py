"""Test helper utilities for Company Lead Scanner tests."""

from .fixture_adapter import FixtureAdapter, load_fixture_partitions

__all__ = ["FixtureAdapter", "load_fixture_partitions"]
