"""
Tests for ProfileManager
"""

from decimal import Decimal

import pytest

from app.errors import ValidationError
from app.models import MatchingConfig
from app.services.matching.profiles import DEFAULT_PROFILES, ProfileManager


class TestBuiltInProfiles:
    """Profiles without database overrides."""

    @pytest.mark.parametrize("version", sorted(DEFAULT_PROFILES))
    def test_weights_sum_to_one(self, version):
        assert sum(DEFAULT_PROFILES[version].weights.values()) == pytest.approx(1.0)

    def test_v2_adds_criteria(self):
        assert set(DEFAULT_PROFILES["v1"].criteria) < set(DEFAULT_PROFILES["v2"].criteria)

    def test_without_database(self):
        profile = ProfileManager().get_profile("v1")

        assert profile.version == "v1"
        assert profile.weights == DEFAULT_PROFILES["v1"].weights

    def test_default_version_from_settings(self):
        assert ProfileManager().get_profile().version == "v2"

    def test_unknown_version(self):
        with pytest.raises(ValidationError) as exc_info:
            ProfileManager().get_profile("v9")
        assert exc_info.value.field == "algorithm_version"


class TestDatabaseOverrides:
    """matching_config rows re-weight and re-threshold profiles."""

    def _add(self, db_session, config_type, name, value, version="v1"):
        db_session.add(MatchingConfig(
            algorithm_version=version, config_type=config_type, name=name, value=Decimal(str(value)),
        ))
        db_session.commit()

    def test_weight_override(self, db_session):
        self._add(db_session, "weight", "service_type", 0.5)

        profile = ProfileManager(db_session).get_profile("v1")

        assert profile.weights["service_type"] == pytest.approx(0.5)
        assert profile.weights["origin"] == pytest.approx(0.20)

    def test_unknown_and_negative_overrides_ignored(self, db_session):
        self._add(db_session, "weight", "color", 0.3)
        self._add(db_session, "weight", "hazmat", -1)

        profile = ProfileManager(db_session).get_profile("v1")

        assert "color" not in profile.weights
        assert profile.weights["hazmat"] == pytest.approx(0.10)

    def test_threshold_override(self, db_session):
        self._add(db_session, "threshold", "min_score", 0.7)
        self._add(db_session, "threshold", "max_matches", 3)

        manager = ProfileManager(db_session)

        assert manager.get_min_score("v1") == pytest.approx(0.7)
        assert manager.get_max_matches("v1") == 3
        # Other versions keep their defaults
        assert manager.get_max_matches("v2") == 10

    def test_profile_cached_per_manager(self, db_session):
        manager = ProfileManager(db_session)
        first = manager.get_profile("v2")
        self._add(db_session, "threshold", "min_score", 0.9, version="v2")

        assert manager.get_profile("v2") is first
        assert ProfileManager(db_session).get_min_score("v2") == pytest.approx(0.9)
