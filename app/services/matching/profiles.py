"""
ProfileManager for runtime algorithm-profile lookup.

An algorithm profile is the criterion set, weights and thresholds that one
match_algorithm_version scores with. Built-in profiles live here; the
matching_config table can re-weight criteria and move thresholds at runtime
without a deployment.

Lookup order per value:
- matching_config row for (version, type, name)
- built-in profile / application settings
"""

from dataclasses import dataclass, field, replace
from typing import Dict, Optional

import structlog
from sqlalchemy.orm import Session

from app.config import settings
from app.errors import ValidationError
from app.models.matching_config import MatchingConfig

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class AlgorithmProfile:
    """Criterion weights and thresholds for one algorithm version."""
    version: str
    weights: Dict[str, float] = field(default_factory=dict)
    min_score: float = 0.45
    max_matches: int = 10

    @property
    def criteria(self) -> tuple:
        return tuple(self.weights)


DEFAULT_PROFILES: Dict[str, AlgorithmProfile] = {
    "v1": AlgorithmProfile(
        version="v1",
        weights={
            "origin": 0.20,
            "destination": 0.20,
            "weight": 0.15,
            "volume": 0.10,
            "service_type": 0.25,
            "hazmat": 0.10,
        },
    ),
    "v2": AlgorithmProfile(
        version="v2",
        weights={
            "origin": 0.16,
            "destination": 0.16,
            "weight": 0.12,
            "volume": 0.08,
            "service_type": 0.22,
            "hazmat": 0.08,
            "cargo_category": 0.12,
            "piece_count": 0.06,
        },
    ),
}


class ProfileManager:
    """
    Resolves AlgorithmProfile instances with database overrides applied.

    Only criteria already in the built-in profile can be re-weighted, so a
    version's criterion key set is fixed in code.
    """

    def __init__(self, db: Optional[Session] = None):
        self.db = db
        self._cache: Dict[str, AlgorithmProfile] = {}

    def get_profile(self, version: Optional[str] = None) -> AlgorithmProfile:
        """
        Profile for an algorithm version (settings default when None).

        Raises:
            ValidationError: unknown algorithm version
        """
        version = version or settings.match_algorithm_version
        if version in self._cache:
            return self._cache[version]

        base = DEFAULT_PROFILES.get(version)
        if base is None:
            raise ValidationError(
                f"Unknown algorithm version '{version}' (known: {', '.join(sorted(DEFAULT_PROFILES))})",
                field="algorithm_version",
            )

        profile = replace(
            base,
            weights=self._load_weights(base),
            min_score=self._load_threshold(version, "min_score", settings.match_min_score),
            max_matches=int(self._load_threshold(version, "max_matches", settings.match_max_matches)),
        )
        self._cache[version] = profile
        return profile

    def get_min_score(self, version: Optional[str] = None) -> float:
        """Convenience method for the min_score threshold."""
        return self.get_profile(version).min_score

    def get_max_matches(self, version: Optional[str] = None) -> int:
        """Convenience method for the max_matches threshold."""
        return self.get_profile(version).max_matches

    def _load_weights(self, base: AlgorithmProfile) -> Dict[str, float]:
        weights = dict(base.weights)
        if self.db is None:
            return weights

        rows = self.db.query(MatchingConfig).filter(
            MatchingConfig.algorithm_version == base.version,
            MatchingConfig.config_type == "weight"
        ).all()

        for row in rows:
            value = float(row.value)
            if row.name not in weights:
                logger.warning("weight_override_unknown_criterion",
                               version=base.version, criterion=row.name)
                continue
            if value < 0:
                logger.warning("weight_override_negative",
                               version=base.version, criterion=row.name, value=value)
                continue
            weights[row.name] = value

        if rows:
            logger.debug("weights_loaded", version=base.version, weights=weights)
        return weights

    def _load_threshold(self, version: str, name: str, default: float) -> float:
        if self.db is None:
            return default

        row = self.db.query(MatchingConfig).filter(
            MatchingConfig.algorithm_version == version,
            MatchingConfig.config_type == "threshold",
            MatchingConfig.name == name
        ).first()

        if row is None:
            return default

        logger.debug("threshold_found", version=version, name=name, value=float(row.value))
        return float(row.value)
