"""
MatchingConfig Model
Stores database-driven weights and thresholds per matching algorithm version
"""

from sqlalchemy import Column, Integer, String, Numeric, Text, DateTime, Index, UniqueConstraint
from sqlalchemy.sql import func
from app.database import Base


class MatchingConfig(Base):
    """
    Runtime overrides for an algorithm version's weights and thresholds.

    Enables tuning without code deployment. Only criteria already known to the
    version's built-in profile can be re-weighted, so the criterion key set of
    a version never changes.

    Examples:
    - ('v2', 'weight', 'service_type', 0.2500)
    - ('v2', 'threshold', 'min_score', 0.5000)
    - ('v1', 'threshold', 'max_matches', 5)
    """
    __tablename__ = "matching_config"

    # Primary Key
    id = Column(Integer, primary_key=True)

    # Configuration Scope
    algorithm_version = Column(String(20), nullable=False)
    config_type = Column(String(20), nullable=False)  # "weight" or "threshold"
    name = Column(String(50), nullable=False)  # criterion name or threshold name
    value = Column(Numeric(10, 4), nullable=False)

    # Documentation
    description = Column(Text, nullable=True)

    # Timestamps
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    __table_args__ = (
        UniqueConstraint('algorithm_version', 'config_type', 'name', name='uq_matching_config_entry'),
        Index('idx_matching_config_lookup', 'algorithm_version', 'config_type'),
    )

    def __repr__(self):
        return (
            f"<MatchingConfig(version='{self.algorithm_version}', type='{self.config_type}', "
            f"name='{self.name}', value={self.value})>"
        )
