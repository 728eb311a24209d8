"""create_quote_matching_tables

Revision ID: 20261016_0900_quote_matching
Revises:
Create Date: 2026-10-16 09:00:00

Adds: quote_matches, ai_pricing_recommendations, matching_config tables
Verifies: shipping_emails, shipping_quotes (owned by the ingestion service)
Purpose: Storage for similarity matches and price recommendations
"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import JSONB

# revision identifiers, used by Alembic.
revision = '20261016_0900_quote_matching'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    """
    Create matching tables and default profile thresholds.

    Tables:
    - shipping_emails / shipping_quotes: verify existence (created by ingestion)
    - quote_matches: one row per (source, matched, algorithm version)
    - ai_pricing_recommendations: one row per (quote, algorithm version)
    - matching_config: database-driven weight and threshold overrides
    """

    # Source tables (defensive - should already exist from the ingestion service)
    op.execute("""
        CREATE TABLE IF NOT EXISTS shipping_emails (
            email_id SERIAL PRIMARY KEY,
            sender_email VARCHAR(255),
            subject VARCHAR(500),
            received_at TIMESTAMP WITH TIME ZONE
        )
    """)
    op.execute("""
        CREATE TABLE IF NOT EXISTS shipping_quotes (
            quote_id SERIAL PRIMARY KEY,
            email_id INTEGER REFERENCES shipping_emails (email_id),
            origin_city VARCHAR(255),
            origin_state_province VARCHAR(100),
            origin_country VARCHAR(100),
            origin_latitude DOUBLE PRECISION,
            origin_longitude DOUBLE PRECISION,
            destination_city VARCHAR(255),
            destination_state_province VARCHAR(100),
            destination_country VARCHAR(100),
            destination_latitude DOUBLE PRECISION,
            destination_longitude DOUBLE PRECISION,
            cargo_description TEXT,
            cargo_weight NUMERIC(12, 2),
            weight_unit VARCHAR(20),
            cargo_length NUMERIC(12, 2),
            cargo_width NUMERIC(12, 2),
            cargo_height NUMERIC(12, 2),
            dimension_unit VARCHAR(20),
            number_of_pieces INTEGER,
            hazardous_material BOOLEAN,
            service_type VARCHAR(100),
            quote_status VARCHAR(50),
            initial_quote_amount NUMERIC(12, 2),
            final_agreed_price NUMERIC(12, 2),
            job_won BOOLEAN,
            created_at TIMESTAMP WITH TIME ZONE DEFAULT now() NOT NULL
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_shipping_quotes_created_at
        ON shipping_quotes (created_at DESC, quote_id)
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_shipping_emails_sender_email
        ON shipping_emails (sender_email)
    """)

    # Create quote_matches table
    op.create_table(
        'quote_matches',
        sa.Column('match_id', sa.Integer(), nullable=False),
        sa.Column('source_quote_id', sa.Integer(), nullable=False),
        sa.Column('matched_quote_id', sa.Integer(), nullable=False),
        sa.Column('similarity_score', sa.Numeric(precision=5, scale=4), nullable=False),
        sa.Column('match_criteria', JSONB, nullable=False),
        sa.Column('suggested_price', sa.Numeric(precision=12, scale=2), nullable=True),
        sa.Column('price_confidence', sa.Numeric(precision=5, scale=4), nullable=True),
        sa.Column('rank', sa.Integer(), nullable=True),
        sa.Column('scoring_details', JSONB, nullable=True),
        sa.Column('match_algorithm_version', sa.String(length=20), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.PrimaryKeyConstraint('match_id'),
        sa.ForeignKeyConstraint(['source_quote_id'], ['shipping_quotes.quote_id'], ),
        sa.ForeignKeyConstraint(['matched_quote_id'], ['shipping_quotes.quote_id'], ),
        sa.UniqueConstraint(
            'source_quote_id', 'matched_quote_id', 'match_algorithm_version',
            name='uq_quote_match_pair_version',
        ),
        sa.CheckConstraint('source_quote_id != matched_quote_id', name='chk_different_quotes'),
        sa.CheckConstraint('similarity_score >= 0 AND similarity_score <= 1', name='chk_similarity_range'),
        sa.CheckConstraint(
            'price_confidence IS NULL OR (price_confidence >= 0 AND price_confidence <= 1)',
            name='chk_confidence_range',
        ),
    )

    # Create indexes on quote_matches
    op.create_index('ix_quote_matches_match_id', 'quote_matches', ['match_id'])
    op.create_index('ix_quote_matches_source_quote_id', 'quote_matches', ['source_quote_id'])
    op.create_index('ix_quote_matches_matched_quote_id', 'quote_matches', ['matched_quote_id'])
    op.create_index(
        'idx_quote_matches_source_version',
        'quote_matches',
        ['source_quote_id', 'match_algorithm_version'],
    )

    # Create ai_pricing_recommendations table
    op.create_table(
        'ai_pricing_recommendations',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('quote_id', sa.Integer(), nullable=False),
        sa.Column('algorithm_version', sa.String(length=20), nullable=False),
        sa.Column('recommended_price', sa.Numeric(precision=12, scale=2), nullable=True),
        sa.Column('target_price', sa.Numeric(precision=12, scale=2), nullable=True),
        sa.Column('floor_price', sa.Numeric(precision=12, scale=2), nullable=True),
        sa.Column('ceiling_price', sa.Numeric(precision=12, scale=2), nullable=True),
        sa.Column('price_confidence', sa.Numeric(precision=5, scale=4), nullable=True),
        sa.Column('confidence_label', sa.String(length=10), nullable=True),
        sa.Column('reasoning', sa.Text(), nullable=True),
        sa.Column('match_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('contributing_matches', JSONB, nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['quote_id'], ['shipping_quotes.quote_id'], ),
        sa.UniqueConstraint('quote_id', 'algorithm_version', name='uq_ai_pricing_quote_version'),
    )
    op.create_index('ix_ai_pricing_recommendations_id', 'ai_pricing_recommendations', ['id'])
    op.create_index('ix_ai_pricing_recommendations_quote_id', 'ai_pricing_recommendations', ['quote_id'])
    op.create_index('idx_ai_pricing_updated', 'ai_pricing_recommendations', ['quote_id', 'updated_at'])

    # Create matching_config table
    op.create_table(
        'matching_config',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('algorithm_version', sa.String(length=20), nullable=False),
        sa.Column('config_type', sa.String(length=20), nullable=False),
        sa.Column('name', sa.String(length=50), nullable=False),
        sa.Column('value', sa.Numeric(precision=10, scale=4), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('algorithm_version', 'config_type', 'name', name='uq_matching_config_entry'),
    )
    op.create_index(
        'idx_matching_config_lookup',
        'matching_config',
        ['algorithm_version', 'config_type'],
    )

    # Default thresholds (weights fall back to the built-in profiles)
    op.execute("""
        INSERT INTO matching_config (algorithm_version, config_type, name, value, description)
        VALUES
            ('v1', 'threshold', 'min_score', 0.4500, 'Minimum similarity for a stored match'),
            ('v1', 'threshold', 'max_matches', 10.0000, 'Matches kept per quote'),
            ('v2', 'threshold', 'min_score', 0.4500, 'Minimum similarity for a stored match'),
            ('v2', 'threshold', 'max_matches', 10.0000, 'Matches kept per quote')
    """)


def downgrade() -> None:
    """
    Drop matching tables and indexes.

    Note: Does NOT drop shipping_emails / shipping_quotes (owned by ingestion)
    """
    op.drop_index('idx_matching_config_lookup', table_name='matching_config')
    op.drop_table('matching_config')

    op.drop_index('idx_ai_pricing_updated', table_name='ai_pricing_recommendations')
    op.drop_index('ix_ai_pricing_recommendations_quote_id', table_name='ai_pricing_recommendations')
    op.drop_index('ix_ai_pricing_recommendations_id', table_name='ai_pricing_recommendations')
    op.drop_table('ai_pricing_recommendations')

    op.drop_index('idx_quote_matches_source_version', table_name='quote_matches')
    op.drop_index('ix_quote_matches_matched_quote_id', table_name='quote_matches')
    op.drop_index('ix_quote_matches_source_quote_id', table_name='quote_matches')
    op.drop_index('ix_quote_matches_match_id', table_name='quote_matches')
    op.drop_table('quote_matches')
