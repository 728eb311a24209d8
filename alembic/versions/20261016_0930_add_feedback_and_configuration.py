"""add_feedback_and_configuration

Revision ID: 20261016_0930_feedback
Revises: 20261016_0900_quote_matching
Create Date: 2026-10-16 09:30:00

Adds: quote_match_feedback, configuration tables
Purpose: Per-user match feedback and the ignore-list configuration store
"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import JSONB

# revision identifiers, used by Alembic.
revision = '20261016_0930_feedback'
down_revision = '20261016_0900_quote_matching'
branch_labels = None
depends_on = None


def upgrade() -> None:
    """
    Create feedback and configuration tables.

    quote_match_feedback.user_id is NOT NULL with '' for anonymous users so
    that (match_id, user_id) uniqueness covers anonymous feedback as well.
    """

    # Create quote_match_feedback table
    op.create_table(
        'quote_match_feedback',
        sa.Column('feedback_id', sa.Integer(), nullable=False),
        sa.Column('match_id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.String(length=255), nullable=False, server_default=''),
        sa.Column('rating', sa.SmallInteger(), nullable=False),
        sa.Column('feedback_reason', sa.String(length=50), nullable=True),
        sa.Column('feedback_notes', sa.Text(), nullable=True),
        sa.Column('actual_price_used', sa.Numeric(precision=12, scale=2), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.PrimaryKeyConstraint('feedback_id'),
        sa.ForeignKeyConstraint(['match_id'], ['quote_matches.match_id'], ),
        sa.UniqueConstraint('match_id', 'user_id', name='uq_user_match_feedback'),
        sa.CheckConstraint('rating IN (-1, 1)', name='chk_rating_values'),
    )

    op.create_index('ix_quote_match_feedback_feedback_id', 'quote_match_feedback', ['feedback_id'])
    op.create_index('ix_quote_match_feedback_match_id', 'quote_match_feedback', ['match_id'])
    op.create_index('idx_feedback_match_updated', 'quote_match_feedback', ['match_id', 'updated_at'])

    # Create configuration table
    op.create_table(
        'configuration',
        sa.Column('key', sa.String(length=100), nullable=False),
        sa.Column('value', JSONB, nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
        sa.PrimaryKeyConstraint('key'),
    )

    op.execute("""
        INSERT INTO configuration (key, value)
        VALUES
            ('Ignored_Emails', '[]'::jsonb),
            ('Ignored_Services', '[]'::jsonb)
        ON CONFLICT (key) DO NOTHING
    """)


def downgrade() -> None:
    """Drop feedback and configuration tables."""
    op.drop_table('configuration')

    op.drop_index('idx_feedback_match_updated', table_name='quote_match_feedback')
    op.drop_index('ix_quote_match_feedback_match_id', table_name='quote_match_feedback')
    op.drop_index('ix_quote_match_feedback_feedback_id', table_name='quote_match_feedback')
    op.drop_table('quote_match_feedback')
