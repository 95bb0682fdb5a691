"""create_api_keys_and_user_profiles

Revision ID: 4c1f0b7e2a91
Revises:
Create Date: 2026-10-19 09:12:41.318204

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = '4c1f0b7e2a91'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

# Matches db_base.JSON: JSONB on PostgreSQL, serialized text elsewhere
json_type = sa.Text().with_variant(postgresql.JSONB(), 'postgresql')


def upgrade() -> None:
    """Create the credential and user profile tables."""
    op.create_table(
        'api_keys',
        sa.Column('id', sa.String(length=36), primary_key=True),
        sa.Column('api_key', sa.String(length=128), nullable=False),
        sa.Column('hashed_secret', sa.String(length=255), nullable=False),
        sa.Column('name', sa.String(length=200), nullable=False, server_default=''),
        sa.Column('description', sa.String(length=500), nullable=False, server_default=''),
        sa.Column('environment', sa.String(length=50), nullable=False, server_default=''),
        sa.Column('user_id', sa.String(length=128), nullable=True),
        sa.Column('user_email', sa.String(length=320), nullable=True),
        sa.Column('project_id', sa.String(length=100), nullable=True),
        sa.Column('client_id', sa.String(length=100), nullable=True),
        sa.Column('assigned_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('status', sa.String(length=20), nullable=False, server_default='active'),
        sa.Column('permissions', json_type, nullable=True),
        sa.Column('requests_per_minute', sa.Integer(), nullable=False, server_default='60'),
        sa.Column('requests_per_hour', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('total_requests', sa.BigInteger(), nullable=False, server_default='0'),
        sa.Column('last_used_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
    )
    # Lookups by public key must never be ambiguous
    op.create_index('ix_api_keys_api_key', 'api_keys', ['api_key'], unique=True)
    op.create_index('ix_api_keys_user_id', 'api_keys', ['user_id'])

    op.create_table(
        'user_profiles',
        sa.Column('id', sa.String(length=36), primary_key=True),
        sa.Column('user_id', sa.String(length=128), nullable=False),
        sa.Column('email', sa.String(length=320), nullable=True),
        sa.Column('project_id', sa.String(length=100), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('authorized_subdomains', json_type, nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index('ix_user_profiles_user_id', 'user_profiles', ['user_id'], unique=True)


def downgrade() -> None:
    """Drop the credential and user profile tables."""
    op.drop_index('ix_user_profiles_user_id', table_name='user_profiles')
    op.drop_table('user_profiles')
    op.drop_index('ix_api_keys_user_id', table_name='api_keys')
    op.drop_index('ix_api_keys_api_key', table_name='api_keys')
    op.drop_table('api_keys')
