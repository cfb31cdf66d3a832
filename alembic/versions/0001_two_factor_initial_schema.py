"""users with encrypted two-factor envelope, audit log

Revision ID: 0001_two_factor
Revises:
Create Date: 2026-10-19 10:00:00.000000

"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '0001_two_factor'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        'users',
        sa.Column('user_id', sa.CHAR(36), primary_key=True),
        sa.Column('email', sa.String(255), nullable=False, unique=True),
        sa.Column('two_factor_enabled', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('two_factor_secret', sa.LargeBinary(), nullable=True),
        sa.Column('two_factor_iv', sa.LargeBinary(), nullable=True),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now()),
    )

    op.create_table(
        'audit_log',
        sa.Column('log_id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('user_id', sa.CHAR(36), sa.ForeignKey('users.user_id', ondelete='SET NULL'), nullable=True),
        sa.Column('action', sa.String(50), nullable=False),
        sa.Column('status', sa.String(20), nullable=False),
        sa.Column('meta', sa.Text(), nullable=True),
        sa.Column('timestamp', sa.BigInteger(), nullable=False),
        sa.Column('log_entry_hmac', sa.String(64), nullable=False),
        sa.Column('previous_log_hmac', sa.String(64), nullable=True),
    )

    # Add index for audit lookups per user
    op.create_index('idx_audit_user_timestamp', 'audit_log', ['user_id', 'timestamp'])


def downgrade() -> None:
    op.drop_index('idx_audit_user_timestamp', table_name='audit_log')
    op.drop_table('audit_log')
    op.drop_table('users')
