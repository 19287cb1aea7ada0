"""create_user_and_log_tables

Revision ID: 4c7e2a9d1f30
Revises:
Create Date: 2026-10-19 00:00:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '4c7e2a9d1f30'
down_revision = None
branch_labels = None
depends_on = None


BigInt = sa.BigInteger().with_variant(sa.Integer(), 'sqlite')


def upgrade():
    op.create_table(
        'user',
        sa.Column('id', BigInt, primary_key=True, autoincrement=True),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('encrypted_password', sa.String(255), nullable=False, server_default=''),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('session_token', sa.String(64), nullable=False),
        # recoverable
        sa.Column('reset_password_token', sa.String(64), nullable=True),
        sa.Column('reset_password_sent_at', sa.DateTime(), nullable=True),
        # rememberable
        sa.Column('remember_created_at', sa.DateTime(), nullable=True),
        # trackable
        sa.Column('sign_in_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('current_sign_in_at', sa.DateTime(), nullable=True),
        sa.Column('last_sign_in_at', sa.DateTime(), nullable=True),
        sa.Column('current_sign_in_ip', sa.String(45), nullable=True),
        sa.Column('last_sign_in_ip', sa.String(45), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.UniqueConstraint('reset_password_token', name='uq_user_reset_password_token'),
    )
    op.create_index('ix_user_email', 'user', ['email'], unique=True)

    op.create_table(
        'log',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('level', sa.String(50), nullable=False),
        sa.Column('event', sa.String(50), nullable=False),
        sa.Column('message', sa.Text(), nullable=False),
        sa.Column('trace', sa.Text(), nullable=True),
        sa.Column('path', sa.String(255), nullable=True),
        sa.Column('request_id', sa.String(36), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
    )


def downgrade():
    op.drop_table('log')
    op.drop_index('ix_user_email', table_name='user')
    op.drop_table('user')
