"""Create roles and admins tables

Revision ID: 0001
Revises:
Create Date: 2026-10-19 09:00:00.000000

Roles carry a unique name index (the create-if-absent guard used by the
seeder). Admins reference roles with ON DELETE RESTRICT, and the check
constraint keeps created_sub_users_count within max_sub_users_allowed.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

revision: str | None = '0001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Apply schema changes."""
    op.create_table(
        'roles',
        sa.Column('id', sa.String(length=64), nullable=False),
        sa.Column('name', sa.String(length=100), nullable=False),
        sa.Column('display_name', sa.String(length=255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('level', sa.Integer(), nullable=False),
        sa.Column('permissions', sa.JSON(), nullable=False),
        sa.Column('is_system_role', sa.Boolean(), server_default=sa.text('false'), nullable=False),
        sa.Column('can_manage_users', sa.Boolean(), server_default=sa.text('false'), nullable=False),
        sa.Column('max_subordinates', sa.Integer(), nullable=True),
        sa.Column('is_active', sa.Boolean(), server_default=sa.text('true'), nullable=False),
        sa.Column('created_by', sa.String(length=128), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.CheckConstraint('level >= 0', name='ck_roles_level_non_negative'),
        sa.CheckConstraint(
            'max_subordinates IS NULL OR max_subordinates >= 0',
            name='ck_roles_max_subordinates_non_negative',
        ),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_roles_name', 'roles', ['name'], unique=True)
    op.create_index('ix_roles_level', 'roles', ['level'], unique=False)

    op.create_table(
        'admins',
        sa.Column('id', sa.String(length=128), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=True),
        sa.Column('display_name', sa.String(length=255), nullable=True),
        sa.Column('role_id', sa.String(length=64), nullable=True),
        sa.Column('access_level', sa.String(length=50), nullable=True),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('permissions', sa.JSON(), nullable=True),
        sa.Column('manager_id', sa.String(length=128), nullable=True),
        sa.Column('created_sub_users_count', sa.Integer(), nullable=True),
        sa.Column('max_sub_users_allowed', sa.Integer(), nullable=True),
        sa.Column('last_login_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('login_count', sa.Integer(), server_default='0', nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.CheckConstraint(
            "status IN ('active', 'suspended', 'disabled')",
            name='ck_admins_valid_status',
        ),
        sa.CheckConstraint(
            'max_sub_users_allowed IS NULL OR created_sub_users_count IS NULL '
            'OR created_sub_users_count <= max_sub_users_allowed',
            name='ck_admins_sub_users_within_limit',
        ),
        sa.ForeignKeyConstraint(['role_id'], ['roles.id'], ondelete='RESTRICT'),
        sa.ForeignKeyConstraint(['manager_id'], ['admins.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_admins_email', 'admins', ['email'], unique=False)
    op.create_index('ix_admins_role_id', 'admins', ['role_id'], unique=False)
    op.create_index('ix_admins_status', 'admins', ['status'], unique=False)
    op.create_index('ix_admins_manager_id', 'admins', ['manager_id'], unique=False)


def downgrade() -> None:
    """Revert schema changes."""
    op.drop_index('ix_admins_manager_id', table_name='admins')
    op.drop_index('ix_admins_status', table_name='admins')
    op.drop_index('ix_admins_role_id', table_name='admins')
    op.drop_index('ix_admins_email', table_name='admins')
    op.drop_table('admins')
    op.drop_index('ix_roles_level', table_name='roles')
    op.drop_index('ix_roles_name', table_name='roles')
    op.drop_table('roles')
