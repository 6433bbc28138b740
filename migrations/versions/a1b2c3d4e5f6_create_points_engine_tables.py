"""Create points engine tables: tenants, customers, ledger, rewards, vouchers.

Revision ID: a1b2c3d4e5f6
Revises:
Create Date: 2026-10-19
"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = 'a1b2c3d4e5f6'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    """Create all points engine tables."""
    op.create_table(
        'tenants',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('slug', sa.String(100), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('slug')
    )

    op.create_table(
        'tenant_points_configs',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('tenant_id', sa.Integer(), nullable=False),
        sa.Column('point_face_value', sa.Numeric(10, 4), nullable=True),
        sa.Column('base_points_per_pound', sa.Integer(), nullable=True),
        sa.Column('settings', sa.JSON(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['tenant_id'], ['tenants.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('tenant_id')
    )

    op.create_table(
        'customers',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('tenant_id', sa.Integer(), nullable=False),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('name', sa.String(255), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['tenant_id'], ['tenants.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('email')
    )

    op.create_table(
        'rewards',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('tenant_id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(100), nullable=False),
        sa.Column('description', sa.String(1000), nullable=True),
        sa.Column('reward_type', sa.String(20), nullable=False, server_default='reward'),
        sa.Column('points_cost', sa.Integer(), nullable=False),
        sa.Column('discount_amount', sa.Numeric(10, 2), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=True),
        sa.Column('starts_at', sa.DateTime(), nullable=True),
        sa.Column('ends_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['tenant_id'], ['tenants.id'], ),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_rewards_tenant_active', 'rewards', ['tenant_id', 'is_active'])

    op.create_table(
        'redemptions',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('reward_id', sa.Integer(), nullable=False),
        sa.Column('customer_id', sa.Integer(), nullable=False),
        sa.Column('points', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['customer_id'], ['customers.id'], ),
        sa.ForeignKeyConstraint(['reward_id'], ['rewards.id'], ),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_redemptions_customer_created', 'redemptions', ['customer_id', 'created_at'])

    op.create_table(
        'vouchers',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('code', sa.String(50), nullable=False),
        sa.Column('redemption_id', sa.Integer(), nullable=False),
        sa.Column('customer_id', sa.Integer(), nullable=False),
        sa.Column('reward_id', sa.Integer(), nullable=False),
        sa.Column('status', sa.String(20), nullable=False, server_default='active'),
        sa.Column('expires_at', sa.DateTime(), nullable=False),
        sa.Column('used_at', sa.DateTime(), nullable=True),
        sa.Column('redeemed_tenant_id', sa.Integer(), nullable=True),
        sa.Column('cancelled_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['customer_id'], ['customers.id'], ),
        sa.ForeignKeyConstraint(['redemption_id'], ['redemptions.id'], ),
        sa.ForeignKeyConstraint(['redeemed_tenant_id'], ['tenants.id'], ),
        sa.ForeignKeyConstraint(['reward_id'], ['rewards.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('code'),
        sa.UniqueConstraint('redemption_id')
    )
    op.create_index('ix_vouchers_customer_status', 'vouchers', ['customer_id', 'status'])
    op.create_index('ix_vouchers_status_expires', 'vouchers', ['status', 'expires_at'])

    op.create_table(
        'ledger_entries',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('customer_id', sa.Integer(), nullable=False),
        sa.Column('tenant_id', sa.Integer(), nullable=False),
        sa.Column('amount', sa.Numeric(10, 2), nullable=False, server_default='0'),
        sa.Column('points', sa.Integer(), nullable=False),
        sa.Column('type', sa.String(20), nullable=False),
        sa.Column('status', sa.String(20), nullable=False),
        sa.Column('source', sa.String(30), nullable=True),
        sa.Column('description', sa.String(500), nullable=True),
        sa.Column('redemption_id', sa.Integer(), nullable=True),
        sa.Column('related_entry_id', sa.Integer(), nullable=True),
        sa.Column('reviewed_by', sa.String(100), nullable=True),
        sa.Column('reviewed_at', sa.DateTime(), nullable=True),
        sa.Column('review_notes', sa.String(500), nullable=True),
        sa.Column('created_by', sa.String(100), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['customer_id'], ['customers.id'], ),
        sa.ForeignKeyConstraint(['redemption_id'], ['redemptions.id'], ),
        sa.ForeignKeyConstraint(['related_entry_id'], ['ledger_entries.id'], ),
        sa.ForeignKeyConstraint(['tenant_id'], ['tenants.id'], ),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_ledger_customer_status', 'ledger_entries', ['customer_id', 'status'])
    op.create_index('ix_ledger_tenant_status', 'ledger_entries', ['tenant_id', 'status'])
    op.create_index('ix_ledger_customer_created', 'ledger_entries', ['customer_id', 'created_at'])
    op.create_index('ix_ledger_related', 'ledger_entries', ['related_entry_id'])


def downgrade():
    """Drop all points engine tables."""
    op.drop_index('ix_ledger_related', 'ledger_entries')
    op.drop_index('ix_ledger_customer_created', 'ledger_entries')
    op.drop_index('ix_ledger_tenant_status', 'ledger_entries')
    op.drop_index('ix_ledger_customer_status', 'ledger_entries')
    op.drop_table('ledger_entries')

    op.drop_index('ix_vouchers_status_expires', 'vouchers')
    op.drop_index('ix_vouchers_customer_status', 'vouchers')
    op.drop_table('vouchers')

    op.drop_index('ix_redemptions_customer_created', 'redemptions')
    op.drop_table('redemptions')

    op.drop_index('ix_rewards_tenant_active', 'rewards')
    op.drop_table('rewards')

    op.drop_table('customers')
    op.drop_table('tenant_points_configs')
    op.drop_table('tenants')
