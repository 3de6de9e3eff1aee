"""Create client portal tables

Revision ID: 001_client_portal
Revises:
Create Date: 2026-10-19

Tenants, operators, clients, quotations, payment methods, payments,
shipments and the client magic links that grant portal access.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision: str = '001_client_portal'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list:
    return [
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
    ]


def upgrade() -> None:
    # Create tenants table
    op.create_table('tenants',
        sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('name', sa.Text(), nullable=False),
        sa.Column('slug', sa.Text(), nullable=False),
        sa.Column('country_code', sa.String(length=2), nullable=True),
        sa.Column('currency', sa.String(length=3), nullable=True),
        sa.Column('logo_url', sa.Text(), nullable=True),
        sa.Column('settings', sa.JSON(), nullable=True),
        sa.Column('is_active', sa.Boolean(), server_default='true', nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('slug'),
    )

    # Create users table
    op.create_table('users',
        sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('tenant_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('email', sa.Text(), nullable=False),
        sa.Column('first_name', sa.Text(), nullable=True),
        sa.Column('last_name', sa.Text(), nullable=True),
        sa.Column('password_hash', sa.Text(), nullable=True),
        sa.Column('role', sa.Enum('owner', 'admin', 'staff', 'viewer', name='user_role'), nullable=True),
        sa.Column('is_active', sa.Boolean(), server_default='true', nullable=True),
        sa.Column('last_login_at', sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(['tenant_id'], ['tenants.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('email'),
    )
    op.create_index('ix_users_tenant_id', 'users', ['tenant_id'])

    # Create clients table
    op.create_table('clients',
        sa.Column('id', sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column('tenant_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('name', sa.Text(), nullable=True),
        sa.Column('company_name', sa.Text(), nullable=True),
        sa.Column('email', sa.Text(), nullable=True),
        sa.Column('phone_e164', sa.String(length=20), nullable=True),
        sa.Column('is_banned', sa.Boolean(), server_default='false', nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(['tenant_id'], ['tenants.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_clients_tenant_id', 'clients', ['tenant_id'])

    # Create quotations table
    op.create_table('quotations',
        sa.Column('id', sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column('tenant_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('client_id', sa.BigInteger(), nullable=False),
        sa.Column('reference', sa.String(length=30), nullable=False),
        sa.Column('product_name', sa.Text(), nullable=False),
        sa.Column('product_url', sa.Text(), nullable=True),
        sa.Column('quantity', sa.Integer(), server_default='1', nullable=False),
        sa.Column('destination_country', sa.Text(), nullable=False),
        sa.Column('destination_city', sa.Text(), nullable=False),
        sa.Column('shipping_method', sa.String(length=30), server_default='TBD', nullable=False),
        sa.Column('service_type', sa.String(length=50), server_default='Product Inquiry', nullable=False),
        sa.Column('product_images', sa.JSON(), server_default='[]', nullable=False),
        sa.Column('variant_specs', sa.JSON(), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('price_options', sa.JSON(), server_default='[]', nullable=False),
        sa.Column('selected_option', sa.Integer(), nullable=True),
        sa.Column('total_amount', sa.DECIMAL(precision=12, scale=2), nullable=True),
        sa.Column('currency', sa.String(length=3), server_default='USD', nullable=False),
        sa.Column('status', sa.Enum(
            'pending', 'quoted', 'approved', 'confirmed', 'rejected', 'cancelled',
            name='quotation_status_enum',
        ), server_default='pending', nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(['tenant_id'], ['tenants.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['client_id'], ['clients.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_quotations_tenant_id', 'quotations', ['tenant_id'])
    op.create_index('ix_quotations_client_id', 'quotations', ['client_id'])

    # Create bank_accounts table
    op.create_table('bank_accounts',
        sa.Column('id', sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column('tenant_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('bank_name', sa.Text(), nullable=False),
        sa.Column('account_holder', sa.Text(), nullable=False),
        sa.Column('iban', sa.String(length=50), nullable=True),
        sa.Column('account_number', sa.String(length=50), nullable=True),
        sa.Column('swift_bic', sa.String(length=20), nullable=True),
        sa.Column('currency', sa.String(length=3), server_default='USD', nullable=False),
        sa.Column('instructions', sa.Text(), nullable=True),
        sa.Column('is_active', sa.Boolean(), server_default='true', nullable=False),
        sa.Column('sort_order', sa.Integer(), server_default='0', nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(['tenant_id'], ['tenants.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_bank_accounts_tenant_id', 'bank_accounts', ['tenant_id'])

    # Create crypto_wallets table
    op.create_table('crypto_wallets',
        sa.Column('id', sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column('tenant_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('currency', sa.String(length=10), nullable=False),
        sa.Column('network', sa.String(length=30), nullable=False),
        sa.Column('address', sa.Text(), nullable=False),
        sa.Column('label', sa.Text(), nullable=True),
        sa.Column('is_active', sa.Boolean(), server_default='true', nullable=False),
        sa.Column('sort_order', sa.Integer(), server_default='0', nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(['tenant_id'], ['tenants.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_crypto_wallets_tenant_id', 'crypto_wallets', ['tenant_id'])

    # Create payments table
    op.create_table('payments',
        sa.Column('id', sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column('tenant_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('client_id', sa.BigInteger(), nullable=False),
        sa.Column('quotation_id', sa.BigInteger(), nullable=True),
        sa.Column('amount', sa.DECIMAL(precision=12, scale=2), nullable=False),
        sa.Column('currency', sa.String(length=3), server_default='USD', nullable=False),
        sa.Column('method', sa.Enum('bank_transfer', 'crypto', 'card', 'cash', name='payment_method_enum'), nullable=False),
        sa.Column('status', sa.Enum('pending', 'confirmed', 'rejected', 'refunded', name='payment_status_enum'),
                  server_default='pending', nullable=False),
        sa.Column('reference', sa.String(length=255), nullable=True),
        sa.Column('proof_url', sa.Text(), nullable=True),
        sa.Column('paid_at', sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(['tenant_id'], ['tenants.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['client_id'], ['clients.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['quotation_id'], ['quotations.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_payments_tenant_id', 'payments', ['tenant_id'])
    op.create_index('ix_payments_client_id', 'payments', ['client_id'])
    op.create_index('ix_payments_quotation_id', 'payments', ['quotation_id'])

    # Create shipments table
    op.create_table('shipments',
        sa.Column('id', sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column('tenant_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('quotation_id', sa.BigInteger(), nullable=False),
        sa.Column('carrier', sa.Text(), nullable=True),
        sa.Column('tracking_number', sa.String(length=100), nullable=True),
        sa.Column('shipping_method', sa.String(length=30), nullable=True),
        sa.Column('origin', sa.Text(), nullable=True),
        sa.Column('destination', sa.Text(), nullable=True),
        sa.Column('status', sa.Enum(
            'preparing', 'in_transit', 'customs', 'delivered', 'exception',
            name='shipment_status_enum',
        ), server_default='preparing', nullable=False),
        sa.Column('estimated_delivery', sa.Date(), nullable=True),
        sa.Column('tracking_events', sa.JSON(), server_default='[]', nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(['tenant_id'], ['tenants.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['quotation_id'], ['quotations.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_shipments_tenant_id', 'shipments', ['tenant_id'])
    op.create_index('ix_shipments_quotation_id', 'shipments', ['quotation_id'])

    # Create client_magic_links table (only the SHA-256 of the token is stored)
    op.create_table('client_magic_links',
        sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('tenant_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('client_id', sa.BigInteger(), nullable=False),
        sa.Column('quotation_id', sa.BigInteger(), nullable=True),
        sa.Column('token_hash', sa.String(length=64), nullable=False),
        sa.Column('scopes', sa.JSON(), nullable=False),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('revoked_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('max_uses', sa.Integer(), nullable=True),
        sa.Column('use_count', sa.Integer(), server_default='0', nullable=False),
        sa.Column('last_accessed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('client_name_snapshot', sa.Text(), nullable=False),
        sa.Column('client_phone_snapshot', sa.String(length=20), nullable=True),
        sa.Column('created_by', postgresql.UUID(as_uuid=True), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(['tenant_id'], ['tenants.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['client_id'], ['clients.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['quotation_id'], ['quotations.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['created_by'], ['users.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
        sa.CheckConstraint('max_uses IS NULL OR max_uses >= 1', name='ck_client_magic_links_max_uses'),
        sa.CheckConstraint('use_count >= 0', name='ck_client_magic_links_use_count'),
    )
    op.create_index('ix_client_magic_links_tenant_id', 'client_magic_links', ['tenant_id'])
    op.create_index('ix_client_magic_links_client_id', 'client_magic_links', ['client_id'])
    op.create_index('ix_client_magic_links_quotation_id', 'client_magic_links', ['quotation_id'])
    # Unique hash: one row per token, O(1) lookup on every portal request
    op.create_index('uq_client_magic_links_token_hash', 'client_magic_links', ['token_hash'], unique=True)


def downgrade() -> None:
    op.drop_table('client_magic_links')
    op.drop_table('shipments')
    op.drop_table('payments')
    op.drop_table('crypto_wallets')
    op.drop_table('bank_accounts')
    op.drop_table('quotations')
    op.drop_table('clients')
    op.drop_table('users')
    op.drop_table('tenants')
    op.execute("DROP TYPE IF EXISTS shipment_status_enum")
    op.execute("DROP TYPE IF EXISTS payment_status_enum")
    op.execute("DROP TYPE IF EXISTS payment_method_enum")
    op.execute("DROP TYPE IF EXISTS quotation_status_enum")
    op.execute("DROP TYPE IF EXISTS user_role")
