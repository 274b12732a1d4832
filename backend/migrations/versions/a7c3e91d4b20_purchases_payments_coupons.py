"""Purchases, purchase payments, and coupons

Revision ID: a7c3e91d4b20
Revises:
Create Date: 2026-10-18 10:12:44.201733

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = 'a7c3e91d4b20'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table('purchases',
    sa.Column('id', sa.Integer(), nullable=False),
    sa.Column('order_id', sa.String(length=64), nullable=False),
    sa.Column('source_platform', sa.String(length=16), nullable=False),
    sa.Column('source_ref', sa.String(length=255), nullable=True),
    sa.Column('client_id', sa.String(length=64), nullable=False),
    sa.Column('product_id', sa.String(length=64), nullable=False),
    sa.Column('vendor_id', sa.String(length=64), nullable=True),
    sa.Column('purchase_date', sa.Date(), nullable=False),
    sa.Column('validity_duration_months', sa.Integer(), nullable=True),
    sa.Column('validity_start_date', sa.Date(), nullable=True),
    sa.Column('validity_end_date', sa.Date(), nullable=True),
    sa.Column('has_warranty', sa.Boolean(), nullable=False),
    sa.Column('warranty_months', sa.Integer(), nullable=True),
    sa.Column('warranty_end_date', sa.Date(), nullable=True),
    sa.Column('activation_method', sa.String(length=32), nullable=False),
    sa.Column('activation_username', sa.String(length=255), nullable=True),
    sa.Column('activation_secret_sealed', sa.Text(), nullable=True),
    sa.Column('activation_coupon_code', sa.String(length=255), nullable=True),
    sa.Column('invited_email', sa.String(length=255), nullable=True),
    sa.Column('invited_at', sa.DateTime(timezone=True), nullable=True),
    sa.Column('invite_status', sa.String(length=16), nullable=True),
    sa.Column('client_pay_total_minor', sa.BigInteger(), nullable=False),
    sa.Column('vendor_pay_total_minor', sa.BigInteger(), nullable=False),
    sa.Column('discount_minor', sa.BigInteger(), nullable=False),
    sa.Column('taxes_minor', sa.BigInteger(), nullable=False),
    sa.Column('fees_minor', sa.BigInteger(), nullable=False),
    sa.Column('currency', sa.String(length=3), nullable=False),
    sa.Column('client_paid_minor', sa.BigInteger(), nullable=False),
    sa.Column('vendor_paid_minor', sa.BigInteger(), nullable=False),
    sa.Column('client_due_minor', sa.BigInteger(), nullable=False),
    sa.Column('vendor_due_minor', sa.BigInteger(), nullable=False),
    sa.Column('status', sa.String(length=16), nullable=False),
    sa.Column('client_proof_urls', sa.JSON(), nullable=False),
    sa.Column('vendor_proof_urls', sa.JSON(), nullable=False),
    sa.Column('vendor_contact_name', sa.String(length=255), nullable=True),
    sa.Column('vendor_contact_phone', sa.String(length=64), nullable=True),
    sa.Column('created_by', sa.String(length=64), nullable=False),
    sa.Column('updated_by', sa.String(length=64), nullable=True),
    sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
    sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
    sa.Column('version_id', sa.Integer(), nullable=False),
    sa.PrimaryKeyConstraint('id'),
    sa.UniqueConstraint('order_id', name='uq_purchases_order_id'),
    sqlite_autoincrement=True
    )
    with op.batch_alter_table('purchases', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_purchases_client_id'), ['client_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_purchases_product_id'), ['product_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_purchases_vendor_id'), ['vendor_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_purchases_purchase_date'), ['purchase_date'], unique=False)
        batch_op.create_index(batch_op.f('ix_purchases_validity_end_date'), ['validity_end_date'], unique=False)
        batch_op.create_index(batch_op.f('ix_purchases_warranty_end_date'), ['warranty_end_date'], unique=False)
        batch_op.create_index(batch_op.f('ix_purchases_status'), ['status'], unique=False)
        batch_op.create_index('ix_purchases_date_status', ['purchase_date', 'status'], unique=False)
        batch_op.create_index('ix_purchases_client_date', ['client_id', 'purchase_date'], unique=False)
        batch_op.create_index('ix_purchases_vendor_date', ['vendor_id', 'purchase_date'], unique=False)

    op.create_table('purchase_payments',
    sa.Column('id', sa.Integer(), nullable=False),
    sa.Column('purchase_id', sa.Integer(), nullable=False),
    sa.Column('type', sa.String(length=16), nullable=False),
    sa.Column('amount_minor', sa.BigInteger(), nullable=False),
    sa.Column('paid_on', sa.Date(), nullable=False),
    sa.Column('method', sa.String(length=16), nullable=True),
    sa.Column('reference', sa.String(length=255), nullable=True),
    sa.Column('screenshot_url', sa.String(length=1024), nullable=True),
    sa.Column('notes', sa.Text(), nullable=True),
    sa.Column('created_by', sa.String(length=64), nullable=False),
    sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
    sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
    sa.ForeignKeyConstraint(['purchase_id'], ['purchases.id'], ),
    sa.PrimaryKeyConstraint('id'),
    sqlite_autoincrement=True
    )
    with op.batch_alter_table('purchase_payments', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_purchase_payments_purchase_id'), ['purchase_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_purchase_payments_type'), ['type'], unique=False)
        batch_op.create_index(batch_op.f('ix_purchase_payments_paid_on'), ['paid_on'], unique=False)
        batch_op.create_index('ix_purchase_payments_purchase_type', ['purchase_id', 'type'], unique=False)

    op.create_table('coupons',
    sa.Column('id', sa.Integer(), nullable=False),
    sa.Column('code', sa.String(length=64), nullable=False),
    sa.Column('product_id', sa.String(length=64), nullable=True),
    sa.Column('discount_type', sa.String(length=16), nullable=True),
    sa.Column('discount_value', sa.BigInteger(), nullable=True),
    sa.Column('max_uses', sa.Integer(), nullable=True),
    sa.Column('used_count', sa.Integer(), nullable=False),
    sa.Column('valid_from', sa.DateTime(timezone=True), nullable=True),
    sa.Column('valid_to', sa.DateTime(timezone=True), nullable=True),
    sa.Column('is_active', sa.Boolean(), nullable=False),
    sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
    sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
    sa.PrimaryKeyConstraint('id'),
    sa.UniqueConstraint('code', name='uq_coupons_code'),
    sqlite_autoincrement=True
    )
    with op.batch_alter_table('coupons', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_coupons_product_id'), ['product_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_coupons_is_active'), ['is_active'], unique=False)
        batch_op.create_index('ix_coupons_window', ['valid_from', 'valid_to'], unique=False)


def downgrade():
    op.drop_table('coupons')
    op.drop_table('purchase_payments')
    op.drop_table('purchases')
