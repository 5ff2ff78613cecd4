"""Initial stock schema: tenancy, attribute catalog, variants, stock entries, ledger

Revision ID: 20261019_stock
Revises:
Create Date: 2026-10-19

This migration adds:
1. Organizations and locations (tenancy)
2. Products, characteristics and characteristic options (attribute catalog)
3. Product variants with option-set signature and variant/option links
4. Stock entries, one row per (variant, location)
5. Ledger events (append-only audit)
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '20261019_stock'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    # ==========================================================================
    # 1. TENANCY
    # ==========================================================================
    op.create_table('organizations',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('code', sa.String(length=32), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='1'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('organizations', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_organizations_code'), ['code'], unique=True)
        batch_op.create_index(batch_op.f('ix_organizations_is_active'), ['is_active'], unique=False)

    op.create_table('locations',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('org_id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=120), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.ForeignKeyConstraint(['org_id'], ['organizations.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('org_id', 'name', name='uq_locations_org_name'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('locations', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_locations_org_id'), ['org_id'], unique=False)

    # ==========================================================================
    # 2. ATTRIBUTE CATALOG
    # ==========================================================================
    op.create_table('products',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('org_id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.ForeignKeyConstraint(['org_id'], ['organizations.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('products', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_products_org_id'), ['org_id'], unique=False)
        batch_op.create_index('ix_products_org_name', ['org_id', 'name'], unique=False)

    op.create_table('product_characteristics',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=120), nullable=False),
        sa.ForeignKeyConstraint(['product_id'], ['products.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('product_id', 'name', name='uq_characteristics_product_name'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('product_characteristics', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_product_characteristics_product_id'), ['product_id'], unique=False)

    op.create_table('characteristic_options',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('characteristic_id', sa.Integer(), nullable=False),
        sa.Column('value', sa.String(length=120), nullable=False),
        sa.ForeignKeyConstraint(['characteristic_id'], ['product_characteristics.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('characteristic_id', 'value', name='uq_options_characteristic_value'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('characteristic_options', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_characteristic_options_characteristic_id'), ['characteristic_id'], unique=False)

    # ==========================================================================
    # 3. VARIANTS
    # ==========================================================================
    op.create_table('product_variants',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('org_id', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.Integer(), nullable=False),
        sa.Column('option_signature', sa.String(length=64), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.ForeignKeyConstraint(['org_id'], ['organizations.id'], ),
        sa.ForeignKeyConstraint(['product_id'], ['products.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('product_id', 'option_signature', name='uq_variants_product_signature'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('product_variants', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_product_variants_org_id'), ['org_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_product_variants_product_id'), ['product_id'], unique=False)

    op.create_table('variant_options',
        sa.Column('variant_id', sa.Integer(), nullable=False),
        sa.Column('option_id', sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(['variant_id'], ['product_variants.id'], ),
        sa.ForeignKeyConstraint(['option_id'], ['characteristic_options.id'], ),
        sa.PrimaryKeyConstraint('variant_id', 'option_id')
    )
    with op.batch_alter_table('variant_options', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_variant_options_option_id'), ['option_id'], unique=False)

    # ==========================================================================
    # 4. STOCK ENTRIES
    # ==========================================================================
    op.create_table('stock_entries',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('org_id', sa.Integer(), nullable=False),
        sa.Column('variant_id', sa.Integer(), nullable=False),
        sa.Column('location_id', sa.Integer(), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('price_cents', sa.Integer(), nullable=True),
        sa.Column('entry_date', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.CheckConstraint('quantity >= 0', name='ck_stock_quantity_non_negative'),
        sa.ForeignKeyConstraint(['org_id'], ['organizations.id'], ),
        sa.ForeignKeyConstraint(['variant_id'], ['product_variants.id'], ),
        sa.ForeignKeyConstraint(['location_id'], ['locations.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('variant_id', 'location_id', name='uq_stock_variant_location'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('stock_entries', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_stock_entries_org_id'), ['org_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_stock_entries_variant_id'), ['variant_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_stock_entries_location_id'), ['location_id'], unique=False)
        batch_op.create_index('ix_stock_variant_price', ['variant_id', 'price_cents'], unique=False)

    # ==========================================================================
    # 5. LEDGER
    # ==========================================================================
    op.create_table('ledger_events',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('org_id', sa.Integer(), nullable=False),
        sa.Column('location_id', sa.Integer(), nullable=True),
        sa.Column('event_type', sa.String(length=64), nullable=False),
        sa.Column('entity_type', sa.String(length=64), nullable=False),
        sa.Column('entity_id', sa.Integer(), nullable=False),
        sa.Column('actor_user_id', sa.String(length=64), nullable=True),
        sa.Column('occurred_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.Column('note', sa.String(length=255), nullable=True),
        sa.Column('payload', sa.Text(), nullable=True),
        sa.ForeignKeyConstraint(['org_id'], ['organizations.id'], ),
        sa.ForeignKeyConstraint(['location_id'], ['locations.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('ledger_events', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_ledger_events_org_id'), ['org_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_ledger_events_location_id'), ['location_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_ledger_events_event_type'), ['event_type'], unique=False)
        batch_op.create_index(batch_op.f('ix_ledger_events_entity_type'), ['entity_type'], unique=False)
        batch_op.create_index(batch_op.f('ix_ledger_events_entity_id'), ['entity_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_ledger_events_actor_user_id'), ['actor_user_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_ledger_events_occurred_at'), ['occurred_at'], unique=False)
        batch_op.create_index('ix_ledger_events_org_occurred', ['org_id', 'occurred_at'], unique=False)


def downgrade():
    op.drop_table('ledger_events')
    op.drop_table('stock_entries')
    op.drop_table('variant_options')
    op.drop_table('product_variants')
    op.drop_table('characteristic_options')
    op.drop_table('product_characteristics')
    op.drop_table('products')
    op.drop_table('locations')
    op.drop_table('organizations')
