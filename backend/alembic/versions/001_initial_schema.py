"""Initial schema for the CarHaus marketplace database.

Revision ID: 001_initial_schema
Revises:
Create Date: 2026-10-18 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = '001_initial_schema'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create all tables."""

    # 1. users
    op.create_table(
        'users',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('email', sa.String(255), unique=True, index=True, nullable=False),
        sa.Column('full_name', sa.String(100), nullable=True),
        sa.Column('phone', sa.String(30), nullable=True),
        sa.Column('role', sa.String(20), server_default='USER', nullable=False),
        sa.Column('is_active', sa.Boolean(), server_default=sa.true(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )

    # 2. dealers - one profile per user
    op.create_table(
        'dealers',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('user_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('users.id', ondelete='CASCADE'), unique=True, nullable=False),
        sa.Column('business_name', sa.String(200), nullable=False),
        sa.Column('logo', sa.String(500), nullable=True),
        sa.Column('city', sa.String(100), nullable=True),
        sa.Column('province', sa.String(50), nullable=True),
        sa.Column('contact_email', sa.String(255), nullable=True),
        sa.Column('contact_phone', sa.String(30), nullable=True),
        sa.Column('verified', sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )

    # 3. listings
    op.create_table(
        'listings',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('user_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('dealer_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('dealers.id', ondelete='SET NULL'), index=True, nullable=True),
        sa.Column('title', sa.String(200), nullable=False),
        sa.Column('slug', sa.String(250), unique=True, nullable=False),
        sa.Column('make', sa.String(50), nullable=False),
        sa.Column('model', sa.String(50), nullable=False),
        sa.Column('year', sa.Integer(), nullable=False),
        sa.Column('price', sa.Numeric(12, 2), nullable=False),
        sa.Column('mileage', sa.Integer(), nullable=True),
        sa.Column('body_type', sa.String(30), nullable=True),
        sa.Column('city', sa.String(100), nullable=True),
        sa.Column('province', sa.String(50), nullable=True),
        sa.Column('status', sa.String(20), server_default='DRAFT', nullable=False),
        sa.Column('views', sa.Integer(), server_default='0', nullable=False),
        sa.Column('inquiries', sa.Integer(), server_default='0', nullable=False),
        sa.Column('featured', sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column('featured_until', sa.DateTime(timezone=True), nullable=True),
        sa.Column('featured_order', sa.Integer(), nullable=True),
        sa.Column('featured_request_status', sa.String(20), server_default='NONE', nullable=False),
        sa.Column('published_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index('ix_listings_featured', 'listings', ['featured', 'featured_order'])
    op.create_index('ix_listings_status_created', 'listings', ['status', 'created_at'])

    # 4. listing_media - photos
    op.create_table(
        'listing_media',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('listing_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('listings.id', ondelete='CASCADE'), index=True, nullable=False),
        sa.Column('url', sa.String(500), nullable=False),
        sa.Column('is_primary', sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column('sort_order', sa.Integer(), server_default='0', nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )

    # 5. inquiries - buyer/dealer threads
    op.create_table(
        'inquiries',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('listing_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('listings.id', ondelete='CASCADE'), nullable=False),
        sa.Column('dealer_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('dealers.id', ondelete='CASCADE'), nullable=False),
        sa.Column('user_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        sa.Column('name', sa.String(100), nullable=False),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('phone', sa.String(30), nullable=True),
        sa.Column('message', sa.Text(), nullable=False),
        sa.Column('reply', sa.Text(), nullable=True),
        sa.Column('status', sa.String(20), server_default='NEW', nullable=False),
        sa.Column('is_read', sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column('read_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('replied_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('replied_by', postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column('user_archived', sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column('dealer_archived', sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column('user_read_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('dealer_read_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index('ix_inquiries_thread', 'inquiries', ['listing_id', 'dealer_id', 'user_id'])
    op.create_index('ix_inquiries_dealer_created', 'inquiries', ['dealer_id', 'created_at'])
    op.create_index('ix_inquiries_user_created', 'inquiries', ['user_id', 'created_at'])

    # 6. notifications
    op.create_table(
        'notifications',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('user_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('type', sa.String(30), nullable=False),
        sa.Column('title', sa.String(200), nullable=False),
        sa.Column('message', sa.Text(), nullable=False),
        sa.Column('data', sa.JSON(), nullable=True),
        sa.Column('is_read', sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column('read_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index('ix_notifications_user_read', 'notifications', ['user_id', 'is_read'])

    # 7. subscriptions - limits are snapshotted per row
    op.create_table(
        'subscriptions',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('dealer_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('dealers.id', ondelete='CASCADE'), index=True, nullable=True),
        sa.Column('user_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('users.id', ondelete='CASCADE'), index=True, nullable=True),
        sa.Column('plan', sa.String(20), nullable=False),
        sa.Column('status', sa.String(20), server_default='ACTIVE', nullable=False),
        sa.Column('price', sa.Numeric(10, 2), nullable=False),
        sa.Column('billing_cycle', sa.String(10), server_default='monthly', nullable=False),
        sa.Column('max_listings', sa.Integer(), nullable=False),
        sa.Column('max_photos_per_listing', sa.Integer(), nullable=False),
        sa.Column('featured_listings', sa.Integer(), nullable=False),
        sa.Column('xml_import_enabled', sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column('analytics_enabled', sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column('priority_support', sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column('start_date', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('end_date', sa.DateTime(timezone=True), nullable=False),
        sa.Column('cancelled_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )

    # 8. payments
    op.create_table(
        'payments',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('dealer_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('dealers.id', ondelete='CASCADE'), index=True, nullable=False),
        sa.Column('subscription_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('subscriptions.id', ondelete='SET NULL'), nullable=True),
        sa.Column('amount', sa.Numeric(10, 2), nullable=False),
        sa.Column('currency', sa.String(3), server_default='CAD', nullable=False),
        sa.Column('status', sa.String(20), server_default='PENDING', nullable=False),
        sa.Column('invoice_number', sa.String(50), unique=True, nullable=False),
        sa.Column('description', sa.String(255), nullable=True),
        sa.Column('payment_method', sa.String(50), nullable=True),
        sa.Column('transaction_id', sa.String(255), index=True, nullable=True),
        sa.Column('paid_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )

    # 9. activity_logs - audit trail
    op.create_table(
        'activity_logs',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('user_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        sa.Column('action', sa.String(50), nullable=False),
        sa.Column('entity', sa.String(50), nullable=False),
        sa.Column('entity_id', sa.String(64), nullable=True),
        sa.Column('old_values', sa.JSON(), nullable=True),
        sa.Column('new_values', sa.JSON(), nullable=True),
        sa.Column('metadata', sa.JSON(), nullable=True),
        sa.Column('ip_address', sa.String(45), nullable=True),
        sa.Column('user_agent', sa.String(500), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index('ix_activity_logs_entity', 'activity_logs', ['entity', 'entity_id'])

    # 10. system_settings - admin overrides (plan table)
    op.create_table(
        'system_settings',
        sa.Column('key', sa.String(100), primary_key=True),
        sa.Column('value', sa.JSON(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )


def downgrade() -> None:
    """Drop all tables in reverse order (FK dependencies)."""

    op.drop_index('ix_activity_logs_entity', table_name='activity_logs')
    op.drop_index('ix_notifications_user_read', table_name='notifications')
    op.drop_index('ix_inquiries_user_created', table_name='inquiries')
    op.drop_index('ix_inquiries_dealer_created', table_name='inquiries')
    op.drop_index('ix_inquiries_thread', table_name='inquiries')
    op.drop_index('ix_listings_status_created', table_name='listings')
    op.drop_index('ix_listings_featured', table_name='listings')

    op.drop_table('system_settings')
    op.drop_table('activity_logs')
    op.drop_table('payments')
    op.drop_table('subscriptions')
    op.drop_table('notifications')
    op.drop_table('inquiries')
    op.drop_table('listing_media')
    op.drop_table('listings')
    op.drop_table('dealers')
    op.drop_table('users')
