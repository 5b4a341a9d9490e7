"""create_waitlist_tables

Revision ID: 5c2e8a1f9d40
Revises:
Create Date: 2026-10-19 09:12:44.518203

Initial schema for the waitlist service:
- Tenants with booking schedule and cancellation policy
- Bookings, webinar products, sessions and signups
- Booking (per date) and webinar (per product) waitlist entries, each with a
  partial unique index allowing one notified entry per queue
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '5c2e8a1f9d40'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

WAITLIST_STATUSES = ('waiting', 'notified', 'expired', 'booked')


def _timestamps() -> list:
    return [
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    ]


def _waitlist_columns() -> list:
    return [
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('tenant_id', sa.String(36), sa.ForeignKey('tenants.id'), nullable=False),
        sa.Column('visitor_name', sa.String(200), nullable=False),
        sa.Column('visitor_email', sa.String(255), nullable=False),
        sa.Column('visitor_phone', sa.String(32), nullable=True),
        sa.Column(
            'status',
            sa.Enum(*WAITLIST_STATUSES, name='waitliststatus', native_enum=False, length=20),
            nullable=False,
        ),
        sa.Column('queued_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('notified_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
    ]


def upgrade() -> None:
    """Create tenant, booking, webinar and waitlist tables."""
    op.create_table(
        'tenants',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('name', sa.String(200), nullable=False),
        sa.Column('slug', sa.String(100), nullable=False, unique=True),
        sa.Column('custom_domain', sa.String(255), nullable=True),
        sa.Column('timezone', sa.String(64), nullable=False),
        sa.Column('currency', sa.String(3), nullable=False),
        sa.Column('booking_config', sa.JSON, nullable=True),
        sa.Column('cancellation_deadline_hours', sa.Integer, nullable=False),
        sa.Column('refund_tiers', sa.JSON, nullable=True),
        *_timestamps(),
    )

    op.create_table(
        'bookings',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('tenant_id', sa.String(36), sa.ForeignKey('tenants.id'), nullable=False),
        sa.Column('booking_date', sa.Date, nullable=False),
        sa.Column('start_time', sa.DateTime(timezone=True), nullable=False),
        sa.Column('end_time', sa.DateTime(timezone=True), nullable=False),
        sa.Column('title', sa.String(200), nullable=False),
        sa.Column(
            'status',
            sa.Enum('pending', 'scheduled', 'cancelled', 'completed', name='bookingstatus', native_enum=False, length=20),
            nullable=False,
        ),
        sa.Column('visitor_name', sa.String(200), nullable=False),
        sa.Column('visitor_email', sa.String(255), nullable=False),
        sa.Column('stripe_payment_intent_id', sa.String(255), nullable=True),
        sa.Column('cancelled_by', sa.String(20), nullable=True),
        sa.Column('cancelled_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('refund_amount_cents', sa.Integer, nullable=True),
        sa.Column('stripe_refund_id', sa.String(255), nullable=True),
        *_timestamps(),
    )
    op.create_index('ix_bookings_tenant_id', 'bookings', ['tenant_id'])
    op.create_index('ix_bookings_booking_date', 'bookings', ['booking_date'])

    op.create_table(
        'products',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('tenant_id', sa.String(36), sa.ForeignKey('tenants.id'), nullable=False),
        sa.Column('name', sa.String(200), nullable=False),
        sa.Column(
            'product_type',
            sa.Enum('service', 'webinar', name='producttype', native_enum=False, length=20),
            nullable=False,
        ),
        sa.Column('is_active', sa.Boolean, nullable=False),
        sa.Column('price_cents', sa.Integer, nullable=False),
        sa.Column('max_participants', sa.Integer, nullable=True),
        *_timestamps(),
    )
    op.create_index('ix_products_tenant_id', 'products', ['tenant_id'])

    op.create_table(
        'webinar_sessions',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('product_id', sa.String(36), sa.ForeignKey('products.id'), nullable=False),
        sa.Column('date', sa.Date, nullable=False),
        sa.Column('start_time', sa.Time, nullable=False),
        sa.Column('end_time', sa.Time, nullable=False),
    )
    op.create_index('ix_webinar_sessions_product_id', 'webinar_sessions', ['product_id'])

    op.create_table(
        'webinar_signups',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('tenant_id', sa.String(36), sa.ForeignKey('tenants.id'), nullable=False),
        sa.Column('product_id', sa.String(36), sa.ForeignKey('products.id'), nullable=False),
        sa.Column('visitor_name', sa.String(200), nullable=False),
        sa.Column('visitor_email', sa.String(255), nullable=False),
        sa.Column('stripe_payment_intent_id', sa.String(255), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint('tenant_id', 'product_id', 'visitor_email', name='uq_webinar_signup_visitor'),
    )
    op.create_index('ix_webinar_signups_tenant_id', 'webinar_signups', ['tenant_id'])
    op.create_index('ix_webinar_signups_product_id', 'webinar_signups', ['product_id'])

    # Booking waitlist, one queue per (tenant, date)
    op.create_table(
        'waitlist_entries',
        *_waitlist_columns(),
        sa.Column('date', sa.Date, nullable=False),
    )
    op.create_index('ix_waitlist_entries_tenant_id', 'waitlist_entries', ['tenant_id'])
    op.create_index('ix_waitlist_entries_status', 'waitlist_entries', ['status'])
    op.create_index('ix_waitlist_entries_date', 'waitlist_entries', ['date'])
    op.create_index(
        'uq_waitlist_entries_one_notified',
        'waitlist_entries',
        ['tenant_id', 'date'],
        unique=True,
        postgresql_where=sa.text("status = 'notified'"),
    )

    # Webinar waitlist, one queue per (tenant, product)
    op.create_table(
        'webinar_waitlist_entries',
        *_waitlist_columns(),
        sa.Column('product_id', sa.String(36), sa.ForeignKey('products.id'), nullable=False),
    )
    op.create_index('ix_webinar_waitlist_entries_tenant_id', 'webinar_waitlist_entries', ['tenant_id'])
    op.create_index('ix_webinar_waitlist_entries_status', 'webinar_waitlist_entries', ['status'])
    op.create_index('ix_webinar_waitlist_entries_product_id', 'webinar_waitlist_entries', ['product_id'])
    op.create_index(
        'uq_webinar_waitlist_entries_one_notified',
        'webinar_waitlist_entries',
        ['tenant_id', 'product_id'],
        unique=True,
        postgresql_where=sa.text("status = 'notified'"),
    )


def downgrade() -> None:
    """Drop all waitlist service tables."""
    op.drop_table('webinar_waitlist_entries')
    op.drop_table('waitlist_entries')
    op.drop_table('webinar_signups')
    op.drop_table('webinar_sessions')
    op.drop_table('products')
    op.drop_table('bookings')
    op.drop_table('tenants')
