"""001 Calendar schema - vehicles, bookings, manual blocks, external feeds, feed tokens

Revision ID: 001_calendar_schema
Revises:
Create Date: 2026-10-19

On PostgreSQL, manual blocks of one vehicle are additionally kept disjoint by
an exclusion constraint (requires btree_gist).
"""

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '001_calendar_schema'
down_revision = None
branch_labels = None
depends_on = None


def _timestamps():
    return [
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.func.now()),
    ]


def upgrade():
    op.create_table(
        'companies',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('name', sa.String(200), nullable=False),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now()),
    )
    
    op.create_table(
        'vehicles',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('company_id', sa.String(36),
                  sa.ForeignKey('companies.id', ondelete='CASCADE'), nullable=False),
        sa.Column('name', sa.String(200), nullable=False),
        *_timestamps(),
    )
    op.create_index('ix_vehicle_company', 'vehicles', ['company_id'])
    
    op.create_table(
        'bookings',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('vehicle_id', sa.String(36),
                  sa.ForeignKey('vehicles.id', ondelete='CASCADE'), nullable=False),
        sa.Column('start_date', sa.Date(), nullable=False),
        sa.Column('end_date', sa.Date(), nullable=False),
        sa.Column('status', sa.String(20), nullable=False, server_default='pending'),
        *_timestamps(),
        sa.CheckConstraint('start_date <= end_date', name='ck_booking_range'),
    )
    op.create_index('ix_booking_vehicle_dates', 'bookings', ['vehicle_id', 'start_date', 'end_date'])
    op.create_index('ix_booking_status', 'bookings', ['status'])
    
    op.create_table(
        'manual_blocks',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('vehicle_id', sa.String(36),
                  sa.ForeignKey('vehicles.id', ondelete='CASCADE'), nullable=False),
        sa.Column('start_date', sa.Date(), nullable=False),
        sa.Column('end_date', sa.Date(), nullable=False),
        sa.Column('reason', sa.Text(), nullable=True),
        sa.Column('created_by', sa.String(100), nullable=True),
        *_timestamps(),
        sa.CheckConstraint('start_date <= end_date', name='ck_manual_block_range'),
    )
    op.create_index('ix_manual_block_vehicle_dates', 'manual_blocks', ['vehicle_id', 'start_date', 'end_date'])
    
    op.create_table(
        'external_feeds',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('vehicle_id', sa.String(36),
                  sa.ForeignKey('vehicles.id', ondelete='CASCADE'), nullable=False),
        sa.Column('feed_name', sa.String(200), nullable=False),
        sa.Column('feed_url', sa.String(2000), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('last_synced_at', sa.DateTime(), nullable=True),
        sa.Column('last_error', sa.Text(), nullable=True),
        sa.Column('last_error_at', sa.DateTime(), nullable=True),
        sa.Column('consecutive_failures', sa.Integer(), nullable=False, server_default='0'),
        *_timestamps(),
    )
    op.create_index('ix_external_feed_vehicle', 'external_feeds', ['vehicle_id'])
    
    op.create_table(
        'external_events',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('feed_id', sa.String(36),
                  sa.ForeignKey('external_feeds.id', ondelete='CASCADE'), nullable=False),
        sa.Column('vehicle_id', sa.String(36),
                  sa.ForeignKey('vehicles.id', ondelete='CASCADE'), nullable=False),
        sa.Column('external_uid', sa.String(500), nullable=False),
        sa.Column('start_date', sa.Date(), nullable=False),
        sa.Column('end_date', sa.Date(), nullable=False),
        sa.Column('summary', sa.Text(), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint('feed_id', 'external_uid', name='uq_external_event_feed_uid'),
        sa.CheckConstraint('start_date <= end_date', name='ck_external_event_range'),
    )
    op.create_index('ix_external_event_vehicle_dates', 'external_events', ['vehicle_id', 'start_date', 'end_date'])
    
    op.create_table(
        'feed_tokens',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('vehicle_id', sa.String(36),
                  sa.ForeignKey('vehicles.id', ondelete='CASCADE'), nullable=False, unique=True),
        sa.Column('token', sa.String(128), nullable=False, unique=True),
        sa.Column('issued_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
    )
    
    if op.get_bind().dialect.name == 'postgresql':
        op.execute("CREATE EXTENSION IF NOT EXISTS btree_gist")
        op.execute("""
            ALTER TABLE manual_blocks
            ADD CONSTRAINT ex_manual_block_no_overlap
            EXCLUDE USING gist (
                vehicle_id WITH =,
                daterange(start_date, end_date, '[]') WITH &&
            )
        """)


def downgrade():
    op.drop_table('feed_tokens')
    op.drop_index('ix_external_event_vehicle_dates', table_name='external_events')
    op.drop_table('external_events')
    op.drop_index('ix_external_feed_vehicle', table_name='external_feeds')
    op.drop_table('external_feeds')
    op.drop_index('ix_manual_block_vehicle_dates', table_name='manual_blocks')
    op.drop_table('manual_blocks')
    op.drop_index('ix_booking_status', table_name='bookings')
    op.drop_index('ix_booking_vehicle_dates', table_name='bookings')
    op.drop_table('bookings')
    op.drop_index('ix_vehicle_company', table_name='vehicles')
    op.drop_table('vehicles')
    op.drop_table('companies')
