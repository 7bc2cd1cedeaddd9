"""create_mirror_tables

Revision ID: 001
Revises:
Create Date: 2026-10-17 10:12:41.309115

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '001'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


_SYNCED_TABLES = ('venues', 'events', 'admins', 'attendees')


def _timestamps():
    return [
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
        sa.Column('synced_at', sa.DateTime(timezone=True), nullable=False),
    ]


def upgrade() -> None:
    """Upgrade schema."""
    bind = op.get_bind()
    inspector = sa.inspect(bind)

    if not inspector.has_table('events'):
        op.create_table('events',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('airtable_id', sa.String(length=255), nullable=False),
        sa.Column('event_name', sa.String(length=500), nullable=True),
        sa.Column('poc_first_name', sa.String(length=255), nullable=True),
        sa.Column('poc_last_name', sa.String(length=255), nullable=True),
        sa.Column('poc_preferred_name', sa.String(length=255), nullable=True),
        sa.Column('poc_slack_id', sa.String(length=255), nullable=True),
        sa.Column('poc_dob', sa.Date(), nullable=True),
        sa.Column('poc_age', sa.Integer(), nullable=True),
        sa.Column('email', sa.String(length=500), nullable=False),
        sa.Column('location', sa.String(length=500), nullable=True),
        sa.Column('slug', sa.String(length=255), nullable=True),
        sa.Column('street_address', sa.String(length=500), nullable=True),
        sa.Column('street_address_2', sa.String(length=500), nullable=True),
        sa.Column('city', sa.String(length=255), nullable=True),
        sa.Column('state', sa.String(length=255), nullable=True),
        sa.Column('country', sa.String(length=255), nullable=True),
        sa.Column('zipcode', sa.String(length=20), nullable=True),
        sa.Column('event_format', sa.String(length=32), nullable=True),
        sa.Column('sub_organizers', sa.Text(), nullable=True),
        sa.Column('estimated_attendee_count', sa.Integer(), nullable=True),
        sa.Column('project_url', sa.Text(), nullable=True),
        sa.Column('project_description', sa.Text(), nullable=True),
        sa.Column('lat', sa.Float(), nullable=True),
        sa.Column('long', sa.Float(), nullable=True),
        sa.Column('triage_status', sa.String(length=32), nullable=False),
        sa.Column('start_date', sa.Date(), nullable=True),
        sa.Column('end_date', sa.Date(), nullable=True),
        sa.Column('registration_deadline', sa.Date(), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('action_trigger_approval_email', sa.String(length=500), nullable=True),
        sa.Column('action_trigger_rejection_email', sa.String(length=500), nullable=True),
        sa.Column('action_trigger_hold_email', sa.String(length=500), nullable=True),
        sa.Column('action_trigger_ask_email', sa.String(length=500), nullable=True),
        sa.Column('has_confirmed_venue', sa.Boolean(), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id')
        )
        op.create_index(op.f('ix_events_airtable_id'), 'events', ['airtable_id'], unique=True)
        op.create_index(op.f('ix_events_email'), 'events', ['email'], unique=False)
        op.create_index(op.f('ix_events_triage_status'), 'events', ['triage_status'], unique=False)
        op.create_index(op.f('ix_events_synced_at'), 'events', ['synced_at'], unique=False)

    if not inspector.has_table('admins'):
        op.create_table('admins',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('airtable_id', sa.String(length=255), nullable=False),
        sa.Column('email', sa.String(length=500), nullable=False),
        sa.Column('first_name', sa.String(length=255), nullable=True),
        sa.Column('last_name', sa.String(length=255), nullable=True),
        sa.Column('user_status', sa.String(length=32), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id')
        )
        op.create_index(op.f('ix_admins_airtable_id'), 'admins', ['airtable_id'], unique=True)
        op.create_index(op.f('ix_admins_email'), 'admins', ['email'], unique=True)
        op.create_index(op.f('ix_admins_user_status'), 'admins', ['user_status'], unique=False)

    if not inspector.has_table('attendees'):
        op.create_table('attendees',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('airtable_id', sa.String(length=255), nullable=False),
        sa.Column('email', sa.String(length=500), nullable=False),
        sa.Column('preferred_name', sa.String(length=255), nullable=True),
        sa.Column('first_name', sa.String(length=255), nullable=True),
        sa.Column('last_name', sa.String(length=255), nullable=True),
        sa.Column('dob', sa.Date(), nullable=True),
        sa.Column('phone', sa.String(length=50), nullable=True),
        sa.Column('event_airtable_id', sa.String(length=255), nullable=False),
        sa.Column('deleted_in_cockpit', sa.Boolean(), nullable=False),
        sa.Column('event_volunteer', sa.Boolean(), nullable=False),
        sa.Column('shirt_size', sa.String(length=20), nullable=True),
        sa.Column('additional_accommodations', sa.Text(), nullable=True),
        sa.Column('dietary_restrictions', sa.Text(), nullable=True),
        sa.Column('emergency_contact_1_phone', sa.String(length=50), nullable=True),
        sa.Column('emergency_contact_1_name', sa.String(length=255), nullable=True),
        sa.Column('checkin_completed', sa.Boolean(), nullable=False),
        sa.Column('scanned_in', sa.Boolean(), nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(['event_airtable_id'], ['events.airtable_id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
        )
        op.create_index(op.f('ix_attendees_airtable_id'), 'attendees', ['airtable_id'], unique=True)
        op.create_index(op.f('ix_attendees_email'), 'attendees', ['email'], unique=False)
        op.create_index(op.f('ix_attendees_event_airtable_id'), 'attendees', ['event_airtable_id'], unique=False)
        op.create_index(op.f('ix_attendees_synced_at'), 'attendees', ['synced_at'], unique=False)

    if not inspector.has_table('venues'):
        op.create_table('venues',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('airtable_id', sa.String(length=255), nullable=False),
        sa.Column('venue_id', sa.String(length=255), nullable=True),
        sa.Column('event_name', sa.String(length=500), nullable=True),
        sa.Column('venue_name', sa.String(length=500), nullable=True),
        sa.Column('address_1', sa.String(length=500), nullable=True),
        sa.Column('address_2', sa.String(length=500), nullable=True),
        sa.Column('city', sa.String(length=255), nullable=True),
        sa.Column('state', sa.String(length=255), nullable=True),
        sa.Column('country', sa.String(length=255), nullable=True),
        sa.Column('zip_code', sa.String(length=20), nullable=True),
        sa.Column('venue_contact_name', sa.String(length=255), nullable=True),
        sa.Column('venue_contact_email', sa.String(length=500), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id')
        )
        op.create_index(op.f('ix_venues_airtable_id'), 'venues', ['airtable_id'], unique=True)

    if not inspector.has_table('sync_metadata'):
        op.create_table('sync_metadata',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('table_name', sa.String(length=100), nullable=False),
        sa.Column('last_sync_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('last_sync_status', sa.String(length=50), nullable=False),
        sa.Column('records_synced', sa.Integer(), nullable=False),
        sa.Column('errors_count', sa.Integer(), nullable=False),
        sa.Column('skipped_count', sa.Integer(), nullable=False),
        sa.Column('error_details', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
        sa.PrimaryKeyConstraint('id')
        )
        op.create_index(op.f('ix_sync_metadata_table_name'), 'sync_metadata', ['table_name'], unique=True)
        op.create_index(op.f('ix_sync_metadata_last_sync_at'), 'sync_metadata', ['last_sync_at'], unique=False)
        op.bulk_insert(
            sa.table(
                'sync_metadata',
                sa.column('table_name', sa.String),
                sa.column('last_sync_status', sa.String),
                sa.column('records_synced', sa.Integer),
                sa.column('errors_count', sa.Integer),
                sa.column('skipped_count', sa.Integer),
            ),
            [
                {'table_name': name, 'last_sync_status': 'pending',
                 'records_synced': 0, 'errors_count': 0, 'skipped_count': 0}
                for name in _SYNCED_TABLES
            ],
        )

    if not inspector.has_table('sync_runs'):
        op.create_table('sync_runs',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('table_name', sa.String(length=100), nullable=False),
        sa.Column('status', sa.String(length=50), nullable=False),
        sa.Column('records_synced', sa.Integer(), nullable=False),
        sa.Column('errors_count', sa.Integer(), nullable=False),
        sa.Column('skipped_count', sa.Integer(), nullable=False),
        sa.Column('error_details', sa.Text(), nullable=True),
        sa.Column('duration_ms', sa.Integer(), nullable=True),
        sa.Column('started_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id')
        )
        op.create_index(op.f('ix_sync_runs_table_name'), 'sync_runs', ['table_name'], unique=False)
        op.create_index(op.f('ix_sync_runs_started_at'), 'sync_runs', ['started_at'], unique=False)


def downgrade() -> None:
    """Downgrade schema."""
    bind = op.get_bind()
    inspector = sa.inspect(bind)

    # attendees antes que events (FK)
    for table in ('sync_runs', 'sync_metadata', 'attendees', 'admins', 'venues', 'events'):
        if inspector.has_table(table):
            op.drop_table(table)
