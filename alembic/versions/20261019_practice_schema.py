"""Practice schema: customers, cases, their histories, meetings, notifications

Revision ID: 001_practice
Revises:
Create Date: 2026-10-19 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = '001_practice'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

CUSTOMER_STATUS = (
    'INTAKE', 'SEND_PROPOSAL', 'WAITING_APPROVAL', 'SEND_CONTRACT', 'WAITING_ACCEPTANCE',
    'SEND_RESPONSE', 'CLIENT', 'CONSULTATION_SCHEDULED', 'CONSULTATION_DONE', 'ON_HOLD', 'ARCHIVED',
)
CASE_STATE = (
    'INTAKE', 'SEND_PROPOSAL', 'WAITING_RESPONSE_P', 'DISCUSSING_Q', 'SEND_CONTRACT',
    'WAITING_RESPONSE_C', 'NEW', 'IN_PROGRESS', 'WAITING_CUSTOMER', 'WAITING_AUTHORITIES', 'FINALIZED',
)


def _existing_enum(values, name):
    """Enum type created by an earlier table; PostgreSQL must not create it twice."""
    return sa.Enum(*values, name=name).with_variant(
        postgresql.ENUM(*values, name=name, create_type=False), "postgresql"
    )


def upgrade() -> None:
    """Create all practice tables."""
    op.create_table(
        'customers',
        sa.Column('customer_id', sa.String(length=50), nullable=False),
        sa.Column('name', sa.String(length=200), nullable=False),
        sa.Column('customer_type', sa.String(length=50), nullable=False),
        sa.Column('contact', sa.String(length=200), nullable=False),
        sa.Column('phone', sa.String(length=50), nullable=False),
        sa.Column('email', sa.String(length=200), nullable=False),
        sa.Column('address', sa.Text(), nullable=False),
        sa.Column('country', sa.String(length=100), nullable=False),
        sa.Column('registered_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('services', sa.JSON(), nullable=False),
        sa.Column('service_description', sa.Text(), nullable=False),
        sa.Column('contact_channel', sa.Enum(
            'PHONE_CALL', 'WHATSAPP', 'WEBSITE', 'EMAIL', 'IN_PERSON', 'REFERRAL', name='contactchannel'
        ), nullable=False),
        sa.Column('notes', sa.Text(), nullable=False),
        sa.Column('status', sa.Enum(*CUSTOMER_STATUS, name='customerstatus'), nullable=False),
        sa.Column('assigned_to', sa.String(length=100), nullable=False),
        sa.Column('follow_up_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('confirmed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_by', sa.String(length=100), nullable=True),
        sa.Column('version', sa.Integer(), nullable=False),
        sa.PrimaryKeyConstraint('customer_id')
    )
    op.create_index(op.f('ix_customers_customer_id'), 'customers', ['customer_id'], unique=False)
    op.create_index(op.f('ix_customers_status'), 'customers', ['status'], unique=False)
    op.create_index(op.f('ix_customers_assigned_to'), 'customers', ['assigned_to'], unique=False)

    op.create_table(
        'customer_status_history',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('customer_id', sa.String(length=50), nullable=False),
        sa.Column('position', sa.Integer(), nullable=False),
        sa.Column('status', _existing_enum(CUSTOMER_STATUS, 'customerstatus'), nullable=False),
        sa.Column('previous_status', _existing_enum(CUSTOMER_STATUS, 'customerstatus'), nullable=True),
        sa.Column('date', sa.DateTime(timezone=True), nullable=False),
        sa.Column('changed_by', sa.String(length=100), nullable=True),
        sa.ForeignKeyConstraint(['customer_id'], ['customers.customer_id']),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(
        op.f('ix_customer_status_history_customer_id'), 'customer_status_history', ['customer_id'], unique=False
    )

    op.create_table(
        'cases',
        sa.Column('case_id', sa.String(length=50), nullable=False),
        sa.Column('customer_id', sa.String(length=50), nullable=False),
        sa.Column('case_type', sa.Enum('CUSTOMER', 'CLIENT', name='casetype'), nullable=False),
        sa.Column('category', sa.String(length=100), nullable=False),
        sa.Column('subcategory', sa.String(length=100), nullable=False),
        sa.Column('title', sa.String(length=200), nullable=False),
        sa.Column('state', sa.Enum(*CASE_STATE, name='casestate'), nullable=False),
        sa.Column('last_state_change', sa.DateTime(timezone=True), nullable=False),
        sa.Column('deadline', sa.DateTime(timezone=True), nullable=True),
        sa.Column('ready_for_work', sa.Boolean(), nullable=False),
        sa.Column('priority', sa.Enum('URGENT', 'HIGH', 'MEDIUM', 'LOW', name='casepriority'), nullable=False),
        sa.Column('assigned_to', sa.String(length=100), nullable=False),
        sa.Column('document_state', sa.Enum('OK', 'MISSING', name='documentstate'), nullable=False),
        sa.Column('created_by', sa.String(length=100), nullable=True),
        sa.Column('version', sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(['customer_id'], ['customers.customer_id']),
        sa.PrimaryKeyConstraint('case_id')
    )
    op.create_index(op.f('ix_cases_case_id'), 'cases', ['case_id'], unique=False)
    op.create_index(op.f('ix_cases_customer_id'), 'cases', ['customer_id'], unique=False)
    op.create_index(op.f('ix_cases_case_type'), 'cases', ['case_type'], unique=False)
    op.create_index(op.f('ix_cases_state'), 'cases', ['state'], unique=False)
    op.create_index(op.f('ix_cases_assigned_to'), 'cases', ['assigned_to'], unique=False)

    op.create_table(
        'case_history',
        sa.Column('history_id', sa.String(length=50), nullable=False),
        sa.Column('case_id', sa.String(length=50), nullable=False),
        sa.Column('position', sa.Integer(), nullable=False),
        sa.Column('state_from', _existing_enum(CASE_STATE, 'casestate'), nullable=True),
        sa.Column('state_to', _existing_enum(CASE_STATE, 'casestate'), nullable=False),
        sa.Column('date', sa.DateTime(timezone=True), nullable=False),
        sa.Column('actor', sa.String(length=100), nullable=True),
        sa.ForeignKeyConstraint(['case_id'], ['cases.case_id']),
        sa.PrimaryKeyConstraint('history_id')
    )
    op.create_index(op.f('ix_case_history_case_id'), 'case_history', ['case_id'], unique=False)
    op.create_index(op.f('ix_case_history_date'), 'case_history', ['date'], unique=False)

    op.create_table(
        'meetings',
        sa.Column('meeting_id', sa.String(length=50), nullable=False),
        sa.Column('title', sa.String(length=200), nullable=False),
        sa.Column('customer_id', sa.String(length=50), nullable=True),
        sa.Column('starts_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('ends_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('assigned_to', sa.String(length=100), nullable=False),
        sa.Column('location', sa.String(length=200), nullable=True),
        sa.Column('status', sa.Enum('SCHEDULED', 'DONE', 'CANCELLED', name='meetingstatus'), nullable=False),
        sa.Column('created_by', sa.String(length=100), nullable=True),
        sa.PrimaryKeyConstraint('meeting_id')
    )
    op.create_index(op.f('ix_meetings_customer_id'), 'meetings', ['customer_id'], unique=False)
    op.create_index(op.f('ix_meetings_starts_at'), 'meetings', ['starts_at'], unique=False)

    op.create_table(
        'customer_notifications',
        sa.Column('notification_id', sa.String(length=50), nullable=False),
        sa.Column('customer_id', sa.String(length=50), nullable=False),
        sa.Column('message', sa.Text(), nullable=False),
        sa.Column('kind', sa.String(length=20), nullable=False),
        sa.Column('severity', sa.String(length=20), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('notification_id')
    )
    op.create_index(
        op.f('ix_customer_notifications_customer_id'), 'customer_notifications', ['customer_id'], unique=False
    )


def downgrade() -> None:
    """Drop all practice tables."""
    op.drop_table('customer_notifications')
    op.drop_table('meetings')
    op.drop_table('case_history')
    op.drop_table('cases')
    op.drop_table('customer_status_history')
    op.drop_table('customers')

    # Drop enum types (PostgreSQL only)
    # SQLite will ignore these
    bind = op.get_bind()
    for name in ('casestate', 'casetype', 'casepriority', 'documentstate', 'meetingstatus',
                 'customerstatus', 'contactchannel'):
        sa.Enum(name=name).drop(bind, checkfirst=True)
