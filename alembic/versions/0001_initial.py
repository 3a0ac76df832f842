"""Initial schema: automation rules and logs, contact requests, appointments, no-show cases.

Revision ID: 0001_initial
Revises:
Create Date: 2026-10-19
"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = '0001_initial'
down_revision = None
branch_labels = None
depends_on = None

JSON = sa.JSON().with_variant(postgresql.JSONB(astext_type=sa.Text()), 'postgresql')
TS = sa.DateTime(timezone=True)


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column('created_at', TS, nullable=False),
        sa.Column('updated_at', TS, nullable=False),
    ]


def upgrade() -> None:
    # ==========================================================================
    # automation_rules / automation_logs
    # ==========================================================================
    op.create_table(
        'automation_rules',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('name', sa.String(150), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('active', sa.Boolean(), nullable=False),
        sa.Column('priority', sa.String(10), nullable=False),
        sa.Column('allowed_roles', JSON, nullable=True),
        sa.Column('ab_test', JSON, nullable=True),
        sa.Column('active_hours', JSON, nullable=True),
        sa.Column('pause', JSON, nullable=True),
        sa.Column('sla_thresholds', JSON, nullable=True),
        sa.Column('conditions', JSON, nullable=False),
        sa.Column('actions', JSON, nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('idx_rule_active_priority', 'automation_rules', ['active', 'priority'])

    op.create_table(
        'automation_logs',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('rule_id', sa.Uuid(), nullable=False),
        sa.Column('rule_name', sa.String(150), nullable=False),
        sa.Column('target_id', sa.Uuid(), nullable=False),
        sa.Column('target_name', sa.String(255), nullable=True),
        sa.Column('action_summary', sa.Text(), nullable=False),
        sa.Column('outcome', sa.String(20), nullable=False),
        sa.Column('message', sa.Text(), nullable=False),
        sa.Column('timestamp', TS, nullable=False),
        sa.Column('details', JSON, nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('idx_automation_log_rule_ts', 'automation_logs', ['rule_id', 'timestamp'])
    op.create_index('idx_automation_log_ts', 'automation_logs', ['timestamp'])

    # ==========================================================================
    # contact_requests
    # ==========================================================================
    op.create_table(
        'contact_requests',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('full_name', sa.String(255), nullable=False),
        sa.Column('phone', sa.String(50), nullable=True),
        sa.Column('whatsapp', sa.String(50), nullable=True),
        sa.Column('email', sa.String(255), nullable=True),
        sa.Column('social_sender_id', sa.String(100), nullable=True),
        sa.Column('contact_preference', sa.String(20), nullable=True),
        sa.Column('origin', sa.String(30), nullable=False),
        sa.Column('source', sa.String(100), nullable=True),
        sa.Column('campaign', sa.String(150), nullable=True),
        sa.Column('service', sa.String(150), nullable=True),
        sa.Column('branch_id', sa.String(50), nullable=True),
        sa.Column('branch_name', sa.String(150), nullable=True),
        sa.Column('status', sa.String(30), nullable=False),
        sa.Column('status_changed_at', TS, nullable=True),
        sa.Column('tags', JSON, nullable=False),
        sa.Column('owner_name', sa.String(150), nullable=True),
        sa.Column('lead_value', sa.Numeric(12, 2), nullable=True),
        sa.Column('attempt_count', sa.Integer(), nullable=False),
        sa.Column('last_response_at', TS, nullable=True),
        sa.Column('reason_detail', sa.Text(), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('appointment_id', sa.Uuid(), nullable=True),
        sa.Column('version', sa.Integer(), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('idx_contact_status', 'contact_requests', ['status'])
    op.create_index('idx_contact_branch', 'contact_requests', ['branch_id'])

    # ==========================================================================
    # appointments
    # ==========================================================================
    op.create_table(
        'appointments',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('patient_id', sa.Uuid(), nullable=False),
        sa.Column('patient_name', sa.String(255), nullable=False),
        sa.Column('patient_phone', sa.String(50), nullable=True),
        sa.Column('branch_id', sa.String(50), nullable=True),
        sa.Column('channel', sa.String(30), nullable=True),
        sa.Column('scheduled_at', TS, nullable=False),
        sa.Column('status', sa.String(30), nullable=False),
        sa.Column('reminder_sent_at', TS, nullable=True),
        sa.Column('version', sa.Integer(), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('idx_appointment_status_time', 'appointments', ['status', 'scheduled_at'])

    # ==========================================================================
    # noshow_cases
    # ==========================================================================
    op.create_table(
        'noshow_cases',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('appointment_id', sa.Uuid(), nullable=False),
        sa.Column('patient_id', sa.Uuid(), nullable=False),
        sa.Column('patient_name', sa.String(255), nullable=False),
        sa.Column('patient_phone', sa.String(50), nullable=True),
        sa.Column('contact_channel', sa.String(30), nullable=True),
        sa.Column('social_sender_id', sa.String(100), nullable=True),
        sa.Column('branch_id', sa.String(50), nullable=True),
        sa.Column('missed_at', TS, nullable=False),
        sa.Column('motive', sa.String(30), nullable=True),
        sa.Column('motive_detail', sa.Text(), nullable=True),
        sa.Column('follow_up_state', sa.String(30), nullable=False),
        sa.Column('contact_attempts', sa.Integer(), nullable=False),
        sa.Column('last_attempt_at', TS, nullable=True),
        sa.Column('next_attempt_at', TS, nullable=True),
        sa.Column('contact_notes', JSON, nullable=False),
        sa.Column('in_recovery_list', sa.Boolean(), nullable=False),
        sa.Column('recovery_listed_at', TS, nullable=True),
        sa.Column('campaign_id', sa.String(60), nullable=True),
        sa.Column('response_deadline', TS, nullable=False),
        sa.Column('lost_flag', sa.Boolean(), nullable=False),
        sa.Column('lost_at', TS, nullable=True),
        sa.Column('blocked_flag', sa.Boolean(), nullable=False),
        sa.Column('block_reason', sa.Text(), nullable=True),
        sa.Column('blocked_at', TS, nullable=True),
        sa.Column('new_appointment_id', sa.Uuid(), nullable=True),
        sa.Column('rescheduled_at', TS, nullable=True),
        sa.Column('created_by', sa.String(150), nullable=True),
        sa.Column('version', sa.Integer(), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('appointment_id', name='uq_noshow_appointment'),
    )
    op.create_index('idx_noshow_state', 'noshow_cases', ['follow_up_state'])
    op.create_index('idx_noshow_patient', 'noshow_cases', ['patient_id'])


def downgrade() -> None:
    op.drop_table('noshow_cases')
    op.drop_table('appointments')
    op.drop_table('contact_requests')
    op.drop_table('automation_logs')
    op.drop_table('automation_rules')
