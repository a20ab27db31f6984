"""Baseline migration - tenants, admins, training catalog and certifications

Revision ID: 0001_certifications_baseline
Revises: 
Create Date: 2026-10-19

Portable DDL (Postgres in production, SQLite for local runs).
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '0001_certifications_baseline'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create tenant, admin, training and certification tables."""

    # ==========================================================================
    # Tenants
    # ==========================================================================
    op.create_table(
        'tenants',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('slug', sa.String(100), nullable=False, unique=True),
        sa.Column('contact_email', sa.String(255), nullable=True),
        sa.Column('contact_phone', sa.String(50), nullable=True),
        sa.Column('website', sa.String(255), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )

    # ==========================================================================
    # Admin users
    # ==========================================================================
    op.create_table(
        'admin_users',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('tenant_id', sa.Uuid(), sa.ForeignKey('tenants.id', ondelete='CASCADE'), nullable=True),
        sa.Column('email', sa.String(255), nullable=False, unique=True),
        sa.Column('display_name', sa.String(255), nullable=False),
        sa.Column('role', sa.String(30), nullable=False),
        sa.Column('is_active', sa.Boolean(), server_default=sa.true(), nullable=False),
        sa.Column('token_version', sa.Integer(), server_default=sa.text('1'), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index('idx_admin_users_tenant', 'admin_users', ['tenant_id'])

    # ==========================================================================
    # Customers and courses
    # ==========================================================================
    op.create_table(
        'customers',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('tenant_id', sa.Uuid(), sa.ForeignKey('tenants.id', ondelete='CASCADE'), nullable=False),
        sa.Column('first_name', sa.String(100), nullable=False),
        sa.Column('last_name', sa.String(100), nullable=False),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index('idx_customers_tenant_email', 'customers', ['tenant_id', 'email'])

    op.create_table(
        'courses',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('tenant_id', sa.Uuid(), sa.ForeignKey('tenants.id', ondelete='CASCADE'), nullable=False),
        sa.Column('title', sa.String(255), nullable=False),
        sa.Column('category', sa.String(50), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index('idx_courses_tenant_category', 'courses', ['tenant_id', 'category'])

    # ==========================================================================
    # Achievements (certifications)
    # ==========================================================================
    op.create_table(
        'achievements',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('tenant_id', sa.Uuid(), sa.ForeignKey('tenants.id', ondelete='CASCADE'), nullable=False),
        sa.Column('customer_id', sa.Uuid(), sa.ForeignKey('customers.id', ondelete='CASCADE'), nullable=False),
        sa.Column('course_id', sa.Uuid(), sa.ForeignKey('courses.id', ondelete='CASCADE'), nullable=False),
        sa.Column('certification_date', sa.DateTime(timezone=True), nullable=False),
        sa.Column('expiry_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('is_expired', sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column('reminders_sent', sa.Integer(), server_default=sa.text('0'), nullable=False),
        sa.Column('next_reminder_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('certificate_number', sa.String(100), nullable=True),
        sa.Column('attached_file', sa.JSON(), nullable=True),
        sa.Column('reminder_claimed_until', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.CheckConstraint('reminders_sent >= 0', name='ck_achievements_reminders_sent'),
    )
    op.create_index('idx_achievements_tenant_expiry', 'achievements', ['tenant_id', 'is_expired', 'expiry_date'])
    op.create_index('idx_achievements_next_reminder', 'achievements', ['next_reminder_date'])
    op.create_index('idx_achievements_customer', 'achievements', ['customer_id'])

    # ==========================================================================
    # Reminder audit trail (append-only)
    # ==========================================================================
    op.create_table(
        'certification_reminders',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('tenant_id', sa.Uuid(), sa.ForeignKey('tenants.id', ondelete='CASCADE'), nullable=False),
        sa.Column('achievement_id', sa.Uuid(), sa.ForeignKey('achievements.id', ondelete='CASCADE'), nullable=False),
        sa.Column('reminder_type', sa.String(20), nullable=False),
        sa.Column('scheduled_for', sa.DateTime(timezone=True), nullable=False),
        sa.Column('sent_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('email_sent', sa.Boolean(), nullable=False),
        sa.Column('email_subject', sa.String(300), nullable=False),
        sa.Column('email_content', sa.Text(), nullable=False),
        sa.Column('error', sa.Text(), nullable=True),
    )
    op.create_index('idx_cert_reminders_achievement', 'certification_reminders', ['achievement_id', 'sent_at'])
    op.create_index('idx_cert_reminders_tenant', 'certification_reminders', ['tenant_id', 'sent_at'])


def downgrade() -> None:
    """Drop all tables (reverse dependency order)."""
    op.drop_table('certification_reminders')
    op.drop_table('achievements')
    op.drop_table('courses')
    op.drop_table('customers')
    op.drop_table('admin_users')
    op.drop_table('tenants')
