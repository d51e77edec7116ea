"""Baseline migration - tenants, membership, activity log and outbox

Revision ID: 0001_baseline
Revises:
Create Date: 2026-10-19

Creates the agency/subaccount tenant tables, users with the one-owner-per-
agency partial index, access grants, invitations, notifications and jobs.
"""
from typing import Sequence, Union

from alembic import op


# revision identifiers, used by Alembic.
revision: str = '0001_baseline'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create tenant, membership and outbox tables."""

    # ==========================================================================
    # Agencies
    # ==========================================================================
    op.execute('''
        CREATE TABLE agencies (
            id UUID NOT NULL,
            name VARCHAR(255) NOT NULL,
            company_email VARCHAR(320) NOT NULL,
            company_phone VARCHAR(50),
            agency_logo TEXT,
            white_label BOOLEAN NOT NULL DEFAULT true,
            address VARCHAR(255),
            city VARCHAR(100),
            zip_code VARCHAR(20),
            state VARCHAR(100),
            country VARCHAR(100),
            goal INTEGER NOT NULL DEFAULT 5,
            customer_id VARCHAR(255),
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            CONSTRAINT pk_agencies PRIMARY KEY (id)
        )
    ''')

    # ==========================================================================
    # Subaccounts
    # ==========================================================================
    op.execute('''
        CREATE TABLE subaccounts (
            id UUID NOT NULL,
            agency_id UUID NOT NULL,
            name VARCHAR(255) NOT NULL,
            company_email VARCHAR(320) NOT NULL,
            company_phone VARCHAR(50),
            sub_account_logo TEXT,
            address VARCHAR(255),
            city VARCHAR(100),
            zip_code VARCHAR(20),
            state VARCHAR(100),
            country VARCHAR(100),
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            CONSTRAINT pk_subaccounts PRIMARY KEY (id),
            CONSTRAINT fk_subaccounts_agency_id_agencies
                FOREIGN KEY (agency_id) REFERENCES agencies (id) ON DELETE CASCADE
        )
    ''')
    op.execute('CREATE INDEX idx_subaccounts_agency_id ON subaccounts (agency_id)')

    # ==========================================================================
    # Users (keyed by identity provider subject)
    # ==========================================================================
    op.execute('''
        CREATE TABLE users (
            id VARCHAR(255) NOT NULL,
            name VARCHAR(255) NOT NULL,
            email VARCHAR(320) NOT NULL,
            avatar_url TEXT,
            role VARCHAR(50) NOT NULL,
            agency_id UUID,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            CONSTRAINT pk_users PRIMARY KEY (id),
            CONSTRAINT uq_users_email UNIQUE (email),
            CONSTRAINT ck_users_role_valid CHECK (
                role IN ('AGENCY_OWNER', 'AGENCY_ADMIN', 'SUBACCOUNT_USER', 'SUBACCOUNT_GUEST')
            ),
            CONSTRAINT fk_users_agency_id_agencies
                FOREIGN KEY (agency_id) REFERENCES agencies (id) ON DELETE CASCADE
        )
    ''')
    op.execute('CREATE INDEX idx_users_agency_id ON users (agency_id)')
    # At most one owner per agency
    op.execute('''
        CREATE UNIQUE INDEX uq_users_agency_owner ON users (agency_id)
        WHERE role = 'AGENCY_OWNER'
    ''')

    # ==========================================================================
    # Permissions (subaccount access grants)
    # ==========================================================================
    op.execute('''
        CREATE TABLE permissions (
            id UUID NOT NULL,
            email VARCHAR(320) NOT NULL,
            sub_account_id UUID NOT NULL,
            access BOOLEAN NOT NULL DEFAULT false,
            CONSTRAINT pk_permissions PRIMARY KEY (id),
            CONSTRAINT uq_permissions_email_subaccount UNIQUE (email, sub_account_id),
            CONSTRAINT fk_permissions_email_users
                FOREIGN KEY (email) REFERENCES users (email)
                ON DELETE CASCADE ON UPDATE CASCADE,
            CONSTRAINT fk_permissions_sub_account_id_subaccounts
                FOREIGN KEY (sub_account_id) REFERENCES subaccounts (id) ON DELETE CASCADE
        )
    ''')
    op.execute('CREATE INDEX idx_permissions_sub_account_id ON permissions (sub_account_id)')

    # ==========================================================================
    # Invitations (deleted on acceptance)
    # ==========================================================================
    op.execute('''
        CREATE TABLE invitations (
            id UUID NOT NULL,
            email VARCHAR(320) NOT NULL,
            agency_id UUID NOT NULL,
            role VARCHAR(50) NOT NULL,
            status VARCHAR(20) NOT NULL,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            CONSTRAINT pk_invitations PRIMARY KEY (id),
            CONSTRAINT uq_invitations_email UNIQUE (email),
            CONSTRAINT ck_invitations_role_valid CHECK (
                role IN ('AGENCY_OWNER', 'AGENCY_ADMIN', 'SUBACCOUNT_USER', 'SUBACCOUNT_GUEST')
            ),
            CONSTRAINT fk_invitations_agency_id_agencies
                FOREIGN KEY (agency_id) REFERENCES agencies (id) ON DELETE CASCADE
        )
    ''')
    op.execute('CREATE INDEX idx_invitations_agency_id ON invitations (agency_id)')

    # ==========================================================================
    # Sidebar options
    # ==========================================================================
    op.execute('''
        CREATE TABLE sidebar_options (
            id UUID NOT NULL,
            name VARCHAR(100) NOT NULL,
            link VARCHAR(500) NOT NULL,
            icon VARCHAR(50) NOT NULL,
            position INTEGER NOT NULL DEFAULT 0,
            agency_id UUID,
            sub_account_id UUID,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            CONSTRAINT pk_sidebar_options PRIMARY KEY (id),
            CONSTRAINT ck_sidebar_options_single_owner CHECK (
                (agency_id IS NULL) <> (sub_account_id IS NULL)
            ),
            CONSTRAINT fk_sidebar_options_agency_id_agencies
                FOREIGN KEY (agency_id) REFERENCES agencies (id) ON DELETE CASCADE,
            CONSTRAINT fk_sidebar_options_sub_account_id_subaccounts
                FOREIGN KEY (sub_account_id) REFERENCES subaccounts (id) ON DELETE CASCADE
        )
    ''')
    op.execute('CREATE INDEX idx_sidebar_options_agency_id ON sidebar_options (agency_id)')
    op.execute('CREATE INDEX idx_sidebar_options_sub_account_id ON sidebar_options (sub_account_id)')

    # ==========================================================================
    # Notifications (activity log, append-only)
    # ==========================================================================
    op.execute('''
        CREATE TABLE notifications (
            id UUID NOT NULL,
            notification TEXT NOT NULL,
            agency_id UUID NOT NULL,
            sub_account_id UUID,
            user_id VARCHAR(255) NOT NULL,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            CONSTRAINT pk_notifications PRIMARY KEY (id),
            CONSTRAINT fk_notifications_agency_id_agencies
                FOREIGN KEY (agency_id) REFERENCES agencies (id) ON DELETE CASCADE,
            CONSTRAINT fk_notifications_sub_account_id_subaccounts
                FOREIGN KEY (sub_account_id) REFERENCES subaccounts (id) ON DELETE CASCADE,
            CONSTRAINT fk_notifications_user_id_users
                FOREIGN KEY (user_id) REFERENCES users (id) ON DELETE CASCADE
        )
    ''')
    op.execute('CREATE INDEX idx_notifications_agency_created ON notifications (agency_id, created_at)')
    op.execute('CREATE INDEX idx_notifications_sub_account_id ON notifications (sub_account_id)')
    op.execute('CREATE INDEX idx_notifications_user_id ON notifications (user_id)')

    # ==========================================================================
    # Jobs (outbox)
    # ==========================================================================
    op.execute('''
        CREATE TABLE jobs (
            id UUID NOT NULL,
            agency_id UUID,
            job_type VARCHAR(50) NOT NULL,
            payload JSONB NOT NULL,
            run_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            status VARCHAR(20) NOT NULL,
            attempts INTEGER NOT NULL DEFAULT 0,
            max_attempts INTEGER NOT NULL DEFAULT 5,
            last_error TEXT,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            completed_at TIMESTAMPTZ,
            idempotency_key VARCHAR(255),
            CONSTRAINT pk_jobs PRIMARY KEY (id),
            CONSTRAINT uq_jobs_idempotency_key UNIQUE (idempotency_key),
            CONSTRAINT fk_jobs_agency_id_agencies
                FOREIGN KEY (agency_id) REFERENCES agencies (id) ON DELETE CASCADE
        )
    ''')
    op.execute('CREATE INDEX idx_jobs_pending ON jobs (status, run_at)')
    op.execute('CREATE INDEX idx_jobs_agency ON jobs (agency_id, created_at)')


def downgrade() -> None:
    """Drop all tables (reverse dependency order)."""
    for table in (
        'jobs',
        'notifications',
        'sidebar_options',
        'invitations',
        'permissions',
        'users',
        'subaccounts',
        'agencies',
    ):
        op.execute(f'DROP TABLE IF EXISTS {table} CASCADE')
