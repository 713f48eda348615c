"""Pet health records and document import schema

Revision ID: 20260301_import_schema
Revises:
Create Date: 2026-03-01

Adds:
- users, pets, pet_owners
- the six pet health-record tables
- audit_logs (append-only)
- import_uploads, import_extractions, import_extraction_items
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '20260301_import_schema'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _pet_fk() -> sa.Column:
    return sa.Column('pet_id', sa.Integer(), sa.ForeignKey('pets.id', ondelete='CASCADE'), nullable=False, index=True)


def _created_at() -> sa.Column:
    return sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False)


def upgrade() -> None:
    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=True),
        _created_at(),
    )
    op.create_index('ix_users_email', 'users', ['email'], unique=True)

    op.create_table(
        'pets',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('owner_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False, index=True),
        sa.Column('name', sa.String(length=100), nullable=False),
        sa.Column('species', sa.String(length=50), nullable=True),
        sa.Column('breed', sa.String(length=100), nullable=True),
        _created_at(),
    )

    op.create_table(
        'pet_owners',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        _pet_fk(),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True),
        # Valid values: owner, editor, viewer
        sa.Column('role', sa.String(length=20), nullable=False, server_default='viewer'),
        sa.Column('invited_by', sa.Integer(), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('invited_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('accepted_at', sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint('pet_id', 'user_id', name='uq_pet_owners_pet_user'),
    )

    # Health records
    op.create_table(
        'pet_vaccinations',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        _pet_fk(),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('administered_date', sa.Date(), nullable=False),
        sa.Column('expiration_date', sa.Date(), nullable=True),
        sa.Column('administered_by', sa.String(length=255), nullable=True),
        sa.Column('lot_number', sa.String(length=100), nullable=True),
        _created_at(),
    )
    op.create_table(
        'pet_medications',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        _pet_fk(),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('dosage', sa.String(length=100), nullable=True),
        sa.Column('frequency', sa.String(length=100), nullable=True),
        sa.Column('start_date', sa.Date(), nullable=True),
        sa.Column('end_date', sa.Date(), nullable=True),
        sa.Column('prescribing_vet', sa.String(length=255), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='true'),
        _created_at(),
    )
    op.create_table(
        'pet_conditions',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        _pet_fk(),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('diagnosed_date', sa.Date(), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('severity', sa.String(length=20), nullable=True),
        _created_at(),
    )
    op.create_table(
        'pet_allergies',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        _pet_fk(),
        sa.Column('allergen', sa.String(length=255), nullable=False),
        sa.Column('reaction', sa.Text(), nullable=True),
        sa.Column('severity', sa.String(length=20), nullable=True),
        _created_at(),
    )
    op.create_table(
        'pet_vets',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        _pet_fk(),
        sa.Column('clinic_name', sa.String(length=255), nullable=False),
        sa.Column('vet_name', sa.String(length=255), nullable=True),
        sa.Column('phone', sa.String(length=50), nullable=True),
        sa.Column('email', sa.String(length=255), nullable=True),
        sa.Column('address', sa.Text(), nullable=True),
        sa.Column('is_primary', sa.Boolean(), nullable=False, server_default='false'),
        _created_at(),
    )
    op.create_table(
        'pet_emergency_contacts',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        _pet_fk(),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('relationship', sa.String(length=100), nullable=True),
        sa.Column('phone', sa.String(length=50), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=True),
        sa.Column('is_primary', sa.Boolean(), nullable=False, server_default='false'),
        _created_at(),
    )

    # Audit log; source_upload_id has no foreign key, entries outlive their upload
    op.create_table(
        'audit_logs',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('entity_type', sa.String(length=50), nullable=False),
        sa.Column('entity_id', sa.Integer(), nullable=False),
        sa.Column('pet_id', sa.Integer(), nullable=True),
        sa.Column('action', sa.String(length=20), nullable=False),
        sa.Column('changed_by', sa.Integer(), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        sa.Column('source', sa.String(length=30), nullable=False, server_default='manual'),
        sa.Column('source_upload_id', sa.Integer(), nullable=True),
        sa.Column('old_values', sa.JSON(), nullable=True),
        sa.Column('new_values', sa.JSON(), nullable=True),
        sa.Column('changed_fields', sa.JSON(), nullable=True),
        sa.Column('ip_address', sa.String(length=45), nullable=True),
        sa.Column('user_agent', sa.Text(), nullable=True),
        _created_at(),
    )
    op.create_index('ix_audit_logs_entity', 'audit_logs', ['entity_type', 'entity_id'])
    op.create_index('ix_audit_logs_pet_id', 'audit_logs', ['pet_id'])
    op.create_index('ix_audit_logs_source_upload_id', 'audit_logs', ['source_upload_id'])
    op.create_index('ix_audit_logs_created_at', 'audit_logs', ['created_at'])

    # Import pipeline
    op.create_table(
        'import_uploads',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        _pet_fk(),
        sa.Column('uploaded_by', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
        # Valid values: pdf_import, image_import, document_import
        sa.Column('source', sa.String(length=30), nullable=False, index=True),
        sa.Column('filename', sa.String(length=255), nullable=False),
        sa.Column('original_filename', sa.String(length=255), nullable=False),
        sa.Column('file_path', sa.String(length=500), nullable=False),
        sa.Column('file_size', sa.Integer(), nullable=False),
        sa.Column('mime_type', sa.String(length=100), nullable=False),
        sa.Column('media_type', sa.String(length=10), nullable=False),
        # Valid values: pending, classifying, processing, completed, failed
        sa.Column('status', sa.String(length=20), nullable=False, server_default='pending', index=True),
        sa.Column('detected_type', sa.String(length=50), nullable=True),
        sa.Column('classification_confidence', sa.Integer(), nullable=True),
        sa.Column('classification_explanation', sa.Text(), nullable=True),
        sa.Column('processing_started_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('processing_completed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('error_message', sa.Text(), nullable=True),
        _created_at(),
        sa.CheckConstraint(
            "status IN ('pending', 'classifying', 'processing', 'completed', 'failed')",
            name='ck_import_uploads_status',
        ),
    )
    op.create_table(
        'import_extractions',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('upload_id', sa.Integer(), sa.ForeignKey('import_uploads.id', ondelete='CASCADE'), nullable=False, unique=True),
        sa.Column('raw_response', sa.JSON(), nullable=True),
        sa.Column('mapped_data', sa.JSON(), nullable=True),
        sa.Column('extraction_model', sa.String(length=100), nullable=True),
        sa.Column('tokens_used', sa.Integer(), nullable=True),
        sa.Column('status', sa.String(length=30), nullable=False, server_default='pending_review'),
        sa.Column('reviewed_by', sa.Integer(), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('reviewed_at', sa.DateTime(timezone=True), nullable=True),
        _created_at(),
    )
    op.create_table(
        'import_extraction_items',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('extraction_id', sa.Integer(), sa.ForeignKey('import_extractions.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('record_type', sa.String(length=30), nullable=False),
        sa.Column('extracted_data', sa.JSON(), nullable=False),
        sa.Column('confidence_score', sa.Float(), nullable=False, server_default='0.5'),
        sa.Column('user_modified_data', sa.JSON(), nullable=True),
        # Valid values: pending, approved, rejected, modified
        sa.Column('status', sa.String(length=20), nullable=False, server_default='pending'),
        sa.Column('created_record_id', sa.Integer(), nullable=True),
        sa.Column('created_record_type', sa.String(length=50), nullable=True),
        _created_at(),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.CheckConstraint(
            "(status = 'approved') = (created_record_id IS NOT NULL)",
            name='ck_import_extraction_items_created_record',
        ),
    )


def downgrade() -> None:
    op.drop_table('import_extraction_items')
    op.drop_table('import_extractions')
    op.drop_table('import_uploads')
    op.drop_index('ix_audit_logs_created_at', table_name='audit_logs')
    op.drop_index('ix_audit_logs_source_upload_id', table_name='audit_logs')
    op.drop_index('ix_audit_logs_pet_id', table_name='audit_logs')
    op.drop_index('ix_audit_logs_entity', table_name='audit_logs')
    op.drop_table('audit_logs')
    op.drop_table('pet_emergency_contacts')
    op.drop_table('pet_vets')
    op.drop_table('pet_allergies')
    op.drop_table('pet_conditions')
    op.drop_table('pet_medications')
    op.drop_table('pet_vaccinations')
    op.drop_table('pet_owners')
    op.drop_table('pets')
    op.drop_index('ix_users_email', table_name='users')
    op.drop_table('users')
