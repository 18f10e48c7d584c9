"""Add analysis session and progress tables

Revision ID: 001_analysis_sessions
Revises:
Create Date: 2024-01-01 00:00:00.000000

"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '001_analysis_sessions'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    # Create analysis_sessions table
    op.create_table('analysis_sessions',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('url', sa.Text(), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('error', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
        sa.Column('completed_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('idx_analysis_session_status', 'analysis_sessions', ['status', 'created_at'])

    # Create analysis_progress table
    op.create_table('analysis_progress',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('session_id', sa.String(length=36), nullable=False),
        sa.Column('section_name', sa.String(length=32), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('progress_percentage', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('data', sa.JSON(), nullable=True),
        sa.Column('started_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('completed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
        sa.ForeignKeyConstraint(['session_id'], ['analysis_sessions.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('session_id', 'section_name', name='uq_analysis_progress_session_section')
    )
    op.create_index(op.f('ix_analysis_progress_id'), 'analysis_progress', ['id'], unique=False)
    op.create_index('idx_analysis_progress_status', 'analysis_progress', ['status', 'started_at'])


def downgrade():
    op.drop_index('idx_analysis_progress_status', table_name='analysis_progress')
    op.drop_index(op.f('ix_analysis_progress_id'), table_name='analysis_progress')
    op.drop_table('analysis_progress')
    op.drop_index('idx_analysis_session_status', table_name='analysis_sessions')
    op.drop_table('analysis_sessions')
