"""initial mastery schema

Revision ID: 5a1c9e0d2b7f
Revises:
Create Date: 2026-10-18 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '5a1c9e0d2b7f'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

# Tables whose rows are only visible inside the caller's organization
ORG_SCOPED_TABLES = (
    'students',
    'admissions',
    'sections',
    'section_students',
    'competencies',
    'experience_competency_links',
    'observations',
    'assessment_label_sets',
    'assessment_labels',
    'assessments',
    'portfolio_artifacts',
    'portfolio_artifact_tags',
    'syllabus_weeks',
    'syllabus_week_competency_links',
    'weekly_lesson_logs',
    'lesson_log_learner_verifications',
    'mastery_models',
    'mastery_levels',
    'mastery_snapshot_runs',
    'learner_outcome_mastery_snapshots',
    'mastery_snapshot_evidence_links',
    'mastery_override_logs',
)

CALLER_ORG = (
    "(SELECT organization_id FROM profiles "
    "WHERE id = (current_setting('request.jwt.claims', true)::jsonb ->> 'sub')::uuid)"
)


def _id():
    return sa.Column('id', sa.UUID(), server_default=sa.text('gen_random_uuid()'), nullable=False)


def _org():
    return sa.Column('organization_id', sa.UUID(), nullable=False)


def _created():
    return sa.Column('created_at', sa.TIMESTAMP(timezone=True), server_default=sa.text('NOW()'), nullable=False)


def _updated():
    return sa.Column('updated_at', sa.TIMESTAMP(timezone=True), server_default=sa.text('NOW()'), nullable=False)


def _archived():
    return sa.Column('archived_at', sa.TIMESTAMP(timezone=True), nullable=True)


def _audit():
    return [
        sa.Column('created_by', sa.UUID(), nullable=True),
        sa.Column('updated_by', sa.UUID(), nullable=True),
        _created(),
        _updated(),
        _archived(),
    ]


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table(
        'profiles',
        sa.Column('id', sa.UUID(), nullable=False, comment='Auth user id'),
        sa.Column('organization_id', sa.UUID(), nullable=True),
        sa.Column('school_id', sa.UUID(), nullable=True),
        sa.Column('email', sa.String(), nullable=True),
        sa.Column('full_name', sa.String(), nullable=True),
        sa.Column('role', sa.String(), nullable=True, comment='Free-text role, normalized by the API'),
        sa.Column('is_super_admin', sa.Boolean(), server_default='false', nullable=False),
        _created(),
        _updated(),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_profiles_organization_id', 'profiles', ['organization_id'])

    op.create_table(
        'students',
        _id(),
        _org(),
        sa.Column('school_id', sa.UUID(), nullable=True),
        sa.Column('profile_id', sa.UUID(), nullable=True, comment='Login of the student, when they have one'),
        sa.Column('first_name', sa.String(), nullable=False),
        sa.Column('last_name', sa.String(), nullable=False),
        sa.Column('email', sa.String(), nullable=True),
        sa.Column('batch_id', sa.UUID(), nullable=True),
        _created(),
        _archived(),
        sa.ForeignKeyConstraint(['profile_id'], ['profiles.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_students_profile_id', 'students', ['profile_id'])

    op.create_table(
        'admissions',
        _id(),
        _org(),
        sa.Column('school_id', sa.UUID(), nullable=True),
        sa.Column('program_id', sa.UUID(), nullable=True),
        sa.Column('section_id', sa.UUID(), nullable=True),
        sa.Column('school_year_id', sa.UUID(), nullable=True),
        sa.Column('first_name', sa.String(), nullable=False),
        sa.Column('last_name', sa.String(), nullable=False),
        sa.Column('email', sa.String(), nullable=True),
        sa.Column('status', sa.String(), server_default='pending', nullable=False),
        _created(),
        sa.PrimaryKeyConstraint('id'),
    )

    op.create_table(
        'sections',
        _id(),
        _org(),
        sa.Column('school_id', sa.UUID(), nullable=True),
        sa.Column('program_id', sa.UUID(), nullable=True),
        sa.Column('name', sa.String(), nullable=False),
        _archived(),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_sections_program_id', 'sections', ['program_id'])

    op.create_table(
        'section_students',
        _id(),
        _org(),
        sa.Column('section_id', sa.UUID(), nullable=False),
        sa.Column('student_id', sa.UUID(), nullable=False),
        _archived(),
        sa.ForeignKeyConstraint(['section_id'], ['sections.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['student_id'], ['students.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_section_students_section_id', 'section_students', ['section_id'])

    op.create_table(
        'competencies',
        _id(),
        _org(),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        _archived(),
        sa.PrimaryKeyConstraint('id'),
    )

    op.create_table(
        'experience_competency_links',
        _id(),
        _org(),
        sa.Column('experience_id', sa.UUID(), nullable=False),
        sa.Column('competency_id', sa.UUID(), nullable=False),
        _archived(),
        sa.ForeignKeyConstraint(['competency_id'], ['competencies.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_experience_competency_links_experience_id', 'experience_competency_links', ['experience_id'])

    op.create_table(
        'observations',
        _id(),
        _org(),
        sa.Column('learner_id', sa.UUID(), nullable=False),
        sa.Column('competency_id', sa.UUID(), nullable=False),
        sa.Column('experience_id', sa.UUID(), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('observed_at', sa.TIMESTAMP(timezone=True), server_default=sa.text('NOW()'), nullable=False),
        sa.Column('created_by', sa.UUID(), nullable=True),
        _archived(),
        sa.ForeignKeyConstraint(['learner_id'], ['students.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['competency_id'], ['competencies.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_observations_learner_id', 'observations', ['learner_id'])
    op.create_index('ix_observations_experience_id', 'observations', ['experience_id'])

    op.create_table(
        'assessment_label_sets',
        _id(),
        _org(),
        sa.Column('school_id', sa.UUID(), nullable=True),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('is_active', sa.Boolean(), server_default='true', nullable=False),
        *_audit(),
        sa.PrimaryKeyConstraint('id'),
    )

    op.create_table(
        'assessment_labels',
        _id(),
        _org(),
        sa.Column('label_set_id', sa.UUID(), nullable=False),
        sa.Column('label_text', sa.String(), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('display_order', sa.Integer(), server_default='0', nullable=False),
        *_audit(),
        sa.ForeignKeyConstraint(['label_set_id'], ['assessment_label_sets.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_assessment_labels_label_set_id', 'assessment_labels', ['label_set_id'])

    op.create_table(
        'assessments',
        _id(),
        _org(),
        sa.Column('learner_id', sa.UUID(), nullable=False),
        sa.Column('competency_id', sa.UUID(), nullable=True),
        sa.Column('title', sa.String(), nullable=False),
        sa.Column('status', sa.String(), server_default='pending', nullable=False,
                  comment='pending or completed; only completed assessments count as evidence'),
        sa.Column('label_id', sa.UUID(), nullable=True),
        sa.Column('assessed_at', sa.TIMESTAMP(timezone=True), server_default=sa.text('NOW()'), nullable=False),
        sa.Column('created_by', sa.UUID(), nullable=True),
        _archived(),
        sa.ForeignKeyConstraint(['learner_id'], ['students.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['competency_id'], ['competencies.id'], ondelete='SET NULL'),
        sa.ForeignKeyConstraint(['label_id'], ['assessment_labels.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_assessments_learner_id', 'assessments', ['learner_id'])

    op.create_table(
        'portfolio_artifacts',
        _id(),
        _org(),
        sa.Column('student_id', sa.UUID(), nullable=False),
        sa.Column('title', sa.String(), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('created_by', sa.UUID(), nullable=True),
        _created(),
        _archived(),
        sa.ForeignKeyConstraint(['student_id'], ['students.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_portfolio_artifacts_student_id', 'portfolio_artifacts', ['student_id'])

    op.create_table(
        'portfolio_artifact_tags',
        _id(),
        _org(),
        sa.Column('artifact_id', sa.UUID(), nullable=False),
        sa.Column('competency_id', sa.UUID(), nullable=False),
        _archived(),
        sa.ForeignKeyConstraint(['artifact_id'], ['portfolio_artifacts.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['competency_id'], ['competencies.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_portfolio_artifact_tags_artifact_id', 'portfolio_artifact_tags', ['artifact_id'])

    op.create_table(
        'syllabus_weeks',
        _id(),
        _org(),
        sa.Column('syllabus_id', sa.UUID(), nullable=False),
        sa.Column('week_number', sa.Integer(), nullable=False),
        _archived(),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_syllabus_weeks_syllabus_id', 'syllabus_weeks', ['syllabus_id'])

    op.create_table(
        'syllabus_week_competency_links',
        _id(),
        _org(),
        sa.Column('syllabus_week_id', sa.UUID(), nullable=False),
        sa.Column('competency_id', sa.UUID(), nullable=False),
        _archived(),
        sa.ForeignKeyConstraint(['syllabus_week_id'], ['syllabus_weeks.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['competency_id'], ['competencies.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(
        'ix_syllabus_week_competency_links_syllabus_week_id',
        'syllabus_week_competency_links',
        ['syllabus_week_id'],
    )

    op.create_table(
        'weekly_lesson_logs',
        _id(),
        _org(),
        sa.Column('syllabus_id', sa.UUID(), nullable=False),
        sa.Column('week_start_date', sa.Date(), nullable=False),
        sa.Column('created_by', sa.UUID(), nullable=True),
        _archived(),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_weekly_lesson_logs_syllabus_id', 'weekly_lesson_logs', ['syllabus_id'])

    op.create_table(
        'lesson_log_learner_verifications',
        _id(),
        _org(),
        sa.Column('lesson_log_id', sa.UUID(), nullable=False),
        sa.Column('learner_id', sa.UUID(), nullable=False),
        sa.Column('accomplished', sa.Boolean(), server_default='false', nullable=False),
        sa.Column('evidence_text', sa.Text(), nullable=True),
        _created(),
        _archived(),
        sa.ForeignKeyConstraint(['lesson_log_id'], ['weekly_lesson_logs.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['learner_id'], ['students.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(
        'ix_lesson_log_learner_verifications_lesson_log_id',
        'lesson_log_learner_verifications',
        ['lesson_log_id'],
    )

    op.create_table(
        'mastery_models',
        _id(),
        _org(),
        sa.Column('school_id', sa.UUID(), nullable=True),
        sa.Column('program_id', sa.UUID(), nullable=True),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('threshold_not_started', sa.Numeric(precision=6, scale=2), server_default='0', nullable=False),
        sa.Column('threshold_emerging', sa.Numeric(precision=6, scale=2), server_default='1', nullable=False),
        sa.Column('threshold_developing', sa.Numeric(precision=6, scale=2), server_default='2', nullable=False),
        sa.Column('threshold_proficient', sa.Numeric(precision=6, scale=2), server_default='3', nullable=False),
        sa.Column('threshold_mastered', sa.Numeric(precision=6, scale=2), server_default='4', nullable=False),
        sa.Column('is_active', sa.Boolean(), server_default='true', nullable=False),
        *_audit(),
        sa.PrimaryKeyConstraint('id'),
        comment='Mastery scale with evidence-count thresholds',
    )

    op.create_table(
        'mastery_levels',
        _id(),
        _org(),
        sa.Column('mastery_model_id', sa.UUID(), nullable=False),
        sa.Column('label', sa.String(), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('display_order', sa.Integer(), server_default='0', nullable=False),
        sa.Column('is_terminal', sa.Boolean(), server_default='false', nullable=False),
        *_audit(),
        sa.ForeignKeyConstraint(['mastery_model_id'], ['mastery_models.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_mastery_levels_mastery_model_id', 'mastery_levels', ['mastery_model_id'])

    op.create_table(
        'mastery_snapshot_runs',
        _id(),
        _org(),
        sa.Column('school_id', sa.UUID(), nullable=True),
        sa.Column('mastery_model_id', sa.UUID(), nullable=True),
        sa.Column('scope_type', sa.String(length=32), nullable=False,
                  comment='experience, syllabus, program or section'),
        sa.Column('scope_id', sa.UUID(), nullable=False),
        sa.Column('school_year_id', sa.UUID(), nullable=True),
        sa.Column('quarter', sa.String(), nullable=True),
        sa.Column('term', sa.String(), nullable=True),
        sa.Column('snapshot_date', sa.Date(), nullable=False),
        sa.Column('snapshot_count', sa.Integer(), server_default='0', nullable=False),
        sa.Column('created_by', sa.UUID(), nullable=True),
        _created(),
        _updated(),
        _archived(),
        sa.ForeignKeyConstraint(['mastery_model_id'], ['mastery_models.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
    )

    op.create_table(
        'learner_outcome_mastery_snapshots',
        _id(),
        _org(),
        sa.Column('school_id', sa.UUID(), nullable=True),
        sa.Column('snapshot_run_id', sa.UUID(), nullable=True),
        sa.Column('learner_id', sa.UUID(), nullable=False),
        sa.Column('competency_id', sa.UUID(), nullable=True),
        sa.Column('outcome_id', sa.UUID(), nullable=True),
        sa.Column('teacher_id', sa.UUID(), nullable=False, comment='Author of the proposal'),
        sa.Column('mastery_level_id', sa.UUID(), nullable=False),
        sa.Column('rationale_text', sa.Text(), nullable=False),
        sa.Column('evidence_count', sa.Integer(), server_default='0', nullable=False),
        sa.Column('last_evidence_at', sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column('snapshot_date', sa.Date(), server_default=sa.text('CURRENT_DATE'), nullable=False),
        sa.Column('status', sa.String(length=32), server_default='draft', nullable=False,
                  comment='draft, submitted, approved or changes_requested'),
        sa.Column('submitted_at', sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column('reviewed_by', sa.UUID(), nullable=True, comment='Set only by approve and override'),
        sa.Column('reviewed_at', sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column('reviewer_notes', sa.Text(), nullable=True),
        sa.Column('override_justification', sa.Text(), nullable=True),
        *_audit(),
        sa.ForeignKeyConstraint(['snapshot_run_id'], ['mastery_snapshot_runs.id'], ondelete='SET NULL'),
        sa.ForeignKeyConstraint(['learner_id'], ['students.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['competency_id'], ['competencies.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['mastery_level_id'], ['mastery_levels.id'], ondelete='RESTRICT'),
        sa.PrimaryKeyConstraint('id'),
        sa.CheckConstraint(
            "status IN ('draft', 'submitted', 'approved', 'changes_requested')",
            name='ck_mastery_snapshot_status',
        ),
        comment='Mastery proposals and their review state',
    )
    op.create_index(
        'ix_mastery_snapshot_owner',
        'learner_outcome_mastery_snapshots',
        ['organization_id', 'learner_id', 'competency_id', 'teacher_id'],
    )
    op.create_index('ix_mastery_snapshot_status', 'learner_outcome_mastery_snapshots', ['organization_id', 'status'])

    op.create_table(
        'mastery_snapshot_evidence_links',
        _id(),
        _org(),
        sa.Column('snapshot_id', sa.UUID(), nullable=False),
        sa.Column('evidence_type', sa.String(length=32), nullable=False),
        sa.Column('assessment_id', sa.UUID(), nullable=True),
        sa.Column('observation_id', sa.UUID(), nullable=True),
        sa.Column('portfolio_artifact_id', sa.UUID(), nullable=True),
        sa.Column('lesson_log_id', sa.UUID(), nullable=True),
        sa.Column('attendance_session_id', sa.UUID(), nullable=True),
        sa.Column('created_by', sa.UUID(), nullable=True),
        _created(),
        _archived(),
        sa.ForeignKeyConstraint(['snapshot_id'], ['learner_outcome_mastery_snapshots.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_mastery_snapshot_evidence_links_snapshot_id', 'mastery_snapshot_evidence_links', ['snapshot_id'])

    op.create_table(
        'mastery_override_logs',
        _id(),
        _org(),
        sa.Column('snapshot_id', sa.UUID(), nullable=False),
        sa.Column('previous_mastery_level_id', sa.UUID(), nullable=True),
        sa.Column('new_mastery_level_id', sa.UUID(), nullable=False),
        sa.Column('justification_text', sa.Text(), nullable=False),
        sa.Column('created_by', sa.UUID(), nullable=False),
        _created(),
        sa.ForeignKeyConstraint(['snapshot_id'], ['learner_outcome_mastery_snapshots.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_mastery_override_logs_snapshot_id', 'mastery_override_logs', ['snapshot_id'])

    for table in ORG_SCOPED_TABLES:
        op.create_index(f'ix_{table}_organization_id', table, ['organization_id'])
        op.execute(f'ALTER TABLE {table} ENABLE ROW LEVEL SECURITY')
        op.execute(
            f'CREATE POLICY {table}_org_isolation ON {table} '
            f'USING (organization_id = {CALLER_ORG}) '
            f'WITH CHECK (organization_id = {CALLER_ORG})'
        )


def downgrade() -> None:
    """Downgrade schema."""
    for table in reversed(ORG_SCOPED_TABLES):
        op.execute(f'DROP POLICY IF EXISTS {table}_org_isolation ON {table}')
        op.drop_table(table)
    op.drop_table('profiles')
