"""Initial schema

Revision ID: 0001
Revises:
Create Date: 2025-01-06 10:00:00.000000

"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '0001'
down_revision = None
branch_labels = None
depends_on = None

assignment_type = sa.Enum('essay', 'quiz', 'file_upload', 'mixed', 'coding', name='assignment_type')
submission_status = sa.Enum('draft', 'submitted', 'graded', name='submission_status')
question_type = sa.Enum('multiple_choice', 'true_false', 'short_answer', 'essay', name='question_type')


def upgrade() -> None:
    # Create assignments table
    op.create_table('assignments',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('course_id', sa.Integer(), nullable=True),
        sa.Column('title', sa.String(length=255), nullable=False),
        sa.Column('type', assignment_type, nullable=False),
        sa.Column('due_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('max_score', sa.Float(), nullable=False),
        sa.Column('allow_late_submissions', sa.Boolean(), nullable=False),
        sa.Column('late_submission_penalty', sa.Float(), nullable=False),
        sa.Column('max_late_days', sa.Integer(), nullable=False),
        sa.Column('quiz_questions', sa.JSON(), nullable=True),
        sa.Column('auto_grading_enabled', sa.Boolean(), nullable=False),
        sa.Column('allow_resubmission', sa.Boolean(), nullable=False),
        sa.Column('max_attempts', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=True),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_assignments_course_id', 'assignments', ['course_id'])

    # Create rubrics table
    op.create_table('rubrics',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('assignment_id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('criteria', sa.JSON(), nullable=False),
        sa.Column('created_by', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=True),
        sa.ForeignKeyConstraint(['assignment_id'], ['assignments.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )

    # Create automated_grading table
    op.create_table('automated_grading',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('assignment_id', sa.Integer(), nullable=False),
        sa.Column('question_index', sa.Integer(), nullable=False),
        sa.Column('question_type', question_type, nullable=False),
        sa.Column('correct_answer', sa.Text(), nullable=False),
        sa.Column('variations', sa.JSON(), nullable=True),
        sa.Column('points', sa.Float(), nullable=False),
        sa.Column('case_sensitive', sa.Boolean(), nullable=False),
        sa.Column('partial_credit_rules', sa.JSON(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=True),
        sa.ForeignKeyConstraint(['assignment_id'], ['assignments.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('assignment_id', 'question_index', name='uq_grading_rule_question')
    )

    # Create submissions table
    op.create_table('submissions',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('assignment_id', sa.Integer(), nullable=False),
        sa.Column('student_id', sa.Integer(), nullable=False),
        sa.Column('status', submission_status, nullable=False),
        sa.Column('grade', sa.Float(), nullable=True),
        sa.Column('feedback', sa.Text(), nullable=True),
        sa.Column('graded_by', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['assignment_id'], ['assignments.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('assignment_id', 'student_id', name='uq_submission_assignment_student')
    )
    op.create_index('idx_submissions_student_id', 'submissions', ['student_id'])

    # Create submission_versions table
    op.create_table('submission_versions',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('submission_id', sa.Integer(), nullable=False),
        sa.Column('version_number', sa.Integer(), nullable=False),
        sa.Column('content', sa.Text(), nullable=True),
        sa.Column('quiz_answers', sa.JSON(), nullable=True),
        sa.Column('is_draft', sa.Boolean(), nullable=False),
        sa.Column('auto_saved', sa.Boolean(), nullable=False),
        sa.Column('submitted_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['submission_id'], ['submissions.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('submission_id', 'version_number', name='uq_submission_version_number')
    )

    # Create submission_files table
    op.create_table('submission_files',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('version_id', sa.Integer(), nullable=False),
        sa.Column('original_filename', sa.String(length=255), nullable=False),
        sa.Column('stored_filename', sa.String(length=255), nullable=False),
        sa.Column('size', sa.Integer(), nullable=False),
        sa.Column('mime_type', sa.String(length=100), nullable=True),
        sa.Column('hash', sa.String(length=64), nullable=True),
        sa.Column('upload_order', sa.Integer(), nullable=False),
        sa.Column('uploaded_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['version_id'], ['submission_versions.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('idx_submission_files_stored_filename', 'submission_files', ['stored_filename'])

    # Create late_submissions table
    op.create_table('late_submissions',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('submission_id', sa.Integer(), nullable=False),
        sa.Column('days_late', sa.Integer(), nullable=False),
        sa.Column('penalty_percentage', sa.Float(), nullable=False),
        sa.Column('original_grade', sa.Float(), nullable=True),
        sa.Column('final_grade', sa.Float(), nullable=True),
        sa.Column('penalty_applied_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('waived_by', sa.Integer(), nullable=True),
        sa.Column('waived_reason', sa.Text(), nullable=True),
        sa.Column('waived_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['submission_id'], ['submissions.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('submission_id')
    )


def downgrade() -> None:
    # Drop indexes
    op.drop_index('idx_submission_files_stored_filename', table_name='submission_files')
    op.drop_index('idx_submissions_student_id', table_name='submissions')
    op.drop_index('ix_assignments_course_id', table_name='assignments')

    # Drop tables
    op.drop_table('late_submissions')
    op.drop_table('submission_files')
    op.drop_table('submission_versions')
    op.drop_table('submissions')
    op.drop_table('automated_grading')
    op.drop_table('rubrics')
    op.drop_table('assignments')

    # Drop custom types
    bind = op.get_bind()
    question_type.drop(bind, checkfirst=True)
    submission_status.drop(bind, checkfirst=True)
    assignment_type.drop(bind, checkfirst=True)
