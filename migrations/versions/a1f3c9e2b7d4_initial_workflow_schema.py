"""initial_workflow_schema

Create stage catalog, organisation, project, acceptance, enquiry,
consultation, comment, balloting, meeting, audit and notification
tables.

Revision ID: a1f3c9e2b7d4
Revises:
Create Date: 2026-10-17 09:00:00.000000
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect as sa_inspect


# revision identifiers, used by Alembic.
revision = "a1f3c9e2b7d4"
down_revision = None
branch_labels = None
depends_on = None


def _uuid_pk():
    return sa.Column("id", sa.String(length=36), nullable=False)


def _ts(name, nullable=True):
    return sa.Column(name, sa.DateTime(timezone=True), nullable=nullable)


def upgrade():
    bind = op.get_bind()
    existing_tables = set(sa_inspect(bind).get_table_names())

    if "stages" not in existing_tables:
        op.create_table(
            "stages",
            _uuid_pk(),
            sa.Column("number", sa.Integer(), nullable=False),
            sa.Column("name", sa.String(length=100), nullable=False),
            sa.Column("document_name", sa.String(length=150), nullable=False),
            sa.Column("abbreviation", sa.String(length=20), nullable=False),
            sa.Column("description", sa.Text(), nullable=True),
            _ts("created_at"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_stages_number", "stages", ["number"], unique=True)

    if "stage_timeframes" not in existing_tables:
        op.create_table(
            "stage_timeframes",
            _uuid_pk(),
            sa.Column("stage_id", sa.String(length=36), nullable=False),
            sa.Column("track", sa.String(length=20), nullable=False),
            sa.Column("min_days", sa.Integer(), nullable=True),
            sa.Column("max_days", sa.Integer(), nullable=True),
            sa.ForeignKeyConstraint(["stage_id"], ["stages.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("stage_id", "track", name="uq_stage_timeframe_track"),
        )

    if "national_standard_bodies" not in existing_tables:
        op.create_table(
            "national_standard_bodies",
            _uuid_pk(),
            sa.Column("name", sa.String(length=200), nullable=False),
            sa.Column("acronym", sa.String(length=30), nullable=True),
            sa.Column("country", sa.String(length=100), nullable=True),
            _ts("created_at"),
            sa.PrimaryKeyConstraint("id"),
        )

    if "members" not in existing_tables:
        op.create_table(
            "members",
            _uuid_pk(),
            sa.Column("first_name", sa.String(length=100), nullable=False),
            sa.Column("last_name", sa.String(length=100), nullable=True),
            sa.Column("email", sa.String(length=200), nullable=False),
            sa.Column("national_standard_body_id", sa.String(length=36), nullable=True),
            _ts("created_at"),
            sa.ForeignKeyConstraint(
                ["national_standard_body_id"], ["national_standard_bodies.id"], ondelete="SET NULL",
            ),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("email"),
        )
        op.create_index(
            "ix_members_national_standard_body_id", "members", ["national_standard_body_id"],
        )

    if "committees" not in existing_tables:
        op.create_table(
            "committees",
            _uuid_pk(),
            sa.Column("committee_type", sa.String(length=40), nullable=False),
            sa.Column("code", sa.String(length=30), nullable=False),
            sa.Column("name", sa.String(length=200), nullable=False),
            sa.Column("secretary_id", sa.String(length=36), nullable=True),
            sa.Column("chairperson_id", sa.String(length=36), nullable=True),
            # technical_committee
            sa.Column("scope", sa.Text(), nullable=True),
            sa.Column("work_programme", sa.Text(), nullable=True),
            # working_group
            sa.Column("parent_committee_id", sa.String(length=36), nullable=True),
            sa.Column("convenor_id", sa.String(length=36), nullable=True),
            # standards_management_committee
            sa.Column("mandate", sa.Text(), nullable=True),
            sa.Column("term_years", sa.Integer(), nullable=True),
            _ts("created_at"),
            _ts("updated_at"),
            sa.ForeignKeyConstraint(["secretary_id"], ["members.id"], ondelete="SET NULL"),
            sa.ForeignKeyConstraint(["chairperson_id"], ["members.id"], ondelete="SET NULL"),
            sa.ForeignKeyConstraint(["convenor_id"], ["members.id"], ondelete="SET NULL"),
            sa.ForeignKeyConstraint(["parent_committee_id"], ["committees.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_committees_code", "committees", ["code"])

    if "documents" not in existing_tables:
        op.create_table(
            "documents",
            _uuid_pk(),
            sa.Column("title", sa.String(length=300), nullable=False),
            sa.Column("reference", sa.String(length=120), nullable=True),
            sa.Column("description", sa.Text(), nullable=True),
            sa.Column("file_url", sa.String(length=500), nullable=True),
            sa.Column("created_by_id", sa.String(length=36), nullable=True),
            _ts("created_at"),
            sa.ForeignKeyConstraint(["created_by_id"], ["members.id"], ondelete="SET NULL"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_documents_reference", "documents", ["reference"])

    if "projects" not in existing_tables:
        op.create_table(
            "projects",
            _uuid_pk(),
            sa.Column("number", sa.Integer(), nullable=False),
            sa.Column("part_number", sa.Integer(), nullable=True),
            sa.Column("reference", sa.String(length=120), nullable=False),
            sa.Column("title", sa.String(length=300), nullable=False),
            sa.Column("description", sa.Text(), nullable=True),
            sa.Column("timeframe_months", sa.Integer(), nullable=True),
            sa.Column("is_international_standard", sa.Boolean(), nullable=False,
                      server_default=sa.false()),
            sa.Column("technical_committee_id", sa.String(length=36), nullable=False),
            sa.Column("working_group_id", sa.String(length=36), nullable=True),
            sa.Column("stage_id", sa.String(length=36), nullable=False),
            sa.Column("working_draft_status", sa.String(length=20), nullable=True),
            sa.Column("working_draft_comments", sa.Text(), nullable=True),
            sa.Column("wd_tc_secretary_id", sa.String(length=36), nullable=True),
            sa.Column("working_draft_id", sa.String(length=36), nullable=True),
            sa.Column("committee_draft_id", sa.String(length=36), nullable=True),
            sa.Column("is_consensus_reached", sa.Boolean(), nullable=True),
            sa.Column("proposed_action", sa.String(length=40), nullable=True),
            sa.Column("meeting_required", sa.Boolean(), nullable=True),
            sa.Column("cd_tc_secretary_id", sa.String(length=36), nullable=True),
            _ts("submission_date"),
            sa.Column("cancelled", sa.Boolean(), nullable=False, server_default=sa.false()),
            _ts("cancelled_date"),
            sa.Column("approved_for_publication", sa.Boolean(), nullable=False,
                      server_default=sa.false()),
            sa.Column("approved_for_publication_by_id", sa.String(length=36), nullable=True),
            _ts("approved_for_publication_date"),
            sa.Column("approved_for_publication_comment", sa.Text(), nullable=True),
            _ts("created_at"),
            _ts("updated_at"),
            sa.ForeignKeyConstraint(["technical_committee_id"], ["committees.id"], ondelete="RESTRICT"),
            sa.ForeignKeyConstraint(["working_group_id"], ["committees.id"], ondelete="SET NULL"),
            sa.ForeignKeyConstraint(["stage_id"], ["stages.id"], ondelete="RESTRICT"),
            sa.ForeignKeyConstraint(["working_draft_id"], ["documents.id"], ondelete="SET NULL"),
            sa.ForeignKeyConstraint(["committee_draft_id"], ["documents.id"], ondelete="SET NULL"),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("number", name="uq_project_number"),
        )
        op.create_index("idx_project_stage", "projects", ["stage_id"])
        op.create_index("idx_project_tc", "projects", ["technical_committee_id"])

    if "project_stage_history" not in existing_tables:
        op.create_table(
            "project_stage_history",
            _uuid_pk(),
            sa.Column("project_id", sa.String(length=36), nullable=False),
            sa.Column("stage_id", sa.String(length=36), nullable=False),
            _ts("started_at", nullable=False),
            _ts("ended_at"),
            sa.Column("notes", sa.Text(), nullable=True),
            _ts("created_at"),
            _ts("updated_at"),
            sa.ForeignKeyConstraint(["project_id"], ["projects.id"], ondelete="CASCADE"),
            sa.ForeignKeyConstraint(["stage_id"], ["stages.id"], ondelete="RESTRICT"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index(
            "idx_stage_history_project", "project_stage_history", ["project_id", "ended_at"],
        )
        op.create_index("idx_stage_history_stage", "project_stage_history", ["stage_id"])

    if "proposals" not in existing_tables:
        op.create_table(
            "proposals",
            _uuid_pk(),
            sa.Column("project_id", sa.String(length=36), nullable=False),
            sa.Column("created_by_id", sa.String(length=36), nullable=True),
            sa.Column("proposing_nsb_id", sa.String(length=36), nullable=True),
            sa.Column("full_title", sa.String(length=300), nullable=False),
            sa.Column("scope", sa.Text(), nullable=True),
            sa.Column("justification", sa.Text(), nullable=True),
            sa.Column("estimated_time", sa.String(length=60), nullable=True),
            sa.Column("proposed_deadline", sa.Date(), nullable=True),
            sa.Column("existing_intl_standard", sa.Boolean(), nullable=True),
            sa.Column("existing_intl_standard_details", sa.Text(), nullable=True),
            sa.Column("suitable_for_endorsement", sa.Boolean(), nullable=True),
            sa.Column("is_draft_text_attached", sa.Boolean(), nullable=True),
            sa.Column("existing_legislation", sa.Text(), nullable=True),
            sa.Column("legislation_status", sa.String(length=20), nullable=True),
            sa.Column("will_participate_in_work", sa.Boolean(), nullable=True),
            sa.Column("will_undertake_secretariat", sa.Boolean(), nullable=True),
            _ts("created_at"),
            sa.ForeignKeyConstraint(["project_id"], ["projects.id"], ondelete="CASCADE"),
            sa.ForeignKeyConstraint(["created_by_id"], ["members.id"], ondelete="SET NULL"),
            sa.ForeignKeyConstraint(
                ["proposing_nsb_id"], ["national_standard_bodies.id"], ondelete="SET NULL",
            ),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("project_id"),
        )

    if "acceptances" not in existing_tables:
        op.create_table(
            "acceptances",
            _uuid_pk(),
            sa.Column("project_id", sa.String(length=36), nullable=False),
            _ts("circulation_date"),
            _ts("closing_date"),
            sa.Column("total_responses", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("agreement_count", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("disagreement_count", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("abstention_count", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("approval_criteria_met", sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column("approval_justification", sa.Text(), nullable=True),
            sa.Column("is_approved", sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column("approved_by_id", sa.String(length=36), nullable=True),
            _ts("smc_approval_date"),
            sa.Column("development_track", sa.String(length=20), nullable=True),
            sa.Column("draft_status", sa.String(length=10), nullable=True),
            sa.Column("draft_expected_date", sa.Date(), nullable=True),
            sa.Column("is_preliminary_work", sa.Boolean(), nullable=True),
            sa.Column("is_active_work", sa.Boolean(), nullable=True),
            sa.Column("target_date_cd", sa.Date(), nullable=True),
            sa.Column("target_date_dars", sa.Date(), nullable=True),
            sa.Column("target_date_fdars", sa.Date(), nullable=True),
            sa.Column("tc_secretary_id", sa.String(length=36), nullable=True),
            sa.Column("other_information", sa.Text(), nullable=True),
            _ts("created_at"),
            _ts("updated_at"),
            sa.ForeignKeyConstraint(["project_id"], ["projects.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("project_id"),
        )

    if "acceptance_documents_to_consider" not in existing_tables:
        op.create_table(
            "acceptance_documents_to_consider",
            sa.Column("acceptance_id", sa.String(length=36), nullable=False),
            sa.Column("document_id", sa.String(length=36), nullable=False),
            sa.ForeignKeyConstraint(["acceptance_id"], ["acceptances.id"], ondelete="CASCADE"),
            sa.ForeignKeyConstraint(["document_id"], ["documents.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("acceptance_id", "document_id"),
        )

    if "nsb_responses" not in existing_tables:
        op.create_table(
            "nsb_responses",
            _uuid_pk(),
            sa.Column("acceptance_id", sa.String(length=36), nullable=False),
            sa.Column("project_id", sa.String(length=36), nullable=False),
            sa.Column("responding_nsb_id", sa.String(length=36), nullable=False),
            sa.Column("responder_id", sa.String(length=36), nullable=True),
            sa.Column("response", sa.String(length=40), nullable=False),
            sa.Column("has_relevant_standards", sa.Boolean(), nullable=True),
            sa.Column("relevant_regulations_refs", sa.Text(), nullable=True),
            sa.Column("comments", sa.Text(), nullable=True),
            sa.Column("is_committed_to_participate", sa.Boolean(), nullable=False,
                      server_default=sa.false()),
            sa.Column("national_tc_secretary_id", sa.String(length=36), nullable=True),
            _ts("response_date"),
            _ts("created_at"),
            _ts("updated_at"),
            sa.ForeignKeyConstraint(["acceptance_id"], ["acceptances.id"], ondelete="CASCADE"),
            sa.ForeignKeyConstraint(["project_id"], ["projects.id"], ondelete="CASCADE"),
            sa.ForeignKeyConstraint(
                ["responding_nsb_id"], ["national_standard_bodies.id"], ondelete="RESTRICT",
            ),
            sa.ForeignKeyConstraint(["responder_id"], ["members.id"], ondelete="SET NULL"),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("acceptance_id", "responding_nsb_id", name="uq_nsb_response_round"),
        )
        op.create_index("ix_nsb_responses_project_id", "nsb_responses", ["project_id"])

    if "nsb_response_status_changes" not in existing_tables:
        op.create_table(
            "nsb_response_status_changes",
            _uuid_pk(),
            sa.Column("initial_response_id", sa.String(length=36), nullable=False),
            sa.Column("responder_id", sa.String(length=36), nullable=True),
            sa.Column("response", sa.String(length=40), nullable=False),
            sa.Column("is_committed_to_participate", sa.Boolean(), nullable=False,
                      server_default=sa.false()),
            sa.Column("status", sa.String(length=20), nullable=False, server_default="PENDING"),
            sa.Column("tc_secretariat_id", sa.String(length=36), nullable=True),
            sa.Column("tc_secretariat_comment", sa.Text(), nullable=True),
            _ts("reviewed_at"),
            _ts("created_at"),
            sa.ForeignKeyConstraint(["initial_response_id"], ["nsb_responses.id"], ondelete="CASCADE"),
            sa.ForeignKeyConstraint(["responder_id"], ["members.id"], ondelete="SET NULL"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index(
            "ix_nsb_response_status_changes_initial_response_id",
            "nsb_response_status_changes", ["initial_response_id"],
        )
        op.create_index(
            "idx_status_change_status", "nsb_response_status_changes", ["status", "created_at"],
        )

    if "enquiry_drafts" not in existing_tables:
        op.create_table(
            "enquiry_drafts",
            _uuid_pk(),
            sa.Column("project_id", sa.String(length=36), nullable=False),
            _ts("public_review_start_date", nullable=False),
            _ts("public_review_end_date", nullable=False),
            _ts("wto_notification_date"),
            sa.Column("status", sa.String(length=20), nullable=False, server_default="UNDER_REVIEW"),
            sa.Column("unresolved_issues", sa.Text(), nullable=True),
            sa.Column("move_to_balloting", sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column("alternative_deliverable", sa.Text(), nullable=True),
            sa.Column("tc_secretary_id", sa.String(length=36), nullable=True),
            _ts("created_at"),
            _ts("updated_at"),
            sa.ForeignKeyConstraint(["project_id"], ["projects.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("project_id"),
        )

    if "national_consultations" not in existing_tables:
        op.create_table(
            "national_consultations",
            _uuid_pk(),
            sa.Column("project_id", sa.String(length=36), nullable=False),
            sa.Column("enquiry_draft_id", sa.String(length=36), nullable=False),
            sa.Column("national_secretary_id", sa.String(length=36), nullable=False),
            sa.Column("national_standard_body_id", sa.String(length=36), nullable=False),
            sa.Column("clause_no", sa.String(length=50), nullable=False),
            sa.Column("paragraph_ref", sa.String(length=100), nullable=False),
            sa.Column("comment_type", sa.String(length=2), nullable=False),
            sa.Column("comment", sa.Text(), nullable=False),
            sa.Column("proposed_change", sa.Text(), nullable=True),
            sa.Column("secretariat_remarks", sa.Text(), nullable=True),
            _ts("created_at"),
            _ts("updated_at"),
            sa.ForeignKeyConstraint(["project_id"], ["projects.id"], ondelete="CASCADE"),
            sa.ForeignKeyConstraint(["enquiry_draft_id"], ["enquiry_drafts.id"], ondelete="CASCADE"),
            sa.ForeignKeyConstraint(["national_secretary_id"], ["members.id"], ondelete="RESTRICT"),
            sa.ForeignKeyConstraint(
                ["national_standard_body_id"], ["national_standard_bodies.id"], ondelete="RESTRICT",
            ),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("idx_consultation_project_nsb", "national_consultations",
                        ["project_id", "national_standard_body_id"])

    if "comment_observations" not in existing_tables:
        op.create_table(
            "comment_observations",
            _uuid_pk(),
            sa.Column("project_id", sa.String(length=36), nullable=False),
            sa.Column("stage_id", sa.String(length=36), nullable=False),
            sa.Column("national_secretary_id", sa.String(length=36), nullable=False),
            sa.Column("national_standard_body_id", sa.String(length=36), nullable=False),
            sa.Column("clause_no", sa.String(length=50), nullable=False),
            sa.Column("paragraph_ref", sa.String(length=100), nullable=False),
            sa.Column("comment_type", sa.String(length=2), nullable=False),
            sa.Column("comment", sa.Text(), nullable=False),
            sa.Column("proposed_change", sa.Text(), nullable=True),
            sa.Column("secretariat_remarks", sa.Text(), nullable=True),
            _ts("created_at"),
            _ts("updated_at"),
            sa.ForeignKeyConstraint(["project_id"], ["projects.id"], ondelete="CASCADE"),
            sa.ForeignKeyConstraint(["stage_id"], ["stages.id"], ondelete="RESTRICT"),
            sa.ForeignKeyConstraint(["national_secretary_id"], ["members.id"], ondelete="RESTRICT"),
            sa.ForeignKeyConstraint(
                ["national_standard_body_id"], ["national_standard_bodies.id"], ondelete="RESTRICT",
            ),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("idx_comment_project_nsb", "comment_observations",
                        ["project_id", "national_standard_body_id"])

    if "ballotings" not in existing_tables:
        op.create_table(
            "ballotings",
            _uuid_pk(),
            sa.Column("project_id", sa.String(length=36), nullable=False),
            _ts("start_date", nullable=False),
            _ts("end_date", nullable=False),
            sa.Column("approved", sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column("approved_by_id", sa.String(length=36), nullable=True),
            _ts("approved_at"),
            sa.Column("next_course_of_action", sa.String(length=20), nullable=True),
            _ts("created_at"),
            _ts("updated_at"),
            sa.ForeignKeyConstraint(["project_id"], ["projects.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("project_id"),
        )

    if "votes" not in existing_tables:
        op.create_table(
            "votes",
            _uuid_pk(),
            sa.Column("balloting_id", sa.String(length=36), nullable=False),
            sa.Column("project_id", sa.String(length=36), nullable=False),
            sa.Column("member_id", sa.String(length=36), nullable=False),
            sa.Column("national_standard_body_id", sa.String(length=36), nullable=True),
            sa.Column("acceptance", sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column("is_committed_to_participate", sa.Boolean(), nullable=False,
                      server_default=sa.false()),
            sa.Column("comment", sa.Text(), nullable=True),
            _ts("created_at"),
            sa.ForeignKeyConstraint(["balloting_id"], ["ballotings.id"], ondelete="CASCADE"),
            sa.ForeignKeyConstraint(["project_id"], ["projects.id"], ondelete="CASCADE"),
            sa.ForeignKeyConstraint(["member_id"], ["members.id"], ondelete="RESTRICT"),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("balloting_id", "member_id", name="uq_vote_member"),
        )
        op.create_index("ix_votes_project_id", "votes", ["project_id"])
        op.create_index("ix_votes_national_standard_body_id", "votes", ["national_standard_body_id"])

    if "meetings" not in existing_tables:
        op.create_table(
            "meetings",
            _uuid_pk(),
            sa.Column("committee_id", sa.String(length=36), nullable=True),
            sa.Column("project_id", sa.String(length=36), nullable=True),
            sa.Column("title", sa.String(length=200), nullable=False),
            _ts("date"),
            sa.Column("location", sa.String(length=200), nullable=True),
            sa.Column("total_p_members", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("present_p_members", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("has_quorum", sa.Boolean(), nullable=False, server_default=sa.false()),
            _ts("created_at"),
            _ts("updated_at"),
            sa.ForeignKeyConstraint(["committee_id"], ["committees.id"], ondelete="CASCADE"),
            sa.ForeignKeyConstraint(["project_id"], ["projects.id"], ondelete="SET NULL"),
            sa.PrimaryKeyConstraint("id"),
        )

    if "audit_logs" not in existing_tables:
        op.create_table(
            "audit_logs",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("project_id", sa.String(length=36), nullable=True),
            sa.Column("entity_type", sa.String(length=30), nullable=False),
            sa.Column("entity_id", sa.String(length=36), nullable=False),
            sa.Column("action", sa.String(length=60), nullable=False),
            sa.Column("actor_id", sa.String(length=36), nullable=True),
            sa.Column("diff_json", sa.Text(), nullable=True),
            _ts("timestamp", nullable=False),
            sa.ForeignKeyConstraint(["project_id"], ["projects.id"], ondelete="SET NULL"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("idx_audit_entity", "audit_logs", ["entity_type", "entity_id"])
        op.create_index("idx_audit_project", "audit_logs", ["project_id"])
        op.create_index("idx_audit_action", "audit_logs", ["action"])
        op.create_index("idx_audit_ts", "audit_logs", ["timestamp"])

    if "notifications" not in existing_tables:
        op.create_table(
            "notifications",
            _uuid_pk(),
            sa.Column("project_id", sa.String(length=36), nullable=True),
            sa.Column("recipient", sa.String(length=150), nullable=True),
            sa.Column("event_type", sa.String(length=60), nullable=False),
            sa.Column("title", sa.String(length=300), nullable=False),
            sa.Column("message", sa.Text(), nullable=True),
            sa.Column("severity", sa.String(length=20), nullable=True),
            sa.Column("is_read", sa.Boolean(), nullable=True),
            _ts("read_at"),
            _ts("created_at"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_notifications_project_id", "notifications", ["project_id"])
        op.create_index("ix_notifications_recipient", "notifications", ["recipient"])


def downgrade():
    bind = op.get_bind()
    existing_tables = set(sa_inspect(bind).get_table_names())

    for table in (
        "notifications",
        "audit_logs",
        "meetings",
        "votes",
        "ballotings",
        "comment_observations",
        "national_consultations",
        "enquiry_drafts",
        "nsb_response_status_changes",
        "nsb_responses",
        "acceptance_documents_to_consider",
        "acceptances",
        "proposals",
        "project_stage_history",
        "projects",
        "documents",
        "committees",
        "members",
        "national_standard_bodies",
        "stage_timeframes",
        "stages",
    ):
        if table in existing_tables:
            op.drop_table(table)
