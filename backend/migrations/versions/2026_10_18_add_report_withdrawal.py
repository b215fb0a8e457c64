from alembic import op
import sqlalchemy as sa

# Revision identifiers, used by Alembic.
revision = "2026_10_18_add_report_withdrawal"
down_revision = "2026_10_01_add_moderation_engine"
branch_labels = None
depends_on = None

OPEN_APPEAL_SQL = "status IN ('pending', 'in_review')"


def _has_column(table: str, column: str) -> bool:
    insp = sa.inspect(op.get_bind())
    return column in [c.get("name") for c in insp.get_columns(table)]


def _has_index(table: str, name: str) -> bool:
    insp = sa.inspect(op.get_bind())
    return name in [i.get("name") for i in insp.get_indexes(table)]


def upgrade():
    # flag_reports: soft delete for withdrawn reports
    with op.batch_alter_table("flag_reports") as batch:
        if not _has_column("flag_reports", "deleted_at"):
            batch.add_column(sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True))
        if not _has_column("flag_reports", "deleted_by_member_id"):
            batch.add_column(sa.Column(
                "deleted_by_member_id", sa.Integer,
                sa.ForeignKey("members.id", name="fk_flag_reports_deleted_by_member"), nullable=True,
            ))

    # one live report per reporter and target
    for name, column in (("uq_flag_reports_live_post", "post_id"), ("uq_flag_reports_live_comment", "comment_id")):
        if not _has_index("flag_reports", name):
            op.create_index(
                name, "flag_reports", ["reporter_id", column], unique=True,
                sqlite_where=sa.text("deleted_at IS NULL"),
                postgresql_where=sa.text("deleted_at IS NULL"),
            )

    # one open appeal per appellant and parent
    for name, column in (("uq_appeals_open_action", "moderation_action_id"),
                         ("uq_appeals_open_flag_report", "flag_report_id")):
        if not _has_index("appeals", name):
            op.create_index(
                name, "appeals", ["appellant_member_id", column], unique=True,
                sqlite_where=sa.text(OPEN_APPEAL_SQL),
                postgresql_where=sa.text(OPEN_APPEAL_SQL),
            )


def downgrade():
    op.drop_index("uq_appeals_open_flag_report", table_name="appeals")
    op.drop_index("uq_appeals_open_action", table_name="appeals")
    op.drop_index("uq_flag_reports_live_comment", table_name="flag_reports")
    op.drop_index("uq_flag_reports_live_post", table_name="flag_reports")
    with op.batch_alter_table("flag_reports") as batch:
        batch.drop_column("deleted_by_member_id")
        batch.drop_column("deleted_at")
