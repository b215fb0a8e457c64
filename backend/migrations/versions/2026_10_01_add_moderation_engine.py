from alembic import op
import sqlalchemy as sa

revision = "2026_10_01_add_moderation_engine"
down_revision = None  # 初始遷移


def upgrade():
    bind = op.get_bind()
    insp = sa.inspect(bind)

    def safe_create(table_name: str, creator):
        """Skip tables that create_all() already made on a dev database."""
        if insp.has_table(table_name):
            return
        creator()

    # collaborator tables: identity + content stubs
    safe_create("members", lambda: op.create_table(
        "members",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("nickname", sa.String(64), nullable=False),
        sa.Column("status", sa.String(16), nullable=False, server_default="active"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    ))
    safe_create("posts", lambda: op.create_table(
        "posts",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("author_id", sa.Integer, sa.ForeignKey("members.id"), nullable=False),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    ))
    safe_create("comments", lambda: op.create_table(
        "comments",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("post_id", sa.Integer, sa.ForeignKey("posts.id"), nullable=False, index=True),
        sa.Column("author_id", sa.Integer, sa.ForeignKey("members.id"), nullable=False),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    ))

    # role grants
    safe_create("administrators", lambda: op.create_table(
        "administrators",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("member_id", sa.Integer, sa.ForeignKey("members.id"), nullable=False, unique=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    ))
    if not insp.has_table("moderators"):
        op.create_table(
            "moderators",
            sa.Column("id", sa.Integer, primary_key=True),
            sa.Column("member_id", sa.Integer, sa.ForeignKey("members.id"), nullable=False, index=True),
            sa.Column("assigned_by_administrator_id", sa.Integer, sa.ForeignKey("administrators.id"), nullable=False),
            sa.Column("assigned_at", sa.DateTime(timezone=True), nullable=False),
            sa.Column("revoked_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("revoked_by_administrator_id", sa.Integer, sa.ForeignKey("administrators.id"), nullable=True),
        )
        # one active grant per member
        op.create_index(
            "uq_moderators_active_member", "moderators", ["member_id"], unique=True,
            sqlite_where=sa.text("revoked_at IS NULL"),
            postgresql_where=sa.text("revoked_at IS NULL"),
        )

    # moderation actions + audit log
    safe_create("moderation_actions", lambda: op.create_table(
        "moderation_actions",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("moderator_id", sa.Integer, sa.ForeignKey("moderators.id"), nullable=False, index=True),
        sa.Column("target_member_id", sa.Integer, sa.ForeignKey("members.id"), nullable=True, index=True),
        sa.Column("target_post_id", sa.Integer, sa.ForeignKey("posts.id"), nullable=True, index=True),
        sa.Column("target_comment_id", sa.Integer, sa.ForeignKey("comments.id"), nullable=True, index=True),
        sa.Column("action_type", sa.String(32), nullable=False),
        sa.Column("action_reason", sa.Text(), nullable=False),
        sa.Column("decision_narrative", sa.Text(), nullable=True),
        sa.Column("details", sa.Text(), nullable=True),
        sa.Column("status", sa.String(16), nullable=False, server_default="active", index=True),
        sa.Column("effective_from", sa.DateTime(timezone=True), nullable=False),
        sa.Column("effective_until", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("version", sa.Integer, nullable=False, server_default="1"),
    ))
    safe_create("moderation_logs", lambda: op.create_table(
        "moderation_logs",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("related_action_id", sa.Integer,
                  sa.ForeignKey("moderation_actions.id", ondelete="CASCADE"), nullable=False),
        sa.Column("actor_member_id", sa.Integer, sa.ForeignKey("members.id"), nullable=True),
        sa.Column("event_type", sa.String(64), nullable=False),
        sa.Column("event_details", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.Index("ix_mlogs_action_actor", "related_action_id", "actor_member_id"),
    ))

    # appeals / flag reports reference parents by plain id
    safe_create("appeals", lambda: op.create_table(
        "appeals",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("appellant_member_id", sa.Integer, sa.ForeignKey("members.id"), nullable=False, index=True),
        sa.Column("moderation_action_id", sa.Integer, nullable=True, index=True),
        sa.Column("flag_report_id", sa.Integer, nullable=True, index=True),
        sa.Column("appeal_rationale", sa.Text(), nullable=False),
        sa.Column("status", sa.String(16), nullable=False, server_default="pending", index=True),
        sa.Column("resolution_notes", sa.Text(), nullable=True),
        sa.Column("resolved_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("resolved_by_administrator_id", sa.Integer, sa.ForeignKey("administrators.id"), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("version", sa.Integer, nullable=False, server_default="1"),
        sa.Index("ix_appeals_status_created", "status", "created_at"),
    ))
    safe_create("flag_reports", lambda: op.create_table(
        "flag_reports",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("reporter_id", sa.Integer, sa.ForeignKey("members.id"), nullable=False, index=True),
        sa.Column("post_id", sa.Integer, sa.ForeignKey("posts.id"), nullable=True, index=True),
        sa.Column("comment_id", sa.Integer, sa.ForeignKey("comments.id"), nullable=True, index=True),
        sa.Column("reason", sa.String(32), nullable=False, index=True),
        sa.Column("details", sa.Text(), nullable=True),
        sa.Column("status", sa.String(16), nullable=False, server_default="pending", index=True),
        sa.Column("moderation_action_id", sa.Integer, nullable=True),
        sa.Column("reviewed_by_member_id", sa.Integer, sa.ForeignKey("members.id"), nullable=True),
        sa.Column("reviewed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("version", sa.Integer, nullable=False, server_default="1"),
        sa.Index("ix_flag_reports_status_created", "status", "created_at"),
    ))


def downgrade():
    op.drop_table("flag_reports")
    op.drop_table("appeals")
    op.drop_table("moderation_logs")
    op.drop_table("moderation_actions")
    op.drop_index("uq_moderators_active_member", table_name="moderators")
    op.drop_table("moderators")
    op.drop_table("administrators")
    op.drop_table("comments")
    op.drop_table("posts")
    op.drop_table("members")
