"""Initial schema"""
from __future__ import annotations

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = "0001_init_schema"
down_revision = None
branch_labels = None
depends_on = None


def _timestamp(name: str, nullable: bool = False) -> sa.Column:
    return sa.Column(name, sa.DateTime(timezone=True), server_default=sa.text("NOW()"), nullable=nullable)


def upgrade() -> None:
    op.execute('CREATE EXTENSION IF NOT EXISTS "pgcrypto";')

    uuid = postgresql.UUID(as_uuid=True)
    jsonb = postgresql.JSONB(astext_type=sa.Text())

    def id_column() -> sa.Column:
        return sa.Column("id", uuid, primary_key=True, server_default=sa.text("gen_random_uuid()"))

    op.create_table(
        "visitor_sessions",
        id_column(),
        sa.Column("session_id", sa.String(64), nullable=False, unique=True),
        sa.Column("first_page", sa.Text(), nullable=True),
        sa.Column("referrer", sa.Text(), nullable=True),
        sa.Column("user_agent", sa.Text(), nullable=True),
        sa.Column("ip_hash", sa.String(64), nullable=True),
        sa.Column("user_id", sa.String(64), nullable=True),
        sa.Column("domain", sa.String(253), nullable=True),
        _timestamp("started_at"),
        _timestamp("last_activity_at"),
    )
    op.create_index("idx_visitor_sessions_last_activity", "visitor_sessions", ["last_activity_at"])
    op.create_index("ix_visitor_sessions_user_id", "visitor_sessions", ["user_id"])
    op.create_index("ix_visitor_sessions_domain", "visitor_sessions", ["domain"])

    op.create_table(
        "page_views",
        id_column(),
        sa.Column("session_id", sa.String(64), nullable=False),
        sa.Column("page_path", sa.Text(), nullable=False),
        sa.Column("page_title", sa.Text(), nullable=True),
        sa.Column("time_on_page", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("scroll_depth", sa.Integer(), nullable=False, server_default=sa.text("0")),
        _timestamp("created_at"),
    )
    op.create_index("ix_page_views_session_id", "page_views", ["session_id"])

    op.create_table(
        "tool_interactions",
        id_column(),
        sa.Column("session_id", sa.String(64), nullable=False),
        sa.Column("tool_name", sa.Text(), nullable=False),
        sa.Column("tool_type", sa.Text(), nullable=True),
        sa.Column("page_path", sa.Text(), nullable=True),
        sa.Column("metadata", jsonb, nullable=False, server_default=sa.text("'{}'::jsonb")),
        _timestamp("created_at"),
    )
    op.create_index("ix_tool_interactions_session_id", "tool_interactions", ["session_id"])

    op.create_table(
        "form_submissions",
        id_column(),
        sa.Column("session_id", sa.String(64), nullable=True),
        sa.Column("form_name", sa.Text(), nullable=False),
        sa.Column("form_data", jsonb, nullable=False, server_default=sa.text("'{}'::jsonb")),
        sa.Column("page_path", sa.Text(), nullable=True),
        _timestamp("created_at"),
    )
    op.create_index("ix_form_submissions_session_id", "form_submissions", ["session_id"])

    op.create_table(
        "leads",
        id_column(),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("phone", sa.String(20), nullable=True),
        sa.Column("domain", sa.String(253), nullable=True),
        sa.Column("metric_type", sa.Text(), nullable=True),
        sa.Column("source_page", sa.Text(), nullable=True),
        _timestamp("created_at"),
    )

    op.create_table(
        "profiles",
        id_column(),
        sa.Column("user_id", sa.String(64), nullable=False, unique=True),
        sa.Column("full_name", sa.Text(), nullable=True),
        sa.Column("email", sa.String(255), nullable=True),
        sa.Column("avatar_url", sa.Text(), nullable=True),
        _timestamp("created_at"),
        _timestamp("updated_at"),
    )

    op.create_table(
        "oauth_tokens",
        id_column(),
        sa.Column("user_id", sa.String(64), nullable=False),
        sa.Column("provider", sa.String(32), nullable=False),
        sa.Column("access_token", sa.Text(), nullable=False),
        sa.Column("refresh_token", sa.Text(), nullable=True),
        sa.Column("token_type", sa.String(32), nullable=False, server_default=sa.text("'Bearer'")),
        sa.Column("scope", sa.Text(), nullable=True),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=True),
        _timestamp("updated_at"),
        sa.UniqueConstraint("user_id", "provider", name="uq_oauth_tokens_user_provider"),
    )

    op.create_table(
        "user_roles",
        id_column(),
        sa.Column("user_id", sa.String(64), nullable=False),
        sa.Column("role", sa.String(17), nullable=False),
        _timestamp("created_at"),
        sa.UniqueConstraint("user_id", "role", name="uq_user_roles_user_role"),
    )
    op.create_index("ix_user_roles_user_id", "user_roles", ["user_id"])

    op.create_table(
        "white_label_settings",
        id_column(),
        sa.Column("user_id", sa.String(64), nullable=False, unique=True),
        sa.Column("company_name", sa.Text(), nullable=True),
        sa.Column("subscription_status", sa.String(32), nullable=True),
        _timestamp("created_at"),
    )

    op.create_table(
        "domain_subscriptions",
        id_column(),
        sa.Column("user_id", sa.String(64), nullable=False),
        sa.Column("domain", sa.String(253), nullable=True),
        sa.Column("tier", sa.String(32), nullable=False),
        sa.Column("status", sa.String(32), nullable=False, server_default=sa.text("'active'")),
        _timestamp("created_at"),
    )
    op.create_index("ix_domain_subscriptions_user_id", "domain_subscriptions", ["user_id"])

    op.create_table(
        "ai_assistant_usage",
        id_column(),
        sa.Column("user_id", sa.String(64), nullable=False),
        sa.Column("week_start", sa.Date(), nullable=False),
        sa.Column("minutes_used", sa.Numeric(10, 2), nullable=False, server_default=sa.text("0")),
        _timestamp("updated_at"),
        sa.UniqueConstraint("user_id", "week_start", name="uq_ai_assistant_usage_user_week"),
    )

    op.create_table(
        "keyword_ranking_history",
        id_column(),
        sa.Column("domain", sa.String(253), nullable=False),
        sa.Column("keyword", sa.Text(), nullable=False),
        sa.Column("google_position", sa.Integer(), nullable=True),
        sa.Column("bing_position", sa.Integer(), nullable=True),
        sa.Column("yahoo_position", sa.Integer(), nullable=True),
        sa.Column("search_volume", sa.Integer(), nullable=True),
        sa.Column("cpc", sa.Float(), nullable=True),
        sa.Column("competition_level", sa.String(32), nullable=True),
        sa.Column("source", sa.String(32), nullable=False, server_default=sa.text("'bron'")),
        _timestamp("snapshot_at"),
    )
    op.create_index(
        "idx_keyword_ranking_history_domain_snapshot",
        "keyword_ranking_history",
        ["domain", "snapshot_at"],
    )

    op.create_table(
        "ai_chat_sessions",
        id_column(),
        sa.Column("session_id", sa.String(64), nullable=False, unique=True),
        sa.Column("visitor_name", sa.Text(), nullable=True),
        sa.Column("visitor_email", sa.String(255), nullable=True),
        sa.Column("current_page", sa.Text(), nullable=True),
        sa.Column("status", sa.String(11), nullable=False, server_default=sa.text("'active'")),
        sa.Column("calendly_link", sa.Text(), nullable=True),
        _timestamp("created_at"),
        _timestamp("last_activity_at"),
    )

    op.create_table(
        "ai_chat_messages",
        id_column(),
        sa.Column(
            "chat_session_id",
            uuid,
            sa.ForeignKey("ai_chat_sessions.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("role", sa.String(9), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        _timestamp("created_at"),
    )
    op.create_index("ix_ai_chat_messages_chat_session_id", "ai_chat_messages", ["chat_session_id"])

    op.create_table(
        "ai_handoff_requests",
        id_column(),
        sa.Column(
            "chat_session_id",
            uuid,
            sa.ForeignKey("ai_chat_sessions.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("reason", sa.Text(), nullable=True),
        sa.Column("status", sa.String(8), nullable=False, server_default=sa.text("'pending'")),
        _timestamp("created_at"),
    )


def downgrade() -> None:
    op.drop_table("ai_handoff_requests")
    op.drop_index("ix_ai_chat_messages_chat_session_id", table_name="ai_chat_messages")
    op.drop_table("ai_chat_messages")
    op.drop_table("ai_chat_sessions")
    op.drop_index("idx_keyword_ranking_history_domain_snapshot", table_name="keyword_ranking_history")
    op.drop_table("keyword_ranking_history")
    op.drop_table("ai_assistant_usage")
    op.drop_index("ix_domain_subscriptions_user_id", table_name="domain_subscriptions")
    op.drop_table("domain_subscriptions")
    op.drop_table("white_label_settings")
    op.drop_index("ix_user_roles_user_id", table_name="user_roles")
    op.drop_table("user_roles")
    op.drop_table("oauth_tokens")
    op.drop_table("profiles")
    op.drop_table("leads")
    op.drop_index("ix_form_submissions_session_id", table_name="form_submissions")
    op.drop_table("form_submissions")
    op.drop_index("ix_tool_interactions_session_id", table_name="tool_interactions")
    op.drop_table("tool_interactions")
    op.drop_index("ix_page_views_session_id", table_name="page_views")
    op.drop_table("page_views")
    op.drop_index("ix_visitor_sessions_domain", table_name="visitor_sessions")
    op.drop_index("ix_visitor_sessions_user_id", table_name="visitor_sessions")
    op.drop_index("idx_visitor_sessions_last_activity", table_name="visitor_sessions")
    op.drop_table("visitor_sessions")
