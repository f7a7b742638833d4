"""Initial registry schema with structural check constraints and rate-limit defaults.

Revision ID: 0001_initial_schema
Revises:
Create Date: 2026-10-19 09:00:00.000000
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision: str = "0001_initial_schema"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

SLUG_RE = "^[a-z][a-z0-9]*(-[a-z0-9]+)*$"
USERNAME_RE = "^[a-zA-Z][a-zA-Z0-9_-]*$"
VERSION_RE = r"^[0-9]+\.[0-9]+\.[0-9]+(-[0-9A-Za-z.-]+)?(\+[0-9A-Za-z.-]+)?$"


def _slug_check(column: str, name: str) -> sa.CheckConstraint:
    return sa.CheckConstraint(
        f"{column} ~ '{SLUG_RE}' AND char_length({column}) BETWEEN 2 AND 64",
        name=name,
    )


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
    ]


# ---------------------------------------------------------------------------
# UPGRADE
# ---------------------------------------------------------------------------


def upgrade() -> None:
    # users
    op.create_table(
        "users",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("github_id", sa.BigInteger(), nullable=False, unique=True),
        sa.Column("username", sa.Text(), nullable=False, unique=True),
        sa.Column("email", sa.Text(), nullable=True),
        sa.Column("avatar_url", sa.Text(), nullable=True),
        *_timestamps(),
        sa.CheckConstraint(
            f"username ~ '{USERNAME_RE}' AND char_length(username) <= 39",
            name="users_username_format",
        ),
    )
    op.create_index("idx_users_username_lower", "users", [sa.text("lower(username)")], unique=True)

    # organizations
    op.create_table(
        "organizations",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("slug", sa.Text(), nullable=False, unique=True),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("description", sa.Text(), nullable=False, server_default=""),
        sa.Column("avatar_url", sa.Text(), nullable=True),
        sa.Column("created_by", postgresql.UUID(as_uuid=True), sa.ForeignKey("users.id"), nullable=False),
        *_timestamps(),
        _slug_check("slug", "organizations_slug_format"),
        sa.CheckConstraint("char_length(description) <= 500", name="organizations_description_length"),
    )

    # org_members
    op.create_table(
        "org_members",
        sa.Column("org_id", postgresql.UUID(as_uuid=True),
                  sa.ForeignKey("organizations.id", ondelete="CASCADE"), primary_key=True),
        sa.Column("user_id", postgresql.UUID(as_uuid=True),
                  sa.ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
        sa.Column("role", sa.Text(), nullable=False, server_default="member"),
        sa.Column("joined_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.CheckConstraint("role IN ('owner', 'admin', 'member')", name="org_members_role_check"),
    )
    op.create_index("idx_org_members_user", "org_members", ["user_id"])

    # teams
    op.create_table(
        "teams",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("org_id", postgresql.UUID(as_uuid=True),
                  sa.ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False),
        sa.Column("slug", sa.Text(), nullable=False),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("description", sa.Text(), nullable=False, server_default=""),
        *_timestamps(),
        sa.UniqueConstraint("org_id", "slug", name="teams_org_slug_key"),
        _slug_check("slug", "teams_slug_format"),
    )
    op.create_index("idx_teams_org", "teams", ["org_id"])

    # team_members
    op.create_table(
        "team_members",
        sa.Column("team_id", postgresql.UUID(as_uuid=True),
                  sa.ForeignKey("teams.id", ondelete="CASCADE"), primary_key=True),
        sa.Column("user_id", postgresql.UUID(as_uuid=True),
                  sa.ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
        sa.Column("joined_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
    )
    op.create_index("idx_team_members_user", "team_members", ["user_id"])

    # skills
    op.create_table(
        "skills",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("owner", sa.Text(), nullable=False),
        sa.Column("owner_id", postgresql.UUID(as_uuid=True),
                  sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=True),
        sa.Column("owner_org_id", postgresql.UUID(as_uuid=True),
                  sa.ForeignKey("organizations.id", ondelete="CASCADE"), nullable=True),
        sa.Column("team_id", postgresql.UUID(as_uuid=True),
                  sa.ForeignKey("teams.id", ondelete="SET NULL"), nullable=True),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("description", sa.Text(), nullable=False, server_default=""),
        sa.Column("visibility", sa.Text(), nullable=False, server_default="public"),
        sa.Column("tools", sa.JSON(), nullable=False, server_default="[]"),
        sa.Column("tags", sa.JSON(), nullable=False, server_default="[]"),
        sa.Column("latest_version", sa.Text(), nullable=True),
        sa.Column("downloads", sa.BigInteger(), nullable=False, server_default="0"),
        sa.Column("deprecated", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("deprecation_message", sa.Text(), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("owner", "name", name="skills_owner_name_key"),
        _slug_check("name", "skills_name_format"),
        sa.CheckConstraint("char_length(description) <= 500", name="skills_description_length"),
        sa.CheckConstraint(
            "visibility IN ('public', 'private', 'org', 'team')",
            name="skills_visibility_check",
        ),
        sa.CheckConstraint(
            "(owner_id IS NOT NULL AND owner_org_id IS NULL) OR "
            "(owner_id IS NULL AND owner_org_id IS NOT NULL)",
            name="skills_owner_xor",
        ),
        sa.CheckConstraint(
            "visibility != 'team' OR team_id IS NOT NULL",
            name="skills_team_visibility",
        ),
        sa.CheckConstraint(
            "visibility != 'private' OR owner_org_id IS NULL",
            name="skills_private_requires_user_owner",
        ),
        sa.CheckConstraint(
            "visibility NOT IN ('org', 'team') OR owner_org_id IS NOT NULL",
            name="skills_org_visibility_requires_org_owner",
        ),
    )
    op.create_index("idx_skills_owner", "skills", ["owner"])
    op.create_index("idx_skills_owner_id", "skills", ["owner_id"])
    op.create_index("idx_skills_owner_org", "skills", ["owner_org_id"])
    op.create_index("idx_skills_team", "skills", ["team_id"])
    op.create_index("idx_skills_visibility", "skills", ["visibility"])
    op.create_index("idx_skills_downloads", "skills", [sa.text("downloads DESC")])

    # skill_versions (content immutable; versions are inserted or deleted, never updated)
    op.create_table(
        "skill_versions",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("skill_id", postgresql.UUID(as_uuid=True),
                  sa.ForeignKey("skills.id", ondelete="CASCADE"), nullable=False),
        sa.Column("version", sa.Text(), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("published_by", postgresql.UUID(as_uuid=True), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("published_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.UniqueConstraint("skill_id", "version", name="skill_versions_skill_version_key"),
        sa.CheckConstraint(
            f"version ~ '{VERSION_RE}' AND char_length(version) <= 32",
            name="skill_versions_version_format",
        ),
    )
    op.create_index("idx_skill_versions_skill", "skill_versions", ["skill_id"])

    # rate_limits
    op.create_table(
        "rate_limits",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("identifier", sa.Text(), nullable=False),
        sa.Column("action", sa.Text(), nullable=False),
        sa.Column("window_start", sa.BigInteger(), nullable=False),
        sa.Column("request_count", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.UniqueConstraint("identifier", "action", "window_start", name="rate_limits_window_key"),
    )
    op.create_index("idx_rate_limits_window_start", "rate_limits", ["window_start"])

    # rate_limit_config
    config = op.create_table(
        "rate_limit_config",
        sa.Column("action", sa.Text(), primary_key=True),
        sa.Column("window_seconds", sa.Integer(), nullable=False),
        sa.Column("anonymous_limit", sa.Integer(), nullable=False),
        sa.Column("authenticated_limit", sa.Integer(), nullable=False),
        sa.CheckConstraint("window_seconds > 0", name="rate_limit_config_window_positive"),
    )
    op.bulk_insert(config, [
        {"action": "api", "window_seconds": 3600, "anonymous_limit": 60, "authenticated_limit": 1000},
        {"action": "publish", "window_seconds": 3600, "anonymous_limit": 0, "authenticated_limit": 30},
    ])


# ---------------------------------------------------------------------------
# DOWNGRADE
# ---------------------------------------------------------------------------


def downgrade() -> None:
    for table in (
        "rate_limit_config",
        "rate_limits",
        "skill_versions",
        "skills",
        "team_members",
        "teams",
        "org_members",
        "organizations",
        "users",
    ):
        op.drop_table(table)
