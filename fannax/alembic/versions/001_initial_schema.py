"""initial_schema

Revision ID: 001
Revises:
Create Date: 2026-10-19 00:00:00.000000

Users (points ledger), teams, matches, predictions and notifications.
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

match_status = sa.Enum("SCHEDULED", "LIVE", "FINISHED", name="matchstatus")
prediction_result = sa.Enum(
    "PENDING", "EXACT_MATCH", "CORRECT_WINNER", "INCORRECT", name="predictionresult"
)


def upgrade() -> None:
    """Create all pipeline tables with constraints and indexes."""
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("username", sa.String(length=20), nullable=False),
        sa.Column("name", sa.String(), nullable=True),
        sa.Column("total_points", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("username"),
    )
    op.create_index("idx_users_username", "users", ["username"], unique=False)
    op.create_index("idx_users_total_points", "users", ["total_points"], unique=False)

    op.create_table(
        "teams",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("external_id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("short_code", sa.String(length=10), nullable=True),
        sa.Column("logo_url", sa.String(length=500), nullable=True),
        sa.Column("reserved_username", sa.String(length=20), nullable=False),
        sa.Column("country_id", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("external_id"),
        sa.UniqueConstraint("reserved_username"),
    )
    op.create_index("idx_teams_name", "teams", ["name"], unique=False)

    op.create_table(
        "matches",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("external_id", sa.Integer(), nullable=False),
        sa.Column("home_team_id", sa.Integer(), nullable=False),
        sa.Column("away_team_id", sa.Integer(), nullable=False),
        sa.Column("scheduled_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("venue", sa.String(), nullable=True),
        sa.Column("league_name", sa.String(), nullable=True),
        sa.Column("league_id", sa.Integer(), nullable=True),
        sa.Column("status", match_status, nullable=False),
        sa.Column("home_score", sa.Integer(), nullable=True),
        sa.Column("away_score", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.ForeignKeyConstraint(["home_team_id"], ["teams.id"]),
        sa.ForeignKeyConstraint(["away_team_id"], ["teams.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("external_id"),
        sa.CheckConstraint(
            "(status = 'FINISHED' AND home_score IS NOT NULL AND away_score IS NOT NULL) "
            "OR (status != 'FINISHED' AND home_score IS NULL AND away_score IS NULL)",
            name="ck_matches_score_iff_finished",
        ),
    )
    op.create_index("idx_matches_status", "matches", ["status"], unique=False)
    op.create_index("idx_matches_scheduled_at", "matches", ["scheduled_at"], unique=False)
    op.create_index("idx_matches_home_team", "matches", ["home_team_id"], unique=False)
    op.create_index("idx_matches_away_team", "matches", ["away_team_id"], unique=False)

    op.create_table(
        "predictions",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("match_id", sa.Integer(), nullable=False),
        sa.Column("predicted_home_score", sa.Integer(), nullable=False),
        sa.Column("predicted_away_score", sa.Integer(), nullable=False),
        sa.Column("caption", sa.String(length=280), nullable=True),
        sa.Column("result_status", prediction_result, nullable=False),
        sa.Column("points_awarded", sa.Integer(), nullable=True),
        sa.Column("settled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"]),
        sa.ForeignKeyConstraint(["match_id"], ["matches.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("user_id", "match_id", name="uq_predictions_user_match"),
        sa.CheckConstraint(
            "predicted_home_score >= 0 AND predicted_home_score <= 20",
            name="ck_predictions_home_score_range",
        ),
        sa.CheckConstraint(
            "predicted_away_score >= 0 AND predicted_away_score <= 20",
            name="ck_predictions_away_score_range",
        ),
    )
    op.create_index(
        "idx_predictions_match_status", "predictions", ["match_id", "result_status"], unique=False
    )
    op.create_index(
        "idx_predictions_user_created", "predictions", ["user_id", "created_at"], unique=False
    )
    op.create_index("idx_predictions_created_at", "predictions", ["created_at"], unique=False)

    op.create_table(
        "notifications",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("type", sa.String(), nullable=False),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("data", sa.Text(), nullable=True),
        sa.Column("prediction_id", sa.Integer(), nullable=True),
        sa.Column("is_read", sa.Boolean(), nullable=False, server_default="false"),
        sa.Column("read_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("link_url", sa.String(length=500), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"]),
        sa.ForeignKeyConstraint(["prediction_id"], ["predictions.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "idx_notifications_user_unread",
        "notifications",
        ["user_id", "is_read", "created_at"],
        unique=False,
    )
    op.create_index(
        "idx_notifications_user_created", "notifications", ["user_id", "created_at"], unique=False
    )
    op.create_index("idx_notifications_prediction", "notifications", ["prediction_id"], unique=False)


def downgrade() -> None:
    """Drop all pipeline tables."""
    op.drop_table("notifications")
    op.drop_table("predictions")
    op.drop_table("matches")
    op.drop_table("teams")
    op.drop_table("users")
    prediction_result.drop(op.get_bind(), checkfirst=True)
    match_status.drop(op.get_bind(), checkfirst=True)
