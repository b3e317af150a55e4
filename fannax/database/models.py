"""
SQLAlchemy ORM models for the Fannax match prediction system.
"""

import enum
from sqlalchemy import (
    Column,
    Integer,
    String,
    Text,
    Boolean,
    DateTime,
    Enum,
    ForeignKey,
    UniqueConstraint,
    CheckConstraint,
    Index,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from fannax.database.db import Base


class MatchStatus(str, enum.Enum):
    """Match lifecycle status enum."""

    SCHEDULED = "SCHEDULED"
    LIVE = "LIVE"
    FINISHED = "FINISHED"


class PredictionResult(str, enum.Enum):
    """Prediction settlement status enum."""

    PENDING = "PENDING"
    EXACT_MATCH = "EXACT_MATCH"
    CORRECT_WINNER = "CORRECT_WINNER"
    INCORRECT = "INCORRECT"


class NotificationType(str, enum.Enum):
    """Notification type enum."""

    PREDICTION_RESULT = "prediction_result"


class User(Base):
    """User accounts. Identity is managed upstream; this row hosts the points ledger."""

    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    username = Column(String(20), nullable=False, unique=True)
    name = Column(String, nullable=True)
    total_points = Column(Integer, default=0, server_default="0", nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    # Relationships
    predictions = relationship("Prediction", back_populates="user")

    __table_args__ = (
        Index("idx_users_username", "username"),
        Index("idx_users_total_points", "total_points"),
    )


class Team(Base):
    """Football clubs imported from the fixture provider."""

    __tablename__ = "teams"

    id = Column(Integer, primary_key=True, autoincrement=True)
    external_id = Column(Integer, nullable=False, unique=True)  # Provider team id
    name = Column(String, nullable=False)
    short_code = Column(String(10), nullable=True)
    logo_url = Column(String(500), nullable=True)
    reserved_username = Column(
        String(20), nullable=False, unique=True
    )  # Handle held back from human sign-ups (e.g., "arsenal")
    country_id = Column(Integer, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    __table_args__ = (Index("idx_teams_name", "name"),)


class Match(Base):
    """Fixtures and their final results."""

    __tablename__ = "matches"

    id = Column(Integer, primary_key=True, autoincrement=True)
    external_id = Column(Integer, nullable=False, unique=True)  # Provider fixture id
    home_team_id = Column(Integer, ForeignKey("teams.id"), nullable=False)
    away_team_id = Column(Integer, ForeignKey("teams.id"), nullable=False)
    scheduled_at = Column(DateTime(timezone=True), nullable=False)
    venue = Column(String, nullable=True)
    league_name = Column(String, nullable=True)
    league_id = Column(Integer, nullable=True)  # Provider league id
    status = Column(Enum(MatchStatus), default=MatchStatus.SCHEDULED, nullable=False)
    home_score = Column(Integer, nullable=True)  # Set only once FINISHED
    away_score = Column(Integer, nullable=True)  # Set only once FINISHED
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    # Relationships
    home_team = relationship("Team", foreign_keys=[home_team_id], lazy="selectin")
    away_team = relationship("Team", foreign_keys=[away_team_id], lazy="selectin")
    predictions = relationship("Prediction", back_populates="match")

    @property
    def has_final_score(self) -> bool:
        """Whether the final score has been recorded."""
        return self.home_score is not None and self.away_score is not None

    __table_args__ = (
        CheckConstraint(
            "(status = 'FINISHED' AND home_score IS NOT NULL AND away_score IS NOT NULL) "
            "OR (status != 'FINISHED' AND home_score IS NULL AND away_score IS NULL)",
            name="ck_matches_score_iff_finished",
        ),
        Index("idx_matches_status", "status"),
        Index("idx_matches_scheduled_at", "scheduled_at"),
        Index("idx_matches_home_team", "home_team_id"),
        Index("idx_matches_away_team", "away_team_id"),
    )


class Prediction(Base):
    """A user's score prediction for a match."""

    __tablename__ = "predictions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    match_id = Column(Integer, ForeignKey("matches.id"), nullable=False)
    predicted_home_score = Column(Integer, nullable=False)
    predicted_away_score = Column(Integer, nullable=False)
    caption = Column(String(280), nullable=True)
    result_status = Column(
        Enum(PredictionResult), default=PredictionResult.PENDING, nullable=False
    )
    points_awarded = Column(Integer, nullable=True)  # Null until settled
    settled_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    # Relationships
    user = relationship("User", back_populates="predictions")
    match = relationship("Match", back_populates="predictions")

    __table_args__ = (
        UniqueConstraint("user_id", "match_id", name="uq_predictions_user_match"),
        CheckConstraint(
            "predicted_home_score >= 0 AND predicted_home_score <= 20",
            name="ck_predictions_home_score_range",
        ),
        CheckConstraint(
            "predicted_away_score >= 0 AND predicted_away_score <= 20",
            name="ck_predictions_away_score_range",
        ),
        Index("idx_predictions_match_status", "match_id", "result_status"),
        Index("idx_predictions_user_created", "user_id", "created_at"),
        Index("idx_predictions_created_at", "created_at"),
    )


class Notification(Base):
    """User notifications for in-app messaging."""

    __tablename__ = "notifications"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    type = Column(String, nullable=False)  # NotificationType enum value
    title = Column(String(255), nullable=False)
    message = Column(Text, nullable=False)
    data = Column(
        Text, nullable=True
    )  # JSON string for flexible metadata (match_id, points, etc.)
    prediction_id = Column(
        Integer, ForeignKey("predictions.id"), nullable=True
    )  # Originating prediction for result notifications
    is_read = Column(Boolean, default=False, nullable=False)
    read_at = Column(DateTime(timezone=True), nullable=True)
    link_url = Column(String(500), nullable=True)  # Navigation target
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    # Relationships
    user = relationship("User", backref="notifications")
    prediction = relationship("Prediction")

    __table_args__ = (
        Index("idx_notifications_user_unread", "user_id", "is_read", "created_at"),
        Index("idx_notifications_user_created", "user_id", "created_at"),
        Index("idx_notifications_prediction", "prediction_id"),
    )
