from sqlalchemy import (
    Column, Integer, String, DateTime, Boolean, Text, Float, JSON,
    ForeignKey, UniqueConstraint, CheckConstraint
)
from sqlalchemy.orm import declarative_base, relationship
from sqlalchemy.sql import func

from arena.utils.code_metrics import count_lines_of_code, count_tokens

Base = declarative_base()

class User(Base):
    __tablename__ = 'users'

    id = Column(Integer, primary_key=True)
    username = Column(String(50), nullable=False)
    email = Column(String(50), nullable=False, unique=True)

    # Metadata
    created_at = Column(DateTime, default=func.now())

    # Relationships
    submissions = relationship("Submission", back_populates="user")

    def __repr__(self):
        return f"<User(id={self.id}, username='{self.username}')>"

class Game(Base):
    __tablename__ = 'games'

    id = Column(Integer, primary_key=True)
    name = Column(String(200), nullable=False, unique=True)
    summary = Column(String(100))
    batch_size = Column(Integer, default=100)

    # Metadata
    created_at = Column(DateTime, default=func.now())

    def __repr__(self):
        return f"<Game(name='{self.name}')>"

class Submission(Base):
    __tablename__ = 'submissions'

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey('users.id'), nullable=False, index=True)
    game_id = Column(Integer, ForeignKey('games.id'), nullable=False, index=True)
    title = Column(String(100), nullable=False)
    code = Column(Text, nullable=False)

    # Tournament eligibility
    active = Column(Boolean, default=False, nullable=False, index=True)
    passed_evaluation = Column(Boolean, nullable=True)  # None until evaluated
    evaluation = Column(JSON, nullable=True)  # Last evaluation detail

    # Metadata
    created_at = Column(DateTime, default=func.now())
    updated_at = Column(DateTime, default=func.now(), onupdate=func.now())

    # Relationships
    user = relationship("User", back_populates="submissions")
    game = relationship("Game")

    __table_args__ = (
        CheckConstraint('length(code) <= 10000', name='ck_submission_code_length'),
    )

    @property
    def is_eligible(self) -> bool:
        """Active and passed its last evaluation"""
        return bool(self.active) and self.passed_evaluation is True

    @property
    def token_count(self) -> int:
        return count_tokens(self.code or '')

    @property
    def lines_of_code(self) -> int:
        return count_lines_of_code(self.code or '')

    def __repr__(self):
        return f"<Submission(id={self.id}, user_id={self.user_id}, active={self.active})>"

class Grading(Base):
    """Immutable scored result of one submission within one tournament run"""
    __tablename__ = 'gradings'

    id = Column(Integer, primary_key=True)
    submission_id = Column(Integer, ForeignKey('submissions.id', ondelete='CASCADE'), nullable=False, index=True)
    score = Column(Float, nullable=False)

    # Enrichment relative to the batch the grading was created in
    z_value = Column(Float, nullable=True)
    placement = Column(Integer, nullable=False)
    percentile_rank = Column(Float, nullable=False)

    # Snapshots taken at enrichment time
    token_count = Column(Integer, nullable=False, default=0)
    avg_execution_time = Column(Float, nullable=True)

    # Metadata
    created_at = Column(DateTime, default=func.now())

    __table_args__ = (
        CheckConstraint('score >= 0 AND score <= 1000', name='ck_grading_score_range'),
        CheckConstraint('placement >= 1', name='ck_grading_placement_positive'),
    )

    def __repr__(self):
        return f"<Grading(id={self.id}, submission_id={self.submission_id}, score={self.score})>"

class Tournament(Base):
    __tablename__ = 'tournaments'

    id = Column(Integer, primary_key=True)
    game_id = Column(Integer, ForeignKey('games.id'), nullable=False, index=True)
    tournament_execution_time = Column(Float, nullable=False, default=0)

    # Metadata
    created_at = Column(DateTime, default=func.now(), index=True)

    # Relationships
    grading_links = relationship(
        "TournamentGrading",
        order_by="TournamentGrading.position",
        cascade="all, delete-orphan",
    )
    disqualifications = relationship(
        "Disqualification",
        order_by="Disqualification.id",
        cascade="all, delete-orphan",
    )

    def __repr__(self):
        return f"<Tournament(id={self.id}, game_id={self.game_id})>"

class TournamentGrading(Base):
    """Ordered membership of a grading in a tournament"""
    __tablename__ = 'tournament_gradings'

    tournament_id = Column(Integer, ForeignKey('tournaments.id', ondelete='CASCADE'), primary_key=True)
    # A grading belongs to exactly one tournament
    grading_id = Column(Integer, ForeignKey('gradings.id', ondelete='CASCADE'), primary_key=True, unique=True)
    position = Column(Integer, nullable=False)

    __table_args__ = (
        UniqueConstraint('tournament_id', 'position', name='uq_tournament_grading_position'),
    )

class Disqualification(Base):
    __tablename__ = 'disqualifications'

    id = Column(Integer, primary_key=True)
    tournament_id = Column(Integer, ForeignKey('tournaments.id', ondelete='CASCADE'), nullable=False)
    submission_id = Column(Integer, ForeignKey('submissions.id', ondelete='CASCADE'), nullable=False, index=True)
    reason = Column(Text, nullable=False)

    # Raw result of the disqualified run, when one was reported
    score = Column(Float, nullable=True)
    avg_execution_time = Column(Float, nullable=True)

    __table_args__ = (
        UniqueConstraint('tournament_id', 'submission_id', name='uq_disqualification_submission'),
    )

