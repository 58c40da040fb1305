from __future__ import annotations

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Table,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import declarative_base, relationship
from sqlalchemy.sql import func

Base = declarative_base()


participant_groups = Table(
    "participant_groups",
    Base.metadata,
    Column(
        "participant_id",
        Integer,
        ForeignKey("participants.id", ondelete="CASCADE"),
        primary_key=True,
    ),
    Column(
        "group_id",
        Integer,
        ForeignKey("exclusion_groups.id", ondelete="CASCADE"),
        primary_key=True,
    ),
)


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True)
    email = Column(String, unique=True, nullable=False, index=True)
    name = Column(String, nullable=True)
    is_super_admin = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    draw_sessions = relationship("DrawSession", back_populates="owner", cascade="all, delete-orphan")
    smtp_config = relationship("SmtpConfig", back_populates="user", uselist=False, cascade="all, delete-orphan")

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email={self.email}, is_super_admin={self.is_super_admin})>"


class DrawSession(Base):
    __tablename__ = "draw_sessions"

    id = Column(Integer, primary_key=True)
    owner_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    email_subject_template = Column(String, nullable=True)
    email_template = Column(Text, nullable=True)
    last_draw_seed = Column(Integer, nullable=True)
    drawn_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    owner = relationship("User", back_populates="draw_sessions")
    participants = relationship(
        "Participant",
        back_populates="draw_session",
        cascade="all, delete-orphan",
        order_by="Participant.id",
    )
    groups = relationship(
        "ExclusionGroup",
        back_populates="draw_session",
        cascade="all, delete-orphan",
        order_by="ExclusionGroup.id",
    )
    assignments = relationship("Assignment", back_populates="draw_session", cascade="all, delete-orphan")
    shares = relationship("DrawSessionShare", back_populates="draw_session", cascade="all, delete-orphan")

    __table_args__ = (UniqueConstraint("owner_id", "name", name="uq_draw_sessions_owner_name"),)

    def __repr__(self) -> str:
        return f"<DrawSession(id={self.id}, owner_id={self.owner_id}, name={self.name})>"


class ExclusionGroup(Base):
    __tablename__ = "exclusion_groups"

    id = Column(Integer, primary_key=True)
    draw_session_id = Column(Integer, ForeignKey("draw_sessions.id", ondelete="CASCADE"), nullable=False)
    name = Column(String, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    draw_session = relationship("DrawSession", back_populates="groups")
    participants = relationship("Participant", secondary=participant_groups, back_populates="groups")

    __table_args__ = (UniqueConstraint("draw_session_id", "name", name="uq_exclusion_groups_session_name"),)


class Participant(Base):
    __tablename__ = "participants"

    id = Column(Integer, primary_key=True)
    draw_session_id = Column(Integer, ForeignKey("draw_sessions.id", ondelete="CASCADE"), nullable=False)
    name = Column(String, nullable=False)
    email = Column(String, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    draw_session = relationship("DrawSession", back_populates="participants")
    groups = relationship("ExclusionGroup", secondary=participant_groups, back_populates="participants")

    __table_args__ = (UniqueConstraint("draw_session_id", "name", name="uq_participants_session_name"),)

    def __repr__(self) -> str:
        return f"<Participant(id={self.id}, name={self.name}, draw_session_id={self.draw_session_id})>"


class Assignment(Base):
    __tablename__ = "assignments"

    id = Column(Integer, primary_key=True)
    draw_session_id = Column(Integer, ForeignKey("draw_sessions.id", ondelete="CASCADE"), nullable=False)
    giver_id = Column(Integer, ForeignKey("participants.id", ondelete="CASCADE"), nullable=False)
    receiver_id = Column(Integer, ForeignKey("participants.id", ondelete="CASCADE"), nullable=False)
    email_sent_at = Column(DateTime(timezone=True), nullable=True)
    email_send_count = Column(Integer, nullable=False, default=0, server_default="0")
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    draw_session = relationship("DrawSession", back_populates="assignments")
    giver = relationship("Participant", foreign_keys=[giver_id])
    receiver = relationship("Participant", foreign_keys=[receiver_id])

    __table_args__ = (
        UniqueConstraint("draw_session_id", "giver_id", name="uq_assignments_session_giver"),
    )


class DrawSessionShare(Base):
    __tablename__ = "draw_session_shares"

    id = Column(Integer, primary_key=True)
    draw_session_id = Column(Integer, ForeignKey("draw_sessions.id", ondelete="CASCADE"), nullable=False)
    email = Column(String, nullable=False, index=True)
    shared_by_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    shared_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    accepted_at = Column(DateTime(timezone=True), nullable=True)
    accepted_by_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    draw_session = relationship("DrawSession", back_populates="shares")
    shared_by = relationship("User", foreign_keys=[shared_by_id])
    accepted_by = relationship("User", foreign_keys=[accepted_by_id])


class SmtpConfig(Base):
    __tablename__ = "smtp_configs"

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, unique=True)
    host = Column(String, nullable=False)
    port = Column(Integer, nullable=False)
    secure = Column(Boolean, nullable=False, default=False)
    user_name = Column(String, nullable=True)
    password = Column(String, nullable=True)
    sender = Column(String, nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    user = relationship("User", back_populates="smtp_config")
