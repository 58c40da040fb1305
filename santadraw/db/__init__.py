from santadraw.db.models import (
    Assignment,
    Base,
    DrawSession,
    DrawSessionShare,
    ExclusionGroup,
    Participant,
    SmtpConfig,
    User,
    participant_groups,
)
from santadraw.db.session import SessionLocal, get_session, init_engine

__all__ = [
    "Assignment",
    "Base",
    "DrawSession",
    "DrawSessionShare",
    "ExclusionGroup",
    "Participant",
    "SmtpConfig",
    "User",
    "participant_groups",
    "SessionLocal",
    "get_session",
    "init_engine",
]
