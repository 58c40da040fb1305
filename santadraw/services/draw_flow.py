from __future__ import annotations

import datetime
import random
import re
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

from loguru import logger
from sqlalchemy.exc import IntegrityError

from santadraw.db import (
    Assignment,
    DrawSession,
    DrawSessionShare,
    ExclusionGroup,
    Participant,
    SmtpConfig,
    User,
    repo,
)
from santadraw.services.assignment import (
    DEFAULT_MAX_ATTEMPTS,
    InsufficientParticipants,
    build_participants,
    generate_assignments,
)

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
MAX_SEED = 2**31 - 1


class DrawFlowError(RuntimeError):
    pass


class NotFoundError(DrawFlowError):
    pass


class AccessDeniedError(DrawFlowError):
    pass


class ValidationError(DrawFlowError):
    pass


class ConflictError(DrawFlowError):
    pass


@dataclass(frozen=True)
class Access:
    has_access: bool
    is_owner: bool


@dataclass(frozen=True)
class DrawResult:
    draw_session: DrawSession
    assignments: List[Assignment]
    seed: int


def _utcnow() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)


def _required(value: Optional[str], message: str) -> str:
    value = (value or "").strip()
    if not value:
        raise ValidationError(message)
    return value


def _valid_email(value: Optional[str]) -> str:
    email = _required(value, "Email is required.")
    if not EMAIL_RE.match(email):
        raise ValidationError("Invalid email format.")
    return email


def ensure_user(session, email: str, name: Optional[str] = None) -> User:
    return repo.upsert_user(session, _valid_email(email), (name or "").strip() or None)


def get_user(session, user_id: int) -> User:
    user = repo.get_user_by_id(session, user_id)
    if user is None:
        raise NotFoundError("User not found.")
    return user


def needs_super_admin_setup(session) -> bool:
    return repo.get_super_admin(session) is None


def setup_super_admin(session, user: User) -> User:
    """Promote ``user`` to super admin. Only allowed while no super admin exists."""
    if not needs_super_admin_setup(session):
        raise AccessDeniedError("A super admin already exists.")
    user.is_super_admin = True
    session.flush()
    logger.bind(user_id=user.id).info("Super admin configured")
    return user


def check_access(session, draw_session_id: int, user: User) -> Access:
    draw_session = repo.get_draw_session_by_id(session, draw_session_id)
    if draw_session is None:
        return Access(has_access=False, is_owner=False)
    if draw_session.owner_id == user.id:
        return Access(has_access=True, is_owner=True)
    if repo.is_draw_session_shared_with(session, draw_session_id, user):
        return Access(has_access=True, is_owner=False)
    return Access(has_access=False, is_owner=False)


def require_access(session, draw_session_id: int, user: User) -> DrawSession:
    access = check_access(session, draw_session_id, user)
    if not access.has_access:
        raise NotFoundError("Draw session not found or access denied.")
    return repo.get_draw_session_by_id(session, draw_session_id)


def require_owner(session, draw_session_id: int, user: User) -> DrawSession:
    draw_session = require_access(session, draw_session_id, user)
    if draw_session.owner_id != user.id:
        raise AccessDeniedError("Only the owner of the draw session can do this.")
    return draw_session


def create_draw_session(session, user: User, name: Optional[str], description: Optional[str] = None) -> DrawSession:
    name = _required(name, "Draw session name is required.")
    if repo.get_draw_session_by_owner_and_name(session, user.id, name):
        raise ConflictError("A draw session with this name already exists.")
    try:
        return repo.create_draw_session(session, user.id, name, description)
    except IntegrityError as exc:
        raise ConflictError("A draw session with this name already exists.") from exc


def list_draw_sessions(session, user: User) -> List[DrawSession]:
    return repo.list_draw_sessions_for_user(session, user)


def update_draw_session(
    session,
    draw_session: DrawSession,
    description: Optional[str] = None,
    email_subject_template: Optional[str] = None,
    email_template: Optional[str] = None,
) -> DrawSession:
    """Update the editable texts of a draw session; ``None`` leaves a field as is."""
    if description is not None:
        draw_session.description = description
    if email_subject_template is not None:
        draw_session.email_subject_template = email_subject_template or None
    if email_template is not None:
        draw_session.email_template = email_template or None
    return draw_session


def delete_draw_session(session, draw_session: DrawSession) -> None:
    repo.delete_draw_session(session, draw_session)
    logger.bind(draw_session_id=draw_session.id).info("Draw session deleted")


def add_group(session, draw_session: DrawSession, name: Optional[str]) -> ExclusionGroup:
    name = _required(name, "Group name is required.")
    if repo.get_group_by_name(session, draw_session.id, name):
        raise ConflictError("A group with this name already exists in this draw session.")
    return repo.create_group(session, draw_session.id, name)


def delete_group(session, draw_session: DrawSession, group_id: int) -> None:
    group = repo.get_group(session, draw_session.id, group_id)
    if group is None:
        raise NotFoundError("Group not found in this draw session.")
    repo.delete_group(session, group)


def _resolve_groups(session, draw_session: DrawSession, group_ids: Optional[Sequence[int]]) -> List[ExclusionGroup]:
    if group_ids is not None and not isinstance(group_ids, (list, tuple, set, frozenset)):
        raise ValidationError("groupIds must be a list.")
    try:
        wanted = {int(group_id) for group_id in (group_ids or []) if group_id}
    except (TypeError, ValueError) as exc:
        raise ValidationError("Group ids must be integers.") from exc
    groups = repo.list_groups_by_ids(session, draw_session.id, sorted(wanted))
    if len(groups) != len(wanted):
        raise ValidationError("Unknown group for this draw session.")
    return groups


def add_participant(
    session,
    draw_session: DrawSession,
    name: Optional[str],
    email: Optional[str],
    group_ids: Optional[Sequence[int]] = None,
) -> Participant:
    name = _required(name, "Name is required.")
    email = _valid_email(email)
    if repo.get_participant_by_name(session, draw_session.id, name):
        raise ConflictError("A participant with this name already exists in this draw session.")
    groups = _resolve_groups(session, draw_session, group_ids)
    return repo.create_participant(session, draw_session.id, name, email, groups)


def update_participant(
    session,
    draw_session: DrawSession,
    participant_id: int,
    name: Optional[str],
    email: Optional[str],
    group_ids: Optional[Sequence[int]] = None,
) -> Participant:
    participant = repo.get_participant(session, draw_session.id, participant_id)
    if participant is None:
        raise NotFoundError("Participant not found in this draw session.")
    name = _required(name, "Name is required.")
    email = _valid_email(email)
    if repo.get_participant_by_name(session, draw_session.id, name, exclude_id=participant.id):
        raise ConflictError("A participant with this name already exists in this draw session.")
    groups = _resolve_groups(session, draw_session, group_ids)
    return repo.update_participant(session, participant, name, email, groups)


def delete_participant(session, draw_session: DrawSession, participant_id: int) -> None:
    participant = repo.get_participant(session, draw_session.id, participant_id)
    if participant is None:
        raise NotFoundError("Participant not found in this draw session.")
    repo.delete_participant(session, participant)


def list_participants(session, draw_session: DrawSession) -> List[Participant]:
    return repo.list_participants_with_groups(session, draw_session.id)


def run_draw(
    session,
    draw_session: DrawSession,
    seed: Optional[int] = None,
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
) -> DrawResult:
    """Draw a fresh set of pairs for the session and replace the previous one.

    Engine errors propagate untouched and leave stored assignments as they were.
    """
    if seed is not None and not 0 <= seed <= MAX_SEED:
        raise ValidationError(f"Seed must be between 0 and {MAX_SEED}.")

    participants = repo.list_participants_with_groups(session, draw_session.id)
    if len(participants) < 2:
        raise InsufficientParticipants(len(participants))

    if seed is None:
        seed = random.randint(1, MAX_SEED)

    pairs: List[Tuple[int, int]] = generate_assignments(
        build_participants((p.id, [group.id for group in p.groups]) for p in participants),
        seed=seed,
        max_attempts=max_attempts,
    )

    assignments = repo.replace_assignments(session, draw_session.id, pairs)
    draw_session.last_draw_seed = seed
    draw_session.drawn_at = _utcnow()
    logger.bind(draw_session_id=draw_session.id, seed=seed, participants=len(participants)).info(
        "Assignments generated"
    )
    return DrawResult(draw_session=draw_session, assignments=assignments, seed=seed)


def list_assignments(session, draw_session: DrawSession) -> List[Assignment]:
    return repo.list_assignments(session, draw_session.id)


def get_assignment_for_user(session, assignment_id: int, user: User) -> Assignment:
    assignment = repo.get_assignment(session, assignment_id)
    if assignment is None:
        raise NotFoundError("Assignment not found.")
    require_access(session, assignment.draw_session_id, user)
    return assignment


def share_draw_session(session, draw_session: DrawSession, user: User, email: Optional[str]) -> DrawSessionShare:
    email = _valid_email(email).lower()
    if email == user.email:
        raise ValidationError("You cannot share a draw session with yourself.")
    if repo.get_pending_share(session, draw_session.id, email):
        raise ConflictError("An invitation has already been sent to this email.")
    share = repo.create_share(session, draw_session.id, email, user.id)
    logger.bind(draw_session_id=draw_session.id, share_id=share.id).info("Draw session shared")
    return share


def list_shares(session, draw_session: DrawSession) -> List[DrawSessionShare]:
    return repo.list_shares(session, draw_session.id)


def delete_share(session, draw_session: DrawSession, share_id: int) -> None:
    share = repo.get_share(session, draw_session.id, share_id)
    if share is None:
        raise NotFoundError("Share not found.")
    repo.delete_share(session, share)


def list_pending_invitations(session, user: User) -> List[DrawSessionShare]:
    return repo.list_pending_shares_for_email(session, user.email)


def _pending_invitation(session, draw_session_id: int, share_id: int, user: User) -> DrawSessionShare:
    share = repo.get_pending_share(session, draw_session_id, user.email, share_id=share_id)
    if share is None:
        raise NotFoundError("Invitation not found or already accepted.")
    return share


def accept_share(session, draw_session_id: int, share_id: int, user: User) -> DrawSessionShare:
    share = _pending_invitation(session, draw_session_id, share_id, user)
    repo.accept_share(session, share, user.id, _utcnow())
    return share


def reject_share(session, draw_session_id: int, share_id: int, user: User) -> None:
    share = _pending_invitation(session, draw_session_id, share_id, user)
    repo.delete_share(session, share)


def get_smtp_config(session, user: User) -> Optional[SmtpConfig]:
    return repo.get_smtp_config(session, user.id)


def save_smtp_config(
    session,
    user: User,
    host: Optional[str],
    port,
    secure: bool,
    user_name: Optional[str],
    password: Optional[str],
    sender: Optional[str],
) -> SmtpConfig:
    host = _required(host, "SMTP host is required.")
    sender = _required(sender, "SMTP sender is required.")
    try:
        port = int(port)
    except (TypeError, ValueError) as exc:
        raise ValidationError("SMTP port must be a number.") from exc
    if not 0 < port < 65536:
        raise ValidationError("SMTP port must be between 1 and 65535.")
    return repo.upsert_smtp_config(
        session,
        user.id,
        host,
        port,
        bool(secure),
        (user_name or "").strip() or None,
        password or None,
        sender,
    )
