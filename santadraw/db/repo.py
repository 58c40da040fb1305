from __future__ import annotations

import datetime
from typing import Iterable, List, Optional, Sequence, Tuple

from sqlalchemy import and_, func, or_, select
from sqlalchemy.orm import selectinload

from santadraw.db.models import (
    Assignment,
    DrawSession,
    DrawSessionShare,
    ExclusionGroup,
    Participant,
    SmtpConfig,
    User,
)


def get_user_by_id(session, user_id: int) -> Optional[User]:
    return session.scalar(select(User).where(User.id == user_id))


def get_user_by_email(session, email: str) -> Optional[User]:
    return session.scalar(select(User).where(User.email == email.lower()))


def upsert_user(session, email: str, name: Optional[str]) -> User:
    user = get_user_by_email(session, email)
    if user:
        if name and user.name != name:
            user.name = name
        return user

    user = User(email=email.lower(), name=name)
    session.add(user)
    session.flush()
    return user


def get_super_admin(session) -> Optional[User]:
    return session.scalar(select(User).where(User.is_super_admin.is_(True)).order_by(User.id))


def get_draw_session_by_id(session, draw_session_id: int) -> Optional[DrawSession]:
    return session.scalar(select(DrawSession).where(DrawSession.id == draw_session_id))


def get_draw_session_by_owner_and_name(session, owner_id: int, name: str) -> Optional[DrawSession]:
    return session.scalar(
        select(DrawSession).where(and_(DrawSession.owner_id == owner_id, DrawSession.name == name))
    )


def create_draw_session(session, owner_id: int, name: str, description: Optional[str]) -> DrawSession:
    draw_session = DrawSession(owner_id=owner_id, name=name, description=description)
    session.add(draw_session)
    session.flush()
    return draw_session


def list_draw_sessions_for_user(session, user: User) -> List[DrawSession]:
    shared_ids = (
        select(DrawSessionShare.draw_session_id)
        .where(
            and_(
                DrawSessionShare.email == user.email,
                DrawSessionShare.accepted_at.is_not(None),
                DrawSessionShare.accepted_by_id == user.id,
            )
        )
        .scalar_subquery()
    )
    return list(
        session.scalars(
            select(DrawSession)
            .where(or_(DrawSession.owner_id == user.id, DrawSession.id.in_(shared_ids)))
            .order_by(DrawSession.created_at.desc(), DrawSession.id.desc())
        ).all()
    )


def is_draw_session_shared_with(session, draw_session_id: int, user: User) -> bool:
    return session.scalar(
        select(func.count())
        .select_from(DrawSessionShare)
        .where(
            and_(
                DrawSessionShare.draw_session_id == draw_session_id,
                DrawSessionShare.email == user.email,
                DrawSessionShare.accepted_at.is_not(None),
                DrawSessionShare.accepted_by_id == user.id,
            )
        )
    ) > 0


def delete_draw_session(session, draw_session: DrawSession) -> None:
    session.delete(draw_session)


def get_group(session, draw_session_id: int, group_id: int) -> Optional[ExclusionGroup]:
    return session.scalar(
        select(ExclusionGroup).where(
            and_(ExclusionGroup.id == group_id, ExclusionGroup.draw_session_id == draw_session_id)
        )
    )


def get_group_by_name(session, draw_session_id: int, name: str) -> Optional[ExclusionGroup]:
    return session.scalar(
        select(ExclusionGroup).where(
            and_(ExclusionGroup.draw_session_id == draw_session_id, ExclusionGroup.name == name)
        )
    )


def list_groups_by_ids(session, draw_session_id: int, group_ids: Sequence[int]) -> List[ExclusionGroup]:
    if not group_ids:
        return []
    return list(
        session.scalars(
            select(ExclusionGroup).where(
                and_(
                    ExclusionGroup.draw_session_id == draw_session_id,
                    ExclusionGroup.id.in_(list(group_ids)),
                )
            )
        ).all()
    )


def create_group(session, draw_session_id: int, name: str) -> ExclusionGroup:
    group = ExclusionGroup(draw_session_id=draw_session_id, name=name)
    session.add(group)
    session.flush()
    return group


def delete_group(session, group: ExclusionGroup) -> None:
    session.delete(group)


def get_participant(session, draw_session_id: int, participant_id: int) -> Optional[Participant]:
    return session.scalar(
        select(Participant).where(
            and_(Participant.id == participant_id, Participant.draw_session_id == draw_session_id)
        )
    )


def get_participant_by_name(
    session,
    draw_session_id: int,
    name: str,
    exclude_id: Optional[int] = None,
) -> Optional[Participant]:
    query = select(Participant).where(
        and_(Participant.draw_session_id == draw_session_id, Participant.name == name)
    )
    if exclude_id is not None:
        query = query.where(Participant.id != exclude_id)
    return session.scalar(query)


def create_participant(
    session,
    draw_session_id: int,
    name: str,
    email: str,
    groups: Iterable[ExclusionGroup],
) -> Participant:
    participant = Participant(draw_session_id=draw_session_id, name=name, email=email, groups=list(groups))
    session.add(participant)
    session.flush()
    return participant


def update_participant(
    session,
    participant: Participant,
    name: str,
    email: str,
    groups: Iterable[ExclusionGroup],
) -> Participant:
    participant.name = name
    participant.email = email
    participant.groups = list(groups)
    session.flush()
    return participant


def delete_participant(session, participant: Participant) -> None:
    linked = session.scalars(
        select(Assignment).where(
            or_(Assignment.giver_id == participant.id, Assignment.receiver_id == participant.id)
        )
    ).all()
    for assignment in linked:
        session.delete(assignment)
    session.flush()
    session.delete(participant)


def list_participants_with_groups(session, draw_session_id: int) -> List[Participant]:
    return list(
        session.scalars(
            select(Participant)
            .options(selectinload(Participant.groups))
            .where(Participant.draw_session_id == draw_session_id)
            .order_by(Participant.id)
        ).all()
    )


def replace_assignments(session, draw_session_id: int, pairs: Sequence[Tuple[int, int]]) -> List[Assignment]:
    existing = session.scalars(select(Assignment).where(Assignment.draw_session_id == draw_session_id)).all()
    for assignment in existing:
        session.delete(assignment)
    session.flush()
    rows = [
        Assignment(draw_session_id=draw_session_id, giver_id=giver_id, receiver_id=receiver_id)
        for giver_id, receiver_id in pairs
    ]
    session.add_all(rows)
    session.flush()
    return rows


def list_assignments(session, draw_session_id: int) -> List[Assignment]:
    return list(
        session.scalars(
            select(Assignment)
            .options(selectinload(Assignment.giver), selectinload(Assignment.receiver))
            .where(Assignment.draw_session_id == draw_session_id)
            .order_by(Assignment.id)
        ).all()
    )


def get_assignment(session, assignment_id: int) -> Optional[Assignment]:
    return session.scalar(select(Assignment).where(Assignment.id == assignment_id))


def mark_assignment_sent(session, assignment: Assignment, sent_at: datetime.datetime) -> None:
    assignment.email_sent_at = sent_at
    assignment.email_send_count = (assignment.email_send_count or 0) + 1


def get_share(session, draw_session_id: int, share_id: int) -> Optional[DrawSessionShare]:
    return session.scalar(
        select(DrawSessionShare).where(
            and_(DrawSessionShare.id == share_id, DrawSessionShare.draw_session_id == draw_session_id)
        )
    )


def get_pending_share(session, draw_session_id: int, email: str, share_id: Optional[int] = None) -> Optional[DrawSessionShare]:
    query = select(DrawSessionShare).where(
        and_(
            DrawSessionShare.draw_session_id == draw_session_id,
            DrawSessionShare.email == email,
            DrawSessionShare.accepted_at.is_(None),
        )
    )
    if share_id is not None:
        query = query.where(DrawSessionShare.id == share_id)
    return session.scalar(query)


def create_share(session, draw_session_id: int, email: str, shared_by_id: int) -> DrawSessionShare:
    share = DrawSessionShare(draw_session_id=draw_session_id, email=email, shared_by_id=shared_by_id)
    session.add(share)
    session.flush()
    return share


def list_shares(session, draw_session_id: int) -> List[DrawSessionShare]:
    return list(
        session.scalars(
            select(DrawSessionShare)
            .where(DrawSessionShare.draw_session_id == draw_session_id)
            .order_by(DrawSessionShare.shared_at.desc(), DrawSessionShare.id.desc())
        ).all()
    )


def list_pending_shares_for_email(session, email: str) -> List[DrawSessionShare]:
    return list(
        session.scalars(
            select(DrawSessionShare)
            .options(selectinload(DrawSessionShare.draw_session))
            .where(and_(DrawSessionShare.email == email, DrawSessionShare.accepted_at.is_(None)))
            .order_by(DrawSessionShare.id)
        ).all()
    )


def accept_share(session, share: DrawSessionShare, user_id: int, accepted_at: datetime.datetime) -> None:
    share.accepted_at = accepted_at
    share.accepted_by_id = user_id
    session.flush()


def delete_share(session, share: DrawSessionShare) -> None:
    session.delete(share)


def get_smtp_config(session, user_id: int) -> Optional[SmtpConfig]:
    return session.scalar(select(SmtpConfig).where(SmtpConfig.user_id == user_id))


def upsert_smtp_config(
    session,
    user_id: int,
    host: str,
    port: int,
    secure: bool,
    user_name: Optional[str],
    password: Optional[str],
    sender: str,
) -> SmtpConfig:
    config = get_smtp_config(session, user_id)
    if config is None:
        config = SmtpConfig(user_id=user_id)
        session.add(config)
    config.host = host
    config.port = port
    config.secure = secure
    config.user_name = user_name
    config.password = password
    config.sender = sender
    session.flush()
    return config
