from __future__ import annotations

import datetime
from typing import Any, Dict, Optional

from santadraw.db import Assignment, DrawSession, DrawSessionShare, ExclusionGroup, Participant, SmtpConfig, User


def _iso(value: Optional[datetime.datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def user_to_dict(user: User) -> Dict[str, Any]:
    return {"id": user.id, "email": user.email, "name": user.name, "isSuperAdmin": user.is_super_admin}


def group_to_dict(group: ExclusionGroup) -> Dict[str, Any]:
    return {"id": group.id, "name": group.name}


def participant_to_dict(participant: Participant) -> Dict[str, Any]:
    return {
        "id": participant.id,
        "name": participant.name,
        "email": participant.email,
        "groups": [group_to_dict(group) for group in participant.groups],
    }


def draw_session_to_dict(draw_session: DrawSession, detailed: bool = False) -> Dict[str, Any]:
    data = {
        "id": draw_session.id,
        "ownerId": draw_session.owner_id,
        "name": draw_session.name,
        "description": draw_session.description,
        "drawnAt": _iso(draw_session.drawn_at),
        "createdAt": _iso(draw_session.created_at),
    }
    if detailed:
        data.update(
            {
                "emailSubjectTemplate": draw_session.email_subject_template,
                "emailTemplate": draw_session.email_template,
                "lastDrawSeed": draw_session.last_draw_seed,
                "groups": [group_to_dict(group) for group in draw_session.groups],
                "participants": [participant_to_dict(p) for p in draw_session.participants],
            }
        )
    return data


def assignment_to_dict(assignment: Assignment) -> Dict[str, Any]:
    return {
        "id": assignment.id,
        "giver": {"id": assignment.giver.id, "name": assignment.giver.name, "email": assignment.giver.email},
        "receiver": {
            "id": assignment.receiver.id,
            "name": assignment.receiver.name,
            "email": assignment.receiver.email,
        },
        "emailSentAt": _iso(assignment.email_sent_at),
        "emailSendCount": assignment.email_send_count or 0,
    }


def share_to_dict(share: DrawSessionShare) -> Dict[str, Any]:
    return {
        "id": share.id,
        "drawSessionId": share.draw_session_id,
        "drawSessionName": share.draw_session.name if share.draw_session else None,
        "email": share.email,
        "sharedById": share.shared_by_id,
        "sharedAt": _iso(share.shared_at),
        "acceptedAt": _iso(share.accepted_at),
        "acceptedById": share.accepted_by_id,
    }


def smtp_config_to_dict(config: Optional[SmtpConfig]) -> Dict[str, Any]:
    if config is None:
        return {}
    return {
        "host": config.host,
        "port": config.port,
        "secure": config.secure,
        "userName": config.user_name,
        "sender": config.sender,
        "hasPassword": bool(config.password),
    }
