from __future__ import annotations

import datetime
import smtplib
import ssl
from dataclasses import dataclass
from email.message import EmailMessage
from typing import Optional

from loguru import logger

from santadraw.core.config import Settings
from santadraw.db import Assignment, DrawSession, DrawSessionShare, Participant, User, repo
from santadraw.services.draw_flow import ValidationError

DEFAULT_SUBJECT = "Your Secret Santa 🎁"
DEFAULT_TEMPLATE = """Hi {giver.name},

Your Secret Santa is: {receiver.name}.
Email: {receiver.email}

🎄 Happy gifting!"""

SMTP_TIMEOUT_SECONDS = 30


class MailerError(RuntimeError):
    pass


@dataclass(frozen=True)
class SmtpTransport:
    host: str
    port: int
    secure: bool
    user_name: Optional[str]
    password: Optional[str]
    sender: str

    @property
    def uses_implicit_tls(self) -> bool:
        if self.port == 465:
            return True
        if self.port == 587:
            return False
        return self.secure

    @property
    def uses_starttls(self) -> bool:
        return self.port == 587

    def _connect(self) -> smtplib.SMTP:
        context = ssl.create_default_context()
        if self.uses_implicit_tls:
            return smtplib.SMTP_SSL(self.host, self.port, timeout=SMTP_TIMEOUT_SECONDS, context=context)
        client = smtplib.SMTP(self.host, self.port, timeout=SMTP_TIMEOUT_SECONDS)
        if self.uses_starttls:
            client.starttls(context=context)
        return client

    def send(self, to: str, subject: str, text: str) -> None:
        message = EmailMessage()
        message["From"] = self.sender
        message["To"] = to
        message["Subject"] = subject
        message.set_content(text)

        try:
            with self._connect() as client:
                if self.user_name:
                    client.login(self.user_name, self.password or "")
                client.send_message(message)
        except (smtplib.SMTPException, OSError) as exc:
            raise MailerError(f"Could not send email to {to}: {exc}") from exc


def render_template(template: str, giver: Participant, receiver: Participant) -> str:
    return (
        template.replace("{giver.name}", giver.name)
        .replace("{giver.email}", giver.email)
        .replace("{receiver.name}", receiver.name)
        .replace("{receiver.email}", receiver.email)
    )


def resolve_transport(session, owner: User, settings: Settings) -> SmtpTransport:
    """Pick the SMTP transport for mail sent on behalf of ``owner``.

    The owner's own configuration wins, then the super admin's, then the
    SMTP_* environment settings.
    """
    config = repo.get_smtp_config(session, owner.id)
    if config is None:
        admin = repo.get_super_admin(session)
        if admin is not None:
            config = repo.get_smtp_config(session, admin.id)

    if config is not None:
        return SmtpTransport(
            host=config.host,
            port=config.port,
            secure=config.secure,
            user_name=config.user_name,
            password=config.password,
            sender=config.sender,
        )

    smtp = settings.smtp
    if not smtp.host or not smtp.sender:
        raise MailerError("No SMTP configuration available. Configure SMTP before sending emails.")
    return SmtpTransport(
        host=smtp.host,
        port=smtp.port,
        secure=smtp.secure,
        user_name=smtp.user_name,
        password=smtp.password,
        sender=smtp.sender,
    )


def _deliver(session, transport: SmtpTransport, draw_session: DrawSession, assignment: Assignment) -> None:
    subject = draw_session.email_subject_template or DEFAULT_SUBJECT
    template = draw_session.email_template or DEFAULT_TEMPLATE
    transport.send(
        assignment.giver.email,
        render_template(subject, assignment.giver, assignment.receiver),
        render_template(template, assignment.giver, assignment.receiver).strip(),
    )
    repo.mark_assignment_sent(session, assignment, datetime.datetime.now(datetime.timezone.utc))


def send_all_for_session(
    session,
    draw_session: DrawSession,
    settings: Settings,
    transport: Optional[SmtpTransport] = None,
) -> int:
    assignments = repo.list_assignments(session, draw_session.id)
    if not assignments:
        raise ValidationError("Run the draw before sending emails.")

    if transport is None:
        transport = resolve_transport(session, draw_session.owner, settings)

    # Stamps of delivered mail survive a later failure.
    for assignment in assignments:
        _deliver(session, transport, draw_session, assignment)
        session.commit()

    logger.bind(draw_session_id=draw_session.id, sent=len(assignments)).info("Assignment emails sent")
    return len(assignments)


def resend_for_assignment(
    session,
    assignment: Assignment,
    settings: Settings,
    transport: Optional[SmtpTransport] = None,
) -> None:
    draw_session = assignment.draw_session
    if transport is None:
        transport = resolve_transport(session, draw_session.owner, settings)
    _deliver(session, transport, draw_session, assignment)
    logger.bind(draw_session_id=draw_session.id, assignment_id=assignment.id).info("Assignment email resent")


def send_share_invitation(
    session,
    share: DrawSessionShare,
    settings: Settings,
    transport: Optional[SmtpTransport] = None,
) -> bool:
    draw_session = share.draw_session
    owner = draw_session.owner
    inviter = owner.name or "A user"
    text = (
        "Hello,\n\n"
        f'{inviter} invited you to the draw "{draw_session.name}" on Secret Santa Manager.\n\n'
        "Sign in or create an account to accept the invitation:\n\n"
        f"{settings.base_url}\n\n"
        f"Once signed in with your email ({share.email}), the invitation shows up in your "
        "list of draws where you can accept or decline it."
    )
    try:
        if transport is None:
            transport = resolve_transport(session, owner, settings)
        transport.send(share.email, f'Invitation to the draw "{draw_session.name}"', text)
    except MailerError as exc:
        logger.bind(draw_session_id=draw_session.id, share_id=share.id).warning(
            "Failed to send share invitation: {error}", error=str(exc)
        )
        return False
    return True
