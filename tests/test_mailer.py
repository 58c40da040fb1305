import dataclasses
import smtplib

import pytest

from santadraw.core.config import SmtpSettings
from santadraw.db import Participant
from santadraw.services import draw_flow, mailer
from santadraw.services.mailer import MailerError, SmtpTransport


@pytest.fixture
def owner(session):
    return draw_flow.ensure_user(session, "owner@example.com", "Olive")


@pytest.fixture
def drawn_session(session, owner):
    draw_session = draw_flow.create_draw_session(session, owner, "Office")
    for name in ["Ann", "Bob", "Cid"]:
        draw_flow.add_participant(session, draw_session, name, f"{name.lower()}@example.com")
    draw_flow.run_draw(session, draw_session, seed=21)
    return draw_session


def test_render_template_replaces_placeholders():
    giver = Participant(name="Ann", email="ann@example.com")
    receiver = Participant(name="Bob", email="bob@example.com")
    text = mailer.render_template(
        "{giver.name} <{giver.email}> gives to {receiver.name} ({receiver.email}); {giver.name}!",
        giver,
        receiver,
    )
    assert text == "Ann <ann@example.com> gives to Bob (bob@example.com); Ann!"


def test_send_all_uses_default_template(session, drawn_session, settings, transport):
    sent = mailer.send_all_for_session(session, drawn_session, settings, transport=transport)

    assert sent == 3
    assignments = draw_flow.list_assignments(session, drawn_session)
    by_giver = {a.giver.email: a for a in assignments}
    assert sorted(to for to, _, _ in transport.sent) == sorted(by_giver)
    for to, subject, text in transport.sent:
        assignment = by_giver[to]
        assert subject == mailer.DEFAULT_SUBJECT
        assert text.startswith(f"Hi {assignment.giver.name},")
        assert f"Your Secret Santa is: {assignment.receiver.name}." in text
        assert assignment.email_send_count == 1
        assert assignment.email_sent_at is not None


def test_send_all_uses_session_templates(session, drawn_session, settings, transport):
    draw_flow.update_draw_session(
        session,
        drawn_session,
        email_subject_template="Santa for {giver.name}",
        email_template="  You buy for {receiver.name}.  ",
    )
    mailer.send_all_for_session(session, drawn_session, settings, transport=transport)

    for to, subject, text in transport.sent:
        assert subject.startswith("Santa for ")
        assert text.startswith("You buy for ")
        assert not text.endswith(" ")


def test_send_all_requires_a_draw(session, owner, settings, transport):
    draw_session = draw_flow.create_draw_session(session, owner, "Empty")
    with pytest.raises(draw_flow.ValidationError):
        mailer.send_all_for_session(session, draw_session, settings, transport=transport)
    assert transport.sent == []


def test_send_all_stops_on_transport_failure(session, drawn_session, settings, make_transport):
    failing = make_transport(fail_for={"cid@example.com"})
    with pytest.raises(MailerError):
        mailer.send_all_for_session(session, drawn_session, settings, transport=failing)
    session.rollback()

    assert [to for to, _, _ in failing.sent] == ["ann@example.com", "bob@example.com"]
    counts = {a.giver.email: a.email_send_count for a in draw_flow.list_assignments(session, drawn_session)}
    assert counts == {"ann@example.com": 1, "bob@example.com": 1, "cid@example.com": 0}


def test_resend_increments_counter(session, drawn_session, settings, transport):
    assignment = draw_flow.list_assignments(session, drawn_session)[0]
    mailer.resend_for_assignment(session, assignment, settings, transport=transport)
    mailer.resend_for_assignment(session, assignment, settings, transport=transport)

    assert assignment.email_send_count == 2
    assert [to for to, _, _ in transport.sent] == [assignment.giver.email] * 2


def test_resolve_transport_prefers_owner_config(session, owner, settings):
    draw_flow.save_smtp_config(session, owner, "smtp.owner.test", 465, False, "olive", "pw", "olive@test")
    transport = mailer.resolve_transport(session, owner, settings)
    assert transport.host == "smtp.owner.test"
    assert transport.uses_implicit_tls
    assert not transport.uses_starttls


def test_resolve_transport_falls_back_to_super_admin(session, owner, settings):
    admin = draw_flow.ensure_user(session, "admin@example.com", "Admin")
    admin.is_super_admin = True
    draw_flow.save_smtp_config(session, admin, "smtp.admin.test", 2525, True, None, None, "admin@test")

    transport = mailer.resolve_transport(session, owner, settings)
    assert transport.host == "smtp.admin.test"
    assert transport.uses_implicit_tls


def test_resolve_transport_falls_back_to_environment(session, owner, settings):
    transport = mailer.resolve_transport(session, owner, settings)
    assert transport.host == "smtp.env.test"
    assert transport.sender == "santa@env.test"
    assert transport.uses_starttls
    assert not transport.uses_implicit_tls


def test_resolve_transport_without_any_config(session, owner, settings):
    bare = dataclasses.replace(settings, smtp=SmtpSettings(None, 587, False, None, None, None))
    with pytest.raises(MailerError):
        mailer.resolve_transport(session, owner, bare)


def test_smtp_transport_sends_message(monkeypatch):
    calls = {}

    class FakeSMTP:
        def __init__(self, host, port, timeout=None):
            calls["connect"] = (host, port)

        def __enter__(self):
            return self

        def __exit__(self, *exc):
            return False

        def starttls(self, context=None):
            calls["starttls"] = True

        def login(self, user, password):
            calls["login"] = (user, password)

        def send_message(self, message):
            calls["message"] = message

    monkeypatch.setattr(smtplib, "SMTP", FakeSMTP)
    transport = SmtpTransport("smtp.test", 587, False, "me", "secret", "Santa <santa@test>")
    transport.send("ann@example.com", "Hello", "Body text")

    assert calls["connect"] == ("smtp.test", 587)
    assert calls["starttls"]
    assert calls["login"] == ("me", "secret")
    assert calls["message"]["To"] == "ann@example.com"
    assert calls["message"]["From"] == "Santa <santa@test>"
    assert calls["message"].get_content().strip() == "Body text"


def test_smtp_transport_wraps_errors(monkeypatch):
    def refuse(*args, **kwargs):
        raise ConnectionRefusedError("nope")

    monkeypatch.setattr(smtplib, "SMTP", refuse)
    transport = SmtpTransport("smtp.test", 25, False, None, None, "santa@test")
    with pytest.raises(MailerError):
        transport.send("ann@example.com", "Hello", "Body")


def test_share_invitation_failure_is_not_fatal(session, owner, settings, make_transport):
    draw_session = draw_flow.create_draw_session(session, owner, "Shared")
    share = draw_flow.share_draw_session(session, draw_session, owner, "friend@example.com")

    failing = make_transport(fail_for={"friend@example.com"})
    assert mailer.send_share_invitation(session, share, settings, transport=failing) is False

    working = make_transport()
    assert mailer.send_share_invitation(session, share, settings, transport=working) is True
    to, subject, text = working.sent[0]
    assert to == "friend@example.com"
    assert '"Shared"' in subject
    assert "Olive invited you" in text
    assert settings.base_url in text
