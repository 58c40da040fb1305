import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from santadraw.core.config import Settings, SmtpSettings
from santadraw.db.models import Base


@pytest.fixture
def session():
    engine = create_engine("sqlite+pysqlite:///:memory:", future=True)
    Base.metadata.create_all(engine)
    db_session = sessionmaker(bind=engine, expire_on_commit=False)()
    yield db_session
    db_session.close()
    engine.dispose()


@pytest.fixture
def settings():
    return Settings(
        database_url="sqlite+pysqlite:///:memory:",
        log_level="INFO",
        log_path="logs/test.log",
        http_host="127.0.0.1",
        http_port=8080,
        base_url="http://santa.test",
        max_draw_attempts=5000,
        smtp=SmtpSettings(
            host="smtp.env.test",
            port=587,
            secure=False,
            user_name="env-user",
            password="env-pass",
            sender="santa@env.test",
        ),
    )


class FakeTransport:
    def __init__(self, fail_for=()):
        self.sent = []
        self.fail_for = set(fail_for)

    def send(self, to, subject, text):
        from santadraw.services.mailer import MailerError

        if to in self.fail_for:
            raise MailerError(f"Could not send email to {to}")
        self.sent.append((to, subject, text))


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def make_transport():
    return FakeTransport
