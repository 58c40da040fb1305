import asyncio

import pytest
from aiohttp.test_utils import TestClient, TestServer

from santadraw.db import Base, init_engine
from santadraw.services.mailer import MailerError, SmtpTransport
from santadraw.services.rate_limit import RateLimiter
from santadraw.web import create_app

OWNER = {"X-User-Email": "owner@example.com", "X-User-Name": "Olive"}
FRIEND = {"X-User-Email": "friend@example.com"}


@pytest.fixture
def make_app(tmp_path, settings):
    engine = init_engine(f"sqlite+pysqlite:///{tmp_path / 'santa.db'}")
    Base.metadata.create_all(engine)

    def factory(max_calls=100):
        return create_app(settings, rate_limiter=RateLimiter(max_calls=max_calls, period_seconds=60))

    yield factory
    engine.dispose()


@pytest.fixture
def outbox(monkeypatch):
    sent = []

    def fake_send(self, to, subject, text):
        sent.append((self.host, to, subject, text))

    monkeypatch.setattr(SmtpTransport, "send", fake_send)
    return sent


def run(app, scenario):
    async def wrapper():
        async with TestClient(TestServer(app)) as client:
            await scenario(client)

    asyncio.run(wrapper())


async def create_session_with_people(client, names, groups=None):
    resp = await client.post("/draw-sessions", json={"name": "Family"}, headers=OWNER)
    assert resp.status == 201
    session_id = (await resp.json())["id"]

    group_ids = {}
    for group_name in sorted({g for member_groups in (groups or {}).values() for g in member_groups}):
        resp = await client.post(f"/draw-sessions/{session_id}/groups", json={"name": group_name}, headers=OWNER)
        assert resp.status == 201
        group_ids[group_name] = (await resp.json())["id"]

    people = {}
    for name in names:
        payload = {
            "name": name,
            "email": f"{name.lower()}@example.com",
            "groupIds": [group_ids[g] for g in (groups or {}).get(name, [])],
        }
        resp = await client.post(f"/draw-sessions/{session_id}/participants", json=payload, headers=OWNER)
        assert resp.status == 201
        people[name] = (await resp.json())["id"]
    return session_id, people


def test_requests_need_a_user(make_app):
    async def scenario(client):
        resp = await client.get("/draw-sessions")
        assert resp.status == 401
        resp = await client.get("/draw-sessions", headers={"X-User-Email": "nope"})
        assert resp.status == 400

    run(make_app(), scenario)


def test_run_draw_and_list_assignments(make_app):
    async def scenario(client):
        session_id, people = await create_session_with_people(
            client, ["Ann", "Bob", "Cid", "Dee"], {"Ann": ["Couple"], "Bob": ["Couple"]}
        )
        resp = await client.post(f"/draw-sessions/{session_id}/run", json={"seed": 5}, headers=OWNER)
        assert resp.status == 200
        body = await resp.json()
        assert body == {"ok": True, "seed": 5, "count": 4}

        resp = await client.get(f"/draw-sessions/{session_id}/assignments", headers=OWNER)
        assignments = await resp.json()
        pairs = {(a["giver"]["name"], a["receiver"]["name"]) for a in assignments}
        assert {giver for giver, _ in pairs} == set(people)
        assert {receiver for _, receiver in pairs} == set(people)
        assert ("Ann", "Bob") not in pairs
        assert ("Bob", "Ann") not in pairs
        assert all(giver != receiver for giver, receiver in pairs)

        resp = await client.get(f"/draw-sessions/{session_id}", headers=OWNER)
        detail = await resp.json()
        assert detail["lastDrawSeed"] == 5
        assert [g["name"] for g in detail["groups"]] == ["Couple"]

    run(make_app(), scenario)


def test_infeasible_draw_keeps_previous_assignments(make_app):
    async def scenario(client):
        session_id, people = await create_session_with_people(client, ["Ann", "Bob"])
        resp = await client.post(f"/draw-sessions/{session_id}/run", headers=OWNER)
        assert resp.status == 200
        before = await (await client.get(f"/draw-sessions/{session_id}/assignments", headers=OWNER)).json()

        resp = await client.post(f"/draw-sessions/{session_id}/groups", json={"name": "Siblings"}, headers=OWNER)
        group_id = (await resp.json())["id"]
        for name, participant_id in people.items():
            resp = await client.patch(
                f"/draw-sessions/{session_id}/participants/{participant_id}",
                json={"name": name, "email": f"{name.lower()}@example.com", "groupIds": [group_id]},
                headers=OWNER,
            )
            assert resp.status == 200

        resp = await client.post(f"/draw-sessions/{session_id}/run", headers=OWNER)
        assert resp.status == 400
        assert (await resp.json())["kind"] == "infeasible"

        after = await (await client.get(f"/draw-sessions/{session_id}/assignments", headers=OWNER)).json()
        assert after == before

    run(make_app(), scenario)


def test_run_with_one_participant(make_app):
    async def scenario(client):
        session_id, _ = await create_session_with_people(client, ["Ann"])
        resp = await client.post(f"/draw-sessions/{session_id}/run", headers=OWNER)
        assert resp.status == 400
        assert (await resp.json())["kind"] == "insufficient_participants"

    run(make_app(), scenario)


def test_validation_and_conflicts(make_app):
    async def scenario(client):
        session_id, _ = await create_session_with_people(client, ["Ann"])
        resp = await client.post("/draw-sessions", json={"name": "Family"}, headers=OWNER)
        assert resp.status == 409
        resp = await client.post(
            f"/draw-sessions/{session_id}/participants",
            json={"name": "Bob", "email": "bob-at-example"},
            headers=OWNER,
        )
        assert resp.status == 400
        resp = await client.post(f"/draw-sessions/{session_id}/run", data="{not json", headers=OWNER)
        assert resp.status == 400
        resp = await client.get("/draw-sessions/abc", headers=OWNER)
        assert resp.status == 404

    run(make_app(), scenario)


def test_sharing_grants_access(make_app, outbox):
    async def scenario(client):
        session_id, _ = await create_session_with_people(client, ["Ann", "Bob"])

        resp = await client.get(f"/draw-sessions/{session_id}", headers=FRIEND)
        assert resp.status == 404

        resp = await client.post(
            f"/draw-sessions/{session_id}/shares", json={"email": "Friend@Example.com"}, headers=OWNER
        )
        assert resp.status == 201
        share = await resp.json()
        assert share["invitationSent"] is True
        assert outbox[0][0] == "smtp.env.test"
        assert outbox[0][1] == "friend@example.com"

        invitations = await (await client.get("/invitations", headers=FRIEND)).json()
        assert [i["id"] for i in invitations] == [share["id"]]

        resp = await client.post(
            f"/draw-sessions/{session_id}/shares/{share['id']}/accept", headers=FRIEND
        )
        assert resp.status == 200

        resp = await client.get(f"/draw-sessions/{session_id}", headers=FRIEND)
        assert resp.status == 200
        resp = await client.post(f"/draw-sessions/{session_id}/run", headers=FRIEND)
        assert resp.status == 200
        resp = await client.delete(f"/draw-sessions/{session_id}", headers=FRIEND)
        assert resp.status == 403
        resp = await client.get(f"/draw-sessions/{session_id}/shares", headers=FRIEND)
        assert resp.status == 403

    run(make_app(), scenario)


def test_send_all_and_resend(make_app, outbox):
    async def scenario(client):
        resp = await client.put(
            "/smtp",
            json={"host": "smtp.owner.test", "port": 465, "secure": True, "sender": "olive@test"},
            headers=OWNER,
        )
        assert resp.status == 200
        assert (await resp.json())["hasPassword"] is False

        session_id, _ = await create_session_with_people(client, ["Ann", "Bob", "Cid"])
        resp = await client.post(f"/draw-sessions/{session_id}/send-all", headers=OWNER)
        assert resp.status == 400

        await client.post(f"/draw-sessions/{session_id}/run", headers=OWNER)
        resp = await client.post(f"/draw-sessions/{session_id}/send-all", headers=OWNER)
        assert resp.status == 200
        assert (await resp.json())["sent"] == 3
        assert {host for host, _, _, _ in outbox} == {"smtp.owner.test"}

        assignments = await (await client.get(f"/draw-sessions/{session_id}/assignments", headers=OWNER)).json()
        assert all(a["emailSendCount"] == 1 for a in assignments)

        resp = await client.post(f"/assignments/{assignments[0]['id']}/resend", headers=OWNER)
        assert resp.status == 200
        resp = await client.post(f"/assignments/{assignments[0]['id']}/resend", headers=FRIEND)
        assert resp.status == 404
        assert len(outbox) == 4

    run(make_app(), scenario)


def test_run_is_rate_limited(make_app):
    async def scenario(client):
        session_id, _ = await create_session_with_people(client, ["Ann", "Bob", "Cid"])
        resp = await client.post(f"/draw-sessions/{session_id}/run", headers=OWNER)
        assert resp.status == 200
        resp = await client.post(f"/draw-sessions/{session_id}/run", headers=OWNER)
        assert resp.status == 429
        assert "Retry-After" in resp.headers

    run(make_app(max_calls=1), scenario)


def test_run_rejects_out_of_range_seed(make_app):
    async def scenario(client):
        session_id, _ = await create_session_with_people(client, ["Ann", "Bob", "Cid"])
        for seed in (-1, 2**31, 2**70):
            resp = await client.post(f"/draw-sessions/{session_id}/run", json={"seed": seed}, headers=OWNER)
            assert resp.status == 400
        resp = await client.post(f"/draw-sessions/{session_id}/run", json={"seed": 2**31 - 1}, headers=OWNER)
        assert resp.status == 200

    run(make_app(), scenario)


def test_send_all_failure_keeps_delivered_stamps(make_app, monkeypatch):
    sent = []

    def flaky_send(self, to, subject, text):
        if to == "cid@example.com":
            raise MailerError(f"Could not send email to {to}")
        sent.append(to)

    monkeypatch.setattr(SmtpTransport, "send", flaky_send)

    async def scenario(client):
        session_id, _ = await create_session_with_people(client, ["Ann", "Bob", "Cid"])
        await client.post(f"/draw-sessions/{session_id}/run", headers=OWNER)
        resp = await client.post(f"/draw-sessions/{session_id}/send-all", headers=OWNER)
        assert resp.status == 502

        assignments = await (await client.get(f"/draw-sessions/{session_id}/assignments", headers=OWNER)).json()
        counts = {a["giver"]["email"]: a["emailSendCount"] for a in assignments}
        assert counts == {"ann@example.com": 1, "bob@example.com": 1, "cid@example.com": 0}
        assert sent == ["ann@example.com", "bob@example.com"]

    run(make_app(), scenario)


def test_super_admin_setup_and_smtp_fallback(make_app, outbox):
    async def scenario(client):
        resp = await client.get("/admin/setup", headers=OWNER)
        assert await resp.json() == {"needsSetup": True}

        resp = await client.post("/admin/setup", headers=OWNER)
        assert resp.status == 201
        body = await resp.json()
        assert body["email"] == "owner@example.com"
        assert body["isSuperAdmin"] is True

        resp = await client.post("/admin/setup", headers=FRIEND)
        assert resp.status == 403
        resp = await client.get("/admin/setup", headers=FRIEND)
        assert await resp.json() == {"needsSetup": False}

        resp = await client.put(
            "/smtp",
            json={"host": "smtp.admin.test", "port": 2525, "secure": False, "sender": "admin@test"},
            headers=OWNER,
        )
        assert resp.status == 200

        resp = await client.post("/draw-sessions", json={"name": "Friends"}, headers=FRIEND)
        session_id = (await resp.json())["id"]
        for name in ["Ann", "Bob"]:
            await client.post(
                f"/draw-sessions/{session_id}/participants",
                json={"name": name, "email": f"{name.lower()}@example.com"},
                headers=FRIEND,
            )
        await client.post(f"/draw-sessions/{session_id}/run", headers=FRIEND)
        resp = await client.post(f"/draw-sessions/{session_id}/send-all", headers=FRIEND)
        assert resp.status == 200
        assert {host for host, _, _, _ in outbox} == {"smtp.admin.test"}

    run(make_app(), scenario)
