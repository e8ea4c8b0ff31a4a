import asyncio
import os
import uuid

import httpx

from api.rate_limiter import limiter
from database.models import get_session, Credentials
from database.utils import fetch_credential, mark_totp_spent
from twofa import get, to_buffer


ADMIN_SECRET = os.environ["ADMIN_SECRET"]


def new_label():
    return f"user-{uuid.uuid4().hex[:12]}@example.com"


def enroll(client, label, **extra):
    return client.post("/api/totp/enroll", params={"token": ADMIN_SECRET}, json={"label": label, **extra})


def verify(client, label, totp_code):
    return client.post("/api/totp/verify", json={"label": label, "totp_code": totp_code})


def test_index(client):
    response = client.get("/api/")
    assert response.status_code == 200
    assert response.json() == {"message": "Why are you here?"}


def test_enroll_returns_provisioning_data(client):
    label = new_label()
    response = enroll(client, label, issuer="exam-registry")
    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    secret = body["data"]["secret"]
    assert len(to_buffer(secret)) == 20
    assert body["data"]["url"] == f"otpauth://totp/{label}?secret={secret}&issuer=exam-registry"
    assert "<svg" in body["data"]["qr"]


def test_enroll_uses_default_issuer(client):
    response = enroll(client, new_label())
    assert response.json()["data"]["url"].endswith("&issuer=twofa")


def test_enroll_requires_admin_token(client):
    response = client.post("/api/totp/enroll", params={"token": "nope"}, json={"label": new_label()})
    assert response.status_code == 401
    assert response.json()["success"] is False


def test_enroll_refuses_duplicate_label(client):
    label = new_label()
    assert enroll(client, label).status_code == 200
    response = enroll(client, label)
    assert response.status_code == 409
    assert response.json()["message"] == "Credential already exists"


def test_verify_accepts_current_totp_once(client):
    label = new_label()
    secret = enroll(client, label).json()["data"]["secret"]
    totp = get(to_buffer(secret))

    response = verify(client, label, totp)
    assert response.status_code == 200
    assert response.json() == {"success": True, "message": "TOTP accepted", "data": {"ok": True}}

    replay = verify(client, label, totp)
    assert replay.status_code == 401
    assert replay.json()["data"] == {"ok": False, "reason": "SPENT_TOTP"}


def test_verify_keeps_two_spent_totps(client):
    label = new_label()
    secret = enroll(client, label).json()["data"]["secret"]
    key = to_buffer(secret)
    curr, prev = get(key, 0), get(key, -1)

    assert verify(client, label, curr).status_code == 200
    assert verify(client, label, prev).status_code == 200
    # both are now remembered
    assert verify(client, label, curr).json()["data"]["reason"] == "SPENT_TOTP"
    assert verify(client, label, prev).json()["data"]["reason"] == "SPENT_TOTP"


def test_verify_refuses_next_period_totp(client):
    label = new_label()
    secret = enroll(client, label).json()["data"]["secret"]
    response = verify(client, label, get(to_buffer(secret), +1))
    assert response.status_code == 401
    assert response.json()["data"] == {"ok": False, "reason": "WRONG_TOTP"}


def test_verify_refuses_malformed_totp(client):
    label = new_label()
    enroll(client, label)
    response = verify(client, label, "12ab56")
    assert response.status_code == 400
    assert response.json()["data"] == {"ok": False, "reason": "MALFORMED_TOTP"}


def test_verify_unknown_label(client):
    response = verify(client, new_label(), "123456")
    assert response.status_code == 404


def test_verify_reports_corrupt_stored_secret(client):
    label = new_label()

    async def insert():
        async with get_session() as session:
            session.add(Credentials(label=label, totp_secret="not-base32!"))
            await session.commit()

    asyncio.run(insert())
    response = verify(client, label, "123456")
    assert response.status_code == 500
    assert response.json()["data"] == {"ok": False, "reason": "MALFORMED_KEY"}


def test_revoke(client):
    label = new_label()
    enroll(client, label)

    assert client.delete(f"/api/totp/{label}", params={"token": "nope"}).status_code == 401
    assert client.delete(f"/api/totp/{label}", params={"token": ADMIN_SECRET}).status_code == 200
    assert verify(client, label, "123456").status_code == 404
    assert client.delete(f"/api/totp/{label}", params={"token": ADMIN_SECRET}).status_code == 404


def test_verify_is_rate_limited(client):
    label = new_label()
    limiter.reset()
    limiter.enabled = True
    try:
        statuses = [verify(client, label, "123456").status_code for _ in range(11)]
    finally:
        limiter.enabled = False
        limiter.reset()
    assert statuses[:10] == [404] * 10
    assert statuses[10] == 429


def test_concurrent_verifications_accept_a_code_once(client):
    from main import app

    label = new_label()
    secret = enroll(client, label).json()["data"]["secret"]
    totp = get(to_buffer(secret))

    async def verify_many():
        transport = httpx.ASGITransport(app=app)
        async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as ac:
            return await asyncio.gather(*[
                ac.post("/api/totp/verify", json={"label": label, "totp_code": totp})
                for _ in range(5)
            ])

    responses = asyncio.run(verify_many())
    statuses = sorted(r.status_code for r in responses)
    assert statuses == [200, 401, 401, 401, 401]
    for r in responses:
        if r.status_code == 401:
            assert r.json()["data"] == {"ok": False, "reason": "SPENT_TOTP"}


def test_mark_totp_spent_refuses_stale_history(client):
    label = new_label()
    enroll(client, label)

    async def race():
        async with get_session() as first, get_session() as second:
            seen_by_first = await fetch_credential(first, label)
            seen_by_second = await fetch_credential(second, label)
            won = await mark_totp_spent(first, seen_by_first, "111111")
            lost = await mark_totp_spent(second, seen_by_second, "222222")
        async with get_session() as session:
            stored = await fetch_credential(session, label)
            return won, lost, stored.spent_totps()

    won, lost, spent = asyncio.run(race())
    assert won is True
    assert lost is False
    assert spent == ["111111", ""]
