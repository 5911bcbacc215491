import re
from datetime import timedelta

from sqlalchemy import select

from backoffice.models.password_reset import PasswordReset
from backoffice.models.pending_user import PendingUser
from backoffice.utils.timezone import utcnow

API = "/api/v1"

REQUEST = {
    "name": "Bruno Compras",
    "email": "Bruno@VPEngenharia.com",
    "password": "compras123",
    "role": "Purchasing",
    "department": " Suprimentos ",
    "position": "Comprador",
}


def test_direct_register_points_to_request_flow(client):
    r = client.post(f"{API}/users/register", json={})
    assert r.status_code == 400
    assert r.json()["detail"]["code"] == "registration_moved"
    assert r.json()["detail"]["redirect_to"] == "/api/v1/pending-users/request"


def test_request_approve_then_login(client, make_user, login):
    make_user("admin@vpengenharia.com", role="admin")
    adm = login("admin@vpengenharia.com", "admin")

    r = client.post(f"{API}/pending-users/request", json=REQUEST)
    assert r.status_code == 201, r.text
    req = r.json()
    assert req["email"] == "bruno@vpengenharia.com"
    assert req["role"] == "purchasing"
    assert req["department"] == "Suprimentos"
    assert req["status"] == "pending"
    assert "password" not in req and "password_hash" not in req

    r = client.post(f"{API}/pending-users/request", json=REQUEST)
    assert r.status_code == 409
    assert r.json()["detail"] == "request_already_pending"

    r = client.get(f"{API}/pending-users", headers=adm)
    assert [p["id"] for p in r.json()] == [req["id"]]

    # not a user until approved
    r = client.post(
        f"{API}/users/login",
        json={"email": REQUEST["email"], "password": REQUEST["password"], "user_type": "purchasing"},
    )
    assert r.status_code == 401

    r = client.put(f"{API}/pending-users/{req['id']}/approve", headers=adm)
    assert r.status_code == 200, r.text
    assert r.json()["email"] == "bruno@vpengenharia.com"
    assert r.json()["is_active"] is True

    r = client.put(f"{API}/pending-users/{req['id']}/approve", headers=adm)
    assert r.status_code == 409
    assert r.json()["detail"] == "request_already_processed"

    assert client.get(f"{API}/pending-users", headers=adm).json() == []
    assert client.get(f"{API}/pending-users/all", headers=adm).json()[0]["status"] == "approved"

    h = login("bruno@vpengenharia.com", "purchasing", password="compras123")
    r = client.get(f"{API}/users/profile", headers=h)
    assert r.json()["position"] == "Comprador"

    r = client.post(f"{API}/pending-users/request", json=REQUEST)
    assert r.status_code == 409
    assert r.json()["detail"] == "user_exists"


def test_reject_request_with_default_reason(client, make_user, login):
    make_user("admin@vpengenharia.com", role="admin")
    adm = login("admin@vpengenharia.com", "admin")
    req = client.post(f"{API}/pending-users/request", json=REQUEST).json()

    r = client.put(f"{API}/pending-users/{req['id']}/reject", json={}, headers=adm)
    assert r.status_code == 200
    assert r.json()["status"] == "rejected"
    assert r.json()["rejection_reason"] == "No reason provided"

    # a rejected address may ask again; the old request goes away
    r = client.post(f"{API}/pending-users/request", json=REQUEST)
    assert r.status_code == 201
    statuses = [p["status"] for p in client.get(f"{API}/pending-users/all", headers=adm).json()]
    assert statuses == ["pending"]


def test_pending_request_validation(client):
    bad = {**REQUEST, "email": "not-an-email"}
    assert client.post(f"{API}/pending-users/request", json=bad).status_code == 422
    bad = {**REQUEST, "password": "123"}
    assert client.post(f"{API}/pending-users/request", json=bad).status_code == 422
    bad = {**REQUEST, "role": "director"}
    assert client.post(f"{API}/pending-users/request", json=bad).status_code == 422


def test_pending_admin_routes_need_admin(client, make_user, login):
    make_user("hr@vpengenharia.com", role="hr")
    h = login("hr@vpengenharia.com", "hr")
    r = client.get(f"{API}/pending-users", headers=h)
    assert r.status_code == 403
    assert r.json()["detail"] == "admin_only"


def test_login_errors(client, make_user):
    make_user("fin@vpengenharia.com", role="financial")
    make_user("off@vpengenharia.com", role="financial", is_active=False)

    body = {"email": "fin@vpengenharia.com", "password": "wrong-pass", "user_type": "financial"}
    r = client.post(f"{API}/users/login", json=body)
    assert r.status_code == 401
    assert r.json()["detail"] == "bad_credentials"

    body = {"email": "fin@vpengenharia.com", "password": "secret123", "user_type": "admin"}
    r = client.post(f"{API}/users/login", json=body)
    assert r.status_code == 403
    assert r.json()["detail"] == "user_type_mismatch"

    body = {"email": "off@vpengenharia.com", "password": "secret123", "user_type": "financial"}
    r = client.post(f"{API}/users/login", json=body)
    assert r.status_code == 401
    assert r.json()["detail"] == "account_deactivated"


def test_login_cookie_authenticates_and_logout_clears_it(client, make_user):
    make_user("fin@vpengenharia.com", role="financial", name="Ana")
    r = client.post(
        f"{API}/users/login",
        json={"email": " FIN@vpengenharia.com ", "password": "secret123", "user_type": "Financial"},
    )
    assert r.status_code == 200
    assert r.json()["role"] == "financial"
    assert r.json()["token_type"] == "bearer"
    assert "token" in r.cookies

    r = client.get(f"{API}/users/profile")
    assert r.status_code == 200
    assert r.json()["name"] == "Ana"
    assert r.json()["last_login"] is not None

    client.post(f"{API}/users/logout")
    client.cookies.clear()
    assert client.get(f"{API}/users/profile").status_code == 401


def test_invalid_token_is_rejected(client):
    r = client.get(f"{API}/users/profile", headers={"Authorization": "Bearer nope"})
    assert r.status_code == 401
    assert r.json()["detail"] == "invalid_token"


def test_profile_update_and_change_password(client, make_user, login):
    make_user("fin@vpengenharia.com", role="financial")
    h = login("fin@vpengenharia.com", "financial")

    r = client.put(f"{API}/users/profile", json={"name": "  Ana Paula ", "position": "Analista"}, headers=h)
    assert r.status_code == 200
    assert r.json()["name"] == "Ana Paula"
    assert r.json()["position"] == "Analista"

    r = client.put(
        f"{API}/users/change-password",
        json={"current_password": "wrong", "new_password": "novasenha"},
        headers=h,
    )
    assert r.status_code == 401
    assert r.json()["detail"] == "current_password_incorrect"

    r = client.put(
        f"{API}/users/change-password",
        json={"current_password": "secret123", "new_password": "novasenha"},
        headers=h,
    )
    assert r.status_code == 200
    login("fin@vpengenharia.com", "financial", password="novasenha")


def test_admin_user_management(client, make_user, login):
    admin = make_user("admin@vpengenharia.com", role="admin")
    adm = login("admin@vpengenharia.com", "admin")

    body = {"name": "Carla", "email": "carla@vpengenharia.com", "password": "carla123", "role": "commercial"}
    r = client.post(f"{API}/users/create", json=body, headers=adm)
    assert r.status_code == 201
    carla = r.json()
    assert client.post(f"{API}/users/create", json=body, headers=adm).status_code == 409

    r = client.patch(f"{API}/users/{carla['id']}", json={"role": "Manager", "is_active": False}, headers=adm)
    assert r.status_code == 200
    assert r.json()["role"] == "manager"
    assert r.json()["is_active"] is False

    r = client.post(
        f"{API}/users/login",
        json={"email": "carla@vpengenharia.com", "password": "carla123", "user_type": "manager"},
    )
    assert r.json()["detail"] == "account_deactivated"

    assert len(client.get(f"{API}/users", headers=adm).json()) == 2

    r = client.delete(f"{API}/users/{admin.id}", headers=adm)
    assert r.status_code == 409
    assert r.json()["detail"] == "cannot_delete_self"

    r = client.delete(f"{API}/users/{carla['id']}", headers=adm)
    assert r.status_code == 200
    assert client.delete(f"{API}/users/{carla['id']}", headers=adm).status_code == 404

    actions = [a["action"] for a in client.get(f"{API}/audit", headers=adm).json()["items"]]
    assert sorted(actions) == ["user.create", "user.delete", "user.update"]


def test_deleting_user_frees_email_for_new_request(client, session, make_user, login):
    make_user("admin@vpengenharia.com", role="admin")
    adm = login("admin@vpengenharia.com", "admin")
    req = client.post(f"{API}/pending-users/request", json=REQUEST).json()
    user_id = client.put(f"{API}/pending-users/{req['id']}/approve", headers=adm).json()["id"]

    client.delete(f"{API}/users/{user_id}", headers=adm)

    rows = session.execute(select(PendingUser).where(PendingUser.email == "bruno@vpengenharia.com")).all()
    assert rows == []
    assert client.post(f"{API}/pending-users/request", json=REQUEST).status_code == 201


def _reset_token(mail):
    m = re.search(r"token=([0-9a-f]{64})", mail.sent[-1]["html"])
    assert m is not None
    return m.group(1)


def test_password_reset_flow(client, make_user, mail):
    make_user("admin@vpengenharia.com", role="admin", name="Admin")

    r = client.post(f"{API}/auth/forgot-password", json={"email": "ADMIN@vpengenharia.com"})
    assert r.status_code == 200
    assert mail.sent[-1]["to"] == "admin@vpengenharia.com"
    token = _reset_token(mail)

    r = client.get("/reset-password", params={"token": token})
    assert r.status_code == 200
    assert 'name="confirm_password"' in r.text

    r = client.post("/reset-password", data={"token": token, "password": "novasenha", "confirm_password": "outra"})
    assert r.status_code == 400
    assert "do not match" in r.text

    r = client.post("/reset-password", data={"token": token, "password": "12345", "confirm_password": "12345"})
    assert r.status_code == 400

    r = client.post("/reset-password", data={"token": token, "password": "novasenha", "confirm_password": "novasenha"})
    assert r.status_code == 200
    assert "Password updated" in r.text

    r = client.post(
        f"{API}/users/login",
        json={"email": "admin@vpengenharia.com", "password": "novasenha", "user_type": "admin"},
    )
    assert r.status_code == 200

    # single use
    assert client.get("/reset-password", params={"token": token}).status_code == 400


def test_new_reset_request_replaces_old_token(client, make_user, mail):
    make_user("admin@vpengenharia.com", role="admin")
    client.post(f"{API}/auth/forgot-password", json={"email": "admin@vpengenharia.com"})
    first = _reset_token(mail)
    client.post(f"{API}/auth/forgot-password", json={"email": "admin@vpengenharia.com"})
    second = _reset_token(mail)

    assert first != second
    assert client.get("/reset-password", params={"token": first}).status_code == 400
    assert client.get("/reset-password", params={"token": second}).status_code == 200


def test_password_reset_is_for_admins_only(client, make_user, mail):
    make_user("fin@vpengenharia.com", role="financial")
    r = client.post(f"{API}/auth/forgot-password", json={"email": "fin@vpengenharia.com"})
    assert r.status_code == 403
    assert r.json()["detail"] == "reset_admin_only"

    r = client.post(f"{API}/auth/forgot-password", json={"email": "ghost@vpengenharia.com"})
    assert r.status_code == 200
    assert mail.sent == []


def test_password_reset_mail_failure_drops_token(client, session, make_user, mail):
    make_user("admin@vpengenharia.com", role="admin")
    mail.fail = True

    r = client.post(f"{API}/auth/forgot-password", json={"email": "admin@vpengenharia.com"})
    assert r.status_code == 500
    assert r.json()["detail"] == "reset_mail_failed"
    assert session.execute(select(PasswordReset)).all() == []


def test_reset_page_without_token(client):
    assert client.get("/reset-password").status_code == 400
    r = client.post("/reset-password", data={"token": "f" * 64, "password": "abcdef", "confirm_password": "abcdef"})
    assert r.status_code == 400
    assert "Invalid or expired" in r.text


def test_cleanup_removes_only_old_processed_requests(client, session, make_user, login):
    make_user("admin@vpengenharia.com", role="admin")
    adm = login("admin@vpengenharia.com", "admin")
    old = client.post(f"{API}/pending-users/request", json={**REQUEST, "email": "old@vpengenharia.com"}).json()
    recent = client.post(f"{API}/pending-users/request", json={**REQUEST, "email": "new@vpengenharia.com"}).json()
    waiting = client.post(f"{API}/pending-users/request", json={**REQUEST, "email": "wait@vpengenharia.com"}).json()
    client.put(f"{API}/pending-users/{old['id']}/reject", json={"reason": "duplicado"}, headers=adm)
    client.put(f"{API}/pending-users/{recent['id']}/reject", json={}, headers=adm)

    row = session.get(PendingUser, old["id"])
    row.reviewed_at = utcnow() - timedelta(days=45)
    session.commit()

    r = client.delete(f"{API}/pending-users/cleanup", headers=adm)
    assert r.status_code == 200
    assert r.json() == {"deleted_count": 1}
    left = sorted(p["id"] for p in client.get(f"{API}/pending-users/all", headers=adm).json())
    assert left == sorted([recent["id"], waiting["id"]])
