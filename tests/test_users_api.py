from conftest import PASSWORD, make_user
from storefront.models.orm import RefreshToken, User
from storefront.services.tokens import issue_tokens


def test_admin_lists_users(client, db, admin_headers, user):
    for n in range(3):
        make_user(db, email=f"customer{n}@example.com")

    resp = client.get("/api/users", params={"limit": 2}, headers=admin_headers)
    assert resp.status_code == 200
    body = resp.json()
    assert len(body["data"]) == 2
    assert body["meta"] == {"page": 1, "limit": 2, "total": 5, "totalPages": 3}
    assert all("password" not in u for u in body["data"])


def test_customers_cannot_list_users(client, user_headers):
    resp = client.get("/api/users", headers=user_headers)
    assert resp.status_code == 403


def test_get_user(client, admin_headers, user):
    resp = client.get(f"/api/users/{user.id}", headers=admin_headers)
    assert resp.json()["data"]["user"]["email"] == user.email
    assert client.get("/api/users/missing", headers=admin_headers).status_code == 404


def test_update_profile(client, user_headers):
    resp = client.put("/api/users/profile", headers=user_headers,
                      json={"firstName": "Renamed", "phone": "+1 555 0199"})
    assert resp.status_code == 200
    profile = resp.json()["data"]["user"]
    assert profile["firstName"] == "Renamed"
    assert profile["lastName"] == "User"
    assert profile["phone"] == "+1 555 0199"

    cleared = client.put("/api/users/profile", headers=user_headers, json={"phone": ""})
    assert cleared.json()["data"]["user"]["phone"] is None


def test_change_password_revokes_sessions(client, db, settings, user, user_headers):
    pair = issue_tokens(db, user, settings)
    db.commit()

    wrong = client.put("/api/users/password", headers=user_headers,
                       json={"currentPassword": "Nope12345", "newPassword": "BrandNew123"})
    assert wrong.status_code == 400
    assert wrong.json()["message"] == "Current password is incorrect"

    resp = client.put("/api/users/password", headers=user_headers,
                      json={"currentPassword": PASSWORD, "newPassword": "BrandNew123"})
    assert resp.status_code == 200
    assert db.query(RefreshToken).filter_by(token=pair.refresh_token).count() == 0

    login = client.post("/api/auth/login", json={"email": user.email, "password": "BrandNew123"})
    assert login.status_code == 200


def test_change_password_requires_strong_password(client, user_headers):
    resp = client.put("/api/users/password", headers=user_headers,
                      json={"currentPassword": PASSWORD, "newPassword": "weakpass"})
    assert resp.status_code == 400


def test_role_update(client, admin_headers, user):
    resp = client.put(f"/api/users/{user.id}/role", headers=admin_headers, json={"role": "ADMIN"})
    assert resp.status_code == 200
    assert resp.json()["data"]["user"]["role"] == "ADMIN"


def test_admin_cannot_demote_self(client, admin, admin_headers):
    resp = client.put(f"/api/users/{admin.id}/role", headers=admin_headers, json={"role": "USER"})
    assert resp.status_code == 400
    assert resp.json()["message"] == "Cannot change your own role"


def test_delete_user(client, db, admin, admin_headers, user):
    resp = client.delete(f"/api/users/{user.id}", headers=admin_headers)
    assert resp.status_code == 200
    db.expire_all()
    assert db.get(User, user.id) is None

    self_delete = client.delete(f"/api/users/{admin.id}", headers=admin_headers)
    assert self_delete.status_code == 400
    assert self_delete.json()["message"] == "Cannot delete your own account"


def test_deleted_user_token_is_rejected(client, db, user, user_headers):
    db.delete(db.get(User, user.id))
    db.commit()
    resp = client.get("/api/auth/me", headers=user_headers)
    assert resp.status_code == 401
    assert resp.json()["message"] == "User no longer exists"
