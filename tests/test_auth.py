from types import SimpleNamespace


def register_payload(**overrides):
    payload = {
        "email": "new@example.com",
        "password": "hunter22",
        "confirm_password": "hunter22",
        "full_name": "New Person",
    }
    payload.update(overrides)
    return payload


def test_register(client, fake_db):
    response = client.post("/api/v1/auth/register", json=register_payload(invite_code=" abcd2345"))
    assert response.status_code == 201
    assert response.json()["email"] == "new@example.com"
    [sign_up] = fake_db.auth.sign_ups
    assert sign_up["options"]["data"] == {"full_name": "New Person"}
    assert sign_up["options"]["email_redirect_to"] == "http://localhost:3000/auth/callback?type=email&invite=ABCD2345"


def test_register_rejects_mismatched_passwords(client, fake_db):
    response = client.post("/api/v1/auth/register", json=register_payload(confirm_password="hunter23"))
    assert response.status_code == 422
    assert fake_db.auth.sign_ups == []


def test_register_rejects_short_password(client, fake_db):
    response = client.post("/api/v1/auth/register", json=register_payload(password="abc", confirm_password="abc"))
    assert response.status_code == 422


def test_register_existing_user(client, fake_db):
    fake_db.add_user("alice", email="alice@example.com")
    response = client.post("/api/v1/auth/register", json=register_payload(email="alice@example.com"))
    assert response.status_code == 400
    assert response.json()["detail"] == "User already exists"


def test_login(client, fake_db):
    fake_db.add_user("alice", email="alice@example.com")
    response = client.post("/api/v1/auth/login", json={"email": "alice@example.com", "password": "secret123"})
    assert response.status_code == 200
    assert response.json()["access_token"] == "token-alice"

    response = client.post("/api/v1/auth/login", json={"email": "alice@example.com", "password": "wrong"})
    assert response.status_code == 401


def test_me_includes_membership_and_permissions(client, fake_db, family):
    response = client.get("/api/v1/auth/me", headers=family["alice"])
    assert response.status_code == 200
    body = response.json()
    assert body["id"] == "alice"
    assert body["membership"]["role"] == "owner"
    assert "invite_code:regenerate" in body["permissions"]

    body = client.get("/api/v1/auth/me", headers=family["carol"]).json()
    assert "invite_code:regenerate" not in body["permissions"]
    assert "journal:write" in body["permissions"]

    body = client.get("/api/v1/auth/me", headers=family["eve"]).json()
    assert body["membership"] is None
    assert body["permissions"] == []


def test_token_lookups_are_cached_until_logout(client, fake_db):
    headers = fake_db.add_user("alice")
    calls = []
    original = fake_db.auth.get_user

    def counting_get_user(jwt=None):
        calls.append(jwt)
        return original(jwt=jwt)

    fake_db.auth.get_user = counting_get_user
    assert client.get("/api/v1/auth/me", headers=headers).status_code == 200
    assert client.get("/api/v1/auth/me", headers=headers).status_code == 200
    assert calls == ["token-alice"]

    assert client.post("/api/v1/auth/logout", headers=headers).status_code == 200
    assert fake_db.auth.signed_out == 1
    del fake_db.auth.users_by_token["token-alice"]
    assert client.get("/api/v1/auth/me", headers=headers).status_code == 401


def test_logout_requires_token(client, fake_db):
    assert client.post("/api/v1/auth/logout").status_code == 401


def test_password_reset_does_not_reveal_accounts(client, fake_db):
    fake_db.add_user("alice", email="alice@example.com")
    known = client.post("/api/v1/auth/password-reset", json={"email": "alice@example.com"})
    unknown = client.post("/api/v1/auth/password-reset", json={"email": "nobody@example.com"})
    assert known.status_code == unknown.status_code == 200
    assert known.json() == unknown.json()
    assert fake_db.auth.reset_requests[0][1] == {"redirect_to": "http://localhost:3000/auth/reset-password"}


def zoe():
    return SimpleNamespace(id="zoe", email="zoe@example.com")


def test_callback_confirms_email_token_hash(client, fake_db):
    fake_db.auth.add_token_hash("hash-1", "email", zoe())

    response = client.get("/api/v1/auth/callback", params={"token_hash": "hash-1", "type": "email", "invite": "abcd2345"})
    assert response.status_code == 200
    assert response.json()["access_token"] == "session-zoe"
    assert response.json()["redirect_to"] == "/dashboard/family/join?code=ABCD2345"

    # links are single use
    response = client.get("/api/v1/auth/callback", params={"token_hash": "hash-1", "type": "email"})
    assert response.status_code == 401


def test_callback_token_hash_type_must_match(client, fake_db):
    fake_db.auth.add_token_hash("hash-1", "recovery", zoe())
    response = client.get("/api/v1/auth/callback", params={"token_hash": "hash-1", "type": "email"})
    assert response.status_code == 401
    response = client.get("/api/v1/auth/callback", params={"token_hash": "hash-1", "type": "bogus"})
    assert response.status_code == 422


def test_callback_exchanges_pkce_code_with_verifier(client, fake_db):
    fake_db.auth.add_pkce_code("one-time", "verifier-abc", zoe())

    response = client.get(
        "/api/v1/auth/callback",
        params={"code": "one-time", "code_verifier": "verifier-abc", "next": "/dashboard/restaurants"}
    )
    assert response.status_code == 200
    assert response.json()["access_token"] == "session-zoe"
    assert response.json()["redirect_to"] == "/dashboard/restaurants"


def test_callback_rejects_code_without_matching_verifier(client, fake_db):
    fake_db.auth.add_pkce_code("one-time", "verifier-abc", zoe())

    response = client.get("/api/v1/auth/callback", params={"code": "one-time"})
    assert response.status_code == 422
    assert response.json()["code"] == "validation_error"

    response = client.get("/api/v1/auth/callback", params={"code": "one-time", "code_verifier": "wrong"})
    assert response.status_code == 401


def test_callback_ignores_offsite_redirects(client, fake_db):
    for i, target in enumerate(("//evil.example.com", "https://evil.example.com")):
        fake_db.auth.add_token_hash(f"hash-{i}", "email", zoe())
        response = client.get("/api/v1/auth/callback", params={"token_hash": f"hash-{i}", "next": target})
        assert response.json()["redirect_to"] == "/dashboard"


def test_callback_with_unknown_token(client, fake_db):
    response = client.get("/api/v1/auth/callback", params={"token_hash": "stale"})
    assert response.status_code == 401


def test_profile_read_and_update(client, fake_db):
    headers = fake_db.add_user("zoe", email="zoe@example.com")
    response = client.get("/api/v1/profiles/me", headers=headers)
    assert response.status_code == 200
    assert response.json()["full_name"] is None

    response = client.put("/api/v1/profiles/me", json={"full_name": "  Zoe Park "}, headers=headers)
    assert response.status_code == 200
    assert response.json()["full_name"] == "Zoe Park"
    assert fake_db.auth.admin.updates == [("zoe", {"user_metadata": {"full_name": "Zoe Park"}})]


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "healthy"}
    assert response.headers["X-Content-Type-Options"] == "nosniff"
