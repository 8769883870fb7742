from __future__ import annotations

import time

import jwt

SIGN_UP_BODY = {
    "identification": "abcd123",
    "password": "p1",
    "confirm_password": "p1",
    "name": "Name",
    "birth_date": "1999-12-30",
    "phone_number": "01012345678",
}

ADDRESS_BODY = {
    "recipient_name": "Hong",
    "phone_number": "01012345678",
    "zip_code": "06236",
    "address": "Teheran-ro 152",
    "detail_address": "12F",
}


def _login(client, identification: str, password: str) -> dict:
    response = client.post("/api/login", json={"identification": identification, "password": password})
    assert response.status_code == 200, response.text
    return response.json()


def _auth(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


def _super_admin_token(client, service) -> str:
    service.ensure_super_admin("superadmin", "superadmin_password")
    return _login(client, "superadmin", "superadmin_password")["access_token"]


def test_sign_up_then_duplicate(api_client, repository):
    client = api_client

    first = client.post("/api/signup", json=SIGN_UP_BODY)
    assert first.status_code == 201
    assert first.json()["status_code"] == "201"

    second = client.post("/api/signup", json=SIGN_UP_BODY)
    assert second.status_code == 400
    assert second.json()["detail"] == "The ID already exists."
    assert len(repository.accounts) == 1


def test_sign_up_reports_field_errors_before_workflow(api_client, repository):
    body = dict(SIGN_UP_BODY, identification="ab", phone_number="010-1234")
    response = api_client.post("/api/signup", json=body)

    assert response.status_code == 400
    fields = {error["field"] for error in response.json()["detail"]}
    assert fields == {"identification", "phone_number"}
    assert repository.accounts == []


def test_sign_up_password_mismatch_and_bad_date(api_client):
    mismatch = api_client.post("/api/signup", json=dict(SIGN_UP_BODY, confirm_password="p2"))
    assert mismatch.status_code == 400
    assert mismatch.json()["detail"] == "Passwords do not match."

    bad_date = api_client.post("/api/signup", json=dict(SIGN_UP_BODY, birth_date="1999-13-45"))
    assert bad_date.status_code == 400
    assert "birth date" in bad_date.json()["detail"].lower()


def test_check_id_availability(sign_up_form, api_client, service):
    assert api_client.get("/api/signup/check-id", params={"identification": "abcd123"}).status_code == 200
    service.sign_up(sign_up_form("abcd123"))
    assert api_client.get("/api/signup/check-id", params={"identification": "abcd123"}).status_code == 400


def test_login_success_and_bad_credentials(sign_up_form, api_client, service):
    account = service.sign_up(sign_up_form("abcd123"))

    body = _login(api_client, "abcd123", "p1")
    assert body["user_id"] == account.account_id
    assert body["access_token"]
    assert body["refresh_token"]

    for identification, password in (("abcd123", "nope"), ("", ""), ("ghost12", "p1")):
        response = api_client.post(
            "/api/login", json={"identification": identification, "password": password}
        )
        assert response.status_code == 401
        assert response.json()["detail"] == "Invalid identification or password."


def test_login_is_throttled_after_repeated_failures(sign_up_form, api_client, service):
    service.sign_up(sign_up_form("abcd123"))

    for _ in range(3):
        response = api_client.post("/api/login", json={"identification": "abcd123", "password": "bad"})
        assert response.status_code == 401

    blocked = api_client.post("/api/login", json={"identification": "abcd123", "password": "p1"})
    assert blocked.status_code == 429


def test_successful_login_resets_failure_count(sign_up_form, api_client, service):
    service.sign_up(sign_up_form("abcd123"))

    for _ in range(2):
        api_client.post("/api/login", json={"identification": "abcd123", "password": "bad"})
    _login(api_client, "abcd123", "p1")
    for _ in range(2):
        api_client.post("/api/login", json={"identification": "abcd123", "password": "bad"})

    assert api_client.post(
        "/api/login", json={"identification": "abcd123", "password": "p1"}
    ).status_code == 200


def test_refresh_token_flow(sign_up_form, api_client, service):
    service.sign_up(sign_up_form("abcd123"))
    issued = _login(api_client, "abcd123", "p1")

    refreshed = api_client.post("/api/refresh-token", json={"refresh_token": issued["refresh_token"]})
    assert refreshed.status_code == 200
    assert refreshed.json()["access_token"]

    invalid = api_client.post("/api/refresh-token", json={"refresh_token": "invalidRefreshToken"})
    assert invalid.status_code == 400
    assert invalid.json()["detail"] == "Invalid refresh token."


def test_refresh_token_for_removed_account_is_not_found(sign_up_form, api_client, service, repository):
    account = service.sign_up(sign_up_form("abcd123"))
    issued = _login(api_client, "abcd123", "p1")
    repository.remove_account(account.account_id)

    response = api_client.post("/api/refresh-token", json={"refresh_token": issued["refresh_token"]})
    assert response.status_code == 404


def test_csrf_token_endpoint(api_client):
    response = api_client.get("/api/csrf-token")

    assert response.status_code == 200
    body = response.json()
    assert body["token"]
    assert body["header_name"] == "X-XSRF-TOKEN"
    assert response.cookies.get("XSRF-TOKEN") == body["token"]


def test_profile_requires_bearer_token(sign_up_form, api_client, service):
    account = service.sign_up(sign_up_form("abcd123"))

    assert api_client.get(f"/api/users/{account.account_id}").status_code == 401
    assert api_client.get(
        f"/api/users/{account.account_id}", headers=_auth("garbage")
    ).status_code == 401

    refresh_token = _login(api_client, "abcd123", "p1")["refresh_token"]
    assert api_client.get(
        f"/api/users/{account.account_id}", headers=_auth(refresh_token)
    ).status_code == 401


def test_profile_returns_added_delivery_addresses(sign_up_form, api_client, service):
    account = service.sign_up(sign_up_form("abcd123"))
    token = _login(api_client, "abcd123", "p1")["access_token"]

    for name in ("Kim", "Lee"):
        created = api_client.post(
            f"/api/users/{account.account_id}/delivery-addresses",
            json=dict(ADDRESS_BODY, recipient_name=name),
            headers=_auth(token),
        )
        assert created.status_code == 201

    response = api_client.get(f"/api/users/{account.account_id}", headers=_auth(token))
    assert response.status_code == 200
    body = response.json()
    assert body["identification"] == "abcd123"
    assert body["tier"] == "IRON"
    assert body["point"] == 0
    assert len(body["delivery_addresses"]) == 2


def test_profile_of_other_user_is_forbidden_and_missing_is_not_found(sign_up_form, api_client, service):
    service.sign_up(sign_up_form("abcd123"))
    other = service.sign_up(sign_up_form("other12"))
    user_token = _login(api_client, "abcd123", "p1")["access_token"]

    assert api_client.get(f"/api/users/{other.account_id}", headers=_auth(user_token)).status_code == 403

    admin_token = _super_admin_token(api_client, service)
    assert api_client.get(f"/api/users/{other.account_id}", headers=_auth(admin_token)).status_code == 200
    assert api_client.get("/api/users/9999", headers=_auth(admin_token)).status_code == 404


def test_delivery_address_validation_and_delete(sign_up_form, api_client, service):
    account = service.sign_up(sign_up_form("abcd123"))
    token = _login(api_client, "abcd123", "p1")["access_token"]
    base = f"/api/users/{account.account_id}/delivery-addresses"

    invalid = api_client.post(base, json=dict(ADDRESS_BODY, zip_code="12"), headers=_auth(token))
    assert invalid.status_code == 400
    assert invalid.json()["detail"][0]["field"] == "zip_code"

    created = api_client.post(base, json=ADDRESS_BODY, headers=_auth(token)).json()
    assert len(api_client.get(base, headers=_auth(token)).json()) == 1

    deleted = api_client.delete(f"{base}/{created['address_id']}", headers=_auth(token))
    assert deleted.status_code == 200
    assert api_client.get(base, headers=_auth(token)).json() == []

    again = api_client.delete(f"{base}/{created['address_id']}", headers=_auth(token))
    assert again.status_code == 404


def test_admin_sign_up_requires_super_admin(sign_up_form, api_client, service, repository):
    service.sign_up(sign_up_form("abcd123"))
    user_token = _login(api_client, "abcd123", "p1")["access_token"]
    body = dict(SIGN_UP_BODY, identification="admin01")

    assert api_client.post("/api/admin/signup", json=body).status_code == 401
    assert api_client.post("/api/admin/signup", json=body, headers=_auth(user_token)).status_code == 403

    super_token = _super_admin_token(api_client, service)
    response = api_client.post("/api/admin/signup", json=body, headers=_auth(super_token))
    assert response.status_code == 201
    admin = repository.find_by_identification("admin01")
    assert admin.role.value == "ADMIN"
    assert repository.get_cart(admin.account_id) is None


def test_admin_user_listing(sign_up_form, api_client, service):
    for idx in range(3):
        service.sign_up(sign_up_form(f"member{idx}"))
    service.sign_up_admin(sign_up_form("admin01"))
    admin_token = _login(api_client, "admin01", "p1")["access_token"]
    member_token = _login(api_client, "member0", "p1")["access_token"]

    assert api_client.get("/api/admin/users", headers=_auth(member_token)).status_code == 403

    response = api_client.get("/api/admin/users", params={"page": 1, "size": 2}, headers=_auth(admin_token))
    assert response.status_code == 200
    body = response.json()
    assert body["total"] == 4
    assert body["page"] == 1
    assert [item["identification"] for item in body["items"]] == ["member2", "admin01"]


def test_malformed_requests_answer_400_with_field_errors(sign_up_form, api_client, service, repository):
    wrong_type = api_client.post("/api/signup", json={"identification": 123})
    assert wrong_type.status_code == 400
    assert wrong_type.json()["detail"][0]["field"] == "identification"
    assert wrong_type.json()["detail"][0]["message"]
    assert repository.accounts == []

    missing_query = api_client.get("/api/signup/check-id")
    assert missing_query.status_code == 400
    assert [error["field"] for error in missing_query.json()["detail"]] == ["identification"]

    service.sign_up_admin(sign_up_form("admin01"))
    admin_token = _login(api_client, "admin01", "p1")["access_token"]
    negative_page = api_client.get("/api/admin/users", params={"page": -1}, headers=_auth(admin_token))
    assert negative_page.status_code == 400
    assert [error["field"] for error in negative_page.json()["detail"]] == ["page"]


def test_access_token_without_identity_claims_is_unauthorized(sign_up_form, api_client, service, token_issuer):
    account = service.sign_up(sign_up_form("abcd123"))
    now = int(time.time())
    partial = jwt.encode(
        {"iss": "test.accounts", "sub": "abcd123", "type": "access", "iat": now, "exp": now + 300},
        "test-secret",
        algorithm="HS256",
    )

    assert token_issuer.validate_token(partial) is False
    response = api_client.get(f"/api/users/{account.account_id}", headers=_auth(partial))
    assert response.status_code == 401
