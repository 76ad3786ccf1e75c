import pytest

from account_api.domain.ports.notifications import NotificationReason

from conftest import (
    ADMIN_EMAIL,
    ADMIN_PASSWORD,
    CLIENT_ID,
    CLIENT_SECRET,
    bearer,
    client_token,
    register,
    user_token,
)

SECRET_KEYS = {"password", "password_hash", "passwordHash", "verification_token", "verificationToken"}


def _verify(client, notifier, email):
    res = client.get(f"/accounts/verify/{notifier.last_token_for(email)}")
    assert res.status_code == 200, res.text
    return res


def _admin_headers(client):
    return bearer(user_token(client, ADMIN_EMAIL, ADMIN_PASSWORD))


def test_health(client):
    assert client.get("/health").json() == {"ok": True}


def test_register_creates_unverified_account(client, notifier):
    res = client.post(
        "/accounts",
        data={
            "name": "Ann",
            "email": "ann@example.com",
            "password": "secret1",
            "passwordConfirmation": "secret1",
            "isAdmin": "1",
        },
        headers=bearer(client_token(client)),
    )

    assert res.status_code == 201
    data = res.json()["data"]
    assert data["name"] == "Ann"
    assert data["email"] == "ann@example.com"
    assert data["isVerified"] is False
    assert data["isAdmin"] is False
    assert data["deletedDate"] is None
    assert data["links"] == [{"rel": "self", "href": f"/accounts/{data['identifier']}"}]
    assert not SECRET_KEYS & set(data)
    assert notifier.sent[-1][0] == "ann@example.com"
    assert notifier.sent[-1][2] is NotificationReason.CREATED


def test_register_accepts_json_body(client):
    res = client.post(
        "/accounts",
        json={
            "name": "Ann",
            "email": "ann@example.com",
            "password": "secret1",
            "passwordConfirmation": "secret1",
        },
        headers=bearer(client_token(client)),
    )

    assert res.status_code == 201


def test_register_without_token_is_unauthenticated(client):
    res = client.post("/accounts", data={"name": "Ann"})

    assert res.status_code == 401
    assert res.json() == {"error": "Unauthenticated.", "code": 401}


def test_invalid_bearer_token_is_unauthenticated(client):
    res = client.post("/accounts", data={"name": "Ann"}, headers=bearer("not-a-token"))

    assert res.status_code == 401


def test_register_validation_errors(client):
    register(client, "Ann", "ann@example.com")

    res = client.post(
        "/accounts",
        data={
            "email": "ann@example.com",
            "password": "secret1",
            "passwordConfirmation": "different",
        },
        headers=bearer(client_token(client)),
    )

    assert res.status_code == 422
    assert res.json() == {
        "error": {
            "name": ["The name field is required."],
            "email": ["The email has already been taken."],
            "password": ["The password confirmation does not match."],
        },
        "code": 422,
    }


def test_register_rejects_non_string_json_values(client):
    res = client.post(
        "/accounts",
        json={
            "name": "Ann",
            "email": "ann@example.com",
            "password": 123456,
            "passwordConfirmation": 123456,
        },
        headers=bearer(client_token(client)),
    )

    assert res.status_code == 422
    assert res.json()["error"] == {"password": ["The password must be a string."]}


def test_verify_flow(client, notifier):
    ann = register(client, "Ann", "ann@example.com")
    token = notifier.last_token_for("ann@example.com")

    res = client.get(f"/accounts/verify/{token}")
    assert res.json() == {"message": "The account has been successfully verified", "code": 200}

    headers = bearer(user_token(client, "ann@example.com", "secret1"))
    assert client.get(f"/accounts/{ann['identifier']}", headers=headers).json()["data"]["isVerified"]

    again = client.get(f"/accounts/verify/{token}")
    assert again.status_code == 404


def test_verify_unknown_token(client):
    res = client.get("/accounts/verify/bogus")

    assert res.status_code == 404
    assert res.json() == {
        "error": "Does not exist any account with the specified identificator.",
        "code": 404,
    }


def test_resend_unverified_account(client, notifier):
    ann = register(client, "Ann", "ann@example.com")

    res = client.get(f"/accounts/{ann['identifier']}/resend", headers=bearer(client_token(client)))

    assert res.status_code == 200
    assert res.json()["message"] == "The verification token has been resent"
    assert notifier.sent[-1][2] is NotificationReason.RESEND


def test_resend_verified_account_conflicts(client, notifier):
    ann = register(client, "Ann", "ann@example.com")
    _verify(client, notifier, "ann@example.com")
    before = notifier.attempts

    res = client.get(f"/accounts/{ann['identifier']}/resend", headers=bearer(client_token(client)))

    assert res.status_code == 409
    assert res.json() == {"error": "This user is already verified", "code": 409}
    assert notifier.attempts == before


def test_resend_exhausting_attempts_is_a_server_error(client, notifier, sleeps):
    ann = register(client, "Ann", "ann@example.com")
    notifier.fail_times = 5

    res = client.get(f"/accounts/{ann['identifier']}/resend", headers=bearer(client_token(client)))

    assert res.status_code == 500
    assert res.json()["code"] == 500
    assert sleeps == [0.1] * 4


def test_show_requires_manage_scope(client):
    ann = register(client, "Ann", "ann@example.com")
    headers = bearer(user_token(client, "ann@example.com", "secret1", scope="read-general"))

    res = client.get(f"/accounts/{ann['identifier']}", headers=headers)

    assert res.status_code == 403
    assert res.json() == {"error": "Invalid scopes provided.", "code": 403}


def test_show_other_account_is_forbidden_but_admin_may(client):
    ann = register(client, "Ann", "ann@example.com")
    register(client, "Bob", "bob@example.com")
    bob_headers = bearer(user_token(client, "bob@example.com", "secret1"))

    assert client.get(f"/accounts/{ann['identifier']}", headers=bob_headers).status_code == 403
    assert client.get(f"/accounts/{ann['identifier']}", headers=_admin_headers(client)).status_code == 200


def test_show_missing_account(client):
    headers = _admin_headers(client)

    assert client.get("/accounts/9999", headers=headers).status_code == 404
    assert client.get("/accounts/abc", headers=headers).status_code == 404


@pytest.mark.parametrize("raw_id", ["99999999999999999999999", "%C2%B2", "9223372036854775808"])
def test_out_of_range_or_non_ascii_ids_are_not_found(client, raw_id):
    admin = _admin_headers(client)
    client_headers = bearer(client_token(client))

    assert client.get(f"/accounts/{raw_id}", headers=admin).status_code == 404
    assert client.put(f"/accounts/{raw_id}", json={"name": "X"}, headers=admin).status_code == 404
    assert client.delete(f"/accounts/{raw_id}", headers=admin).status_code == 404
    assert client.get(f"/accounts/{raw_id}/resend", headers=client_headers).status_code == 404


def test_largest_account_id_is_looked_up(client):
    res = client.get("/accounts/9223372036854775807", headers=_admin_headers(client))

    assert res.status_code == 404
    assert res.json()["error"] == "Does not exist any account with the specified identificator."


def test_client_token_cannot_show_accounts(client):
    ann = register(client, "Ann", "ann@example.com")

    res = client.get(f"/accounts/{ann['identifier']}", headers=bearer(client_token(client)))

    assert res.status_code == 401


def test_me_returns_caller(client):
    register(client, "Ann", "ann@example.com")
    headers = bearer(user_token(client, "ann@example.com", "secret1"))

    res = client.get("/accounts/me", headers=headers)

    assert res.status_code == 200
    assert res.json()["data"]["email"] == "ann@example.com"


def test_update_name_and_email(client, notifier):
    ann = register(client, "Ann", "ann@example.com")
    _verify(client, notifier, "ann@example.com")
    headers = bearer(user_token(client, "ann@example.com", "secret1"))

    res = client.put(
        f"/accounts/{ann['identifier']}",
        json={"name": "Ann B.", "email": "annb@example.com"},
        headers=headers,
    )

    assert res.status_code == 200
    data = res.json()["data"]
    assert data["name"] == "Ann B."
    assert data["email"] == "annb@example.com"
    assert data["isVerified"] is False
    assert notifier.sent[-1][0] == "annb@example.com"
    assert notifier.sent[-1][2] is NotificationReason.EMAIL_CHANGED


def test_update_with_same_email_is_rejected(client):
    ann = register(client, "Ann", "ann@example.com")
    headers = bearer(user_token(client, "ann@example.com", "secret1"))

    res = client.patch(
        f"/accounts/{ann['identifier']}", data={"email": "ann@example.com"}, headers=headers
    )

    assert res.status_code == 422
    assert res.json() == {"error": "You need to specify a different value to update", "code": 422}


def test_admin_flag_on_unverified_account_conflicts(client):
    ann = register(client, "Ann", "ann@example.com")

    res = client.put(
        f"/accounts/{ann['identifier']}", data={"isAdmin": "true"}, headers=_admin_headers(client)
    )

    assert res.status_code == 409
    assert res.json() == {"error": "Only verified users can modify the admin field.", "code": 409}


def test_admin_promotes_verified_account(client, notifier):
    ann = register(client, "Ann", "ann@example.com")
    _verify(client, notifier, "ann@example.com")

    res = client.put(
        f"/accounts/{ann['identifier']}", json={"isAdmin": True}, headers=_admin_headers(client)
    )

    assert res.status_code == 200
    assert res.json()["data"]["isAdmin"] is True


def test_owner_cannot_grant_itself_admin(client, notifier):
    ann = register(client, "Ann", "ann@example.com")
    _verify(client, notifier, "ann@example.com")
    headers = bearer(user_token(client, "ann@example.com", "secret1"))

    res = client.put(f"/accounts/{ann['identifier']}", json={"isAdmin": True}, headers=headers)

    assert res.status_code == 403


def test_update_rejects_malformed_json(client):
    ann = register(client, "Ann", "ann@example.com")
    headers = bearer(user_token(client, "ann@example.com", "secret1"))
    headers["Content-Type"] = "application/json"

    res = client.put(f"/accounts/{ann['identifier']}", content=b"{not json", headers=headers)

    assert res.status_code == 400


def test_delete_own_account(client):
    ann = register(client, "Ann", "ann@example.com")
    headers = bearer(user_token(client, "ann@example.com", "secret1"))

    res = client.delete(f"/accounts/{ann['identifier']}", headers=headers)

    assert res.status_code == 204
    assert client.get("/accounts/me", headers=headers).status_code == 401
    assert client.get(f"/accounts/{ann['identifier']}", headers=_admin_headers(client)).status_code == 404


def test_delete_other_account_is_forbidden(client):
    ann = register(client, "Ann", "ann@example.com")
    register(client, "Bob", "bob@example.com")
    headers = bearer(user_token(client, "bob@example.com", "secret1"))

    assert client.delete(f"/accounts/{ann['identifier']}", headers=headers).status_code == 403


def test_list_requires_read_scope(client):
    register(client, "Ann", "ann@example.com")
    headers = bearer(user_token(client, "ann@example.com", "secret1", scope="manage-account"))

    assert client.get("/accounts", headers=headers).status_code == 403


def test_list_filters_sorts_and_paginates(client):
    register(client, "Zed", "zed@example.com")
    register(client, "Ann", "ann@example.com")
    headers = bearer(user_token(client, "ann@example.com", "secret1", scope="read-general"))

    res = client.get("/accounts", params={"isVerified": "false", "sort_by": "name"}, headers=headers)

    assert res.status_code == 200
    body = res.json()
    assert [item["name"] for item in body["data"]] == ["Ann", "Zed"]
    assert body["meta"]["pagination"]["total"] == 2

    paged = client.get("/accounts", params={"per_page": 1, "page": 2}, headers=headers).json()
    assert len(paged["data"]) == 1
    assert paged["meta"]["pagination"]["total"] == 3
    assert paged["meta"]["pagination"]["total_pages"] == 3


def test_list_with_deleted_is_admin_only(client):
    ann = register(client, "Ann", "ann@example.com")
    register(client, "Bob", "bob@example.com")
    ann_headers = bearer(user_token(client, "ann@example.com", "secret1"))
    client.delete(f"/accounts/{ann['identifier']}", headers=ann_headers)

    bob_headers = bearer(user_token(client, "bob@example.com", "secret1"))
    assert client.get("/accounts", params={"withDeleted": "1"}, headers=bob_headers).status_code == 403

    res = client.get("/accounts", params={"withDeleted": "1"}, headers=_admin_headers(client))
    emails = {item["email"]: item for item in res.json()["data"]}
    assert emails["ann@example.com"]["deletedDate"] is not None


def test_list_rejects_unknown_sort_attribute(client):
    res = client.get("/accounts", params={"sort_by": "password"}, headers=_admin_headers(client))

    assert res.status_code == 400


def test_token_endpoint_rejects_unknown_grant(client):
    res = client.post(
        "/oauth/token",
        data={"grant_type": "implicit", "client_id": CLIENT_ID, "client_secret": CLIENT_SECRET},
    )

    assert res.status_code == 400
    assert res.json()["code"] == 400


def test_token_endpoint_rejects_wrong_password(client):
    res = client.post(
        "/oauth/token",
        data={
            "grant_type": "password",
            "client_id": CLIENT_ID,
            "client_secret": CLIENT_SECRET,
            "username": ADMIN_EMAIL,
            "password": "nope-nope",
        },
    )

    assert res.status_code == 401


def test_token_endpoint_missing_fields(client):
    res = client.post("/oauth/token", data={"grant_type": "client_credentials"})

    assert res.status_code == 422
    assert set(res.json()["error"]) == {"client_id", "client_secret"}
