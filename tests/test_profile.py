from datetime import timedelta

from tests.helpers import BASE, PASSWORD


def test_add_address(client, token, db):
    response = client.post(
        f"{BASE}/address",
        json={"email": "alice@gmail.com", "address": "12 Market Street"},
        headers={"Authorization": token},
    )
    assert response.status_code == 200
    assert response.json()["data"]["address"] == "12 Market Street"
    assert db["user"].find_one({"email": "alice@gmail.com"})["address"] == "12 Market Street"


def test_edit_address_overwrites(client, token):
    headers = {"Authorization": token}
    client.post(f"{BASE}/address", json={"email": "alice@gmail.com", "address": "old"}, headers=headers)
    response = client.post(f"{BASE}/address", json={"email": "alice@gmail.com", "address": "new"}, headers=headers)
    assert response.json()["data"]["address"] == "new"


def test_address_requires_token(client, token):
    response = client.post(f"{BASE}/address", json={"email": "alice@gmail.com", "address": "x"})
    assert response.status_code == 400
    assert response.json() == {"error": True, "message": "token is required"}


def test_address_rejects_bearer_prefix(client, token):
    response = client.post(
        f"{BASE}/address",
        json={"email": "alice@gmail.com", "address": "x"},
        headers={"Authorization": f"Bearer {token}"},
    )
    assert response.status_code == 400
    assert response.json()["error"] is True


def test_address_rejects_expired_token(client, token, credentials):
    expired = credentials.issue_token("id", "alice@gmail.com", "user", expires_delta=timedelta(seconds=-5))
    response = client.post(
        f"{BASE}/address",
        json={"email": "alice@gmail.com", "address": "x"},
        headers={"Authorization": expired},
    )
    assert response.status_code == 400
    assert response.json() == {"error": True, "message": "token has expired"}


def test_address_unknown_email(client, token):
    response = client.post(
        f"{BASE}/address",
        json={"email": "nobody@gmail.com", "address": "x"},
        headers={"Authorization": token},
    )
    assert response.status_code == 400
    assert response.json() == {"error": True, "message": "email not found"}


def test_change_name(client, token):
    response = client.post(
        f"{BASE}/name",
        json={"email": "alice@gmail.com", "name": "Alice Smith"},
        headers={"Authorization": token},
    )
    assert response.status_code == 200
    assert response.json()["data"]["name"] == "Alice Smith"
    assert "password" not in response.json()["data"]


def test_change_name_requires_name(client, token):
    response = client.post(f"{BASE}/name", json={"email": "alice@gmail.com"}, headers={"Authorization": token})
    assert response.status_code == 400
    assert response.json() == {"error": True, "message": "name can't be empty"}


def test_change_password(client, token):
    response = client.post(
        f"{BASE}/password",
        json={"email": "alice@gmail.com", "oldPassword": PASSWORD, "newPassword": "brand-new"},
        headers={"Authorization": token},
    )
    assert response.status_code == 200
    assert response.json() == {"error": False, "message": "success"}

    old = client.post(f"{BASE}/login", json={"email": "alice@gmail.com", "password": PASSWORD})
    assert old.status_code == 400
    new = client.post(f"{BASE}/login", json={"email": "alice@gmail.com", "password": "brand-new"})
    assert new.status_code == 200


def test_change_password_wrong_old_password(client, token):
    response = client.post(
        f"{BASE}/password",
        json={"email": "alice@gmail.com", "oldPassword": "guess", "newPassword": "brand-new"},
        headers={"Authorization": token},
    )
    assert response.status_code == 400
    assert response.json() == {"error": True, "message": "old password not matched"}


def test_change_password_requires_new_password(client, token):
    response = client.post(
        f"{BASE}/password",
        json={"email": "alice@gmail.com", "oldPassword": PASSWORD},
        headers={"Authorization": token},
    )
    assert response.status_code == 400
    assert response.json() == {"error": True, "message": "newPassword can't be empty"}


def test_profile_update_refreshes_timestamp(client, token, db):
    db["user"].update_one({"email": "alice@gmail.com"}, {"$set": {"updated_at": 0}})
    client.post(
        f"{BASE}/name",
        json={"email": "alice@gmail.com", "name": "Alice"},
        headers={"Authorization": token},
    )
    assert db["user"].find_one({"email": "alice@gmail.com"})["updated_at"] > 0
