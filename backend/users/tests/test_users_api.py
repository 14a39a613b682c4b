import pytest

pytestmark = pytest.mark.django_db


def test_me_requires_authentication(api_client):
    resp = api_client.get("/api/users/me/")
    assert resp.status_code == 401


def test_me_returns_profile(api_client, host_user):
    api_client.force_authenticate(user=host_user)

    resp = api_client.get("/api/users/me/")

    assert resp.status_code == 200
    assert resp.data["display_name"] == "Harper Host"
    assert resp.data["is_host"] is True
    assert resp.data["is_operator"] is False


def test_me_patch_ignores_read_only_fields(api_client, guest_user):
    api_client.force_authenticate(user=guest_user)

    resp = api_client.patch(
        "/api/users/me/", {"phone": "+61 400 000 000", "is_host": True}, format="json"
    )

    assert resp.status_code == 200
    guest_user.refresh_from_db()
    assert guest_user.phone == "+61 400 000 000"
    assert guest_user.is_host is False


def test_operator_flag_follows_role_groups(api_client, finance_operator):
    api_client.force_authenticate(user=finance_operator)

    resp = api_client.get("/api/users/me/")

    assert resp.data["is_operator"] is True
