import json
from datetime import datetime, timedelta

from app.database import SessionLocal
from app.models.provisioning_request import ProvisioningRequest
from fakes import PNG_BYTES, image_upload, registration_form


def _create(client, role="provider", image=None, **overrides):
    endpoint = "/create-provider" if role == "provider" else "/create-requester"
    return client.post(
        endpoint,
        data=registration_form(role, **overrides),
        files=image if image is not None else image_upload(),
    )


def test_provider_registration_provisions_every_resource(client, identity, profiles, images):
    response = _create(client)

    assert response.status_code == 201
    payload = response.json()
    assert payload["ok"] is True
    uid = payload["uid"]
    assert uid
    assert payload["customToken"]
    assert payload["handoffCode"]
    assert payload["replayed"] is False

    principal = identity.principals[uid]
    assert principal["email"] == "ana@example.com"
    assert principal["phone_number"] == "+40712345678"
    assert principal["display_name"] == "Ana Pop"
    assert principal["email_verified"] is False

    document = profiles.documents[("providers", uid)]
    assert document["uid"] == uid
    assert document["type"] == "provider"
    assert document["phone"] == "+40712345678"
    assert document["age"] == 25
    assert document["tags"] == ["Curățenie"]
    assert document["rating"] == 0
    assert document["reviewsCount"] == 0
    assert document["createdAt"] == "SERVER_TIMESTAMP"
    assert document["location"] == (45.75, 21.23)
    assert len(document["serviceArea"]) == 4
    assert document["profileImagePath"] == f"/uploads/provider-{uid}.png"
    assert "password" not in document

    assert images.saved[f"provider-{uid}.png"] == PNG_BYTES


def test_requester_registration_has_no_provider_fields(client, profiles, images):
    response = _create(client, role="requester")

    assert response.status_code == 201
    uid = response.json()["uid"]
    document = profiles.documents[("requesters", uid)]
    assert document["type"] == "requester"
    for field in ("tags", "rating", "reviewsCount"):
        assert field not in document
    assert f"requester-{uid}.png" in images.saved


def test_short_password_is_rejected_before_any_principal_exists(client, identity, profiles):
    response = _create(client, password="ab")

    assert response.status_code == 400
    payload = response.json()
    assert payload["ok"] is False
    assert payload["errors"]["password"] == "Password must be at least 6 characters"
    assert identity.principals == {}
    assert profiles.documents == {}


def test_underage_is_rejected_with_an_age_error(client):
    response = _create(client, age="17")

    assert response.status_code == 400
    assert "age" in response.json()["errors"]


def test_two_point_service_area_is_rejected(client, identity):
    points = [{"lat": 45.75, "lng": 21.23}, {"lat": 45.76, "lng": 21.24}]

    response = _create(client, serviceArea=json.dumps(points))

    assert response.status_code == 400
    assert "serviceArea" in response.json()["errors"]
    assert identity.principals == {}


def test_three_point_service_area_is_accepted(client):
    points = [{"lat": 45.75, "lng": 21.23}, {"lat": 45.76, "lng": 21.24}, {"lat": 45.74, "lng": 21.25}]

    response = _create(client, serviceArea=json.dumps(points))

    assert response.status_code == 201


def test_provider_without_tags_is_rejected(client, identity):
    response = _create(client, tags="[]")

    assert response.status_code == 400
    assert response.json() == {"ok": False, "message": "Select at least one tag"}
    assert identity.principals == {}


def test_provider_tags_fall_back_to_comma_separated_text(client, profiles):
    response = _create(client, tags="Curățenie, Reparații")

    assert response.status_code == 201
    uid = response.json()["uid"]
    assert profiles.documents[("providers", uid)]["tags"] == ["Curățenie", "Reparații"]


def test_missing_image_is_rejected(client, identity):
    response = client.post("/create-provider", data=registration_form())

    assert response.status_code == 400
    assert "profileImage" in response.json()["errors"]
    assert identity.principals == {}


def test_oversized_image_is_rejected(client):
    big = b"\x00" * (5 * 1024 * 1024 + 1)

    response = _create(client, image=image_upload(content=big))

    assert response.status_code == 400
    assert "profileImage" in response.json()["errors"]


def test_non_image_upload_is_rejected(client):
    response = _create(client, image=image_upload(filename="notes.txt", content=b"hello", content_type="text/plain"))

    assert response.status_code == 400
    assert response.json()["errors"]["profileImage"] == "Unsupported profileImage type"


def test_duplicate_email_fails_at_identity_creation(client, identity, profiles):
    first = _create(client)
    assert first.status_code == 201

    second = _create(client)

    assert second.status_code == 500
    payload = second.json()
    assert payload["ok"] is False
    assert "EMAIL_EXISTS" in payload["message"]
    assert payload["error"] == "ALREADY_EXISTS"
    assert len(identity.principals) == 1
    assert len(profiles.documents) == 1


def test_profile_write_failure_removes_the_new_principal(client, identity, profiles, images):
    profiles.fail_save = True

    response = _create(client)

    assert response.status_code == 500
    payload = response.json()
    assert payload["ok"] is False
    assert payload["message"] == "Could not save profile"
    assert identity.principals == {}
    assert len(identity.deleted) == 1
    assert images.saved == {}


def test_image_storage_failure_keeps_the_account(client, identity, profiles, images):
    images.fail_save = True

    response = _create(client)

    assert response.status_code == 201
    uid = response.json()["uid"]
    assert uid in identity.principals
    assert profiles.documents[("providers", uid)]["profileImagePath"] == f"/uploads/provider-{uid}.png"
    assert images.saved == {}


def test_token_failure_unwinds_every_created_resource(client, identity, profiles, images):
    identity.fail_mint = True

    response = _create(client)

    assert response.status_code == 500
    assert identity.principals == {}
    assert profiles.documents == {}
    assert images.saved == {}


def test_replayed_request_id_returns_the_existing_account(client, identity, profiles):
    first = _create(client, requestId="attempt-1")
    second = _create(client, requestId="attempt-1")

    assert first.status_code == 201
    assert second.status_code == 200
    assert second.json()["replayed"] is True
    assert second.json()["uid"] == first.json()["uid"]
    assert second.json()["handoffCode"] != first.json()["handoffCode"]
    assert len(identity.principals) == 1
    assert len(profiles.documents) == 1


def test_request_id_cannot_switch_account_type(client):
    assert _create(client, requestId="attempt-2").status_code == 201

    response = _create(client, role="requester", requestId="attempt-2")

    assert response.status_code == 409
    assert response.json()["ok"] is False


def test_failed_attempt_does_not_record_its_request_id(client, identity):
    identity.fail_mint = True
    assert _create(client, requestId="attempt-3").status_code == 500

    identity.fail_mint = False
    response = _create(client, requestId="attempt-3")

    assert response.status_code == 201
    assert response.json()["replayed"] is False


def test_request_id_replay_with_other_credentials_is_refused(client, identity):
    assert _create(client, requestId="attempt-4").status_code == 201

    response = _create(
        client,
        requestId="attempt-4",
        email="someone@example.com",
        password="whatever1",
        phone="799999999",
    )

    assert response.status_code == 409
    payload = response.json()
    assert payload["ok"] is False
    assert "customToken" not in payload
    assert "handoffCode" not in payload
    assert len(identity.minted) == 1


def test_request_id_matches_email_case_insensitively(client):
    assert _create(client, requestId="attempt-5").status_code == 201

    response = _create(client, requestId="attempt-5", email="  ANA@example.com ")

    assert response.status_code == 200
    assert response.json()["replayed"] is True


def test_expired_request_id_is_not_replayed(client, identity):
    first = _create(client, requestId="attempt-6")
    assert first.status_code == 201
    db = SessionLocal()
    try:
        record = db.get(ProvisioningRequest, "attempt-6")
        record.expires_at = datetime.utcnow() - timedelta(seconds=1)
        db.commit()
    finally:
        db.close()

    response = _create(client, requestId="attempt-6")

    assert response.status_code == 409
    assert len(identity.minted) == 1


def test_boolean_coordinates_are_rejected(client, identity):
    response = _create(client, role="requester", location=json.dumps({"lat": True, "lng": False}))

    assert response.status_code == 400
    assert "location" in response.json()["errors"]
    assert identity.principals == {}
