import io

from extensions import db
from models import Complaint, Message, Update, User

STAFF_PASSWORD = "Str0ng!Passw0rd"


def login(client, email, password=STAFF_PASSWORD):
    return client.post("/auth/login", json={"email": email, "password": password})


def submission(refs, **overrides):
    data = {
        "title": "Streetlights out",
        "description": "The whole street has been dark since Monday",
        "category": str(refs.infra_id),
        "location": "KN 5 Rd",
        "priority": "medium",
        "province": "Kigali",
        "district": "Kicukiro",
        "contact": "resident@mail.rw",
    }
    data.update(overrides)
    return data


def test_health(client):
    response = client.get("/health")

    assert response.status_code == 200
    assert response.get_json() == {"status": "ok", "database": "ok"}


def test_reference_data_endpoints(client, refs):
    categories = client.get("/api/categories").get_json()
    assert [c["name"] for c in categories] == ["Health", "Infrastructure", "Water & Sanitation"]

    institutions = client.get("/api/institutions").get_json()
    assert len(institutions) == 3

    locations = client.get("/api/locations").get_json()
    assert locations[0]["name"] == "Kigali"


def test_submit_and_track(client, refs):
    data = submission(refs)
    data["file-0"] = (io.BytesIO(b"%PDF-1.4"), "report.pdf", "application/pdf")

    response = client.post("/complaints/", data=data, content_type="multipart/form-data")

    assert response.status_code == 201
    tracking_id = response.get_json()["tracking_id"]

    tracked = client.get(f"/complaints/track/{tracking_id}")
    assert tracked.status_code == 200
    payload = tracked.get_json()
    assert payload["status"] == "submitted"
    assert payload["institution_name"] == "Kicukiro District Office"
    assert payload["category_name"] == "Infrastructure"
    assert len(payload["updates"]) == 1
    assert payload["attachments"][0]["file_name"] == "report.pdf"
    assert payload["attachments"][0]["file_size"] == 8
    assert "contact_info" not in payload


def test_submit_json_body(client, refs):
    response = client.post("/complaints/", json=submission(refs))

    assert response.status_code == 201


def test_submit_missing_fields(client, refs):
    response = client.post("/complaints/", data=submission(refs, title="", district=""))

    assert response.status_code == 400
    body = response.get_json()
    assert body["code"] == "validation_error"
    assert body["fields"] == ["title", "district"]


def test_track_unknown_and_malformed(client, refs):
    assert client.get("/complaints/track/CMP-000001").status_code == 404
    malformed = client.get("/complaints/track/not-an-id")
    assert malformed.status_code == 404
    assert malformed.get_json()["code"] == "not_found"


def test_staff_routes_require_login(client, refs, complaint_factory):
    complaint = complaint_factory()

    assert client.get("/admin/complaints").status_code == 401
    assert client.get("/admin/dashboard").status_code == 401
    response = client.post(f"/admin/complaints/{complaint.id}/status", json={"status": "resolved"})
    assert response.status_code == 401
    assert response.get_json()["code"] == "auth_required"


def test_login_rejects_bad_password(client, refs):
    response = login(client, "officer@gasabo.gov.rw", "wrong-password")

    assert response.status_code == 401
    assert client.get("/auth/me").get_json() == {"user": None}


def test_citizen_cannot_use_staff_routes(client, refs, app):
    with app.app_context():
        citizen = db.session.get(User, refs.citizen_id)
        citizen.set_password("Citizen!Pass123")
        db.session.commit()

    assert login(client, "citizen@mail.rw", "Citizen!Pass123").status_code == 200
    assert client.get("/admin/complaints").status_code == 403


def test_officer_queue_is_pinned_to_their_institution(officer_client, refs, complaint_factory):
    own = complaint_factory()
    foreign = complaint_factory(institution_id=refs.kicukiro_id)

    response = officer_client.get(f"/admin/complaints?institution_id={refs.kicukiro_id}")

    assert response.status_code == 200
    assert [c["id"] for c in response.get_json()] == [own.id]
    assert officer_client.get(f"/admin/complaints/{foreign.id}").status_code == 403
    detail = officer_client.get(f"/admin/complaints/{own.id}").get_json()
    assert detail["contact_info"] is None


def test_admin_queue_filters(admin_client, refs, complaint_factory):
    complaint_factory(status="resolved")
    kicukiro = complaint_factory(institution_id=refs.kicukiro_id)

    response = admin_client.get(f"/admin/complaints?institution_id={refs.kicukiro_id}&status=submitted")

    assert [c["id"] for c in response.get_json()] == [kicukiro.id]
    assert len(admin_client.get("/admin/complaints?status=all").get_json()) == 2


def test_status_and_message_routes(officer_client, refs, complaint_factory, app):
    complaint = complaint_factory()

    response = officer_client.post(
        f"/admin/complaints/{complaint.id}/status", json={"status": "under_review", "comment": "Assigned"}
    )
    assert response.status_code == 200
    assert response.get_json() == {"success": True, "status": "under_review"}

    response = officer_client.post(f"/admin/complaints/{complaint.id}/status", json={"status": "lost"})
    assert response.status_code == 400

    response = officer_client.post(f"/admin/complaints/{complaint.id}/messages", json={"message": "On our way"})
    assert response.status_code == 201

    response = officer_client.post(
        f"/admin/complaints/{complaint.id}/respond",
        json={"status": "in_progress", "message": "Bring ID.", "response_type": "visit", "visit_date": "2024-07-02"},
    )
    assert response.status_code == 200

    assert officer_client.post("/admin/complaints/999999/status", json={"status": "closed"}).status_code == 404

    with app.app_context():
        stored = db.session.get(Complaint, complaint.id)
        assert stored.status == "in_progress"
        assert Update.query.filter_by(complaint_id=complaint.id).count() == 3
        contents = [m.content for m in Message.query.order_by(Message.id)]
        assert contents == ["On our way", "A site visit has been scheduled for 2024-07-02. Bring ID."]


def test_dashboard_route(officer_client, refs, complaint_factory):
    complaint_factory()
    complaint_factory(institution_id=refs.kicukiro_id)

    response = officer_client.get(f"/admin/dashboard?range=month&institution_id={refs.kicukiro_id}")

    assert response.status_code == 200
    stats = response.get_json()
    assert stats["total"] == 1
    assert stats["scope"] == {"institution_id": refs.gasabo_id, "time_range": "month"}


def test_schema_inspector_is_admin_only(client, refs):
    assert login(client, "officer@gasabo.gov.rw").status_code == 200
    assert client.get("/admin/database/tables").status_code == 403
    client.post("/auth/logout")

    assert login(client, "admin@citizenconnect.gov.rw").status_code == 200
    assert "complaints" in client.get("/admin/database/tables").get_json()["tables"]
    assert client.get("/admin/database/tables/complaints/validate").get_json()["success"] is True
    assert client.get("/admin/database/tables/nope").status_code == 404


def test_security_headers(client):
    response = client.get("/health")

    assert response.headers["X-Content-Type-Options"] == "nosniff"
    assert response.headers["X-Frame-Options"] == "DENY"
    assert "default-src 'none'" in response.headers["Content-Security-Policy"]


def test_session_endpoints(client, refs):
    assert "csrf_token" in client.get("/auth/csrf-token").get_json()

    body = login(client, "officer@gasabo.gov.rw").get_json()
    assert body["role"] == "institution_admin"
    assert client.get("/auth/me").get_json()["user"]["email"] == "officer@gasabo.gov.rw"

    assert client.post("/auth/logout").status_code == 200
    assert client.get("/auth/me").get_json() == {"user": None}


def test_unknown_priority_is_rejected_as_bad_request(client, refs):
    response = client.post("/complaints/", data=submission(refs, priority="urgent"))

    assert response.status_code == 400
    assert response.get_json()["fields"] == ["priority"]


def test_officer_cannot_change_foreign_complaints(officer_client, refs, complaint_factory, app):
    foreign = complaint_factory(institution_id=refs.kicukiro_id)

    assert officer_client.post(f"/admin/complaints/{foreign.id}/status", json={"status": "rejected"}).status_code == 403
    assert officer_client.post(f"/admin/complaints/{foreign.id}/messages", json={"message": "Hi"}).status_code == 403
    response = officer_client.post(
        f"/admin/complaints/{foreign.id}/respond", json={"status": "resolved", "message": "Done"}
    )
    assert response.status_code == 403

    with app.app_context():
        assert db.session.get(Complaint, foreign.id).status == "submitted"
        assert Update.query.filter_by(complaint_id=foreign.id).count() == 1
        assert Message.query.count() == 0


def test_admin_can_change_any_complaint(admin_client, refs, complaint_factory):
    foreign = complaint_factory(institution_id=refs.kicukiro_id)

    response = admin_client.post(f"/admin/complaints/{foreign.id}/status", json={"status": "rejected"})

    assert response.status_code == 200


def test_institution_admin_without_institution_sees_nothing(client, refs, complaint_factory, app):
    complaint = complaint_factory()
    with app.app_context():
        orphan = User(email="orphan@gov.rw", full_name="No Office", role="institution_admin")
        orphan.set_password(STAFF_PASSWORD)
        db.session.add(orphan)
        db.session.commit()

    assert login(client, "orphan@gov.rw").status_code == 200
    assert client.get("/admin/complaints").status_code == 403
    assert client.get("/admin/dashboard").status_code == 403
    assert client.post(f"/admin/complaints/{complaint.id}/status", json={"status": "closed"}).status_code == 403


def test_province_districts(client):
    assert client.get("/api/locations/kigali/districts").get_json() == ["Gasabo", "Kicukiro", "Nyarugenge"]
    assert client.get("/api/locations/Atlantis/districts").status_code == 404
