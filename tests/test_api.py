"""HTTP API tests."""

import pytest

from studyhub.api.routes import auth as auth_routes
from studyhub.data.errors import TransportError


async def test_health(client):
    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "healthy", "mode": "online"}


class TestAuth:
    async def test_signup_then_onboarding(self, client):
        response = await client.post(
            "/auth/signup",
            json={"email": "nina@example.com", "password": "s3cret-pass", "full_name": "Nina"},
        )
        assert response.status_code == 201
        body = response.json()
        assert body["needs_onboarding"] is True
        headers = {"Authorization": f"Bearer {body['access_token']}"}

        me = (await client.get("/auth/me", headers=headers)).json()
        assert me["needs_onboarding"] is True
        assert me["emergency_mode"] is False

        response = await client.put(
            "/students/me",
            json={"academic_year": 1, "semester": 1, "branch": "CSE"},
            headers=headers,
        )
        assert response.status_code == 200
        assert response.json()["full_name"] == "Nina"

        me = (await client.get("/auth/me", headers=headers)).json()
        assert me["needs_onboarding"] is False

    async def test_duplicate_signup(self, client):
        payload = {"email": "nina@example.com", "password": "s3cret-pass"}
        await client.post("/auth/signup", json=payload)
        response = await client.post("/auth/signup", json=payload)
        assert response.status_code == 409

    async def test_signup_cannot_take_over_existing_student(self, client, student):
        response = await client.post("/auth/signup", json={"email": "asha@example.com", "password": "s3cret-pass"})
        assert response.status_code == 409
        response = await client.post("/auth/login", json={"email": "asha@example.com", "password": "s3cret-pass"})
        assert response.status_code == 401

    async def test_login(self, client):
        await client.post("/auth/signup", json={"email": "nina@example.com", "password": "s3cret-pass"})
        response = await client.post("/auth/login", json={"email": "nina@example.com", "password": "s3cret-pass"})
        assert response.status_code == 200
        assert "access_token" in response.cookies

        response = await client.post("/auth/login", json={"email": "nina@example.com", "password": "wrong-pass"})
        assert response.status_code == 401

    async def test_login_when_store_is_down(self, client, backend):
        backend.fail(TransportError("down"))
        response = await client.post("/auth/login", json={"email": "nina@example.com", "password": "s3cret-pass"})
        assert response.status_code == 503

    async def test_google_login(self, client, monkeypatch):
        def verify(token, request, audience):
            assert token == "google-id-token"
            return {
                "sub": "google-123",
                "email": "ravi@example.com",
                "email_verified": True,
                "name": "Ravi Kumar",
                "iss": "https://accounts.google.com",
            }

        monkeypatch.setattr(auth_routes.google_id_token, "verify_oauth2_token", verify)
        response = await client.post("/auth/google", json={"id_token": "google-id-token"})
        assert response.status_code == 200
        assert response.json()["needs_onboarding"] is True

    async def test_google_login_rejects_bad_token(self, client, monkeypatch):
        def verify(token, request, audience):
            raise ValueError("Token expired")

        monkeypatch.setattr(auth_routes.google_id_token, "verify_oauth2_token", verify)
        response = await client.post("/auth/google", json={"id_token": "stale"})
        assert response.status_code == 401

    async def test_requires_token(self, client):
        assert (await client.get("/home/")).status_code == 401
        response = await client.get("/home/", headers={"Authorization": "Bearer not-a-jwt"})
        assert response.status_code == 401

    async def test_logout(self, client):
        response = await client.post("/auth/logout")
        assert response.status_code == 204


class TestHome:
    async def test_dashboard(self, client, backend, headers, student):
        mine = backend.add_subject("Programming in C", "CSE", 1, 1)
        backend.add_subject("Engineering Mathematics I", "MATH", 1, 1, is_common=True)
        backend.add_subject("Circuit Theory", "ECE", 1, 1)
        backend.put("bookmarks", user_id=student["id"], subject_id=mine["id"])

        response = await client.get("/home/", headers=headers)
        assert response.status_code == 200
        body = response.json()
        assert body["profile"]["full_name"] == "Asha Rao"
        assert body["is_admin"] is False
        assert body["emergency_mode"] is False
        assert [(s["name"], s["is_bookmarked"]) for s in body["subjects"]] == [
            ("Engineering Mathematics I", False),
            ("Programming in C", True),
        ]

    async def test_dashboard_before_onboarding(self, client, backend, token_for):
        ghost = token_for(backend.add_student()["id"])
        body = (await client.get("/home/", headers=ghost)).json()
        assert body["profile"]["branch"] is None
        assert body["subjects"] == []


class TestSubjects:
    async def test_subject_endpoints(self, client, backend, headers):
        subject = backend.add_subject("Programming in C")
        backend.add_note(subject["id"], title="Pointers")

        assert [s["name"] for s in (await client.get("/subjects/", headers=headers)).json()] == ["Programming in C"]
        assert (await client.get(f"/subjects/{subject['id']}", headers=headers)).json()["name"] == "Programming in C"
        notes = (await client.get(f"/subjects/{subject['id']}/notes", headers=headers)).json()
        assert [n["title"] for n in notes] == ["Pointers"]

    async def test_unknown_subject(self, client, headers, student):
        response = await client.get(f"/subjects/{student['id']}", headers=headers)
        assert response.status_code == 404


class TestNotes:
    @pytest.fixture
    def note_payload(self):
        return {
            "title": "Unit 1 summary",
            "description": "Basics of C",
            "subject": "Programming in C",
            "branch": "CSE",
            "academic_year": 1,
            "semester": 1,
            "unit_number": 1,
        }

    async def test_upload_flow(self, client, backend, storage, headers, student, note_payload, pdf_bytes):
        response = await client.post("/notes/upload-url", json={"filename": "unit1.pdf"}, headers=headers)
        assert response.status_code == 200
        file_path = response.json()["file_path"]
        assert file_path.startswith(f"notes/{student['id']}/")
        assert file_path.endswith(".pdf")

        storage.objects[file_path] = pdf_bytes
        response = await client.post("/notes/", json={**note_payload, "file_path": file_path}, headers=headers)
        assert response.status_code == 201
        note = response.json()
        assert note["approval_status"] == "pending"
        assert note["file_url"] == f"https://cdn.test/{file_path}"
        assert backend.tables["subjects"][0]["name"] == "Programming in C"

        listed = (await client.get("/notes/", params={"q": "unit 1"}, headers=headers)).json()
        assert [n["id"] for n in listed] == [note["id"]]
        assert listed[0]["subject"]["branch"] == "CSE"

    async def test_rejects_non_pdf(self, client, backend, storage, headers, student, note_payload):
        file_path = f"notes/{student['id']}/abc_1.pdf"
        storage.objects[file_path] = b"definitely not a pdf"

        response = await client.post("/notes/", json={**note_payload, "file_path": file_path}, headers=headers)
        assert response.status_code == 400
        assert storage.deleted == [file_path]
        assert backend.tables["notes"] == []

    async def test_rejects_foreign_file(self, client, headers, note_payload):
        response = await client.post(
            "/notes/", json={**note_payload, "file_path": "notes/someone-else/x.pdf"}, headers=headers
        )
        assert response.status_code == 403

    async def test_requires_uploaded_file(self, client, headers, student, note_payload):
        response = await client.post(
            "/notes/", json={**note_payload, "file_path": f"notes/{student['id']}/missing.pdf"}, headers=headers
        )
        assert response.status_code == 400

    async def test_view_download_and_history(self, client, backend, headers):
        subject = backend.add_subject("Programming in C")
        note = backend.add_note(subject["id"], title="Pointers", file_url="https://cdn.test/notes/u/ptr.pdf")

        response = await client.post(f"/notes/{note['id']}/view", headers=headers)
        assert response.json() == {"success": True, "message": "View recorded"}

        response = await client.post(f"/notes/{note['id']}/download", headers=headers)
        assert response.json() == {"file_url": "https://cdn.test/notes/u/ptr.pdf", "filename": "ptr.pdf"}
        assert (backend.tables["notes"][0]["views"], backend.tables["notes"][0]["downloads"]) == (1, 1)

        history = (await client.get("/history/", headers=headers)).json()
        assert [h["title"] for h in history] == ["Pointers"]
        assert history[0]["subject"]["name"] == "Programming in C"

    async def test_approval_is_admin_only(self, client, backend, headers, student):
        subject = backend.add_subject("Programming in C")
        note = backend.add_note(subject["id"])
        url = f"/notes/{note['id']}/approval"

        response = await client.patch(url, json={"approval_status": "approved"}, headers=headers)
        assert response.status_code == 403

        backend.tables["students"][0]["is_admin"] = True
        response = await client.patch(url, json={"approval_status": "approved"}, headers=headers)
        assert response.status_code == 200
        assert response.json()["approval_status"] == "approved"

    async def test_download_offline_is_unavailable_not_missing(self, client, backend, monitor, headers):
        note = backend.add_note(backend.add_subject("Programming in C")["id"])
        monitor.report_offline()
        response = await client.post(f"/notes/{note['id']}/download", headers=headers)
        assert response.status_code == 503
        assert response.json()["detail"] == "Downloads are unavailable in offline mode"
        assert backend.tables["notes"][0]["downloads"] == 0

    async def test_unknown_note(self, client, headers, student):
        assert (await client.get(f"/notes/{student['id']}", headers=headers)).status_code == 404


class TestBookmarks:
    async def test_toggle_and_status(self, client, backend, headers):
        subject = backend.add_subject("Programming in C")
        url = f"/bookmarks/{subject['id']}"

        assert (await client.get(url, headers=headers)).json()["bookmarked"] is False

        payload = {"item_id": str(subject["id"]), "currently_bookmarked": False}
        response = await client.post("/bookmarks/toggle", json=payload, headers=headers)
        assert response.json() == {"success": True, "action": "added", "message": "Bookmark added successfully"}
        # Same observed state again: settles instead of flipping back
        response = await client.post("/bookmarks/toggle", json=payload, headers=headers)
        assert response.json()["action"] == "added"
        assert (await client.get(url, headers=headers)).json()["bookmarked"] is True

        listed = (await client.get("/bookmarks/", headers=headers)).json()
        assert [b["item_id"] for b in listed] == [str(subject["id"])]
        subjects = (await client.get("/bookmarks/subjects", headers=headers)).json()
        assert [s["name"] for s in subjects] == ["Programming in C"]

        payload["currently_bookmarked"] = True
        response = await client.post("/bookmarks/toggle", json=payload, headers=headers)
        assert response.json()["action"] == "removed"
        assert (await client.get(url, headers=headers)).json()["bookmarked"] is False


class TestStudents:
    async def test_admin_listing(self, client, backend, headers):
        assert (await client.get("/students/", headers=headers)).status_code == 403
        backend.tables["students"][0]["is_admin"] = True
        response = await client.get("/students/", headers=headers)
        assert response.status_code == 200
        assert [s["full_name"] for s in response.json()] == ["Asha Rao"]

    async def test_my_profile(self, client, headers):
        response = await client.get("/students/me", headers=headers)
        assert response.json()["branch"] == "CSE"

    async def test_reset_profile_returns_to_onboarding(self, client):
        body = (
            await client.post("/auth/signup", json={"email": "nina@example.com", "password": "s3cret-pass"})
        ).json()
        headers = {"Authorization": f"Bearer {body['access_token']}"}
        onboarding = {"academic_year": 1, "semester": 1, "branch": "CSE"}
        await client.put("/students/me", json=onboarding, headers=headers)

        response = await client.delete("/students/me", headers=headers)
        assert response.status_code == 200
        assert response.json() == {"success": True, "message": "Profile reset successfully"}
        assert (await client.get("/auth/me", headers=headers)).json()["needs_onboarding"] is True

        response = await client.put("/students/me", json=onboarding, headers=headers)
        assert response.status_code == 200
        assert response.json()["email"] == "nina@example.com"

        response = await client.post("/auth/login", json={"email": "nina@example.com", "password": "s3cret-pass"})
        assert response.status_code == 200
        assert response.json()["needs_onboarding"] is False

    async def test_reset_is_refused_offline(self, client, monitor, headers, backend):
        monitor.report_offline()
        response = await client.delete("/students/me", headers=headers)
        assert response.status_code == 503
        assert len(backend.tables["students"]) == 1

    async def test_profile_validation(self, client, headers):
        response = await client.put(
            "/students/me", json={"academic_year": 9, "semester": 1, "branch": "CSE"}, headers=headers
        )
        assert response.status_code == 422


class TestConnectivity:
    async def test_failed_checks_enter_emergency_mode(self, client, backend, headers, student):
        backend.fail(TransportError("connection refused"))
        for _ in range(2):
            status = (await client.post("/connectivity/check")).json()
            assert status["emergency_mode"] is False
        status = (await client.post("/connectivity/check")).json()
        assert status["emergency_mode"] is True
        assert status["consecutive_failures"] == 3

        home = (await client.get("/home/", headers=headers)).json()
        assert home["emergency_mode"] is True
        assert home["profile"]["full_name"] == "Offline User"
        assert home["profile"]["id"] == str(student["id"])
        assert [s["name"] for s in home["subjects"]] == ["Computer Science 101", "Data Structures"]
        assert (await client.get("/health")).json()["mode"] == "emergency"

    async def test_student_cannot_switch_everyone_offline(self, client, backend, headers, token_for):
        response = await client.post("/connectivity/offline", headers=headers)
        assert response.status_code == 403

        other = backend.add_student(full_name="Kiran Das", academic_year=2, semester=1, branch="ECE")
        backend.add_subject("Signals and Systems", "ECE", 2, 1)
        home = (await client.get("/home/", headers=token_for(other["id"]))).json()
        assert home["emergency_mode"] is False
        assert home["profile"]["full_name"] == "Kiran Das"
        assert [s["name"] for s in home["subjects"]] == ["Signals and Systems"]

    async def test_reconnect_requires_sign_in(self, client):
        assert (await client.post("/connectivity/reconnect")).status_code == 401

    async def test_reported_offline_until_reconnect(self, client, backend, headers):
        backend.tables["students"][0]["is_admin"] = True
        status = (await client.post("/connectivity/offline", headers=headers)).json()
        assert status["emergency_mode"] is True

        # A healthy check does not end emergency mode
        await client.post("/connectivity/check")
        assert (await client.get("/connectivity/")).json()["emergency_mode"] is True

        response = await client.put(
            "/students/me", json={"academic_year": 2, "semester": 1, "branch": "CSE"}, headers=headers
        )
        assert response.status_code == 503

        backend.fail(TransportError("still down"))
        result = (await client.post("/connectivity/reconnect", headers=headers)).json()
        assert result["reconnected"] is False
        assert result["status"]["reconnect_attempts"] == 1

        backend.recover()
        result = (await client.post("/connectivity/reconnect", headers=headers)).json()
        assert result["reconnected"] is True
        assert result["status"]["emergency_mode"] is False
