import os
from io import BytesIO

import pytest

import resume_pipeline
from cv_parser import ExtractionResult
from database import db
from models import Candidate, Match

pytestmark = pytest.mark.integration


def upload(client, job, data=b"", filename="resume.txt", content_type="text/plain", **form):
    fields = {"jobId": str(job.id), "organizationId": str(job.organization_id)}
    fields.update(form)
    if data is not None:
        fields["file"] = (BytesIO(data), filename, content_type)
    return client.post("/api/upload", data=fields, content_type="multipart/form-data")


class TestCandidateCrud:
    def test_create_uses_parsed_name_and_given_email(self, client, job, resume_text):
        response = client.post("/api/candidates", json={
            "organizationId": job.organization_id,
            "jobId": job.id,
            "name": "Placeholder",
            "email": "given@example.com",
            "resumeText": resume_text
        })

        assert response.status_code == 201
        data = response.get_json()["data"]
        assert data["name"] == "Jane Doe"
        assert data["email"] == "given@example.com"
        assert data["processingStatus"] == "completed"
        assert "Python" in data["aiData"]["skills"]

    def test_create_with_short_text_keeps_given_name(self, client, job):
        response = client.post("/api/candidates", json={
            "organizationId": job.organization_id, "jobId": job.id, "name": "Sam Lee", "resumeText": "short"
        })

        data = response.get_json()["data"]
        assert data["name"] == "Sam Lee"
        assert data["aiData"] == {}

    def test_create_requires_fields(self, client, job):
        response = client.post("/api/candidates", json={"jobId": job.id})

        assert response.status_code == 400
        assert response.get_json()["error"] == "organizationId, jobId, and name are required"

    def test_list_excludes_resume_text(self, client, make_candidate, job):
        make_candidate(resume_text="secret resume body")

        body = client.get(f"/api/candidates?jobId={job.id}").get_json()

        assert body["count"] == 1
        assert "resumeText" not in body["data"][0]
        assert body["data"][0]["job"] == {"id": job.id, "title": "Backend Engineer"}

    def test_list_rejects_non_numeric_filter(self, client):
        assert client.get("/api/candidates?jobId=abc").status_code == 400

    def test_get_includes_resume_text(self, client, make_candidate):
        candidate = make_candidate(resume_text="full resume body")

        data = client.get(f"/api/candidates/{candidate.id}").get_json()["data"]

        assert data["resumeText"] == "full resume body"

    def test_update(self, client, make_candidate):
        candidate = make_candidate()

        response = client.put(f"/api/candidates/{candidate.id}", json={
            "name": "Janet Doe", "email": "janet@example.com", "processingStatus": "failed"
        })

        data = response.get_json()["data"]
        assert data["name"] == "Janet Doe"
        assert data["email"] == "janet@example.com"
        assert data["processingStatus"] == "failed"

    def test_update_rejects_bad_status(self, client, make_candidate):
        candidate = make_candidate()

        response = client.put(f"/api/candidates/{candidate.id}", json={"processingStatus": "done"})

        assert response.status_code == 400

    def test_delete_cascades_to_matches(self, client, database, job, make_candidate):
        candidate = make_candidate()
        database.session.add(Match(organization_id=job.organization_id, job_id=job.id,
                                   candidate_id=candidate.id, score=60))
        database.session.commit()

        assert client.delete(f"/api/candidates/{candidate.id}").status_code == 200
        assert Match.query.count() == 0
        assert client.get(f"/api/candidates/{candidate.id}").status_code == 404


class TestUpload:
    def test_text_resume_creates_candidate(self, client, app, job, resume_text):
        response = upload(client, job, resume_text.encode("utf-8"), "jane doe.txt")

        assert response.status_code == 200
        body = response.get_json()
        data = body["data"]
        assert data["uploadId"].startswith("upload_")
        assert data["originalName"] == "jane doe.txt"
        assert data["fileName"].endswith("_jane_doe.txt")
        assert data["fullTextLength"] == len(resume_text.strip())
        assert data["candidate"]["name"] == "Jane Doe"
        assert data["candidate"]["email"] == "jane.doe@example.com"
        assert data["extractionMetadata"]["extractionSuccess"] is True
        assert data["extractionMetadata"]["aiProcessingSuccess"] is True
        assert data["extractionMetadata"]["quality"]["isValid"] is True

        stored = os.path.join(app.config["UPLOAD_FOLDER"], data["fileName"])
        assert os.path.isfile(stored)
        assert db.session.get(Candidate, data["candidateId"]).file_path == stored

    def test_short_text_skips_parsing(self, client, job):
        response = upload(client, job, b"tiny")

        data = response.get_json()["data"]
        assert data["candidate"]["name"].startswith("Candidate_")
        assert data["candidate"]["aiData"]["skills"] == ["General"]
        assert data["extractionMetadata"]["aiProcessingSuccess"] is False

    def test_legacy_doc_is_stored_with_placeholder(self, client, job):
        response = upload(client, job, b"\xd0\xcf\x11\xe0 binary", "old.doc", "application/msword")

        data = response.get_json()["data"]
        assert data["extractionMetadata"]["extractionSuccess"] is False
        candidate = db.session.get(Candidate, data["candidateId"])
        assert "Note: Text extraction failed" in candidate.resume_text

    def test_unreadable_pdf_keeps_placeholder(self, client, job):
        response = upload(client, job, b"not really a pdf", "john_smith_cv.pdf", "application/pdf")

        data = response.get_json()["data"]
        assert data["extractionMetadata"]["extractionSuccess"] is False
        assert data["extractedText"].startswith("PDF Document: john_smith_cv.pdf")

    def test_missing_file(self, client, job):
        response = upload(client, job, data=None)

        assert response.status_code == 400
        assert response.get_json()["error"] == "No file provided"
        assert response.get_json()["uploadId"].startswith("upload_")

    def test_missing_ids(self, client, job, resume_text):
        response = upload(client, job, resume_text.encode(), jobId="")

        assert response.status_code == 400
        assert response.get_json()["error"] == "jobId and organizationId are required"

    def test_unknown_job(self, client, job, resume_text):
        response = upload(client, job, resume_text.encode(), jobId="999")

        assert response.status_code == 404

    def test_wrong_type(self, client, job):
        response = upload(client, job, b"\x89PNG", "photo.png", "image/png")

        assert response.status_code == 400
        assert "Only TXT, PDF, DOC, and DOCX" in response.get_json()["error"]
        assert Candidate.query.count() == 0

    def test_too_large(self, client, job):
        response = upload(client, job, b"a" * (5 * 1024 * 1024 + 1))

        assert response.status_code == 400
        assert "File size must be less than 5MB" in response.get_json()["error"]


class TestFileAndTextOperations:
    def test_download_returns_original_name(self, client, job, resume_text):
        candidate_id = upload(client, job, resume_text.encode(), "jane.txt").get_json()["data"]["candidateId"]

        response = client.get(f"/api/candidates/{candidate_id}/download")

        assert response.status_code == 200
        assert response.mimetype == "text/plain"
        assert "jane.txt" in response.headers["Content-Disposition"]
        assert response.data == resume_text.encode()

    def test_download_without_file(self, client, make_candidate):
        candidate = make_candidate()

        response = client.get(f"/api/candidates/{candidate.id}/download")

        assert response.status_code == 404
        assert response.get_json()["error"] == "No CV file found for this candidate"

    def test_download_with_missing_file_on_disk(self, client, make_candidate, tmp_path):
        candidate = make_candidate(file_path=str(tmp_path / "gone.pdf"), original_file_name="gone.pdf")

        assert client.get(f"/api/candidates/{candidate.id}/download").status_code == 404

    def test_update_text_reparses(self, client, make_candidate, resume_text):
        candidate = make_candidate(name="Candidate_1700000000000", ai_data={})

        response = client.post(f"/api/candidates/{candidate.id}/update-text", json={"resumeText": resume_text})

        assert response.status_code == 200
        data = response.get_json()["data"]
        assert data["name"] == "Jane Doe"
        assert data["email"] == "jane.doe@example.com"
        assert data["resumeText"] == resume_text

    def test_update_text_requires_fifty_characters(self, client, make_candidate):
        candidate = make_candidate()

        response = client.post(f"/api/candidates/{candidate.id}/update-text", json={"resumeText": "too short"})

        assert response.status_code == 400

    def test_reprocess_generic_names(self, client, make_candidate, resume_text):
        placeholder = make_candidate(
            name="Unknown Candidate",
            resume_text="PDF Document: maria_garcia_resume.pdf\nFile Size: 2048 bytes\nNote: PDF text extraction failed.",
            original_file_name="maria_garcia_resume.pdf"
        )
        parsed = make_candidate(name="Candidate_1700000000000", resume_text=resume_text)
        untouched = make_candidate(name="Real Person", resume_text=resume_text)

        response = client.post("/api/candidates/reprocess")

        assert response.get_json()["data"] == {"processed": 2, "updated": 2}
        assert db.session.get(Candidate, placeholder.id).name == "Maria Garcia"
        assert db.session.get(Candidate, parsed.id).name == "Jane Doe"
        assert db.session.get(Candidate, untouched.id).name == "Real Person"

    @pytest.mark.parametrize("path", ["/api/candidates/reextract", "/api/candidates/reextract-pdfs"])
    def test_reextract_counts_unreadable_files(self, client, make_candidate, tmp_path, path):
        make_candidate(
            name="Unknown Candidate",
            resume_text="PDF Document: gone.pdf\nNote: PDF text extraction failed.",
            original_file_name="gone.pdf",
            file_path=str(tmp_path / "gone.pdf")
        )

        body = client.post(path).get_json()

        assert body["success"] is True
        assert body["data"] == {"processed": 1, "updated": 0, "errors": 1}

    def test_reextract_updates_candidate_when_pdf_now_has_text(self, client, monkeypatch, make_candidate,
                                                               tmp_path, resume_text):
        stored = tmp_path / "jane.pdf"
        stored.write_bytes(b"%PDF-1.4 stand-in")
        candidate = make_candidate(
            name="Unknown Candidate",
            resume_text="PDF Document: jane.pdf\nNote: PDF text extraction failed.",
            original_file_name="jane.pdf",
            file_path=str(stored)
        )
        monkeypatch.setattr(resume_pipeline, "extract_text_from_pdf",
                            lambda data, file_name: ExtractionResult(success=True, text=resume_text))

        body = client.post("/api/candidates/reextract").get_json()

        assert body["data"] == {"processed": 1, "updated": 1, "errors": 0}
        refreshed = db.session.get(Candidate, candidate.id)
        assert refreshed.name == "Jane Doe"
        assert refreshed.resume_text == resume_text


class TestMalformedBodies:
    def test_update_text_rejects_array_body(self, client, make_candidate):
        candidate = make_candidate()

        response = client.post(f"/api/candidates/{candidate.id}/update-text", json=["x"])

        assert response.status_code == 400
        assert response.get_json() == {"success": False, "error": "Request body must be a JSON object"}

    def test_update_text_rejects_non_string_text(self, client, make_candidate):
        candidate = make_candidate()

        response = client.post(f"/api/candidates/{candidate.id}/update-text", json={"resumeText": 123})

        assert response.status_code == 400

    def test_create_rejects_non_string_name(self, client, job):
        response = client.post("/api/candidates", json={
            "organizationId": job.organization_id, "jobId": job.id, "name": {"first": "Sam"}
        })

        assert response.status_code == 400
        assert response.get_json()["error"] == "name must be a string"

    def test_update_rejects_non_string_email(self, client, make_candidate):
        candidate = make_candidate()

        response = client.put(f"/api/candidates/{candidate.id}", json={"email": 42})

        assert response.status_code == 400
        assert response.get_json()["error"] == "email must be a string"

    def test_upload_above_request_limit_is_json_413(self, client, app, monkeypatch, job):
        monkeypatch.setitem(app.config, "MAX_CONTENT_LENGTH", 1024)

        response = upload(client, job, b"a" * 4096)

        assert response.status_code == 413
        assert response.get_json() == {"success": False, "error": "Uploaded file is too large"}


class TestPdfExtractionCheck:
    def test_no_pdfs_uploaded(self, client, app, monkeypatch, tmp_path):
        monkeypatch.setitem(app.config, "UPLOAD_FOLDER", str(tmp_path))
        (tmp_path / "1700000000000_notes.txt").write_text("not a pdf")

        response = client.get("/api/test-pdf")

        assert response.status_code == 404
        body = response.get_json()
        assert body["error"] == "No PDF files available for testing"
        assert body["availableFiles"] == []

    def test_defaults_to_newest_pdf(self, client, app, monkeypatch, tmp_path):
        monkeypatch.setitem(app.config, "UPLOAD_FOLDER", str(tmp_path))
        (tmp_path / "1700000000000_old.pdf").write_bytes(b"not really a pdf")
        (tmp_path / "1800000000000_new.pdf").write_bytes(b"not really a pdf")

        body = client.get("/api/test-pdf").get_json()

        assert body["success"] is True
        assert body["testId"].startswith("test_")
        data = body["data"]
        assert data["fileName"] == "1800000000000_new.pdf"
        assert data["availableFiles"] == ["1700000000000_old.pdf", "1800000000000_new.pdf"]
        assert [r["config"] for r in data["testResults"]] == ["Standard", "Lenient", "Strict"]
        assert data["bestResult"]["config"] == "Standard"
        assert data["fullText"] == "No text available"
        assert data["recommendations"][0].startswith("All extraction methods failed")
        assert body["message"] == "PDF extraction test completed with 0/3 successful configurations"

    def test_requested_file_is_used(self, client, app, monkeypatch, tmp_path):
        monkeypatch.setitem(app.config, "UPLOAD_FOLDER", str(tmp_path))
        (tmp_path / "1700000000000_old.pdf").write_bytes(b"not really a pdf")
        (tmp_path / "1800000000000_new.pdf").write_bytes(b"not really a pdf")

        body = client.get("/api/test-pdf?file=1700000000000_old.pdf").get_json()

        assert body["data"]["fileName"] == "1700000000000_old.pdf"
