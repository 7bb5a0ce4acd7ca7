import re

import pytest

from utils import (
    content_type_for, is_cv_file, is_placeholder_text, parse_int, round_half_up, sanitize_filename,
    save_uploaded_file, slugify, truncate_text, validate_candidate_data, validate_email,
    validate_extraction_quality, validate_job_data, validate_organization_data
)

pytestmark = pytest.mark.unit


def test_slugify_lowercases_and_drops_punctuation():
    assert slugify("TechCorp Inc.") == "techcorp-inc"
    assert slugify("  Acme   Labs ") == "acme-labs"


def test_sanitize_filename_replaces_unsafe_characters():
    assert sanitize_filename("Jane Doe (CV).pdf") == "Jane_Doe__CV_.pdf"
    assert sanitize_filename("../etc/passwd") == "passwd"


def test_save_uploaded_file_prefixes_timestamp(tmp_path):
    folder = tmp_path / "uploads"

    stored = save_uploaded_file(b"hello", "my resume.txt", str(folder))

    assert re.match(r"^\d{13}_my_resume\.txt$", stored)
    assert (folder / stored).read_bytes() == b"hello"


@pytest.mark.parametrize("filename,content_type,expected", [
    ("cv.pdf", None, True),
    ("cv.DOCX", None, True),
    ("cv.bin", "text/plain", True),
    ("cv.bin", "application/pdf; charset=binary", True),
    ("photo.png", "image/png", False),
])
def test_is_cv_file(filename, content_type, expected):
    assert is_cv_file(filename, content_type) is expected


def test_content_type_for_known_and_unknown_extensions():
    assert content_type_for("resume.pdf") == "application/pdf"
    assert content_type_for("resume.txt") == "text/plain"
    assert content_type_for("resume.xyz") == "application/octet-stream"


def test_is_placeholder_text():
    assert is_placeholder_text("PDF Document: jane.pdf\nFile Size: 10 bytes")
    assert is_placeholder_text("File: a.doc\nNote: Text extraction failed. Error: boom")
    assert not is_placeholder_text("Jane Doe, Python developer")
    assert not is_placeholder_text(None)


def test_extraction_quality_of_clean_text(resume_text):
    quality = validate_extraction_quality(resume_text, "jane.txt")

    assert quality == {"isValid": True, "issues": [], "score": 100}


def test_extraction_quality_penalises_short_placeholder_text():
    quality = validate_extraction_quality("PDF Document: x.pdf", "x.pdf")

    assert not quality["isValid"]
    assert quality["score"] == 30
    assert len(quality["issues"]) == 2


def test_extraction_quality_flags_artifacts(resume_text):
    quality = validate_extraction_quality(resume_text + "=" * 20, "jane.txt")

    assert quality["score"] == 90
    assert "artifacts" in quality["issues"][0]


def test_extraction_quality_of_empty_and_padded_text():
    empty = validate_extraction_quality("", "empty.txt")
    assert empty["score"] == 60
    assert empty["issues"] == ["Text too short (0 chars, minimum 50)"]
    assert validate_extraction_quality("      PDF Document:", "x.pdf")["score"] == 20


def test_truncate_text():
    assert truncate_text("short") == "short"
    assert truncate_text("a" * 10, 4) == "aaaa..."


def test_round_half_up():
    assert round_half_up(50.5) == 51
    assert round_half_up(69.5) == 70
    assert round_half_up(69.49) == 69
    assert round_half_up(0) == 0


def test_parse_int():
    assert parse_int("5") == 5
    assert parse_int("abc", 3) == 3
    assert parse_int(None, 1) == 1
    assert parse_int("") is None


def test_validate_email():
    assert validate_email("jane@example.com")
    assert not validate_email("jane@")
    assert not validate_email("")


def test_validate_organization_data():
    assert validate_organization_data({}) == ["Organization name is required"]
    assert validate_organization_data({"name": "Acme"}) == []
    assert validate_organization_data({"name": 123}) == ["name must be a string"]


def test_validate_job_data():
    assert validate_job_data({"title": "x"}) == ["organizationId, title, and description are required"]
    assert validate_job_data({"organizationId": 1, "title": "x", "description": "y", "status": "paused"}) == [
        "Invalid status: paused"
    ]
    assert validate_job_data({"organizationId": 1, "title": "x", "description": "y",
                              "requirements": {"skills": "Python"}}) == ["requirements.skills must be a list"]
    assert validate_job_data({"organizationId": 1, "title": ["x"], "description": "y", "status": 1}) == [
        "title must be a string", "status must be a string"
    ]


def test_validate_candidate_data():
    assert validate_candidate_data({"organizationId": 1, "jobId": 1}) == [
        "organizationId, jobId, and name are required"
    ]
    assert validate_candidate_data({"organizationId": 1, "jobId": 1, "name": "x", "email": "bad"}) == [
        "Invalid email format"
    ]
    assert validate_candidate_data({"organizationId": 1, "jobId": 1, "name": "x", "email": 42}) == [
        "email must be a string"
    ]
