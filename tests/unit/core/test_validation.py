"""Tests for request and file upload validation."""

import pytest

from gsos.core.validation import (
    FILE_VALIDATION_RULES,
    ValidationResult,
    validate_file_upload,
    validate_request,
)

BROWSER = "Mozilla/5.0 (X11; Linux x86_64)"


class TestValidateRequest:

    def test_valid(self):
        assert validate_request(BROWSER, "/api/students", "page=2&q=description") == ValidationResult(True)

    @pytest.mark.parametrize("user_agent", [None, "", "curl/8"])
    def test_short_or_missing_user_agent(self, user_agent):
        assert validate_request(user_agent) == ValidationResult(False, "Invalid user agent")

    @pytest.mark.parametrize("text", [
        "q=<script>alert(1)</script>",
        "next=javascript:alert(1)",
        "x=VBScript:msgbox",
        '<img src=x onerror="steal()">',
        "<iframe src=//evil>",
        "<object data=x>",
        "<EMBED src=x>",
        "<body onload = go()>",
    ])
    def test_suspicious_content(self, text):
        assert validate_request(BROWSER, "/api/search", text) == ValidationResult(False, "Suspicious content detected")

    @pytest.mark.parametrize("text", ["description=homework", "topic=online safety", "javascript course"])
    def test_ordinary_words_pass(self, text):
        assert validate_request(BROWSER, text).valid


class TestValidateFileUpload:

    def test_valid_document(self):
        assert validate_file_upload("report.PDF", "application/pdf", 1024).valid

    def test_too_large(self):
        result = validate_file_upload("report.pdf", "application/pdf", 10 * 1024 * 1024 + 1)
        assert result == ValidationResult(False, "File size 10485761 exceeds maximum 10485760 bytes")

    def test_type_not_allowed(self):
        result = validate_file_upload("run.pdf", "application/x-msdownload", 10)
        assert result == ValidationResult(False, "File type application/x-msdownload is not allowed")

    def test_extension_not_allowed(self):
        result = validate_file_upload("invoice.exe", "application/pdf", 10)
        assert result == ValidationResult(False, "File extension .exe is not allowed")

    def test_missing_extension(self):
        assert not validate_file_upload("README", "application/pdf", 10).valid

    def test_rule_sets(self):
        images = FILE_VALIDATION_RULES["profile_images"]
        assert validate_file_upload("me.webp", "image/webp", 1024, images).valid
        assert not validate_file_upload("me.pdf", "application/pdf", 1024, images).valid
        assert not validate_file_upload("me.png", "image/png", 6 * 1024 * 1024, images).valid
