"""Request and file upload validation.

Cheap checks applied before a request reaches a route: a plausible user
agent, no script-injection markers in the URL, and a bounded body size.
File uploads are checked against per-purpose size, MIME type and
extension rules.
"""

import re
from typing import NamedTuple, Optional, Pattern, Tuple

MIN_USER_AGENT_LENGTH = 10

# Markup and script-URL markers; bare words like "description" stay legal
SUSPICIOUS_PATTERNS: Tuple[Pattern[str], ...] = (
    re.compile(r"<\s*script", re.IGNORECASE),
    re.compile(r"javascript\s*:", re.IGNORECASE),
    re.compile(r"vbscript\s*:", re.IGNORECASE),
    re.compile(r"\bon(?:load|error)\s*=", re.IGNORECASE),
    re.compile(r"<\s*iframe", re.IGNORECASE),
    re.compile(r"<\s*object", re.IGNORECASE),
    re.compile(r"<\s*embed", re.IGNORECASE),
)


class ValidationResult(NamedTuple):
    valid: bool
    error: Optional[str] = None


VALID = ValidationResult(True)


class UploadRules(NamedTuple):
    """Limits for one kind of upload."""
    max_file_size: int
    allowed_types: Tuple[str, ...]
    allowed_extensions: Tuple[str, ...]


MB = 1024 * 1024

FILE_VALIDATION_RULES = {
    "student_documents": UploadRules(
        max_file_size=10 * MB,
        allowed_types=(
            "application/pdf",
            "image/jpeg",
            "image/png",
            "application/msword",
            "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
        ),
        allowed_extensions=("pdf", "jpg", "jpeg", "png", "doc", "docx"),
    ),
    "profile_images": UploadRules(
        max_file_size=5 * MB,
        allowed_types=("image/jpeg", "image/png", "image/webp"),
        allowed_extensions=("jpg", "jpeg", "png", "webp"),
    ),
    "reports": UploadRules(
        max_file_size=50 * MB,
        allowed_types=(
            "application/pdf",
            "application/vnd.ms-excel",
            "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        ),
        allowed_extensions=("pdf", "xls", "xlsx"),
    ),
}


def contains_suspicious_content(text: str) -> bool:
    return any(pattern.search(text) for pattern in SUSPICIOUS_PATTERNS)


def validate_request(user_agent: Optional[str], *texts: str) -> ValidationResult:
    """Check the user agent and scan each given text (URL, headers, body)."""
    if not user_agent or len(user_agent) < MIN_USER_AGENT_LENGTH:
        return ValidationResult(False, "Invalid user agent")

    for text in texts:
        if text and contains_suspicious_content(text):
            return ValidationResult(False, "Suspicious content detected")

    return VALID


def validate_file_upload(
    filename: str,
    content_type: str,
    size: int,
    rules: UploadRules = FILE_VALIDATION_RULES["student_documents"],
) -> ValidationResult:
    """Check an upload against size, MIME type and extension limits, in that order."""
    if size > rules.max_file_size:
        return ValidationResult(False, f"File size {size} exceeds maximum {rules.max_file_size} bytes")

    if content_type not in rules.allowed_types:
        return ValidationResult(False, f"File type {content_type} is not allowed")

    extension = filename.rsplit(".", 1)[-1].lower() if "." in filename else ""
    if extension not in rules.allowed_extensions:
        return ValidationResult(False, f"File extension .{extension} is not allowed")

    return VALID
