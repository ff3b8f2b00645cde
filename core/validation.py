"""
Input Validation and Sanitization Utilities.

Validation rules applied at the operation boundary before anything reaches the
storage layer. Every failure raises `core.exceptions.ValidationError`, which
the error middleware turns into a 400 response naming the offending field.

Key Components:
- `InputValidator`: Static validators for the strings the API accepts:
  usernames, emails, passwords, session IDs, URLs and free text.
- Content helpers: `validate_comment_text`, `validate_video_title` and
  `validate_video_description` for user-authored content.

Free text is trimmed and length-checked and rejected when it carries script
injection markers. It is stored as written (no HTML escaping); rendering is the
client's concern.
"""

import re
from typing import Any, List, Optional
from urllib.parse import urlparse

from core.logging_config import get_logger
from core.exceptions import ValidationError

logger = get_logger(__name__)


class InputValidator:
    """Input validation and sanitization"""

    EMAIL_PATTERN = re.compile(r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$")
    USERNAME_PATTERN = re.compile(r"^[a-zA-Z0-9_.-]{3,30}$")
    SESSION_ID_PATTERN = re.compile(r"^[a-zA-Z0-9_-]{8,64}$")

    XSS_PATTERNS = [
        re.compile(r"<script[^>]*>.*?</script>", re.IGNORECASE | re.DOTALL),
        re.compile(r"javascript:", re.IGNORECASE),
        re.compile(r"<[^>]+\son\w+\s*=", re.IGNORECASE),
        re.compile(r"<iframe[^>]*>", re.IGNORECASE),
    ]

    @staticmethod
    def sanitize_string(
        value: Any, field: str = "input", max_length: int = 1000, required: bool = True
    ) -> str:
        """Trim, length-check and screen a free-text value"""
        if not isinstance(value, str):
            raise ValidationError(field, value, "Must be a string")

        value = value.strip()

        if required and not value:
            raise ValidationError(field, value, "Must not be empty")

        if len(value) > max_length:
            raise ValidationError(
                field, value[:100], f"Must be no more than {max_length} characters"
            )

        for pattern in InputValidator.XSS_PATTERNS:
            if pattern.search(value):
                logger.warning(f"Potential XSS attempt detected in {field}: {value[:100]}")
                raise ValidationError(
                    field, value[:100], "Contains potentially dangerous content"
                )

        return value

    @staticmethod
    def optional_string(
        value: Optional[str], field: str, max_length: int = 1000
    ) -> Optional[str]:
        """Like sanitize_string, but None or blank becomes None"""
        if value is None:
            return None
        value = InputValidator.sanitize_string(
            value, field=field, max_length=max_length, required=False
        )
        return value or None

    @staticmethod
    def validate_email(email: str) -> str:
        email = InputValidator.sanitize_string(email, field="email", max_length=254)

        if not InputValidator.EMAIL_PATTERN.match(email):
            raise ValidationError("email", email, "Invalid email format")

        return email.lower()

    @staticmethod
    def validate_username(username: str) -> str:
        username = InputValidator.sanitize_string(username, field="username", max_length=30)

        if not InputValidator.USERNAME_PATTERN.match(username):
            raise ValidationError(
                "username",
                username,
                "Username must be 3-30 characters and contain only letters, numbers, dots, hyphens, and underscores",
            )

        return username

    @staticmethod
    def validate_password(password: str) -> str:
        if not isinstance(password, str):
            raise ValidationError("password", "***", "Must be a string")
        if len(password) < 6:
            raise ValidationError(
                "password", "***", "Password must be at least 6 characters long"
            )
        # bcrypt only uses the first 72 bytes
        if len(password.encode("utf-8")) > 72:
            raise ValidationError(
                "password", "***", "Password must be no more than 72 bytes long"
            )
        return password

    @staticmethod
    def validate_session_id(session_id: str) -> str:
        session_id = InputValidator.sanitize_string(
            session_id, field="session_id", max_length=64
        )

        if not InputValidator.SESSION_ID_PATTERN.match(session_id):
            raise ValidationError(
                "session_id",
                session_id,
                "Session ID must be 8-64 characters of letters, digits, hyphens and underscores",
            )

        return session_id

    @staticmethod
    def validate_url(
        url: str, field: str = "url", allowed_schemes: Optional[List[str]] = None
    ) -> str:
        """Validate an absolute http(s) URL or a site-relative path"""
        if allowed_schemes is None:
            allowed_schemes = ["http", "https"]

        url = InputValidator.sanitize_string(url, field=field, max_length=2048)

        if url.startswith("/"):
            return url

        parsed = urlparse(url)
        if parsed.scheme not in allowed_schemes:
            raise ValidationError(
                field, url, f"URL scheme must be one of: {', '.join(allowed_schemes)}"
            )
        if not parsed.netloc:
            raise ValidationError(field, url, "URL must include a valid domain")

        return url


def validate_comment_text(text: str) -> str:
    """Comment content is required and non-empty after trimming"""
    return InputValidator.sanitize_string(text, field="content", max_length=500)


def validate_video_title(title: str) -> str:
    return InputValidator.sanitize_string(title, field="title", max_length=100)


def validate_video_description(description: Optional[str]) -> Optional[str]:
    return InputValidator.optional_string(description, "description", max_length=2000)
