"""
Unit tests for input validation.
"""
import pytest

from core.exceptions import ValidationError
from core.validation import (
    InputValidator,
    validate_comment_text,
    validate_video_description,
    validate_video_title,
)


@pytest.mark.unit
class TestInputValidator:
    def test_sanitize_string_trims_and_keeps_text_verbatim(self):
        assert InputValidator.sanitize_string("  it's 5 < 6 & fun  ") == "it's 5 < 6 & fun"

    def test_sanitize_string_rejects_empty_long_and_scripts(self):
        with pytest.raises(ValidationError):
            InputValidator.sanitize_string("   ")
        with pytest.raises(ValidationError):
            InputValidator.sanitize_string("x" * 11, max_length=10)
        with pytest.raises(ValidationError):
            InputValidator.sanitize_string("<script>alert(1)</script>")
        with pytest.raises(ValidationError):
            InputValidator.sanitize_string('<img src=x onerror="alert(1)">')
        with pytest.raises(ValidationError):
            InputValidator.sanitize_string(42)

    def test_sql_like_text_is_allowed(self):
        assert validate_comment_text("select your favourite; drop by later") == (
            "select your favourite; drop by later"
        )

    def test_optional_string(self):
        assert InputValidator.optional_string(None, "bio") is None
        assert InputValidator.optional_string("   ", "bio") is None
        assert InputValidator.optional_string(" hi ", "bio") == "hi"

    def test_username(self):
        assert InputValidator.validate_username("good_name.1") == "good_name.1"
        for bad in ("ab", "has space", "x" * 31, "semi;colon"):
            with pytest.raises(ValidationError):
                InputValidator.validate_username(bad)

    def test_email_is_lowercased(self):
        assert InputValidator.validate_email("Bob@Example.COM") == "bob@example.com"
        with pytest.raises(ValidationError):
            InputValidator.validate_email("not-an-email")

    def test_password_bounds(self):
        assert InputValidator.validate_password("secret1") == "secret1"
        with pytest.raises(ValidationError):
            InputValidator.validate_password("short")
        with pytest.raises(ValidationError):
            InputValidator.validate_password("é" * 40)

    def test_session_id(self):
        assert InputValidator.validate_session_id("abcDEF12-_") == "abcDEF12-_"
        for bad in ("short", "has space here", "x" * 65, "semi;colon;id"):
            with pytest.raises(ValidationError):
                InputValidator.validate_session_id(bad)

    def test_url(self):
        assert InputValidator.validate_url("https://example.com/a") == "https://example.com/a"
        assert InputValidator.validate_url("/media/a.png") == "/media/a.png"
        for bad in ("ftp://example.com/a", "https://", "javascript:alert(1)"):
            with pytest.raises(ValidationError):
                InputValidator.validate_url(bad)


@pytest.mark.unit
def test_content_helpers():
    assert validate_video_title(" Title ") == "Title"
    assert validate_video_description(None) is None
    with pytest.raises(ValidationError) as exc_info:
        validate_comment_text("x" * 501)
    assert exc_info.value.details["field"] == "content"
    with pytest.raises(ValidationError):
        validate_video_title("t" * 101)
