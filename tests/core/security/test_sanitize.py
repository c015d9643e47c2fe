"""Tests for credential redaction."""

from core.security.sanitize import (
    REDACTED,
    sanitize_body,
    sanitize_error_message,
    sanitize_headers,
    sanitize_url,
)


class TestSanitizeUrl:

    def test_redacts_sensitive_query_params(self):
        url = sanitize_url("https://p.example/cb?code=abc&state=blob&hd=example.com")
        assert url == f"https://p.example/cb?code={REDACTED}&state={REDACTED}&hd=example.com"

    def test_redacts_fragment_params(self):
        url = sanitize_url("https://c.example/cb#access_token=abc&expires_in=60")
        assert "abc" not in url
        assert "expires_in=60" in url

    def test_unchanged_without_query(self):
        assert sanitize_url("https://api.example/photos") == "https://api.example/photos"

    def test_empty(self):
        assert sanitize_url("") == ""


class TestSanitizeHeaders:

    def test_redacts_credentials(self):
        headers = sanitize_headers(
            {"Authorization": "Bearer abc", "Cookie": "s=1", "Accept": "application/json"}
        )
        assert headers == {
            "Authorization": REDACTED,
            "Cookie": REDACTED,
            "Accept": "application/json",
        }


class TestSanitizeBody:

    def test_form_body(self):
        body = sanitize_body(
            "grant_type=refresh_token&refresh_token=R1&client_secret=s",
            "application/x-www-form-urlencoded",
        )
        assert body == (
            f"grant_type=refresh_token&refresh_token={REDACTED}&client_secret={REDACTED}"
        )

    def test_json_body(self):
        body = sanitize_body('{"access_token": "A1", "token_type": "Bearer"}', "application/json")
        assert body == f'{{"access_token": "{REDACTED}", "token_type": "Bearer"}}'

    def test_untyped_form_body(self):
        assert "R1" not in sanitize_body("refresh_token=R1")


class TestSanitizeErrorMessage:

    def test_bearer_and_basic(self):
        msg = sanitize_error_message("sent Bearer abc.def and Basic Y2lkOnM=")
        assert "abc.def" not in msg
        assert "Y2lkOnM" not in msg

    def test_urls_in_message(self):
        msg = sanitize_error_message("GET https://api.example/p?access_token=abc failed")
        assert msg == f"GET https://api.example/p?access_token={REDACTED} failed"

    def test_truncates(self):
        msg = sanitize_error_message("x" * 600, max_length=100)
        assert len(msg) == 100
        assert msg.endswith("...")
