"""Tests for per-client domain allowlists."""

import pytest

from core.security.url_validation import get_host, is_uri_allowed


class TestGetHost:

    def test_lower_cases_host(self):
        assert get_host("https://API.Example.com:8443/photos") == "api.example.com"

    @pytest.mark.parametrize("uri", [None, "", "ftp://example.com/", "not a url", "https:///path"])
    def test_no_host(self, uri):
        assert get_host(uri) is None


class TestIsUriAllowed:

    def test_no_allowlist(self):
        assert is_uri_allowed("https://anything.org/", [])
        assert is_uri_allowed("http://anything.org/", None)

    def test_exact_domain(self):
        assert is_uri_allowed("https://example.com/token", ["example.com"])

    def test_subdomain(self):
        assert is_uri_allowed("https://api.example.com/photos", ["example.com"])

    def test_case_and_leading_dot(self):
        assert is_uri_allowed("https://API.EXAMPLE.COM/", [" .Example.com "])

    def test_other_domain(self):
        assert not is_uri_allowed("https://example.org/", ["example.com"])

    def test_suffix_is_not_subdomain(self):
        """Should not match a host that only ends with the domain text."""
        assert not is_uri_allowed("https://evilexample.com/", ["example.com"])

    def test_domain_in_query(self):
        assert not is_uri_allowed("https://evil.com/?example.com", ["example.com"])

    @pytest.mark.parametrize(
        "uri",
        [
            "http://169.254.169.254/latest/meta-data",
            "http://169.254.10.1/",
            "http://metadata.google.internal/",
            "http://0.0.0.0/",
        ],
    )
    def test_metadata_hosts_blocked(self, uri):
        assert not is_uri_allowed(uri, [])

    def test_non_http_scheme(self):
        assert not is_uri_allowed("file:///etc/passwd", [])
