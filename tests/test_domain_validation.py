"""Unit tests for custom domain format validation."""
import pytest

from bublr.services.domains import validate_domain_format

APP_DOMAIN = "bublr.life"


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("example.com", "example.com"),
        ("Blog.Example.COM", "blog.example.com"),
        ("  blog.example.com  ", "blog.example.com"),
        ("https://blog.example.com", "blog.example.com"),
        ("http://blog.example.com/", "blog.example.com"),
        ("example.com.", "example.com"),
        ("my-blog.co.uk", "my-blog.co.uk"),
        ("www.bublr.life", "www.bublr.life"),
    ],
)
def test_valid_domains_are_normalized(raw, expected):
    result = validate_domain_format(raw, APP_DOMAIN)
    assert result.valid is True
    assert result.domain == expected
    assert result.reason is None


@pytest.mark.parametrize(
    "raw, reason_fragment",
    [
        ("", "required"),
        (None, "required"),
        (42, "required"),
        ("example.com/blog", "paths"),
        ("https://example.com/blog/post", "paths"),
        ("exa mple.com", "spaces"),
        ("localhost", "name and TLD"),
        ("example.c", "TLD"),
        ("a..com", "empty"),
        ("-bad.com", "letters, numbers"),
        ("under_score.com", "letters, numbers"),
        ("bublr.life", "main app domain"),
        ("BUBLR.LIFE", "main app domain"),
    ],
)
def test_invalid_domains_are_rejected(raw, reason_fragment):
    result = validate_domain_format(raw, APP_DOMAIN)
    assert result.valid is False
    assert result.domain is None
    assert reason_fragment in result.reason


def test_overlong_domain_rejected():
    label = "a" * 60
    domain = ".".join([label] * 5) + ".com"
    result = validate_domain_format(domain, APP_DOMAIN)
    assert result.valid is False
    assert "too long" in result.reason


def test_app_domain_defaults_to_settings(monkeypatch):
    from bublr.config import settings

    monkeypatch.setattr(settings, "APP_DOMAIN", "example.org")
    assert validate_domain_format("example.org").valid is False
    assert validate_domain_format("bublr.life").valid is True
