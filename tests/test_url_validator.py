import pytest

from app.platform.exceptions import InvalidURLError
from app.platform.utils.url_validator import ensure_valid_url, is_private_host, normalize_url, validate_url


def test_normalize_adds_https():
    assert normalize_url("example.com") == ("https://example.com", True)
    assert normalize_url(" http://example.com ") == ("http://example.com", False)


@pytest.mark.parametrize(
    "url,error",
    [
        ("", "URL cannot be empty"),
        ("   ", "URL cannot be empty"),
        ("ftp://example.com", "Invalid URL scheme: ftp (must be http or https)"),
        ("https://", "Invalid URL format: missing domain"),
    ],
)
def test_validate_url_errors(url, error):
    is_valid, _, message = validate_url(url)

    assert is_valid is False
    assert message == error


@pytest.mark.parametrize(
    "host,private",
    [
        ("localhost", True),
        ("127.0.0.1", True),
        ("10.1.2.3", True),
        ("172.16.0.1", True),
        ("192.168.0.10", True),
        ("169.254.1.1", True),
        ("[::1]", True),
        ("8.8.8.8", False),
        ("example.com", False),
    ],
)
def test_is_private_host(host, private):
    assert is_private_host(host) is private


def test_private_hosts_blocked_only_when_requested():
    assert validate_url("http://127.0.0.1:3000")[0] is True
    assert validate_url("http://127.0.0.1:3000", block_private=True)[2] == "Private IP addresses are not allowed"


@pytest.mark.parametrize(
    "url,code",
    [
        ("", "INVALID_URL"),
        ("mailto://someone", "INVALID_PROTOCOL"),
        ("http://localhost", "PRIVATE_IP_BLOCKED"),
    ],
)
def test_ensure_valid_url_codes(url, code):
    with pytest.raises(InvalidURLError) as exc_info:
        ensure_valid_url(url, block_private=True)

    assert exc_info.value.code == code
    assert exc_info.value.status_code == 400


def test_ensure_valid_url_returns_normalized():
    assert ensure_valid_url("example.com/path") == "https://example.com/path"
