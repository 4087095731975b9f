import pytest

from docshare.validation.security import (
    validate_path_security,
    validate_url_security,
    validate_url_ssrf_protection,
)


@pytest.mark.parametrize(
    "value",
    [
        "team/doc_1/../../etc/passwd",
        "team\\doc_1\\..\\secret",
        "team/doc_1/file\0.pdf",
        "https://example.com/%2E%2E/admin",
        "https://example.com/a%2F%2Fb",
    ],
)
def test_path_security_rejects_traversal(value):
    assert validate_path_security(value) is False


def test_path_security_accepts_plain_key():
    assert validate_path_security("team1/doc_abc/report.pdf") is True


@pytest.mark.parametrize(
    "url",
    [
        "https://localhost/x",
        "https://127.0.0.1/x",
        "https://[::1]/x",
        "https://10.1.2.3/x",
        "https://172.16.0.1/x",
        "https://172.31.255.255/x",
        "https://192.168.1.10/x",
        "https://169.254.169.254/latest/meta-data",
        "https://[fe80::1]/x",
        "https://[febf::1]/x",
        "not a url",
        "https:///nohost",
    ],
)
def test_ssrf_rejects_internal_targets(url):
    assert validate_url_ssrf_protection(url) is False


@pytest.mark.parametrize(
    "url",
    [
        "https://example.com/page",
        "https://172.32.0.1/x",
        "https://8.8.8.8/",
        "https://[2001:db8::1]/x",
    ],
)
def test_ssrf_accepts_public_targets(url):
    assert validate_url_ssrf_protection(url) is True


def test_url_security_combines_both_checks():
    assert validate_url_security("https://example.com/doc.pdf") is True
    assert validate_url_security("https://example.com/../doc.pdf") is False
    assert validate_url_security("https://localhost/doc.pdf") is False
