from urllib.parse import urlsplit

import pytest

from payjoin.into_url import BadSchemeError, IntoUrlError, into_url


def test_http_uri_scheme_is_allowed():
    assert into_url("http://localhost").scheme == "http"


def test_https_uri_scheme_is_allowed():
    assert into_url("https://localhost").scheme == "https"


def test_into_url_file_scheme():
    with pytest.raises(BadSchemeError) as info:
        into_url("file:///etc/hosts")
    assert str(info.value) == "URL scheme is not allowed"


def test_into_url_blob_scheme():
    with pytest.raises(BadSchemeError) as info:
        into_url("blob:https://example.com")
    assert str(info.value) == "URL scheme is not allowed"


def test_relative_url_is_rejected():
    with pytest.raises(IntoUrlError):
        into_url("localhost/path")


def test_bad_port_is_rejected():
    with pytest.raises(IntoUrlError):
        into_url("http://localhost:99999")


def test_split_result_is_accepted():
    parts = urlsplit("https://example.com/x")
    assert into_url(parts) == parts