from urllib.parse import urlparse, urlsplit

import pytest

from payjoin.urls import IntoUrlError, into_url


def test_http_uri_scheme_is_allowed():
    url = into_url("http://localhost")
    assert url.scheme == "http"


def test_https_uri_scheme_is_allowed():
    url = into_url("https://localhost")
    assert url.scheme == "https"


def test_into_url_file_scheme():
    with pytest.raises(IntoUrlError) as info:
        into_url("file:///etc/hosts")
    assert str(info.value) == "URL scheme is not allowed"


def test_into_url_blob_scheme():
    with pytest.raises(IntoUrlError) as info:
        into_url("blob:https://example.com")
    assert str(info.value) == "URL scheme is not allowed"


def test_relative_url_is_rejected():
    with pytest.raises(IntoUrlError) as info:
        into_url("localhost/path")
    assert str(info.value) == "relative URL without a base"


def test_empty_host_is_rejected():
    with pytest.raises(IntoUrlError) as info:
        into_url("http://")
    assert str(info.value) == "empty host"


def test_invalid_port_is_rejected():
    with pytest.raises(IntoUrlError) as info:
        into_url("http://localhost:99999")
    assert str(info.value) == "invalid port number"


def test_host_and_port_are_kept():
    url = into_url("https://example.com:8443/dir")
    assert url.hostname == "example.com"
    assert url.port == 8443
    assert url.path == "/dir"


def test_special_scheme_gets_root_path():
    assert into_url("https://localhost").geturl() == "https://localhost/"


def test_scheme_is_lowercased():
    assert into_url("HTTPS://example.com/").scheme == "https"


def test_already_parsed_url_passes_through():
    url = into_url("https://example.com/x")
    assert into_url(url) == url


def test_parse_result_is_accepted():
    url = into_url(urlparse("https://example.com/x"))
    assert url.hostname == "example.com"


def test_parsed_url_without_host_is_rejected():
    with pytest.raises(IntoUrlError) as info:
        into_url(urlsplit("file:///etc/hosts"))
    assert str(info.value) == "URL scheme is not allowed"


def test_other_types_are_refused():
    with pytest.raises(TypeError):
        into_url(42)