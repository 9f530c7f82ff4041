"""
Logo Loader Tests
Level 2: data URLs, local files and a fake fetcher; no network.
"""

from __future__ import annotations

import base64
import logging
from urllib.parse import quote

import pytest
import requests

from panel_reporter.exceptions import ErrorSeverity, LogoLoadError
from panel_reporter.tools.logo_loader import is_svg, load_logo_asset, read_logo
from tests.fixtures.conftest import TINY_PNG, TINY_PNG_DATA_URL, make_png

SVG = (
    b'<svg xmlns="http://www.w3.org/2000/svg" width="24" height="12">'
    b'<rect width="24" height="12" fill="#336699"/></svg>'
)


@pytest.mark.schema
class TestReadLogo:

    def test_data_url(self):
        logo = read_logo(TINY_PNG_DATA_URL)
        assert (logo.width, logo.height) == (2, 1)
        assert logo.data == TINY_PNG

    def test_local_file(self, tmp_path):
        path = tmp_path / "logo.png"
        path.write_bytes(make_png(30, 10))
        logo = read_logo(str(path))
        assert (logo.width, logo.height) == (30, 10)

    def test_remote_url_uses_fetcher(self):
        fetched = []

        def fetch(url):
            fetched.append(url)
            return make_png(4, 4)

        logo = read_logo("https://cdn.example.com/logo.png", fetch)
        assert fetched == ["https://cdn.example.com/logo.png"]
        assert (logo.width, logo.height) == (4, 4)

    def test_svg_data_url_rasterized(self):
        url = "data:image/svg+xml;base64," + base64.b64encode(SVG).decode()
        logo = read_logo(url)
        assert logo.data.startswith(b"\x89PNG")
        assert (logo.width, logo.height) == (24, 12)

    def test_percent_encoded_svg_data_url(self):
        url = "data:image/svg+xml;utf8," + quote(SVG.decode())
        logo = read_logo(url)
        assert (logo.width, logo.height) == (24, 12)

    def test_fetched_svg_content_rasterized(self):
        logo = read_logo("https://x/logo", lambda url: b"<?xml version=\"1.0\"?>" + SVG)
        assert logo.data.startswith(b"\x89PNG")
        assert (logo.width, logo.height) == (24, 12)

    def test_broken_svg(self):
        with pytest.raises(LogoLoadError, match="rasterize"):
            read_logo("https://x/logo.svg", lambda url: b"<svg><rect</svg>")

    def test_not_an_image(self):
        with pytest.raises(LogoLoadError):
            read_logo("https://x/logo.png", lambda url: b"definitely not an image")

    def test_bad_base64(self):
        with pytest.raises(LogoLoadError):
            read_logo("data:image/png;base64,@@@")

    def test_download_error(self):
        def fetch(url):
            raise requests.ConnectionError("refused")

        with pytest.raises(LogoLoadError, match="download"):
            read_logo("https://x/logo.png", fetch)


@pytest.mark.schema
class TestLoadLogoAsset:

    def test_failure_is_recoverable(self, caplog):
        with caplog.at_level(logging.WARNING):
            assert load_logo_asset("https://x/logo.png", lambda url: b"junk") is None
        assert "continuing without it" in caplog.text

    def test_blank_url(self):
        assert load_logo_asset(None) is None
        assert load_logo_asset("  ") is None

    def test_success(self):
        logo = load_logo_asset(TINY_PNG_DATA_URL)
        assert logo is not None
        assert logo.width == 2

    def test_failure_recorded_as_finding(self):
        findings = []
        assert load_logo_asset("https://x/logo.png", lambda url: b"junk", findings) is None
        assert len(findings) == 1
        assert findings[0].error_type == "LOGO_LOAD_ERROR"
        assert findings[0].severity == ErrorSeverity.WARNING
        assert findings[0].source == "https://x/logo.png"

    def test_success_records_nothing(self):
        findings = []
        load_logo_asset(TINY_PNG_DATA_URL, findings=findings)
        assert findings == []


@pytest.mark.schema
class TestIsSvg:

    @pytest.mark.parametrize("url,data,expected", [
        ("data:image/svg+xml;base64,AAAA", b"", True),
        ("DATA:IMAGE/SVG+XML,<svg/>", b"", True),
        ("https://x/logo", b"  <svg xmlns='x'/>", True),
        ("https://x/logo", b"<?xml version='1.0'?><svg/>", True),
        ("https://x/logo.png", b"\x89PNG\r\n", False),
    ])
    def test_detection(self, url, data, expected):
        assert is_svg(url, data) is expected
