"""
Branding logo loader.

Accepts a ``data:`` URL, a local file path or an http(s)/Grafana-relative
URL. SVG logos are rasterized to PNG with cairosvg at their intrinsic size.
A logo that cannot be loaded never fails the report: the error is logged
as a warning, recorded as a finding, and the run continues without a logo.
"""

from __future__ import annotations

import base64
import binascii
import io
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional
from urllib.parse import unquote_to_bytes

import cairosvg
import requests
from reportlab.lib.utils import ImageReader

from panel_reporter.exceptions import ErrorSeverity, LogoLoadError, ProcessingError

logger = logging.getLogger(__name__)

Fetcher = Callable[[str], bytes]

SVG_DATA_URL_PREFIX = "data:image/svg+xml"


@dataclass(frozen=True)
class LogoAsset:
    data: bytes
    width: int
    height: int


def _decode_data_url(url: str) -> bytes:
    header, _, payload = url.partition(",")
    if not payload:
        raise LogoLoadError("Logo data URL has no payload.")
    if header.endswith(";base64"):
        try:
            return base64.b64decode(payload, validate=True)
        except (binascii.Error, ValueError) as exc:
            raise LogoLoadError(f"Logo data URL is not valid base64: {exc}") from exc
    return unquote_to_bytes(payload)


def _read_source(url: str, fetch: Optional[Fetcher]) -> bytes:
    if url.startswith("data:"):
        return _decode_data_url(url)

    path = Path(url).expanduser()
    if not url.startswith(("http://", "https://")) and path.is_file():
        try:
            return path.read_bytes()
        except OSError as exc:
            raise LogoLoadError(f"Cannot read logo file {path}: {exc}") from exc

    if fetch is None:
        raise LogoLoadError(f"No way to download logo from {url}")
    try:
        return fetch(url)
    except requests.RequestException as exc:
        raise LogoLoadError(f"Failed to download logo image: {exc}") from exc


def is_svg(url: str, data: bytes) -> bool:
    """True for an ``image/svg+xml`` data URL or a payload that starts as SVG/XML markup."""
    if url.lower().startswith(SVG_DATA_URL_PREFIX):
        return True
    return data.lstrip()[:5].lower().startswith((b"<svg", b"<?xml"))


def rasterize_svg(data: bytes) -> bytes:
    """
    Render SVG markup to PNG bytes.

    Raises:
        LogoLoadError: If cairosvg cannot parse or render the markup.
    """
    try:
        png = cairosvg.svg2png(bytestring=data)
    except Exception as exc:  # cairosvg surfaces XML and rendering errors of several types
        raise LogoLoadError(f"Failed to rasterize SVG logo: {exc}") from exc
    logger.debug(f"[Logo] Rasterized SVG logo: {len(data)} -> {len(png)} bytes")
    return png


def read_logo(url: str, fetch: Optional[Fetcher] = None) -> LogoAsset:
    """
    Load and measure a logo image.

    Raises:
        LogoLoadError: If the source cannot be read or decoded as an image.
    """
    url = url.strip()
    data = _read_source(url, fetch)
    if is_svg(url, data):
        data = rasterize_svg(data)

    try:
        width, height = ImageReader(io.BytesIO(data)).getSize()
    except Exception as exc:  # reportlab/PIL raise a variety of decode errors
        raise LogoLoadError(f"Failed to read logo image dimensions: {exc}") from exc

    return LogoAsset(data=data, width=int(width), height=int(height))


def load_logo_asset(
    url: Optional[str],
    fetch: Optional[Fetcher] = None,
    findings: Optional[list[ProcessingError]] = None,
) -> Optional[LogoAsset]:
    """
    Recoverable wrapper around ``read_logo``.

    Args:
        url: Configured logo source; blank means no logo.
        fetch: Downloader for remote URLs.
        findings: When given, a LOGO_LOAD_ERROR finding is appended on failure.

    Returns:
        The loaded logo, or None when there is none or it failed to load.
    """
    if not url or not url.strip():
        return None
    try:
        logo = read_logo(url, fetch)
    except LogoLoadError as exc:
        logger.warning(f"[Logo] Failed to load logo, continuing without it: {exc}")
        if findings is not None:
            findings.append(ProcessingError(
                source=url[:80],
                error_type="LOGO_LOAD_ERROR",
                message=str(exc),
                severity=ErrorSeverity.WARNING,
            ))
        return None

    logger.info(f"[Logo] Loaded logo ({logo.width}x{logo.height})")
    return logo
