"""Turning strings into URLs that make sense as network request targets."""

from __future__ import annotations

import re
from urllib.parse import ParseResult, SplitResult, urlsplit

__all__ = ["IntoUrlError", "into_url"]

BAD_SCHEME_MESSAGE = "URL scheme is not allowed"

# Schemes whose URLs always carry an authority component.
_SPECIAL_SCHEMES = frozenset({"http", "https", "ws", "wss", "ftp"})
_SCHEME_RE = re.compile(r"([A-Za-z][A-Za-z0-9+.\-]*):(.*)", re.DOTALL)
_STRIP_CHARS = "".join(chr(code) for code in range(0x21))
_FORBIDDEN_HOST_CHARS = frozenset("\x00\t\n\r #/<>?@[\\]^|")


class IntoUrlError(ValueError):
    """A value could not be turned into a usable URL."""


def _parse(text: str) -> SplitResult:
    text = re.sub(r"[\t\n\r]", "", text.strip(_STRIP_CHARS))
    match = _SCHEME_RE.fullmatch(text)
    if match is None:
        raise IntoUrlError("relative URL without a base")
    scheme = match.group(1).lower()
    rest = match.group(2)

    if scheme in _SPECIAL_SCHEMES:
        rest = "//" + rest.replace("\\", "/").lstrip("/")
    elif scheme == "file":
        rest = rest.replace("\\", "/")

    try:
        parts = urlsplit(f"{scheme}:{rest}")
        hostname = parts.hostname
        parts.port  # noqa: B018 - validates the port
    except ValueError as exc:
        message = str(exc)
        if "Port" in message or "port" in message:
            raise IntoUrlError("invalid port number") from exc
        if "IPv6" in message:
            raise IntoUrlError("invalid IPv6 address") from exc
        raise IntoUrlError(message) from exc

    if scheme in _SPECIAL_SCHEMES:
        if not hostname:
            raise IntoUrlError("empty host")
        if "[" not in parts.netloc and any(ch in _FORBIDDEN_HOST_CHARS for ch in hostname):
            raise IntoUrlError("invalid domain character")
        if not parts.path:
            parts = parts._replace(path="/")
    return parts


def into_url(value: str | SplitResult | ParseResult) -> SplitResult:
    """Parse ``value`` into a URL, requiring it to name a host.

    Raises :class:`IntoUrlError` when the text is not a URL or when the URL
    has no host (``file:``, ``blob:`` and similar schemes).
    """
    if isinstance(value, ParseResult):
        value = urlsplit(value.geturl())
    if isinstance(value, SplitResult):
        url = value
    elif isinstance(value, str):
        url = _parse(value)
    else:
        raise TypeError(f"cannot convert {type(value).__name__} into a URL")
    if not url.hostname:
        raise IntoUrlError(BAD_SCHEME_MESSAGE)
    return url