"""Fetching OHTTP keys from a payjoin directory through a relay."""

from __future__ import annotations

from http import HTTPStatus
from typing import Any, Optional, Union
from urllib.parse import ParseResult, SplitResult, urljoin

import httpx

from .ohttp import OhttpKeys
from .urls import IntoUrlError, into_url

__all__ = ["FetchOhttpKeysError", "parse_ohttp_keys_response", "fetch_ohttp_keys"]

_UrlLike = Union[str, SplitResult, ParseResult]


def _status_text(code: int) -> str:
    try:
        reason = HTTPStatus(code).phrase
    except ValueError:
        reason = "<unknown status code>"
    return f"{code} {reason}"


class FetchOhttpKeysError(Exception):
    """OHTTP keys could not be fetched from the directory."""

    _KINDS = ("parse_url", "request", "io", "invalid_ohttp_keys", "unexpected_status_code")

    def __init__(self, kind: str, detail: Any = None) -> None:
        if kind not in self._KINDS:
            raise ValueError(f"unknown kind {kind!r}")
        self.kind = kind
        self.detail = detail
        if kind == "invalid_ohttp_keys":
            message = f"Invalid ohttp keys returned from payjoin directory: {detail}"
        elif kind == "unexpected_status_code":
            message = f"Unexpected status code from payjoin directory: {_status_text(detail)}"
        else:
            message = str(detail)
        super().__init__(message)
        if isinstance(detail, BaseException):
            self.__cause__ = detail

    @property
    def status_code(self) -> Optional[int]:
        return self.detail if self.kind == "unexpected_status_code" else None


def parse_ohttp_keys_response(status_code: int, body: bytes) -> OhttpKeys:
    """Turn a directory's response into keys; raises FetchOhttpKeysError."""
    if not 200 <= status_code <= 299:
        raise FetchOhttpKeysError("unexpected_status_code", status_code)
    try:
        return OhttpKeys.decode(body)
    except ValueError as exc:
        raise FetchOhttpKeysError("invalid_ohttp_keys", str(exc)) from exc


async def fetch_ohttp_keys(ohttp_relay: _UrlLike, payjoin_directory: _UrlLike) -> OhttpKeys:
    """Fetch the directory's OHTTP keys, tunnelling through ``ohttp_relay``.

    Going through the relay keeps the client's IP address hidden from the
    directory.
    """
    try:
        directory = into_url(payjoin_directory)
        keys_url = urljoin(directory.geturl(), "/.well-known/ohttp-gateway")
        relay = into_url(ohttp_relay).geturl()
    except IntoUrlError as exc:
        raise FetchOhttpKeysError("parse_url", exc) from exc

    try:
        async with httpx.AsyncClient(proxy=relay) as client:
            response = await client.get(
                keys_url, headers={"Accept": "application/ohttp-keys"}
            )
    except (httpx.HTTPError, httpx.InvalidURL, ValueError) as exc:
        raise FetchOhttpKeysError("request", exc) from exc
    except OSError as exc:
        raise FetchOhttpKeysError("io", exc) from exc
    return parse_ohttp_keys_response(response.status_code, response.content)