"""Fetching OHTTP keys from a payjoin directory through a relay."""

from __future__ import annotations

from http import HTTPStatus
from urllib.parse import SplitResult, urljoin

import httpx

from .into_url import IntoUrlError, into_url
from .ohttp import KeyConfigError, OhttpKeys

__all__ = ["FetchOhttpKeysError", "fetch_ohttp_keys", "parse_ohttp_keys_response"]

_GATEWAY_PATH = "/.well-known/ohttp-gateway"


def _status_text(code: int) -> str:
    try:
        return f"{code} {HTTPStatus(code).phrase}"
    except ValueError:
        return str(code)


class FetchOhttpKeysError(Exception):
    """OHTTP keys could not be fetched; ``kind`` names why."""

    PARSE_URL = "parse_url"
    HTTP = "http"
    INVALID_OHTTP_KEYS = "invalid_ohttp_keys"
    UNEXPECTED_STATUS_CODE = "unexpected_status_code"

    def __init__(
        self,
        kind: str,
        error: BaseException | None = None,
        status_code: int | None = None,
    ) -> None:
        self.kind = kind
        self.error = error
        self.status_code = status_code
        if kind in (self.PARSE_URL, self.HTTP):
            message = str(error)
        elif kind == self.INVALID_OHTTP_KEYS:
            message = f"Invalid ohttp keys returned from payjoin directory: {error}"
        elif kind == self.UNEXPECTED_STATUS_CODE:
            message = (
                "Unexpected status code from payjoin directory: "
                f"{_status_text(status_code or 0)}"
            )
        else:
            raise ValueError(f"unknown fetch error kind: {kind!r}")
        super().__init__(message)


def parse_ohttp_keys_response(response: httpx.Response) -> OhttpKeys:
    """Decode the key configuration carried by a successful response."""
    if not response.is_success:
        raise FetchOhttpKeysError(
            FetchOhttpKeysError.UNEXPECTED_STATUS_CODE, status_code=response.status_code
        )
    try:
        return OhttpKeys.decode(response.content)
    except KeyConfigError as err:
        raise FetchOhttpKeysError(FetchOhttpKeysError.INVALID_OHTTP_KEYS, err) from err


async def fetch_ohttp_keys(
    ohttp_relay: str | SplitResult, payjoin_directory: str | SplitResult
) -> OhttpKeys:
    """Fetch the directory's OHTTP keys, proxying the request through the relay.

    The relay acts as an HTTP proxy so the directory never sees the client's
    address.
    """
    try:
        directory = into_url(payjoin_directory)
        keys_url = urljoin(directory.geturl(), _GATEWAY_PATH)
        relay = into_url(ohttp_relay)
    except IntoUrlError as err:
        raise FetchOhttpKeysError(FetchOhttpKeysError.PARSE_URL, err) from err
    try:
        async with httpx.AsyncClient(proxy=relay.geturl()) as client:
            response = await client.get(
                keys_url, headers={"Accept": "application/ohttp-keys"}
            )
    except (httpx.HTTPError, httpx.InvalidURL, OSError, ValueError) as err:
        raise FetchOhttpKeysError(FetchOhttpKeysError.HTTP, err) from err
    return parse_ohttp_keys_response(response)