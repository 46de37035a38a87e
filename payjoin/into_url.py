"""Conversion of user input into URLs that are usable for network requests."""

from __future__ import annotations

from urllib.parse import SplitResult, urlsplit

__all__ = ["IntoUrlError", "BadSchemeError", "into_url"]


class IntoUrlError(ValueError):
    """The value could not be turned into a usable URL."""


class BadSchemeError(IntoUrlError):
    """The URL parsed but has no host, so its scheme is unusable for requests."""

    def __init__(self) -> None:
        super().__init__("URL scheme is not allowed")


def into_url(url: str | SplitResult) -> SplitResult:
    """Parse ``url`` and require it to name a host.

    Raises IntoUrlError when the text is not an absolute URL and
    BadSchemeError when the URL has no host (``file:``, ``blob:`` and so on).
    """
    if isinstance(url, SplitResult):
        parts = url
    else:
        try:
            parts = urlsplit(url)
        except ValueError as err:
            raise IntoUrlError(str(err)) from err
    if not parts.scheme:
        raise IntoUrlError("relative URL without a base")
    try:
        parts.port
    except ValueError as err:
        raise IntoUrlError("invalid port number") from err
    if not parts.hostname:
        raise BadSchemeError()
    return parts