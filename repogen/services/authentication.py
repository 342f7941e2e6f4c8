"""
Access tokens for private git hosts.

Tokens are registered per hostname and embedded as URL userinfo into
matching https clone URLs. Anything that ends up in a log goes through
`redact_url` first.
"""
from __future__ import annotations

import logging
import re
from typing import Dict, Optional

from repogen.domain.models import DEFAULT_GITHUB_HOST

logger = logging.getLogger(__name__)

_AUTH_URL_RE = re.compile(r"^https?://([^/]+)/(.+)\.git$")
_USERINFO_RE = re.compile(r"([a-zA-Z][a-zA-Z0-9+.-]*://)[^/@\s]+@")


class TokenStore:
    """Tokens keyed by hostname."""

    def __init__(self, tokens: Optional[Dict[str, str]] = None):
        self._tokens: Dict[str, str] = dict(tokens or {})

    def add(self, token: str, host: str = DEFAULT_GITHUB_HOST) -> None:
        self._tokens[host] = token
        logger.debug(f"Registered access token for {host}")

    def get(self, host: str) -> Optional[str]:
        return self._tokens.get(host)

    def authenticate_url(self, url: str) -> str:
        """
        Rewrite 'https://<host>/<path>.git' to 'https://<token>@<host>/<path>.git'
        when a token is registered for <host>. Other URLs are returned unchanged.
        """
        match = _AUTH_URL_RE.match(url)
        if not match:
            return url

        host, path = match.group(1), match.group(2)
        token = self.get(host)
        if not token:
            return url
        return f"https://{token}@{host}/{path}.git"


def redact_url(url: str) -> str:
    """Hide URL userinfo anywhere in `url` ('https://tok@host/x' -> 'https://***@host/x')."""
    return _USERINFO_RE.sub(r"\1***@", url)
