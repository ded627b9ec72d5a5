"""Injecting and scrubbing source credentials."""

import re
from collections.abc import Iterable
from urllib.parse import urlsplit, urlunsplit

from .models import Credential

_USERINFO = re.compile(r"(?<=://)[^/@\s]+@")


def normalize(credentials: Iterable[Credential | dict] | None) -> list[Credential]:
    """Accept collaborator dicts or Credential objects."""
    return [
        c if isinstance(c, Credential) else Credential.from_dict(c)
        for c in credentials or ()
    ]


def sanitize_url(url: str) -> str:
    """Remove any `user:secret@` portion from a URL."""
    return _USERINFO.sub("", url)


def scrub(text: str, credentials: Iterable[Credential]) -> str:
    """Remove every secret literal, and any userinfo, from `text`."""
    for credential in credentials:
        if credential.password:
            text = text.replace(credential.password, "")
    return _USERINFO.sub("", text)


def credential_for(host: str, credentials: Iterable[Credential]) -> Credential | None:
    host = host.lower()
    return next((c for c in credentials if c.host.lower() == host), None)


def authenticated_url(url: str, credentials: Iterable[Credential]) -> str:
    """Return `url` with the matching host's credential embedded."""
    parts = urlsplit(url)
    if not parts.hostname or "@" in parts.netloc:
        return url
    credential = credential_for(parts.hostname, credentials)
    if credential is None:
        return url
    netloc = f"{credential.username}:{credential.password}@{parts.netloc}"
    return urlunsplit(parts._replace(netloc=netloc))


def auth_for(url: str, credentials: Iterable[Credential]) -> tuple[str, str] | None:
    """Basic auth tuple for an httpx request to `url`, if we have one."""
    host = urlsplit(url).hostname or ""
    credential = credential_for(host, credentials)
    if credential is None:
        return None
    return credential.username, credential.password


def bundler_env(credentials: Iterable[Credential]) -> dict[str, str]:
    """Bundler reads per-host credentials from `BUNDLE_<HOST>` variables."""
    env = {}
    for credential in credentials:
        key = "BUNDLE_" + credential.host.upper().replace(".", "__").replace("-", "___")
        env[key] = f"{credential.username}:{credential.password}"
    return env
