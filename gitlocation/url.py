"""Remote locator construction and credential redaction."""

from __future__ import annotations

import posixpath
import re
from urllib.parse import quote, urlsplit, urlunsplit

from gitlocation.models import Credential

# Schemes accepted as URI-style base locations
URI_SCHEMES = frozenset({"http", "https", "ftp", "ssh", "git", "file"})

# Schemes that can carry ``user:password@`` userinfo
CREDENTIAL_SCHEMES = frozenset({"http", "https", "ftp", "ssh"})

_SCP_BASE_RE = re.compile(r"^(?:[^@\s/:]+@)?[^@\s/:]+$")

_USERINFO_RE = re.compile(r"(?P<scheme>[A-Za-z][A-Za-z0-9+.-]*://)[^/@\s:]+:[^/@\s]*@")


def quote_component(value: str) -> str:
    """Percent-encode like JavaScript's ``encodeURIComponent``."""
    return quote(value, safe="!'()*")


def is_uri(base: str) -> bool:
    """True when *base* is an absolute URI with a recognised scheme."""
    parts = urlsplit(base)
    if parts.scheme.lower() not in URI_SCHEMES:
        return False
    # file:///path has no netloc but is still absolute
    return bool(parts.netloc) or (parts.scheme.lower() == "file" and parts.path.startswith("/"))


def is_scp_address(base: str) -> bool:
    """True when *base* looks like ``[user@]host``."""
    return _SCP_BASE_RE.match(base) is not None


def strip_credentials(url: str) -> str:
    """Remove ``user:password@`` userinfo from a URI locator."""
    return _USERINFO_RE.sub(lambda m: m.group("scheme"), url)


def build_remote_url(
    base: str,
    repo_id: str,
    suffix: str = ".git",
    credential: Credential | None = None,
) -> str:
    """Assemble the fetch address for *repo_id*.

    URI bases get optional credentials spliced in after ``scheme://`` and the
    repository path joined onto the base path. Anything else is treated as an
    SCP-style ``[user@]host`` address and produces ``host:repo_id+suffix``.
    """
    target = repo_id + suffix
    if not is_uri(base):
        return f"{base}:{target}"

    parts = urlsplit(base)
    netloc = parts.netloc
    if credential is not None and parts.scheme.lower() in CREDENTIAL_SCHEMES:
        host = netloc.rpartition("@")[2]
        netloc = (
            f"{quote_component(credential.username)}:"
            f"{quote_component(credential.password)}@{host}"
        )

    path = posixpath.normpath(posixpath.join(parts.path or "/", target.lstrip("/")))
    if not path.startswith("/"):
        path = "/" + path
    return urlunsplit((parts.scheme, netloc, path, parts.query, parts.fragment))


def redact(text: str, *locators: str) -> str:
    """Remove credentials from *text*.

    Every occurrence of a credential-bearing locator is replaced by the same
    locator without its password-bearing userinfo; any other
    ``scheme://user:pass@`` left over is masked as well.
    """
    for locator in locators:
        if locator:
            text = text.replace(locator, strip_credentials(locator))
    return _USERINFO_RE.sub(lambda m: f"{m.group('scheme')}***@", text)
