"""Credential token codec.

A token is ``base64(quote(username) + ":" + quote(password))``. Quoting both
fields first means a ``:`` inside either one cannot break the split.
"""

from __future__ import annotations

import base64
import binascii
from urllib.parse import unquote

from gitlocation.models import Credential
from gitlocation.url import quote_component


def encode_credentials(credential: Credential) -> str:
    raw = f"{quote_component(credential.username)}:{quote_component(credential.password)}"
    return base64.b64encode(raw.encode("utf-8")).decode("ascii")


def decode_credentials(token: str | None) -> Credential | None:
    """Decode *token*; anything malformed means "no credential configured"."""
    if not token:
        return None
    try:
        raw = base64.b64decode(token.strip(), validate=True).decode("utf-8")
    except (binascii.Error, ValueError):
        return None

    username, sep, password = raw.partition(":")
    if not sep:
        return None
    return Credential(username=unquote(username), password=unquote(password))
