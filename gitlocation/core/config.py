"""Options for a git source location."""

from __future__ import annotations

import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from gitlocation.exceptions import ConfigurationError
from gitlocation.refs import DEFAULT_NOT_FOUND_MARKERS
from gitlocation.url import URI_SCHEMES, is_scp_address, is_uri

_MIB = 1024 * 1024

_ENV_PREFIX = "GITLOCATION_"


class GitLocationOptions(BaseModel):
    """Persisted configuration of one git source location."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    base_url: str
    repo_suffix: str = ".git"
    shallow_clone: bool = True
    auth: str | None = None  # encoded credential token
    timeout: float = Field(default=120.0, gt=0)  # seconds
    max_repo_size: int = Field(default=100, ge=0)  # MiB of process output, 0 = unbounded
    tmp_dir: Path | None = None
    log: bool = True
    git_binary: str = "git"
    not_found_markers: tuple[str, ...] = DEFAULT_NOT_FOUND_MARKERS
    manifest_file: str = "package.json"
    override_key: str = "jspm"

    @field_validator("base_url")
    @classmethod
    def _check_base_url(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("base_url must not be empty")
        if "://" in value:
            if not is_uri(value):
                raise ValueError(
                    f"base_url must use one of {sorted(URI_SCHEMES)} with a host"
                )
        elif not is_scp_address(value):
            raise ValueError("base_url must be an absolute URI or a [user@]host address")
        return value

    @field_validator("tmp_dir")
    @classmethod
    def _absolute_tmp_dir(cls, value: Path | None) -> Path | None:
        # git runs with tmp_dir as cwd, so scratch paths under it must be absolute
        return value.expanduser().resolve() if value is not None else None

    @field_validator("repo_suffix", mode="before")
    @classmethod
    def _default_suffix(cls, value: Any) -> Any:
        # a non-string suffix falls back to the default
        return value if isinstance(value, str) else ".git"

    @property
    def max_output_bytes(self) -> int | None:
        return self.max_repo_size * _MIB if self.max_repo_size else None

    @classmethod
    def load(cls, data: Mapping[str, Any]) -> GitLocationOptions:
        """Validate *data*, raising :class:`ConfigurationError` on bad input."""
        try:
            return cls.model_validate(dict(data))
        except ValidationError as exc:
            problems = "; ".join(
                f"{'.'.join(str(p) for p in err['loc']) or 'options'}: {err['msg']}"
                for err in exc.errors()
            )
            raise ConfigurationError(f"invalid git location options: {problems}") from None

    @classmethod
    def from_env(cls, **overrides: Any) -> GitLocationOptions:
        """Build options from ``GITLOCATION_*`` environment variables.

        Keyword *overrides* win over the environment.
        """
        data: dict[str, Any] = {}
        for name in cls.model_fields:
            raw = os.environ.get(f"{_ENV_PREFIX}{name.upper()}")
            if raw is None:
                continue
            if name == "not_found_markers":
                data[name] = tuple(m.strip() for m in raw.split(",") if m.strip())
            else:
                data[name] = raw
        data.update(overrides)
        return cls.load(data)
