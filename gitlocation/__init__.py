"""gitlocation: resolve and download package versions from git repositories."""

__version__ = "0.1.0"

from gitlocation.auth import decode_credentials, encode_credentials
from gitlocation.core.config import GitLocationOptions
from gitlocation.exceptions import (
    ConfigurationError,
    ErrorKind,
    GitLocationError,
    LocalIOError,
    PipelineStage,
    RepositoryNotFoundError,
    TransportError,
)
from gitlocation.location import GitLocation
from gitlocation.models import Credential, VersionMap, VersionMeta, VersionRecord
from gitlocation.process.gate import ProcessGate
from gitlocation.refs import parse_refs
from gitlocation.url import build_remote_url

__all__ = [
    "ConfigurationError",
    "Credential",
    "ErrorKind",
    "GitLocation",
    "GitLocationError",
    "GitLocationOptions",
    "LocalIOError",
    "PipelineStage",
    "ProcessGate",
    "RepositoryNotFoundError",
    "TransportError",
    "VersionMap",
    "VersionMeta",
    "VersionRecord",
    "build_remote_url",
    "decode_credentials",
    "encode_credentials",
    "parse_refs",
]
