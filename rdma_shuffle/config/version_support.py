"""
Host framework version gate.

The RDMA shuffle manager only supports Spark 2.x. The gate is initialized once
per process, before any transport code runs, from the version string the host
reports. Until it has been initialized successfully, `get_version_info()` raises.
"""

import os
import re
import threading
from dataclasses import dataclass
from typing import Optional

from omegaconf import OmegaConf


VERSION_RE = re.compile(r"^(\d+)\.(\d+)(\..*)?$")
SUPPORTED_MAJOR_VERSION = 2
VERSION_ENV_VAR = "SPARK_VERSION"
VERSION_CONF_KEY = "spark.version"


class VersionError(ValueError):
    pass


class UnparseableVersionError(VersionError):
    pass


class UnsupportedVersionError(VersionError):
    pass


@dataclass(frozen=True)
class VersionInfo:
    version: str
    major_version: int
    minor_version: int


def parse_version(version: str) -> VersionInfo:
    m = VERSION_RE.match(version or "")
    if not m:
        raise UnparseableVersionError(
            f"Unable to parse Spark major version from version string: {version}")
    major = int(m.group(1))
    if major != SUPPORTED_MAJOR_VERSION:
        raise UnsupportedVersionError(
            f"SparkRDMA only supports Spark versions {SUPPORTED_MAJOR_VERSION}.x, got {version}")
    return VersionInfo(version=version, major_version=major, minor_version=int(m.group(2)))


def is_supported_version(version: str) -> bool:
    try:
        parse_version(version)
    except VersionError:
        return False
    return True


def host_version(cfg=None) -> Optional[str]:
    """Version string of the host framework, from the config or the environment."""
    if cfg is not None:
        version = OmegaConf.select(cfg, VERSION_CONF_KEY, default=None)
        if version is not None:
            if not isinstance(version, str):
                # an unquoted 2.10 reaches us as the float 2.1
                raise UnparseableVersionError(
                    f"{VERSION_CONF_KEY}={version!r} is not a string, quote the version in the config")
            return version
    return os.environ.get(VERSION_ENV_VAR)


_lock = threading.Lock()
_version_info: Optional[VersionInfo] = None


def init_version_support(version: str) -> VersionInfo:
    global _version_info
    with _lock:
        if _version_info is not None:
            if _version_info.version != version:
                raise VersionError(
                    f"Version support already initialized for Spark {_version_info.version}, "
                    f"refusing to re-initialize for {version}")
            return _version_info
        _version_info = parse_version(version)
        return _version_info


def get_version_info() -> VersionInfo:
    info = _version_info
    if info is None:
        raise VersionError("Spark version support has not been initialized")
    return info


def reset_version_support():
    global _version_info
    with _lock:
        _version_info = None
