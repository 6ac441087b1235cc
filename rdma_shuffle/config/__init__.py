"""
Configuration package for the RDMA shuffle manager.
"""

from .byte_units import byte_string_as, byte_string_as_bytes, format_bytes
from .conf_store import ConfStore
from .version_support import VersionInfo, VersionError, UnparseableVersionError, UnsupportedVersionError
from .version_support import init_version_support, get_version_info, is_supported_version, host_version
from .shuffle_conf import RdmaShuffleConf, ParameterSpec, Resolution, PARAMETERS, RDMA_CONF_PREFIX

__all__ = ['byte_string_as', 'byte_string_as_bytes', 'format_bytes', 'ConfStore', 'VersionInfo', 'VersionError',
           'UnparseableVersionError', 'UnsupportedVersionError', 'init_version_support', 'get_version_info',
           'is_supported_version', 'host_version', 'RdmaShuffleConf', 'ParameterSpec', 'Resolution', 'PARAMETERS',
           'RDMA_CONF_PREFIX']
