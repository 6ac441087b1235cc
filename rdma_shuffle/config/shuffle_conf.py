"""
Typed access to the RDMA shuffle manager tunables.

Every tunable lives under the `spark.shuffle.rdma.` prefix, except the few
addressing settings that are shared with the rest of Spark (driver host and
port retry policy), which are read from their global keys as-is.

Values are resolved on first use and cached for the lifetime of the
RdmaShuffleConf instance. A well-formed value that falls outside its declared
range is replaced by the default; the replacement is recorded on the
Resolution and logged once. Malformed values are not handled here: the
store's coercion error propagates to the caller.
"""

import logging
import threading
from collections import OrderedDict
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional

from .byte_units import byte_string_as_bytes, format_bytes
from .conf_store import ConfStore


RDMA_CONF_PREFIX = "spark.shuffle.rdma."

log = logging.getLogger(__name__)


class KeyStrategy(Enum):
    PREFIXED = "prefixed"
    GLOBAL = "global"


class Kind(Enum):
    INT = "int"
    BYTES = "bytes"
    BOOLEAN = "boolean"
    STRING = "string"


def to_rdma_conf_key(name: str) -> str:
    return RDMA_CONF_PREFIX + name


@dataclass(frozen=True)
class ParameterSpec:
    name: str
    kind: Kind
    default: Any = None
    min: Any = None
    max: Any = None
    strategy: KeyStrategy = KeyStrategy.PREFIXED
    required: bool = False

    @property
    def key(self) -> str:
        if self.strategy is KeyStrategy.PREFIXED:
            return to_rdma_conf_key(self.name)
        return self.name

    @property
    def bounded(self) -> bool:
        return self.min is not None and self.max is not None


def int_in_range(name, default, min, max):
    return ParameterSpec(name, Kind.INT, default, min, max)


def size_in_range(name, default, min, max):
    return ParameterSpec(name, Kind.BYTES, default, min, max)


def boolean(name, default):
    return ParameterSpec(name, Kind.BOOLEAN, default)


def string(name, default):
    return ParameterSpec(name, Kind.STRING, default)


def global_int(key, default):
    return ParameterSpec(key, Kind.INT, default, strategy=KeyStrategy.GLOBAL)


def global_required_string(key):
    return ParameterSpec(key, Kind.STRING, strategy=KeyStrategy.GLOBAL, required=True)


@dataclass(frozen=True)
class Resolution:
    name: str
    key: str
    value: Any
    configured: Optional[str] = None
    fell_back: bool = False
    reason: Optional[str] = None


class conf_value:
    """Class attribute that resolves one catalogue entry on first access."""

    def __init__(self, spec: ParameterSpec):
        self.spec = spec
        self.attr_name = None

    def __set_name__(self, owner, name):
        self.attr_name = name

    def __get__(self, instance, owner=None):
        if instance is None:
            return self
        return instance.resolution(self.attr_name).value


class RdmaShuffleConf:

    def __init__(self, conf):
        if not isinstance(conf, ConfStore):
            conf = ConfStore(conf)
        self.conf = conf
        self._resolved: Dict[str, Resolution] = {}
        self._locks = {name: threading.Lock() for name in PARAMETERS}

    # ----------------------------------------------------------------------------
    # RESOLUTION
    # ----------------------------------------------------------------------------

    def resolution(self, name: str) -> Resolution:
        if name not in PARAMETERS:
            raise ValueError(f"Unknown RDMA shuffle parameter '{name}'. Valid: {list(PARAMETERS)}")
        resolved = self._resolved.get(name)
        if resolved is not None:
            return resolved
        with self._locks[name]:
            resolved = self._resolved.get(name)
            if resolved is None:
                resolved = self._resolve(name, PARAMETERS[name])
                self._resolved[name] = resolved
                if resolved.fell_back:
                    log.warning(f"[CONFIG][FALLBACK] {resolved.reason}")
        return resolved

    def _resolve(self, name: str, spec: ParameterSpec) -> Resolution:
        key = spec.key
        configured = self.conf.get(key, None)

        if spec.kind is Kind.INT:
            value = self.conf.get_int(key, spec.default)
            if spec.bounded and not spec.min <= value <= spec.max:
                return self._fallback(name, key, configured, spec.default, spec.min, spec.max)
        elif spec.kind is Kind.BYTES:
            value = self.conf.get_size_as_bytes(key, spec.default)
            lo = byte_string_as_bytes(spec.min)
            hi = byte_string_as_bytes(spec.max)
            if not lo <= value <= hi:
                return self._fallback(name, key, configured, byte_string_as_bytes(spec.default),
                                      format_bytes(lo), format_bytes(hi))
        elif spec.kind is Kind.BOOLEAN:
            value = self.conf.get_boolean(key, spec.default)
        elif spec.required:
            value = self.conf.get(key)
        else:
            value = self.conf.get(key, spec.default)

        return Resolution(name, key, value, configured)

    @staticmethod
    def _fallback(name, key, configured, default, lo, hi) -> Resolution:
        reason = None
        if configured is not None:
            reason = f"{key}={configured} is outside [{lo}, {hi}], using default {default}"
        return Resolution(name, key, default, configured, fell_back=configured is not None, reason=reason)

    def resolutions(self) -> List[Resolution]:
        return [self._resolved[name] for name in PARAMETERS if name in self._resolved]

    def fallbacks(self) -> List[Resolution]:
        return [r for r in self.resolutions() if r.fell_back]

    def describe(self) -> "OrderedDict[str, Any]":
        """Resolve the whole catalogue; a missing required key shows as None."""
        values = OrderedDict()
        for name in PARAMETERS:
            try:
                values[name] = self.resolution(name).value
            except KeyError:
                values[name] = None
        return values

    # ----------------------------------------------------------------------------
    # RAW ACCESS
    # ----------------------------------------------------------------------------

    def get_rdma_conf_key(self, name: str, default: str) -> str:
        return self.conf.get(to_rdma_conf_key(name), default)

    def set_driver_port(self, value):
        self.conf.set(to_rdma_conf_key("driverPort"), value)

    # ----------------------------------------------------------------------------
    # RDMA RESOURCE PARAMETERS
    # ----------------------------------------------------------------------------

    recv_queue_depth = conf_value(int_in_range("recvQueueDepth", 1024, 256, 65535))
    send_queue_depth = conf_value(int_in_range("sendQueueDepth", 4096, 256, 65535))
    recv_wr_size = conf_value(size_in_range("recvWrSize", "4k", "2k", "1m"))
    sw_flow_control = conf_value(boolean("swFlowControl", True))

    # ----------------------------------------------------------------------------
    # CPU AFFINITY
    # ----------------------------------------------------------------------------

    cpu_list = conf_value(string("cpuList", ""))

    # ----------------------------------------------------------------------------
    # SHUFFLE WRITER
    # ----------------------------------------------------------------------------

    shuffle_write_block_size = conf_value(size_in_range("shuffleWriteBlockSize", "8m", "4k", "512m"))

    # ----------------------------------------------------------------------------
    # SHUFFLE READER
    # ----------------------------------------------------------------------------

    shuffle_read_block_size = conf_value(size_in_range("shuffleReadBlockSize", "256k", "0", "512m"))
    max_bytes_in_flight = conf_value(size_in_range("maxBytesInFlight", "1m", "128k", "100g"))
    max_agg_block = conf_value(size_in_range("maxAggBlock", "2m", "2m", "1g"))
    max_agg_prealloc = conf_value(size_in_range("maxAggPrealloc", "0", "0", "10g"))
    # remote fetch statistics
    collect_shuffle_reader_stats = conf_value(boolean("collectShuffleReaderStats", False))
    partition_location_fetch_timeout = conf_value(
        int_in_range("partitionLocationFetchTimeout", 30000, 1000, 2 ** 31 - 1))
    fetch_time_bucket_size_in_ms = conf_value(int_in_range("fetchTimeBucketSizeInMs", 300, 5, 60000))
    fetch_time_num_buckets = conf_value(int_in_range("fetchTimeNumBuckets", 5, 2, 100))

    # ----------------------------------------------------------------------------
    # ADDRESSING AND CONNECTIONS
    # ----------------------------------------------------------------------------

    driver_host = conf_value(global_required_string("spark.driver.host"))
    driver_port = conf_value(int_in_range("driverPort", 0, 1025, 65535))
    executor_port = conf_value(int_in_range("executorPort", 0, 1025, 65535))
    port_max_retries = conf_value(global_int("spark.port.maxRetries", 16))
    rdma_cm_event_timeout = conf_value(int_in_range("rdmaCmEventTimeout", 20000, -1, 60000))
    teardown_listen_timeout = conf_value(int_in_range("teardownListenTimeout", 50, -1, 60000))
    resolve_path_timeout = conf_value(int_in_range("resolvePathTimeout", 2000, -1, 60000))
    max_connection_attempts = conf_value(int_in_range("maxConnectionAttempts", 5, 1, 100))


PARAMETERS: "OrderedDict[str, ParameterSpec]" = OrderedDict(
    (name, attr.spec) for name, attr in vars(RdmaShuffleConf).items() if isinstance(attr, conf_value)
)
