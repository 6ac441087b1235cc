import re
from typing import Any, Dict, Optional

from omegaconf import DictConfig, ListConfig, OmegaConf

from .byte_units import byte_string_as_bytes


_INT_RE = re.compile(r"^[+-]?[0-9]+$")
INT_MIN = -(2 ** 31)
INT_MAX = 2 ** 31 - 1

_MISSING = object()


def _to_string(value) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def parse_int(key: str, raw) -> int:
    if isinstance(raw, bool):
        raise ValueError(f"{key}='{raw}' is not an integer")
    if isinstance(raw, int):
        value = raw
    else:
        s = str(raw)
        if not _INT_RE.match(s):
            raise ValueError(f"{key}='{raw}' is not an integer")
        value = int(s)
    if value < INT_MIN or value > INT_MAX:
        raise ValueError(f"{key}='{raw}' is out of the 32-bit integer range")
    return value


def parse_boolean(key: str, raw) -> bool:
    if isinstance(raw, bool):
        return raw
    s = str(raw).lower()
    if s == "true":
        return True
    if s == "false":
        return False
    raise ValueError(f"{key}='{raw}' is not a boolean. Use 'true' or 'false'")


class ConfStore:
    """Key-value view over an OmegaConf config addressed by dotted keys.

    `spark.shuffle.rdma.recvQueueDepth` selects the nested node
    spark -> shuffle -> rdma -> recvQueueDepth. Null values count as absent.
    """

    def __init__(self, cfg=None):
        if cfg is None:
            cfg = OmegaConf.create({})
        elif not isinstance(cfg, DictConfig):
            cfg = self._from_mapping(cfg)
        self.cfg = cfg

    @staticmethod
    def _from_mapping(values) -> DictConfig:
        cfg = OmegaConf.create({})
        for key, value in values.items():
            OmegaConf.update(cfg, key, value, merge=True, force_add=True)
        return cfg

    def _lookup(self, key: str):
        value = OmegaConf.select(self.cfg, key, default=None, throw_on_missing=False)
        if value is None:
            return _MISSING
        if isinstance(value, (DictConfig, ListConfig)):
            raise ValueError(f"{key} refers to a configuration group, not a value")
        return value

    def contains(self, key: str) -> bool:
        return self._lookup(key) is not _MISSING

    def get(self, key: str, default: Any = _MISSING) -> str:
        value = self._lookup(key)
        if value is _MISSING:
            if default is _MISSING:
                raise KeyError(key)
            return default
        return _to_string(value)

    def get_int(self, key: str, default: int) -> int:
        value = self._lookup(key)
        if value is _MISSING:
            return default
        return parse_int(key, value)

    def get_boolean(self, key: str, default: bool) -> bool:
        value = self._lookup(key)
        if value is _MISSING:
            return default
        return parse_boolean(key, value)

    def get_size_as_bytes(self, key: str, default: Optional[str] = None) -> int:
        value = self._lookup(key)
        if value is _MISSING:
            if default is None:
                raise KeyError(key)
            return byte_string_as_bytes(default)
        return byte_string_as_bytes(value)

    def set(self, key: str, value) -> "ConfStore":
        if key is None:
            raise ValueError("null key")
        if value is None:
            raise ValueError(f"null value for {key}")
        OmegaConf.update(self.cfg, key, str(value), force_add=True)
        return self

    def get_all(self, prefix: str = "") -> Dict[str, str]:
        """Flatten the config into dotted keys, optionally under `prefix`."""
        flat = {}

        def walk(node, path):
            for k, v in node.items():
                key = f"{path}.{k}" if path else str(k)
                if isinstance(v, dict):
                    walk(v, key)
                elif v is not None and not isinstance(v, list):
                    flat[key] = _to_string(v)

        walk(OmegaConf.to_container(self.cfg, resolve=True), "")
        if prefix:
            return {k: v for k, v in flat.items() if k.startswith(prefix)}
        return flat
