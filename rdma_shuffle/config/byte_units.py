import re


BYTE_UNITS = {
    "b": 1,
    "k": 1024,
    "m": 1024 ** 2,
    "g": 1024 ** 3,
    "t": 1024 ** 4,
    "p": 1024 ** 5,
}

SUFFIXES = {
    "b": "b",
    "k": "k",
    "kb": "k",
    "m": "m",
    "mb": "m",
    "g": "g",
    "gb": "g",
    "t": "t",
    "tb": "t",
    "p": "p",
    "pb": "p",
}

MAX_BYTES = 2 ** 63 - 1

_SIZE_RE = re.compile(r"^([0-9]+)([a-z]+)?$")
_FRACTION_RE = re.compile(r"^([0-9]+\.[0-9]+)([a-z]+)?$")


def byte_string_as(size_str, unit: str) -> int:
    """Convert a size string such as '8m' or '512KB' into a count of `unit`.

    A bare number, string or integer, is taken to already be in `unit`.
    Multipliers are binary and conversions into a coarser unit truncate. Sizes
    above 2**63 - 1 bytes are rejected.
    """
    unit = unit.lower()
    if unit not in BYTE_UNITS:
        raise ValueError(f"Unknown byte unit '{unit}'. Use one of {list(BYTE_UNITS)}")

    if isinstance(size_str, bool):
        raise ValueError(f"size='{size_str}' is not a byte size")

    s = str(size_str).strip().lower()
    m = _SIZE_RE.match(s)
    if m:
        value = int(m.group(1))
        suffix = m.group(2)
        if suffix is None:
            multiplier = BYTE_UNITS[unit]
        elif suffix in SUFFIXES:
            multiplier = BYTE_UNITS[SUFFIXES[suffix]]
        else:
            raise ValueError(f"Invalid suffix: '{suffix}' in size='{size_str}'")
        num_bytes = value * multiplier
        if num_bytes > MAX_BYTES:
            raise ValueError(f"size='{size_str}' is too large, the limit is {MAX_BYTES} bytes")
        return num_bytes // BYTE_UNITS[unit]

    if _FRACTION_RE.match(s):
        raise ValueError(f"Fractional values are not supported. Input was: {size_str}")

    raise ValueError(
        f"size='{size_str}' has unknown format. Use bytes (b), kibibytes (k), mebibytes (m), "
        f"gibibytes (g), tebibytes (t) or pebibytes (p), e.g. '50b', '100k', '250m'"
    )


def byte_string_as_bytes(size_str) -> int:
    return byte_string_as(size_str, "b")


def byte_string_as_kb(size_str) -> int:
    return byte_string_as(size_str, "k")


def byte_string_as_mb(size_str) -> int:
    return byte_string_as(size_str, "m")


def byte_string_as_gb(size_str) -> int:
    return byte_string_as(size_str, "g")


def format_bytes(num_bytes: int) -> str:
    """Render a byte count with the largest binary unit that divides it exactly."""
    if num_bytes == 0:
        return "0"
    for suffix in ("p", "t", "g", "m", "k"):
        multiplier = BYTE_UNITS[suffix]
        if num_bytes % multiplier == 0:
            return f"{num_bytes // multiplier}{suffix}"
    return f"{num_bytes}b"
