from decimal import Decimal, InvalidOperation
from typing import Optional, Union

BYTES_PER_GB = Decimal(1024**3)

# Binary suffixes must be checked before the single-letter decimal ones.
_BINARY_SUFFIXES = {
    "Ki": Decimal(1024),
    "Mi": Decimal(1024**2),
    "Gi": Decimal(1024**3),
    "Ti": Decimal(1024**4),
    "Pi": Decimal(1024**5),
    "Ei": Decimal(1024**6),
}
_DECIMAL_SUFFIXES = {
    "n": Decimal("0.000000001"),
    "u": Decimal("0.000001"),
    "m": Decimal("0.001"),
    "k": Decimal(1000),
    "M": Decimal(1000**2),
    "G": Decimal(1000**3),
    "T": Decimal(1000**4),
    "P": Decimal(1000**5),
    "E": Decimal(1000**6),
}

Quantity = Union[str, int, float, Decimal, None]


def parse_quantity(quantity: Quantity) -> Decimal:
    """
    Parse a Kubernetes quantity ('500m', '2Gi', '128974848', '1e3') to Decimal.

    Unparseable input yields Decimal(0).
    """
    if quantity is None:
        return Decimal(0)
    if isinstance(quantity, (int, float, Decimal)):
        return Decimal(quantity)

    text = str(quantity).strip()
    multiplier = Decimal(1)
    number = text

    for suffix, factor in _BINARY_SUFFIXES.items():
        if text.endswith(suffix):
            number, multiplier = text[: -len(suffix)], factor
            break
    else:
        if text and text[-1] in _DECIMAL_SUFFIXES:
            number, multiplier = text[:-1], _DECIMAL_SUFFIXES[text[-1]]

    try:
        return Decimal(number) * multiplier
    except (InvalidOperation, ValueError):
        return Decimal(0)


def parse_cpu_cores(cpu: Quantity) -> float:
    """Converts a K8s CPU quantity to cores ('250m' -> 0.25)."""
    if not cpu:
        return 0.0
    return float(parse_quantity(cpu))


def parse_memory_gb(memory: Quantity) -> float:
    """Converts a K8s memory quantity to GB, with 1 GB = 1024**3 bytes ('512Mi' -> 0.5)."""
    if not memory:
        return 0.0
    return float(parse_quantity(memory) / BYTES_PER_GB)


def bytes_to_gb(value: Optional[float]) -> float:
    if not value:
        return 0.0
    return float(Decimal(str(value)) / BYTES_PER_GB)
