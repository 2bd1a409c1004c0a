"""Core data model: value types, metric descriptors and remote addresses."""

import re
from dataclasses import dataclass
from enum import Enum

_WORD_COUNTS: dict[str, int] = {
    "u16": 1,
    "f32": 2,
    "f64": 4,
}

# "host:port" or "[v6-addr]:port"
_ADDRESS_PATTERN = re.compile(r"^(?:\[(?P<v6>[^\[\]\s]+)\]|(?P<host>[^:\[\]\s]+)):(?P<port>\d{1,5})$")


class ValueType(str, Enum):
    """How a group of consecutive input registers is interpreted."""

    UINT16 = "u16"
    FLOAT32 = "f32"
    FLOAT64 = "f64"

    @property
    def word_count(self) -> int:
        """Number of 16-bit registers this type occupies."""
        return _WORD_COUNTS[self.value]


@dataclass(frozen=True)
class MetricDescriptor:
    """One row of the register table: metric name, fixed labels, first register, type."""

    name: str
    labels: tuple[tuple[str, str], ...]
    address: int
    value_type: ValueType

    def __post_init__(self) -> None:
        if not self.name:
            raise ValueError("metric name cannot be empty")
        if self.address < 0:
            raise ValueError(f"address must be >= 0, got {self.address}")
        last = self.address + self.value_type.word_count - 1
        if last > 0xFFFF:
            raise ValueError(f"{self.name}: registers {self.address}..{last} exceed the 16-bit address space")

    @property
    def word_count(self) -> int:
        return self.value_type.word_count


@dataclass(frozen=True)
class RemoteAddress:
    """Socket address of a FEMS Modbus/TCP endpoint."""

    host: str
    port: int

    def __post_init__(self) -> None:
        if not self.host:
            raise ValueError("host cannot be empty")
        if not 0 <= self.port <= 65535:
            raise ValueError(f"port out of range 0-65535: {self.port}")

    @classmethod
    def parse(cls, raw: str) -> "RemoteAddress":
        """
        Parse ``host:port`` (or ``[ipv6]:port``). A port is mandatory.

        Raises ValueError for anything else.
        """
        s = raw.strip()
        m = _ADDRESS_PATTERN.match(s)
        if not m:
            raise ValueError(f"invalid socket address: {raw!r}")
        host = m.group("v6") or m.group("host")
        return cls(host=host, port=int(m.group("port")))

    def __str__(self) -> str:
        if ":" in self.host:
            return f"[{self.host}]:{self.port}"
        return f"{self.host}:{self.port}"
