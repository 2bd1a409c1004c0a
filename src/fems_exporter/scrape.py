"""Scrape pipeline: read every catalog register from one device and build the exposition report."""

import logging
from dataclasses import dataclass

from .catalog import RegisterCatalog, get_default_catalog
from .decode import decode, format_value
from .errors import ConnectError, ReadError
from .pool import ConnectionPool
from .types import MetricDescriptor, RemoteAddress

logger = logging.getLogger(__name__)

DEVICE_LABEL = "fems_id"


@dataclass(frozen=True)
class ScrapeResult:
    """Outcome of one scrape: the full report, or a single error message."""

    ok: bool
    body: str

    @property
    def status(self) -> int:
        """HTTP status the result maps to."""
        return 200 if self.ok else 500


def format_labels(labels: tuple[tuple[str, str], ...], device_label: str) -> str:
    """Render `k = "v"` pairs joined by ", ", descriptor labels first, fems_id last."""
    pairs = list(labels) + [(DEVICE_LABEL, device_label)]
    return ", ".join(f'{key} = "{value}"' for key, value in pairs)


def format_line(descriptor: MetricDescriptor, device_label: str, value_text: str) -> str:
    """One exposition line, newline-terminated."""
    return f"{descriptor.name}{{{format_labels(descriptor.labels, device_label)}}} {value_text}\n"


async def scrape(
    pool: ConnectionPool,
    address: RemoteAddress,
    device_label: str,
    catalog: RegisterCatalog | None = None,
) -> ScrapeResult:
    """
    Read the whole catalog from the device at `address`, in catalog order.

    The pool lock is held from session lookup through the last register read. The first
    failure ends the scrape and nothing read so far is returned.
    """
    if catalog is None:
        catalog = get_default_catalog()

    lines: list[str] = []
    try:
        async with pool.session(address) as session:
            for descriptor in catalog:
                try:
                    words = await session.read_input_registers(descriptor.address, descriptor.word_count)
                except ReadError as e:
                    logger.warning(
                        "Read of %s (%d word(s) at %d) from %s failed: %s",
                        descriptor.name,
                        descriptor.word_count,
                        descriptor.address,
                        address,
                        e,
                    )
                    return ScrapeResult(ok=False, body=f"unable to read modbus input register: {e}")
                value = decode(descriptor.value_type, words)
                lines.append(format_line(descriptor, device_label, format_value(descriptor.value_type, value)))
    except ConnectError as e:
        return ScrapeResult(ok=False, body=f"unable to connect to fems modbus at {e.address}: {e.reason}")

    logger.debug("Scraped %d metrics from %s (%s)", len(lines), address, device_label)
    return ScrapeResult(ok=True, body="".join(lines))
