"""fems-exporter: FEMS Modbus/TCP input registers as Prometheus exposition text."""

__version__ = "0.1.0"

from .catalog import RegisterCatalog, get_default_catalog
from .decode import decode, encode, format_value
from .errors import ConnectError, DecodeContractError, FemsExporterError, ReadError
from .pool import ConnectionPool, ModbusSession
from .scrape import ScrapeResult, format_line, scrape
from .types import MetricDescriptor, RemoteAddress, ValueType

__all__ = [
    "__version__",
    "ConnectionPool",
    "ModbusSession",
    "ConnectError",
    "DecodeContractError",
    "FemsExporterError",
    "ReadError",
    "RegisterCatalog",
    "get_default_catalog",
    "decode",
    "encode",
    "format_value",
    "ScrapeResult",
    "format_line",
    "scrape",
    "MetricDescriptor",
    "RemoteAddress",
    "ValueType",
]
