"""ConnectionPool: per-address cache of Modbus/TCP sessions behind one pool-wide lock."""

import asyncio
import logging
from contextlib import asynccontextmanager
from functools import partial
from typing import AsyncIterator, Awaitable, Callable, Protocol

from pymodbus.client import AsyncModbusTcpClient
from pymodbus.exceptions import ModbusException

from .errors import ConnectError, ReadError
from .types import RemoteAddress

logger = logging.getLogger(__name__)

UNIT_ID = 1
DEFAULT_TIMEOUT = 3.0


class Session(Protocol):
    """What the scrape pipeline needs from a connected device."""

    async def read_input_registers(self, address: int, count: int) -> list[int]: ...

    def close(self) -> None: ...


Connector = Callable[[RemoteAddress], Awaitable[Session]]


async def _dial_error(address: RemoteAddress, timeout: float) -> str:
    """
    Cause text for a failed connect. pymodbus only reports False, so dial once more
    with a plain socket to recover the OS error.
    """
    try:
        _reader, writer = await asyncio.wait_for(asyncio.open_connection(address.host, address.port), timeout)
    except asyncio.TimeoutError:
        return f"timed out after {timeout}s"
    except OSError as e:
        return str(e) or type(e).__name__
    writer.close()
    return "Modbus client failed to connect"


class ModbusSession:
    """
    One live Modbus/TCP connection to a FEMS device, addressed as unit `unit_id`.
    Wraps pymodbus AsyncModbusTcpClient with library retries and auto-reconnect off:
    a failed request surfaces immediately as ReadError.
    """

    def __init__(self, address: RemoteAddress, client: AsyncModbusTcpClient, unit_id: int = UNIT_ID) -> None:
        self._address = address
        self._client = client
        self._unit_id = unit_id

    @classmethod
    async def connect(
        cls,
        address: RemoteAddress,
        *,
        unit_id: int = UNIT_ID,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> "ModbusSession":
        """Open a TCP connection to `address`; raise ConnectError if it cannot be established."""
        client = AsyncModbusTcpClient(
            address.host,
            port=address.port,
            timeout=timeout,
            retries=0,
            reconnect_delay=0,
        )
        try:
            connected = await client.connect()
        except (ModbusException, OSError) as e:
            client.close()
            raise ConnectError(address, e) from e
        if not connected:
            client.close()
            raise ConnectError(address, await _dial_error(address, timeout))
        session = cls(address, client)
        session.set_unit(unit_id)
        return session

    @property
    def address(self) -> RemoteAddress:
        return self._address

    @property
    def unit_id(self) -> int:
        return self._unit_id

    def set_unit(self, unit_id: int) -> None:
        self._unit_id = unit_id

    async def read_input_registers(self, address: int, count: int) -> list[int]:
        """Read `count` input registers starting at `address`; exactly `count` words or ReadError."""
        try:
            rr = await self._client.read_input_registers(address, count=count, device_id=self._unit_id)
        except (ModbusException, OSError, asyncio.TimeoutError) as e:
            raise ReadError(str(e) or type(e).__name__, address=address, count=count, cause=e) from e
        if rr.isError():
            raise ReadError(
                str(rr),
                address=address,
                count=count,
                cause=getattr(rr, "exception", None),
            )
        registers = getattr(rr, "registers", None)
        if registers is None or len(registers) != count:
            raise ReadError(
                f"Short register response: expected {count}, got {len(registers or [])}",
                address=address,
                count=count,
            )
        return [int(r) for r in registers]

    def close(self) -> None:
        self._client.close()


class ConnectionPool:
    """
    Map of RemoteAddress -> Session, created lazily on first use and kept for the
    life of the pool. A single asyncio.Lock covers the map and every session in it;
    `session()` holds it for the whole block, so scrapes never interleave, even
    against different devices.

    Sessions are not evicted or revalidated: one that failed a read stays cached and
    is handed out again on the next request.
    """

    def __init__(
        self,
        connector: Connector | None = None,
        *,
        unit_id: int = UNIT_ID,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        self._sessions: dict[RemoteAddress, Session] = {}
        self._lock = asyncio.Lock()
        if connector is None:
            connector = partial(ModbusSession.connect, unit_id=unit_id, timeout=timeout)
        self._connector = connector

    async def acquire(self, address: RemoteAddress) -> Session:
        """
        Return the cached session for `address`, connecting on a miss.
        Caller must hold the pool lock; use `session()`.
        """
        if not self._lock.locked():
            raise RuntimeError("ConnectionPool.acquire() called without holding the pool lock")
        existing = self._sessions.get(address)
        if existing is not None:
            return existing

        logger.debug("No session for %s, connecting", address)
        try:
            session = await self._connector(address)
        except ConnectError as e:
            logger.warning("Connect to %s failed: %s", address, e.reason)
            raise
        except (ModbusException, OSError, asyncio.TimeoutError) as e:
            logger.warning("Connect to %s failed: %s", address, e)
            raise ConnectError(address, e) from e
        self._sessions[address] = session
        unit_id = getattr(session, "unit_id", None)
        if unit_id is None:
            logger.info("Opened Modbus/TCP session to %s", address)
        else:
            logger.info("Opened Modbus/TCP session to %s (unit %d)", address, unit_id)
        return session

    @asynccontextmanager
    async def session(self, address: RemoteAddress) -> AsyncIterator[Session]:
        """Hold the pool lock and yield the session for `address` until the block exits."""
        async with self._lock:
            yield await self.acquire(address)

    async def close(self) -> None:
        """Close every session and empty the pool."""
        async with self._lock:
            for address, session in self._sessions.items():
                try:
                    session.close()
                except Exception as e:
                    logger.warning("Error closing session to %s: %s", address, e)
            self._sessions.clear()

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, address: object) -> bool:
        return address in self._sessions
