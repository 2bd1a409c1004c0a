"""Shared fakes: in-memory FEMS sessions and a recording connector."""

import asyncio

import pytest

from fems_exporter.errors import ConnectError, ReadError
from fems_exporter.pool import ConnectionPool
from fems_exporter.types import RemoteAddress


class FakeSession:
    """In-memory device: register address -> word. Unset registers read as 0."""

    def __init__(
        self,
        address: RemoteAddress,
        registers: dict[int, int] | None = None,
        fail_at: set[int] | None = None,
        trace: list | None = None,
    ) -> None:
        self.address = address
        self.registers = dict(registers or {})
        self.fail_at = set(fail_at or ())
        self.trace = trace if trace is not None else []
        self.reads: list[tuple[int, int]] = []
        self.closed = False

    async def read_input_registers(self, address: int, count: int) -> list[int]:
        self.reads.append((address, count))
        self.trace.append((self.address, address))
        # yield so concurrent scrapes get a chance to interleave
        await asyncio.sleep(0)
        if address in self.fail_at:
            raise ReadError("Exception Response(132, 4, IllegalAddress)", address=address, count=count)
        return [self.registers.get(address + i, 0) for i in range(count)]

    def close(self) -> None:
        self.closed = True


class FakeConnector:
    """Connector that builds FakeSessions and records every connect attempt."""

    def __init__(self, registers: dict[int, int] | None = None) -> None:
        self.registers = registers or {}
        self.refuse: set[RemoteAddress] = set()
        self.fail_at: set[int] = set()
        self.calls: list[RemoteAddress] = []
        self.sessions: dict[RemoteAddress, FakeSession] = {}
        self.trace: list = []

    async def __call__(self, address: RemoteAddress) -> FakeSession:
        self.calls.append(address)
        await asyncio.sleep(0)
        if address in self.refuse:
            raise ConnectError(address, ConnectionRefusedError(111, "Connection refused"))
        session = FakeSession(address, self.registers, self.fail_at, self.trace)
        self.sessions[address] = session
        return session


@pytest.fixture
def connector() -> FakeConnector:
    return FakeConnector()


@pytest.fixture
def pool(connector: FakeConnector) -> ConnectionPool:
    return ConnectionPool(connector=connector)


@pytest.fixture
def device() -> RemoteAddress:
    return RemoteAddress("192.168.1.20", 502)
