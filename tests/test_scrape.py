"""Tests for the scrape pipeline: ordering, formatting, fail-fast errors, session reuse."""

import asyncio

import pytest

from fems_exporter import RegisterCatalog, ScrapeResult, format_line, scrape
from fems_exporter.decode import encode
from fems_exporter.types import MetricDescriptor, RemoteAddress, ValueType


@pytest.fixture
def small_catalog() -> RegisterCatalog:
    return RegisterCatalog(
        [
            {"name": "fems_state", "labels": [], "address": 222, "type": "u16"},
            {"name": "fems_ess_power_watts_total", "labels": [], "address": 303, "type": "f32"},
            {"name": "fems_grid_power_watts", "labels": [["phase", "l1"]], "address": 397, "type": "f32"},
            {"name": "fems_grid_buy_energy_watthours", "labels": [], "address": 359, "type": "f64"},
        ]
    )


def _registers(start: int, words: list[int]) -> dict[int, int]:
    return {start + i: w for i, w in enumerate(words)}


def test_format_line_labels_order() -> None:
    d = MetricDescriptor("fems_production_power_watts", (("type", "ac"), ("phase", "l1")), 403, ValueType.FLOAT32)
    assert format_line(d, "d", "1.5") == 'fems_production_power_watts{type = "ac", phase = "l1", fems_id = "d"} 1.5\n'


def test_format_line_no_labels() -> None:
    d = MetricDescriptor("fems_state", (), 222, ValueType.UINT16)
    assert format_line(d, "plant-1", "3") == 'fems_state{fems_id = "plant-1"} 3\n'


def test_scrape_single_uint16(pool, connector, device) -> None:
    connector.registers = {222: 0x0003}
    catalog = RegisterCatalog([{"name": "fems_state", "address": 222, "type": "u16"}])
    result = asyncio.run(scrape(pool, device, "plant-1", catalog))
    assert result == ScrapeResult(ok=True, body='fems_state{fems_id = "plant-1"} 3\n')
    assert result.status == 200


def test_scrape_single_float32(pool, connector, device) -> None:
    connector.registers = {303: 0x4120, 304: 0x0000}
    catalog = RegisterCatalog([{"name": "fems_ess_power_watts_total", "address": 303, "type": "f32"}])
    result = asyncio.run(scrape(pool, device, "x", catalog))
    assert result.ok
    assert result.body == 'fems_ess_power_watts_total{fems_id = "x"} 10\n'


def test_scrape_catalog_order_and_types(pool, connector, device, small_catalog) -> None:
    regs: dict[int, int] = {}
    regs.update(_registers(222, [1]))
    regs.update(_registers(303, encode(ValueType.FLOAT32, -1500.25)))
    regs.update(_registers(397, encode(ValueType.FLOAT32, 230.5)))
    regs.update(_registers(359, encode(ValueType.FLOAT64, 123456.789)))
    connector.registers = regs

    result = asyncio.run(scrape(pool, device, "home", small_catalog))
    assert result.ok
    assert result.body == (
        'fems_state{fems_id = "home"} 1\n'
        'fems_ess_power_watts_total{fems_id = "home"} -1500.25\n'
        'fems_grid_power_watts{phase = "l1", fems_id = "home"} 230.5\n'
        'fems_grid_buy_energy_watthours{fems_id = "home"} 123456.789\n'
    )
    session = connector.sessions[device]
    assert session.reads == [(222, 1), (303, 2), (397, 2), (359, 4)]


def test_read_failure_discards_partial_output(pool, connector, device, small_catalog) -> None:
    connector.registers = {222: 7}
    connector.fail_at = {397}
    result = asyncio.run(scrape(pool, device, "home", small_catalog))
    assert not result.ok
    assert result.status == 500
    assert result.body.startswith("unable to read modbus input register: ")
    assert "IllegalAddress" in result.body
    assert "fems_state" not in result.body
    # stopped at the failing register
    assert connector.sessions[device].reads == [(222, 1), (303, 2), (397, 2)]


def test_broken_session_stays_cached(pool, connector, device, small_catalog) -> None:
    connector.fail_at = {222}

    async def run() -> tuple[ScrapeResult, ScrapeResult]:
        first = await scrape(pool, device, "home", small_catalog)
        second = await scrape(pool, device, "home", small_catalog)
        return first, second

    first, second = asyncio.run(run())
    assert first == second
    assert first.body.startswith("unable to read modbus input register")
    assert connector.calls == [device]


def test_connect_failure_message(pool, connector, device, small_catalog) -> None:
    connector.refuse.add(device)
    result = asyncio.run(scrape(pool, device, "home", small_catalog))
    assert not result.ok
    assert result.body == (
        "unable to connect to fems modbus at 192.168.1.20:502: [Errno 111] Connection refused"
    )


def test_session_reused_across_scrapes(pool, connector, device, small_catalog) -> None:
    other = RemoteAddress("10.0.0.9", 502)

    async def run() -> None:
        await scrape(pool, device, "a", small_catalog)
        await scrape(pool, device, "a", small_catalog)
        await scrape(pool, other, "b", small_catalog)

    asyncio.run(run())
    assert connector.calls == [device, other]


def test_concurrent_scrapes_do_not_interleave(pool, connector, device, small_catalog) -> None:
    other = RemoteAddress("10.0.0.9", 502)

    async def run() -> list[ScrapeResult]:
        return await asyncio.gather(
            scrape(pool, device, "a", small_catalog),
            scrape(pool, other, "b", small_catalog),
            scrape(pool, device, "a", small_catalog),
        )

    results = asyncio.run(run())
    assert all(r.ok for r in results)
    devices = [addr for addr, _ in connector.trace]
    # each scrape's reads form one contiguous run of len(catalog)
    runs = [devices[i : i + len(small_catalog)] for i in range(0, len(devices), len(small_catalog))]
    assert len(runs) == 3
    for run_ in runs:
        assert len(set(run_)) == 1


def test_default_catalog_used(pool, connector, device) -> None:
    result = asyncio.run(scrape(pool, device, "full"))
    assert result.ok
    lines = result.body.splitlines()
    assert len(lines) == 32
    assert lines[0] == 'fems_state{fems_id = "full"} 0'
    assert lines[-1] == 'fems_consumption_energy_watthours{fems_id = "full"} 0'
