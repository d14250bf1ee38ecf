"""Shared fakes: a manual clock, an in-memory serial channel and a mock slave."""

from __future__ import annotations

import pytest

from hs321_mcp.drive import HS321Drive
from hs321_mcp.errors import HS321Error
from hs321_mcp.protocol.commands import FunctionCode
from hs321_mcp.protocol.framing import (
    build_exception_response,
    build_read_response,
    build_write_response,
    parse_request,
)
from hs321_mcp.transport.serial_connection import CallbackDirection, SerialTransport


class FakeClock:
    """Monotonic clock that only moves when ``sleep`` is called."""

    def __init__(self) -> None:
        self.now = 0.0

    def time(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.now += seconds


class FakeChannel:
    """pyserial stand-in. Incoming bytes become readable at scheduled times."""

    def __init__(self, clock: FakeClock) -> None:
        self.clock = clock
        self.written: list[bytes] = []
        self.events: list[str] = []
        self.closed = False
        self._incoming: list[tuple[float, int]] = []

    def schedule(self, data: bytes, start: float = 0.0, gap: float = 0.001) -> None:
        """Make ``data`` arrive one byte every ``gap`` seconds from ``start``."""
        for i, byte in enumerate(data):
            self._incoming.append((self.clock.now + start + i * gap, byte))
        self._incoming.sort(key=lambda item: item[0])

    @property
    def in_waiting(self) -> int:
        return sum(1 for t, _ in self._incoming if t <= self.clock.now)

    def read(self, size: int = 1) -> bytes:
        ready = [b for t, b in self._incoming if t <= self.clock.now][:size]
        del self._incoming[: len(ready)]
        return bytes(ready)

    def write(self, data: bytes) -> int:
        self.events.append("write")
        self.written.append(bytes(data))
        self.on_write(bytes(data))
        return len(data)

    def on_write(self, data: bytes) -> None:
        pass

    def flush(self) -> None:
        self.events.append("flush")

    def reset_input_buffer(self) -> None:
        self._incoming = [(t, b) for t, b in self._incoming if t > self.clock.now]

    def close(self) -> None:
        self.closed = True


class MockSlave(FakeChannel):
    """Answers Modbus requests from an in-memory register map."""

    def __init__(self, clock: FakeClock, address: int = 1) -> None:
        super().__init__(clock)
        self.address = address
        self.registers: dict[int, int] = {}
        self.exception_code: int | None = None
        self.reply_override: bytes | None = None
        self.latency = 0.005
        self.requests = []

    def on_write(self, data: bytes) -> None:
        try:
            request = parse_request(data)
        except HS321Error:
            return
        self.requests.append(request)
        if request.slave != self.address:
            return
        self.schedule(self._reply(request), start=self.latency)

    def _reply(self, request) -> bytes:
        if self.reply_override is not None:
            return self.reply_override
        if self.exception_code is not None:
            return build_exception_response(
                self.address, request.function, self.exception_code
            )
        if request.function == FunctionCode.READ_HOLDING_REGISTERS:
            values = [
                self.registers.get(request.address + i, 0) for i in range(request.count)
            ]
            return build_read_response(self.address, values)
        for i, value in enumerate(request.values):
            self.registers[request.address + i] = value
        word = request.values[0] if request.function == FunctionCode.WRITE_SINGLE_REGISTER else request.count
        return build_write_response(self.address, request.function, request.address, word)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def channel(clock) -> FakeChannel:
    return FakeChannel(clock)


@pytest.fixture
def levels() -> list[bool]:
    """Every level written to the direction signal, in order."""
    return []


@pytest.fixture
def transport(channel, clock, levels) -> SerialTransport:
    return SerialTransport(
        channel,
        CallbackDirection(levels.append),
        baudrate=9600,
        clock=clock.time,
        sleep=clock.sleep,
    )


@pytest.fixture
def slave(clock) -> MockSlave:
    return MockSlave(clock, address=1)


@pytest.fixture
def drive(slave, clock) -> HS321Drive:
    transport = SerialTransport(
        slave, baudrate=9600, clock=clock.time, sleep=clock.sleep
    )
    return HS321Drive(transport, slave_address=1).open()
