"""Half-duplex RS485 transport for Modbus RTU.

The drive sits on a two-wire bus where only one side talks at a time. A
direction signal (the DE/RE pin of the line driver, usually wired to the
adapter's RTS line) is raised for transmit and dropped straight after the
last bit has left the UART.

Replies are framed by time alone: the receiver waits for an exact byte
count and gives up on either of two timeouts:

- stall: no byte at all for ``stall_timeout`` seconds (reset on every byte)
- inter-character: once bytes are flowing, a gap longer than 3.5 character
  times scaled by the expected length
"""

from __future__ import annotations

import logging
import math
import time
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Callable, Iterator

import serial

from ..errors import ArgumentError, TransportError, TransportTimeout

logger = logging.getLogger(__name__)

DEFAULT_BAUDRATE = 9600
STALL_TIMEOUT = 2.0  # seconds
BITS_PER_CHARACTER = 10  # start + 8 data + stop
INTER_CHARACTER_PERIODS = 3.5
POLL_INTERVAL = 0.001  # seconds

SERIAL_FORMATS: dict[str, tuple[int, str, float]] = {
    "N81": (serial.EIGHTBITS, serial.PARITY_NONE, serial.STOPBITS_ONE),
    "N82": (serial.EIGHTBITS, serial.PARITY_NONE, serial.STOPBITS_TWO),
    "E81": (serial.EIGHTBITS, serial.PARITY_EVEN, serial.STOPBITS_ONE),
    "O81": (serial.EIGHTBITS, serial.PARITY_ODD, serial.STOPBITS_ONE),
}

DIRECTION_MODES = ("rts", "rts-inverted", "none")


def parse_serial_format(fmt: str) -> tuple[int, str, float]:
    """Turn ``"N81"``-style notation into pyserial (bytesize, parity, stopbits).

    Raises:
        ArgumentError: For formats the drive does not support.
    """
    key = fmt.upper().strip()
    try:
        return SERIAL_FORMATS[key]
    except KeyError:
        raise ArgumentError(
            f"Unsupported serial format: {fmt}. "
            f"Use one of {', '.join(SERIAL_FORMATS)}."
        ) from None


def inter_character_timeout(baudrate: int) -> float:
    """Seconds needed to transmit 3.5 characters at ``baudrate``."""
    if baudrate <= 0:
        raise ArgumentError(f"Baud rate must be positive, got {baudrate}")
    return INTER_CHARACTER_PERIODS * BITS_PER_CHARACTER / baudrate


@contextmanager
def _channel_errors(action: str) -> Iterator[None]:
    """Re-raise pyserial failures as :class:`TransportError`."""
    try:
        yield
    except serial.SerialException as e:
        raise TransportError(f"Serial {action} failed: {e}") from e


# ─── DIRECTION CONTROL ───────────────────────────────────────────────

class Direction:
    """Binary line-driver control. Low = receive, high = transmit."""

    def transmit(self) -> None:
        raise NotImplementedError

    def receive(self) -> None:
        raise NotImplementedError


class NoDirection(Direction):
    """For adapters that switch direction on their own."""

    def transmit(self) -> None:
        pass

    def receive(self) -> None:
        pass


class CallbackDirection(Direction):
    """Drive the direction signal through ``callback(level)``, e.g. a GPIO setter."""

    def __init__(self, callback: Callable[[bool], Any]) -> None:
        self._callback = callback

    def transmit(self) -> None:
        self._callback(True)

    def receive(self) -> None:
        self._callback(False)


class RtsDirection(Direction):
    """Use the serial port's RTS line as the DE/RE signal."""

    def __init__(self, port: serial.Serial, inverted: bool = False) -> None:
        self._port = port
        self._inverted = inverted

    def transmit(self) -> None:
        self._port.rts = not self._inverted

    def receive(self) -> None:
        self._port.rts = self._inverted


def check_direction_mode(mode: str) -> None:
    if mode not in DIRECTION_MODES:
        raise ArgumentError(
            f"Unknown direction mode {mode!r}. Use one of {', '.join(DIRECTION_MODES)}."
        )


def make_direction(mode: str, port: serial.Serial) -> Direction:
    """Build a :class:`Direction` from its configuration name."""
    check_direction_mode(mode)
    if mode == "rts":
        return RtsDirection(port)
    if mode == "rts-inverted":
        return RtsDirection(port, inverted=True)
    return NoDirection()


# ─── SERIAL SETTINGS ─────────────────────────────────────────────────

@dataclass
class SerialSettings:
    """Where and how to open the RS485 adapter."""

    port: str
    baudrate: int = DEFAULT_BAUDRATE
    serial_format: str = "N81"
    direction: str = "rts"
    stall_timeout: float = STALL_TIMEOUT

    def open_port(self) -> serial.Serial:
        """Open the serial port described by these settings.

        Raises:
            ArgumentError: For an unknown serial format or direction mode.
            ConnectionError: If the port cannot be opened.
        """
        bytesize, parity, stopbits = parse_serial_format(self.serial_format)
        check_direction_mode(self.direction)
        try:
            port = serial.Serial(
                port=self.port,
                baudrate=self.baudrate,
                bytesize=bytesize,
                parity=parity,
                stopbits=stopbits,
                timeout=0,
                write_timeout=self.stall_timeout,
                rtscts=False,
                dsrdtr=False,
            )
        except serial.SerialException as e:
            raise ConnectionError(f"Could not open {self.port}: {e}") from e

        logger.info(
            "Opened %s at %d baud (%s)", self.port, self.baudrate, self.serial_format
        )
        return port


# ─── TRANSPORT ───────────────────────────────────────────────────────

class SerialTransport:
    """Moves request/response frames over a half-duplex byte channel.

    ``channel`` is anything with pyserial's ``write``/``flush``/``read``
    methods and ``in_waiting`` attribute. The transport does no locking;
    callers sharing one bus across threads must serialise exchanges.

    Usage::

        transport = SerialTransport.from_settings(SerialSettings("/dev/ttyUSB0"))
        transport.send(frame)
        reply = transport.receive(8)
        transport.close()
    """

    def __init__(
        self,
        channel: Any,
        direction: Direction | None = None,
        baudrate: int = DEFAULT_BAUDRATE,
        stall_timeout: float = STALL_TIMEOUT,
        *,
        poll_interval: float = POLL_INTERVAL,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Any] = time.sleep,
        owns_channel: bool = False,
        log: logging.Logger | None = None,
    ) -> None:
        self._channel = channel
        self._direction = direction or NoDirection()
        self._stall_timeout = stall_timeout
        self._inter_character_timeout = inter_character_timeout(baudrate)
        self._poll_interval = poll_interval
        self._clock = clock
        self._sleep = sleep
        self._owns_channel = owns_channel
        self._log = log or logger

        self._direction.receive()

    @classmethod
    def from_settings(cls, settings: SerialSettings, **kwargs: Any) -> SerialTransport:
        """Open the port from ``settings`` and wrap it in a transport."""
        port = settings.open_port()
        try:
            return cls(
                port,
                make_direction(settings.direction, port),
                baudrate=settings.baudrate,
                stall_timeout=settings.stall_timeout,
                owns_channel=True,
                **kwargs,
            )
        except Exception:
            port.close()
            raise

    @property
    def stall_timeout(self) -> float:
        return self._stall_timeout

    @property
    def inter_character_timeout(self) -> float:
        """Per-character gap allowance (3.5 characters) in seconds."""
        return self._inter_character_timeout

    def character_timeout(self, expected_length: int) -> float:
        """Gap allowance for a reply of ``expected_length`` bytes.

        Rounded up to whole milliseconds.
        """
        return math.ceil(self._inter_character_timeout * expected_length * 1000) / 1000

    def set_receive_mode(self) -> None:
        """Force the direction signal to receive."""
        self._direction.receive()

    def clear_input(self) -> None:
        """Drop any stale bytes left in the receive buffer."""
        reset = getattr(self._channel, "reset_input_buffer", None)
        if reset is not None:
            with _channel_errors("input reset"):
                reset()

    def send(self, frame: bytes) -> None:
        """Transmit ``frame`` and return the bus to receive mode.

        ``flush()`` blocks until the UART has shifted out the last bit, so
        the direction signal is only dropped once the frame is on the wire.

        Raises:
            TransportTimeout: If the port write timed out (reason ``"write"``).
            TransportError: On any other serial failure.
        """
        self._log.debug("TX: %s (%d bytes)", frame.hex(" "), len(frame))
        self._direction.transmit()
        try:
            self._channel.write(frame)
            self._channel.flush()
        except serial.SerialTimeoutException as e:
            raise TransportTimeout(len(frame), b"", "write") from e
        except serial.SerialException as e:
            raise TransportError(f"Serial write failed: {e}") from e
        finally:
            self._direction.receive()

    def receive(self, expected_length: int) -> bytes:
        """Collect exactly ``expected_length`` bytes.

        Raises:
            ArgumentError: If ``expected_length`` is not positive.
            TransportTimeout: On a stall or an inter-character gap. The bytes
                collected so far are attached to the exception.
            TransportError: If the serial port fails while reading.
        """
        if expected_length <= 0:
            raise ArgumentError(f"Expected length must be positive, got {expected_length}")

        char_timeout = self.character_timeout(expected_length)
        buffer = bytearray()
        last_byte_time = self._clock()

        while len(buffer) < expected_length:
            with _channel_errors("read"):
                waiting = self._channel.in_waiting
                chunk = (
                    self._channel.read(min(waiting, expected_length - len(buffer)))
                    if waiting
                    else b""
                )
            if chunk:
                buffer += chunk
                last_byte_time = self._clock()
                continue

            idle = self._clock() - last_byte_time
            if idle > self._stall_timeout:
                self._log.debug(
                    "Stall timeout: received %d/%d bytes", len(buffer), expected_length
                )
                raise TransportTimeout(expected_length, buffer, "stall")
            if buffer and idle > char_timeout:
                self._log.debug(
                    "Inter-character timeout: received %d/%d bytes: %s",
                    len(buffer),
                    expected_length,
                    buffer.hex(" "),
                )
                raise TransportTimeout(expected_length, buffer, "inter-character")

            self._sleep(self._poll_interval)

        self._log.debug("RX: %s (%d bytes)", buffer.hex(" "), len(buffer))
        return bytes(buffer)

    def exchange(self, frame: bytes, expected_length: int) -> bytes:
        """Send ``frame`` and wait for a reply of ``expected_length`` bytes."""
        self.clear_input()
        self.send(frame)
        return self.receive(expected_length)

    def close(self) -> None:
        """Leave the bus in receive mode and close a channel we opened."""
        try:
            self._direction.receive()
        finally:
            if self._owns_channel:
                self._channel.close()
                self._log.info("Serial port closed")
