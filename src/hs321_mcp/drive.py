"""Modbus RTU master for the HS321 frequency inverter.

Every call is one blocking request/response exchange: build the request,
send it, wait for the exact reply size, validate, decode. Nothing is
retried; failures propagate as :mod:`hs321_mcp.errors` exceptions.
"""

from __future__ import annotations

import logging
from typing import Any

from .errors import (
    ArgumentError,
    NotReadyError,
    ProtocolMismatch,
    SlaveException,
    TransportError,
    TransportTimeout,
)
from .models.system import COMMUNICATION_REGISTER_COUNT, CommunicationSettings
from .protocol.commands import (
    CONTROL_REGISTER,
    FAULT_CODE_REGISTER,
    MAX_SLAVE_ADDRESS,
    MIN_SLAVE_ADDRESS,
    RUNNING_STATE_REGISTER,
    ControlCommand,
    FunctionCode,
    ParameterGroup,
    build_address,
)
from .protocol.framing import (
    WRITE_RESPONSE_LENGTH,
    build_read_request,
    build_write_multiple_request,
    build_write_single_request,
    read_response_length,
)
from .protocol.parser import (
    decode_registers,
    parse_exception_response,
    validate_response,
)
from .transport.serial_connection import SerialSettings, SerialTransport

logger = logging.getLogger(__name__)

DEFAULT_SLAVE_ADDRESS = 1


def _check_slave_address(slave_address: int) -> None:
    if not MIN_SLAVE_ADDRESS <= slave_address <= MAX_SLAVE_ADDRESS:
        raise ArgumentError(
            f"Slave address must be {MIN_SLAVE_ADDRESS}-{MAX_SLAVE_ADDRESS}, "
            f"got {slave_address}"
        )


class HS321Drive:
    """Master-side driver for one HS321 on a half-duplex RS485 bus.

    Usage::

        drive = HS321Drive.from_settings(SerialSettings("/dev/ttyUSB0"), slave_address=1)
        with drive:
            drive.write_control_command(ControlCommand.FORWARD_RUN)
            state = drive.read_running_state()

    The driver holds no lock. Share one instance between threads only
    behind an external mutex.
    """

    def __init__(
        self,
        transport: SerialTransport,
        slave_address: int = DEFAULT_SLAVE_ADDRESS,
        *,
        log: logging.Logger | None = None,
    ) -> None:
        _check_slave_address(slave_address)
        self._transport = transport
        self._slave_address = slave_address
        self._log = log or logger
        self._ready = False
        self._closed = False

    @classmethod
    def from_settings(
        cls,
        settings: SerialSettings,
        slave_address: int = DEFAULT_SLAVE_ADDRESS,
        *,
        log: logging.Logger | None = None,
        **transport_options: Any,
    ) -> HS321Drive:
        """Open the serial port described by ``settings`` and wrap it.

        ``transport_options`` (``poll_interval``, ``clock``, ``sleep``) are
        passed through to :class:`SerialTransport`.
        """
        _check_slave_address(slave_address)
        transport = SerialTransport.from_settings(
            settings, log=log, **transport_options
        )
        return cls(transport, slave_address, log=log)

    @property
    def slave_address(self) -> int:
        return self._slave_address

    @property
    def is_ready(self) -> bool:
        return self._ready

    @property
    def transport(self) -> SerialTransport:
        return self._transport

    def open(self) -> HS321Drive:
        """Put the bus in receive mode and mark the driver ready.

        Raises:
            NotReadyError: If the driver was already closed.
            TransportError: If the serial port cannot be used.
        """
        if self._closed:
            raise NotReadyError("HS321 driver is closed. Create a new one to reconnect.")
        self._transport.set_receive_mode()
        self._transport.clear_input()
        self._ready = True
        self._log.info(
            "HS321 ready: slave %d, inter-character timeout %.3f ms",
            self._slave_address,
            self._transport.inter_character_timeout * 1000,
        )
        return self

    def close(self) -> None:
        """Release the bus. Further calls raise :class:`NotReadyError`."""
        self._ready = False
        self._closed = True
        self._transport.close()
        self._log.info("HS321 closed")

    def __enter__(self) -> HS321Drive:
        if not self._ready:
            self.open()
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    # ─── EXCHANGE ─────────────────────────────────────────────────────

    def _require_ready(self) -> None:
        if not self._ready:
            raise NotReadyError("HS321 driver is not open. Call open() first.")

    def _exchange(
        self,
        request: bytes,
        function: int,
        expected_length: int,
        count: int | None = None,
    ) -> bytes:
        try:
            response = self._transport.exchange(request, expected_length)
        except TransportTimeout as e:
            # Exception replies are shorter than the reply we waited for
            slave_error = parse_exception_response(
                e.received, self._slave_address, function
            )
            if slave_error is not None:
                self._log.warning("Slave %d: %s", self._slave_address, slave_error)
                raise slave_error from None
            self._log.warning("Slave %d: %s", self._slave_address, e)
            raise
        except TransportError as e:
            self._log.warning("Slave %d: %s", self._slave_address, e)
            raise

        try:
            validate_response(response, self._slave_address, function, count)
        except (SlaveException, ProtocolMismatch) as e:
            self._log.warning("Slave %d: %s", self._slave_address, e)
            raise
        return response

    # ─── RAW REGISTER ACCESS ─────────────────────────────────────────

    def read_registers(self, address: int, count: int) -> list[int]:
        """Read ``count`` holding registers starting at ``address`` (0x03).

        Returns:
            The register values, all of them or none.
        """
        self._require_ready()
        request = build_read_request(self._slave_address, address, count)
        response = self._exchange(
            request,
            FunctionCode.READ_HOLDING_REGISTERS,
            read_response_length(count),
            count,
        )
        values = decode_registers(response)
        self._log.debug("Read 0x%04X x%d: %s", address, count, values)
        return values

    def read_register(self, address: int) -> int:
        """Read one holding register."""
        return self.read_registers(address, 1)[0]

    def write_register(self, address: int, value: int) -> None:
        """Write one register (0x06)."""
        self._require_ready()
        request = build_write_single_request(self._slave_address, address, value)
        self._exchange(
            request, FunctionCode.WRITE_SINGLE_REGISTER, WRITE_RESPONSE_LENGTH
        )
        self._log.debug("Wrote 0x%04X = %d", address, value)

    def write_registers(self, address: int, values: list[int]) -> None:
        """Write consecutive registers starting at ``address`` (0x10)."""
        self._require_ready()
        request = build_write_multiple_request(self._slave_address, address, values)
        self._exchange(
            request, FunctionCode.WRITE_MULTIPLE_REGISTERS, WRITE_RESPONSE_LENGTH
        )
        self._log.debug("Wrote 0x%04X x%d: %s", address, len(values), values)

    # ─── GROUP PARAMETERS ────────────────────────────────────────────

    def read_group_parameter(self, group: ParameterGroup, index: int) -> int:
        """Read a single parameter such as ``F0.03``."""
        return self.read_register(build_address(group, index))

    def read_group_parameters(
        self, group: ParameterGroup, index: int, count: int
    ) -> list[int]:
        """Read ``count`` consecutive parameters of ``group`` from ``index``."""
        return self.read_registers(build_address(group, index), count)

    def write_group_parameter(self, group: ParameterGroup, index: int, value: int) -> None:
        """Write a single parameter such as ``F0.03``."""
        self.write_register(build_address(group, index), value)

    def write_group_parameters(
        self, group: ParameterGroup, index: int, values: list[int]
    ) -> None:
        """Write consecutive parameters; a single value goes out as 0x06."""
        address = build_address(group, index)
        if len(values) == 1:
            self.write_register(address, values[0])
        else:
            self.write_registers(address, values)

    # ─── CONTROL AND STATUS ──────────────────────────────────────────

    def read_fault_code(self) -> int:
        """Current fault code, 0 when the drive is healthy."""
        return self.read_register(FAULT_CODE_REGISTER)

    def read_running_state(self) -> int:
        """Raw contents of the run state register."""
        return self.read_register(RUNNING_STATE_REGISTER)

    def write_control_command(self, command: ControlCommand | int) -> None:
        """Send a run/stop/jog/reset command to the control register."""
        try:
            command = ControlCommand(command)
        except ValueError:
            raise ArgumentError(f"Unknown control command: {command!r}") from None
        self._log.info("Control command: %s", command.name)
        self.write_register(CONTROL_REGISTER, command.value)

    def check_communication_settings(self) -> CommunicationSettings:
        """Read back the FC group (baud rate, data format, address, timeout)."""
        values = self.read_group_parameters(
            ParameterGroup.FC, 0, COMMUNICATION_REGISTER_COUNT
        )
        return CommunicationSettings.from_registers(values)
