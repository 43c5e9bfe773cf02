"""Unit tests for the calbench exception hierarchy."""

from __future__ import annotations

import pytest

from calbench.errors import (
    CalbenchError,
    FrameError,
    IncompletePacketError,
    PowerStateTimeoutError,
    ProtocolStatusError,
    ResponseTimeoutError,
    TransportClosedError,
    TransportIOError,
    TransportOpenError,
    ValueRangeError,
)
from calbench.framing import ThermostatStatus


class TestHierarchy:
    @pytest.mark.parametrize(
        "error_type",
        [
            TransportOpenError,
            TransportIOError,
            TransportClosedError,
            ResponseTimeoutError,
            PowerStateTimeoutError,
            FrameError,
            ValueRangeError,
        ],
    )
    def test_all_are_calbench_errors(self, error_type: type[Exception]) -> None:
        assert issubclass(error_type, CalbenchError)

    def test_closed_is_io_error(self) -> None:
        assert issubclass(TransportClosedError, TransportIOError)

    def test_timeouts_are_builtin_timeouts(self) -> None:
        assert issubclass(ResponseTimeoutError, TimeoutError)
        assert issubclass(PowerStateTimeoutError, ResponseTimeoutError)

    def test_range_error_is_value_error(self) -> None:
        assert issubclass(ValueRangeError, ValueError)

    def test_catch_all(self) -> None:
        with pytest.raises(CalbenchError):
            raise FrameError("bad checksum")


class TestIncompletePacketError:
    def test_attributes(self) -> None:
        error = IncompletePacketError("stream ended", partial=b"\x06\x62", expected=6)
        assert error.partial == b"\x06\x62"
        assert error.expected == 6
        assert str(error) == "stream ended"

    def test_defaults(self) -> None:
        error = IncompletePacketError("stream ended")
        assert error.partial == b""
        assert error.expected is None


class TestProtocolStatusError:
    def test_attributes(self) -> None:
        error = ProtocolStatusError("out of range", ThermostatStatus.VALUE_OUT_OF_RANGE, "0x05")
        assert error.status is ThermostatStatus.VALUE_OUT_OF_RANGE
        assert error.raw_status == "0x05"

    def test_unknown_status(self) -> None:
        error = ProtocolStatusError("unknown", None, "0x7F")
        assert error.status is None
