"""Unit tests for operations module."""

import array

import pytest
from unittest.mock import Mock

from dgramclient.endpoint import Endpoint
from dgramclient.errors import (
    ArgumentRangeError,
    InvalidOperationError,
    InvalidStateError,
    IoFailure,
)
from dgramclient.operations import (
    AsyncSendResult,
    OperationState,
    SendRequest,
    validate_send_arguments,
)


class TestValidateSendArguments:
    """Test suite for validate_send_arguments."""

    def test_valid(self):
        """Test valid arguments pass."""
        validate_send_arguments(b"\x01", 1)
        validate_send_arguments(b"", 0)
        validate_send_arguments(bytearray(4), 2, offset=2)

    def test_negative_length(self):
        """Test negative length is rejected."""
        with pytest.raises(ArgumentRangeError) as exc_info:
            validate_send_arguments(bytes(1), -1)

        assert exc_info.value.param_name == "length"

    def test_length_more_than_buffer(self):
        """Test length beyond the buffer is rejected."""
        with pytest.raises(ArgumentRangeError) as exc_info:
            validate_send_arguments(bytes(1), 2)

        assert exc_info.value.param_name == "length"

    def test_length_past_offset(self):
        """Test length is checked against the space left after offset."""
        with pytest.raises(ArgumentRangeError) as exc_info:
            validate_send_arguments(bytes(4), 3, offset=2)

        assert exc_info.value.param_name == "length"

    @pytest.mark.parametrize("offset", [-1, 5])
    def test_offset_out_of_range(self, offset):
        """Test offsets outside the buffer are rejected."""
        with pytest.raises(ArgumentRangeError) as exc_info:
            validate_send_arguments(bytes(4), 0, offset=offset)

        assert exc_info.value.param_name == "offset"

    def test_range_error_is_value_error(self):
        """Test ArgumentRangeError can be caught as ValueError."""
        with pytest.raises(ValueError):
            validate_send_arguments(bytes(1), -1)

    @pytest.mark.parametrize("buffer", [None, "text", 12])
    def test_non_bytes_buffer(self, buffer):
        """Test non bytes-like buffers raise TypeError."""
        with pytest.raises(TypeError):
            validate_send_arguments(buffer, 0)

    @pytest.mark.parametrize("length", [1.0, True, "1"])
    def test_non_int_length(self, length):
        """Test non-integer lengths raise TypeError."""
        with pytest.raises(TypeError):
            validate_send_arguments(bytes(2), length)

    def test_multibyte_buffer_counts_bytes(self):
        """Test buffers with wider items are measured in bytes."""
        buffer = array.array("H", [1, 2])

        validate_send_arguments(buffer, 4)
        with pytest.raises(ArgumentRangeError):
            validate_send_arguments(buffer, 5)


class TestSendRequest:
    """Test suite for SendRequest."""

    def test_payload_slices_without_copy(self):
        """Test payload is a view over the requested range."""
        buffer = bytearray(b"abcdef")
        request = SendRequest(buffer=buffer, length=3, offset=1)

        payload = request.payload()
        buffer[1] = ord("B")

        assert bytes(payload) == b"Bcd"

    def test_payload_of_wide_buffer(self):
        """Test payload of a non-byte buffer is byte-addressed."""
        request = SendRequest(buffer=array.array("H", [1, 2]), length=2)

        assert request.payload().nbytes == 2


class TestAsyncSendResult:
    """Test suite for AsyncSendResult."""

    def _result(self, callback=None, state=None):
        request = SendRequest(
            buffer=b"\x01", length=1, destination=Endpoint("127.0.0.1", 8)
        )
        return AsyncSendResult(Mock(), request, callback=callback, state=state)

    def test_initial_state(self):
        """Test a new token is created and not completed."""
        result = self._result(state="ctx")

        assert result.state is OperationState.CREATED
        assert result.is_completed is False
        assert result.completed_synchronously is False
        assert result.async_state == "ctx"
        assert result.wait(timeout=0) is False

    def test_lifecycle(self):
        """Test created -> submitted -> completed -> consumed."""
        result = self._result()

        result.mark_submitted()
        assert result.state is OperationState.SUBMITTED

        result.complete(bytes_sent=1)
        assert result.state is OperationState.COMPLETED
        assert result.is_completed is True
        assert result.wait(timeout=0) is True

        assert result.consume() == 1
        assert result.state is OperationState.CONSUMED

    def test_submit_twice(self):
        """Test a token cannot be submitted twice."""
        result = self._result()
        result.mark_submitted()

        with pytest.raises(InvalidStateError):
            result.mark_submitted()

    def test_callback_invoked_once_after_completion(self):
        """Test the callback fires once and sees a completed token."""
        seen = []
        result = self._result(callback=lambda r: seen.append((r, r.is_completed)))
        result.mark_submitted()

        result.complete(bytes_sent=1)
        with pytest.raises(InvalidStateError, match="already completed"):
            result.complete(bytes_sent=1)

        assert seen == [(result, True)]

    def test_consume_before_completion(self):
        """Test consuming an unfinished operation fails."""
        result = self._result()
        result.mark_submitted()

        with pytest.raises(InvalidOperationError, match="not completed"):
            result.consume()

    def test_consume_twice(self):
        """Test consuming twice fails the second time."""
        result = self._result()
        result.complete(bytes_sent=1)

        result.consume()
        with pytest.raises(InvalidOperationError, match="already called"):
            result.consume()

    def test_consume_failure(self):
        """Test a recorded failure is raised on consume."""
        failure = IoFailure("unreachable")
        result = self._result()
        result.complete(error=failure)

        with pytest.raises(IoFailure) as exc_info:
            result.consume()

        assert exc_info.value is failure
        assert result.state is OperationState.CONSUMED

    def test_callback_error_logged(self, caplog):
        """Test exceptions from the callback are logged, not raised."""

        def explode(_):
            raise RuntimeError("boom")

        result = self._result(callback=explode)

        result.complete(bytes_sent=1)

        assert "Send completion callback raised" in caplog.text
        assert result.consume() == 1
