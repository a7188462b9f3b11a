import pytest

from debatelib.mcp import (
    CallEnvelope,
    ErrorEnvelope,
    ProtocolError,
    RawEnvelope,
    ResultEnvelope,
    RPCError,
    parse_envelope,
)


class TestCallEnvelope:
    def test_request_wire_shape(self):
        call = CallEnvelope(id=3, method="tools/call", params={"name": "x", "arguments": {}})
        assert call.to_wire() == {
            "jsonrpc": "2.0",
            "id": 3,
            "method": "tools/call",
            "params": {"name": "x", "arguments": {}},
        }

    def test_notification_has_no_id(self):
        call = CallEnvelope(method="notifications/initialized", params={})
        assert call.is_notification
        assert call.to_wire() == {"jsonrpc": "2.0", "method": "notifications/initialized", "params": {}}

    def test_params_omitted_when_none(self):
        assert "params" not in CallEnvelope(id=0, method="ping").to_wire()

    def test_id_zero_is_kept(self):
        assert CallEnvelope(id=0, method="initialize").to_wire()["id"] == 0

    def test_immutable(self):
        call = CallEnvelope(id=1, method="ping")
        with pytest.raises(Exception):
            call.method = "other"


class TestParseEnvelope:
    def test_result(self):
        envelope = parse_envelope('{"jsonrpc": "2.0", "id": 4, "result": {"tools": []}}')
        assert isinstance(envelope, ResultEnvelope)
        assert envelope.id == 4
        assert envelope.result == {"tools": []}

    def test_null_result(self):
        envelope = parse_envelope({"jsonrpc": "2.0", "id": 1, "result": None})
        assert isinstance(envelope, ResultEnvelope)
        assert envelope.result is None

    def test_error(self):
        envelope = parse_envelope({"jsonrpc": "2.0", "id": 2, "error": {"code": -1, "message": "boom"}})
        assert isinstance(envelope, ErrorEnvelope)
        error = envelope.to_exception()
        assert isinstance(error, RPCError)
        assert str(error) == "boom"
        assert error.code == -1

    def test_error_as_bare_string(self):
        envelope = parse_envelope({"jsonrpc": "2.0", "id": 2, "error": "it broke"})
        assert isinstance(envelope, ErrorEnvelope)
        assert envelope.error.code == -1
        assert envelope.error.message == "it broke"

    def test_integral_float_id(self):
        envelope = parse_envelope('{"jsonrpc": "2.0", "id": 3.0, "result": 1}')
        assert isinstance(envelope, ResultEnvelope)
        assert envelope.id == 3

    def test_notification(self):
        envelope = parse_envelope({"jsonrpc": "2.0", "method": "notifications/message", "params": {"level": "info"}})
        assert isinstance(envelope, CallEnvelope)
        assert envelope.is_notification

    def test_missing_version_is_raw(self):
        envelope = parse_envelope({"id": 1, "result": "x"})
        assert isinstance(envelope, RawEnvelope)
        assert envelope.id == 1

    def test_result_and_error_is_raw(self):
        envelope = parse_envelope({"jsonrpc": "2.0", "id": 1, "result": 1, "error": {"code": 1, "message": "m"}})
        assert isinstance(envelope, RawEnvelope)

    def test_result_without_id_is_raw(self):
        assert isinstance(parse_envelope({"jsonrpc": "2.0", "result": 1}), RawEnvelope)

    def test_string_id_is_raw(self):
        envelope = parse_envelope({"jsonrpc": "2.0", "id": "abc", "result": 1})
        assert isinstance(envelope, RawEnvelope)
        assert envelope.id == "abc"

    def test_non_object_is_raw(self):
        envelope = parse_envelope("[1, 2, 3]")
        assert isinstance(envelope, RawEnvelope)
        assert envelope.id is None
        assert envelope.method is None

    def test_invalid_json(self):
        with pytest.raises(ProtocolError, match="Invalid JSON"):
            parse_envelope("{not json")

    def test_bytes(self):
        assert isinstance(parse_envelope(b'{"jsonrpc": "2.0", "id": 0, "result": {}}'), ResultEnvelope)
