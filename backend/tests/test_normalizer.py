"""Tests for payload decoding and metric normalization."""

import pytest

from airsense.errors import MalformedPayloadError
from airsense.services.normalizer import (
    coerce_number,
    decode_payload,
    extract_device_id,
    normalize_reading,
)


class TestDecodePayload:
    def test_decodes_json_object(self):
        assert decode_payload(b'{"deviceId": "esp32", "dust": 12}') == {
            "deviceId": "esp32",
            "dust": 12,
        }

    def test_rejects_invalid_json(self):
        with pytest.raises(MalformedPayloadError):
            decode_payload(b"{not json")

    def test_rejects_non_object(self):
        with pytest.raises(MalformedPayloadError):
            decode_payload(b"[1, 2, 3]")

    def test_rejects_invalid_utf8(self):
        with pytest.raises(MalformedPayloadError):
            decode_payload(b"\xff\xfe")


class TestNormalizeReading:
    """Alias resolution across firmware payload variants."""

    def test_legacy_firmware_field_names(self):
        reading = normalize_reading({"dust": 45, "MQ135": 300, "MQ2": 210, "temp": 24.5, "hum": 60})
        assert reading.values == {
            "pm25": 45.0,
            "mq135": 300.0,
            "mq2": 210.0,
            "temperature": 24.5,
            "humidity": 60.0,
        }

    def test_canonical_field_names(self):
        reading = normalize_reading({"pm25": 12.5, "temperature": 21})
        assert reading.get("pm25") == 12.5
        assert reading.get("temperature") == 21.0
        assert reading.get("humidity") is None

    def test_first_numeric_alias_wins(self):
        reading = normalize_reading({"pm25": 10, "dust": 99})
        assert reading.get("pm25") == 10.0

    def test_non_numeric_alias_falls_through_to_next(self):
        reading = normalize_reading({"pm25": "n/a", "dust": 33})
        assert reading.get("pm25") == 33.0

    def test_numeric_strings_are_accepted(self):
        reading = normalize_reading({"temp": " 22.5 "})
        assert reading.get("temperature") == 22.5

    def test_absent_metrics_are_none_not_zero(self):
        reading = normalize_reading({"dust": 5})
        columns = reading.as_columns()
        assert columns["pm25"] == 5.0
        assert columns["mq2"] is None
        assert columns["humidity"] is None

    def test_heartbeat_without_metrics_returns_none(self):
        assert normalize_reading({"deviceId": "esp32", "uptime": 1234}) is None

    def test_unknown_fields_are_ignored(self):
        reading = normalize_reading({"dust": 5, "event": "normal", "publish_ms": 2000})
        assert reading.values == {"pm25": 5.0}


@pytest.mark.parametrize(
    "value",
    [None, True, False, "", "   ", "abc", float("nan"), float("inf"), [1], {"v": 1}],
)
def test_coerce_number_rejects_non_measurements(value):
    assert coerce_number(value) is None


def test_coerce_number_accepts_ints_floats_and_strings():
    assert coerce_number(3) == 3.0
    assert coerce_number(-4.25) == -4.25
    assert coerce_number("17") == 17.0


class TestExtractDeviceId:
    def test_camel_case_key(self):
        assert extract_device_id({"deviceId": "kitchen"}) == "kitchen"

    def test_snake_case_key(self):
        assert extract_device_id({"device_id": "garage"}) == "garage"

    def test_numeric_id_is_stringified(self):
        assert extract_device_id({"deviceId": 101}) == "101"

    def test_missing_id_uses_default(self):
        assert extract_device_id({"dust": 5}) == "esp32"

    def test_blank_id_uses_default(self):
        assert extract_device_id({"deviceId": "  "}) == "esp32"
