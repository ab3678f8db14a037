"""Tests de los parsers TTN / DingNet y del factory.

Ejecutar:
    pytest tests/test_parsers.py -v
"""

from datetime import datetime, timezone

import pytest

from lora_ingest.core.domain.errors import FormatError, SelectionError, ValidationError
from lora_ingest.parsers import (
    DingNetParser,
    ParserType,
    TTNParser,
    create_parser,
    format_float,
    get_types_list,
    parse_time,
)

from conftest import raw_payload, to_bytes


# =============================================================================
# HELPERS
# =============================================================================

class TestFormatting:

    @pytest.mark.parametrize("value,expected", [
        (868.3, "868.3"),
        (8.0, "8"),
        (-2.5, "-2.5"),
        (51.001, "51.001"),
        (1e-05, "0.00001"),
    ])
    def test_shortest(self, value, expected):
        assert format_float(value) == expected

    def test_fixed_precision(self):
        assert format_float(51.001, 4) == "51.0010"

    def test_nanosecond_timestamp(self):
        ts = parse_time("2018-03-13T19:21:22.827671626Z")
        assert ts == datetime(2018, 3, 13, 19, 21, 22, 827671, tzinfo=timezone.utc)

    def test_short_fraction(self):
        assert parse_time("2019-05-02T10:11:12.2Z").microsecond == 200000

    def test_empty_timestamp(self):
        assert parse_time("") is None
        assert parse_time(None) is None

    def test_invalid_timestamp(self):
        with pytest.raises(ValueError):
            parse_time("yesterday")


# =============================================================================
# TTN
# =============================================================================

class TestTTNParser:

    def test_empty_name(self):
        with pytest.raises(ValidationError):
            TTNParser("")

    def test_coverage_metric(self, ttn_message):
        parser = TTNParser("coverage")
        parser.set_default_tags({"site": "leuven"})

        metrics = parser.parse(to_bytes(ttn_message))

        assert len(metrics) == 1
        metric = metrics[0]
        assert metric.name == "coverage"
        assert dict(metric.tags) == {
            "site": "leuven",
            "frequency": "868.3",
            "data_rate": "SF12BW125",
            "device_id": "sodaq_one_gps_1",
            "power": "1",
            "latitude": "51.0017",
            "longitude": "4.7136",
            "gateway_id": "eui-008000000000b88d",
        }
        assert dict(metric.fields) == {"size": 7, "rssi": -84, "snr": 8.0}
        assert metric.timestamp == datetime(2018, 3, 13, 19, 21, 22, 808197, tzinfo=timezone.utc)

    def test_other_metric_copies_payload_fields(self, ttn_message):
        metrics = TTNParser("sensor").parse(to_bytes(ttn_message))

        metric = metrics[0]
        assert metric.tags["rssi"] == "-84"
        assert metric.tags["snr"] == "8"
        assert not metric.has_tag("latitude")
        assert dict(metric.fields) == {"size": 7, "lat": 51.0017, "lon": 4.7136, "pwr": 1}

    def test_payload_numbers_are_floats(self, ttn_message):
        """Un field entero y luego decimal no debe cambiar de tipo en InfluxDB."""
        ttn_message["payload_fields"] = {"temp": 21, "door_open": True, "label": "a", "none": None}

        fields = TTNParser("sensor").parse(to_bytes(ttn_message))[0].fields

        assert isinstance(fields["temp"], float)
        assert fields["temp"] == 21.0
        assert fields["door_open"] is True
        assert fields["label"] == "a"
        assert "none" not in fields
        assert isinstance(fields["size"], int)

    def test_null_device_id(self, ttn_message):
        """`null` explícito equivale a la clave ausente."""
        ttn_message["dev_id"] = None
        ttn_message["metadata"]["data_rate"] = None
        ttn_message["metadata"]["gateways"][0]["rssi"] = None

        metrics = TTNParser("coverage").parse(to_bytes(ttn_message))

        assert len(metrics) == 1
        assert metrics[0].tags["device_id"] == ""
        assert metrics[0].tags["data_rate"] == ""
        assert metrics[0].fields["rssi"] == 0

    def test_null_metadata(self, ttn_message):
        ttn_message["metadata"] = None
        with pytest.raises(ValidationError):
            TTNParser("coverage").parse(to_bytes(ttn_message))

    def test_one_metric_per_gateway(self, ttn_message):
        second = dict(ttn_message["metadata"]["gateways"][0], gateway_id="eui-b", rssi=-110)
        ttn_message["metadata"]["gateways"].append(second)

        metrics = TTNParser("coverage").parse(to_bytes(ttn_message))

        assert [m.tags["gateway_id"] for m in metrics] == ["eui-008000000000b88d", "eui-b"]
        assert [m.fields["rssi"] for m in metrics] == [-84, -110]
        # las métricas no comparten tags
        metrics[0].add_tag("extra", "x")
        assert not metrics[1].has_tag("extra")

    def test_short_payload_skips_location(self, ttn_message):
        """Payload de 4 bytes: el mensaje se acepta sin ubicación."""
        ttn_message["payload_raw"] = "AQIDBA=="

        metric = TTNParser("coverage").parse(to_bytes(ttn_message))[0]

        assert metric.fields["size"] == 4
        for tag in ("power", "latitude", "longitude"):
            assert not metric.has_tag(tag)

    def test_location_without_power(self, ttn_message):
        ttn_message["payload_raw"] = raw_payload(510010, 47100)

        metric = TTNParser("coverage").parse(to_bytes(ttn_message))[0]

        assert not metric.has_tag("power")
        assert metric.tags["latitude"] == "51.001"
        assert metric.tags["longitude"] == "4.71"

    def test_null_payload(self, ttn_message):
        ttn_message["payload_raw"] = None
        metric = TTNParser("coverage").parse(to_bytes(ttn_message))[0]
        assert metric.fields["size"] == 0

    def test_no_gateways(self, ttn_message):
        ttn_message["metadata"]["gateways"] = []
        with pytest.raises(ValidationError):
            TTNParser("coverage").parse(to_bytes(ttn_message))

    def test_missing_gateways(self, ttn_message):
        del ttn_message["metadata"]["gateways"]
        with pytest.raises(ValidationError):
            TTNParser("coverage").parse(to_bytes(ttn_message))

    @pytest.mark.parametrize("data", [b"{not json", b"[1, 2]", b""])
    def test_malformed_json(self, data):
        with pytest.raises(FormatError):
            TTNParser("coverage").parse(data)

    def test_wrong_types(self, ttn_message):
        ttn_message["metadata"]["frequency"] = "high"
        with pytest.raises(FormatError):
            TTNParser("coverage").parse(to_bytes(ttn_message))

    def test_bad_base64(self, ttn_message):
        ttn_message["payload_raw"] = "@@@"
        with pytest.raises(FormatError):
            TTNParser("coverage").parse(to_bytes(ttn_message))


# =============================================================================
# DINGNET
# =============================================================================

class TestDingNetParser:

    def test_coverage_metric(self, dingnet_message):
        metrics = DingNetParser("coverage").parse(to_bytes(dingnet_message))

        assert len(metrics) == 2
        expected_time = datetime(2019, 5, 2, 10, 11, 12, 123456, tzinfo=timezone.utc)
        for metric, gateway_id in zip(metrics, ("gw-a", "gw-b")):
            assert metric.timestamp == expected_time
            assert metric.tags["gateway_id"] == gateway_id
            assert metric.tags["frequency"] == "868.1"
            assert not metric.has_tag("device_id")
        assert dict(metrics[1].fields) == {"size": 7, "rssi": -97, "snr": 4.25}

    def test_fixed_location_precision(self, dingnet_message):
        dingnet_message["payload_raw"] = raw_payload(510010, 47100, power=14)

        metric = DingNetParser("coverage").parse(to_bytes(dingnet_message))[0]

        assert metric.tags["latitude"] == "51.0010"
        assert metric.tags["longitude"] == "4.7100"
        assert metric.tags["power"] == "14"

    def test_short_payload_skips_location(self, dingnet_message):
        """Payload de 4 bytes: se emiten las métricas sin ubicación ni potencia."""
        dingnet_message["payload_raw"] = "AQIDBA=="

        metrics = DingNetParser("coverage").parse(to_bytes(dingnet_message))

        assert len(metrics) == 2
        for metric in metrics:
            assert metric.fields["size"] == 4
            for tag in ("power", "latitude", "longitude"):
                assert not metric.has_tag(tag)

    def test_null_members(self, dingnet_message):
        dingnet_message["metadata"]["frequency"] = None
        dingnet_message["metadata"]["gateways"][0]["gtw_id"] = None

        metrics = DingNetParser("coverage").parse(to_bytes(dingnet_message))

        assert metrics[0].tags["frequency"] == "0"
        assert metrics[0].tags["gateway_id"] == ""
        assert metrics[1].tags["gateway_id"] == "gw-b"

    def test_null_metadata(self, dingnet_message):
        dingnet_message["metadata"] = None
        with pytest.raises(ValidationError):
            DingNetParser("coverage").parse(to_bytes(dingnet_message))

    @pytest.mark.parametrize("name", ["adr", "ddr"])
    def test_data_rate_metrics(self, dingnet_message, name):
        metrics = DingNetParser(name).parse(to_bytes(dingnet_message))

        for metric in metrics:
            assert metric.fields["dr"] == 3
            assert metric.tags["snr"] in ("-2.5", "4.25")

    def test_unknown_data_rate(self, dingnet_message):
        dingnet_message["metadata"]["data_rate"] = "SF6BW500"
        metric = DingNetParser("adr").parse(to_bytes(dingnet_message))[0]
        assert metric.fields["dr"] == 0

    def test_other_metric_has_no_dr(self, dingnet_message):
        metric = DingNetParser("sensor").parse(to_bytes(dingnet_message))[0]
        assert dict(metric.fields) == {"size": 7}

    def test_no_gateways(self, dingnet_message):
        dingnet_message["metadata"]["gateways"] = []
        with pytest.raises(ValidationError):
            DingNetParser("coverage").parse(to_bytes(dingnet_message))

    def test_default_tags(self):
        parser = DingNetParser("coverage")
        parser.set_default_tags({"test": "a"})
        assert parser.default_tags == {"test": "a"}


# =============================================================================
# FACTORY
# =============================================================================

class TestParserFactory:

    def test_types_list(self):
        assert get_types_list() == ["TTN", "DingNet"]

    @pytest.mark.parametrize("value,cls", [
        (ParserType.TTN, TTNParser),
        ("TTN", TTNParser),
        ("ttn", TTNParser),
        (ParserType.DINGNET, DingNetParser),
        ("dingnet", DingNetParser),
    ])
    def test_create(self, value, cls):
        parser = create_parser(value, "coverage")
        assert isinstance(parser, cls)
        assert parser.metric_name == "coverage"

    def test_unknown_type(self):
        with pytest.raises(SelectionError):
            create_parser("lorawan-v3", "coverage")

    def test_empty_name(self):
        with pytest.raises(ValidationError):
            create_parser(ParserType.TTN, "")
