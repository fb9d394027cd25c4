"""Tests for descriptor validation and identity extraction."""

from hue_discovery.models import DEFAULT_BRIDGE_NAME
from hue_discovery.validator import (
    ContentKind,
    extract_identity,
    extract_xml_id,
    is_hue_bridge_descriptor,
)


class TestJsonDescriptor:
    """Test /api/0/config validation."""

    def test_bsb002_accepted(self):
        """A BSB002 config yields its bridge id and name."""
        body = '{"name":"Hue","bridgeid":"001788FFFE123456","modelid":"BSB002"}'

        assert is_hue_bridge_descriptor(body, ContentKind.JSON)
        identity = extract_identity(body, ContentKind.JSON)
        assert identity.id == "001788FFFE123456"
        assert identity.name == "Hue"

    def test_other_device_rejected(self):
        """A non-Hue model id is not a bridge."""
        body = '{"name":"X","bridgeid":"ABC","modelid":"SomeOtherDevice"}'

        assert not is_hue_bridge_descriptor(body, ContentKind.JSON)
        assert extract_identity(body, ContentKind.JSON) is None

    def test_missing_modelid_accepted_with_default_name(self):
        """Without modelid or name the bridge id alone is enough."""
        identity = extract_identity(b'{"bridgeid":"ABC123"}', ContentKind.JSON)
        assert identity.id == "ABC123"
        assert identity.name == DEFAULT_BRIDGE_NAME

    def test_empty_bridgeid_rejected(self):
        """An empty bridge id is not an identity."""
        assert extract_identity('{"bridgeid":"  ","modelid":"BSB002"}', ContentKind.JSON) is None

    def test_malformed_input_never_raises(self):
        """Garbage input yields None or False."""
        for body in ("", "not json", "[1, 2]", b"\xff\xfe", '{"bridgeid": 42}'):
            assert extract_identity(body, ContentKind.JSON) is None
            assert not is_hue_bridge_descriptor(body, ContentKind.JSON)


class TestXmlDescriptor:
    """Test description.xml validation."""

    def test_friendly_name_and_serial(self):
        """friendlyName and serialNumber are extracted."""
        body = (
            "<root><device><friendlyName>Philips hue (192.168.1.2)</friendlyName>"
            "<serialNumber>001788ABCDEF</serialNumber></device></root>"
        )

        identity = extract_identity(body, ContentKind.XML)
        assert identity.id == "001788ABCDEF"
        assert identity.name == "Philips hue (192.168.1.2)"

    def test_full_description(self, description_xml):
        """A real-world description document is accepted."""
        identity = extract_identity(description_xml, ContentKind.XML)
        assert identity.id == "001788123456"
        assert identity.name == "Hue Bridge (192.168.1.50)"

    def test_udn_fallback(self):
        """Without serialNumber the last 12 characters of the UDN are used."""
        body = "<root><manufacturer>Signify</manufacturer><UDN>uuid:2f402f80-da50-11e1-9b23-001788aabbcc</UDN></root>"
        assert extract_xml_id(body) == "001788aabbcc"
        assert extract_identity(body, ContentKind.XML).name == DEFAULT_BRIDGE_NAME

    def test_model_description_used_as_name(self):
        """modelDescription stands in for a missing friendlyName."""
        body = (
            "<root><modelName>Philips hue bridge 2012</modelName>"
            "<modelDescription> Hue Personal Wireless Lighting </modelDescription>"
            "<serialNumber>abc123</serialNumber></root>"
        )
        assert extract_identity(body, ContentKind.XML).name == "Hue Personal Wireless Lighting"

    def test_markers_case_insensitive(self):
        """Vendor markers match regardless of case."""
        assert is_hue_bridge_descriptor("<x>ROYAL PHILIPS Electronics</x>", ContentKind.XML)
        assert is_hue_bridge_descriptor("<x>IpBridge</x>", ContentKind.XML)

    def test_other_device_rejected(self):
        """A router's description is not a bridge."""
        body = (
            "<root><friendlyName>Router</friendlyName><manufacturer>Netgear</manufacturer>"
            "<serialNumber>123</serialNumber></root>"
        )
        assert not is_hue_bridge_descriptor(body, ContentKind.XML)
        assert extract_identity(body, ContentKind.XML) is None

    def test_bridge_without_id_rejected(self):
        """A bridge descriptor carrying no identifier is rejected."""
        body = "<root><friendlyName>Philips hue</friendlyName></root>"

        assert is_hue_bridge_descriptor(body, ContentKind.XML)
        assert extract_identity(body, ContentKind.XML) is None
