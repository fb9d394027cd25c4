"""Pytest configuration and fixtures for bridge discovery tests."""

import httpx
import pytest

from hue_discovery.settings import DiscoverySettings

CONFIG_JSON = (
    '{"name": "Living Room Bridge", "bridgeid": "001788FFFE123456", '
    '"modelid": "BSB002", "apiversion": "1.65.0", "swversion": "1965111030"}'
)

DESCRIPTION_XML = """<?xml version="1.0" encoding="UTF-8" ?>
<root xmlns="urn:schemas-upnp-org:device-1-0">
  <specVersion><major>1</major><minor>0</minor></specVersion>
  <URLBase>http://192.168.1.50:80/</URLBase>
  <device>
    <deviceType>urn:schemas-upnp-org:device:Basic:1</deviceType>
    <friendlyName>Hue Bridge (192.168.1.50)</friendlyName>
    <manufacturer>Signify</manufacturer>
    <modelDescription>Philips hue Personal Wireless Lighting</modelDescription>
    <modelName>Philips hue bridge 2015</modelName>
    <modelNumber>BSB002</modelNumber>
    <serialNumber>001788123456</serialNumber>
    <UDN>uuid:2f402f80-da50-11e1-9b23-001788123456</UDN>
  </device>
</root>
"""


@pytest.fixture(autouse=True)
def setup_logging():
    """Disable loguru during tests to reduce noise."""
    from loguru import logger

    logger.disable("hue_discovery")
    yield
    logger.disable("hue_discovery")


@pytest.fixture
def settings():
    """Settings with short timeouts for fast tests."""
    return DiscoverySettings(
        session_timeout=2.0,
        cloud_timeout=0.5,
        mdns_timeout=0.5,
        ssdp_timeout=0.5,
        config_probe_timeout=0.5,
        description_probe_timeout=0.5,
        smart_probe_timeout=0.5,
        ip_scan_timeout=1.0,
        smart_timeout=1.0,
        probe_attempts=1,
    )


@pytest.fixture
def config_json():
    """A /api/0/config body from a BSB002 bridge."""
    return CONFIG_JSON


@pytest.fixture
def description_xml():
    """A description.xml body from a Hue Bridge."""
    return DESCRIPTION_XML


@pytest.fixture
def sample_bridge_data():
    """One entry of the cloud discovery response."""
    return {
        "id": "001788fffe123456",
        "internalipaddress": "192.168.1.50",
        "port": 443,
    }


@pytest.fixture
def client_factory():
    """Build a factory of httpx clients served by ``handler``."""

    def make(handler):
        return lambda: httpx.AsyncClient(transport=httpx.MockTransport(handler))

    return make


@pytest.fixture
def bridge_handler(config_json, description_xml):
    """Mock transport handler where only 192.168.1.50 is a bridge."""

    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.host != "192.168.1.50":
            raise httpx.ConnectError("connection refused", request=request)
        if request.url.path == "/api/0/config":
            return httpx.Response(200, text=config_json)
        if request.url.path == "/description.xml":
            return httpx.Response(200, text=description_xml)
        return httpx.Response(404)

    return handler
