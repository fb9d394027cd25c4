"""Tests for the HTTP bridge prober."""

import asyncio

import httpx
import pytest

from hue_discovery.probe import BridgeProber, create_http_client


def make_prober(handler, settings, **kwargs):
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return client, BridgeProber(client, settings, method="test", **kwargs)


class TestProbeConfig:
    """Test the /api/0/config probe."""

    @pytest.mark.asyncio
    async def test_bridge_confirmed(self, settings, bridge_handler):
        """A valid config becomes a record on port 80."""
        client, prober = make_prober(bridge_handler, settings)
        async with client:
            bridge = await prober.probe_config("192.168.1.50")

        assert bridge.id == "001788FFFE123456"
        assert bridge.ip_address == "192.168.1.50"
        assert bridge.port == 80
        assert bridge.name == "Living Room Bridge"
        assert bridge.method == "test"

    @pytest.mark.asyncio
    async def test_non_200_is_none(self, settings):
        """HTTP errors map to None."""
        client, prober = make_prober(lambda request: httpx.Response(503), settings)
        async with client:
            assert await prober.probe_config("192.168.1.50") is None

    @pytest.mark.asyncio
    async def test_empty_body_is_none(self, settings):
        """An empty 200 is not a bridge."""
        client, prober = make_prober(lambda request: httpx.Response(200), settings)
        async with client:
            assert await prober.probe_config("192.168.1.50") is None

    @pytest.mark.asyncio
    async def test_timeout_is_none(self, settings):
        """Transport timeouts map to None."""

        def handler(request):
            raise httpx.ReadTimeout("timed out", request=request)

        client, prober = make_prober(handler, settings)
        async with client:
            assert await prober.probe_config("192.168.1.50") is None

    @pytest.mark.asyncio
    async def test_stop_checked_before_request(self, settings, bridge_handler):
        """A stopped session issues no request."""
        calls = []

        def handler(request):
            calls.append(request)
            return bridge_handler(request)

        client, prober = make_prober(handler, settings)
        async with client:
            assert await prober.probe_config("192.168.1.50", lambda: True) is None
        assert calls == []


class TestProbeDescription:
    """Test the description.xml and SSDP location probes."""

    @pytest.mark.asyncio
    async def test_description_confirmed(self, settings, bridge_handler):
        """description.xml yields serial number and friendly name."""
        client, prober = make_prober(bridge_handler, settings)
        async with client:
            bridge = await prober.probe_description("192.168.1.50")

        assert bridge.id == "001788123456"
        assert bridge.name == "Hue Bridge (192.168.1.50)"

    @pytest.mark.asyncio
    async def test_location_host_and_port(self, settings, description_xml):
        """Host and port come from the LOCATION URL."""
        seen = []

        def handler(request):
            seen.append(str(request.url))
            return httpx.Response(200, text=description_xml)

        client, prober = make_prober(handler, settings)
        async with client:
            bridge = await prober.probe_location("http://192.168.1.77:8080/description.xml")

        assert seen == ["http://192.168.1.77:8080/description.xml"]
        assert bridge.ip_address == "192.168.1.77"
        assert bridge.port == 8080

    @pytest.mark.asyncio
    async def test_location_without_host(self, settings, bridge_handler):
        """A LOCATION without a host is ignored."""
        client, prober = make_prober(bridge_handler, settings)
        async with client:
            assert await prober.probe_location("/description.xml") is None


class TestDualProbe:
    """Test the concurrent config + description probe."""

    @pytest.mark.asyncio
    async def test_first_confirmed_wins(self, settings, config_json):
        """A fast config answer wins over a slow description."""

        async def handler(request):
            if request.url.path == "/description.xml":
                await asyncio.sleep(0.3)
                return httpx.Response(404)
            return httpx.Response(200, text=config_json)

        client, prober = make_prober(handler, settings)
        async with client:
            bridge = await prober.probe("192.168.1.50")

        assert bridge.id == "001788FFFE123456"

    @pytest.mark.asyncio
    async def test_falls_back_to_description(self, settings, description_xml):
        """If config fails, description.xml still confirms the bridge."""

        def handler(request):
            if request.url.path == "/api/0/config":
                return httpx.Response(404)
            return httpx.Response(200, text=description_xml)

        client, prober = make_prober(handler, settings)
        async with client:
            bridge = await prober.probe("192.168.1.50")

        assert bridge.id == "001788123456"

    @pytest.mark.asyncio
    async def test_both_miss(self, settings, bridge_handler):
        """A host that is not a bridge yields None."""
        client, prober = make_prober(bridge_handler, settings)
        async with client:
            assert await prober.probe("192.168.1.51") is None


class TestCreateHttpClient:
    """Test the shared client factory."""

    @pytest.mark.asyncio
    async def test_headers(self, settings):
        """The client sends our User-Agent."""
        async with create_http_client(settings) as client:
            assert client.headers["User-Agent"].startswith("hue-bridge-discovery/")
            assert client.follow_redirects is False
