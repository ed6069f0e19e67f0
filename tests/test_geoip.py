import pytest
import requests

from app.main import app
from app.services import geoip_service
from app.services.geoip_service import GeoIPCache, UNKNOWN_LOCATION, client_ip, detect_location, is_private_ip


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


class CountingLoader:
    def __init__(self, result):
        self.result = result
        self.calls = []

    def __call__(self, ip):
        self.calls.append(ip)
        return self.result


BERLIN = {"latitude": 52.52, "longitude": 13.405, "city": "Berlin", "country": "Germany", "region": "Berlin", "source": "ip"}


def test_cache_hits_until_ttl_expires():
    clock, loader = FakeClock(), CountingLoader(BERLIN)
    cache = GeoIPCache(loader, ttl_seconds=60, clock=clock)
    assert cache.get("8.8.8.8") == BERLIN
    clock.now += 59
    assert cache.get("8.8.8.8") == BERLIN
    assert loader.calls == ["8.8.8.8"]
    clock.now += 1
    cache.get("8.8.8.8")
    assert loader.calls == ["8.8.8.8", "8.8.8.8"]


def test_misses_are_cached_and_can_be_invalidated():
    loader = CountingLoader(None)
    cache = GeoIPCache(loader, ttl_seconds=60, clock=FakeClock())
    assert cache.get("1.1.1.1") is None
    assert cache.get("1.1.1.1") is None
    assert len(loader.calls) == 1
    cache.invalidate("1.1.1.1")
    cache.get("1.1.1.1")
    assert len(loader.calls) == 2
    cache.invalidate()
    assert len(cache) == 0


def test_expired_entries_are_dropped_on_insert():
    clock = FakeClock()
    cache = GeoIPCache(CountingLoader(BERLIN), ttl_seconds=1, clock=clock)
    for i in range(10000):
        cache.get(f"10.{i // 65536}.{i // 256 % 256}.{i % 256}")
    assert len(cache) == 10000
    clock.now += 2
    cache.get("8.8.8.8")
    assert len(cache) == 1


def test_oldest_entries_are_evicted_when_full():
    clock, loader = FakeClock(), CountingLoader(BERLIN)
    cache = GeoIPCache(loader, ttl_seconds=60, clock=clock, max_entries=2)
    cache.get("1.1.1.1")
    cache.get("2.2.2.2")
    cache.get("3.3.3.3")
    assert len(cache) == 2
    cache.get("2.2.2.2")
    cache.get("3.3.3.3")
    assert loader.calls == ["1.1.1.1", "2.2.2.2", "3.3.3.3"]
    cache.get("1.1.1.1")
    assert loader.calls[-1] == "1.1.1.1"
    assert len(cache) == 2


def test_refreshed_entry_moves_to_the_back():
    clock, loader = FakeClock(), CountingLoader(BERLIN)
    cache = GeoIPCache(loader, ttl_seconds=10, clock=clock, max_entries=2)
    cache.get("1.1.1.1")
    clock.now += 5
    cache.get("2.2.2.2")
    clock.now += 6
    # 1.1.1.1 expired and is reloaded; 2.2.2.2 is now the oldest
    cache.get("1.1.1.1")
    cache.get("3.3.3.3")
    calls = len(loader.calls)
    cache.get("1.1.1.1")
    assert len(loader.calls) == calls
    cache.get("2.2.2.2")
    assert len(loader.calls) == calls + 1


def test_max_entries_must_be_positive():
    with pytest.raises(ValueError):
        GeoIPCache(CountingLoader(None), 60, max_entries=0)


def test_proxy_headers_win():
    loader = CountingLoader(BERLIN)
    headers = {
        "x-vercel-ip-latitude": "40.7128",
        "x-vercel-ip-longitude": "-74.0060",
        "x-vercel-ip-city": "New York",
        "x-vercel-ip-country": "US",
        "x-forwarded-for": "8.8.8.8",
    }
    out = detect_location(headers, GeoIPCache(loader, 60))
    assert out["latitude"] == 40.7128
    assert out["city"] == "New York"
    assert out["source"] == "proxy"
    assert loader.calls == []


def test_private_addresses_skip_lookup():
    loader = CountingLoader(BERLIN)
    out = detect_location({"x-forwarded-for": "192.168.1.20, 8.8.8.8"}, GeoIPCache(loader, 60))
    assert out == UNKNOWN_LOCATION
    assert loader.calls == []


def test_public_address_uses_cached_lookup():
    loader = CountingLoader(BERLIN)
    cache = GeoIPCache(loader, 60, clock=FakeClock())
    assert detect_location({"x-real-ip": "8.8.8.8"}, cache) == BERLIN
    assert detect_location({"x-real-ip": "8.8.8.8"}, cache) == BERLIN
    assert loader.calls == ["8.8.8.8"]


def test_failed_lookup_falls_back_to_unknown():
    out = detect_location({"x-real-ip": "8.8.8.8"}, GeoIPCache(CountingLoader(None), 60))
    assert out["source"] == "unknown"
    assert (out["latitude"], out["longitude"]) == (0, 0)


def test_client_ip_and_private_checks():
    assert client_ip({"x-forwarded-for": "8.8.4.4, 10.0.0.1"}) == "8.8.4.4"
    assert client_ip({}, peer="9.9.9.9") == "9.9.9.9"
    assert client_ip({}) == "127.0.0.1"
    assert is_private_ip("10.1.2.3")
    assert is_private_ip("::1")
    assert is_private_ip("not-an-ip")
    assert not is_private_ip("8.8.8.8")


def test_lookup_ip_parses_response(monkeypatch):
    class Resp:
        def raise_for_status(self):
            pass

        def json(self):
            return {"status": "success", "lat": 52.52, "lon": 13.405, "city": "Berlin", "country": "Germany", "regionName": "Berlin"}

    monkeypatch.setattr(geoip_service.settings, "GEOIP_LOOKUP_URL", "http://geo.test/{ip}")
    seen = []
    monkeypatch.setattr(geoip_service.requests, "get", lambda url, timeout: seen.append(url) or Resp())
    assert geoip_service.lookup_ip("8.8.8.8") == BERLIN
    assert seen == ["http://geo.test/8.8.8.8"]


def test_lookup_ip_network_error(monkeypatch):
    def down(url, timeout):
        raise requests.ConnectionError("down")

    monkeypatch.setattr(geoip_service.settings, "GEOIP_LOOKUP_URL", "http://geo.test/{ip}")
    monkeypatch.setattr(geoip_service.requests, "get", down)
    assert geoip_service.lookup_ip("8.8.8.8") is None


def test_lookup_disabled_without_url(monkeypatch):
    monkeypatch.setattr(geoip_service.settings, "GEOIP_LOOKUP_URL", "")
    assert geoip_service.lookup_ip("8.8.8.8") is None


@pytest.fixture()
def app_cache():
    original = app.state.geoip_cache
    loader = CountingLoader(BERLIN)
    app.state.geoip_cache = GeoIPCache(loader, 60, clock=FakeClock())
    yield loader
    app.state.geoip_cache = original


def test_detect_endpoint(client, app_cache):
    r = client.get("/api/v1/location/detect", headers={"x-forwarded-for": "8.8.8.8"})
    assert r.status_code == 200
    assert r.json()["city"] == "Berlin"
    client.get("/api/v1/location/detect", headers={"x-forwarded-for": "8.8.8.8"})
    assert app_cache.calls == ["8.8.8.8"]
