"""Approximate visitor location from proxy headers or an IP lookup service."""
import ipaddress
import logging
import threading
import time
from collections import OrderedDict
from typing import Callable, Mapping

import requests

from app.core.config import settings

logger = logging.getLogger(__name__)

UNKNOWN_LOCATION = {
    "latitude": 0,
    "longitude": 0,
    "city": "Unknown",
    "country": "Unknown",
    "region": "Unknown",
    "source": "unknown",
}


class GeoIPCache:
    """Per-IP lookup results with a time-to-live and a size bound.

    ``loader(ip)`` returns a location dict or None; None is cached too so a
    failing lookup is not retried on every request. ``clock`` returns seconds.
    Every entry lives for the same TTL, so insertion order is expiry order:
    expired entries are dropped from the front on each insert, then the oldest
    are evicted while more than ``max_entries`` remain.
    """

    def __init__(
        self,
        loader: Callable[[str], dict | None],
        ttl_seconds: float,
        clock: Callable[[], float] = time.monotonic,
        max_entries: int = 10000,
    ):
        if max_entries < 1:
            raise ValueError("max_entries must be positive")
        self._loader = loader
        self._ttl = ttl_seconds
        self._clock = clock
        self._max_entries = max_entries
        self._entries: OrderedDict[str, tuple[float, dict | None]] = OrderedDict()
        self._lock = threading.Lock()

    def get(self, ip: str) -> dict | None:
        now = self._clock()
        with self._lock:
            hit = self._entries.get(ip)
            if hit and hit[0] > now:
                return hit[1]
        value = self._loader(ip)
        with self._lock:
            self._entries.pop(ip, None)
            self._purge_expired(now)
            self._entries[ip] = (now + self._ttl, value)
            while len(self._entries) > self._max_entries:
                evicted, _ = self._entries.popitem(last=False)
                logger.debug("GeoIP cache full; evicted %s", evicted)
        return value

    def _purge_expired(self, now: float) -> None:
        while self._entries:
            ip, (expires, _) = next(iter(self._entries.items()))
            if expires > now:
                break
            del self._entries[ip]

    def invalidate(self, ip: str | None = None) -> None:
        with self._lock:
            if ip is None:
                self._entries.clear()
            else:
                self._entries.pop(ip, None)

    def __len__(self) -> int:
        return len(self._entries)


def lookup_ip(ip: str) -> dict | None:
    if not settings.GEOIP_LOOKUP_URL:
        return None
    try:
        r = requests.get(settings.GEOIP_LOOKUP_URL.format(ip=ip), timeout=5)
        r.raise_for_status()
        data = r.json()
    except (requests.RequestException, ValueError) as e:
        logger.warning("GeoIP lookup for %s failed: %s", ip, e)
        return None
    if data.get("status") not in (None, "success"):
        logger.info("GeoIP lookup for %s returned status %s", ip, data.get("status"))
        return None
    lat = data.get("lat", data.get("latitude"))
    lon = data.get("lon", data.get("longitude"))
    if lat is None or lon is None:
        return None
    return {
        "latitude": float(lat),
        "longitude": float(lon),
        "city": data.get("city"),
        "country": data.get("country") or data.get("country_name"),
        "region": data.get("regionName") or data.get("region"),
        "source": "ip",
    }


def client_ip(headers: Mapping[str, str], peer: str | None = None) -> str:
    real = headers.get("x-real-ip")
    if real:
        return real.strip()
    forwarded = headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return peer or "127.0.0.1"


def is_private_ip(ip: str) -> bool:
    try:
        addr = ipaddress.ip_address(ip)
    except ValueError:
        return True
    return addr.is_private or addr.is_loopback or addr.is_link_local or addr.is_unspecified


def _from_proxy_headers(headers: Mapping[str, str]) -> dict | None:
    lat = headers.get("x-vercel-ip-latitude") or headers.get("cf-iplatitude")
    lon = headers.get("x-vercel-ip-longitude") or headers.get("cf-iplongitude")
    if not lat or not lon:
        return None
    try:
        latitude, longitude = float(lat), float(lon)
    except ValueError:
        return None
    return {
        "latitude": latitude,
        "longitude": longitude,
        "city": headers.get("x-vercel-ip-city") or headers.get("cf-ipcity"),
        "country": headers.get("x-vercel-ip-country") or headers.get("cf-ipcountry"),
        "region": headers.get("x-vercel-ip-country-region") or headers.get("cf-region"),
        "source": "proxy",
    }


def detect_location(headers: Mapping[str, str], cache: GeoIPCache, peer: str | None = None) -> dict:
    """Proxy headers first, then a cached IP lookup, else the unknown location."""
    found = _from_proxy_headers(headers)
    if found:
        return found
    ip = client_ip(headers, peer)
    if is_private_ip(ip):
        logger.debug("Private address %s; skipping GeoIP lookup", ip)
        return dict(UNKNOWN_LOCATION)
    return cache.get(ip) or dict(UNKNOWN_LOCATION)


def default_cache() -> GeoIPCache:
    return GeoIPCache(
        lookup_ip,
        ttl_seconds=settings.GEOIP_CACHE_TTL_SECONDS,
        max_entries=settings.GEOIP_CACHE_MAX_ENTRIES,
    )
