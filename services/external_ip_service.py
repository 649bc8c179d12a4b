"""
External IP lookup - asks public IP echo services, caches the answer and
falls back to the local server address
"""

import ipaddress
import logging
import os
import socket

import requests

logger = logging.getLogger(__name__)

CACHE_KEY = "external_ip"
UNKNOWN_IP = "Unable to detect IP"

IP_SERVICES = [
    "https://api.ipify.org",
    "https://icanhazip.com",
    "https://ipecho.net/plain",
    "https://checkip.amazonaws.com",
]


def is_valid_ip(value):
    """True for any IPv4 or IPv6 address"""
    try:
        ipaddress.ip_address(value)
    except ValueError:
        return False
    return True


class ExternalIpService:
    """Resolves the public IP address of this host"""

    def __init__(self, cache, ttl=3600, services=None, timeout=5):
        self.cache = cache
        self.ttl = ttl
        self.services = services if services is not None else list(IP_SERVICES)
        self.timeout = timeout

    def _lookup(self):
        for service in self.services:
            try:
                response = requests.get(service, timeout=self.timeout)
            except requests.RequestException as e:
                logger.debug(f"Failed to get IP from {service}: {e}")
                continue

            if not response.ok:
                logger.debug(f"IP service {service} returned HTTP {response.status_code}")
                continue

            ip = response.text.strip()
            if is_valid_ip(ip):
                return ip
            logger.debug(f"IP service {service} returned an invalid address")
        return None

    def get_external_ip(self):
        """Public IP from the first service that answers, cached; None if all fail"""
        return self.cache.remember(CACHE_KEY, self.ttl, self._lookup)

    def get_external_ip_with_fallback(self):
        """Public IP, else the local server address"""
        return self.get_external_ip() or self.get_server_ip()

    def clear_cache(self):
        self.cache.forget(CACHE_KEY)

    def get_server_ip(self):
        """Local address from SERVER_ADDR / LOCAL_ADDR or the host name"""
        candidates = [os.getenv("SERVER_ADDR"), os.getenv("LOCAL_ADDR")]
        try:
            candidates.append(socket.gethostbyname(socket.gethostname()))
        except OSError as e:
            logger.debug(f"Host name lookup failed: {e}")

        for ip in candidates:
            if ip and is_valid_ip(ip):
                return ip
        return UNKNOWN_IP
