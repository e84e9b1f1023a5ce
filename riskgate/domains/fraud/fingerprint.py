"""Device fingerprinting and client address handling."""

import hashlib
import ipaddress
import json
from collections.abc import Iterable, Mapping

from .models import DeviceFingerprint, NetworkClass


def client_address(headers: Mapping[str, str], peer: str | None = None) -> str | None:
    """First hop of X-Forwarded-For, then X-Real-IP, then the socket peer."""
    forwarded = headers.get("x-forwarded-for")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    real_ip = headers.get("x-real-ip")
    if real_ip and real_ip.strip():
        return real_ip.strip()
    return peer or None


def _parse(address: str | None):
    if not address:
        return None
    try:
        return ipaddress.ip_address(address.strip())
    except ValueError:
        return None


def classify_network(address: str | None, anonymizing_networks: Iterable[str] = ()) -> NetworkClass:
    ip = _parse(address)
    if ip is None:
        return NetworkClass.MISSING
    for cidr in anonymizing_networks:
        if ip in ipaddress.ip_network(cidr, strict=False):
            return NetworkClass.ANONYMIZING
    if not ip.is_global:
        return NetworkClass.NON_ROUTABLE
    return NetworkClass.GLOBAL


def mask_ip(address: str | None) -> str | None:
    """Keep the network part only: /24 for IPv4, /48 for IPv6."""
    ip = _parse(address)
    if ip is None:
        return None
    prefix = 24 if ip.version == 4 else 48
    network = ipaddress.ip_network(f"{ip}/{prefix}", strict=False)
    return str(network)


def build_fingerprint(
    user_agent: str | None,
    address: str | None,
    accept_language: str | None,
    accept_encoding: str | None,
    device_id: str | None = None,
    anonymizing_networks: Iterable[str] = (),
) -> DeviceFingerprint:
    """Hash the request's device attributes into a correlation key.

    Only the digest and the derived network class leave this function; the
    address itself is not retained.
    """
    material = {
        "user_agent": (user_agent or "").strip(),
        "ip": (address or "").strip(),
        "language": (accept_language or "").strip().lower(),
        "encoding": (accept_encoding or "").strip().lower(),
        "device_id": (device_id or "").strip(),
    }
    digest = hashlib.sha256(json.dumps(material, sort_keys=True).encode("utf-8")).hexdigest()
    return DeviceFingerprint(
        fingerprint=digest,
        user_agent=material["user_agent"],
        network=classify_network(address, anonymizing_networks),
        has_device_id=bool(material["device_id"]),
    )
