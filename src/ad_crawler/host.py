"""Identify the machine running the crawl."""

from __future__ import annotations

import requests

from .logging import jlog

PUBLIC_IP_ENDPOINTS = ("https://api.ipify.org", "https://api64.ipify.org")


def get_public_ip(timeout_s: float = 5.0) -> str | None:
    """Best-effort public IP (v4 first, then v6). ``None`` when offline."""

    for endpoint in PUBLIC_IP_ENDPOINTS:
        try:
            resp = requests.get(endpoint, timeout=timeout_s)
            resp.raise_for_status()
        except requests.RequestException as exc:
            jlog("warning", event="public_ip_lookup_failed", endpoint=endpoint, error=str(exc))
            continue
        ip = resp.text.strip()
        if ip:
            return ip
    return None


__all__ = ["get_public_ip"]
