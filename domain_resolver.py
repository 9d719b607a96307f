import platform
from urllib.parse import urlsplit

from config import settings


def normalize_domain(site_url: str) -> str:
    """
    Reduce a site URL to the host used to identify this installation.
    Scheme, port, path and a leading "www." are dropped; the result is lowercase.
    """
    value = (site_url or "").strip()
    if not value:
        return ""

    if "://" not in value:
        value = f"//{value}"

    host = urlsplit(value).hostname or ""
    host = host.lower().rstrip(".")
    if host.startswith("www."):
        host = host[4:]

    return host


def get_domain() -> str:
    """
    Domain reported to the license server for activation.
    """
    domain = normalize_domain(settings.SITE_URL)
    if domain:
        return domain

    return normalize_domain(platform.node())
