"""Service endpoint resolution and the stored connection artifact.

A configured endpoint (``AppConfig.service_url``/``service_key``) always
wins. Without one, the operator can point the app at a self-hosted
backend at runtime through the setup view, which stores a ``{url, key}``
pair locally. With neither, the app runs in offline demo mode.
"""

import logging
from dataclasses import dataclass

import httpx

from accountable.config import AppConfig
from accountable.storage import Storage
from accountable.validation import ensure_valid, required, url

logger = logging.getLogger("accountable.connection")

STORAGE_KEY = "accountable_db_config"

# Values a template checkout ships with; they count as "not configured"
_PLACEHOLDER_URL = "URL"
_PLACEHOLDER_KEY = "ANON_KEY"

_DISCOVERY_FUNCTION = "get-public-config"
_DISCOVERY_TIMEOUT = 5.0


@dataclass(frozen=True, slots=True)
class ServiceEndpoint:
    """Base URL and publishable key of the hosted backend."""

    url: str
    key: str

    def __post_init__(self) -> None:
        object.__setattr__(self, "url", self.url.rstrip("/"))

    def function_url(self, name: str) -> str:
        return f"{self.url}/functions/v1/{name}"

    def __repr__(self) -> str:
        return f"ServiceEndpoint(url={self.url!r})"


def _usable(value: str | None, placeholder: str) -> bool:
    return bool(value) and value != placeholder


def stored_endpoint(storage: Storage) -> ServiceEndpoint | None:
    """Return the endpoint saved through the setup view, if any."""
    item = storage.get_item(STORAGE_KEY)
    if not isinstance(item, dict):
        return None
    stored_url, stored_key = item.get("url"), item.get("key")
    if not (_usable(stored_url, _PLACEHOLDER_URL) and _usable(stored_key, _PLACEHOLDER_KEY)):
        return None
    return ServiceEndpoint(url=stored_url, key=stored_key)


def resolve_endpoint(config: AppConfig, storage: Storage) -> ServiceEndpoint | None:
    """Pick the active endpoint: configured first, then stored, else ``None``.

    URL and key resolve independently, so a configured URL can pair with a
    stored key, as long as both end up usable.
    """
    stored = storage.get_item(STORAGE_KEY)
    stored = stored if isinstance(stored, dict) else {}

    active_url = (
        config.service_url
        if _usable(config.service_url, _PLACEHOLDER_URL)
        else stored.get("url", "")
    )
    active_key = (
        config.service_key
        if _usable(config.service_key, _PLACEHOLDER_KEY)
        else stored.get("key", "")
    )
    if _usable(active_url, _PLACEHOLDER_URL) and _usable(active_key, _PLACEHOLDER_KEY):
        return ServiceEndpoint(url=active_url, key=active_key)
    return None


def save_endpoint(storage: Storage, service_url: str, key: str) -> ServiceEndpoint:
    """Validate and store a ``{url, key}`` pair.

    Raises ``ValidationError`` for a missing or malformed URL or key.
    """
    data = ensure_valid(
        {"url": service_url, "key": key},
        {"url": [required, url], "key": [required]},
    )
    endpoint = ServiceEndpoint(url=data["url"], key=data["key"])
    storage.set_item(STORAGE_KEY, {"url": endpoint.url, "key": endpoint.key})
    logger.info("Stored service endpoint %s", endpoint.url)
    return endpoint


def disconnect(storage: Storage) -> None:
    """Forget the stored endpoint; the app falls back to demo mode."""
    storage.remove_item(STORAGE_KEY)


@dataclass(frozen=True, slots=True)
class DiscoveryResult:
    key: str | None
    message: str


async def discover_key(
    service_url: str,
    *,
    client: httpx.AsyncClient | None = None,
) -> DiscoveryResult:
    """Ask the backend's public-config function for its publishable key.

    Never raises: every failure comes back as a message for the setup form.
    """
    target = f"{service_url.rstrip('/')}/functions/v1/{_DISCOVERY_FUNCTION}"
    owns_client = client is None
    http = client or httpx.AsyncClient(timeout=_DISCOVERY_TIMEOUT)
    try:
        response = await http.post(target, timeout=_DISCOVERY_TIMEOUT)
    except httpx.HTTPError as exc:
        logger.info("Key discovery against %s failed: %s", target, exc)
        return DiscoveryResult(None, "Auto-discovery failed. Please enter key manually.")
    finally:
        if owns_client:
            await http.aclose()

    if not response.is_success:
        return DiscoveryResult(
            None,
            "Could not retrieve keys automatically. Server may require auth or is sleeping.",
        )
    try:
        body = response.json()
    except ValueError:
        body = None
    key = body.get("anonKey") if isinstance(body, dict) else None
    if key:
        return DiscoveryResult(key, "Keys found automatically!")
    return DiscoveryResult(None, "Server reachable, but keys not returned.")
