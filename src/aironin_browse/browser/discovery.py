"""Locate a controllable Chrome instance through its DevTools discovery endpoint."""

from __future__ import annotations

import asyncio
import ipaddress
import logging
import socket
import struct
from collections.abc import Awaitable, Callable, Sequence
from pathlib import Path
from typing import Any, Optional
from urllib.parse import urlsplit, urlunsplit

import httpx

from ..config import DEFAULT_REMOTE_PORT, SessionConfig
from ..errors import DiscoveryFailure, LaunchError
from ..models import ConnectionDescriptor, ConnectionMode

LOGGER = logging.getLogger(__name__)

VERSION_PATH = "/json/version"
DEFAULT_PROBE_TIMEOUT = 1.5
CONTAINER_HOST_ALIASES = ("host.docker.internal",)
ROUTE_TABLE = Path("/proc/net/route")
_RTF_GATEWAY = 0x2
_SUPPORTED_PROTOCOL_MAJOR = "1"


def normalize_host_url(value: str) -> str:
    """Return ``scheme://host:port`` for a user supplied endpoint address.

    A bare ``host:port`` is treated as ``http``. Paths and queries are dropped.
    """

    raw = value.strip() if isinstance(value, str) else ""
    if not raw:
        raise ValueError("Host URL must not be empty")
    if "://" not in raw:
        raw = f"http://{raw}"
    parts = urlsplit(raw)
    if parts.scheme not in {"http", "https"}:
        raise ValueError(f"Unsupported scheme in host URL {value!r}; use http or https")
    try:
        port = parts.port
    except ValueError as exc:
        raise ValueError(f"Invalid port in host URL {value!r}") from exc
    if not parts.hostname or port is None:
        raise ValueError(f"Host URL {value!r} must include a host and a port")
    host = parts.hostname
    if ":" in host:
        host = f"[{host}]"
    return f"{parts.scheme}://{host}:{port}"


class EndpointProber:
    """Validate a single candidate host without keeping a connection open."""

    def __init__(
        self,
        timeout: float = DEFAULT_PROBE_TIMEOUT,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._timeout = timeout
        self._transport = transport

    @property
    def timeout(self) -> float:
        return self._timeout

    async def probe(self, host_url: str) -> ConnectionDescriptor:
        """Return a descriptor for ``host_url`` or raise :class:`DiscoveryFailure`."""

        base_url = normalize_host_url(host_url)
        LOGGER.debug("Probing %s%s", base_url, VERSION_PATH)
        try:
            async with httpx.AsyncClient(
                timeout=self._timeout,
                transport=self._transport,
                trust_env=False,
            ) as client:
                response = await client.get(f"{base_url}{VERSION_PATH}")
        except httpx.HTTPError as exc:
            raise DiscoveryFailure(f"{base_url} is unreachable: {exc!r}") from exc
        if response.status_code != 200:
            raise DiscoveryFailure(f"{base_url} answered HTTP {response.status_code}")
        try:
            payload = response.json()
        except ValueError as exc:
            raise DiscoveryFailure(f"{base_url} returned malformed JSON") from exc
        if not isinstance(payload, dict):
            raise DiscoveryFailure(f"{base_url} returned an unexpected payload")
        return _descriptor_from_version(base_url, payload)

    async def try_host(self, host_url: str) -> bool:
        try:
            await self.probe(host_url)
        except DiscoveryFailure as exc:
            LOGGER.debug("Probe failed: %s", exc)
            return False
        return True


def _descriptor_from_version(base_url: str, payload: dict[str, Any]) -> ConnectionDescriptor:
    websocket_url = payload.get("webSocketDebuggerUrl")
    if not isinstance(websocket_url, str) or not websocket_url:
        raise DiscoveryFailure(f"{base_url} does not expose a browser debugger URL")
    protocol_version = _optional_str(payload.get("Protocol-Version"))
    if protocol_version and protocol_version.split(".")[0] != _SUPPORTED_PROTOCOL_MAJOR:
        raise DiscoveryFailure(
            f"{base_url} speaks unsupported protocol version {protocol_version}"
        )
    return ConnectionDescriptor(
        mode=ConnectionMode.REMOTE,
        host_url=base_url,
        websocket_url=_rebase_websocket_url(websocket_url, base_url),
        browser=_optional_str(payload.get("Browser")),
        protocol_version=protocol_version,
    )


def _rebase_websocket_url(websocket_url: str, base_url: str) -> str:
    # Chrome reports the address it bound to, which is often unreachable from
    # the prober's side (e.g. localhost inside a container).
    socket_parts = urlsplit(websocket_url)
    base_parts = urlsplit(base_url)
    scheme = "wss" if base_parts.scheme == "https" else "ws"
    return urlunsplit(
        (scheme, base_parts.netloc, socket_parts.path, socket_parts.query, socket_parts.fragment)
    )


def _optional_str(value: object) -> Optional[str]:
    return value if isinstance(value, str) and value else None


async def resolve_ipv4(host: str) -> Optional[str]:
    loop = asyncio.get_running_loop()
    try:
        infos = await loop.getaddrinfo(host, None, family=socket.AF_INET, type=socket.SOCK_STREAM)
    except OSError:
        return None
    return infos[0][4][0] if infos else None


def default_gateway(route_table: Path = ROUTE_TABLE) -> Optional[str]:
    """Return the default IPv4 gateway of this network namespace, if known."""

    try:
        lines = route_table.read_text().splitlines()
    except OSError:
        return None
    for line in lines[1:]:
        fields = line.split()
        if len(fields) < 4 or fields[1] != "00000000":
            continue
        try:
            gateway = int(fields[2], 16)
            flags = int(fields[3], 16)
        except ValueError:
            continue
        if flags & _RTF_GATEWAY and gateway:
            return socket.inet_ntoa(struct.pack("<L", gateway))
    return None


def _is_ip_address(host: str) -> bool:
    try:
        ipaddress.ip_address(host)
    except ValueError:
        return False
    return True


class EndpointDiscovery:
    """Scan well-known locations for a browser exposing remote debugging."""

    def __init__(
        self,
        prober: Optional[EndpointProber] = None,
        *,
        host_aliases: Sequence[str] = CONTAINER_HOST_ALIASES,
        resolver: Callable[[str], Awaitable[Optional[str]]] = resolve_ipv4,
        gateway_resolver: Callable[[], Optional[str]] = default_gateway,
    ) -> None:
        self._prober = prober or EndpointProber()
        self._host_aliases = tuple(host_aliases)
        self._resolver = resolver
        self._gateway_resolver = gateway_resolver

    @property
    def prober(self) -> EndpointProber:
        return self._prober

    async def candidates(self, port: int) -> list[str]:
        """Build the ordered, de-duplicated candidate URLs for ``port``.

        Names are resolved concurrently and each lookup is bounded by the probe
        timeout; a lookup that times out counts as unresolvable.
        """

        _check_port(port)
        hosts: list[tuple[str, bool]] = [("localhost", True), ("127.0.0.1", True)]
        hosts.extend((alias, False) for alias in self._host_aliases)
        gateway = await asyncio.to_thread(self._gateway_resolver)
        if gateway:
            hosts.append((gateway, False))
        addresses = await asyncio.gather(*(self._resolve(host) for host, _ in hosts))

        seen: set[str] = set()
        urls: list[str] = []
        for (host, required), address in zip(hosts, addresses):
            if address is None:
                if not required:
                    LOGGER.debug("Skipping %s: name does not resolve", host)
                    continue
                address = host
            if address in seen:
                LOGGER.debug("Skipping %s: duplicate of an earlier candidate", host)
                continue
            seen.add(address)
            urls.append(f"http://{host}:{port}")
        return urls

    async def _resolve(self, host: str) -> Optional[str]:
        if _is_ip_address(host):
            return host
        try:
            return await asyncio.wait_for(self._resolver(host), self._prober.timeout)
        except asyncio.TimeoutError:
            LOGGER.debug("Resolving %s timed out after %ss", host, self._prober.timeout)
            return None

    async def discover(
        self,
        port: int = DEFAULT_REMOTE_PORT,
        explicit_host: Optional[str] = None,
    ) -> Optional[ConnectionDescriptor]:
        """Return the first responding endpoint, or ``None`` when nothing answers.

        An explicit host is probed on its own; there is no fallback scan.
        Candidates are probed one after another so the highest priority
        responder always wins.
        """

        if explicit_host:
            return await self._probe_or_none(explicit_host)
        urls = await self.candidates(port)
        for url in urls:
            descriptor = await self._probe_or_none(url)
            if descriptor is not None:
                LOGGER.info("Discovered %s at %s", descriptor.browser or "browser", url)
                return descriptor
        LOGGER.info("No browser found on port %s (tried %s)", port, ", ".join(urls))
        return None

    async def _probe_or_none(self, host_url: str) -> Optional[ConnectionDescriptor]:
        try:
            return await self._prober.probe(host_url)
        except DiscoveryFailure as exc:
            LOGGER.debug("Probe failed: %s", exc)
            return None


def _check_port(port: int) -> None:
    if isinstance(port, bool) or not isinstance(port, int) or not 0 < port < 65536:
        raise ValueError(f"Port must be an integer between 1 and 65535, got {port!r}")


async def resolve_descriptor(
    config: SessionConfig,
    discovery: Optional[EndpointDiscovery] = None,
) -> ConnectionDescriptor:
    """Decide where a session described by ``config`` should connect.

    An explicit ``remote_host`` always takes precedence over auto-discovery.
    """

    if not config.remote_enabled:
        return ConnectionDescriptor.local()
    discovery = discovery or EndpointDiscovery(EndpointProber(config.probe_timeout))
    try:
        descriptor = await discovery.discover(config.remote_port, config.remote_host)
    except ValueError as exc:
        raise LaunchError(f"Invalid remote browser address: {exc}") from exc
    if descriptor is None:
        target = config.remote_host or f"port {config.remote_port}"
        raise LaunchError(f"No Chrome instance with remote debugging found at {target}")
    return descriptor


async def try_host(host_url: str, *, timeout: float = DEFAULT_PROBE_TIMEOUT) -> bool:
    """Return whether ``host_url`` exposes a controllable browser."""

    return await EndpointProber(timeout).try_host(host_url)


async def discover(
    port: int = DEFAULT_REMOTE_PORT,
    explicit_host: Optional[str] = None,
    *,
    timeout: float = DEFAULT_PROBE_TIMEOUT,
) -> Optional[ConnectionDescriptor]:
    return await EndpointDiscovery(EndpointProber(timeout)).discover(port, explicit_host)


async def discover_host_url(
    port: int = DEFAULT_REMOTE_PORT,
    explicit_host: Optional[str] = None,
    *,
    timeout: float = DEFAULT_PROBE_TIMEOUT,
) -> Optional[str]:
    descriptor = await discover(port, explicit_host, timeout=timeout)
    return descriptor.host_url if descriptor else None
