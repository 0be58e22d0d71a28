# yoga_service/network.py
"""Connectivity checks used to enable or disable sync."""

import asyncio
import logging
import socket
from dataclasses import dataclass
from typing import Callable, Optional

import httpx

from . import config

logger = logging.getLogger(__name__)

OFFLINE_MESSAGE = "Network connection error. Please check your internet connection and try again."
TIMEOUT_MESSAGE = "Request timed out. The server is taking too long to respond."

_CONNECTION_HINTS = (
    "SocketException",
    "ConnectException",
    "UnknownHostException",
    "Failed to connect",
    "host lookup",
    "Failed host connection",
    "Name or service not known",
    "Connection refused",
)


def is_network_connected(host: str = "8.8.8.8", port: int = 53, timeout: float = 3.0) -> bool:
    """True if a TCP connection to a well-known resolver can be opened."""
    try:
        with socket.create_connection((host, port), timeout=timeout):
            return True
    except OSError:
        return False


async def has_internet_access(url: Optional[str] = None, timeout: Optional[float] = None) -> bool:
    url = url or config.CONNECTIVITY_PROBE_URL
    timeout = timeout if timeout is not None else config.CONNECTIVITY_TIMEOUT_SECONDS
    async with httpx.AsyncClient(timeout=timeout) as client:
        try:
            response = await client.head(url)
        except httpx.HTTPError as e:
            logger.error(f"Error checking internet connection: {network_error_message(e)}")
            return False
    return response.status_code == 200


def network_error_message(exc: BaseException) -> str:
    if isinstance(exc, (httpx.TimeoutException, asyncio.TimeoutError, socket.timeout)):
        return TIMEOUT_MESSAGE
    if isinstance(exc, (httpx.ConnectError, ConnectionError, socket.gaierror)):
        return OFFLINE_MESSAGE

    message = str(exc) or repr(exc)
    if any(hint in message for hint in _CONNECTION_HINTS):
        return OFFLINE_MESSAGE
    if "timeout" in message or "timed out" in message:
        return TIMEOUT_MESSAGE
    return f"A network error occurred: {message}"


@dataclass(frozen=True)
class ConnectivityStatus:
    connected: bool

    @property
    def sync_enabled(self) -> bool:
        return self.connected

    @property
    def status_text(self) -> str:
        return "Online" if self.connected else "Offline"


class NetworkMonitor:
    def __init__(self, probe: Callable[[], bool] = is_network_connected):
        self.probe = probe
        self.last_status: Optional[ConnectivityStatus] = None

    async def check(self) -> ConnectivityStatus:
        connected = await asyncio.to_thread(self.probe)
        self.last_status = ConnectivityStatus(connected)
        return self.last_status

    async def is_online(self) -> bool:
        return (await self.check()).connected

    def watch(self, listener: Callable[[ConnectivityStatus], None], interval: float = 5.0) -> asyncio.Task:
        """
        Poll connectivity and call `listener` on every change (and once at start).

        Cancel the returned task to stop watching.
        """

        async def poll():
            previous = None
            while True:
                status = await self.check()
                if previous is None or status.connected != previous.connected:
                    logger.debug(f"Network connectivity changed: {status.status_text}")
                    listener(status)
                previous = status
                await asyncio.sleep(interval)

        return asyncio.create_task(poll())
