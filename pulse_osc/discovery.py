"""Learning which avatar parameters the OSC consumer exposes."""

import asyncio
import json
import logging
import urllib.request
from collections.abc import Iterable

from .osc import PARAMETER_PREFIX, ParameterBridge

logger = logging.getLogger(__name__)


class DiscoveryError(Exception):
    """The consumer's parameter list could not be fetched."""


def collect_parameter_paths(node: dict) -> list[str]:
    """Return the full path of every leaf in an OSCQuery node tree."""
    contents = node.get("CONTENTS")
    if not contents:
        path = node.get("FULL_PATH")
        return [path] if path else []

    paths = []
    for child in contents.values():
        paths.extend(collect_parameter_paths(child))
    return paths


def _get_json(url: str, timeout: float) -> dict:
    with urllib.request.urlopen(url, timeout=timeout) as response:
        return json.load(response)


async def fetch_avatar_parameters(url: str, timeout: float = 2.0) -> list[str]:
    """Fetch the avatar parameter node from an OSCQuery HTTP endpoint.

    Args:
        url: Base URL of the consumer's OSCQuery service, e.g. http://127.0.0.1:9010
        timeout: HTTP timeout in seconds

    Raises:
        DiscoveryError: If the request fails or the response is not valid JSON
    """
    node_url = url.rstrip("/") + PARAMETER_PREFIX.rstrip("/")
    try:
        tree = await asyncio.to_thread(_get_json, node_url, timeout)
    except (OSError, ValueError) as e:
        raise DiscoveryError(f"OSCQuery request to {node_url} failed: {e}") from e
    if not isinstance(tree, dict):
        raise DiscoveryError(f"Unexpected OSCQuery response from {node_url}")
    return collect_parameter_paths(tree)


class ParameterDiscovery:
    """Keeps the bridge's available parameters in sync with the avatar.

    With a query URL the list comes from OSCQuery; otherwise the statically
    configured names are used.
    """

    def __init__(
        self,
        bridge: ParameterBridge,
        query_url: str = "",
        static_parameters: Iterable[str] = (),
        timeout: float = 2.0,
    ):
        self.bridge = bridge
        self.query_url = query_url
        self.static_parameters = list(static_parameters)
        self._timeout = timeout

    async def refresh(self) -> None:
        if not self.query_url:
            self.bridge.update_available_parameters(self.static_parameters)
            return
        try:
            names = await fetch_avatar_parameters(self.query_url, self._timeout)
        except DiscoveryError as e:
            logger.warning("%s", e)
            return
        self.bridge.update_available_parameters(names)
