"""Instance metadata access."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Optional

import httpx

from .exceptions import MetadataError
from .model import InstanceMetadata, PrivateNIC

LOG = logging.getLogger(__name__)

DEFAULT_METADATA_URL = "http://169.254.42.42/conf?format=json"


class MetadataProvider(ABC):
    @abstractmethod
    def get_metadata(self) -> InstanceMetadata:
        """Return a snapshot of the instance's attached private NICs."""


class ScalewayMetadataClient(MetadataProvider):
    """Read private NICs from the instance metadata endpoint.

    The endpoint is link-local and unauthenticated; it answers with the full
    server description, of which only ``private_nics`` is used here.
    """

    def __init__(
        self,
        url: str = DEFAULT_METADATA_URL,
        timeout: float = 5.0,
        client: Optional[httpx.Client] = None,
    ) -> None:
        self._url = url
        self._client = client or httpx.Client(timeout=timeout)

    def get_metadata(self) -> InstanceMetadata:
        try:
            response = self._client.get(self._url)
            response.raise_for_status()
            payload = response.json()
        except httpx.HTTPError as exc:
            raise MetadataError(f"metadata request to {self._url} failed: {exc}") from exc
        except ValueError as exc:
            raise MetadataError(f"metadata response is not JSON: {exc}") from exc

        if not isinstance(payload, dict):
            raise MetadataError("metadata response must be a JSON object")

        nics = []
        for entry in payload.get("private_nics") or []:
            mac = entry.get("mac_address") if isinstance(entry, dict) else None
            if not mac:
                LOG.debug("Skipping private nic without mac address: %s", entry)
                continue
            nics.append(PrivateNIC(mac_address=str(mac)))
        return InstanceMetadata(private_nics=tuple(nics))

    def close(self) -> None:
        self._client.close()
