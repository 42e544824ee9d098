"""Kubernetes-backed resource store."""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Mapping, Sequence, TypeVar

import urllib3
from kubernetes import client, config
from kubernetes.client.rest import ApiException

from vpc_nics.exceptions import ConflictError, ObjectNotFound, StoreError
from vpc_nics.model import (
    GROUP,
    NETWORK_INTERFACE_PLURAL,
    PRIVATE_NETWORK_PLURAL,
    VERSION,
    NetworkInterface,
    PrivateNetwork,
    Request,
)
from vpc_nics.store import ResourceStore

from .config import KubernetesConfig

LOG = logging.getLogger(__name__)

T = TypeVar("T")


def load_api_client(settings: KubernetesConfig) -> client.ApiClient:
    """Build an API client, preferring in-cluster credentials."""

    if settings.kubeconfig is not None:
        config.load_kube_config(
            config_file=str(settings.kubeconfig), context=settings.context
        )
        LOG.info("Using kubeconfig %s", settings.kubeconfig)
        return client.ApiClient()

    try:
        config.load_incluster_config()
        LOG.info("Using in-cluster config")
    except config.ConfigException:
        config.load_kube_config(context=settings.context)
        LOG.info("Using local kubeconfig")
    return client.ApiClient()


def label_selector(labels: Mapping[str, str]) -> str:
    return ",".join(f"{key}={value}" for key, value in sorted(labels.items()))


class KubeResourceStore(ResourceStore):
    """:class:`ResourceStore` over the custom objects API."""

    def __init__(self, api: client.CustomObjectsApi) -> None:
        self._api = api

    def _call(self, what: str, fn: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        try:
            return fn(*args, **kwargs)
        except ApiException as exc:
            if exc.status == 404:
                raise ObjectNotFound(f"{what}: not found") from exc
            if exc.status == 409:
                raise ConflictError(f"{what}: {exc.reason}") from exc
            raise StoreError(f"{what}: {exc.status} {exc.reason}") from exc
        except urllib3.exceptions.HTTPError as exc:
            raise StoreError(f"{what}: {exc}") from exc

    def get_network_interface(self, request: Request) -> NetworkInterface:
        data = self._call(
            f"get networkinterface {request}",
            self._api.get_cluster_custom_object,
            GROUP,
            VERSION,
            NETWORK_INTERFACE_PLURAL,
            request.name,
        )
        return NetworkInterface.from_dict(data)

    def get_private_network(self, name: str) -> PrivateNetwork:
        data = self._call(
            f"get privatenetwork {name}",
            self._api.get_cluster_custom_object,
            GROUP,
            VERSION,
            PRIVATE_NETWORK_PLURAL,
            name,
        )
        return PrivateNetwork.from_dict(data)

    def update_network_interface(self, nic: NetworkInterface) -> NetworkInterface:
        data = self._call(
            f"update networkinterface {nic.name}",
            self._api.replace_cluster_custom_object,
            GROUP,
            VERSION,
            NETWORK_INTERFACE_PLURAL,
            nic.name,
            nic.to_dict(),
        )
        return NetworkInterface.from_dict(data)

    def update_network_interface_status(
        self, nic: NetworkInterface
    ) -> NetworkInterface:
        data = self._call(
            f"update networkinterface {nic.name} status",
            self._api.replace_cluster_custom_object_status,
            GROUP,
            VERSION,
            NETWORK_INTERFACE_PLURAL,
            nic.name,
            nic.to_dict(),
        )
        return NetworkInterface.from_dict(data)

    def list_network_interfaces(
        self, labels: Mapping[str, str]
    ) -> Sequence[NetworkInterface]:
        selector = label_selector(labels)
        data: Dict[str, Any] = self._call(
            f"list networkinterfaces ({selector})",
            self._api.list_cluster_custom_object,
            GROUP,
            VERSION,
            NETWORK_INTERFACE_PLURAL,
            label_selector=selector,
        )
        return [NetworkInterface.from_dict(item) for item in data.get("items", [])]
