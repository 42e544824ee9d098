"""Watcher implementations used by the vpc agent."""

from .kube import NETWORK_INTERFACES, PRIVATE_NETWORKS, ResourceWatcher  # noqa: F401

__all__ = ["NETWORK_INTERFACES", "PRIVATE_NETWORKS", "ResourceWatcher"]
