"""Host-side network configuration for private NICs.

This package holds the domain half of the node agent:

* the resource model for ``NetworkInterface`` / ``PrivateNetwork`` objects;
* pure planning helpers deciding what a reconciliation pass must do;
* :class:`~vpc_nics.reconciler.NetworkInterfaceReconciler`, the per-object
  state machine; and
* the collaborators it drives: netlink link programming and the instance
  metadata client.

Everything here is synchronous and free of Kubernetes imports so the engine
can be exercised in unit tests with in-memory fakes.
"""

from .reconciler import NetworkInterfaceReconciler, Result  # noqa: F401

__all__ = ["NetworkInterfaceReconciler", "Result"]
