"""Entry point for the per-node vpc agent."""

from __future__ import annotations

import argparse
import logging
import signal
import sys
from pathlib import Path
from threading import Event

from kubernetes import client

from vpc_controller import Controller, ExponentialBackoff, HandlerRegistry, RateLimitingQueue
from vpc_controller.handlers import EnqueueRequestForObject, PrivateNetworkFanout
from vpc_nics.links import NetlinkSynchronizer
from vpc_nics.metadata import ScalewayMetadataClient
from vpc_nics.model import NETWORK_INTERFACE_KIND, PRIVATE_NETWORK_KIND
from vpc_nics.reconciler import NetworkInterfaceReconciler

from .config import AgentConfig, load_config
from .kube import KubeResourceStore, load_api_client
from .watchers import NETWORK_INTERFACES, PRIVATE_NETWORKS, ResourceWatcher

LOG = logging.getLogger(__name__)


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
    )


def build_registry(store, queue: RateLimitingQueue) -> HandlerRegistry:
    registry = HandlerRegistry()
    registry.register(NETWORK_INTERFACE_KIND, "enqueue", EnqueueRequestForObject(queue))
    registry.register(PRIVATE_NETWORK_KIND, "fanout", PrivateNetworkFanout(store, queue))
    return registry


def run(config: AgentConfig, stop_event: Event) -> None:
    api = client.CustomObjectsApi(load_api_client(config.kubernetes))
    store = KubeResourceStore(api)
    metadata = ScalewayMetadataClient(
        url=config.metadata.url, timeout=config.metadata.timeout
    )

    reconciler = NetworkInterfaceReconciler(
        store,
        NetlinkSynchronizer(),
        metadata,
        config.node_name,
        await_address_delay=config.controller.await_address_delay,
        stop_after_teardown=config.controller.stop_after_teardown,
    )
    queue = RateLimitingQueue(
        ExponentialBackoff(
            base_delay=config.controller.backoff_base,
            max_delay=config.controller.backoff_max,
        )
    )
    registry = build_registry(store, queue)

    controller = Controller(
        "networkinterface",
        reconciler,
        queue,
        workers=config.controller.workers,
        stop_event=stop_event,
    )
    controller.start()

    watchers = []
    for kind in (NETWORK_INTERFACES, PRIVATE_NETWORKS):
        watcher = ResourceWatcher(
            registry,
            api,
            kind,
            stop_event=stop_event,
            resync_period=config.controller.resync_period,
            watch_timeout=config.controller.watch_timeout,
        )
        watcher.start()
        watchers.append(watcher)

    LOG.info("vpc agent running on node %s", config.node_name)
    try:
        while not stop_event.is_set():
            stop_event.wait(1.0)
    except KeyboardInterrupt:  # pragma: no cover - fallback if signal not set
        stop_event.set()

    controller.stop(timeout=5.0)
    for watcher in watchers:
        watcher.join(timeout=5.0)
    metadata.close()


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Run the vpc node agent")
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to the agent configuration file",
    )
    parser.add_argument(
        "--node-name",
        default=None,
        help="Node identity; overrides the config file and $NODE_NAME",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable debug logging",
    )

    args = parser.parse_args(argv)
    _setup_logging(args.verbose)

    config = load_config(args.config, node_name=args.node_name)

    stop_event = Event()

    def _shutdown(signum, frame):  # pragma: no cover - signal handler
        LOG.info("received signal %s, shutting down", signum)
        stop_event.set()

    signal.signal(signal.SIGINT, _shutdown)
    signal.signal(signal.SIGTERM, _shutdown)

    run(config, stop_event)

    LOG.info("vpc agent stopped")
    return 0


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
