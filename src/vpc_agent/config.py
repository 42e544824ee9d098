"""YAML configuration loader for the vpc agent."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping, Optional

import yaml

from vpc_controller.workqueue import DEFAULT_BASE_DELAY, DEFAULT_MAX_DELAY
from vpc_nics.metadata import DEFAULT_METADATA_URL
from vpc_nics.reconciler import DEFAULT_AWAIT_ADDRESS_DELAY

NODE_NAME_ENV = "NODE_NAME"


@dataclass
class KubernetesConfig:
    kubeconfig: Optional[Path] = None
    context: Optional[str] = None


@dataclass
class ControllerConfig:
    workers: int = 2
    await_address_delay: float = DEFAULT_AWAIT_ADDRESS_DELAY
    backoff_base: float = DEFAULT_BASE_DELAY
    backoff_max: float = DEFAULT_MAX_DELAY
    resync_period: float = 300.0
    watch_timeout: int = 300
    stop_after_teardown: bool = False


@dataclass
class MetadataConfig:
    url: str = DEFAULT_METADATA_URL
    timeout: float = 5.0


@dataclass
class AgentConfig:
    node_name: str
    kubernetes: KubernetesConfig = field(default_factory=KubernetesConfig)
    controller: ControllerConfig = field(default_factory=ControllerConfig)
    metadata: MetadataConfig = field(default_factory=MetadataConfig)


def _section(data: dict, name: str) -> dict:
    section = data.get(name) or {}
    if not isinstance(section, dict):
        raise ValueError(f"'{name}' section must be a mapping")
    return section


def _parse_kubernetes(section: dict) -> KubernetesConfig:
    kubeconfig = section.get("kubeconfig")
    return KubernetesConfig(
        kubeconfig=Path(kubeconfig) if kubeconfig else None,
        context=section.get("context"),
    )


def _parse_controller(section: dict) -> ControllerConfig:
    defaults = ControllerConfig()
    controller = ControllerConfig(
        workers=int(section.get("workers", defaults.workers)),
        await_address_delay=float(
            section.get("await_address_delay", defaults.await_address_delay)
        ),
        backoff_base=float(section.get("backoff_base", defaults.backoff_base)),
        backoff_max=float(section.get("backoff_max", defaults.backoff_max)),
        resync_period=float(section.get("resync_period", defaults.resync_period)),
        watch_timeout=int(section.get("watch_timeout", defaults.watch_timeout)),
        stop_after_teardown=bool(
            section.get("stop_after_teardown", defaults.stop_after_teardown)
        ),
    )
    if controller.workers < 1:
        raise ValueError("controller 'workers' must be at least 1")
    if controller.await_address_delay <= 0:
        raise ValueError("controller 'await_address_delay' must be positive")
    if not 0 < controller.backoff_base <= controller.backoff_max:
        raise ValueError("controller backoff requires 0 < backoff_base <= backoff_max")
    return controller


def _parse_metadata(section: dict) -> MetadataConfig:
    defaults = MetadataConfig()
    return MetadataConfig(
        url=str(section.get("url", defaults.url)),
        timeout=float(section.get("timeout", defaults.timeout)),
    )


def load_config(
    path: Optional[Path],
    environ: Optional[Mapping[str, str]] = None,
    node_name: Optional[str] = None,
) -> AgentConfig:
    """Load agent configuration from ``path``.

    ``path`` may be ``None`` to run on defaults only.  The node identity is
    taken from ``node_name`` if given, then the file, then ``$NODE_NAME``.
    """

    environ = os.environ if environ is None else environ

    data: dict = {}
    if path is not None:
        loaded = yaml.safe_load(Path(path).read_text())
        if loaded is not None:
            if not isinstance(loaded, dict):
                raise ValueError("Agent configuration must be a mapping")
            data = loaded

    resolved_node = node_name or data.get("node_name") or environ.get(NODE_NAME_ENV)
    if not resolved_node:
        raise ValueError(
            f"node name not configured: set 'node_name' or ${NODE_NAME_ENV}"
        )

    return AgentConfig(
        node_name=str(resolved_node),
        kubernetes=_parse_kubernetes(_section(data, "kubernetes")),
        controller=_parse_controller(_section(data, "controller")),
        metadata=_parse_metadata(_section(data, "metadata")),
    )
