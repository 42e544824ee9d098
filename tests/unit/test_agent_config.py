from pathlib import Path

import pytest

from vpc_agent.config import load_config


def test_load_config(tmp_path: Path):
    config_path = tmp_path / "vpc.yaml"
    config_path.write_text(
        """
node_name: worker-1
kubernetes:
  kubeconfig: /etc/vpc-agent/kubeconfig
controller:
  workers: 4
  await_address_delay: 2
  backoff_base: 0.1
  backoff_max: 60
  resync_period: 120
  stop_after_teardown: true
metadata:
  url: http://127.0.0.1:8080/conf?format=json
  timeout: 1.5
"""
    )

    cfg = load_config(config_path, environ={})

    assert cfg.node_name == "worker-1"
    assert cfg.kubernetes.kubeconfig == Path("/etc/vpc-agent/kubeconfig")
    assert cfg.controller.workers == 4
    assert cfg.controller.await_address_delay == pytest.approx(2.0)
    assert cfg.controller.backoff_base == pytest.approx(0.1)
    assert cfg.controller.backoff_max == pytest.approx(60.0)
    assert cfg.controller.resync_period == pytest.approx(120.0)
    assert cfg.controller.watch_timeout == 300
    assert cfg.controller.stop_after_teardown is True
    assert cfg.metadata.url == "http://127.0.0.1:8080/conf?format=json"
    assert cfg.metadata.timeout == pytest.approx(1.5)


def test_defaults_and_node_name_from_environment(tmp_path: Path):
    config_path = tmp_path / "vpc.yaml"
    config_path.write_text("controller: {}\n")

    cfg = load_config(config_path, environ={"NODE_NAME": "worker-2"})

    assert cfg.node_name == "worker-2"
    assert cfg.kubernetes.kubeconfig is None
    assert cfg.controller.workers == 2
    assert cfg.controller.await_address_delay == pytest.approx(1.0)
    assert cfg.controller.stop_after_teardown is False
    assert cfg.metadata.url == "http://169.254.42.42/conf?format=json"


def test_explicit_node_name_wins(tmp_path: Path):
    config_path = tmp_path / "vpc.yaml"
    config_path.write_text("node_name: from-file\n")

    cfg = load_config(config_path, environ={"NODE_NAME": "from-env"}, node_name="from-cli")

    assert cfg.node_name == "from-cli"


def test_missing_file_path_uses_defaults():
    cfg = load_config(None, environ={"NODE_NAME": "worker-3"})

    assert cfg.node_name == "worker-3"


def test_node_name_is_required(tmp_path: Path):
    config_path = tmp_path / "vpc.yaml"
    config_path.write_text("controller:\n  workers: 1\n")

    with pytest.raises(ValueError, match="node name"):
        load_config(config_path, environ={})


@pytest.mark.parametrize(
    "body",
    [
        "- not\n- a mapping\n",
        "node_name: n\ncontroller: [1, 2]\n",
        "node_name: n\ncontroller:\n  workers: 0\n",
        "node_name: n\ncontroller:\n  backoff_base: 10\n  backoff_max: 1\n",
    ],
)
def test_invalid_configuration_is_rejected(tmp_path: Path, body: str):
    config_path = tmp_path / "vpc.yaml"
    config_path.write_text(body)

    with pytest.raises(ValueError):
        load_config(config_path, environ={})
