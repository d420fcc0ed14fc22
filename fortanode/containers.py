"""Container descriptions, labels, filters and log clean-up for the Docker engine API.

Containers are represented as the dictionaries the Docker engine API returns
from its container list endpoint (``Id``, ``Names``, ``State``,
``NetworkSettings`` and so on).
"""

from __future__ import annotations

import base64
import json
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple, Union

LABEL_FORTA = "network.forta"
LABEL_FORTA_SUPERVISOR = "network.forta.supervisor"
LABEL_FORTA_SUPERVISOR_STRATEGY_VERSION = "network.forta.supervisor.strategy-version"
LABEL_FORTA_IS_BOT = "network.forta.is-bot"
LABEL_FORTA_BOT_ID = "network.forta.bot-id"
LABEL_FORTA_SETTINGS_AGENT_LOGS_ENABLE = "network.forta.settings.agent-logs.enable"

DEFAULT_MAX_LOG_SIZE = "10m"
DEFAULT_MAX_LOG_FILES = 10
DEFAULT_HOST_IP = "0.0.0.0"

Container = Dict[str, Any]


@dataclass(frozen=True)
class Label:
    """A Docker label."""

    name: str
    value: str


DEFAULT_LABELS: Tuple[Label, ...] = (Label(LABEL_FORTA, "true"),)


@dataclass
class ContainerConfig:
    """Configuration for a container to start."""

    name: str
    image: str
    env: Dict[str, str] = field(default_factory=dict)
    link_network_ids: List[str] = field(default_factory=list)
    network_id: str = ""
    ports: Dict[str, str] = field(default_factory=dict)
    publish_all_ports: bool = False
    volumes: Dict[str, str] = field(default_factory=dict)
    files: Dict[str, bytes] = field(default_factory=dict)
    max_log_size: str = ""
    max_log_files: int = 0
    cpu_quota: int = 0
    memory: int = 0
    cmd: List[str] = field(default_factory=list)
    dial_host: bool = False
    labels: Dict[str, str] = field(default_factory=dict)

    def env_vars(self) -> List[str]:
        """Environment as ``KEY=VALUE`` strings."""
        return [f"{key}={value}" for key, value in self.env.items()]


def container_name(container: Mapping[str, Any]) -> str:
    """The container's first name without the leading slash."""
    return container["Names"][0][1:]


class ContainerList(list):
    """A list of container dictionaries with lookup helpers."""

    def find_by_id(self, container_id: str) -> Optional[Container]:
        """The container with the given ID, or None."""
        return next((c for c in self if c.get("Id") == container_id), None)

    def find_by_name(self, name: str) -> Optional[Container]:
        """The container with the given name (with or without slash), or None."""
        wanted = {name, f"/{name}"}
        return next(
            (c for c in self if any(n in wanted for n in c.get("Names") or ())),
            None,
        )

    def contains_any(self, name: str) -> Optional[Container]:
        """The first container whose first name contains ``name``, or None."""
        return next((c for c in self if name in c["Names"][0]), None)


def registry_auth_value(username: str, password: str) -> str:
    """The base64-encoded registry credentials, or an empty string if none."""
    if not username and not password:
        return ""
    encoded = json.dumps(
        {"username": username, "password": password},
        sort_keys=True,
        separators=(",", ":"),
    ).encode("utf-8")
    return base64.b64encode(encoded).decode("ascii")


def init_labels(name: str) -> List[Label]:
    """The labels that mark containers managed by a client with this name."""
    labels = list(DEFAULT_LABELS)
    if name:
        labels.append(Label(LABEL_FORTA_SUPERVISOR, name))
    return labels


def labels_to_map(labels: Iterable[Label]) -> Dict[str, str]:
    """Labels as a name-to-value mapping."""
    return {label.name: label.value for label in labels}


def label_filters(labels: Iterable[Label]) -> Dict[str, List[str]]:
    """Docker API filters that match all of the given labels."""
    values = [f"{label.name}={label.value}" for label in labels]
    return {"label": values} if values else {}


def port_bindings(
    ports: Mapping[str, str],
) -> Tuple[Dict[str, Dict[str, Any]], Dict[str, List[Dict[str, str]]]]:
    """Exposed ports and port bindings for a host-to-container port mapping.

    Host ports may carry an IP address as ``ip:port``; otherwise they bind to
    all interfaces.
    """
    exposed: Dict[str, Dict[str, Any]] = {}
    bindings: Dict[str, List[Dict[str, str]]] = {}
    for host_port, cont_port in ports.items():
        host_ip = DEFAULT_HOST_IP
        parts = host_port.split(":")
        if len(parts) == 2:
            host_ip, host_port = parts
        key = f"{cont_port}/tcp"
        exposed[key] = {}
        bindings[key] = [{"HostIp": host_ip, "HostPort": host_port}]
    return exposed, bindings


def clean_container_logs(raw: Union[bytes, str], truncate: int) -> str:
    """Truncate container logs and strip the stream prefix before each timestamp.

    A negative ``truncate`` keeps everything.
    """
    if truncate >= 0 and len(raw) > truncate:
        raw = raw[:truncate]
    text = raw.decode("utf-8", errors="replace") if isinstance(raw, bytes) else raw
    lines = []
    for line in text.split("\n"):
        start = line.find("2")  # timestamp beginning
        lines.append(line[start:] if line and start >= 0 else line)
    return "\n".join(lines)