"""A Docker client that manages the node's containers, networks and images.

The client talks to a Docker engine through an object that follows the
:class:`Engine` protocol. Containers, networks and inspection results are the
dictionaries the Docker engine API returns.
"""

from __future__ import annotations

import io
import logging
import tarfile
import time
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Mapping, Optional, Protocol, Tuple

from .containers import (
    DEFAULT_MAX_LOG_FILES,
    DEFAULT_MAX_LOG_SIZE,
    Container,
    ContainerConfig,
    ContainerList,
    Label,
    clean_container_logs,
    container_name,
    init_labels,
    label_filters,
    labels_to_map,
    port_bindings,
    registry_auth_value,
)
from .cooldown import Cooldown

log = logging.getLogger(__name__)

_NUKE_ATTEMPTS = 4


class DockerError(Exception):
    """A Docker operation failed."""


class ContainerNotFoundError(DockerError, LookupError):
    """No container matched the lookup."""


class EngineNotFoundError(DockerError, LookupError):
    """Raised by an engine when the requested object does not exist."""


class Engine(Protocol):
    """The Docker engine operations the client relies on."""

    def image_pull(self, ref: str, registry_auth: str) -> bytes: ...

    def image_inspect(self, ref: str) -> Dict[str, Any]: ...

    def image_remove(self, ref: str) -> None: ...

    def container_list(
        self, all: bool, filters: Mapping[str, List[str]], limit: Optional[int] = None
    ) -> List[Container]: ...

    def container_inspect(self, container_id: str) -> Dict[str, Any]: ...

    def container_create(self, name: str, config: Dict[str, Any]) -> str: ...

    def container_start(self, container_id: str) -> None: ...

    def container_kill(self, container_id: str, signal: str) -> None: ...

    def container_stop(self, container_id: str, timeout: Optional[float]) -> None: ...

    def container_remove(self, container_id: str, force: bool) -> None: ...

    def container_logs(self, container_id: str, tail: str) -> bytes: ...

    def copy_to_container(self, container_id: str, path: str, archive: bytes) -> None: ...

    def network_list(
        self, filters: Optional[Mapping[str, List[str]]] = None
    ) -> List[Dict[str, Any]]: ...

    def network_create(self, name: str, labels: Dict[str, str], internal: bool) -> str: ...

    def network_remove(self, network_id: str) -> None: ...

    def network_connect(self, network_id: str, container_id: str) -> None: ...

    def network_disconnect(self, network_id: str, container_id: str, force: bool) -> None: ...

    def networks_prune(self, filters: Mapping[str, List[str]]) -> List[str]: ...

    def containers_prune(self, filters: Mapping[str, List[str]]) -> List[str]: ...


@dataclass
class RunningContainer:
    """A started container: its name, ID, image hash and configuration."""

    name: str
    id: str
    image_hash: str
    config: ContainerConfig


def _error_contains(err: BaseException, text: str) -> bool:
    return text in str(err).lower()


def _is_no_such_container(err: BaseException) -> bool:
    return _error_contains(err, "no such container")


def _is_not_running(err: BaseException) -> bool:
    return _error_contains(err, "is not running")


def _file_archive(file_path: str, content: bytes) -> Tuple[str, bytes]:
    """The target directory and a tar archive holding one file."""
    if not file_path:
        raise ValueError("zero length file path")
    if not file_path.startswith("/"):
        file_path = "/" + file_path
    directory, _, file_name = file_path.rpartition("/")
    buffer = io.BytesIO()
    with tarfile.open(fileobj=buffer, mode="w") as archive:
        info = tarfile.TarInfo(name=file_name)
        info.mode = 0o666
        info.size = len(content)
        archive.addfile(info, io.BytesIO(content))
    return directory + "/", buffer.getvalue()


class DockerClient:
    """Manages labelled containers, networks and images on a Docker engine."""

    supervisor_container_name = "forta-supervisor"
    poll_interval = 0.5
    start_poll_interval = 1.0
    wait_timeout = 60.0
    start_timeout = 30.0

    def __init__(
        self,
        engine: Engine,
        name: str = "",
        username: str = "",
        password: str = "",
    ) -> None:
        self._engine = engine
        self._username = username
        self._password = password
        self.labels: List[Label] = init_labels(name)
        self._pull_cooldown: Optional[Cooldown] = None

    def _label_filter(self) -> Dict[str, List[str]]:
        return label_filters(self.labels)

    # images

    def pull_image(self, ref: str) -> None:
        """Pull an image; raise DockerError on cool-down or unexpected response."""
        if self._pull_cooldown is not None and self._pull_cooldown.should_cool_down(ref):
            raise DockerError(f"too many pull attempts - cooling down: {ref}")
        raw = self._engine.image_pull(ref, registry_auth_value(self._username, self._password))
        text = raw.decode("utf-8", errors="replace") if isinstance(raw, bytes) else str(raw)
        lowered = text.lower()
        if "downloaded" in lowered or "up to date" in lowered:
            return
        raise DockerError(f"unexpected image pull response: {text}")

    def remove_image(self, ref: str) -> None:
        """Remove an image unless a container uses it; a missing image is fine."""
        try:
            users = self._engine.container_list(all=True, filters={"ancestor": [ref]}, limit=1)
        except Exception as err:
            raise DockerError(f"failed to get the container list: {err}") from err
        if users:
            return
        try:
            self._engine.image_remove(ref)
        except Exception as err:
            if _error_contains(err, "no such image"):
                return
            raise

    def has_local_image(self, ref: str) -> bool:
        """Tell whether the image is present locally."""
        try:
            self._engine.image_inspect(ref)
        except EngineNotFoundError:
            return False
        return True

    def ensure_local_image(self, name: str, ref: str) -> None:
        """Pull the image unless it is already present locally."""
        log.info("ensuring local image", extra={"image": ref, "name": name})
        try:
            exists = self.has_local_image(ref)
        except Exception as err:
            raise DockerError(f"error checking local: {err}") from err
        if exists:
            log.info("found local image for '%s': %s", name, ref)
            return
        started = time.monotonic()
        try:
            self.pull_image(ref)
        except Exception as err:
            duration = time.monotonic() - started
            log.error("error pulling image: %s", err)
            raise DockerError(f"pull error (duration={duration:.3f}s) {ref}: {err}") from err
        log.info("pulled '%s' image: %s", name, ref)

    def ensure_local_images(
        self, pulls: Iterable[Tuple[str, str]]
    ) -> List[Optional[BaseException]]:
        """Ensure each ``(name, ref)`` image; return the error of each, or None."""
        errors: List[Optional[BaseException]] = []
        for name, ref in pulls:
            try:
                self.ensure_local_image(name, ref)
            except Exception as err:
                errors.append(err)
            else:
                errors.append(None)
        return errors

    def set_image_pull_cooldown(self, threshold: int, cooldown_duration: float) -> None:
        """Limit repeated pulls of the same image."""
        self._pull_cooldown = Cooldown(threshold, cooldown_duration)

    # networks

    def _create_network(self, name: str, internal: bool) -> str:
        for network in self._engine.network_list():
            if network.get("Name") == name:
                return network["Id"]
        return self._engine.network_create(name, labels_to_map(self.labels), internal)

    def ensure_public_network(self, name: str) -> str:
        """The ID of the named public network, created if missing."""
        return self._create_network(name, internal=False)

    def ensure_internal_network(self, name: str) -> str:
        """The ID of the named internal network, created if missing."""
        return self._create_network(name, internal=True)

    def remove_network_by_name(self, name: str) -> None:
        """Remove the named network if it exists."""
        networks = self._engine.network_list(filters={"name": [name]})
        if networks:
            self._engine.network_remove(networks[0]["Id"])

    def attach_network(self, container_id: str, network_id: str) -> None:
        """Connect a container to a network; an existing connection is fine."""
        try:
            self._engine.network_connect(network_id, container_id)
        except Exception as err:
            if "already exists" in str(err):
                return
            raise

    def detach_network(self, container_id: str, network_id: str) -> None:
        """Disconnect a container from a network; no connection is fine."""
        try:
            self._engine.network_disconnect(network_id, container_id, True)
        except Exception as err:
            if "is not connected" in str(err):
                return
            raise

    # containers

    def get_containers(self) -> ContainerList:
        """All containers carrying this client's labels."""
        return ContainerList(self._engine.container_list(all=True, filters=self._label_filter()))

    def get_containers_by_label(self, name: str, value: str) -> ContainerList:
        """All containers carrying the given label."""
        filters = label_filters([Label(name, value)])
        return ContainerList(self._engine.container_list(all=True, filters=filters))

    def get_forta_service_containers(self) -> ContainerList:
        """This client's containers that are not bot containers."""
        return ContainerList(
            c for c in self.get_containers() if "forta-agent" not in container_name(c)
        )

    def get_container_by_name(self, name: str) -> Container:
        """The container with the given name."""
        for container in self.get_containers():
            if container_name(container) == name:
                return container
        raise ContainerNotFoundError(f"container not found with name '{name}'")

    def get_container_by_id(self, container_id: str) -> Container:
        """The container with the given ID."""
        found = self.get_containers().find_by_id(container_id)
        if found is None:
            raise ContainerNotFoundError(f"container not found with id '{container_id}'")
        return found

    def inspect_container(self, container_id: str) -> Dict[str, Any]:
        """The container's details."""
        try:
            return self._engine.container_inspect(container_id)
        except Exception as err:
            raise DockerError(f"failed to get container details: {err}") from err

    def start_container_with_id(self, container_id: str) -> None:
        """Start an existing container."""
        self._engine.container_start(container_id)

    def _engine_config(self, config: ContainerConfig) -> Dict[str, Any]:
        _, bindings = port_bindings(config.ports)
        labels = labels_to_map(self.labels)
        labels.update(config.labels)
        host_config: Dict[str, Any] = {
            "NetworkMode": config.network_id,
            "PortBindings": bindings,
            "PublishAllPorts": config.publish_all_ports,
            "Binds": [f"{host}:{mount}" for host, mount in config.volumes.items()],
            "LogConfig": {
                "Type": "json-file",
                "Config": {
                    "max-file": str(config.max_log_files or DEFAULT_MAX_LOG_FILES),
                    "max-size": config.max_log_size or DEFAULT_MAX_LOG_SIZE,
                },
            },
            "CpuQuota": config.cpu_quota,
            "Memory": config.memory,
        }
        if config.dial_host:
            host_config["ExtraHosts"] = ["host.docker.internal:host-gateway"]
        engine_config: Dict[str, Any] = {
            "Image": config.image,
            "Env": config.env_vars(),
            "Labels": labels,
            "HostConfig": host_config,
        }
        if config.cmd:
            engine_config["Cmd"] = list(config.cmd)
        return engine_config

    def start_container(self, config: ContainerConfig) -> RunningContainer:
        """Start the configured container, creating it first if it does not exist."""
        log.info("StartContainer()", extra={"image": config.image, "container": config.name})
        existing = next(
            (
                c
                for c in self.get_containers()
                if c.get("Names") and container_name(c) == config.name
            ),
            None,
        )
        if existing is not None:
            container_id = existing["Id"]
            self._engine.container_start(container_id)
        else:
            container_id = self._engine.container_create(config.name, self._engine_config(config))
            for file_path, content in config.files.items():
                directory, archive = _file_archive(file_path, content)
                self._engine.copy_to_container(container_id, directory, archive)
            self._engine.container_start(container_id)
            for network_id in config.link_network_ids:
                try:
                    self.attach_network(container_id, network_id)
                except Exception as err:
                    log.error("error attaching network: %s", err)
                    raise
        inspection = self._engine.container_inspect(container_id)
        log.info("container is starting", extra={"id": container_id, "container": config.name})
        return RunningContainer(
            name=config.name,
            id=container_id,
            image_hash=inspection.get("Image", ""),
            config=config,
        )

    def _stop_container(self, container_id: str, signal: str) -> None:
        log.info("stopping container", extra={"id": container_id, "signal": signal})
        try:
            self._engine.container_kill(container_id, signal)
        except Exception as err:
            if _is_no_such_container(err) or _is_not_running(err):
                return
            raise

    def stop_container(self, container_id: str) -> None:
        """Kill a container."""
        self._stop_container(container_id, "SIGKILL")

    def interrupt_container(self, container_id: str) -> None:
        """Stop a container with an interrupt signal."""
        self._stop_container(container_id, "SIGINT")

    def terminate_container(self, container_id: str) -> None:
        """Stop a container with a termination signal."""
        self._stop_container(container_id, "SIGTERM")

    def shutdown_container(self, container_id: str, timeout: Optional[float] = None) -> None:
        """Stop a container gracefully, killing it after ``timeout`` seconds."""
        self._engine.container_stop(container_id, timeout)

    def remove_container(self, container_id: str) -> None:
        """Forcibly remove a container."""
        self._engine.container_remove(container_id, True)

    def wait_container_exit(self, container_id: str) -> None:
        """Wait until the container has exited or is gone."""
        deadline = time.monotonic() + self.wait_timeout
        while True:
            try:
                container = self.get_container_by_id(container_id)
            except ContainerNotFoundError:
                log.info("no need to wait for container exit - not found")
                return
            if container.get("State") in ("exited", "created"):
                return
            if time.monotonic() >= deadline:
                raise TimeoutError(f"container {container_id} did not exit in time")
            log.info("still waiting for exit: %s", container.get("State"))
            time.sleep(self.poll_interval)

    def wait_container_start(self, container_id: str) -> None:
        """Wait until the container is running."""
        deadline = time.monotonic() + self.start_timeout
        while True:
            container = self.get_container_by_id(container_id)
            if container.get("State") == "running":
                log.info("container started")
                return
            if time.monotonic() >= deadline:
                raise DockerError("container did not start")
            time.sleep(self.start_poll_interval)

    def wait_container_prune(self, container_id: str) -> None:
        """Wait until a stopped container is pruned."""
        deadline = time.monotonic() + self.wait_timeout
        while True:
            try:
                container = self.get_container_by_id(container_id)
            except ContainerNotFoundError:
                return
            state = container.get("State")
            if state not in ("exited", "dead"):
                raise DockerError(
                    f"cannot prune container with status '{state}' - container needs to stop first"
                )
            if time.monotonic() >= deadline:
                raise TimeoutError(f"container {container_id} was not pruned in time")
            time.sleep(self.poll_interval)

    def prune(self) -> None:
        """Prune this client's stopped containers and unused networks."""
        filters = self._label_filter()
        for network in self._engine.networks_prune(filters):
            log.info("pruned network %s", network)
        for container in self._engine.containers_prune(filters):
            log.info("pruned container %s", container)

    def _nuke_once(self) -> None:
        try:
            containers = list(self.get_containers())
        except Exception as err:
            raise DockerError(f"failed to get forta containers list: {err}") from err
        # stop the supervisor first so it does not restart anything
        try:
            containers.insert(0, self.get_container_by_name(self.supervisor_container_name))
        except ContainerNotFoundError:
            pass
        except Exception as err:
            raise DockerError(
                f"unexpected error while getting supervisor container: {err}"
            ) from err

        for container in containers:
            try:
                self.stop_container(container["Id"])
            except Exception as err:
                raise DockerError(f"failed to stop: {err}") from err
            self.wait_container_exit(container["Id"])

        try:
            self.prune()
        except Exception as err:
            raise DockerError(f"failed to prune: {err}") from err

        for container in containers:
            self.wait_container_prune(container["Id"])

    def nuke(self) -> None:
        """Stop and prune all of this client's containers, retrying a few times."""
        last_error: Optional[BaseException] = None
        for _ in range(_NUKE_ATTEMPTS):
            try:
                self._nuke_once()
                return
            except Exception as err:
                last_error = err
                log.error("failed to nuke - retrying: %s", err)
        raise DockerError(f"all nuke retries failed: {last_error}") from last_error

    def get_container_logs(self, container_id: str, tail: str, truncate: int) -> str:
        """The container's timestamped logs, truncated to ``truncate`` bytes if non-negative."""
        raw = self._engine.container_logs(container_id, tail)
        return clean_container_logs(raw, truncate)

    def get_container_from_remote_addr(self, host_port: str) -> Container:
        """The container whose network address matches the host of ``host_port``."""
        ip_address = host_port.split(":")[0]
        for container in self.get_containers():
            networks = (container.get("NetworkSettings") or {}).get("Networks") or {}
            if any(n.get("IPAddress") == ip_address for n in networks.values()):
                return container
        log.warning("not a known bot: %s", ip_address)
        raise DockerError(f"could not found agent container from ip address: {host_port}")