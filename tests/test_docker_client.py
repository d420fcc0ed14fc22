import base64
import io
import json
import tarfile

import pytest

from fortanode.containers import ContainerConfig
from fortanode.docker_client import (
    ContainerNotFoundError,
    DockerClient,
    DockerError,
    EngineNotFoundError,
)


def make_container(cid, name, state="running", ip="", image="img"):
    return {
        "Id": cid,
        "Names": [f"/{name}"],
        "State": state,
        "Image": image,
        "NetworkSettings": {"Networks": {"net": {"IPAddress": ip}}},
    }


class FakeEngine:
    def __init__(self, containers=None):
        self.containers = list(containers or [])
        self.networks = []
        self.images = set()
        self.calls = []
        self.errors = {}
        self.pull_response = b'{"status":"Downloaded newer image"}'
        self.logs = b""
        self.copied = []

    def _fail(self, method):
        err = self.errors.get(method)
        if err is not None:
            raise err

    def image_pull(self, ref, registry_auth):
        self.calls.append(("image_pull", ref, registry_auth))
        self._fail("image_pull")
        self.images.add(ref)
        return self.pull_response

    def image_inspect(self, ref):
        if ref not in self.images:
            raise EngineNotFoundError(ref)
        return {"Id": ref}

    def image_remove(self, ref):
        self.calls.append(("image_remove", ref))
        self._fail("image_remove")
        self.images.discard(ref)

    def container_list(self, all, filters, limit=None):
        self.calls.append(("container_list", filters))
        if "ancestor" in filters:
            found = [c for c in self.containers if c["Image"] in filters["ancestor"]]
            return found[:limit] if limit else found
        return list(self.containers)

    def container_inspect(self, container_id):
        return {"Id": container_id, "Image": f"sha256:{container_id}"}

    def container_create(self, name, config):
        self.calls.append(("container_create", name, config))
        cid = f"id-{name}"
        self.containers.append(make_container(cid, name, state="created"))
        return cid

    def container_start(self, container_id):
        self.calls.append(("container_start", container_id))

    def container_kill(self, container_id, signal):
        self.calls.append(("container_kill", container_id, signal))
        self._fail("container_kill")
        for c in self.containers:
            if c["Id"] == container_id:
                c["State"] = "exited"

    def container_stop(self, container_id, timeout):
        self.calls.append(("container_stop", container_id, timeout))

    def container_remove(self, container_id, force):
        self.containers = [c for c in self.containers if c["Id"] != container_id]

    def container_logs(self, container_id, tail):
        return self.logs

    def copy_to_container(self, container_id, path, archive):
        self.copied.append((container_id, path, archive))

    def network_list(self, filters=None):
        if filters and "name" in filters:
            return [n for n in self.networks if n["Name"] in filters["name"]]
        return list(self.networks)

    def network_create(self, name, labels, internal):
        self.calls.append(("network_create", name, labels, internal))
        nid = f"net-{name}"
        self.networks.append({"Name": name, "Id": nid})
        return nid

    def network_remove(self, network_id):
        self.networks = [n for n in self.networks if n["Id"] != network_id]

    def network_connect(self, network_id, container_id):
        self.calls.append(("network_connect", network_id, container_id))
        self._fail("network_connect")

    def network_disconnect(self, network_id, container_id, force):
        self._fail("network_disconnect")

    def networks_prune(self, filters):
        return []

    def containers_prune(self, filters):
        pruned = [c["Id"] for c in self.containers if c["State"] in ("exited", "dead", "created")]
        self.containers = [c for c in self.containers if c["Id"] not in pruned]
        return pruned


def new_client(engine, name="runner"):
    client = DockerClient(engine, name)
    client.poll_interval = 0
    client.start_poll_interval = 0
    return client


def test_get_containers_uses_label_filter():
    engine = FakeEngine([make_container("a", "forta-scanner")])
    client = new_client(engine)
    result = client.get_containers()
    assert [c["Id"] for c in result] == ["a"]
    assert engine.calls[-1] == (
        "container_list",
        {"label": ["network.forta=true", "network.forta.supervisor=runner"]},
    )


def test_get_container_by_name_and_id():
    engine = FakeEngine([make_container("a", "forta-scanner"), make_container("b", "forta-agent-x")])
    client = new_client(engine)
    assert client.get_container_by_name("forta-agent-x")["Id"] == "b"
    assert client.get_container_by_id("a")["Names"] == ["/forta-scanner"]
    with pytest.raises(ContainerNotFoundError):
        client.get_container_by_name("missing")
    with pytest.raises(ContainerNotFoundError):
        client.get_container_by_id("missing")


def test_service_containers_exclude_bots():
    engine = FakeEngine([make_container("a", "forta-scanner"), make_container("b", "forta-agent-x")])
    client = new_client(engine)
    assert [c["Id"] for c in client.get_forta_service_containers()] == ["a"]


def test_pull_image_passes_credentials():
    engine = FakeEngine()
    password = "password"
    client = DockerClient(engine, "", username="user", password=password)
    client.pull_image("repo/image:1")
    _, ref, auth = engine.calls[-1]
    assert ref == "repo/image:1"
    assert json.loads(base64.b64decode(auth)) == {"username": "user", "password": password}


def test_pull_image_unexpected_response():
    engine = FakeEngine()
    engine.pull_response = b"something else"
    client = new_client(engine)
    with pytest.raises(DockerError, match="unexpected image pull response"):
        client.pull_image("repo/image")


def test_pull_image_cooldown():
    engine = FakeEngine()
    client = new_client(engine)
    client.set_image_pull_cooldown(1, 3600)
    client.pull_image("repo/image")
    with pytest.raises(DockerError, match="cooling down"):
        client.pull_image("repo/image")


def test_remove_image_skips_used_and_ignores_missing():
    engine = FakeEngine([make_container("a", "x", image="used")])
    client = new_client(engine)
    client.remove_image("used")
    assert ("image_remove", "used") not in engine.calls
    engine.errors["image_remove"] = RuntimeError("Error: No such image: other")
    client.remove_image("other")
    assert ("image_remove", "other") in engine.calls
    engine.errors["image_remove"] = RuntimeError("boom")
    with pytest.raises(RuntimeError):
        client.remove_image("other")


def test_networks():
    engine = FakeEngine()
    client = new_client(engine)
    first = client.ensure_internal_network("nw")
    assert client.ensure_public_network("nw") == first
    creates = [c for c in engine.calls if c[0] == "network_create"]
    assert len(creates) == 1
    assert creates[0][3] is True
    assert creates[0][2]["network.forta"] == "true"
    client.remove_network_by_name("nw")
    assert engine.networks == []


def test_attach_and_detach_tolerate_known_errors():
    engine = FakeEngine()
    client = new_client(engine)
    engine.errors["network_connect"] = RuntimeError("endpoint already exists")
    client.attach_network("c", "n")
    engine.errors["network_connect"] = RuntimeError("boom")
    with pytest.raises(RuntimeError):
        client.attach_network("c", "n")
    engine.errors["network_disconnect"] = RuntimeError("container c is not connected")
    client.detach_network("c", "n")
    engine.errors["network_disconnect"] = RuntimeError("boom")
    with pytest.raises(RuntimeError):
        client.detach_network("c", "n")


@pytest.mark.parametrize(
    "method,signal",
    [("stop_container", "SIGKILL"), ("interrupt_container", "SIGINT"), ("terminate_container", "SIGTERM")],
)
def test_stop_signals(method, signal):
    engine = FakeEngine([make_container("a", "x")])
    client = new_client(engine)
    getattr(client, method)("a")
    assert engine.calls[-1] == ("container_kill", "a", signal)


def test_stop_ignores_missing_container():
    engine = FakeEngine()
    client = new_client(engine)
    engine.errors["container_kill"] = RuntimeError("No such container: a")
    client.stop_container("a")
    engine.errors["container_kill"] = RuntimeError("boom")
    with pytest.raises(RuntimeError):
        client.stop_container("a")


def test_start_new_container():
    engine = FakeEngine()
    client = new_client(engine)
    config = ContainerConfig(
        name="svc",
        image="repo/svc",
        env={"A": "1"},
        ports={"127.0.0.1:8080": "80"},
        files={"etc/app.conf": b"hello"},
        link_network_ids=["n1"],
        dial_host=True,
        labels={"extra": "yes"},
    )
    started = client.start_container(config)
    assert started.id == "id-svc"
    assert started.image_hash == "sha256:id-svc"
    create = next(c for c in engine.calls if c[0] == "container_create")
    body = create[2]
    assert body["Env"] == ["A=1"]
    assert body["Labels"]["extra"] == "yes"
    assert body["Labels"]["network.forta.supervisor"] == "runner"
    host = body["HostConfig"]
    assert host["LogConfig"]["Config"] == {"max-file": "10", "max-size": "10m"}
    assert host["PortBindings"]["80/tcp"] == [{"HostIp": "127.0.0.1", "HostPort": "8080"}]
    assert host["ExtraHosts"] == ["host.docker.internal:host-gateway"]
    cid, path, archive = engine.copied[0]
    assert (cid, path) == ("id-svc", "/etc/")
    with tarfile.open(fileobj=io.BytesIO(archive)) as tar:
        member = tar.getmember("app.conf")
        assert tar.extractfile(member).read() == b"hello"
    assert ("network_connect", "n1", "id-svc") in engine.calls


def test_start_existing_container_does_not_create():
    engine = FakeEngine([make_container("a", "svc", state="exited")])
    client = new_client(engine)
    started = client.start_container(ContainerConfig(name="svc", image="repo/svc"))
    assert started.id == "a"
    assert not any(c[0] == "container_create" for c in engine.calls)
    assert ("container_start", "a") in engine.calls


def test_wait_container_exit():
    engine = FakeEngine([make_container("a", "x", state="exited")])
    client = new_client(engine)
    client.wait_container_exit("a")
    client.wait_container_exit("missing")
    engine.containers[0]["State"] = "running"
    client.wait_timeout = 0
    with pytest.raises(TimeoutError):
        client.wait_container_exit("a")


def test_wait_container_prune_requires_stop():
    engine = FakeEngine([make_container("a", "x", state="running")])
    client = new_client(engine)
    with pytest.raises(DockerError, match="needs to stop first"):
        client.wait_container_prune("a")
    client.wait_container_prune("missing")


def test_nuke_stops_supervisor_first_and_prunes():
    engine = FakeEngine(
        [make_container("a", "forta-scanner"), make_container("s", "forta-supervisor")]
    )
    client = new_client(engine)
    client.nuke()
    kills = [c[1] for c in engine.calls if c[0] == "container_kill"]
    assert kills[0] == "s"
    assert set(kills) == {"a", "s"}
    assert engine.containers == []


def test_nuke_fails_after_retries():
    engine = FakeEngine([make_container("a", "x")])
    engine.errors["container_kill"] = RuntimeError("boom")
    client = new_client(engine)
    with pytest.raises(DockerError, match="all nuke retries failed"):
        client.nuke()


def test_local_images():
    engine = FakeEngine()
    client = new_client(engine)
    assert client.has_local_image("repo/a") is False
    client.ensure_local_image("a", "repo/a")
    assert client.has_local_image("repo/a") is True
    pulls_before = len([c for c in engine.calls if c[0] == "image_pull"])
    client.ensure_local_image("a", "repo/a")
    assert len([c for c in engine.calls if c[0] == "image_pull"]) == pulls_before
    engine.errors["image_pull"] = RuntimeError("network down")
    with pytest.raises(DockerError, match="pull error"):
        client.ensure_local_image("b", "repo/b")
    errors = client.ensure_local_images([("b", "repo/b"), ("a", "repo/a")])
    assert errors[1] is None
    assert isinstance(errors[0], DockerError)


def test_get_container_logs_strips_prefix():
    engine = FakeEngine()
    engine.logs = b"\x01\x00\x00\x00\x00\x00\x00\x102023-01-01 hello\n"
    client = new_client(engine)
    assert client.get_container_logs("a", "50", -1) == "2023-01-01 hello\n"


def test_get_container_from_remote_addr():
    engine = FakeEngine(
        [make_container("a", "x", ip="172.16.0.2"), make_container("b", "y", ip="172.16.0.3")]
    )
    client = new_client(engine)
    assert client.get_container_from_remote_addr("172.16.0.3:5555")["Id"] == "b"
    with pytest.raises(DockerError, match="could not found agent container"):
        client.get_container_from_remote_addr("10.0.0.9:1")


def test_shutdown_and_remove():
    engine = FakeEngine([make_container("a", "x")])
    client = new_client(engine)
    client.shutdown_container("a", 5)
    assert engine.calls[-1] == ("container_stop", "a", 5)
    client.remove_container("a")
    assert engine.containers == []