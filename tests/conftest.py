"""Shared fixtures: stub compute services and an in-memory remote node."""

from typing import Any, Dict, List, Optional

import pytest

from fleetcore.compute.base import Node, User
from fleetcore.shared.errors import TransportFailure
from fleetcore.transport.base import Endpoint, ExecResult


class SpyService:
    """Base-capability service recording every provider call."""

    provider = "spy"

    def __init__(self, nodes: Optional[List[Node]] = None, error: Optional[Exception] = None):
        self._nodes = list(nodes or [])
        self._error = error
        self.calls: List[str] = []

    async def nodes(self) -> List[Node]:
        self.calls.append("nodes")
        if self._error is not None:
            raise self._error
        return list(self._nodes)

    async def tag_nodes(self, nodes, tags):
        self.calls.append("tag_nodes")
        for node in nodes:
            node.tags.update(tags)
        return [n.id for n in nodes]

    def service_properties(self) -> Dict[str, Any]:
        return {"provider": self.provider, "identity": "spy-user"}


class CapableService(SpyService):
    """Implements every optional capability with canned results."""

    provider = "capable"
    created = [Node(id="n-1", name="web-1")]

    async def create_nodes(self, node_spec, user, node_count, options):
        self.calls.append("create_nodes")
        self.last_spec = node_spec
        return list(self.created)

    async def destroy_nodes(self, nodes):
        self.calls.append("destroy_nodes")
        return [n.id for n in nodes]

    async def images(self):
        self.calls.append("images")
        return ["ubuntu-20"]

    async def restart_nodes(self, nodes):
        self.calls.append("restart_nodes")
        return [n.id for n in nodes]

    async def stop_nodes(self, nodes):
        self.calls.append("stop_nodes")
        return [n.id for n in nodes]

    async def suspend_nodes(self, nodes):
        self.calls.append("suspend_nodes")
        return [n.id for n in nodes]

    async def resume_nodes(self, nodes):
        self.calls.append("resume_nodes")
        return [n.id for n in nodes]

    def matches_base_name(self, node_name, base_name):
        return node_name.startswith(base_name)

    def close(self):
        self.calls.append("close")


class FakeRemote:
    """Filesystem and call log of a pretend node."""

    def __init__(self) -> None:
        self.files: Dict[str, bytes] = {}
        self.modes: Dict[str, int] = {}
        self.calls: List[tuple] = []
        self.exec_exit = 0
        self.fail_receive = False
        self.fail_send_text = False
        self.connections = 0
        self.closed = 0


class FakeConnection:
    def __init__(self, remote: FakeRemote, node: Node) -> None:
        self.remote = remote
        self.endpoint = Endpoint(server=node.address, port=node.ssh_port)

    async def exec(self, script: str) -> ExecResult:
        self.remote.calls.append(("exec", script))
        return ExecResult(exit=self.remote.exec_exit, out="mkdir: denied" if self.remote.exec_exit else "")

    async def send_stream(self, reader, remote_path, mode=None):
        self.remote.calls.append(("send_stream", remote_path))
        self.remote.files[remote_path] = reader.read()
        self.remote.modes[remote_path] = mode

    async def send_text(self, text, remote_path, mode=None):
        self.remote.calls.append(("send_text", remote_path))
        if self.remote.fail_send_text:
            raise TransportFailure("disk full", exit=1, output="disk full")
        self.remote.files[remote_path] = text.encode("utf-8")
        self.remote.modes[remote_path] = mode

    async def receive(self, remote_path, local_path):
        self.remote.calls.append(("receive", remote_path))
        if self.remote.fail_receive:
            raise TransportFailure("connection reset")
        if remote_path not in self.remote.files:
            raise TransportFailure(f"No such file: {remote_path}", exit=1)
        with open(local_path, "wb") as f:
            f.write(self.remote.files[remote_path])

    async def close(self):
        self.remote.closed += 1


class FakeConnectionFactory:
    def __init__(self, remote: FakeRemote) -> None:
        self.remote = remote
        self.users: List[User] = []

    async def connect(self, node: Node, user: User) -> FakeConnection:
        self.remote.connections += 1
        self.users.append(user)
        return FakeConnection(self.remote, node)


@pytest.fixture
def remote() -> FakeRemote:
    return FakeRemote()


@pytest.fixture
def connection_factory(remote) -> FakeConnectionFactory:
    return FakeConnectionFactory(remote)


@pytest.fixture
def node() -> Node:
    return Node(id="web-1", name="web-1", primary_ip="10.0.0.5")


@pytest.fixture
def spy_service() -> SpyService:
    return SpyService(nodes=[Node(id="a", name="a-1"), Node(id="b", name="b-1")])


@pytest.fixture
def capable_service() -> CapableService:
    return CapableService(nodes=[Node(id="a", name="a-1")])
