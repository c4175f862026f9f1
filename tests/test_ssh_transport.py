"""Tests for the ssh command line transport."""

import io

import pytest

from fleetcore.compute.base import Node, User
from fleetcore.shared.errors import TransportFailure
from fleetcore.transport import ssh
from fleetcore.transport.base import factory, with_connection


class Recorder:
    def __init__(self, returncode=0, stdout=b"", stderr=""):
        self.returncode = returncode
        self.stdout = stdout
        self.stderr = stderr
        self.commands = []
        self.stdin = []

    def result(self, stdout):
        return {"returncode": self.returncode, "stdout": stdout, "stderr": self.stderr}

    async def shell(self, cmd, stdin_data=None):
        self.commands.append(cmd)
        self.stdin.append(stdin_data)
        return self.result(self.stdout.decode())

    async def raw(self, cmd, stdin_data=None):
        self.commands.append(cmd)
        return self.result(self.stdout)

    async def stream(self, cmd, reader, chunk_size=65536):
        self.commands.append(cmd)
        self.stdin.append(reader.read())
        return self.result("")


@pytest.fixture
def recorder(monkeypatch):
    rec = Recorder()
    monkeypatch.setattr(ssh, "run_shell_command_with_cancellation", rec.shell)
    monkeypatch.setattr(ssh, "run_subprocess_with_cancellation", rec.raw)
    monkeypatch.setattr(ssh, "stream_to_subprocess", rec.stream)
    return rec


@pytest.fixture
def node():
    return Node(id="db-1", name="db-1", primary_ip="10.0.0.7", ssh_port=2222)


USER = User(username="deploy", private_key_path="/keys/id_ed25519")


@pytest.mark.asyncio
async def test_connect_uses_node_address(node):
    connection = await ssh.SshConnectionFactory().connect(node, USER)
    assert connection.endpoint.server == "10.0.0.7"
    assert connection.endpoint.port == 2222


@pytest.mark.asyncio
async def test_exec_feeds_script_to_remote_shell(recorder, node):
    recorder.stdout = b"done\n"
    async with with_connection(ssh.SshConnectionFactory(connect_timeout=3), node, USER) as conn:
        result = await conn.exec("mkdir -p /x\nexit $?\n")

    cmd = recorder.commands[0]
    assert cmd[0] == "ssh"
    assert cmd[cmd.index("-p") + 1] == "2222"
    assert "ConnectTimeout=3" in cmd
    assert cmd[cmd.index("-i") + 1] == "/keys/id_ed25519"
    assert cmd[-2:] == ["deploy@10.0.0.7", "sh -s"]
    assert recorder.stdin[0] == b"mkdir -p /x\nexit $?\n"
    assert result.exit == 0
    assert result.out == "done\n"


@pytest.mark.asyncio
async def test_script_failure_is_reported_not_raised(recorder, node):
    recorder.returncode = 1
    conn = await ssh.SshConnectionFactory().connect(node, USER)
    result = await conn.exec("false\n")
    assert result.exit == 1


@pytest.mark.asyncio
async def test_ssh_error_status_raises(recorder, node):
    recorder.returncode = ssh.SSH_ERROR_STATUS
    recorder.stderr = "Connection refused"
    conn = await ssh.SshConnectionFactory().connect(node, USER)
    with pytest.raises(TransportFailure) as exc_info:
        await conn.exec("true\n")
    assert exc_info.value.exit == ssh.SSH_ERROR_STATUS
    assert "Connection refused" in str(exc_info.value)


@pytest.mark.asyncio
async def test_send_stream_sets_mode(recorder, node):
    conn = await ssh.SshConnectionFactory().connect(node, USER)
    await conn.send_stream(io.BytesIO(b"payload"), "/tmp/deploy/abc", mode=0o600)
    remote_command = recorder.commands[0][-1]
    assert remote_command == "umask 077 && cat > /tmp/deploy/abc && chmod 600 /tmp/deploy/abc"
    assert recorder.stdin[0] == b"payload"


@pytest.mark.asyncio
async def test_send_stream_keeps_remote_expansion(recorder, node):
    conn = await ssh.SshConnectionFactory().connect(node, USER)
    path = ssh.script.user_home("deploy") + "/f"
    await conn.send_text("x", path)
    assert recorder.commands[0][-1].startswith('umask 077 && cat > "$(getent passwd deploy')


@pytest.mark.asyncio
async def test_send_failure_raises(recorder, node):
    recorder.returncode = 1
    conn = await ssh.SshConnectionFactory().connect(node, USER)
    with pytest.raises(TransportFailure):
        await conn.send_text("digest", "/tmp/deploy/abc.md5")


@pytest.mark.asyncio
async def test_receive_writes_local_file(recorder, node, tmp_path):
    recorder.stdout = b"abc123\n"
    local = tmp_path / "copy"
    conn = await ssh.SshConnectionFactory().connect(node, USER)
    await conn.receive("/tmp/deploy/abc.md5", str(local))
    assert local.read_bytes() == b"abc123\n"
    assert recorder.commands[0][-1] == "cat /tmp/deploy/abc.md5"


@pytest.mark.asyncio
async def test_receive_missing_file_raises(recorder, node, tmp_path):
    recorder.returncode = 1
    conn = await ssh.SshConnectionFactory().connect(node, USER)
    with pytest.raises(TransportFailure):
        await conn.receive("/tmp/none", str(tmp_path / "copy"))


@pytest.mark.asyncio
async def test_missing_ssh_binary_raises_transport_failure(monkeypatch, node):
    async def missing(cmd, stdin_data=None):
        raise FileNotFoundError(cmd[0])

    monkeypatch.setattr(ssh, "run_shell_command_with_cancellation", missing)
    conn = await ssh.SshConnectionFactory(ssh_binary="no-ssh").connect(node, USER)
    with pytest.raises(TransportFailure):
        await conn.exec("true\n")


def test_factory_registry():
    assert isinstance(factory("ssh"), ssh.SshConnectionFactory)
    with pytest.raises(ValueError):
        factory("telnet")
