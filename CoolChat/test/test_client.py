"""
Tests for the terminal client and the command-line entry points.
"""

import asyncio
import sys
import threading
from pathlib import Path
from unittest.mock import patch

import pytest

import CoolChat
from CoolChat.config import config
from CoolChat.core.client import DISCONNECTED, StandardCommandlineClient
from CoolChat.core.server.auth import CredentialStore
from CoolChat.start import users
from CoolChat.start.cli import main, parse
from CoolChat.test.conftest import write_users


def scripted_input(*lines):
    """input() replacement that returns ``lines`` then reports end of input."""
    remaining = list(lines)

    def _input(prompt=""):
        if not remaining:
            raise EOFError
        return remaining.pop(0)

    return _input


class TestStandardCommandlineClient:
    """Tests for StandardCommandlineClient against a stub server."""

    @pytest.mark.asyncio
    async def test_sends_lines_until_exit(self):
        received = []
        done = asyncio.Event()

        async def handler(reader, writer):
            writer.write(b"Enter your username:\n")
            await writer.drain()
            while True:
                raw = await reader.readline()
                if not raw:
                    break
                received.append(raw.decode().rstrip("\n"))
            writer.close()
            done.set()

        server = await asyncio.start_server(handler, "127.0.0.1", 0)
        port = server.sockets[0].getsockname()[1]
        output = []
        client = StandardCommandlineClient(
            "127.0.0.1", port, input_func=scripted_input("alice", "hi"), output=output.append
        )

        await asyncio.wait_for(client.run(), 5)
        await asyncio.wait_for(done.wait(), 5)
        server.close()
        await server.wait_closed()

        assert received == ["alice", "hi", "exit"]
        assert output[0] == "Connection established!"
        assert output[-1] == DISCONNECTED

    @pytest.mark.asyncio
    async def test_prints_lines_until_server_hangs_up(self):
        async def handler(reader, writer):
            writer.write(b"Welcome, alice!\n[bob]: hi\n")
            await writer.drain()
            writer.close()

        server = await asyncio.start_server(handler, "127.0.0.1", 0)
        port = server.sockets[0].getsockname()[1]
        release = threading.Event()

        def blocking_input(prompt=""):
            release.wait(5)
            raise EOFError

        output = []
        client = StandardCommandlineClient("127.0.0.1", port, input_func=blocking_input, output=output.append)
        try:
            await asyncio.wait_for(client.run(), 5)
        finally:
            release.set()
            server.close()
            await server.wait_closed()

        assert output == ["Connection established!", "Welcome, alice!", "[bob]: hi", DISCONNECTED]

    @pytest.mark.asyncio
    async def test_connection_refused(self):
        server = await asyncio.start_server(lambda r, w: None, "127.0.0.1", 0)
        port = server.sockets[0].getsockname()[1]
        server.close()
        await server.wait_closed()

        output = []
        await StandardCommandlineClient("127.0.0.1", port, output=output.append).run()

        assert output == [DISCONNECTED]


class TestCommandLine:
    """Tests for argument parsing and account management."""

    def test_server_arguments(self):
        args = parse(["server", "--port", "9000", "--no-web"])

        assert args.command == "server"
        assert args.port == 9000
        assert args.no_web is True

    def test_client_defaults_to_discovery(self):
        args = parse(["client"])

        assert args.host is None

    def test_log_level_override(self):
        args = parse(["--log-level", "warning", "client"])

        assert args.log_level == "WARNING"
        assert parse(["client"]).log_level is None

    def test_main_applies_log_level(self):
        with patch("CoolChat.start.cli.auto_configure") as auto_configure, \
                patch("CoolChat.start.cli.set_level") as set_level, \
                patch("CoolChat.start.client.client") as run_client:
            main(["--env", "testing", "--log-level", "error", "client", "--host", "127.0.0.1"])

        auto_configure.assert_called_once_with("testing")
        set_level.assert_called_once_with("ERROR")
        run_client.assert_called_once_with(host="127.0.0.1", port=config.DEFAULT_SERVER_PORT)

    def test_adduser(self, tmp_path):
        path = write_users(tmp_path / "users.txt")

        assert users.adduser("dave", "diver", user_db_file=str(path)) == 0

        store = CredentialStore(str(path), rounds=4)
        store.load()
        assert store.authenticate("dave", "diver")
        assert store.authenticate("alice", "wonderland")

    def test_adduser_duplicate(self, tmp_path):
        path = write_users(tmp_path / "users.txt")

        assert users.adduser("alice", "other", user_db_file=str(path)) == 1


@pytest.mark.integration
@pytest.mark.slow
@pytest.mark.asyncio
async def test_client_process_exits_when_server_hangs_up():
    """The client process ends even while stdin is open and nothing was typed."""
    async def handler(reader, writer):
        writer.write(b"Enter your username:\n")
        await writer.drain()
        writer.close()

    server = await asyncio.start_server(handler, "127.0.0.1", 0)
    port = server.sockets[0].getsockname()[1]
    script = f"from CoolChat.start.client import client; client('127.0.0.1', {port})"

    process = await asyncio.create_subprocess_exec(
        sys.executable, "-u", "-c", script,
        stdin=asyncio.subprocess.PIPE,
        stdout=asyncio.subprocess.PIPE,
        cwd=str(Path(CoolChat.__file__).resolve().parent.parent),
    )
    try:
        stdout, _ = await asyncio.wait_for(process.communicate(), 10)
    except asyncio.TimeoutError:
        process.kill()
        await process.wait()
        pytest.fail("client process still running after the server closed the connection")
    finally:
        server.close()
        await server.wait_closed()

    lines = stdout.decode().splitlines()
    assert process.returncode == 0
    assert "Enter your username:" in lines
    assert lines[-1] == DISCONNECTED
