"""
Tests for the real host adapters — command runner, fetcher, files, dnf.
"""

import grp
import os
import pwd
import stat
import sys
from http.server import BaseHTTPRequestHandler, HTTPServer
from pathlib import Path
from threading import Thread

import pytest

from hostprep.adapters.base import CommandResult, CommandRunner
from hostprep.adapters.fetch.http import UrllibFetcher
from hostprep.adapters.shell.command import LocalCommandRunner, base_environment
from hostprep.adapters.shell.filesystem import FileInstaller
from hostprep.adapters.system.dnf import DnfPackageManager
from hostprep.adapters.system.systemd import SystemdServiceManager
from hostprep.adapters.system.users import LocalUserDirectory


class RecordingRunner(CommandRunner):
    """Runner that records argv and answers ``rpm -q`` from a set."""

    def __init__(self, installed=()):
        self.installed = set(installed)
        self.calls: list[list[str]] = []

    def run(self, argv, *, timeout=None, env_overrides=None, cwd=None):
        argv = list(argv)
        self.calls.append(argv)
        if argv[:2] == ["rpm", "-q"]:
            if argv[2] in self.installed:
                return CommandResult.success(argv[2], argv=argv)
            return CommandResult.failure(f"package {argv[2]} is not installed", argv=argv)
        return CommandResult.success(argv=argv)


# ── CommandResult ───────────────────────────────────────────────────


class TestCommandResult:
    def test_error_uses_last_stderr_line(self):
        result = CommandResult.failure("warning: foo\nError: no match for docker", returncode=1)
        assert result.error == "exit 1: Error: no match for docker"

    def test_error_without_stderr(self):
        assert CommandResult(returncode=3).error == "exit 3"

    def test_ok_has_no_error(self):
        assert CommandResult.success("fine").error == ""


# ── Local command runner ────────────────────────────────────────────


class TestLocalCommandRunner:
    def test_base_environment(self):
        env = base_environment(["/opt/tools/bin"])
        assert set(env) == {"PATH", "LANG", "LC_ALL", "HOME"}
        assert env["PATH"].startswith("/opt/tools/bin:")

    def test_caller_environment_does_not_leak(self, monkeypatch):
        monkeypatch.setenv("HOSTPREP_LEAK_CHECK", "leaked")
        runner = LocalCommandRunner()
        result = runner.run([
            sys.executable, "-c",
            "import os; print(os.environ.get('HOSTPREP_LEAK_CHECK', 'absent'))",
        ])
        assert result.ok
        assert result.stdout.strip() == "absent"

    def test_env_overrides_apply_to_one_call(self):
        runner = LocalCommandRunner()
        code = "import os; print(os.environ.get('STEP_VAR', 'unset'))"

        first = runner.run([sys.executable, "-c", code], env_overrides={"STEP_VAR": "set"})
        second = runner.run([sys.executable, "-c", code])

        assert first.stdout.strip() == "set"
        assert second.stdout.strip() == "unset"

    def test_nonzero_exit(self):
        runner = LocalCommandRunner()
        result = runner.run([
            sys.executable, "-c", "import sys; sys.stderr.write('bad input\\n'); sys.exit(3)",
        ])
        assert result.returncode == 3
        assert result.error == "exit 3: bad input"

    def test_missing_binary(self):
        result = LocalCommandRunner().run(["hostprep-no-such-binary", "--version"])
        assert result.returncode == 127
        assert "command not found" in result.stderr

    def test_timeout(self):
        result = LocalCommandRunner().run(
            [sys.executable, "-c", "import time; time.sleep(10)"], timeout=0.5,
        )
        assert result.returncode == 124

    def test_cwd(self, tmp_path: Path):
        result = LocalCommandRunner().run(
            [sys.executable, "-c", "import os; print(os.getcwd())"], cwd=tmp_path,
        )
        assert Path(result.stdout.strip()).resolve() == tmp_path.resolve()


# ── Fetcher ─────────────────────────────────────────────────────────


class _ReleaseHandler(BaseHTTPRequestHandler):
    """Serves a release artifact, a redirect to it and a 404 page."""

    def do_GET(self):
        if self.path == "/latest/download/kubectl":
            self.send_response(302)
            self.send_header("Location", "/v1.29.2/kubectl")
            self.end_headers()
            return
        if self.path == "/v1.29.2/kubectl":
            self._reply(200, b"BINARY")
            return
        if self.path == "/stable.txt":
            self._reply(200, b"v1.29.2\n")
            return
        self._reply(404, b"<html>Not Found</html>")

    def _reply(self, status, body):
        self.send_response(status)
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        self.wfile.write(body)

    def log_message(self, format, *args):
        pass


@pytest.fixture
def release_server(monkeypatch):
    for var in ("http_proxy", "HTTP_PROXY", "all_proxy", "ALL_PROXY"):
        monkeypatch.delenv(var, raising=False)
    monkeypatch.setenv("no_proxy", "127.0.0.1")
    server = HTTPServer(("127.0.0.1", 0), _ReleaseHandler)
    host, port = server.server_address
    thread = Thread(target=server.serve_forever, daemon=True)
    thread.start()
    yield f"http://{host}:{port}"
    server.shutdown()
    server.server_close()
    thread.join()


class TestUrllibFetcher:
    def test_fetch_file_url(self, tmp_path: Path):
        source = tmp_path / "artifact.bin"
        source.write_bytes(b"\x7fELF" + b"x" * 1000)
        dest = tmp_path / "out" / "docker-compose"

        result = UrllibFetcher().fetch(source.as_uri(), dest)

        assert result.ok, result.stderr
        assert dest.read_bytes() == source.read_bytes()
        assert not list(dest.parent.glob(".*.part"))

    def test_failed_fetch_leaves_nothing(self, tmp_path: Path):
        dest = tmp_path / "out" / "kubectl"

        result = UrllibFetcher().fetch((tmp_path / "missing.bin").as_uri(), dest)

        assert not result.ok
        assert not dest.exists()
        assert not list(dest.parent.glob(".*.part"))

    def test_failed_fetch_keeps_existing_binary(self, tmp_path: Path):
        dest = tmp_path / "kubectl"
        dest.write_bytes(b"old")

        UrllibFetcher().fetch((tmp_path / "missing.bin").as_uri(), dest)

        assert dest.read_bytes() == b"old"

    def test_fetch_text(self, tmp_path: Path):
        source = tmp_path / "stable.txt"
        source.write_text("v1.29.2\n")

        result = UrllibFetcher().fetch_text(source.as_uri())

        assert result.ok
        assert result.stdout.strip() == "v1.29.2"

    def test_fetch_text_failure(self, tmp_path: Path):
        result = UrllibFetcher().fetch_text((tmp_path / "absent.txt").as_uri())
        assert not result.ok

    def test_http_redirect_is_followed(self, tmp_path: Path, release_server):
        dest = tmp_path / "bin" / "kubectl"

        result = UrllibFetcher().fetch(f"{release_server}/latest/download/kubectl", dest)

        assert result.ok, result.stderr
        assert dest.read_bytes() == b"BINARY"

    def test_http_error_status(self, tmp_path: Path, release_server):
        dest = tmp_path / "bin" / "eksctl"

        result = UrllibFetcher().fetch(f"{release_server}/missing/eksctl", dest)

        assert result.returncode == 22
        assert "HTTP 404" in result.stderr
        assert not dest.exists()
        assert not list(dest.parent.glob(".*.part"))

    def test_http_error_keeps_existing_binary(self, tmp_path: Path, release_server):
        dest = tmp_path / "eksctl"
        dest.write_bytes(b"old")

        UrllibFetcher().fetch(f"{release_server}/missing/eksctl", dest)

        assert dest.read_bytes() == b"old"

    def test_fetch_text_over_http(self, release_server):
        fetcher = UrllibFetcher()
        assert fetcher.fetch_text(f"{release_server}/stable.txt").stdout.strip() == "v1.29.2"
        assert fetcher.fetch_text(f"{release_server}/missing.txt").returncode == 22

    def test_invalid_url(self, tmp_path: Path):
        result = UrllibFetcher().fetch("not a url", tmp_path / "x")
        assert not result.ok


# ── Filesystem ──────────────────────────────────────────────────────


class TestFileInstaller:
    def test_install_executable(self, tmp_path: Path):
        source = tmp_path / "download"
        source.write_bytes(b"binary")
        dest = tmp_path / "bin" / "eksctl"

        result = FileInstaller().install_executable(source, dest)

        assert result.ok
        assert dest.read_bytes() == b"binary"
        assert stat.S_IMODE(dest.stat().st_mode) == 0o755
        assert not (tmp_path / "bin" / ".eksctl.hostprep-tmp").exists()

    def test_install_replaces_existing(self, tmp_path: Path):
        source = tmp_path / "download"
        source.write_bytes(b"new")
        dest = tmp_path / "kubectl"
        dest.write_bytes(b"old")

        FileInstaller().install_executable(source, dest)

        assert dest.read_bytes() == b"new"

    def test_install_missing_source(self, tmp_path: Path):
        result = FileInstaller().install_executable(tmp_path / "nope", tmp_path / "bin" / "x")
        assert not result.ok
        assert "not found" in result.stderr

    def test_ensure_symlink(self, tmp_path: Path):
        target = tmp_path / "docker-compose"
        target.write_bytes(b"x")
        link = tmp_path / "usr" / "bin" / "docker-compose"
        files = FileInstaller()

        first = files.ensure_symlink(target, link)
        second = files.ensure_symlink(target, link)

        assert first.ok and not first.skipped
        assert second.skipped
        assert link.resolve() == target.resolve()

    def test_existing_file_is_not_replaced_by_link(self, tmp_path: Path):
        link = tmp_path / "docker-compose"
        link.write_bytes(b"distro copy")

        result = FileInstaller().ensure_symlink(tmp_path / "other", link)

        assert result.skipped
        assert link.read_bytes() == b"distro copy"

    def test_remove_tree(self, tmp_path: Path):
        work = tmp_path / "work"
        (work / "nested").mkdir(parents=True)
        (work / "nested" / "f").write_text("x")
        files = FileInstaller()

        assert files.remove_tree(work).ok
        assert not work.exists()
        assert files.remove_tree(work).ok


# ── System adapters ─────────────────────────────────────────────────


class TestDnfPackageManager:
    def test_all_installed_is_skipped(self):
        runner = RecordingRunner(installed={"docker", "git"})
        result = DnfPackageManager(runner).install(["docker", "git"])

        assert result.skipped
        assert not any(c[0] == "dnf" for c in runner.calls)

    def test_only_missing_packages_installed(self):
        runner = RecordingRunner(installed={"docker"})
        DnfPackageManager(runner).install(["docker", "git", "curl"])

        assert runner.calls[-1] == ["dnf", "-y", "install", "git", "curl"]

    def test_query_installed(self):
        pm = DnfPackageManager(RecordingRunner(installed={"docker"}))
        assert pm.query_installed("docker")
        assert not pm.query_installed("docker-compose-plugin")

    def test_update_and_clean(self):
        runner = RecordingRunner()
        pm = DnfPackageManager(runner)
        pm.update()
        pm.clean()
        assert runner.calls == [["dnf", "-y", "update"], ["dnf", "-y", "clean", "all"]]


class TestSystemdServiceManager:
    def test_enable_and_start(self):
        runner = RecordingRunner()
        SystemdServiceManager(runner).enable_and_start("docker")
        assert runner.calls == [["systemctl", "enable", "--now", "docker"]]

    def test_is_active(self):
        runner = RecordingRunner()
        assert SystemdServiceManager(runner).is_active("docker")
        assert runner.calls == [["systemctl", "is-active", "--quiet", "docker"]]


class TestLocalUserDirectory:
    def _current(self):
        entry = pwd.getpwuid(os.getuid())
        return entry.pw_name, grp.getgrgid(entry.pw_gid).gr_name

    def test_user_exists(self):
        users = LocalUserDirectory(RecordingRunner())
        name, _ = self._current()
        assert users.user_exists(name)
        assert not users.user_exists("hostprep-no-such-user")

    def test_member_is_not_added_again(self):
        runner = RecordingRunner()
        name, group = self._current()

        result = LocalUserDirectory(runner).add_user_to_group(name, group)

        assert result.skipped
        assert runner.calls == []

    def test_missing_group(self):
        users = LocalUserDirectory(RecordingRunner())
        name, _ = self._current()
        assert not users.in_group(name, "hostprep-no-such-group")

    def test_usermod_when_not_member(self):
        runner = RecordingRunner()
        name, _ = self._current()

        LocalUserDirectory(runner).add_user_to_group(name, "hostprep-no-such-group")

        assert runner.calls == [["usermod", "-aG", "hostprep-no-such-group", name]]
