"""Tests for the deploy dispatcher."""

import subprocess
from pathlib import Path
from unittest.mock import patch

import pytest

from camscout_cli.deploy import DeployError, DockerTarget, LocalTarget, SSHTarget, dispatch
from camscout_cli.deploy import dispatcher

CONFIG = b"paths:\n  gym:\n    source: rtsp://192.168.1.11/ch3\n"


def completed(cmd, returncode=0, stderr=""):
    return subprocess.CompletedProcess(cmd, returncode, stdout="", stderr=stderr)


class RecordingRun:
    """Stands in for subprocess.run and remembers argv and temp file contents."""

    def __init__(self, fail_on=None):
        self.calls = []
        self.uploaded = {}
        self.fail_on = fail_on

    def __call__(self, cmd, **kwargs):
        assert "shell" not in kwargs
        self.calls.append(cmd)
        for arg in cmd:
            if Path(arg).name.startswith("mediamtx_") and Path(arg).exists():
                self.uploaded[arg] = Path(arg).read_bytes()
        if self.fail_on and cmd[0] == self.fail_on:
            return completed(cmd, 1, "Permission denied (publickey).")
        return completed(cmd)


class TestSSHDispatch:
    """Tests for scp/ssh dispatch."""

    def test_copies_then_restarts(self):
        """scp uploads the temp file, ssh runs the restart command."""
        target = SSHTarget("nvr-01.lan", "deploy", "/etc/mediamtx/mediamtx.yml", 2222, "systemctl restart mediamtx")
        run = RecordingRun()
        with patch.object(dispatcher.subprocess, "run", side_effect=run):
            result = dispatch(CONFIG, target)

        scp, ssh = run.calls
        tmp = scp[5]
        assert scp == [
            "scp", "-o", "BatchMode=yes", "-P", "2222", tmp, "deploy@nvr-01.lan:/etc/mediamtx/mediamtx.yml",
        ]
        assert ssh == [
            "ssh", "-o", "BatchMode=yes", "-p", "2222", "deploy@nvr-01.lan", "systemctl restart mediamtx",
        ]
        assert run.uploaded[tmp] == CONFIG
        assert Path(tmp).name.endswith(".yml")
        assert not Path(tmp).exists()
        assert result.mode == "ssh"
        assert result.restarted is True

    def test_no_restart_command(self):
        """Without a restart command only scp runs."""
        run = RecordingRun()
        with patch.object(dispatcher.subprocess, "run", side_effect=run):
            result = dispatch(CONFIG, SSHTarget("nvr", "deploy", "/etc/mediamtx.yml"))
        assert [c[0] for c in run.calls] == ["scp"]
        assert result.restarted is False

    def test_failure_raises_and_cleans_up(self):
        """A failing scp raises DeployError and still removes the temp file."""
        run = RecordingRun(fail_on="scp")
        with patch.object(dispatcher.subprocess, "run", side_effect=run):
            with pytest.raises(DeployError) as exc_info:
                dispatch(CONFIG, SSHTarget("nvr", "deploy", "/etc/mediamtx.yml", restart_command="mediamtx"))

        err = exc_info.value
        assert err.returncode == 1
        assert "Permission denied" in err.stderr
        assert len(run.calls) == 1
        assert not Path(run.calls[0][5]).exists()

    def test_missing_binary(self):
        """A command that cannot start is a DeployError without exit code."""
        with patch.object(dispatcher.subprocess, "run", side_effect=FileNotFoundError("scp")):
            with pytest.raises(DeployError, match="could not start") as exc_info:
                dispatch(CONFIG, SSHTarget("nvr", "deploy", "/etc/mediamtx.yml"))
        assert exc_info.value.returncode is None


class TestDockerDispatch:
    """Tests for docker dispatch."""

    def test_cp_and_restart(self):
        """docker cp then docker restart."""
        run = RecordingRun()
        with patch.object(dispatcher.subprocess, "run", side_effect=run):
            result = dispatch(CONFIG, DockerTarget("mediamtx", "/mediamtx.yml", restart=True))

        cp, restart = run.calls
        assert cp[:2] == ["docker", "cp"]
        assert cp[3] == "mediamtx:/mediamtx.yml"
        assert restart == ["docker", "restart", "mediamtx"]
        assert result.restarted is True

    def test_without_restart(self):
        """restart=False copies only."""
        run = RecordingRun()
        with patch.object(dispatcher.subprocess, "run", side_effect=run):
            dispatch(CONFIG, DockerTarget("mediamtx", "/mediamtx.yml"))
        assert len(run.calls) == 1


class TestLocalDispatch:
    """Tests for local dispatch."""

    def test_writes_file_and_runs_restart(self, tmp_path):
        """The config is written in place and the restart is split, not shelled."""
        destination = tmp_path / "etc" / "mediamtx.yml"
        run = RecordingRun()
        with patch.object(dispatcher.subprocess, "run", side_effect=run):
            result = dispatch(CONFIG.decode(), LocalTarget(str(destination), "sudo systemctl restart mediamtx"))

        assert destination.read_bytes() == CONFIG
        assert run.calls == [["sudo", "systemctl", "restart", "mediamtx"]]
        assert result.target == str(destination)
        assert result.restarted is True

    def test_temp_file_removed(self, tmp_path):
        """No mediamtx_*.yml temp file is left behind."""
        created = []
        real_write = dispatcher._write_temp

        def spy(content):
            path = real_write(content)
            created.append(path)
            return path

        with patch.object(dispatcher, "_write_temp", side_effect=spy):
            dispatch(CONFIG, LocalTarget(str(tmp_path / "mediamtx.yml")))
        assert created and not created[0].exists()


class TestDispatchGuard:
    """Tests for input checks."""

    def test_rejects_unvalidated_target(self):
        """Only gate-issued targets are accepted."""
        with pytest.raises(TypeError):
            dispatch(CONFIG, {"mode": "local", "local": {"path": "/tmp/mediamtx.yml"}})
