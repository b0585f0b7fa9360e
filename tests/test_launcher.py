from __future__ import annotations

import os
import signal
import sys
import threading
from pathlib import Path

from typesense_mcp.launcher import main, run, server_command


def test_server_command_passes_args_through() -> None:
    cmd = server_command(["--api-key", "k", "--port", "9000"])
    assert cmd == [
        sys.executable,
        "-m",
        "typesense_mcp.mcp_server",
        "--api-key",
        "k",
        "--port",
        "9000",
    ]


def test_run_returns_child_exit_code() -> None:
    assert run([sys.executable, "-c", "raise SystemExit(3)"]) == 3


def test_run_start_failure_exits_1(tmp_path, capsys) -> None:
    assert run([str(tmp_path / "no-such-binary")]) == 1
    assert "Failed to start server process" in capsys.readouterr().err


def test_run_forwards_sigterm_and_restores_handlers() -> None:
    child = (
        "import signal, sys, time\n"
        "signal.signal(signal.SIGTERM, lambda *a: sys.exit(7))\n"
        "time.sleep(30)\n"
    )
    before = signal.getsignal(signal.SIGTERM)
    timer = threading.Timer(2.0, os.kill, args=(os.getpid(), signal.SIGTERM))
    timer.start()
    try:
        assert run([sys.executable, "-c", child]) == 7
    finally:
        timer.cancel()
    assert signal.getsignal(signal.SIGTERM) == before


def test_main_without_api_key_exits_1(tmp_path, monkeypatch) -> None:
    repo_root = Path(__file__).resolve().parents[1]
    monkeypatch.setenv("PYTHONPATH", str(repo_root))
    monkeypatch.setenv("TYPESENSE_MCP_CONFIG", str(tmp_path / "missing.yaml"))
    monkeypatch.chdir(repo_root)

    assert main(["--host", "localhost"]) == 1
