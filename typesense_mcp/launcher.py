"""Process wrapper behind the ``typesense-mcp`` command.

Runs the stdio server in a child process with the same arguments, passes
SIGINT/SIGTERM through to it and exits with the child's return code.
"""
from __future__ import annotations

import signal
import subprocess
import sys
from typing import List, Optional, Sequence

SERVER_MODULE = "typesense_mcp.mcp_server"
FORWARDED_SIGNALS = (signal.SIGINT, signal.SIGTERM)


def server_command(args: Sequence[str]) -> List[str]:
    return [sys.executable, "-m", SERVER_MODULE, *args]


def run(command: Sequence[str]) -> int:
    try:
        proc = subprocess.Popen(list(command))
    except OSError as exc:
        print(f"Failed to start server process: {exc}", file=sys.stderr)
        return 1

    def _forward(signum: int, _frame: object) -> None:
        if proc.poll() is None:
            proc.send_signal(signum)

    previous = {sig: signal.signal(sig, _forward) for sig in FORWARDED_SIGNALS}
    try:
        code = proc.wait()
    finally:
        for sig, handler in previous.items():
            signal.signal(sig, handler)
    # Killed by a signal: report it the way a shell would.
    return 128 - code if code < 0 else code


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = sys.argv[1:] if argv is None else argv
    return run(server_command(args))


if __name__ == "__main__":
    raise SystemExit(main())
