"""
PID file helpers for the silent-client daemon.
"""

import os
import signal
import time
from pathlib import Path
from typing import Optional


def get_process_pid(pid_file: Path) -> Optional[int]:
    """Return the PID recorded in pid_file if that process is alive."""
    if not pid_file.exists():
        return None
    try:
        pid = int(pid_file.read_text().strip())
    except (ValueError, OSError):
        return None
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return None
    except PermissionError:
        # Exists but owned by someone else
        return pid
    except OSError:
        return None
    return pid


def is_process_running(pid_file: Path) -> bool:
    """Check if the process named in pid_file is alive."""
    return get_process_pid(pid_file) is not None


def write_pid_file(pid_file: Path, pid: Optional[int] = None) -> None:
    """Write the current (or given) PID to pid_file."""
    pid_file.parent.mkdir(parents=True, exist_ok=True)
    pid_file.write_text(str(pid if pid is not None else os.getpid()))


def remove_pid_file(pid_file: Path) -> None:
    """Remove pid_file, ignoring a missing file."""
    try:
        pid_file.unlink()
    except FileNotFoundError:
        pass
    except OSError:
        pass


def stop_process(pid_file: Path, timeout: float = 0.0) -> bool:
    """Send SIGTERM to the process named in pid_file.

    The PID file is left for the process to remove on exit, so a second
    instance can't start while the first is still shutting down. A stale
    file is removed here.

    Args:
        pid_file: PID file of the process to stop
        timeout: Seconds to wait for the process to exit (0 = don't wait)

    Returns:
        True if a signal was delivered
    """
    pid = get_process_pid(pid_file)
    if pid is None:
        remove_pid_file(pid_file)
        return False
    try:
        os.kill(pid, signal.SIGTERM)
    except OSError:
        remove_pid_file(pid_file)
        return False

    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if get_process_pid(pid_file) is None:
            break
        time.sleep(0.1)
    return True
