"""
Daemon supervisor - keeps one Warg server process running, tracked by a PID file
"""

from __future__ import annotations

import logging
import os
import signal
import subprocess
import sys
import time
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

from .config import Config

logger = logging.getLogger(__name__)


class WargDaemon:
    """Supervises ``python -m warg serve`` and restarts it when it crashes"""

    def __init__(
        self,
        config: Config,
        server_command: Optional[List[str]] = None,
        restart_delay: float = 5.0,
        shutdown_grace: float = 2.0,
    ):
        self.config = config
        self.pid_file = Path(config.pid_file)
        self.server_command = server_command or [sys.executable, "-m", "warg", "serve"]
        self.restart_delay = restart_delay
        self.shutdown_grace = shutdown_grace
        self._process: Optional[subprocess.Popen] = None
        self._stopping = False

    # --- Supervisor (runs in the daemon process) -------------------------------------

    def start(self) -> bool:
        """Supervise the server until a stop signal arrives; False if already running"""
        if self.is_running():
            logger.warning("Daemon already running (pid=%s)", self.get_pid())
            return False

        logger.info("Starting Warg daemon (pid=%d)", os.getpid())
        self._stopping = False
        self.write_pid_file()
        previous = {
            sig: signal.signal(sig, self._handle_signal) for sig in (signal.SIGTERM, signal.SIGINT)
        }
        try:
            while not self._stopping:
                exit_code = self._run_server()
                if self._stopping or exit_code == 0:
                    break
                logger.error(
                    "Server exited with code %s, restarting in %.0f seconds", exit_code, self.restart_delay
                )
                self._sleep(self.restart_delay)
        finally:
            self._terminate_server()
            for sig, handler in previous.items():
                signal.signal(sig, handler)
            self.remove_pid_file()
            logger.info("Daemon shutdown complete")
        return True

    def _run_server(self) -> int:
        logger.info("Starting server process: %s", " ".join(self.server_command))
        self._process = subprocess.Popen(self.server_command)
        exit_code = self._process.wait()
        logger.warning("Server process exited (code=%s)", exit_code)
        return exit_code

    def _handle_signal(self, signum: int, _frame: Any) -> None:
        logger.info("Shutting down daemon (%s)", signal.Signals(signum).name)
        self._stopping = True
        if self._process is not None and self._process.poll() is None:
            self._process.terminate()

    def _terminate_server(self) -> None:
        process, self._process = self._process, None
        if process is None or process.poll() is not None:
            return
        process.terminate()
        try:
            process.wait(timeout=self.shutdown_grace)
        except subprocess.TimeoutExpired:
            logger.warning("Force killing server process (pid=%d)", process.pid)
            process.kill()
            process.wait()

    def _sleep(self, seconds: float) -> None:
        deadline = time.monotonic() + seconds
        while not self._stopping and time.monotonic() < deadline:
            time.sleep(0.1)

    # --- Control (runs in the CLI process) --------------------------------------------

    def stop(self, timeout: float = 10.0) -> bool:
        """Send SIGTERM to the running daemon and wait for it to exit"""
        pid = self.get_pid()
        if pid is None or not self._is_process_running(pid):
            logger.warning("No running daemon found (pid file: %s)", self.pid_file)
            return False

        logger.info("Stopping Warg daemon (pid=%d)", pid)
        os.kill(pid, signal.SIGTERM)
        if self._wait_for_exit(pid, timeout):
            logger.info("Daemon shutdown confirmed (pid=%d)", pid)
        else:
            logger.warning("Timeout waiting for daemon shutdown, force killing (pid=%d)", pid)
            try:
                os.kill(pid, signal.SIGKILL)
            except OSError as exc:
                logger.error("Failed to force kill daemon (pid=%d): %s", pid, exc)
            self.remove_pid_file()
        return True

    def restart(self) -> bool:
        logger.info("Restarting Warg daemon")
        if self.stop():
            time.sleep(1.0)
        return self.start()

    def status(self) -> Dict[str, Any]:
        pid = self.get_pid()
        running = pid is not None and self._is_process_running(pid)
        status: Dict[str, Any] = {"running": running}
        if running:
            status["pid"] = pid
            try:
                started = self.pid_file.stat().st_mtime
            except OSError:
                return status
            status["startTime"] = datetime.fromtimestamp(started).isoformat()
            status["uptime"] = round(time.time() - started, 3)
        return status

    def is_running(self) -> bool:
        pid = self.get_pid()
        return pid is not None and self._is_process_running(pid)

    # --- PID file ---------------------------------------------------------------------

    def write_pid_file(self) -> None:
        self.pid_file.parent.mkdir(parents=True, exist_ok=True)
        self.pid_file.write_text(str(os.getpid()), encoding="utf-8")
        logger.debug("PID file written: %s", self.pid_file)

    def remove_pid_file(self) -> None:
        try:
            self.pid_file.unlink()
            logger.debug("PID file removed: %s", self.pid_file)
        except FileNotFoundError:
            pass
        except OSError as exc:
            logger.warning("Failed to remove PID file %s: %s", self.pid_file, exc)

    def get_pid(self) -> Optional[int]:
        try:
            return int(self.pid_file.read_text(encoding="utf-8").strip())
        except FileNotFoundError:
            return None
        except (OSError, ValueError) as exc:
            logger.debug("Could not read PID file %s: %s", self.pid_file, exc)
            return None

    @staticmethod
    def _is_process_running(pid: int) -> bool:
        """Check if a process is still running"""
        try:
            # Signal 0 only checks that the process exists.
            os.kill(pid, 0)
            return True
        except ProcessLookupError:
            return False
        except PermissionError:
            return True
        except OSError:
            return False

    def _wait_for_exit(self, pid: int, timeout: float) -> bool:
        deadline = time.monotonic() + timeout
        while time.monotonic() < deadline:
            if not self._is_process_running(pid):
                return True
            time.sleep(0.1)
        return False
