import os
import sys
import time
import shutil
import logging
import platform
import subprocess
from typing import Optional, List

import psutil
from colorama import Fore, Style, init

from error_handler import ProcessError

# Initialize colorama
init(autoreset=True)

logger = logging.getLogger(__name__)

# Define emoji constants
EMOJI = {
    "PROCESS": "⚙️",
    "SUCCESS": "✅",
    "ERROR": "❌",
    "INFO": "ℹ️",
    "WAIT": "⏳",
    "KILL": "🛑",
    "SEARCH": "🔍",
    "LAUNCH": "🚀",
}

VSCODE_PROCESS_NAMES = {
    "windows": ["code.exe"],
    "darwin": ["code"],
    "linux": ["code", "code-oss"],
}


class VSCodeProcessController:
    """Finds, terminates and relaunches VS Code processes."""

    def __init__(self, timeout: float = 5, relaunch_delay: float = 0.5, system: Optional[str] = None):
        """
        Args:
            timeout: Seconds to wait for processes to exit before force killing them
            relaunch_delay: Pause between terminating and starting VS Code again
            system: Platform name as returned by platform.system(); detected when omitted
        """
        self.timeout = max(1, timeout)
        self.relaunch_delay = max(0, relaunch_delay)
        self.system = (system or platform.system()).lower()

    def _matches(self, name: str, cmdline: str) -> bool:
        if self.system == "windows":
            return name in VSCODE_PROCESS_NAMES["windows"]
        if self.system == "darwin":
            return (name in VSCODE_PROCESS_NAMES["darwin"]
                    or name.startswith("code helper")
                    or "visual studio code" in cmdline)
        return (name in VSCODE_PROCESS_NAMES["linux"]
                or ("electron" in cmdline and "code" in cmdline))

    def find_processes(self) -> List[psutil.Process]:
        """All running VS Code processes, never including this one"""
        own_pid = os.getpid()
        vscode_processes = []

        for proc in psutil.process_iter(["pid", "name", "cmdline"]):
            try:
                if proc.info["pid"] == own_pid:
                    continue
                name = (proc.info["name"] or "").lower()
                cmdline = " ".join(proc.info["cmdline"] or []).lower()
                if self._matches(name, cmdline):
                    vscode_processes.append(proc)
            except (psutil.NoSuchProcess, psutil.AccessDenied) as e:
                logger.debug(f"Error accessing process: {e}")
                continue

        return vscode_processes

    def is_running(self) -> bool:
        try:
            return len(self.find_processes()) > 0
        except psutil.Error as e:
            logger.warning(f"Could not enumerate processes: {e}")
            return False

    def _wait_for_exit(self, processes: List[psutil.Process]) -> List[psutil.Process]:
        """Wait up to timeout and return the processes that are still alive"""
        _, alive = psutil.wait_procs(processes, timeout=self.timeout)
        return alive

    def terminate(self) -> bool:
        """Gently close VS Code, force killing whatever survives the timeout.

        Returns:
            bool: True if no VS Code process is left running
        """
        print(f"{Fore.CYAN}{EMOJI['SEARCH']} Searching for VS Code processes...{Style.RESET_ALL}")
        processes = self.find_processes()

        if not processes:
            logger.info("No VS Code processes found")
            print(f"{Fore.GREEN}{EMOJI['INFO']} No VS Code processes found{Style.RESET_ALL}")
            return True

        logger.info(f"Found {len(processes)} VS Code processes")
        print(f"{Fore.CYAN}{EMOJI['PROCESS']} Closing {len(processes)} VS Code processes...{Style.RESET_ALL}")

        for proc in processes:
            try:
                proc.terminate()
            except (psutil.NoSuchProcess, psutil.AccessDenied) as e:
                logger.warning(f"Error terminating process {proc.pid}: {e}")

        print(f"{Fore.CYAN}{EMOJI['WAIT']} Waiting up to {self.timeout} seconds for processes to close...{Style.RESET_ALL}")
        still_running = self._wait_for_exit(processes)

        if still_running:
            pids = ", ".join(str(p.pid) for p in still_running)
            logger.warning(f"Timeout reached. Still running: {pids}")
            print(f"{Fore.RED}{EMOJI['KILL']} Force killing remaining processes: {pids}{Style.RESET_ALL}")
            for proc in still_running:
                try:
                    proc.kill()
                except (psutil.NoSuchProcess, psutil.AccessDenied) as e:
                    logger.error(f"Error killing process {proc.pid}: {e}")
            self._wait_for_exit(still_running)

        if self.is_running():
            logger.error("Failed to terminate all VS Code processes")
            print(f"{Fore.RED}{EMOJI['ERROR']} Some VS Code processes are still running{Style.RESET_ALL}")
            return False

        logger.info("All VS Code processes have been closed")
        print(f"{Fore.GREEN}{EMOJI['SUCCESS']} VS Code has been closed{Style.RESET_ALL}")
        return True

    def _launch(self) -> None:
        """Start a detached VS Code instance without waiting for it"""
        try:
            if self.system == "windows":
                subprocess.Popen(
                    'start "" code', shell=True,
                    creationflags=subprocess.DETACHED_PROCESS | subprocess.CREATE_NEW_PROCESS_GROUP
                )
            elif self.system == "darwin":
                subprocess.Popen(["open", "-a", "Visual Studio Code"],
                                 stdout=subprocess.DEVNULL, stderr=subprocess.DEVNULL)
            else:
                launcher = shutil.which("code")
                if not launcher:
                    raise ProcessError("The 'code' launcher was not found on PATH")
                subprocess.Popen([launcher], start_new_session=True,
                                 stdout=subprocess.DEVNULL, stderr=subprocess.DEVNULL)
        except OSError as e:
            raise ProcessError(f"Failed to start VS Code: {e}") from e

    def relaunch(self) -> bool:
        """Close any running instance, pause, then start VS Code again."""
        try:
            if self.is_running() and not self.terminate():
                raise ProcessError("VS Code is still running and could not be closed")
            time.sleep(self.relaunch_delay)
            self._launch()
        except ProcessError as e:
            logger.error(f"Failed to relaunch VS Code: {e}")
            print(f"{Fore.RED}{EMOJI['ERROR']} {e}{Style.RESET_ALL}")
            return False

        logger.info("VS Code relaunched")
        print(f"{Fore.GREEN}{EMOJI['LAUNCH']} VS Code started{Style.RESET_ALL}")
        return True


def quit_vscode(timeout: float = 5) -> bool:
    """Convenient function for closing VS Code from other scripts."""
    return VSCodeProcessController(timeout=timeout).terminate()


if __name__ == "__main__":
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S"
    )
    sys.exit(0 if quit_vscode() else 1)
