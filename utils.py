import os
import sys
import platform
import logging
import tempfile
from dataclasses import dataclass, asdict
from typing import Optional, Dict

logger = logging.getLogger(__name__)

# Folder name VS Code uses under the per-user configuration root
VSCODE_DIR_NAME = "Code"


@dataclass(frozen=True)
class SystemPaths:
    """Locations of the VS Code files the cleaner works on"""
    home_dir: str
    app_data_dir: str
    vscode_config_dir: str
    storage_path: str
    db_path: str
    machine_id_path: str
    workspace_storage_path: str

    def to_dict(self) -> Dict[str, str]:
        return asdict(self)


def get_actual_home_dir() -> str:
    """Gets the actual user's home directory, even when run with sudo."""
    if sys.platform == "linux" and os.environ.get('SUDO_USER'):
        return os.path.expanduser(f"~{os.environ.get('SUDO_USER')}")
    return os.path.expanduser("~")


def get_user_documents_path() -> str:
    """Get user documents path across different operating systems.

    Returns:
        str: Path to user's Documents directory
    """
    if platform.system() == "Windows":
        try:
            import winreg
            with winreg.OpenKey(winreg.HKEY_CURRENT_USER, "Software\\Microsoft\\Windows\\CurrentVersion\\Explorer\\Shell Folders") as key:
                documents_path, _ = winreg.QueryValueEx(key, "Personal")
                return documents_path
        except OSError as e:
            logger.warning(f"Failed to get Documents path from registry: {e}")
            return os.path.expanduser("~\\Documents")
    elif platform.system() == "Darwin":  # macOS
        return os.path.expanduser("~/Documents")
    else:  # Linux and other Unix-like systems
        # Check for XDG user directories
        try:
            with open(os.path.expanduser("~/.config/user-dirs.dirs"), "r") as f:
                for line in f:
                    if line.startswith("XDG_DOCUMENTS_DIR"):
                        path = line.split("=")[1].strip().strip('"').replace("$HOME", os.path.expanduser("~"))
                        if os.path.exists(path):
                            return path
        except (FileNotFoundError, IOError):
            pass

        # Fallback to ~/Documents
        return os.path.expanduser("~/Documents")


def get_app_data_dir(system: str, home_dir: str, appdata: Optional[str] = None) -> str:
    """Per-user application data root for the given platform name."""
    if system == "Windows":
        return appdata or os.path.join(home_dir, "AppData", "Roaming")
    elif system == "Darwin":
        return os.path.join(home_dir, "Library", "Application Support")
    else:
        return os.path.join(home_dir, ".local", "share")


def get_vscode_config_dir(system: str, home_dir: str, appdata: Optional[str] = None) -> str:
    """VS Code user configuration directory for the given platform name."""
    if system == "Windows":
        return os.path.join(get_app_data_dir(system, home_dir, appdata), VSCODE_DIR_NAME)
    elif system == "Darwin":
        return os.path.join(home_dir, "Library", "Application Support", VSCODE_DIR_NAME)
    else:
        return os.path.join(home_dir, ".config", VSCODE_DIR_NAME)


def resolve_system_paths(system: Optional[str] = None, home_dir: Optional[str] = None,
                         appdata: Optional[str] = None,
                         config_dir_override: Optional[str] = None) -> SystemPaths:
    """Derive every VS Code location from the platform and home directory.

    Nothing is checked on disk here; callers decide what a missing path means.

    Args:
        system: Platform name as returned by platform.system(); detected when omitted
        home_dir: Home directory; the invoking user's home when omitted
        appdata: Windows %APPDATA% value; read from the environment when omitted
        config_dir_override: Use this VS Code config directory instead of the platform default

    Returns:
        SystemPaths: Resolved locations
    """
    system = system or platform.system()
    home_dir = home_dir or get_actual_home_dir()
    if appdata is None and system == "Windows":
        appdata = os.getenv("APPDATA")

    app_data_dir = get_app_data_dir(system, home_dir, appdata)
    config_dir = config_dir_override or get_vscode_config_dir(system, home_dir, appdata)
    global_storage = os.path.join(config_dir, "User", "globalStorage")

    # macOS keeps machineid beside User/, the other platforms inside it
    if system == "Darwin":
        machine_id_path = os.path.join(config_dir, "machineid")
    else:
        machine_id_path = os.path.join(config_dir, "User", "machineid")

    return SystemPaths(
        home_dir=home_dir,
        app_data_dir=app_data_dir,
        vscode_config_dir=config_dir,
        storage_path=os.path.join(global_storage, "storage.json"),
        db_path=os.path.join(global_storage, "state.vscdb"),
        machine_id_path=machine_id_path,
        workspace_storage_path=os.path.join(config_dir, "User", "workspaceStorage"),
    )


def atomic_write_text(file_path: str, content: str, prefix: Optional[str] = None) -> None:
    """Write content through a temp file in the same directory, then rename it over file_path.

    Raises OSError on failure; the temp file never outlives the call.
    """
    target_dir = os.path.dirname(file_path) or "."
    os.makedirs(target_dir, exist_ok=True)

    tmp_path = None
    try:
        with tempfile.NamedTemporaryFile(mode="w", encoding="utf-8", delete=False, dir=target_dir,
                                         prefix=prefix or os.path.basename(file_path) + ".") as tmp_file:
            tmp_file.write(content)
            tmp_path = tmp_file.name

        os.replace(tmp_path, file_path)
        tmp_path = None  # Indicate move success
    finally:
        if tmp_path and os.path.exists(tmp_path):
            try:
                os.unlink(tmp_path)
            except OSError as e:
                logger.warning(f"Could not remove temp file {tmp_path}: {e}")


def format_size(size: int) -> str:
    """Human readable byte count, e.g. 1.5 MB"""
    if size < 1024:
        return f"{size} B"
    value = size / 1024
    for unit in ("KB", "MB"):
        if value < 1024:
            return f"{value:.1f} {unit}"
        value /= 1024
    return f"{value:.1f} GB"
