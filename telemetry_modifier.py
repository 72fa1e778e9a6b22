import json
import shutil
import logging
from dataclasses import dataclass, asdict
from typing import Optional, Dict, Any

from colorama import Fore, Style

from device_codes import TelemetryIds, generate_new_ids
from error_handler import CleanerError, NotFoundError, ParseError, WriteFailureError
from file_backup import create_backup, file_exists
from utils import SystemPaths, atomic_write_text

logger = logging.getLogger(__name__)

EMOJI = {
    "FILE": "📄",
    "SUCCESS": "✅",
    "ERROR": "❌",
    "INFO": "ℹ️",
    "RESET": "🔄",
    "WARNING": "⚠️",
}

MACHINE_ID_KEY = "telemetry.machineId"
DEVICE_ID_KEY = "telemetry.devDeviceId"


@dataclass
class TelemetryModificationResult:
    old_machine_id: str
    new_machine_id: str
    old_device_id: str
    new_device_id: str
    storage_backup_path: str
    machine_id_backup_path: Optional[str]

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class TelemetryModifier:
    """Replaces the telemetry identifiers in storage.json and the machineid file"""

    def __init__(self, paths: SystemPaths):
        self.paths = paths

    def _read_storage(self, storage_path: str) -> Dict[str, Any]:
        try:
            with open(storage_path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except FileNotFoundError as e:
            raise NotFoundError(f"Storage file not found: {storage_path}") from e
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise ParseError(f"storage.json is not valid JSON: {e}") from e
        except OSError as e:
            raise CleanerError(f"Error reading storage.json: {e}") from e

        if not isinstance(data, dict):
            raise ParseError("storage.json does not contain a JSON object")
        return data

    def _restore_backups(self, storage_backup_path: str, machine_id_backup_path: Optional[str]) -> None:
        """Best effort: failures are logged, never raised"""
        print(f"{Fore.YELLOW}{EMOJI['INFO']} Attempting to restore backups...{Style.RESET_ALL}")
        try:
            shutil.copy2(storage_backup_path, self.paths.storage_path)
            if machine_id_backup_path:
                shutil.copy2(machine_id_backup_path, self.paths.machine_id_path)
            print(f"{Fore.GREEN}{EMOJI['SUCCESS']} Backup restored.{Style.RESET_ALL}")
        except OSError as restore_err:
            logger.error(f"Failed to restore telemetry backups: {restore_err}")
            print(f"{Fore.RED}{EMOJI['ERROR']} Manual restore needed for {self.paths.storage_path} from {storage_backup_path}{Style.RESET_ALL}")

    def modify_telemetry_ids(self) -> TelemetryModificationResult:
        """Give the installation a fresh machine id and device id.

        storage.json is always backed up first and the machineid file only when it
        exists. The new device id (not the machine id) becomes the content of the
        machineid file. On failure both files are restored from their backups and
        the original error is raised.

        Returns:
            TelemetryModificationResult: Old and new identifiers plus backup paths

        Raises:
            NotFoundError: storage.json does not exist
            ParseError: storage.json is malformed
            WriteFailureError: a modified file could not be written
        """
        storage_path = self.paths.storage_path
        machine_id_path = self.paths.machine_id_path

        if not file_exists(storage_path):
            raise NotFoundError(f"Storage file not found: {storage_path}")

        print(f"{Fore.CYAN}{EMOJI['FILE']} Updating storage.json...{Style.RESET_ALL}")
        storage_backup_path = create_backup(storage_path)
        machine_id_backup_path = None
        if file_exists(machine_id_path):
            machine_id_backup_path = create_backup(machine_id_path)

        try:
            data = self._read_storage(storage_path)

            old_machine_id = data.get(MACHINE_ID_KEY) or ""
            old_device_id = data.get(DEVICE_ID_KEY) or ""

            new_ids = generate_new_ids()
            data[MACHINE_ID_KEY] = new_ids.machine_id
            data[DEVICE_ID_KEY] = new_ids.device_id

            try:
                atomic_write_text(storage_path, json.dumps(data, indent=4, ensure_ascii=False))
                atomic_write_text(machine_id_path, new_ids.device_id)
            except OSError as write_err:
                raise WriteFailureError(f"Failed to write telemetry files: {write_err}") from write_err

        except CleanerError as e:
            logger.error(f"Failed to modify telemetry IDs: {e}")
            print(f"{Fore.RED}{EMOJI['ERROR']} Failed to modify telemetry IDs: {e}{Style.RESET_ALL}")
            self._restore_backups(storage_backup_path, machine_id_backup_path)
            raise

        logger.info("Telemetry IDs modified")
        print(f"{Fore.GREEN}{EMOJI['SUCCESS']} storage.json updated successfully.{Style.RESET_ALL}")
        print(f"  {EMOJI['INFO']} {MACHINE_ID_KEY}: {Fore.GREEN}{new_ids.machine_id}{Style.RESET_ALL}")
        print(f"  {EMOJI['INFO']} {DEVICE_ID_KEY}: {Fore.GREEN}{new_ids.device_id}{Style.RESET_ALL}")

        return TelemetryModificationResult(
            old_machine_id=old_machine_id,
            new_machine_id=new_ids.machine_id,
            old_device_id=old_device_id,
            new_device_id=new_ids.device_id,
            storage_backup_path=storage_backup_path,
            machine_id_backup_path=machine_id_backup_path
        )

    def validate_storage_file(self, file_path: Optional[str] = None) -> bool:
        """True when the storage file exists and holds a JSON object"""
        path = file_path or self.paths.storage_path
        if not file_exists(path):
            return False
        try:
            self._read_storage(path)
            return True
        except CleanerError as e:
            logger.debug(f"Storage file {path} is not valid: {e}")
            return False

    def get_current_telemetry_ids(self) -> Optional[TelemetryIds]:
        if not file_exists(self.paths.storage_path):
            return None
        try:
            data = self._read_storage(self.paths.storage_path)
        except CleanerError as e:
            logger.debug(f"Could not read current telemetry IDs: {e}")
            return None

        return TelemetryIds(
            machine_id=data.get(MACHINE_ID_KEY) or "",
            device_id=data.get(DEVICE_ID_KEY) or ""
        )
