"""
Machine and device identifier generation for the VS Code telemetry fields.
"""
import re
import secrets
from dataclasses import dataclass, asdict
from typing import Any, Dict

MACHINE_ID_PATTERN = re.compile(r"^[a-f0-9]{64}$")
DEVICE_ID_PATTERN = re.compile(r"^[0-9a-f]{8}-[0-9a-f]{4}-4[0-9a-f]{3}-[89ab][0-9a-f]{3}-[0-9a-f]{12}$")


@dataclass
class TelemetryIds:
    machine_id: str
    device_id: str

    def to_dict(self) -> Dict[str, str]:
        return asdict(self)


def generate_machine_id() -> str:
    """Random 64-character lowercase hex string (32 random bytes)."""
    return secrets.token_bytes(32).hex()


def generate_device_id() -> str:
    """Random RFC 4122 version 4 UUID, lowercase and hyphenated."""
    data = bytearray(secrets.token_bytes(16))

    # Version nibble 0100 and variant bits 10
    data[6] = (data[6] & 0x0F) | 0x40
    data[8] = (data[8] & 0x3F) | 0x80

    hex_str = data.hex()
    return "-".join([
        hex_str[0:8],
        hex_str[8:12],
        hex_str[12:16],
        hex_str[16:20],
        hex_str[20:32],
    ])


def generate_new_ids() -> TelemetryIds:
    return TelemetryIds(machine_id=generate_machine_id(), device_id=generate_device_id())


def is_valid_machine_id(machine_id: Any) -> bool:
    return isinstance(machine_id, str) and MACHINE_ID_PATTERN.fullmatch(machine_id) is not None


def is_valid_device_id(device_id: Any) -> bool:
    return isinstance(device_id, str) and DEVICE_ID_PATTERN.fullmatch(device_id) is not None
