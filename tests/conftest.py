"""Shared fixtures: a throwaway VS Code configuration tree per test."""

import json
import os
import sqlite3
import tempfile
from pathlib import Path
from typing import Generator
from unittest.mock import Mock

import pytest

from utils import SystemPaths, resolve_system_paths

ORIGINAL_MACHINE_ID = "a" * 64
ORIGINAL_DEVICE_ID = "11111111-1111-4111-8111-111111111111"

ITEM_ROWS = [
    ("augment.session", b'{"token": "abc"}'),
    ("Augment.vscode-augment", "cached-state"),
    ("workbench.panel.augmentChat", "1"),
    ("workbench.colorTheme", "Default Dark+"),
    ("telemetry.lastSessionDate", "Mon, 01 Jan 2024"),
]


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for tests."""
    with tempfile.TemporaryDirectory() as temp_dir:
        yield Path(temp_dir)


@pytest.fixture
def system_paths(temp_dir: Path) -> SystemPaths:
    """Linux-style paths rooted in the temporary home directory (nothing created yet)."""
    return resolve_system_paths(system="Linux", home_dir=str(temp_dir))


def write_storage(paths: SystemPaths, data: dict) -> None:
    os.makedirs(os.path.dirname(paths.storage_path), exist_ok=True)
    with open(paths.storage_path, "w", encoding="utf-8") as f:
        json.dump(data, f, indent=4)


def create_state_db(db_path: str, rows=ITEM_ROWS) -> None:
    os.makedirs(os.path.dirname(db_path), exist_ok=True)
    conn = sqlite3.connect(db_path)
    try:
        conn.execute("CREATE TABLE ItemTable (key TEXT UNIQUE ON CONFLICT REPLACE, value BLOB)")
        conn.executemany("INSERT INTO ItemTable (key, value) VALUES (?, ?)", rows)
        conn.commit()
    finally:
        conn.close()


def create_workspace(root: str) -> None:
    layout = {
        "0a1b2c/workspace.json": '{"folder": "file:///home/user/project"}',
        "0a1b2c/state.vscdb": "x" * 128,
        "9f8e7d/workspace.json": '{"folder": "file:///home/user/other"}',
        "9f8e7d/Augment.vscode-augment/cache.bin": "y" * 64,
    }
    for rel_path, content in layout.items():
        full_path = os.path.join(root, *rel_path.split("/"))
        os.makedirs(os.path.dirname(full_path), exist_ok=True)
        with open(full_path, "w", encoding="utf-8") as f:
            f.write(content)
    os.makedirs(os.path.join(root, "empty-workspace"), exist_ok=True)


@pytest.fixture
def vscode_tree(system_paths: SystemPaths) -> SystemPaths:
    """A complete fake installation: storage.json, machineid, state.vscdb and workspaceStorage."""
    write_storage(system_paths, {
        "telemetry.machineId": ORIGINAL_MACHINE_ID,
        "telemetry.devDeviceId": ORIGINAL_DEVICE_ID,
        "telemetry.sqmId": "{SQM}",
        "theme": "vs-dark",
    })
    os.makedirs(os.path.dirname(system_paths.machine_id_path), exist_ok=True)
    with open(system_paths.machine_id_path, "w", encoding="utf-8") as f:
        f.write("old-machine-id")

    create_state_db(system_paths.db_path)
    create_workspace(system_paths.workspace_storage_path)
    return system_paths


@pytest.fixture
def mock_controller() -> Mock:
    """Process controller double reporting VS Code as not running."""
    controller = Mock()
    controller.is_running.return_value = False
    controller.terminate.return_value = True
    controller.relaunch.return_value = True
    return controller
