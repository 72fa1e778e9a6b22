"""
Project metadata read from pyproject.toml.

Falls back to built-in defaults when the tool runs from an installed
package where pyproject.toml is not shipped.
"""
import os
import tomllib


def get_project_info():
    """The [project] table of pyproject.toml, or {} when it cannot be read"""
    current_dir = os.path.dirname(os.path.abspath(__file__))
    pyproject_path = os.path.join(current_dir, 'pyproject.toml')

    try:
        with open(pyproject_path, "rb") as f:
            return tomllib.load(f).get("project", {})
    except (FileNotFoundError, tomllib.TOMLDecodeError):
        return {}


project_info = get_project_info()

VERSION = project_info.get("version", "1.0.0")
NAME = project_info.get("name", "vscode-augment-cleaner")
DESCRIPTION = project_info.get("description", "")
