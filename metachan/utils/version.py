"""Version Utilities Module."""

from pathlib import Path

import tomlkit

PYPROJECT_PATH = Path(__file__).resolve().parents[2] / "pyproject.toml"


def get_pyproject_version(pyproject_path: Path = PYPROJECT_PATH) -> str:
    """Get Metachan's version from the pyproject.toml file.

    Args:
        pyproject_path (Path): Location of the pyproject.toml file.

    Returns:
        str: Metachan's version, or "unknown" if it cannot be determined
    """
    if not pyproject_path.is_file():
        return "unknown"

    with pyproject_path.open(encoding="utf-8") as f:
        toml_data = tomlkit.load(f)

    project = toml_data.get("project")
    if project is not None and "version" in project:
        return str(project["version"])

    return "unknown"
