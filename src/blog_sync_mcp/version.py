"""Version checking utilities for detecting a stale installed package."""

import tomllib
from pathlib import Path


def check_version_consistency() -> tuple[bool, str]:
    """Check if the runtime version matches the one in pyproject.toml.

    Returns:
        Tuple of (is_consistent, message).

    An editable install picks up source changes, but the version string
    baked into ``__init__`` can drift from pyproject.toml after a bump.
    """
    from . import __version__ as runtime_version

    pyproject_path = Path(__file__).parent.parent.parent / "pyproject.toml"

    if not pyproject_path.exists():
        return False, "Cannot find pyproject.toml for version comparison"

    try:
        with open(pyproject_path, "rb") as f:
            data = tomllib.load(f)
    except (OSError, tomllib.TOMLDecodeError) as e:
        return False, f"Failed to read version from pyproject.toml: {e}"

    source_version = data.get("project", {}).get("version", "unknown")

    if runtime_version != source_version:
        return False, (
            f"Version mismatch detected! "
            f"Runtime: {runtime_version}, Source: {source_version}. "
            f"Reinstall with: pip install -e ."
        )

    return True, f"Version verified: {runtime_version}"
