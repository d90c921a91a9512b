"""
Hierarchical configuration loader for blog_sync_mcp.

Finds config files by convention, resolves YAML ``!include`` directives,
interpolates ``${VAR}`` references and merges files so the project-level
file wins over the global one.

Usage:
    from blog_sync_mcp.config_loader import load_hierarchical_config

    config = load_hierarchical_config()
"""

import logging
import os
import re
from pathlib import Path
from typing import Any

import yaml

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "BLOG_SYNC_CONFIG"
PROJECT_CONFIG_DIR = ".blog_sync"

# ---------------------------------------------------------------------------
# 1. Env var interpolation
# ---------------------------------------------------------------------------

# ${VAR} and ${VAR:-default}
_ENV_VAR_PATTERN = re.compile(r"\$\{([^}:]+?)(?::-(.*?))?\}")


def interpolate_env_vars(value: str) -> str:
    """Substitute ``${VAR}`` and ``${VAR:-default}`` from the environment.

    An unset or empty variable falls back to *default*, or to ``""`` when
    no default is given.  A ``${`` without a closing brace is kept as is.
    """

    def _substitute(match: re.Match) -> str:
        env_val = os.environ.get(match.group(1))
        if env_val:
            return env_val
        return match.group(2) if match.group(2) is not None else ""

    return _ENV_VAR_PATTERN.sub(_substitute, value)


def _interpolate_recursive(obj: Any) -> Any:
    if isinstance(obj, str):
        return interpolate_env_vars(obj)
    if isinstance(obj, dict):
        return {k: _interpolate_recursive(v) for k, v in obj.items()}
    if isinstance(obj, list):
        return [_interpolate_recursive(item) for item in obj]
    return obj


# ---------------------------------------------------------------------------
# 2. YAML !include support
# ---------------------------------------------------------------------------


class ConfigLoader(yaml.SafeLoader):
    """SafeLoader with an ``!include`` tag.

    A subclass keeps the global ``yaml.SafeLoader`` untouched.  Each load
    carries an include stack used to reject circular includes.
    """


def _include_constructor(loader: ConfigLoader, node: yaml.ScalarNode) -> Any:
    target: str = loader.construct_scalar(node)

    if os.path.isabs(target):
        include_path = Path(target)
    else:
        include_path = Path(loader.name).resolve().parent / target
    include_path = include_path.resolve()

    stack: list[Path] = getattr(loader, "_include_stack", [])
    if include_path in stack:
        chain = " -> ".join(str(p) for p in [*stack, include_path])
        raise ValueError(f"Circular include detected: {chain}")

    if not include_path.exists():
        raise FileNotFoundError(
            f"Include file not found: {include_path} "
            f"(referenced from {Path(loader.name).resolve()})"
        )

    return _load_yaml_with_includes(include_path, _include_stack=[*stack, include_path])


ConfigLoader.add_constructor("!include", _include_constructor)


def _load_yaml_with_includes(
    path: Path,
    *,
    _include_stack: list[Path] | None = None,
) -> Any:
    path = path.resolve()
    with open(path, "r", encoding="utf-8") as fh:
        loader = ConfigLoader(fh)
        loader._include_stack = _include_stack or [path]  # type: ignore[attr-defined]
        try:
            return loader.get_single_data()
        finally:
            loader.dispose()


# ---------------------------------------------------------------------------
# 3. Convention-based file discovery
# ---------------------------------------------------------------------------


def discover_config_files() -> list[Path]:
    """Return existing config file paths, highest precedence first.

    Search order:
        1. ``BLOG_SYNC_CONFIG`` env var (explicit single path)
        2. ``.blog_sync/config.yml`` in CWD (project-level)
        3. ``~/.config/blog_sync/config.yml`` (XDG global)
    """
    candidates: list[Path] = []

    env_path = os.environ.get(CONFIG_ENV_VAR)
    if env_path:
        candidates.append(Path(env_path).expanduser().resolve())

    candidates.append(Path.cwd() / PROJECT_CONFIG_DIR / "config.yml")
    candidates.append(Path.home() / ".config" / "blog_sync" / "config.yml")

    return [p for p in candidates if p.exists()]


_STARTER_CONFIG = """\
# blog-sync-mcp configuration
#
# GitHub settings can also come from environment variables:
#   GITHUB_TOKEN, GITHUB_OWNER, GITHUB_REPO, GITHUB_BRANCH
#
# github:
#   owner: octocat
#   repo: octocat.github.io
#   token: ${GITHUB_TOKEN}
#   branch: main
#
# blog:
#   path: blog
#   image_path: public/assets/blog
#
# sync:
#   data_dir: ~/.blog_sync/data
#   recent_edit_hours: 24
#
# logging:
#   level: INFO
#   file: null
"""


def resolve_config_path() -> Path:
    """Return the active config file, or the project-level default path.

    Does not create anything; see ``ensure_config()``.
    """
    existing = discover_config_files()
    if existing:
        return existing[0]
    return Path.cwd() / PROJECT_CONFIG_DIR / "config.yml"


def ensure_config(target: Path | None = None) -> Path:
    """Return an existing config file, or write a commented starter file.

    Args:
        target: Explicit path to create.  Defaults to
            ``resolve_config_path()``.
    """
    existing = discover_config_files()
    if existing:
        logger.debug("Config file already exists: %s", existing[0])
        return existing[0]

    config_path = target or resolve_config_path()
    config_path.parent.mkdir(parents=True, exist_ok=True)
    config_path.write_text(_STARTER_CONFIG, encoding="utf-8")
    logger.info("Created starter config: %s", config_path)

    return config_path


# ---------------------------------------------------------------------------
# 4. Hierarchical merge
# ---------------------------------------------------------------------------


def load_hierarchical_config() -> dict[str, Any]:
    """Load and merge all discovered config files.

    Files load from lowest precedence to highest; top-level keys of a
    later file replace those of earlier ones (no deep merge).  Env var
    interpolation runs after the merge.

    Returns an empty dict when no config files exist.
    """
    paths = discover_config_files()

    if not paths:
        logger.debug("No config files found, using defaults")
        return {}

    merged: dict[str, Any] = {}
    for path in reversed(paths):
        logger.debug("Loading config: %s", path)
        try:
            data = _load_yaml_with_includes(path)
        except Exception:
            logger.exception("Failed to load config file %s", path)
            raise

        if isinstance(data, dict):
            merged.update(data)
        elif data is not None:
            logger.warning(
                "Config file %s has non-dict root (%s), skipping",
                path,
                type(data).__name__,
            )

    return _interpolate_recursive(merged)
