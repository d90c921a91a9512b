"""Runtime configuration for the blog sync core.

Reads GitHub connection and blog layout settings from CLI args,
environment variables, .env files, and YAML config file fallbacks.

Precedence (highest to lowest):
    CLI args > Environment variables > .env file > YAML config > Built-in defaults

Environment variables:
    GITHUB_TOKEN: Personal access token (required for remote operations)
    GITHUB_OWNER: Repository owner (required)
    GITHUB_REPO: Repository name (required)
    GITHUB_BRANCH: Publishing branch (optional, default: main)
    GITHUB_API_URL: API base URL (optional, default: https://api.github.com)
    BLOG_PATH: Directory holding posts in the repository (optional, default: blog)
    BLOG_IMAGE_PATH: Directory for uploaded images (optional, default: public/assets/blog)
    BLOG_DATA_DIR: Local store directory (optional, default: ~/.blog_sync/data)
    BLOG_RECENT_EDIT_HOURS: Deletion protection window (optional, default: 24)
    BLOG_REQUEST_TIMEOUT: Read timeout in seconds (optional, default: 60)
"""

import logging
import os
import re
from dataclasses import dataclass
from pathlib import Path
from urllib.parse import urlparse

logger = logging.getLogger(__name__)

DEFAULT_API_URL = "https://api.github.com"
DEFAULT_DATA_DIR = "~/.blog_sync/data"

# GitHub owner and repository names
_NAME_PATTERN = re.compile(r"^[A-Za-z0-9_.-]+$")


@dataclass
class Config:
    owner: str
    repo: str
    token: str | None = None
    branch: str = "main"
    api_url: str = DEFAULT_API_URL
    blog_path: str = "blog"
    image_path: str = "public/assets/blog"
    image_url_prefix: str | None = None
    data_dir: str = DEFAULT_DATA_DIR
    recent_edit_hours: float = 24.0
    request_timeout: float = 60.0
    debug: bool = False

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.repo}"

    @property
    def data_path(self) -> Path:
        return Path(self.data_dir).expanduser()

    @property
    def image_prefix(self) -> str:
        """URL prefix used in published markdown for uploaded images.

        Defaults to ``image_path`` without a leading ``public/`` segment,
        since static site generators serve ``public/`` at the site root.
        """
        if self.image_url_prefix:
            return "/" + self.image_url_prefix.strip("/")
        path = self.image_path.strip("/")
        if path.startswith("public/"):
            path = path[len("public/") :]
        return "/" + path


def validate_config(config: Config) -> None:
    """Validate configuration values and raise ValueError if invalid.

    Args:
        config: Config instance to validate.

    Raises:
        ValueError: If API URL, owner, repo, or paths are invalid.
    """
    config.api_url = config.api_url.strip()

    if not config.api_url.startswith(("http://", "https://")):
        raise ValueError(
            f"Invalid GitHub API URL '{config.api_url}': must start with http:// or https://"
        )

    parsed = urlparse(config.api_url)
    if not parsed.hostname:
        raise ValueError(
            f"Invalid GitHub API URL '{config.api_url}': URL must include a hostname"
        )

    config.api_url = config.api_url.removesuffix("/")

    config.owner = config.owner.strip()
    config.repo = config.repo.strip()
    if not config.owner or not _NAME_PATTERN.match(config.owner):
        raise ValueError(
            f"Invalid repository owner '{config.owner}'. Set GITHUB_OWNER environment variable."
        )
    if not config.repo or not _NAME_PATTERN.match(config.repo):
        raise ValueError(
            f"Invalid repository name '{config.repo}'. Set GITHUB_REPO environment variable."
        )

    config.blog_path = config.blog_path.strip().strip("/")
    config.image_path = config.image_path.strip().strip("/")
    if ".." in config.blog_path.split("/") or ".." in config.image_path.split("/"):
        raise ValueError("Repository paths cannot contain '..'")

    if config.recent_edit_hours < 0:
        raise ValueError(
            f"Invalid recent edit window {config.recent_edit_hours}: must be >= 0 hours"
        )
    if config.request_timeout <= 0:
        raise ValueError(
            f"Invalid request timeout {config.request_timeout}: must be positive"
        )

    if not config.token:
        logger.warning(
            "GITHUB_TOKEN is not set: remote operations will fail with NotAuthenticated"
        )


def _float_setting(name: str, raw: str, low: float, high: float) -> float:
    try:
        value = float(raw)
    except ValueError:
        raise ValueError(
            f"Invalid {name} '{raw}': must be a number between {low:g} and {high:g}"
        ) from None
    if not (low <= value <= high):
        raise ValueError(
            f"Invalid {name} '{raw}': must be a number between {low:g} and {high:g}"
        )
    return value


def load_config(
    owner: str | None = None,
    repo: str | None = None,
    token: str | None = None,
    branch: str | None = None,
    data_dir: str | None = None,
    debug: bool = False,
    yaml_fallbacks: dict | None = None,
) -> Config:
    """Load configuration with unified precedence.

    Resolution order for each field (highest to lowest):
        CLI arg > env var / .env > yaml_fallbacks > built-in default

    The caller is responsible for calling ``load_dotenv()`` before this
    function so that .env values are available via ``os.getenv()``.

    Args:
        owner: Override repository owner.
        repo: Override repository name.
        token: Override GitHub token.
        branch: Override publishing branch.
        data_dir: Override local store directory.
        debug: Enable debug logging (CLI flag).
        yaml_fallbacks: Flattened values from the YAML config file
            (``github``, ``blog`` and ``sync`` sections).

    Returns:
        Validated Config instance.

    Raises:
        ValueError: If owner or repo is missing after checking all
            sources, or a value is out of range.
    """
    fb = yaml_fallbacks or {}

    final_owner = owner or os.getenv("GITHUB_OWNER") or fb.get("owner")
    if not final_owner:
        raise ValueError(
            "Repository owner not found. Set GITHUB_OWNER environment variable, "
            "pass --owner CLI argument, or add 'owner' to config.yml."
        )

    final_repo = repo or os.getenv("GITHUB_REPO") or fb.get("repo")
    if not final_repo:
        raise ValueError(
            "Repository name not found. Set GITHUB_REPO environment variable, "
            "pass --repo CLI argument, or add 'repo' to config.yml."
        )

    final_token = token or os.getenv("GITHUB_TOKEN") or fb.get("token")

    def pick(key: str, env: str, default: str) -> str:
        return os.getenv(env) or fb.get(key) or default

    if debug:
        final_debug = True
    else:
        env_debug = os.getenv("BLOG_SYNC_DEBUG")
        if env_debug is not None:
            final_debug = env_debug.lower() in ("true", "1", "yes", "on")
        else:
            final_debug = bool(fb.get("debug", False))

    recent_raw = os.getenv("BLOG_RECENT_EDIT_HOURS")
    if recent_raw is not None:
        recent_hours = _float_setting(
            "BLOG_RECENT_EDIT_HOURS", recent_raw, 0, 24 * 365
        )
    else:
        recent_hours = float(fb.get("recent_edit_hours", 24.0))

    timeout_raw = os.getenv("BLOG_REQUEST_TIMEOUT")
    if timeout_raw is not None:
        timeout = _float_setting("BLOG_REQUEST_TIMEOUT", timeout_raw, 1, 600)
    else:
        timeout = float(fb.get("request_timeout", 60.0))

    config = Config(
        owner=final_owner,
        repo=final_repo,
        token=final_token.strip() if final_token else None,
        branch=branch or pick("branch", "GITHUB_BRANCH", "main"),
        api_url=pick("api_url", "GITHUB_API_URL", DEFAULT_API_URL),
        blog_path=pick("blog_path", "BLOG_PATH", "blog"),
        image_path=pick("image_path", "BLOG_IMAGE_PATH", "public/assets/blog"),
        image_url_prefix=os.getenv("BLOG_IMAGE_URL_PREFIX")
        or fb.get("image_url_prefix"),
        data_dir=data_dir or pick("data_dir", "BLOG_DATA_DIR", DEFAULT_DATA_DIR),
        recent_edit_hours=recent_hours,
        request_timeout=timeout,
        debug=final_debug,
    )

    validate_config(config)

    return config
