"""Unified configuration schema for blog_sync_mcp.

Pydantic models for the YAML config file, one section per concern, plus
the helpers that turn a loaded file into the runtime ``Config``.

Usage:
    from blog_sync_mcp.config_schema import build_config, to_fallbacks

    unified = build_config(load_hierarchical_config())
    config = load_config(yaml_fallbacks=to_fallbacks(unified))
"""

from __future__ import annotations

import logging

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Section models
# ---------------------------------------------------------------------------


class GitHubConfig(BaseModel):
    """GitHub repository settings.

    Every field is optional: env vars and CLI args may supply them.
    """

    owner: str | None = Field(default=None, description="Repository owner")
    repo: str | None = Field(default=None, description="Repository name")
    token: str | None = Field(default=None, description="Personal access token")
    branch: str | None = Field(default=None, description="Publishing branch")
    api_url: str | None = Field(default=None, description="REST API base URL")
    request_timeout: float = Field(
        default=60.0,
        ge=1,
        le=600,
        description="Read timeout in seconds for every request",
    )

    model_config = {"frozen": True}


class BlogConfig(BaseModel):
    """Layout of the blog inside the repository."""

    path: str | None = Field(default=None, description="Posts directory")
    image_path: str | None = Field(default=None, description="Images directory")
    image_url_prefix: str | None = Field(
        default=None, description="URL prefix used for images in posts"
    )

    model_config = {"frozen": True}


class SyncConfig(BaseModel):
    data_dir: str | None = Field(default=None, description="Local store directory")
    recent_edit_hours: float = Field(
        default=24.0,
        ge=0,
        description="Locally edited posts newer than this are never deleted",
    )
    debug: bool = Field(default=False, description="Enable debug mode")

    model_config = {"frozen": True}


class LoggingConfig(BaseModel):
    """Logging configuration.

    Attributes:
        level: Log level name (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        file: Optional log file path.
    """

    level: str | None = Field(default=None, description="Log level")
    file: str | None = Field(default=None, description="Log file path")

    model_config = {"frozen": True}


# ---------------------------------------------------------------------------
# Top-level unified config
# ---------------------------------------------------------------------------


class UnifiedConfig(BaseModel):
    """Top-level configuration; ``UnifiedConfig()`` is always valid."""

    github: GitHubConfig = Field(default_factory=GitHubConfig)
    blog: BlogConfig = Field(default_factory=BlogConfig)
    sync: SyncConfig = Field(default_factory=SyncConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    model_config = {"frozen": True}


def build_config(raw_data: dict) -> UnifiedConfig:
    """Construct a ``UnifiedConfig`` from ``load_hierarchical_config()`` output.

    Missing sections get defaults.
    """
    if not raw_data:
        return UnifiedConfig()

    return UnifiedConfig(**raw_data)


def to_fallbacks(unified: UnifiedConfig) -> dict:
    """Flatten a ``UnifiedConfig`` into the ``yaml_fallbacks`` mapping that
    ``config.load_config`` consumes.  Unset values are omitted.
    """
    values = {
        "owner": unified.github.owner,
        "repo": unified.github.repo,
        "token": unified.github.token,
        "branch": unified.github.branch,
        "api_url": unified.github.api_url,
        "request_timeout": unified.github.request_timeout,
        "blog_path": unified.blog.path,
        "image_path": unified.blog.image_path,
        "image_url_prefix": unified.blog.image_url_prefix,
        "data_dir": unified.sync.data_dir,
        "recent_edit_hours": unified.sync.recent_edit_hours,
        "debug": unified.sync.debug,
    }
    return {k: v for k, v in values.items() if v is not None}


# ---------------------------------------------------------------------------
# Repository layout suggestions
# ---------------------------------------------------------------------------

BLOG_PATH_CHOICES = (
    "blog",
    "posts",
    "content/blog",
    "content/posts",
    "src/content/blog",
    "_posts",
    "articles",
)

IMAGE_PATH_CHOICES = (
    "public/images",
    "public/assets/images",
    "static/images",
    "assets/images",
    "images",
    "public/img",
    "assets/img",
    "img",
)


def recommended_paths(language: str | None, repo_name: str) -> tuple[str, str]:
    """Suggest ``(blog_path, image_path)`` for a repository.

    Guesses the static site generator from the repository's primary
    language and name: Jekyll for Ruby, Hugo for Go, and Next/Gatsby/Nuxt
    or Astro conventions for JavaScript and TypeScript sites.
    """
    name = repo_name.lower()
    lang = (language or "").lower()

    if "javascript" in lang or "typescript" in lang:
        if any(word in name for word in ("next", "gatsby", "nuxt")):
            return "content/blog", "public/images"
        if "astro" in name:
            return "src/content/blog", "public/images"
        return "blog", "public/images"
    if "ruby" in lang:
        return "_posts", "assets/images"
    if "go" in lang:
        return "content/posts", "static/images"
    return "blog", "public/images"
