"""Runtime wiring shared by the MCP server and the CLI.

``load_runtime_config()`` applies the full precedence chain
(CLI > env / .env > YAML > defaults).  ``BlogContext.create()`` builds the
client, store, sync engine and publish pipeline around one shared lock.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import Any

from dotenv import load_dotenv

from .config import Config, load_config
from .config_loader import discover_config_files, load_hierarchical_config
from .config_schema import UnifiedConfig, build_config, to_fallbacks
from .content.models import Document
from .content.store import ContentStore
from .core.client import GitHubClient
from .sync.engine import SyncEngine
from .sync.models import SyncResult
from .sync.publisher import PublishPipeline

logger = logging.getLogger(__name__)


def load_runtime_config(
    overrides: dict[str, Any] | None = None,
) -> tuple[Config, UnifiedConfig, list[str]]:
    """Resolve the runtime config from every source.

    Args:
        overrides: CLI values (owner, repo, branch, data_dir, debug).

    Returns:
        ``(config, unified, sources)`` where *unified* is the parsed YAML
        config (defaults when no file exists) and *sources* names what
        contributed, for startup messages.

    Raises:
        ValueError: Missing or invalid settings.
    """
    # .env first so ${VAR} interpolation in YAML can see its values
    load_dotenv()

    sources: list[str] = []
    config_files = discover_config_files()
    unified = build_config(load_hierarchical_config())
    if config_files:
        sources.append(f"config file: {config_files[0]}")

    overrides = overrides or {}
    config = load_config(
        owner=overrides.get("owner"),
        repo=overrides.get("repo"),
        branch=overrides.get("branch"),
        data_dir=overrides.get("data_dir"),
        debug=overrides.get("debug", False),
        yaml_fallbacks=to_fallbacks(unified),
    )

    if any(v for k, v in overrides.items() if k in ("owner", "repo", "branch", "data_dir")):
        sources.append("CLI arguments")
    sources.append("environment variables")
    return config, unified, sources


@dataclass
class BlogContext:
    """Everything a tool handler or CLI command needs.

    Attributes:
        config: Resolved runtime config.
        client: GitHub client.
        store: Local content store.
        engine: Sync engine.
        publisher: Publish pipeline sharing the engine's lock.
        last_result: Most recent sync result of this process.
    """

    config: Config
    client: GitHubClient
    store: ContentStore
    engine: SyncEngine
    publisher: PublishPipeline
    last_result: SyncResult | None = field(default=None)

    @classmethod
    def create(cls, config: Config) -> BlogContext:
        client = GitHubClient(config)
        store = ContentStore(config.data_path)
        lock = threading.Lock()
        return cls(
            config=config,
            client=client,
            store=store,
            engine=SyncEngine(client, store, config, lock=lock),
            publisher=PublishPipeline(client, store, config, lock=lock),
        )

    def delete_draft(self, document_id: str) -> Document:
        """Delete a local draft; waits for a running sync or publish."""
        with self.engine.lock:
            return self.store.delete_draft(document_id)

    def close(self) -> None:
        self.store.close()
