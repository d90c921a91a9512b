"""Blog synchronization and publishing.

The remote repository is the source of truth.  Published local documents
are identified by the git blob SHA of their remote file; a changed SHA
means the remote changed and the local copy is stale.

Modules:

- ``engine``    -- ``SyncEngine``: one reconciliation pass.
- ``publisher`` -- ``PublishPipeline``: one document plus its images as a
  single commit.
- ``resolver``  -- slugs, remote file names and title matching.
- ``models``    -- ``SyncResult``, ``SyncOutcome``, ``PublishResult`` and
  friends.
- ``reporter``  -- human-readable and JSON report formatting.

Usage example
-------------
::

    import threading

    from blog_sync_mcp.config import load_config
    from blog_sync_mcp.content import ContentStore
    from blog_sync_mcp.core import GitHubClient
    from blog_sync_mcp.sync import PublishPipeline, SyncEngine, format_sync_report

    config = load_config()
    client = GitHubClient(config)
    store = ContentStore(config.data_path)
    lock = threading.Lock()

    engine = SyncEngine(client, store, config, lock=lock)
    print(format_sync_report(engine.sync()))

    draft = store.create_draft(title="SF Trip", body="Fog.")
    PublishPipeline(client, store, config, lock=lock).publish(draft, "Add SF trip")
"""

from .engine import SyncEngine
from .models import (
    DocumentState,
    ImageUpload,
    PublishResult,
    SlugResolution,
    SyncOutcome,
    SyncResult,
)
from .publisher import PublishPipeline
from .reporter import (
    format_publish_result,
    format_sync_report,
    publish_to_json,
    result_to_json,
)

__all__ = [
    "DocumentState",
    "ImageUpload",
    "PublishPipeline",
    "PublishResult",
    "SlugResolution",
    "SyncEngine",
    "SyncOutcome",
    "SyncResult",
    "format_publish_result",
    "format_sync_report",
    "publish_to_json",
    "result_to_json",
]
