"""Command line interface: ``blog-sync``.

Runs the same core as the MCP server from a terminal::

    blog-sync sync
    blog-sync sync --force-delete
    blog-sync resync
    blog-sync draft "SF Trip" --file ~/notes/sf.md
    blog-sync publish <id> -m "Add SF trip"
    blog-sync list --drafts
    blog-sync delete <id>
    blog-sync reconcile
    blog-sync init

Logs go to stderr; reports go to stdout (``--json`` for machine output).
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
import textwrap

from . import __version__
from .config_loader import ensure_config
from .config_schema import recommended_paths
from .context import BlogContext, load_runtime_config
from .core.async_utils import call_with_retry
from .errors import BlogSyncError
from .file_handler import read_file_with_encoding, validate_file_path
from .logger import setup_logging
from .sync.reporter import (
    document_to_json,
    format_publish_result,
    format_sync_report,
    publish_to_json,
    result_to_json,
)
from .validators import (
    validate_commit_message,
    validate_content,
    validate_document_id,
)

logger = logging.getLogger(__name__)


def eprint(*args) -> None:
    print(*args, file=sys.stderr)


def _emit(args: argparse.Namespace, text: str, data: dict) -> None:
    if args.json:
        print(json.dumps(data, indent=2, ensure_ascii=False))
    else:
        print(text)


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


def cmd_sync(ctx: BlogContext, args: argparse.Namespace) -> int:
    result = ctx.engine.sync(force_delete=args.force_delete)
    _emit(args, format_sync_report(result), result_to_json(result))
    return 0 if result.ok else 2


def cmd_resync(ctx: BlogContext, args: argparse.Namespace) -> int:
    result = ctx.engine.force_resync()
    _emit(args, format_sync_report(result), result_to_json(result))
    return 0 if result.ok else 2


def cmd_publish(ctx: BlogContext, args: argparse.Namespace) -> int:
    for is_valid, error in (
        validate_document_id(args.document_id),
        validate_commit_message(args.message),
    ):
        if not is_valid:
            eprint(f"Error: {error}")
            return 1

    document = ctx.store.require(args.document_id)
    result = ctx.publisher.publish(document, args.message)
    _emit(args, format_publish_result(result), publish_to_json(result))
    return 0


def cmd_list(ctx: BlogContext, args: argparse.Namespace) -> int:
    if args.drafts:
        documents = ctx.store.list_drafts()
    elif args.published:
        documents = ctx.store.list_published()
    else:
        documents = ctx.store.list_all()

    lines = []
    for document in documents:
        state = "draft" if document.is_draft_local else "published"
        lines.append(
            f"{document.id}  {document.date or '----------'}  {state:<9}  "
            f"{document.title or '(untitled)'}"
        )
    _emit(
        args,
        "\n".join(lines) if lines else "No documents.",
        {"documents": [document_to_json(d) for d in documents]},
    )
    return 0


def cmd_draft(ctx: BlogContext, args: argparse.Namespace) -> int:
    body = args.body or ""
    if args.file:
        path = validate_file_path(args.file)
        body, encoding = read_file_with_encoding(path)
        logger.debug("Read %s (%s)", path, encoding)

    is_valid, error = validate_content(body)
    if not is_valid:
        eprint(f"Error: {error}")
        return 1

    document = ctx.store.create_draft(
        title=args.title,
        summary=args.summary or "",
        date=args.date or "",
        tags=args.tag or [],
        body=body,
    )
    _emit(args, f"Created draft {document.id}", document_to_json(document))
    return 0


def cmd_delete(ctx: BlogContext, args: argparse.Namespace) -> int:
    is_valid, error = validate_document_id(args.document_id)
    if not is_valid:
        eprint(f"Error: {error}")
        return 1

    document = ctx.delete_draft(args.document_id)
    _emit(
        args,
        f"Deleted draft {document.id} ({document.title or 'untitled'})",
        document_to_json(document),
    )
    return 0


def cmd_reconcile(ctx: BlogContext, args: argparse.Namespace) -> int:
    report = ctx.store.reconcile()
    text = (
        f"Removed {len(report.orphan_files)} orphan files and "
        f"{len(report.dangling_records)} dangling records."
        if report.changed
        else "Local store is consistent."
    )
    _emit(
        args,
        text,
        {
            "orphan_files": list(report.orphan_files),
            "dangling_records": list(report.dangling_records),
        },
    )
    return 0


def cmd_init(ctx: BlogContext, args: argparse.Namespace) -> int:
    config_path = ensure_config()
    language = call_with_retry(ctx.client.get_repository_language)
    blog_path, image_path = recommended_paths(language, ctx.config.repo)
    text = textwrap.dedent(
        f"""\
        Config file: {config_path}
        Repository: {ctx.config.full_name} (language: {language or 'unknown'})
        Suggested blog path: {blog_path}
        Suggested image path: {image_path}
        Currently using: {ctx.config.blog_path}, {ctx.config.image_path}"""
    )
    _emit(
        args,
        text,
        {
            "config_file": str(config_path),
            "language": language,
            "suggested": {"blog_path": blog_path, "image_path": image_path},
        },
    )
    return 0


def init_unconfigured(args: argparse.Namespace, reason: str) -> int:
    """Finish ``init`` when no repository is configured yet."""
    config_path = ensure_config()
    note = f"{reason} Set github.owner and github.repo, then run init again for path suggestions."
    _emit(
        args,
        f"Config file: {config_path}\n{note}",
        {
            "config_file": str(config_path),
            "language": None,
            "suggested": None,
            "note": note,
        },
    )
    return 0


# ---------------------------------------------------------------------------
# Parser
# ---------------------------------------------------------------------------


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="blog-sync",
        description="Sync and publish a GitHub-hosted markdown blog.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=textwrap.dedent(
            """\
            Examples:
              blog-sync sync
              blog-sync publish 0123abcd... -m "Add SF trip"
              blog-sync list --drafts
            """
        ),
    )
    parser.add_argument("--owner", help="Repository owner (overrides GITHUB_OWNER)")
    parser.add_argument("--repo", help="Repository name (overrides GITHUB_REPO)")
    parser.add_argument("--branch", help="Publishing branch (overrides GITHUB_BRANCH)")
    parser.add_argument("--data-dir", help="Local data directory (overrides BLOG_DATA_DIR)")
    parser.add_argument("--json", action="store_true", help="Print JSON instead of text")
    parser.add_argument("--debug", action="store_true", help="Verbose logging")
    parser.add_argument("--log-file", help="Also write logs to this file")
    parser.add_argument(
        "--version", action="version", version=f"blog-sync version {__version__}"
    )

    sub = parser.add_subparsers(dest="command")

    p_sync = sub.add_parser("sync", help="Reconcile local documents with the repository")
    p_sync.add_argument(
        "--force-delete",
        action="store_true",
        help="Delete posts missing remotely even if edited recently",
    )
    p_sync.set_defaults(func=cmd_sync)

    p_resync = sub.add_parser("resync", help="Drop published documents and download all again")
    p_resync.set_defaults(func=cmd_resync)

    p_publish = sub.add_parser("publish", help="Publish a local document")
    p_publish.add_argument("document_id", help="Document id (see 'list')")
    p_publish.add_argument("-m", "--message", required=True, help="Commit message")
    p_publish.set_defaults(func=cmd_publish)

    p_list = sub.add_parser("list", help="List local documents")
    kind = p_list.add_mutually_exclusive_group()
    kind.add_argument("--drafts", action="store_true", help="Only local drafts")
    kind.add_argument("--published", action="store_true", help="Only published documents")
    p_list.set_defaults(func=cmd_list)

    p_draft = sub.add_parser("draft", help="Create a local draft")
    p_draft.add_argument("title", help="Post title")
    body = p_draft.add_mutually_exclusive_group()
    body.add_argument("--body", help="Markdown body")
    body.add_argument("--file", help="Absolute path of a markdown file to use as body")
    p_draft.add_argument("--summary", help="Short summary")
    p_draft.add_argument("--date", help="Publication date (yyyy-MM-dd)")
    p_draft.add_argument("--tag", action="append", help="Tag (repeatable)")
    p_draft.set_defaults(func=cmd_draft)

    p_delete = sub.add_parser("delete", help="Delete a local draft")
    p_delete.add_argument("document_id", help="Draft id (see 'list --drafts')")
    p_delete.set_defaults(func=cmd_delete)

    p_reconcile = sub.add_parser("reconcile", help="Repair the local store")
    p_reconcile.set_defaults(func=cmd_reconcile)

    p_init = sub.add_parser("init", help="Create a config file and suggest blog paths")
    p_init.set_defaults(func=cmd_init)

    return parser


# ---------------------------------------------------------------------------
# Main entry
# ---------------------------------------------------------------------------


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    if not args.command:
        parser.print_help()
        return 0

    overrides = {
        "owner": args.owner,
        "repo": args.repo,
        "branch": args.branch,
        "data_dir": args.data_dir,
        "debug": args.debug,
    }
    if args.command == "init":
        # Written before the config is resolved so a fresh setup gets a file
        ensure_config()

    try:
        config, unified, _sources = load_runtime_config(overrides)
    except ValueError as e:
        if args.command == "init":
            return init_unconfigured(args, str(e))
        eprint(f"Config error: {e}")
        return 1

    setup_logging(
        mode="cli",
        debug=config.debug,
        log_file=args.log_file or unified.logging.file,
        level=unified.logging.level,
    )

    ctx = BlogContext.create(config)
    try:
        return args.func(ctx, args)
    except (BlogSyncError, ValueError) as e:
        eprint(f"Error: {e}")
        return 1
    finally:
        ctx.close()


if __name__ == "__main__":
    raise SystemExit(main())
