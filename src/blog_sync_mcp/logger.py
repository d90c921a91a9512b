import json
import logging
import os
import sys

DEFAULT_MCP_LOG_FILE = "/tmp/blog-sync-mcp.log"
_TEXT_FORMAT = "[%(asctime)s] [%(levelname)s] %(message)s"
_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


class JsonFormatter(logging.Formatter):
    """One JSON object per record: ts, level, logger, msg (and exc)."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "ts": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        if record.exc_info:
            entry["exc"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


def _formatter(log_format: str, with_name: bool = False) -> logging.Formatter:
    if log_format == "json":
        return JsonFormatter(datefmt=_DATE_FORMAT)
    fmt = (
        "[%(asctime)s] [%(levelname)s] %(name)s %(message)s"
        if with_name
        else _TEXT_FORMAT
    )
    return logging.Formatter(fmt, datefmt=_DATE_FORMAT)


def setup_logging(
    mode: str = "cli",
    debug: bool = False,
    log_file: str | None = None,
    log_format: str = "text",
    level: str | None = None,
) -> None:
    """
    Configure logging for the execution mode.

    Args:
        mode: "mcp" logs to a file (stdout carries JSON-RPC), "cli" logs
            to stderr.
        debug: Force DEBUG level regardless of LOG_LEVEL.
        log_file: Log file path (overrides LOG_FILE). In CLI mode the
            file is written in addition to stderr.
        log_format: "text" (default) or "json".
        level: Level from the config file; LOG_LEVEL takes precedence.

    Environment variables:
        LOG_LEVEL: DEBUG, INFO, WARNING, ERROR.
                   Default: WARNING for MCP mode, INFO for CLI mode.
        LOG_FILE: Log file for MCP mode. Default: /tmp/blog-sync-mcp.log
    """
    default_level = "WARNING" if mode == "mcp" else "INFO"
    env_level = (os.getenv("LOG_LEVEL") or level or default_level).upper()

    if debug:
        log_level = logging.DEBUG
    else:
        log_level = getattr(logging, env_level, logging.INFO)

    handlers: list[logging.Handler] = []
    if mode == "mcp":
        target = log_file or os.getenv("LOG_FILE", DEFAULT_MCP_LOG_FILE)
        file_handler = logging.FileHandler(target, mode="a")
        file_handler.setFormatter(_formatter(log_format))
        handlers.append(file_handler)
    else:
        stderr_handler = logging.StreamHandler(sys.stderr)
        stderr_handler.setFormatter(_formatter(log_format))
        handlers.append(stderr_handler)

        if log_file:
            file_handler = logging.FileHandler(log_file, mode="a")
            file_handler.setFormatter(_formatter(log_format, with_name=True))
            handlers.append(file_handler)

    logging.basicConfig(level=log_level, handlers=handlers)

    # Silence third-party libs unless DEBUG
    if log_level != logging.DEBUG:
        logging.getLogger("urllib3").setLevel(logging.WARNING)
        logging.getLogger("httpx").setLevel(logging.WARNING)
        logging.getLogger("httpcore").setLevel(logging.WARNING)
