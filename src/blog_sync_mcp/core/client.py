"""GitHub REST client for the contents and Git Data APIs.

Each method is one network round trip.  No retries happen here: a
failure surfaces as a ``BlogSyncError`` subclass and the caller decides
what to do with it.
"""

import base64
import binascii
import logging
import re
import threading
from typing import Any
from urllib.parse import quote

import requests

from ..config import Config
from ..errors import InvalidResponse, InvalidURL, NotAuthenticated, RequestFailed
from .models import RemoteEntry, RemoteFile, TreeEntry

logger = logging.getLogger(__name__)

API_VERSION = "2022-11-28"
CONNECT_TIMEOUT = 10

_NAME_PATTERN = re.compile(r"^[A-Za-z0-9_.-]+$")


class GitHubClient:
    def __init__(self, config: Config):
        self.config = config
        self._thread_local = threading.local()
        self.timeout = (CONNECT_TIMEOUT, config.request_timeout)

    @property
    def session(self) -> requests.Session:
        """Session for the current thread."""
        return self._get_session()

    @property
    def repo_url(self) -> str:
        owner, repo = self.config.owner, self.config.repo
        if not _NAME_PATTERN.match(owner or "") or not _NAME_PATTERN.match(repo or ""):
            raise InvalidURL(f"Invalid repository '{owner}/{repo}'")
        if not self.config.api_url.startswith(("http://", "https://")):
            raise InvalidURL(f"Invalid GitHub API URL '{self.config.api_url}'")
        return f"{self.config.api_url.rstrip('/')}/repos/{owner}/{repo}"

    def _get_session(self) -> requests.Session:
        """Get or create a thread-local requests.Session."""
        if not hasattr(self._thread_local, "session"):
            self._thread_local.session = self._create_session()
        return self._thread_local.session

    def _create_session(self) -> requests.Session:
        session = requests.Session()
        session.headers.update(
            {
                "Accept": "application/vnd.github+json",
                "X-GitHub-Api-Version": API_VERSION,
                "User-Agent": "blog-sync-mcp",
            }
        )
        return session

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    def _request(
        self,
        method: str,
        url: str,
        payload: dict | None = None,
        params: dict | None = None,
        allow_404: bool = False,
    ) -> Any:
        """Send one request and return the decoded JSON body.

        Returns ``None`` for a 404 when *allow_404* is set.

        Raises:
            NotAuthenticated: No token configured (raised before any I/O).
            RequestFailed: Transport error, timeout or non-2xx status.
            InvalidResponse: Body is not JSON.
        """
        if not self.config.token:
            raise NotAuthenticated()

        headers = {"Authorization": f"Bearer {self.config.token}"}
        logger.debug("%s %s", method, url)
        try:
            response = self._get_session().request(
                method,
                url,
                json=payload,
                params=params,
                headers=headers,
                timeout=self.timeout,
            )
        except requests.Timeout as e:
            raise RequestFailed(f"{method} {url} timed out: {e}") from e
        except requests.RequestException as e:
            raise RequestFailed(f"{method} {url} failed: {e}") from e

        if allow_404 and response.status_code == 404:
            return None
        if response.status_code == 401:
            raise RequestFailed(
                "GitHub rejected the token (401). Check GITHUB_TOKEN.", status=401
            )
        if not 200 <= response.status_code < 300:
            raise RequestFailed(
                f"{method} {url} returned {response.status_code}: "
                f"{_error_message(response)}",
                status=response.status_code,
            )

        try:
            return response.json()
        except ValueError as e:
            raise InvalidResponse(f"{method} {url} returned invalid JSON") from e

    def _contents_url(self, path: str) -> str:
        return f"{self.repo_url}/contents/{quote(path.strip('/'))}"

    def _get_contents(self, path: str, allow_404: bool = False) -> Any:
        # Read from the publishing branch, not the repository default.
        return self._request(
            "GET",
            self._contents_url(path),
            params={"ref": self.config.branch},
            allow_404=allow_404,
        )

    # ------------------------------------------------------------------
    # Contents API
    # ------------------------------------------------------------------

    def list_directory(self, path: str) -> list[RemoteEntry]:
        """List a repository directory.

        A missing directory (404) is an empty listing, not an error.
        """
        data = self._get_contents(path, allow_404=True)
        if data is None:
            logger.info("Remote directory %s does not exist", path)
            return []
        if not isinstance(data, list):
            raise InvalidResponse(f"'{path}' is not a directory")
        try:
            return [
                RemoteEntry(
                    name=item["name"],
                    path=item["path"],
                    sha=item["sha"],
                    type=item.get("type", "file"),
                    size=item.get("size", 0),
                )
                for item in data
            ]
        except (KeyError, TypeError) as e:
            raise InvalidResponse(f"Unexpected listing format for '{path}': {e}") from e

    def directory_exists(self, path: str) -> bool:
        data = self._get_contents(path, allow_404=True)
        return isinstance(data, list)

    def fetch_file_content(self, path: str) -> str:
        """Download a file and return its decoded text."""
        return self._fetch(path)[0]

    def fetch_file(self, entry: RemoteEntry) -> RemoteFile:
        """Download *entry* as a ``RemoteFile``.

        ``content_hash`` comes from the download itself, so it matches
        the content even if the listing has gone stale meanwhile.
        """
        content, sha = self._fetch(entry.path)
        return RemoteFile(
            name=entry.name,
            path=entry.path,
            content=content,
            content_hash=sha or entry.sha,
        )

    def _fetch(self, path: str) -> tuple[str, str | None]:
        data = self._get_contents(path)
        if not isinstance(data, dict) or "content" not in data:
            raise InvalidResponse(f"'{path}' has no file content")
        if data.get("encoding", "base64") != "base64":
            raise InvalidResponse(
                f"'{path}' uses unsupported encoding {data.get('encoding')!r}"
            )
        try:
            raw = base64.b64decode(data["content"])
        except (binascii.Error, TypeError) as e:
            raise InvalidResponse(f"'{path}' content is not valid base64") from e
        return raw.decode("utf-8", errors="replace"), data.get("sha")

    # ------------------------------------------------------------------
    # Git Data API
    # ------------------------------------------------------------------

    def create_blob(self, content: bytes | str) -> str:
        """Upload *content* as a blob and return its SHA."""
        if isinstance(content, str):
            content = content.encode("utf-8")
        data = self._request(
            "POST",
            f"{self.repo_url}/git/blobs",
            payload={
                "content": base64.b64encode(content).decode("ascii"),
                "encoding": "base64",
            },
        )
        return _sha(data, "blob")

    def create_tree(self, base_tree: str, entries: list[TreeEntry]) -> str:
        """Create a tree on top of *base_tree* and return its SHA."""
        data = self._request(
            "POST",
            f"{self.repo_url}/git/trees",
            payload={
                "base_tree": base_tree,
                "tree": [entry.model_dump() for entry in entries],
            },
        )
        return _sha(data, "tree")

    def create_commit(self, tree: str, parent: str, message: str) -> str:
        data = self._request(
            "POST",
            f"{self.repo_url}/git/commits",
            payload={"message": message, "tree": tree, "parents": [parent]},
        )
        return _sha(data, "commit")

    def update_branch_head(self, commit: str) -> bool:
        """Move the configured branch to *commit* (fast-forward only)."""
        self._request(
            "PATCH",
            f"{self.repo_url}/git/refs/heads/{quote(self.config.branch)}",
            payload={"sha": commit, "force": False},
        )
        logger.info("Moved %s to %s", self.config.branch, commit[:7])
        return True

    def get_branch_head_commit(self) -> str:
        data = self._request(
            "GET", f"{self.repo_url}/git/ref/heads/{quote(self.config.branch)}"
        )
        try:
            return data["object"]["sha"]
        except (KeyError, TypeError) as e:
            raise InvalidResponse("Branch ref response has no object sha") from e

    def get_commit_tree(self, commit: str) -> str:
        """Return the tree SHA of *commit*."""
        data = self._request("GET", f"{self.repo_url}/git/commits/{commit}")
        try:
            return data["tree"]["sha"]
        except (KeyError, TypeError) as e:
            raise InvalidResponse("Commit response has no tree sha") from e

    # ------------------------------------------------------------------
    # Account
    # ------------------------------------------------------------------

    def get_authenticated_user(self) -> str:
        """Validate the token and return the account login."""
        data = self._request("GET", f"{self.config.api_url.rstrip('/')}/user")
        try:
            return data["login"]
        except (KeyError, TypeError) as e:
            raise InvalidResponse("User response has no login") from e

    def get_repository_language(self) -> str | None:
        """Primary language GitHub detected for the repository, if any."""
        data = self._request("GET", self.repo_url)
        if not isinstance(data, dict):
            raise InvalidResponse("Repository response is not an object")
        return data.get("language")


def _sha(data: Any, kind: str) -> str:
    try:
        return data["sha"]
    except (KeyError, TypeError) as e:
        raise InvalidResponse(f"Create {kind} response has no sha") from e


def _error_message(response: requests.Response) -> str:
    try:
        data = response.json()
    except ValueError:
        data = None
    if isinstance(data, dict) and data.get("message"):
        return data["message"]
    return response.reason or "no details"
