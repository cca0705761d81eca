"""File-level CRUD client for a Git-hosting platform's REST contents API.

Every operation is a short, fixed sequence of authenticated HTTP round-trips
against ``{repository_url}/contents/{path}``. The file operations log and
swallow failures, returning None, so callers only see a value on success.
``api_request`` and ``request`` let errors propagate.
"""

from __future__ import annotations

import asyncio
import base64
from typing import TYPE_CHECKING, Any, Literal

import httpx
import structlog

from gitcontents.schemas.contents import ClientConfig, FileTreeNode
from gitcontents.services.errors import (
    ContentsAPIError,
    FileConflictError,
    GitContentsError,
    RepositoryConfigError,
    RepositoryFileNotFoundError,
    describe_error,
)
from gitcontents.services.platforms import GIT_PLATFORMS, resolve_repository_url

if TYPE_CHECKING:
    from gitcontents.config import Settings

logger = structlog.get_logger()

# Failures the file operations log and turn into a None result.
# pydantic's ValidationError and base64/unicode decoding errors are ValueErrors.
_SWALLOWED_ERRORS: tuple[type[Exception], ...] = (GitContentsError, httpx.HTTPError, ValueError)


def encode_content(content: str) -> str:
    """Base64-encode UTF-8 text for a contents-API write."""
    return base64.b64encode(content.encode("utf-8")).decode("ascii")


def decode_content(encoded: str) -> str:
    """Decode a base64 contents-API payload to UTF-8 text.

    The platform wraps long payloads with newlines; they are ignored.
    """
    return base64.b64decode("".join(encoded.split())).decode("utf-8")


def _require_file(payload: Any, path: str) -> dict:
    """Return *payload* if it describes a single file, else raise."""
    if not isinstance(payload, dict) or "sha" not in payload:
        raise ContentsAPIError(f"Path {path!r} is not a file.")
    return payload


def _leaf_errors(error: BaseException) -> list[BaseException]:
    """Flatten nested exception groups into their individual errors."""
    if isinstance(error, BaseExceptionGroup):
        return [leaf for inner in error.exceptions for leaf in _leaf_errors(inner)]
    return [error]


def _commit_sha(response: Any) -> str | None:
    if not isinstance(response, dict):
        return None
    commit = response.get("commit") or {}
    return commit.get("sha")


class RepositoryClient:
    """Read and write files in one remote repository over its contents API.

    Args:
        api_url: A preset template from ``GIT_PLATFORMS`` or a custom,
            already-resolved repository URL.
        auth_token: Bearer token sent on every request.
        owner: Repository owner, substituted for ``:owner``.
        repo_name: Repository name, substituted for ``:repo``. A trailing
            ``.git`` is stripped.
        http_client: Shared httpx async client. When omitted, one is created
            and closed by ``aclose()``.
        tree_max_depth: Directory levels below the listing root that
            ``get_file_tree`` expands. None expands everything.
        tree_concurrency: Maximum listing requests in flight during
            ``get_file_tree``. None leaves it uncapped.

    Raises:
        ValueError: If ``tree_max_depth`` is negative or ``tree_concurrency``
            is less than 1.
    """

    def __init__(
        self,
        api_url: str = GIT_PLATFORMS["github"],
        auth_token: str = "",
        owner: str | None = None,
        repo_name: str | None = None,
        *,
        http_client: httpx.AsyncClient | None = None,
        tree_max_depth: int | None = None,
        tree_concurrency: int | None = None,
    ) -> None:
        if tree_max_depth is not None and tree_max_depth < 0:
            raise ValueError(f"tree_max_depth must be >= 0, got {tree_max_depth}")
        if tree_concurrency is not None and tree_concurrency < 1:
            raise ValueError(f"tree_concurrency must be >= 1, got {tree_concurrency}")

        self.config = ClientConfig(
            api_url=api_url,
            auth_token=auth_token,
            owner=owner,
            repo_name=repo_name,
        )
        self.tree_max_depth = tree_max_depth
        self.tree_concurrency = tree_concurrency
        self._owns_client = http_client is None
        self._client = http_client if http_client is not None else httpx.AsyncClient()

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        http_client: httpx.AsyncClient | None = None,
    ) -> RepositoryClient:
        """Build a client from environment-loaded ``Settings``."""
        return cls(
            settings.api_url,
            settings.token,
            settings.owner or None,
            settings.repo or None,
            http_client=http_client,
            tree_max_depth=settings.tree_max_depth,
            tree_concurrency=settings.tree_concurrency,
        )

    async def __aenter__(self) -> RepositoryClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Close the underlying HTTP client if this instance created it."""
        if self._owns_client:
            await self._client.aclose()

    # ------------------------------------------------------------------
    # URL resolution
    # ------------------------------------------------------------------

    @property
    def repository_url(self) -> str | None:
        """The resolved repository base URL, or None if it cannot be resolved."""
        try:
            return resolve_repository_url(
                self.config.api_url, self.config.owner, self.config.repo_name
            )
        except TypeError as exc:
            logger.error(
                "repository_url_resolution_failed",
                api_url=self.config.api_url,
                error=describe_error(exc),
            )
            return None

    def _base_url(self) -> str:
        base = self.repository_url
        if base is None:
            raise RepositoryConfigError("Repository URL could not be resolved.")
        return base

    def _contents_url(self, path: str) -> str:
        return f"{self._base_url()}/contents/{path}"

    # ------------------------------------------------------------------
    # Requests
    # ------------------------------------------------------------------

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self.config.auth_token}",
            "Content-Type": "application/json",
        }

    async def api_request(self, url: str, method: str, data: dict | None = None) -> Any:
        """Make an authenticated request and return the parsed JSON body.

        Args:
            url: Absolute URL of the endpoint.
            method: HTTP method (``GET``, ``PUT``, ``DELETE``, ...).
            data: Optional JSON request body.

        Returns:
            The decoded JSON response, or None for an empty body.

        Raises:
            httpx.HTTPStatusError: On non-2xx responses.
            httpx.HTTPError: On transport failures.
        """
        resp = await self._client.request(method, url, headers=self._headers(), json=data)
        resp.raise_for_status()
        if not resp.content:
            return None
        return resp.json()

    async def request(self, path: str = "", method: str = "GET", data: dict | None = None) -> Any:
        """Make an arbitrary request relative to the repository base URL.

        Raises:
            RepositoryConfigError: If the base URL cannot be resolved.
            httpx.HTTPError: As for ``api_request``.
        """
        base = self._base_url()
        path = path.lstrip("/")
        url = f"{base}/{path}" if path else base
        return await self.api_request(url, method, data)

    # ------------------------------------------------------------------
    # File operations
    # ------------------------------------------------------------------

    async def does_file_exist(self, path: str) -> str | Literal[False]:
        """Check whether a file exists.

        Returns:
            The file's content sha when it exists, False on a 404.

        Raises:
            ContentsAPIError: If the check fails for any other reason.
            RepositoryConfigError: If the base URL cannot be resolved.
        """
        url = self._contents_url(path)
        try:
            payload = await self.api_request(url, "GET")
        except httpx.HTTPStatusError as exc:
            if exc.response.status_code == 404:
                return False
            logger.error(
                "file_check_failed",
                path=path,
                status_code=exc.response.status_code,
                error=describe_error(exc),
            )
            raise ContentsAPIError(describe_error(exc), exc.response.status_code) from exc
        except httpx.HTTPError as exc:
            logger.error("file_check_failed", path=path, error=describe_error(exc))
            raise ContentsAPIError(describe_error(exc)) from exc
        except ValueError as exc:
            # 2xx with a body that is not JSON
            logger.error("file_check_failed", path=path, error=describe_error(exc))
            raise ContentsAPIError(f"Invalid JSON in response for {path!r}.") from exc

        return _require_file(payload, path)["sha"]

    async def commit_file(
        self,
        path: str,
        content: str,
        overwrite: bool = False,
        message: str = "Created new file.",
    ) -> str | None:
        """Create a file, or update it when *overwrite* is set.

        Returns:
            The commit sha on success, None on failure (logged).
        """
        try:
            existing_sha = await self.does_file_exist(path)
            if existing_sha and not overwrite:
                raise FileConflictError("A file with that name already exists in that directory.")

            data = {"message": message, "content": encode_content(content)}
            if existing_sha:
                # The platform refuses to overwrite without the current sha
                data["sha"] = existing_sha

            response = await self.api_request(self._contents_url(path), "PUT", data)
        except _SWALLOWED_ERRORS as exc:
            logger.error("file_commit_failed", path=path, error=describe_error(exc))
            return None

        commit_sha = _commit_sha(response)
        logger.info(
            "file_updated" if existing_sha else "file_created",
            path=path,
            commit_sha=commit_sha,
        )
        return commit_sha

    async def get_file_contents(self, path: str) -> str | None:
        """Return a file's decoded text, or None if absent or on failure."""
        try:
            if not await self.does_file_exist(path):
                raise RepositoryFileNotFoundError("File does not exist.")

            payload = await self.api_request(self._contents_url(path), "GET")
            return decode_content(_require_file(payload, path).get("content") or "")
        except _SWALLOWED_ERRORS as exc:
            logger.error("file_read_failed", path=path, error=describe_error(exc))
            return None

    async def delete_file(self, path: str, message: str = "Deleted file.") -> str | bool | None:
        """Delete a file.

        Returns:
            The commit sha (or True when the platform reports none) on
            success, None on failure (logged).
        """
        try:
            existing_sha = await self.does_file_exist(path)
            if not existing_sha:
                raise RepositoryFileNotFoundError("File does not exist.")

            response = await self.api_request(
                self._contents_url(path),
                "DELETE",
                {"message": message, "sha": existing_sha},
            )
        except _SWALLOWED_ERRORS as exc:
            logger.error("file_delete_failed", path=path, error=describe_error(exc))
            return None

        commit_sha = _commit_sha(response)
        logger.info("file_deleted", path=path, commit_sha=commit_sha)
        return commit_sha or True

    async def rename_file(
        self,
        path: str,
        new_path: str,
        message: str = "Renamed file.",
    ) -> str | None:
        """Move a file by copying it to *new_path* and deleting *path*.

        The copy and the delete are separate commits. If the delete fails,
        the copy at *new_path* is deleted again; if that also fails a
        ``rename_incomplete`` event names both paths for manual cleanup.

        Returns:
            *new_path* on success, None on failure (logged).
        """
        try:
            old_url = self._contents_url(path)
            new_url = self._contents_url(new_path)

            current = _require_file(await self.api_request(old_url, "GET"), path)
            created = await self.api_request(
                new_url,
                "PUT",
                {"message": message, "content": "".join((current.get("content") or "").split())},
            )
        except _SWALLOWED_ERRORS as exc:
            logger.error("file_rename_failed", path=path, new_path=new_path, error=describe_error(exc))
            return None

        try:
            await self.api_request(
                old_url,
                "DELETE",
                {"message": f"Deleted file {path}", "sha": current["sha"]},
            )
        except _SWALLOWED_ERRORS as exc:
            logger.error("file_rename_failed", path=path, new_path=new_path, error=describe_error(exc))
            await self._remove_copy(new_url, created, path, new_path)
            return None

        logger.info("file_renamed", path=path, new_path=new_path)
        return new_path

    async def _remove_copy(self, new_url: str, created: Any, path: str, new_path: str) -> None:
        """Delete the copy left at *new_path* by a rename whose delete failed."""
        new_sha = None
        if isinstance(created, dict):
            new_sha = (created.get("content") or {}).get("sha")
        if not new_sha:
            logger.error("rename_incomplete", path=path, new_path=new_path, reason="no sha for copy")
            return

        try:
            await self.api_request(
                new_url,
                "DELETE",
                {"message": f"Rolled back rename of {path}", "sha": new_sha},
            )
        except _SWALLOWED_ERRORS as exc:
            logger.error(
                "rename_incomplete",
                path=path,
                new_path=new_path,
                error=describe_error(exc),
            )
            return
        logger.warning("rename_rolled_back", path=path, new_path=new_path)

    async def get_file_tree(self, path: str = "") -> list[FileTreeNode] | None:
        """List a directory recursively.

        Sibling directories are listed concurrently; each level waits for its
        parent's listing. The first failure cancels every outstanding listing.

        Args:
            path: Directory to list. Defaults to the repository root.

        Returns:
            The directory's entries, with ``children`` set on expanded
            directories, or None on failure (logged).
        """
        semaphore = None if self.tree_concurrency is None else asyncio.Semaphore(self.tree_concurrency)
        failures: list[BaseException] = []
        try:
            tree = await self._list_tree(path, 0, semaphore)
        except* _SWALLOWED_ERRORS as group:
            failures.extend(_leaf_errors(group))

        if failures:
            logger.error("file_tree_failed", path=path, error=describe_error(failures[0]))
            return None

        file_count = sum(1 for node in tree for _ in node.iter_files())
        logger.debug("file_tree_listed", path=path, files=file_count)
        return tree

    async def _list_tree(
        self,
        path: str,
        depth: int,
        semaphore: asyncio.Semaphore | None,
    ) -> list[FileTreeNode]:
        url = self._contents_url(path)
        if semaphore is None:
            listing = await self.api_request(url, "GET")
        else:
            async with semaphore:
                listing = await self.api_request(url, "GET")

        if not isinstance(listing, list):
            raise ContentsAPIError(f"Path {path!r} is not a directory.")

        nodes = [FileTreeNode.model_validate(item) for item in listing]
        expand = self.tree_max_depth is None or depth < self.tree_max_depth

        # A failed listing cancels its siblings before the group raises
        async with asyncio.TaskGroup() as group:
            for node in nodes:
                if expand and node.is_dir:
                    group.create_task(self._expand_dir(node, depth + 1, semaphore))
        return nodes

    async def _expand_dir(
        self,
        node: FileTreeNode,
        depth: int,
        semaphore: asyncio.Semaphore | None,
    ) -> None:
        node.children = await self._list_tree(node.path, depth, semaphore)
