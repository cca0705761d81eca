"""Shared fixtures: an in-memory contents endpoint and a client wired to it."""

import base64
import hashlib
import json
from collections.abc import AsyncGenerator

import httpx
import pytest

from gitcontents.services.platforms import GIT_PLATFORMS
from gitcontents.services.repository_client import RepositoryClient

OWNER = "octo"
REPO = "demo"
CONTENTS_PREFIX = f"/repos/{OWNER}/{REPO}/contents/"


def _sha(text: str) -> str:
    return hashlib.sha1(text.encode("utf-8")).hexdigest()


def _wrapped_base64(text: str) -> str:
    """Encode like the platform does, with a newline every 60 characters."""
    encoded = base64.b64encode(text.encode("utf-8")).decode("ascii")
    return "\n".join(encoded[i : i + 60] for i in range(0, len(encoded), 60)) + "\n"


class FakeContentsAPI:
    """A GitHub-style contents endpoint backed by a dict of path -> text.

    Every request is recorded in ``requests``. ``fail`` maps
    ``(method, path)`` to a status code to answer with instead.
    """

    def __init__(self) -> None:
        self.files: dict[str, str] = {}
        self.requests: list[httpx.Request] = []
        self.fail: dict[tuple[str, str], int] = {}
        self._commits = 0

    def add_file(self, path: str, text: str) -> str:
        self.files[path] = text
        return _sha(text)

    def sha_of(self, path: str) -> str:
        return _sha(self.files[path])

    def calls(self, method: str | None = None) -> list[tuple[str, str]]:
        """Return ``(method, path)`` for each recorded request."""
        return [
            (req.method, req.url.path[len(CONTENTS_PREFIX) :])
            for req in self.requests
            if method is None or req.method == method
        ]

    def bodies(self, method: str) -> list[dict]:
        return [json.loads(req.content) for req in self.requests if req.method == method]

    def _commit(self) -> dict:
        self._commits += 1
        return {"sha": f"commit{self._commits}"}

    def _listing(self, path: str) -> list[dict] | None:
        prefix = f"{path}/" if path else ""
        entries: dict[str, dict] = {}
        for file_path, text in sorted(self.files.items()):
            if not file_path.startswith(prefix):
                continue
            name, _, rest = file_path[len(prefix) :].partition("/")
            if rest:
                entries.setdefault(name, {"name": name, "path": prefix + name, "type": "dir"})
            else:
                entries[name] = {
                    "name": name,
                    "path": file_path,
                    "type": "file",
                    "sha": _sha(text),
                    "size": len(text),
                }
        if not entries and path:
            return None
        return list(entries.values())

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path[len(CONTENTS_PREFIX) :]

        status = self.fail.get((request.method, path))
        if status is not None:
            return httpx.Response(status, json={"message": f"Injected failure {status}"})

        if request.method == "GET":
            if path in self.files:
                text = self.files[path]
                return httpx.Response(
                    200,
                    json={
                        "type": "file",
                        "name": path.rsplit("/", 1)[-1],
                        "path": path,
                        "sha": _sha(text),
                        "encoding": "base64",
                        "content": _wrapped_base64(text),
                    },
                )
            listing = self._listing(path)
            if listing is None:
                return httpx.Response(404, json={"message": "Not Found"})
            return httpx.Response(200, json=listing)

        body = json.loads(request.content)

        if request.method == "PUT":
            if path in self.files and body.get("sha") != self.sha_of(path):
                return httpx.Response(409, json={"message": f"{path} does not match"})
            text = base64.b64decode(body["content"]).decode("utf-8")
            self.files[path] = text
            return httpx.Response(
                201,
                json={"content": {"path": path, "sha": _sha(text)}, "commit": self._commit()},
            )

        if request.method == "DELETE":
            if path not in self.files:
                return httpx.Response(404, json={"message": "Not Found"})
            if body.get("sha") != self.sha_of(path):
                return httpx.Response(409, json={"message": f"{path} does not match"})
            del self.files[path]
            return httpx.Response(200, json={"content": None, "commit": self._commit()})

        return httpx.Response(405, json={"message": "Method Not Allowed"})


@pytest.fixture
def contents_api() -> FakeContentsAPI:
    """Create an empty in-memory contents endpoint."""
    return FakeContentsAPI()


@pytest.fixture
async def repo_client(contents_api: FakeContentsAPI) -> AsyncGenerator[RepositoryClient, None]:
    """Yield a GitHub-preset client whose requests hit ``contents_api``."""
    async with httpx.AsyncClient(transport=httpx.MockTransport(contents_api.handler)) as http_client:
        yield RepositoryClient(
            GIT_PLATFORMS["github"],
            "ghp_token",
            OWNER,
            f"{REPO}.git",
            http_client=http_client,
        )
