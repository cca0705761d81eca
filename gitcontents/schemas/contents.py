"""Pydantic models for client configuration and contents-API payloads."""

from __future__ import annotations

from collections.abc import Iterator

from pydantic import BaseModel, ConfigDict, Field, field_validator

from gitcontents.services.platforms import GIT_PLATFORMS, strip_vcs_suffix


class ClientConfig(BaseModel):
    """Immutable connection details for a single repository."""

    model_config = ConfigDict(frozen=True)

    api_url: str = GIT_PLATFORMS["github"]
    auth_token: str = Field(default="", repr=False)
    owner: str | None = None
    repo_name: str | None = None

    @field_validator("repo_name")
    @classmethod
    def _strip_suffix(cls, value: str | None) -> str | None:
        return strip_vcs_suffix(value)


class FileTreeNode(BaseModel):
    """A file or directory entry from a contents listing.

    Platform metadata beyond the declared fields (``url``, ``size``,
    ``download_url``, ...) is kept as extra attributes. ``children`` is only
    set for directories that were expanded.
    """

    model_config = ConfigDict(extra="allow")

    path: str
    type: str
    name: str | None = None
    sha: str | None = None
    children: list[FileTreeNode] | None = None

    @property
    def is_dir(self) -> bool:
        return self.type == "dir"

    def iter_files(self) -> Iterator[FileTreeNode]:
        """Yield every non-directory node at or below this one."""
        if not self.is_dir:
            yield self
            return
        for child in self.children or []:
            yield from child.iter_files()
