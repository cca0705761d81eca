"""Preset repository URL templates and base-URL resolution.

Each preset is the contents-API base path for one hosting platform, with
``:owner`` and ``:repo`` placeholders. Any URL that is not one of the presets
is treated as fully custom and used verbatim.
"""

GIT_PLATFORMS: dict[str, str] = {
    "github": "https://api.github.com/repos/:owner/:repo",
    "gitlab": "https://gitlab.com/api/v4/projects/:repo",
    "bitbucket": "https://api.bitbucket.org/2.0/repositories/:owner/:repo",
    "azuredevops": "https://dev.azure.com/:owner/repositories/:repo",
}

VCS_SUFFIX = ".git"


def strip_vcs_suffix(repo_name: str | None) -> str | None:
    """Drop a trailing ``.git`` from a repository name, if present."""
    if repo_name and repo_name.endswith(VCS_SUFFIX):
        return repo_name[: -len(VCS_SUFFIX)]
    return repo_name


def is_preset(api_url: str) -> bool:
    """Return True if *api_url* is one of the built-in platform templates."""
    return api_url in GIT_PLATFORMS.values()


def resolve_repository_url(api_url: str, owner: str, repo_name: str) -> str:
    """Resolve the repository base URL.

    Args:
        api_url: A preset template from ``GIT_PLATFORMS`` or a custom URL.
        owner: Repository owner substituted for ``:owner``.
        repo_name: Repository name substituted for ``:repo``.

    Returns:
        The template with every placeholder substituted, or *api_url*
        unchanged when it is not a preset.

    Raises:
        TypeError: If the preset uses a placeholder whose value is missing.
    """
    if not is_preset(api_url):
        return api_url
    for placeholder, value in ((":owner", owner), (":repo", repo_name)):
        if placeholder in api_url and not isinstance(value, str):
            raise TypeError(f"no value for {placeholder} in {api_url}")
    return api_url.replace(":owner", owner or "").replace(":repo", repo_name or "")
