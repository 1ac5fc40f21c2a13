"""GitHub REST integration for publishing generated code as pull requests."""

import base64
import logging

import httpx

logger = logging.getLogger(__name__)

GITHUB_API_URL = "https://api.github.com"


class GitHubError(Exception):
    """Raised when a GitHub operation fails."""


class GitHubCodeHost:
    """Creates branches, commits files and opens pull requests on one repo."""

    enabled = True

    def __init__(
        self,
        token: str,
        owner: str,
        repo: str,
        base_branch: str = "main",
        client: httpx.AsyncClient | None = None,
    ):
        self.owner = owner
        self.repo = repo
        self.base_branch = base_branch
        self._client = client or httpx.AsyncClient(
            base_url=GITHUB_API_URL,
            headers={
                "Authorization": f"Bearer {token}",
                "Accept": "application/vnd.github+json",
            },
            timeout=30.0,
        )

    @property
    def _repo_path(self) -> str:
        return f"/repos/{self.owner}/{self.repo}"

    async def _request(self, method: str, path: str, **kwargs) -> dict:
        try:
            response = await self._client.request(method, f"{self._repo_path}{path}", **kwargs)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise GitHubError(
                f"GitHub {method} {path} failed: {e.response.status_code} {e.response.text[:200]}"
            ) from e
        except httpx.HTTPError as e:
            raise GitHubError(f"GitHub {method} {path} failed: {e}") from e
        return response.json()

    async def create_branch(self, branch: str) -> str:
        """Create ``branch`` from the head of the base branch. Returns its sha."""
        ref = await self._request("GET", f"/git/ref/heads/{self.base_branch}")
        sha = ref["object"]["sha"]
        await self._request("POST", "/git/refs", json={"ref": f"refs/heads/{branch}", "sha": sha})
        return sha

    async def commit_file(self, branch: str, path: str, content: str, message: str):
        await self._request(
            "PUT",
            f"/contents/{path}",
            json={
                "message": message,
                "content": base64.b64encode(content.encode()).decode(),
                "branch": branch,
            },
        )

    async def open_pull_request(self, title: str, body: str, branch: str) -> str:
        pr = await self._request(
            "POST",
            "/pulls",
            json={"title": title, "body": body, "head": branch, "base": self.base_branch},
        )
        return pr["html_url"]

    async def aclose(self):
        await self._client.aclose()

    def status(self) -> dict:
        return {"enabled": True, "repository": f"{self.owner}/{self.repo}"}


class NullCodeHost:
    """Code host used when GitHub is not configured."""

    enabled = False

    async def create_branch(self, branch: str) -> str:
        raise GitHubError("GitHub not configured")

    async def commit_file(self, branch: str, path: str, content: str, message: str):
        raise GitHubError("GitHub not configured")

    async def open_pull_request(self, title: str, body: str, branch: str) -> str:
        raise GitHubError("GitHub not configured")

    def status(self) -> dict:
        return {"enabled": False, "repository": None}


def build_code_host(config):
    if config.github_configured:
        return GitHubCodeHost(
            config.github_token,
            config.github_owner,
            config.github_repo,
            config.github_base_branch,
        )
    return NullCodeHost()
