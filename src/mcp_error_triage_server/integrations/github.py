"""GitHub REST source-control collaborator."""

from __future__ import annotations

import asyncio
import logging
import os
from datetime import datetime
from typing import Any

import httpx

from ..core.errors import CollaboratorUnavailable
from ..core.models import Commit
from ..core.time_window import coerce_dt

logger = logging.getLogger(__name__)

GITHUB_API_URL = "https://api.github.com"
PER_PAGE = 100
SOFT_FAIL_STATUSES = (403, 404)


def resolve_github_token() -> str | None:
    return os.getenv("GITHUB_TOKEN") or os.getenv("GITHUB_PAT") or None


class GitHubSourceControl:
    """Commits and pull requests from the GitHub REST API.

    Missing credentials, 403 and 404 give an empty result so triage can run
    without commit context; other HTTP failures raise CollaboratorUnavailable.
    """

    def __init__(
        self,
        token: str | None = None,
        *,
        base_url: str = GITHUB_API_URL,
        timeout_s: float = 15.0,
        max_concurrent_requests: int = 8,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.token = token if token is not None else resolve_github_token()
        self.base_url = base_url.rstrip("/")
        self.timeout_s = timeout_s
        self._client = client
        self._sem = asyncio.Semaphore(max_concurrent_requests)

    def _headers(self) -> dict[str, str]:
        headers = {
            "Accept": "application/vnd.github+json",
            "User-Agent": "mcp-error-triage-server",
        }
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                headers=self._headers(),
                timeout=self.timeout_s,
            )
        return self._client

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def _get_json(self, path: str, params: dict[str, Any] | None = None) -> Any:
        async with self._sem:
            resp = await self._get_client().get(path, params=params, headers=self._headers())
        resp.raise_for_status()
        return resp.json()

    async def commits_since(self, repo: str, since: datetime) -> list[Commit]:
        if not self.token:
            logger.warning("No GitHub token configured; returning no commits for %s", repo)
            return []

        try:
            items = await self._get_json(
                f"/repos/{repo}/commits",
                params={"since": since.isoformat(), "per_page": PER_PAGE},
            )
        except httpx.HTTPStatusError as exc:
            status = exc.response.status_code
            if status in SOFT_FAIL_STATUSES:
                logger.warning("GitHub returned %s for %s; continuing without commits", status, repo)
                return []
            raise CollaboratorUnavailable("source_control", f"GitHub {status} for {repo}") from exc
        except httpx.HTTPError as exc:
            raise CollaboratorUnavailable("source_control", f"GitHub request failed: {exc}") from exc

        logger.info("Fetched %s commits for %s since %s", len(items), repo, since.isoformat())
        return list(await asyncio.gather(*(self._to_commit(repo, item) for item in items)))

    async def _to_commit(self, repo: str, item: dict[str, Any]) -> Commit:
        sha = item["sha"]
        meta = item.get("commit") or {}
        author = meta.get("author") or {}
        files, pr_url = await asyncio.gather(
            self.changed_files(repo, sha),
            self.pull_request_for(repo, sha),
        )
        return Commit(
            hash=sha,
            message=meta.get("message", ""),
            author=author.get("email") or (item.get("author") or {}).get("login") or "unknown",
            date=coerce_dt(author.get("date")),
            changed_files=tuple(files),
            pull_request_url=pr_url,
        )

    async def changed_files(self, repo: str, commit_hash: str) -> list[str]:
        try:
            data = await self._get_json(f"/repos/{repo}/commits/{commit_hash}")
        except httpx.HTTPError as exc:
            logger.warning("Could not fetch changed files for %s: %s", commit_hash, exc)
            return []
        return [f["filename"] for f in data.get("files") or [] if f.get("filename")]

    async def pull_request_for(self, repo: str, commit_hash: str) -> str | None:
        try:
            pulls = await self._get_json(f"/repos/{repo}/commits/{commit_hash}/pulls")
        except httpx.HTTPError as exc:
            logger.debug("No pull request lookup for %s: %s", commit_hash, exc)
            return None
        if pulls:
            return pulls[0].get("html_url")
        return None
