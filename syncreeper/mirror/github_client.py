"""
GitHub Client — List every repository the token can see.

Uses the GitHub REST API (``GET /user/repos``) and follows ``Link``
pagination until exhausted. Archived repositories are skipped.

Note: fine-grained PATs (github_pat_*) only see the repositories that
were explicitly granted when the token was created. If repos are
missing, check the token's repository permissions.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import httpx

from .errors import ProviderError
from .models import Repository

logger = logging.getLogger(__name__)

DEFAULT_API_URL = "https://api.github.com"
PER_PAGE = 100

LIST_PARAMS = {
    "visibility": "all",
    "affiliation": "owner,collaborator,organization_member",
    "per_page": PER_PAGE,
    "sort": "updated",
}


def _get_headers(token: str) -> Dict[str, str]:
    """Get GitHub API headers."""
    return {
        "Accept": "application/vnd.github+json",
        "Authorization": f"Bearer {token}",
        "X-GitHub-Api-Version": "2022-11-28",
    }


class GitHubClient:
    """Read-only client for the repository listing endpoint."""

    def __init__(
        self,
        token: str,
        username: str,
        api_url: str = DEFAULT_API_URL,
        timeout: float = 30.0,
        client: Optional[httpx.Client] = None,
    ):
        self.token = token
        self.username = username
        self.api_url = api_url.rstrip("/")
        self.timeout = timeout
        self._client = client

    def fetch_repositories(self) -> List[Repository]:
        """
        Fetch all non-archived repositories visible to the token.

        Raises:
            ProviderError: authentication was rejected, the API answered
                with an error, or the network call failed.
        """
        logger.info(f"[github] Fetching repositories for user: {self.username}")

        repositories: List[Repository] = []
        archived_count = 0
        private_count = 0

        for page in self._iter_pages():
            for payload in page:
                if payload.get("archived"):
                    archived_count += 1
                    logger.info(f"[github]   Skipping archived: {payload.get('full_name')}")
                    continue

                try:
                    repo = Repository.from_api(payload)
                except (KeyError, ValueError) as e:
                    raise ProviderError(f"Malformed repository entry: {e}") from e

                if repo.is_private:
                    private_count += 1
                repositories.append(repo)

        logger.info(
            f"[github] Found {len(repositories)} non-archived repositories "
            f"({private_count} private, {archived_count} archived skipped)"
        )
        return repositories

    def _iter_pages(self):
        """Yield the JSON list of each page, following ``rel="next"`` links."""
        client = self._client or httpx.Client(timeout=self.timeout)
        try:
            url: Optional[str] = f"{self.api_url}/user/repos"
            params: Optional[Dict[str, Any]] = dict(LIST_PARAMS)

            while url:
                resp = self._get(client, url, params)
                data = self._parse(resp)
                yield data

                # The next link already carries the query string
                url = resp.links.get("next", {}).get("url")
                params = None
        finally:
            if self._client is None:
                client.close()

    def _get(
        self,
        client: httpx.Client,
        url: str,
        params: Optional[Dict[str, Any]],
    ) -> httpx.Response:
        try:
            resp = client.get(url, headers=_get_headers(self.token), params=params)
        except httpx.HTTPError as e:
            logger.error(f"[github] Request failed: {e}")
            raise ProviderError(f"GitHub request failed: {e}") from e

        if resp.status_code in (401, 403):
            raise ProviderError(
                f"GitHub rejected the token: HTTP {resp.status_code}",
                status_code=resp.status_code,
            )
        if resp.status_code != 200:
            raise ProviderError(
                f"GitHub API error: HTTP {resp.status_code}: {resp.text[:200]}",
                status_code=resp.status_code,
            )
        return resp

    @staticmethod
    def _parse(resp: httpx.Response) -> List[Dict[str, Any]]:
        try:
            data = resp.json()
        except ValueError as e:
            raise ProviderError(f"Invalid JSON from GitHub: {e}") from e
        if not isinstance(data, list):
            raise ProviderError("Unexpected response from GitHub: expected a list")
        return data


def fetch_repositories(token: str, username: str, **kwargs: Any) -> List[Repository]:
    """Convenience wrapper: ``GitHubClient(token, username).fetch_repositories()``."""
    return GitHubClient(token, username, **kwargs).fetch_repositories()
