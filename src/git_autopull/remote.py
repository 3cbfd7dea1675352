"""Remote reference lookups against the GitHub REST API.

The fetcher performs exactly one request per call. Retrying is the job of
the reconciliation loop, which owns the backoff state.
"""

import logging

import httpx

from .config import GitHubConfig
from .constants import APP_NAME, USER_AGENT
from .errors import RemoteProtocolError, RemoteUnavailable

logger = logging.getLogger(APP_NAME)


def commit_url(config: GitHubConfig) -> str:
    """Builds the `commits/{branch}` endpoint URL for the configured branch."""
    return (
        f"{config.api_url}/{config.owner}/{config.repo}/commits/{config.target_branch}"
    )


def request_headers(config: GitHubConfig) -> dict[str, str]:
    """Returns the headers attached to every API request.

    Args:
        config (GitHubConfig): The remote settings; supplies the optional token.

    Returns:
        dict[str, str]: User-Agent and Accept, plus Authorization if a token
                        is configured.
    """
    headers = {
        "User-Agent": USER_AGENT,
        "Accept": "application/vnd.github+json",
    }
    if config.access_token:
        headers["Authorization"] = f"token {config.access_token}"
    return headers


def make_client(config: GitHubConfig) -> httpx.Client:
    """Creates the HTTP client used for the lifetime of the daemon."""
    return httpx.Client(
        headers=request_headers(config),
        timeout=config.request_timeout,
        follow_redirects=True,
    )


def fetch_remote_head(config: GitHubConfig, client: httpx.Client | None = None) -> str:
    """Fetches the head commit SHA of the configured remote branch.

    Args:
        config (GitHubConfig): Owner, repository, branch and credentials.
        client (httpx.Client | None, optional): A pre-built client. When None,
            a short-lived client is created for this single request.

    Returns:
        str: The commit identifier reported by the API.

    Raises:
        RemoteUnavailable: On connection failures and timeouts.
        RemoteProtocolError: On non-2xx responses or a body without a `sha`.
    """
    url = commit_url(config)

    if client is None:
        with make_client(config) as own_client:
            return fetch_remote_head(config, own_client)

    try:
        response = client.get(url, headers=request_headers(config))
    except httpx.TimeoutException as e:
        raise RemoteUnavailable(f"Request to {url} timed out: {e}") from e
    except httpx.RequestError as e:
        raise RemoteUnavailable(f"Failed to send request to {url}: {e}") from e

    if not response.is_success:
        raise RemoteProtocolError(
            f"Unexpected HTTP {response.status_code} from {url}",
            status_code=response.status_code,
        )

    try:
        payload = response.json()
    except ValueError as e:
        raise RemoteProtocolError(
            f"Failed to parse commit response: {e}",
            status_code=response.status_code,
        ) from e

    sha = payload.get("sha") if isinstance(payload, dict) else None
    if not isinstance(sha, str) or not sha:
        raise RemoteProtocolError(
            "Commit response has no 'sha' field", status_code=response.status_code
        )

    logger.info(f"Fetched latest remote commit: {sha}")
    return sha
