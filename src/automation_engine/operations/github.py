"""GitHub operations backed by PyGithub."""

import logging
from typing import Any

from github import Auth, Github
from github.Issue import Issue
from github.Repository import Repository

from automation_engine.registry import operation, param

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.github.com"


class GitHubClient:
    """Thin client over a single repository.

    Opened per operation call; credentials come from the workflow's
    credential namespace or the agent's tool credential merge.
    """

    def __init__(self, token: str, repository: str, base_url: str = DEFAULT_BASE_URL) -> None:
        """Initialize the GitHub client.

        Args:
            token: Personal access token.
            repository: Repository in format 'owner/repo'.
            base_url: GitHub API base URL.

        Raises:
            ValueError: If required configuration is missing.
        """
        if not token:
            raise ValueError("GitHub token is required")
        if not repository or "/" not in repository:
            raise ValueError("GitHub repository must be in format 'owner/repo'")

        self.gh = Github(auth=Auth.Token(token), base_url=base_url)
        self.repo: Repository = self.gh.get_repo(repository)
        logger.debug(f"Connected to repository: {repository}")

    def close(self) -> None:
        self.gh.close()

    def __enter__(self) -> "GitHubClient":
        return self

    def __exit__(self, *_exc: object) -> None:
        self.close()


def _issue_to_dict(issue: Issue) -> dict[str, Any]:
    return {
        "number": issue.number,
        "title": issue.title,
        "state": issue.state,
        "url": issue.html_url,
        "labels": [label.name for label in issue.labels],
        "created_at": issue.created_at.isoformat() if issue.created_at else None,
    }


@operation(
    "devtools.github.create_issue",
    description="Create an issue in a GitHub repository",
    params=(
        param("repository", "string", "Repository in format 'owner/repo'"),
        param("title", "string", "Issue title"),
        param("body", "string", "Issue body (markdown)", required=False),
        param("labels", "array", "Labels to apply", required=False, items="string"),
        param("token", "string", "GitHub token"),
    ),
    platform="github",
    credential_param="token",
    example='create_issue({ repository: "octo/repo", title: "Bug", token: "{{credential.github}}" })',
)
def create_issue(
    repository: str,
    title: str,
    token: str,
    body: str | None = None,
    labels: list[str] | None = None,
) -> dict[str, Any]:
    with GitHubClient(token=token, repository=repository) as client:
        logger.info(f"Creating issue: {title}")
        issue = client.repo.create_issue(title=title, body=body or "", labels=labels or [])
        logger.info(f"Issue created: #{issue.number}")
        return _issue_to_dict(issue)


@operation(
    "devtools.github.list_issues",
    description="List issues in a GitHub repository",
    params=(
        param("repository", "string", "Repository in format 'owner/repo'"),
        param("state", "string", "open, closed or all", required=False, default="open"),
        param("limit", "integer", "Maximum number of issues", required=False, default=20),
        param("token", "string", "GitHub token"),
    ),
    platform="github",
    credential_param="token",
)
def list_issues(
    repository: str, token: str, state: str = "open", limit: int = 20
) -> list[dict[str, Any]]:
    with GitHubClient(token=token, repository=repository) as client:
        issues = client.repo.get_issues(state=state)
        return [_issue_to_dict(issue) for issue in issues[:limit]]


@operation(
    "devtools.github.get_issue",
    description="Fetch a single issue by number",
    params=(
        param("repository", "string", "Repository in format 'owner/repo'"),
        param("number", "integer", "Issue number"),
        param("token", "string", "GitHub token"),
    ),
    platform="github",
    credential_param="token",
)
def get_issue(repository: str, number: int, token: str) -> dict[str, Any]:
    with GitHubClient(token=token, repository=repository) as client:
        return _issue_to_dict(client.repo.get_issue(number))
