"""
GitHub MCP Tools
================

Tools that let the agent look things up on GitHub:
- github_repo_search:     find repositories by name or keywords
- github_issue_search:    list issues of a repository, resolving fuzzy names
- github_profile_search:  a user's public profile and recent repositories

Error mapping (shared by all three):
- 404 -> a specific "not found" message
- 403 -> a "rate limit" message
- anything else -> a wrapped message including GitHub's own text

Results are plain text (search tools) or a structured record (profile),
handed back to the model as-is.
"""

from collections import deque
from dataclasses import dataclass
from datetime import datetime, timezone

import httpx

from oss_advisor.tools import (
    MCPTool,
    ToolRegistry,
    ToolResult,
    optional_bool,
    optional_enum,
    optional_str,
    require_str,
)
from oss_advisor.tools.github_client import GitHubClient
from oss_advisor.utils.errors import GitHubAPIError, RepositoryNotFoundError
from oss_advisor.utils.logger import Logger

logger = Logger("GitHubTools")

RATE_LIMIT_MESSAGE = "Error: GitHub API rate limit exceeded. Please try again later."
NO_REPOSITORIES_MESSAGE = "No repositories found matching your criteria."

_URL_PREFIXES = (
    "https://www.github.com/",
    "http://www.github.com/",
    "https://github.com/",
    "http://github.com/",
    "www.github.com/",
    "github.com/",
)


def describe_github_error(error: Exception, action: str, not_found: str) -> str:
    """
    Turn an exception from a GitHub call into a message for the model.

    Args:
        error: What was raised
        action: Gerund phrase for generic messages ("searching repositories")
        not_found: Message to use for a 404
    """
    if isinstance(error, GitHubAPIError):
        if error.status == 404:
            return not_found
        if error.status == 403:
            return RATE_LIMIT_MESSAGE
        return f"GitHub API Error ({error.status}): {error.api_message}"
    if isinstance(error, httpx.HTTPError):
        return f"Network error while {action}: {error}"
    return f"Error {action}: {error}"


def _format_date(value: str | None) -> str:
    if not value:
        return "N/A"
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return value
    return parsed.strftime("%Y-%m-%d")


def _format_count(value) -> str:
    return f"{value:,}" if isinstance(value, int) else "N/A"


# ==============================================================================
# Tool: Repository Search
# ==============================================================================

REPO_SORT_OPTIONS = ("stars", "forks", "help-wanted-issues", "updated")


@dataclass(frozen=True)
class RepoSearchArgs:
    query: str
    language: str | None = None
    sort: str = "stars"
    beginner_friendly: bool = False

    def build_query(self) -> str:
        """GitHub search string with language and beginner qualifiers."""
        q = self.query
        if self.language:
            q += f" language:{self.language}"
        if self.beginner_friendly:
            q += " good-first-issues:>0"
        return q


class RepositorySearchTool(MCPTool[RepoSearchArgs]):
    """Top 5 repositories for a query, as a numbered list plus quick links."""

    name = "github_repo_search"
    description = (
        "Search for GitHub repositories by name or keywords. Can filter by "
        "programming language and by beginner-friendliness (repositories with "
        "good first issues)."
    )
    parameters = {
        "type": "object",
        "properties": {
            "query": {
                "type": "string",
                "description": "Repository name or search keywords (e.g., 'gumroad', 'react')"
            },
            "language": {
                "type": "string",
                "description": "Programming language filter (e.g., 'python')"
            },
            "sort": {
                "type": "string",
                "enum": list(REPO_SORT_OPTIONS),
                "description": "Sort criteria (default: stars)"
            },
            "beginner_friendly": {
                "type": "boolean",
                "description": "Only repositories that have good first issues"
            }
        },
        "required": ["query"]
    }

    PER_PAGE = 5

    def __init__(self, client: GitHubClient):
        self.client = client

    def parse_args(self, params: dict) -> RepoSearchArgs:
        return RepoSearchArgs(
            query=require_str(params, "query"),
            language=optional_str(params, "language"),
            sort=optional_enum(params, "sort", REPO_SORT_OPTIONS) or "stars",
            beginner_friendly=bool(optional_bool(params, "beginner_friendly")),
        )

    async def run(self, args: RepoSearchArgs) -> ToolResult:
        q = args.build_query()
        logger.info(f"Repository search: {q} (sort={args.sort})")

        try:
            data = await self.client.search_repositories(q, sort=args.sort, per_page=self.PER_PAGE)
        except Exception as e:
            logger.error(f"Repository search failed: {q}", e)
            return ToolResult.fail(describe_github_error(
                e, "searching GitHub repositories", f"Error: No repository search results for '{q}'."
            ))

        items = (data.get("items") or [])[:self.PER_PAGE]
        logger.debug(f"Found {len(items)} repositories")

        if not items:
            return ToolResult.ok(NO_REPOSITORIES_MESSAGE)

        return ToolResult.ok(self.format_results(items))

    @staticmethod
    def format_results(items: list[dict]) -> str:
        entries = []
        for index, repo in enumerate(items, start=1):
            entries.append(
                f"{index}. **{repo.get('full_name') or 'N/A'}**\n"
                f"   Link: [{repo.get('html_url')}]\n"
                f"   Description: {repo.get('description') or 'No description available'}\n"
                f"   Stars: {_format_count(repo.get('stargazers_count'))}\n"
                f"   Forks: {_format_count(repo.get('forks_count'))}\n"
                f"   Language: {repo.get('language') or 'N/A'}\n"
                f"   Last Updated: {_format_date(repo.get('updated_at'))}"
            )

        quick_links = "\n".join(
            f"{index}. [{repo.get('full_name')}]" for index, repo in enumerate(items, start=1)
        )

        return (
            f"Found {len(items)} repositories matching your criteria:\n\n"
            + "\n\n---\n\n".join(entries)
            + f"\n\nQuick Links:\n{quick_links}"
        )


# ==============================================================================
# Tool: Issue Search
# ==============================================================================

ISSUE_STATES = ("open", "closed", "all")


@dataclass(frozen=True)
class IssueSearchArgs:
    repository: str
    labels: str | None = None
    state: str | None = None


def normalize_repository(value: str) -> str:
    """
    Strip URL prefixes and noise from user input, lowercased.

    "https://github.com/facebook/react/" -> "facebook/react"
    """
    name = value.strip()
    lowered = name.lower()
    for prefix in _URL_PREFIXES:
        if lowered.startswith(prefix):
            name = name[len(prefix):]
            break

    name = name.strip().strip("/").lower()
    if name.endswith(".git"):
        name = name[:-4]
    return name


class IssueSearchTool(MCPTool[IssueSearchArgs]):
    """
    Recent issues of a repository given by name, owner/name, or URL.

    Repository resolution:
        1. "owner/name" inputs are looked up directly and used as-is
        2. otherwise (or if the lookup fails) three searches run in order,
           stopping at the first hit: in:name, org:, in:name,description
        3. nothing found -> RepositoryNotFoundError
    """

    name = "github_issue_search"
    description = (
        "Search for issues in a GitHub repository. Accepts a repository name "
        "('react'), 'owner/name', or a full GitHub URL, and finds the best "
        "matching repository automatically."
    )
    parameters = {
        "type": "object",
        "properties": {
            "repository": {
                "type": "string",
                "description": "Repository name, owner/name, or URL (e.g., 'react' or 'facebook/react')"
            },
            "labels": {
                "type": "string",
                "description": "Comma-separated issue labels (e.g., 'good first issue,bug')"
            },
            "state": {
                "type": "string",
                "enum": list(ISSUE_STATES),
                "description": "Issue state filter (defaults to open)"
            }
        },
        "required": ["repository"]
    }

    PER_PAGE = 10
    HISTORY_SIZE = 2

    def __init__(self, client: GitHubClient):
        self.client = client
        # Diagnostics only; never shown to the model
        self.history: deque[dict] = deque(maxlen=self.HISTORY_SIZE)

    def _record(self, entry_type: str, content) -> None:
        self.history.append({
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "type": entry_type,
            "content": content,
        })

    def parse_args(self, params: dict) -> IssueSearchArgs:
        return IssueSearchArgs(
            repository=require_str(params, "repository"),
            labels=optional_str(params, "labels"),
            state=optional_enum(params, "state", ISSUE_STATES),
        )

    async def _search_strategy(self, query: str) -> str | None:
        data = await self.client.search_repositories(query, sort="stars", order="desc", per_page=5)
        items = data.get("items") or []
        return items[0].get("full_name") if items else None

    async def find_repository(self, repository: str) -> str:
        """
        Resolve user input to "owner/name".

        Raises:
            RepositoryNotFoundError: If no strategy finds a repository
            GitHubAPIError: If searches were blocked by the rate limit
        """
        name = normalize_repository(repository)

        if "/" in name:
            owner, repo = name.split("/")[:2]
            try:
                await self.client.get_repository(owner, repo)
                return f"{owner}/{repo}"
            except Exception as e:
                logger.debug(f"Direct lookup of {owner}/{repo} failed ({e}), trying search")

        rate_limited: GitHubAPIError | None = None
        for query in (f"{name} in:name", f"org:{name}", f"{name} in:name,description"):
            try:
                full_name = await self._search_strategy(query)
            except GitHubAPIError as e:
                if e.status == 403:
                    rate_limited = e
                logger.debug(f"Search strategy '{query}' failed, trying next")
                continue
            except httpx.HTTPError:
                logger.debug(f"Search strategy '{query}' failed, trying next")
                continue

            if full_name:
                logger.info(f"Found repository: {full_name}")
                return full_name

        if rate_limited is not None:
            raise rate_limited
        raise RepositoryNotFoundError(name)

    async def run(self, args: IssueSearchArgs) -> ToolResult:
        self._record("input", {"repository": args.repository, "labels": args.labels, "state": args.state})

        try:
            full_name = await self.find_repository(args.repository)
        except RepositoryNotFoundError:
            return self._fail(
                f"Error: Repository '{args.repository}' not found. Please check the name and try again."
            )
        except Exception as e:
            return self._fail(describe_github_error(
                e,
                "searching for the repository",
                f"Error: Repository '{args.repository}' not found. Please check the name and try again.",
            ))

        owner, repo = full_name.split("/", 1)
        logger.info(f"Searching issues in {full_name} (labels={args.labels}, state={args.state})")

        try:
            items = await self.client.list_issues(
                owner, repo, state=args.state, labels=args.labels, per_page=self.PER_PAGE
            )
        except Exception as e:
            logger.error(f"Issue listing failed for {full_name}", e)
            return self._fail(describe_github_error(
                e,
                f"searching issues in {full_name}",
                f"Error: Repository '{full_name}' not found or not accessible.",
            ))

        issues = [item for item in items if not item.get("pull_request")]
        logger.debug(f"Found {len(issues)} issues (filtered from {len(items)} items)")

        if not issues:
            message = f"No issues found in '{full_name}'"
            if args.state:
                message += f" with state '{args.state}'"
            if args.labels:
                message += f" matching labels '{args.labels}'"
            return ToolResult.ok(message + ".")

        output = self.format_results(full_name, issues)
        self._record("output", output)
        return ToolResult.ok(output)

    def _fail(self, message: str) -> ToolResult:
        self._record("error", message)
        return ToolResult.fail(message)

    @staticmethod
    def format_results(full_name: str, issues: list[dict]) -> str:
        entries = []
        links = []
        for index, issue in enumerate(issues, start=1):
            url = f"https://github.com/{full_name}/issues/{issue.get('number')}"
            labels = ", ".join(
                label if isinstance(label, str) else label.get("name", "")
                for label in issue.get("labels") or []
            ) or "None"
            author = (issue.get("user") or {}).get("login") or "N/A"

            entries.append(
                f"{index}. **{issue.get('title')}**\n"
                f"   Link: [{url}]\n"
                f"   State: {issue.get('state')}\n"
                f"   Author: {author}\n"
                f"   Labels: {labels}\n"
                f"   Created: {_format_date(issue.get('created_at'))}\n"
                f"   Updated: {_format_date(issue.get('updated_at'))}"
            )
            links.append(f"{index}. [{url}]")

        return (
            f"Found {len(issues)} issues matching your criteria:\n\n"
            + "\n\n---\n\n".join(entries)
            + "\n\nQuick Links:\n"
            + "\n".join(links)
        )


# ==============================================================================
# Tool: Profile Lookup
# ==============================================================================

@dataclass(frozen=True)
class ProfileArgs:
    username: str


class ProfileLookupTool(MCPTool[ProfileArgs]):
    """A user's public profile and their 5 most recently updated repositories."""

    name = "github_profile_search"
    description = (
        "Fetch information about a GitHub user profile, including basic "
        "details and their most recently updated repositories."
    )
    parameters = {
        "type": "object",
        "properties": {
            "username": {
                "type": "string",
                "description": "The GitHub username to fetch profile information for"
            }
        },
        "required": ["username"]
    }

    REPO_COUNT = 5

    def __init__(self, client: GitHubClient):
        self.client = client

    def parse_args(self, params: dict) -> ProfileArgs:
        return ProfileArgs(username=require_str(params, "username"))

    async def run(self, args: ProfileArgs) -> ToolResult:
        username = args.username

        try:
            user = await self.client.get_user(username)
            repos = await self.client.list_user_repositories(
                username, sort="updated", per_page=self.REPO_COUNT
            )
        except Exception as e:
            logger.error(f"Profile fetch failed for {username}", e)
            return ToolResult.fail(describe_github_error(
                e,
                f"fetching profile for {username}",
                f"Error: GitHub user '{username}' not found.",
            ))

        return ToolResult.ok({
            "profile": {
                "login": user.get("login"),
                "name": user.get("name"),
                "bio": user.get("bio"),
                "company": user.get("company"),
                "blog": user.get("blog"),
                "location": user.get("location"),
                "email": user.get("email"),
                "twitter_username": user.get("twitter_username"),
                "public_repos": user.get("public_repos"),
                "followers": user.get("followers"),
                "following": user.get("following"),
                "created_at": user.get("created_at"),
            },
            "top_repositories": [
                {
                    "name": repo.get("name"),
                    "description": repo.get("description"),
                    "stars": repo.get("stargazers_count"),
                    "language": repo.get("language"),
                    "url": repo.get("html_url"),
                }
                for repo in repos[:self.REPO_COUNT]
            ],
        })


# ==============================================================================
# Register GitHub tools
# ==============================================================================

def register_github_tools(registry: ToolRegistry, client: GitHubClient) -> None:
    """Register all GitHub tools, sharing one client."""
    registry.register(RepositorySearchTool(client))
    registry.register(IssueSearchTool(client))
    registry.register(ProfileLookupTool(client))
    logger.info("Registered GitHub tools")
