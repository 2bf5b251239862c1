"""Parse an optional owner/repo prefix out of free text."""

import re
from typing import NamedTuple, Optional

from hub.utils.logging import get_structured_logger

logger = get_structured_logger(__name__)

FALLBACK_OWNER = "claude-did-this"
FALLBACK_REPO = "demo-repository"

_REPO_PREFIX = re.compile(r"^([\w.-]+)/([\w.-]+)(?:\s+(.*))?$", re.DOTALL | re.ASCII)
_OWNER_PATTERN = re.compile(r"^[a-zA-Z0-9]([a-zA-Z0-9-]*[a-zA-Z0-9])?$")
_REPO_PATTERN = re.compile(r"^[a-zA-Z0-9._-]+$")


class ParsedRepository(NamedTuple):
    owner: str
    repo: str
    remaining_text: str
    is_explicit: bool

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.repo}"


def parse_repository_from_text(
    text: str,
    default_owner: Optional[str] = None,
    default_repo: Optional[str] = None
) -> ParsedRepository:
    """
    Parse repository information from text that may start with owner/repo.

    Without an explicit prefix the defaults are used. A default repo that
    itself contains a slash is split on the first slash, so
    "owner/project/subproject" yields owner "owner" and repo "project/subproject".
    """
    trimmed = (text or "").strip()

    match = _REPO_PREFIX.match(trimmed)
    if match:
        owner, repo, rest = match.group(1), match.group(2), match.group(3) or ""
        logger.debug("Parsed explicit repository", repository=f"{owner}/{repo}")
        return ParsedRepository(owner, repo, rest.strip(), True)

    repo_value = default_repo or FALLBACK_REPO
    owner_value = default_owner or FALLBACK_OWNER

    if "/" in repo_value:
        owner, _, repo = repo_value.partition("/")
        logger.debug("Using default repository with full path", repository=f"{owner}/{repo}")
        return ParsedRepository(owner, repo, trimmed, False)

    logger.debug("Using default repository", repository=f"{owner_value}/{repo_value}")
    return ParsedRepository(owner_value, repo_value, trimmed, False)


def has_configured_default(default_owner: Optional[str], default_repo: Optional[str]) -> bool:
    """True when the defaults name a real repository rather than the built-in fallback."""
    return bool(default_owner) or bool(default_repo and "/" in default_repo)


def is_valid_repository(owner: str, repo: str) -> bool:
    """
    Validate owner/repo naming.

    Owner: alphanumerics and inner hyphens, no leading or trailing hyphen.
    Repo: alphanumerics, hyphens, underscores and dots, non-empty.
    """
    if not owner or not repo:
        return False
    return bool(_OWNER_PATTERN.fullmatch(owner)) and bool(_REPO_PATTERN.fullmatch(repo))
