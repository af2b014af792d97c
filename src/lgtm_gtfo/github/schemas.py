"""Pydantic schemas for GitHub GraphQL payloads.

Every payload the query layer consumes is validated here, so the triage core
only ever sees these typed shapes. GraphQL connections arrive as
``{"nodes": [...]}``; the validators flatten them into plain lists.
"""

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

GHOST_LOGIN = "ghost"


def _connection_nodes(value: Any) -> Any:
    """Unwrap a GraphQL connection into its list of non-null nodes."""
    if isinstance(value, dict) and "nodes" in value:
        return [node for node in value["nodes"] or [] if node is not None]
    return value


class GitHubSchema(BaseModel):
    """Base schema: tolerate extra fields, accept alias or field name."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore", frozen=True)


class Actor(GitHubSchema):
    login: str


class ReviewRequest(GitHubSchema):
    """A requested reviewer: user and mannequin carry ``login``, team carries ``slug``."""

    login: str | None = None
    name: str | None = None
    slug: str | None = None


class PullRequestInfo(GitHubSchema):
    """State, author, body and pending review requests of one pull request."""

    state: Literal["OPEN", "CLOSED", "MERGED"]
    author: Actor | None = None
    body: str | None = None
    review_requests: list[ReviewRequest] = Field(
        default_factory=list, alias="reviewRequests"
    )

    @field_validator("review_requests", mode="before")
    @classmethod
    def flatten_review_requests(cls, value: Any) -> Any:
        if value is None:
            return []
        nodes = _connection_nodes(value)
        if not isinstance(nodes, list):
            return nodes

        flattened = []
        for node in nodes:
            if isinstance(node, dict) and "requestedReviewer" in node:
                node = node["requestedReviewer"]
            if node is not None:
                flattened.append(node)
        return flattened


class Review(GitHubSchema):
    author: Actor | None = None
    state: str


class ReviewState(GitHubSchema):
    """Submitted reviews plus GitHub's aggregate review decision."""

    reviews: list[Review] = Field(default_factory=list)
    review_decision: str | None = Field(default=None, alias="reviewDecision")

    @field_validator("reviews", mode="before")
    @classmethod
    def flatten_reviews(cls, value: Any) -> Any:
        if value is None:
            return []
        return _connection_nodes(value)

    @property
    def approval_count(self) -> int:
        return sum(1 for review in self.reviews if review.state == "APPROVED")


class PullRequestSummary(GitHubSchema):
    """One open pull request returned by a review-requested search."""

    repository: str
    number: int = Field(gt=0)
    title: str
    url: str
    author: str

    @model_validator(mode="before")
    @classmethod
    def flatten_nested(cls, values: Any) -> Any:
        if not isinstance(values, dict):
            return values
        values = dict(values)
        repository = values.get("repository")
        if isinstance(repository, dict):
            values["repository"] = repository.get("nameWithOwner")
        author = values.get("author")
        if isinstance(author, dict):
            values["author"] = author.get("login") or GHOST_LOGIN
        elif author is None:
            values["author"] = GHOST_LOGIN
        return values
