"""Search data model shared by every provider and by the search tool."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field, field_validator

SearchDepth = Literal["basic", "advanced"]


class SearchOptions(BaseModel):
    """One validated search invocation."""

    query: str = Field(min_length=1)
    max_results: int = Field(default=10, ge=1)
    search_depth: SearchDepth = "basic"
    include_domains: list[str] = []
    exclude_domains: list[str] = []

    @field_validator("query")
    @classmethod
    def query_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("query must not be blank")
        return v

    @field_validator("include_domains", "exclude_domains")
    @classmethod
    def dedupe_domains(cls, v: list[str]) -> list[str]:
        return list(dict.fromkeys(d.strip() for d in v if d and d.strip()))


class SearchResultItem(BaseModel):
    title: str = ""
    url: str
    content: str = ""


class SearchResultImage(BaseModel):
    url: str
    description: str | None = None


class SearchResults(BaseModel):
    """Normalized provider response.

    ``number_of_results`` is whatever the backend reports and can be larger
    than ``len(results)`` when the provider counts hits beyond this page.
    """

    results: list[SearchResultItem] = []
    images: list[str | SearchResultImage] = []
    query: str = ""
    number_of_results: int = 0

    @classmethod
    def empty(cls, query: str) -> SearchResults:
        return cls(results=[], images=[], query=query, number_of_results=0)
