"""Domain model - collections, records and value objects.

Following Cosmic Python principles:
- Domain model has NO dependencies on infrastructure (no sqlite, no HTTP)
- Records are validated Pydantic models built from request payloads
- Value objects (``Page``, ``ProjectData``) are immutable where it matters
"""

from __future__ import annotations

from enum import Enum
import json
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from portfolio_cms.errors import InvalidPayloadError, UnknownCollectionError


Status = Literal["published", "draft"]
STATUSES: tuple[str, ...] = ("published", "draft")


class Collection(str, Enum):
    """The three content collections, keyed by their API type name."""

    PROJECTS = "project"
    APPS = "app"
    POSTS = "blog"

    @classmethod
    def parse(cls, type_key: str) -> Collection:
        """Resolve an API type key, raising ``UnknownCollectionError`` for anything else."""
        try:
            return cls(type_key)
        except ValueError:
            raise UnknownCollectionError(type_key) from None

    @property
    def record_model(self) -> type[ProjectRecord | AppRecord | PostRecord]:
        return _RECORD_MODELS[self]


class SortMode(str, Enum):
    RELEVANCE = "relevance"
    NEWEST = "newest"
    OLDEST = "oldest"

    @classmethod
    def parse(cls, raw: str | None, *, has_query: bool) -> SortMode:
        """Resolve a sort name; absent or unknown names fall back to the default for the request."""
        default = cls.RELEVANCE if has_query else cls.NEWEST
        if not raw:
            return default
        try:
            mode = cls(raw.strip().lower())
        except ValueError:
            return default
        if mode is cls.RELEVANCE and not has_query:
            return cls.NEWEST
        return mode


class ProjectData(BaseModel):
    """Structured payload stored as JSON text in ``projects.data``.

    Unknown keys are kept so that free-form attributes survive a round trip.
    """

    model_config = ConfigDict(extra="allow")

    summary: str = ""
    technologies: list[str] = Field(default_factory=list)
    features: list[str] = Field(default_factory=list)
    description: str = ""
    screenshots: list[str] = Field(default_factory=list)

    @classmethod
    def from_legacy(cls, description: str | None) -> ProjectData:
        """Wrap a first-generation flat description into the structured payload."""
        return cls(summary=description or "")

    @classmethod
    def from_stored(cls, raw: str | None) -> ProjectData:
        """Parse stored payload text, degrading to an empty payload when malformed."""
        parsed = parse_payload_text(raw)
        try:
            return cls.model_validate(parsed)
        except ValidationError:
            return cls()

    def to_json(self) -> str:
        return json.dumps(self.model_dump(), ensure_ascii=False)


def parse_payload_text(raw: str | None) -> dict[str, Any]:
    """Deserialize payload text into a dict; anything malformed becomes ``{}``."""
    if not raw:
        return {}
    try:
        value = json.loads(raw)
    except (TypeError, ValueError):
        return {}
    return value if isinstance(value, dict) else {}


class _Record(BaseModel):
    model_config = ConfigDict(extra="ignore", str_strip_whitespace=True)

    title: str = Field(min_length=1)
    image: str | None = None
    status: Status = "published"

    def columns(self) -> dict[str, Any]:
        raise NotImplementedError

    def update_columns(self) -> dict[str, Any]:
        """Columns written by a full edit; ``status`` only when the payload names it."""
        columns = self.columns()
        if "status" not in self.model_fields_set:
            columns.pop("status", None)
        return columns


class ProjectRecord(_Record):
    url: str | None = None
    data: ProjectData = Field(default_factory=ProjectData)

    @model_validator(mode="before")
    @classmethod
    def _accept_legacy_shapes(cls, values: Any) -> Any:
        # Admin forms post ``data`` as JSON text; first-generation clients post a flat description.
        if not isinstance(values, dict):
            return values
        values = dict(values)
        data = values.get("data")
        if isinstance(data, str):
            values["data"] = parse_payload_text(data)
        elif data is None and values.get("description"):
            values["data"] = {"summary": values["description"]}
        return values

    def columns(self) -> dict[str, Any]:
        return {
            "title": self.title,
            "url": self.url,
            "image": self.image,
            "status": self.status,
            "data": self.data.to_json(),
        }


class AppRecord(_Record):
    description: str = ""
    summary: str | None = None
    url: str | None = None

    def columns(self) -> dict[str, Any]:
        return {
            "title": self.title,
            "description": self.description,
            "summary": self.summary,
            "url": self.url,
            "image": self.image,
            "status": self.status,
        }


class PostRecord(_Record):
    content: str = ""
    summary: str | None = None
    date: str | None = None

    def columns(self) -> dict[str, Any]:
        return {
            "title": self.title,
            "content": self.content,
            "summary": self.summary,
            "date": self.date,
            "image": self.image,
            "status": self.status,
        }


_RECORD_MODELS: dict[Collection, type[ProjectRecord | AppRecord | PostRecord]] = {
    Collection.PROJECTS: ProjectRecord,
    Collection.APPS: AppRecord,
    Collection.POSTS: PostRecord,
}


def validate_record(collection: Collection, payload: Any) -> ProjectRecord | AppRecord | PostRecord:
    """Build the collection's record from a request payload."""
    if not isinstance(payload, dict):
        raise InvalidPayloadError("Request body must be a JSON object")
    try:
        return collection.record_model.model_validate(payload)
    except ValidationError as exc:
        raise InvalidPayloadError(f"Invalid {collection.value} payload: {exc.errors(include_url=False)}") from exc


def validate_status(raw: Any) -> Status:
    if raw not in STATUSES:
        raise InvalidPayloadError(f"status must be one of {', '.join(STATUSES)}")
    return raw


class Page(BaseModel):
    """One page of a listing, serialised as ``{items, totalPages, currentPage}``."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    items: list[dict[str, Any]] = Field(default_factory=list)
    total_pages: int = Field(default=0, ge=0, alias="totalPages")
    current_page: int = Field(default=1, ge=1, alias="currentPage")

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True)
