"""
Catalog data models.
"""

import re
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from shared.errors import MalformedInputError, RecordValidationError


EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
ONGOING_STATUS = "ongoing"
STREAM_INDEX_PATTERN = re.compile(r"[0-9]+")


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse ISO timestamp strings safely, normalising to UTC."""
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str) and value:
        try:
            if value.endswith("Z"):
                value = value[:-1] + "+00:00"
            parsed = datetime.fromisoformat(value)
        except ValueError:
            return None
    else:
        return None

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


class CatalogEntry(BaseModel):
    """Listing record as returned by the origin's list and feed endpoints."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    id: str = Field(default="", alias="_id")
    slug: str = ""
    name: str = ""
    thumb_url: Optional[str] = None
    poster_url: Optional[str] = None
    modified: Dict[str, Any] = Field(default_factory=dict)
    category: List[Dict[str, Any]] = Field(default_factory=list)
    country: List[Dict[str, Any]] = Field(default_factory=list)

    @property
    def modified_at(self) -> datetime:
        """Modification time, or the epoch when the origin omits it."""
        return parse_timestamp(self.modified.get("time")) or EPOCH


class EpisodeSource(BaseModel):
    """One playable episode inside a server block."""

    model_config = ConfigDict(extra="allow")

    name: str = ""
    slug: str = ""
    filename: str = ""
    link_embed: str = ""
    link_m3u8: str = ""

    @field_validator("name", "slug", "filename", "link_embed", "link_m3u8", mode="before")
    @classmethod
    def _text_or_empty(cls, value: Any) -> str:
        return "" if value is None else str(value)


class ServerBlock(BaseModel):
    """A named source/server carrying an ordered episode list."""

    model_config = ConfigDict(extra="allow")

    server_name: str = ""
    server_data: List[EpisodeSource] = Field(default_factory=list)

    @field_validator("server_name", mode="before")
    @classmethod
    def _name_or_empty(cls, value: Any) -> str:
        return "" if value is None else str(value)

    @field_validator("server_data", mode="before")
    @classmethod
    def _episodes_or_empty(cls, value: Any) -> List[Any]:
        if not isinstance(value, list):
            return []
        return [item for item in value if isinstance(item, Mapping)]


class MovieInfo(BaseModel):
    """Descriptive part of a detail record."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    id: str = Field(alias="_id")
    slug: str
    name: str
    content: str = ""
    poster_url: Optional[str] = None
    thumb_url: Optional[str] = None
    year: Optional[int] = None
    status: Optional[str] = None
    actor: List[str] = Field(default_factory=list)
    category: List[Any] = Field(default_factory=list)
    country: List[Any] = Field(default_factory=list)

    @field_validator("id", "slug", "name", mode="before")
    @classmethod
    def _identity_text(cls, value: Any) -> Any:
        return str(value) if isinstance(value, (int, float)) else value

    @field_validator("content", mode="before")
    @classmethod
    def _content_or_empty(cls, value: Any) -> str:
        return "" if value is None else str(value)

    @field_validator("year", mode="before")
    @classmethod
    def _year_or_none(cls, value: Any) -> Optional[int]:
        try:
            return int(value) if value not in (None, "") else None
        except (TypeError, ValueError):
            return None

    @field_validator("status", mode="before")
    @classmethod
    def _status_text(cls, value: Any) -> Optional[str]:
        return None if value is None else str(value)

    @field_validator("actor", mode="before")
    @classmethod
    def _actor_names(cls, value: Any) -> List[str]:
        if not isinstance(value, list):
            return []
        return [str(name) for name in value if name not in (None, "")]

    @field_validator("category", "country", mode="before")
    @classmethod
    def _refs(cls, value: Any) -> List[Any]:
        return value if isinstance(value, list) else []


class DetailRecord(BaseModel):
    """Authoritative cached entity for one content item."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    movie: MovieInfo
    episodes: List[ServerBlock] = Field(default_factory=list)
    fetched_at: Optional[datetime] = None

    @field_validator("episodes", mode="before")
    @classmethod
    def _servers(cls, value: Any) -> List[Any]:
        if not isinstance(value, list):
            return []
        return [server for server in value if isinstance(server, Mapping)]

    @property
    def id(self) -> str:
        return self.movie.id

    @property
    def slug(self) -> str:
        return self.movie.slug

    @property
    def is_ongoing(self) -> bool:
        return (self.movie.status or "").lower() == ONGOING_STATUS

    def to_cache(self) -> Dict[str, Any]:
        """Serialise in the origin's own field names for storage."""
        return self.model_dump(mode="json", by_alias=True)


class StreamLink(BaseModel):
    """A single named playback link."""

    id: str
    name: str
    type: str = "hls"
    default: bool = False
    url: str = ""


class StreamRecord(BaseModel):
    """Per-episode playback descriptor."""

    stream_links: List[StreamLink] = Field(default_factory=list)


@dataclass(frozen=True)
class StreamId:
    """Composite stream key ``{detailId}_{serverIndex}_{episodeIndex}``."""

    detail_id: str
    server_index: int
    episode_index: int

    @classmethod
    def parse(cls, value: Any) -> "StreamId":
        if not isinstance(value, str):
            raise MalformedInputError("Stream id must be a string", {"stream_id": value})
        parts = value.split("_")
        if len(parts) != 3 or not parts[0]:
            raise MalformedInputError("Stream id must have three parts", {"stream_id": value})
        detail_id, server, episode = parts
        if not STREAM_INDEX_PATTERN.fullmatch(server) or not STREAM_INDEX_PATTERN.fullmatch(episode):
            raise MalformedInputError("Stream id indices must be non-negative integers", {"stream_id": value})
        return cls(detail_id, int(server), int(episode))

    def __str__(self) -> str:
        return f"{self.detail_id}_{self.server_index}_{self.episode_index}"


class ListPage(BaseModel):
    """Normalised page of listing items."""

    model_config = ConfigDict(populate_by_name=True)

    items: List[Dict[str, Any]] = Field(default_factory=list)
    total_pages: int = Field(default=0, alias="totalPages")

    @classmethod
    def empty(cls) -> "ListPage":
        return cls(items=[], total_pages=0)

    def to_cache(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


def missing_detail_fields(movie: Any) -> List[str]:
    """Return the completeness fields a movie payload lacks (empty when complete)."""
    if not isinstance(movie, Mapping):
        return ["movie"]

    missing = [name for name in ("_id", "name", "slug", "content") if not movie.get(name)]
    if not (movie.get("poster_url") or movie.get("thumb_url")):
        missing.append("poster_url|thumb_url")
    for name in ("category", "country"):
        value = movie.get(name)
        if not isinstance(value, list) or not value:
            missing.append(name)
    return missing


def is_complete_detail(payload: Any) -> bool:
    """Completeness predicate for a cached or fetched detail payload."""
    return isinstance(payload, Mapping) and not missing_detail_fields(payload.get("movie"))


def validate_detail_payload(payload: Any) -> DetailRecord:
    """Check completeness and parse an origin detail response.

    Raises RecordValidationError rather than returning a partial record.
    """
    if not isinstance(payload, Mapping):
        raise RecordValidationError("Detail payload is not an object")

    missing = missing_detail_fields(payload.get("movie"))
    if missing:
        raise RecordValidationError("Incomplete detail record", {"missing": missing})

    try:
        return DetailRecord.model_validate(
            {"movie": payload["movie"], "episodes": payload.get("episodes") or []}
        )
    except ValueError as exc:
        raise RecordValidationError("Malformed detail record", {"error": str(exc)}) from exc


def build_stream_record(record: DetailRecord, stream_id: StreamId) -> Optional[StreamRecord]:
    """Build the stream descriptor for one episode, or None when out of range."""
    if stream_id.detail_id != record.id:
        return None
    if stream_id.server_index >= len(record.episodes):
        return None
    episodes = record.episodes[stream_id.server_index].server_data
    if stream_id.episode_index >= len(episodes):
        return None

    episode = episodes[stream_id.episode_index]
    return StreamRecord(
        stream_links=[
            StreamLink(
                id=f"default_{stream_id}",
                name=episode.name or f"Episode {stream_id.episode_index + 1}",
                url=episode.link_m3u8 or "",
            )
        ]
    )


def derive_stream_records(record: DetailRecord) -> Dict[StreamId, StreamRecord]:
    """Every stream descriptor derivable from a detail record, keyed by composite id."""
    derived: Dict[StreamId, StreamRecord] = {}
    for server_index, server in enumerate(record.episodes):
        for episode_index in range(len(server.server_data)):
            stream_id = StreamId(record.id, server_index, episode_index)
            stream = build_stream_record(record, stream_id)
            if stream is not None:
                derived[stream_id] = stream
    return derived


def is_valid_slug(slug: Any) -> bool:
    """Slugs are non-empty strings without a path separator."""
    return isinstance(slug, str) and bool(slug.strip()) and "/" not in slug
