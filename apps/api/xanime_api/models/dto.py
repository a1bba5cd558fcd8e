from __future__ import annotations

from datetime import date
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class EpisodeType(str, Enum):
    regular = "regular"
    ova = "ova"
    special = "special"
    movie = "movie"
    recap = "recap"


class Visibility(str, Enum):
    public = "PUBLIC"
    unlisted = "UNLISTED"
    private = "PRIVATE"


class PublishStatus(str, Enum):
    published = "PUBLISHED"
    draft = "DRAFT"
    archived = "ARCHIVED"


class UploadType(str, Enum):
    single = "single"
    new_series = "new-series"
    existing_series = "existing-series"


def _not_blank(value: str) -> str:
    if not value or not value.strip():
        raise ValueError("must not be blank")
    return value


# ==================== Input Models ====================

class CreateSeriesRequest(BaseModel):
    title_raw: str = Field(max_length=200)
    title_clean: str = Field(max_length=200)
    slug: Optional[str] = Field(default=None, max_length=200)
    description: Optional[str] = Field(default=None, max_length=5000)

    @field_validator("title_raw", "title_clean")
    @classmethod
    def titles_not_blank(cls, value: str) -> str:
        return _not_blank(value)


class CreateSeasonRequest(BaseModel):
    series_id: str = Field(min_length=1)
    season_number: int = Field(ge=0, description="0 = シーズン無し")
    name: str = Field(max_length=200)
    slug: Optional[str] = Field(default=None, max_length=200)
    description: Optional[str] = Field(default=None, max_length=5000)

    @field_validator("name")
    @classmethod
    def name_not_blank(cls, value: str) -> str:
        return _not_blank(value)


class CreateEpisodeRequest(BaseModel):
    season_id: str = Field(min_length=1)
    episode_number_int: int = Field(ge=0)
    episode_number_str: Optional[str] = Field(default=None, max_length=40)
    episode_type: EpisodeType = EpisodeType.regular
    title_raw: str = Field(max_length=200)
    title_clean: Optional[str] = Field(default=None, max_length=200)
    slug: Optional[str] = Field(default=None, max_length=200)
    description: Optional[str] = Field(default=None, max_length=5000)
    release_date: Optional[date] = None
    duration_sec: Optional[int] = Field(default=None, ge=0)
    tags: List[str] = Field(default_factory=list, max_length=30)
    thumbnail_url: Optional[str] = None

    @field_validator("title_raw")
    @classmethod
    def title_not_blank(cls, value: str) -> str:
        return _not_blank(value)


class CreateVideoFileRequest(BaseModel):
    episode_id: str = Field(min_length=1)
    file_path: str = Field(min_length=1)
    public_url: str = Field(min_length=1)
    thumbnail_url: Optional[str] = None
    width: Optional[int] = Field(default=None, ge=0)
    height: Optional[int] = Field(default=None, ge=0)
    duration_sec: Optional[int] = Field(default=None, ge=0)
    is_adult: bool = False
    mosaic_confirmed: bool = False
    no_repost: bool = False
    visibility: Visibility = Visibility.public
    status: PublishStatus = PublishStatus.published


class CreateVideoRequest(BaseModel):
    """Upload form payload. Accepts the camelCase keys the web client sends."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    type: UploadType = UploadType.single
    series_id: Optional[str] = None
    title: str = Field(max_length=200)
    description: Optional[str] = Field(default=None, max_length=5000)
    tags: Optional[str] = Field(default=None, max_length=500)
    file_path: str = Field(min_length=1)
    public_url: str = Field(min_length=1)
    thumbnail_url: Optional[str] = None
    mosaic_confirmed: bool = False
    no_repost: bool = False
    is_adult: bool = False

    @field_validator("title")
    @classmethod
    def title_not_blank(cls, value: str) -> str:
        return _not_blank(value)


class UpdateVideoRequest(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    title: Optional[str] = Field(default=None, max_length=200)
    description: Optional[str] = Field(default=None, max_length=5000)
    tags: Optional[str] = Field(default=None, max_length=500)
    thumbnail_url: Optional[str] = None
    visibility: Optional[Visibility] = None


class CreateReportRequest(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    video_id: str = Field(min_length=1)
    reason: str = Field(max_length=100)
    message: Optional[str] = Field(default=None, max_length=2000)

    @field_validator("reason")
    @classmethod
    def reason_not_blank(cls, value: str) -> str:
        return _not_blank(value)


class AcceptTermsRequest(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    version: Optional[str] = Field(default=None, max_length=40)
    no_repost: bool = False
    mosaic: bool = False
    adult: bool = False


# ==================== Response Models ====================

class SeriesSummary(BaseModel):
    id: str
    title_clean: str
    slug: str


class SeriesCreateResponse(BaseModel):
    series: SeriesSummary


class SeasonSummary(BaseModel):
    id: str
    name: str
    season_number: int
    slug: str


class SeasonCreateResponse(BaseModel):
    season: SeasonSummary


class EpisodeSummary(BaseModel):
    id: str
    title_clean: str
    slug: str
    episode_number_int: int
    episode_number_str: str


class EpisodeCreateResponse(BaseModel):
    episode: EpisodeSummary


class VideoFileSummary(BaseModel):
    id: str
    public_url: str


class VideoFileCreateResponse(BaseModel):
    video_file: VideoFileSummary


class VideoRef(BaseModel):
    id: str


class VideoCreateResponse(BaseModel):
    video: VideoRef


class LikeToggleResponse(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    liked: bool
    like_count: int


class ViewCountResponse(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    view_count: int


class MessageResponse(BaseModel):
    message: str


class SuccessResponse(BaseModel):
    success: bool = True
