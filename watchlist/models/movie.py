# watchlist/models/movie.py

from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

MIN_RATING = 1
MAX_RATING = 5


class WatchFilter(str, Enum):
    """Which of the two lists a listing should include."""
    ALL = "all"
    UNWATCHED = "unwatched"
    WATCHED = "watched"


class MovieSort(str, Enum):
    DATE = "date"
    RATING = "rating"
    TITLE = "title"


# --- Base Model ---
class MovieBase(BaseModel):
    """Attributes a user can set on a movie."""
    year: Optional[int] = Field(None, description="Release year.")
    genre: Optional[str] = Field(None, description="Single free-text genre.")
    notes: Optional[str] = Field(None, description="Short personal note.")
    rating: Optional[int] = Field(None, ge=MIN_RATING, le=MAX_RATING, description="1-5 stars, watched movies only.")
    image: Optional[str] = Field(None, description="Legacy poster reference, superseded by imageUrl.")
    imageUrl: Optional[str] = Field(None, description="Poster URL or data URL.")
    hasImage: Optional[bool] = None
    imageType: Optional[str] = Field(None, description="'uploaded' or 'other'.")


# --- Models for API Requests ---
class MovieCreate(MovieBase):
    """Request body for POST /api/movies."""
    title: str = Field(..., description="Movie title; surrounding whitespace is trimmed.")
    watched: bool = Field(False, description="Add straight to the watched list.")

    @field_validator("title")
    @classmethod
    def check_title(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Title is required")
        return v


class MovieUpdate(BaseModel):
    """
    Request body for PUT /api/movies/{id}. Only fields present in the body are
    applied; an explicit null clears an optional field.
    """
    title: Optional[str] = None
    year: Optional[int] = None
    genre: Optional[str] = None
    notes: Optional[str] = None
    rating: Optional[int] = Field(None, ge=MIN_RATING, le=MAX_RATING)
    watched: Optional[bool] = None
    watchedAt: Optional[datetime] = None
    imageUrl: Optional[str] = None
    hasImage: Optional[bool] = None
    imageType: Optional[str] = None

    @field_validator("title")
    @classmethod
    def blank_title_keeps_current(cls, v: Optional[str]) -> Optional[str]:
        # A blank title never overwrites the stored one
        if v is None:
            return None
        return v.strip() or None


# --- Models for API Responses ---
class MovieRead(MovieBase):
    """A movie as returned by the API, whichever collection it lives in."""
    id: str = Field(..., description="MongoDB ObjectId as string.")
    title: str
    watched: bool
    createdAt: Optional[datetime] = None
    watchedAt: Optional[datetime] = None
    # Stored data is not re-validated against the 1-5 input range
    rating: Optional[float] = None
    userId: Optional[str] = Field(None, description="Owner, only set on cross-user listings.")
    userName: Optional[str] = Field(None, description="Owner name, only set on cross-user listings.")


class MovieEnvelope(BaseModel):
    movie: MovieRead


class MovieListResponse(BaseModel):
    movies: List[MovieRead]
    total: int


class MovieStats(BaseModel):
    total: int
    watched: int
    toWatch: int
    lastUpdated: Optional[datetime] = None


class MovieFacets(BaseModel):
    """Values available for the genre and year filters."""
    genres: List[str]
    years: List[int]


class DeletedMovieSummary(BaseModel):
    id: str
    title: str
    deletedAt: datetime


class MovieDeleteResponse(BaseModel):
    message: str = "Movie deleted successfully"
    deletedMovie: DeletedMovieSummary
