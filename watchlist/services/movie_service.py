# watchlist/services/movie_service.py

import asyncio
import logging
from typing import Any, Dict, List, Optional, Tuple

from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo.errors import PyMongoError

from watchlist.core.config import GUEST_USER_ID, GUEST_USER_NAME
from watchlist.data_access.mongo_client import (
    MOVIES_DELETED_COLLECTION,
    MOVIES_TO_WATCH_COLLECTION,
    MOVIES_WATCHED_COLLECTION,
    MovieRepository,
    UserRepository,
    to_object_id,
)
from watchlist.models.activity import ActivityAction
from watchlist.models.movie import (
    DeletedMovieSummary,
    MovieCreate,
    MovieDeleteResponse,
    MovieFacets,
    MovieListResponse,
    MovieRead,
    MovieSort,
    MovieStats,
    MovieUpdate,
    WatchFilter,
)
from watchlist.models.user import CurrentUser
from watchlist.services.activity_service import ActivityService
from watchlist.utils.helpers import as_utc, normalize_image_url, normalize_text, utc_now

logger = logging.getLogger(__name__)

RECOMMENDED_MIN_RATING = 4

# Fields a to-watch movie never carries
_WATCHED_ONLY_FIELDS = ("rating", "watchedAt")


class MovieNotFoundError(Exception):
    """Raised when a movie does not exist or belongs to another user."""
    pass


class InvalidMovieIdError(ValueError):
    """Raised when a movie id is not a valid ObjectId."""
    pass


def to_movie_read(doc: Dict[str, Any], watched: bool, owner_name: Optional[str] = None) -> MovieRead:
    """
    Maps a stored movie document to the API model.

    Image fields are normalised on the way out: legacy placeholder strings
    become null, `hasImage` is true whenever a usable URL exists, and
    `imageType` defaults to 'uploaded' for movies with a URL.

    Args:
        doc: Document from either movie collection.
        watched: Which collection it came from.
        owner_name: When set, the owner's id and name are included (cross-user listings).
    """
    image = normalize_image_url(doc.get("image"))
    image_url = normalize_image_url(doc.get("imageUrl")) or image
    if image_url:
        has_image = True
    else:
        has_image = bool(doc.get("hasImage")) if doc.get("hasImage") is not None else False
    image_type = doc.get("imageType") or ("uploaded" if image_url else "other")

    return MovieRead(
        id=str(doc["_id"]),
        title=doc.get("title") or "",
        year=doc.get("year"),
        genre=doc.get("genre"),
        notes=doc.get("notes"),
        rating=doc.get("rating") if watched else None,
        image=image,
        imageUrl=image_url,
        hasImage=has_image,
        imageType=image_type,
        watched=watched,
        createdAt=doc.get("createdAt"),
        watchedAt=doc.get("watchedAt") if watched else None,
        userId=doc.get("userId") if owner_name is not None else None,
        userName=owner_name,
    )


def filter_and_sort_movies(
    movies: List[MovieRead],
    search: Optional[str] = None,
    status: WatchFilter = WatchFilter.ALL,
    genre: Optional[str] = None,
    year: Optional[int] = None,
    min_rating: Optional[int] = None,
    sort: MovieSort = MovieSort.DATE,
) -> List[MovieRead]:
    """
    Applies the list filters and ordering to an already merged movie list.

    Args:
        movies: Movies from both collections.
        search: Case-insensitive substring of the title.
        status: Keep all, only unwatched or only watched movies.
        genre: Exact genre match.
        year: Exact release year.
        min_rating: Keep watched movies rated at least this.
        sort: 'date' (newest first), 'rating' (best first, unrated last) or 'title' (A-Z).

    Returns:
        A new, filtered and sorted list.
    """
    needle = normalize_text(search)

    def matches(movie: MovieRead) -> bool:
        if needle and needle not in movie.title.lower():
            return False
        if status == WatchFilter.UNWATCHED and movie.watched:
            return False
        if status == WatchFilter.WATCHED and not movie.watched:
            return False
        if genre and movie.genre != genre:
            return False
        if year is not None and movie.year != year:
            return False
        if min_rating is not None and not (movie.watched and movie.rating and movie.rating >= min_rating):
            return False
        return True

    filtered = [movie for movie in movies if matches(movie)]

    if sort == MovieSort.RATING:
        return sorted(filtered, key=lambda m: m.rating or 0, reverse=True)
    if sort == MovieSort.TITLE:
        return sorted(filtered, key=lambda m: m.title.casefold())
    return sorted(filtered, key=lambda m: as_utc(m.createdAt), reverse=True)


class MovieService:
    """
    Watchlist operations over the split movie collections.

    A movie lives in `movies-to-watch` or `movies-watched` depending on its
    status; flipping the status moves the document (same `_id`) to the other
    collection. Deleting moves it to `movies-deleted`.
    """

    def __init__(self, db: AsyncIOMotorDatabase, activity_service: Optional[ActivityService] = None):
        self.to_watch = MovieRepository(db, MOVIES_TO_WATCH_COLLECTION)
        self.watched = MovieRepository(db, MOVIES_WATCHED_COLLECTION)
        self.deleted = MovieRepository(db, MOVIES_DELETED_COLLECTION)
        self.users = UserRepository(db)
        self.activity = activity_service or ActivityService(db)

    # --- Helpers ---

    @staticmethod
    def _parse_movie_id(movie_id: str) -> ObjectId:
        obj_id = to_object_id(movie_id)
        if obj_id is None:
            logger.warning(f"Invalid movie ID format: {movie_id}")
            raise InvalidMovieIdError("Invalid movie ID")
        return obj_id

    async def _find_owned(self, movie_id: ObjectId, user_id: str) -> Tuple[Dict[str, Any], bool]:
        """Looks the movie up in the to-watch list, then the watched list."""
        doc = await self.to_watch.find_owned(movie_id, user_id)
        if doc:
            return doc, False
        doc = await self.watched.find_owned(movie_id, user_id)
        if doc:
            return doc, True
        logger.warning(f"Movie {movie_id} not found for user {user_id}")
        raise MovieNotFoundError("Movie not found")

    async def _move(self, doc: Dict[str, Any], source: MovieRepository, target: MovieRepository) -> None:
        """
        Moves a document between collections, keeping its `_id`.

        The target copy is written first. If removing the source then fails,
        the target copy is removed again so the movie never ends up in both.
        """
        await target.insert_one(doc)
        try:
            await source.delete_by_id(doc["_id"])
        except PyMongoError:
            logger.error(
                f"Moving movie {doc['_id']} from {source.collection_name} to {target.collection_name} failed; "
                f"rolling back the copy.",
                exc_info=True,
            )
            try:
                await target.delete_by_id(doc["_id"])
            except PyMongoError:
                logger.critical(
                    f"Rollback failed: movie {doc['_id']} is now in both {source.collection_name} "
                    f"and {target.collection_name}.",
                    exc_info=True,
                )
            raise

    async def _load_movies(self, user_id: Optional[str], with_owner: bool = False) -> List[MovieRead]:
        """Merges both lists (one user, or everyone when user_id is None), newest first."""
        to_watch_docs, watched_docs = await asyncio.gather(
            self.to_watch.find_by_owner(user_id),
            self.watched.find_by_owner(user_id),
        )

        owner_names: Dict[str, str] = {}
        if with_owner:
            owner_ids = [doc.get("userId") for doc in to_watch_docs + watched_docs if doc.get("userId")]
            owner_names = await self.users.names_by_ids(owner_ids)
            owner_names.setdefault(GUEST_USER_ID, GUEST_USER_NAME)

        def owner_of(doc: Dict[str, Any]) -> Optional[str]:
            if not with_owner:
                return None
            return owner_names.get(doc.get("userId"), "Unknown")

        movies = [to_movie_read(doc, False, owner_of(doc)) for doc in to_watch_docs]
        movies += [to_movie_read(doc, True, owner_of(doc)) for doc in watched_docs]
        movies.sort(key=lambda m: as_utc(m.createdAt), reverse=True)
        return movies

    # --- Queries ---

    async def list_movies(
        self,
        user: CurrentUser,
        search: Optional[str] = None,
        status: WatchFilter = WatchFilter.ALL,
        genre: Optional[str] = None,
        year: Optional[int] = None,
        min_rating: Optional[int] = None,
        sort: MovieSort = MovieSort.DATE,
        all_users: bool = False,
    ) -> MovieListResponse:
        """
        Lists the user's movies from both collections, filtered and sorted.

        Args:
            user: The caller (possibly the guest).
            all_users: List every user's movies, tagged with their owner.
            Remaining arguments: see `filter_and_sort_movies`.

        Raises:
            PyMongoError: If a database error occurs.
        """
        movies = await self._load_movies(None if all_users else user.id, with_owner=all_users)
        result = filter_and_sort_movies(
            movies, search=search, status=status, genre=genre, year=year, min_rating=min_rating, sort=sort
        )
        logger.info(
            f"Listed {len(result)}/{len(movies)} movies for {'all users' if all_users else 'user ' + user.id}"
        )
        return MovieListResponse(movies=result, total=len(result))

    async def get_stats(self, user: CurrentUser) -> MovieStats:
        movies = await self._load_movies(user.id)
        watched = sum(1 for movie in movies if movie.watched)
        created = [movie.createdAt for movie in movies if movie.createdAt is not None]
        return MovieStats(
            total=len(movies),
            watched=watched,
            toWatch=len(movies) - watched,
            lastUpdated=max(created, key=as_utc) if created else None,
        )

    async def get_facets(self, user: CurrentUser) -> MovieFacets:
        movies = await self._load_movies(user.id)
        genres = sorted({movie.genre for movie in movies if movie.genre})
        years = sorted({movie.year for movie in movies if movie.year}, reverse=True)
        return MovieFacets(genres=genres, years=years)

    async def get_recommended(self, user: CurrentUser, limit: int = 10) -> List[MovieRead]:
        """The user's best rated watched movies (rating >= 4), best first."""
        movies = await self._load_movies(user.id)
        best = filter_and_sort_movies(movies, min_rating=RECOMMENDED_MIN_RATING, sort=MovieSort.RATING)
        return best[:limit]

    async def get_movie(self, user: CurrentUser, movie_id: str) -> MovieRead:
        """
        Raises:
            InvalidMovieIdError: If movie_id is not an ObjectId.
            MovieNotFoundError: If the user has no such movie.
        """
        doc, watched = await self._find_owned(self._parse_movie_id(movie_id), user.id)
        return to_movie_read(doc, watched)

    # --- Commands ---

    async def create_movie(self, user: CurrentUser, movie_data: MovieCreate) -> MovieRead:
        """
        Adds a movie to the to-watch list, or straight to the watched list.

        A rating is only kept for watched movies. `image` falls back to
        `imageUrl` for clients that only read the legacy field.

        Raises:
            PyMongoError: If a database error occurs.
        """
        now = utc_now()
        image_url = normalize_image_url(movie_data.imageUrl)
        movie_doc: Dict[str, Any] = {
            "title": movie_data.title,
            "year": movie_data.year,
            "genre": movie_data.genre,
            "notes": movie_data.notes,
            "image": normalize_image_url(movie_data.image) or image_url,
            "imageUrl": image_url,
            "hasImage": movie_data.hasImage if movie_data.hasImage is not None else bool(image_url),
            "imageType": movie_data.imageType or ("uploaded" if image_url else "other"),
            "watched": movie_data.watched,
            "createdAt": now,
            "updatedAt": now,
            "userId": user.id,
        }
        if movie_data.watched:
            movie_doc["rating"] = movie_data.rating
            movie_doc["watchedAt"] = now
            repository = self.watched
        else:
            repository = self.to_watch
        # Optional fields that were not provided are left out of the document
        movie_doc = {k: v for k, v in movie_doc.items() if v is not None or k == "imageUrl"}

        movie_doc["_id"] = await repository.insert_one(movie_doc)
        logger.info(f"User {user.id} added movie {movie_doc['_id']} '{movie_data.title}' to {repository.collection_name}")

        await self.activity.log_activity(
            user,
            ActivityAction.ADD,
            movie_id=str(movie_doc["_id"]),
            movie_title=movie_data.title,
            details="Added as watched" if movie_data.watched else "Added to watchlist",
        )
        return to_movie_read(movie_doc, movie_data.watched)

    async def update_movie(self, user: CurrentUser, movie_id: str, movie_update: MovieUpdate) -> MovieRead:
        """
        Applies a partial update. When `watched` flips, the movie is moved to
        the other collection; otherwise it is updated in place.

        Moving to watched stamps `watchedAt` (given value or now) and keeps a
        given rating. Moving back to the watchlist drops rating and watchedAt.

        Raises:
            InvalidMovieIdError: If movie_id is not an ObjectId.
            MovieNotFoundError: If the user has no such movie.
            PyMongoError: If a database error occurs.
        """
        obj_id = self._parse_movie_id(movie_id)
        doc, is_watched = await self._find_owned(obj_id, user.id)

        changes = movie_update.model_dump(exclude_unset=True)
        target_watched = changes.pop("watched", None)
        if changes.get("title", "") is None:
            # Blank titles never replace the stored one
            changes.pop("title")

        now = utc_now()
        if target_watched is True and not is_watched:
            moved = self._apply_changes(dict(doc), changes)
            moved["watched"] = True
            moved["watchedAt"] = changes.get("watchedAt") or now
            moved["updatedAt"] = now
            await self._move(moved, source=self.to_watch, target=self.watched)
            logger.info(f"Movie {obj_id} moved to watched for user {user.id}")
            await self._log_change(user, ActivityAction.WATCH, moved, "Marked as watched")
            return to_movie_read(moved, True)

        if target_watched is False and is_watched:
            moved = self._apply_changes(dict(doc), changes)
            for field in _WATCHED_ONLY_FIELDS:
                moved.pop(field, None)
            moved["watched"] = False
            moved["updatedAt"] = now
            await self._move(moved, source=self.watched, target=self.to_watch)
            logger.info(f"Movie {obj_id} moved back to watchlist for user {user.id}")
            await self._log_change(user, ActivityAction.UNWATCH, moved, "Moved back to watchlist")
            return to_movie_read(moved, False)

        if not is_watched:
            for field in _WATCHED_ONLY_FIELDS:
                changes.pop(field, None)
        elif "watchedAt" in changes and changes["watchedAt"] is None:
            # A watched movie always keeps its watchedAt
            changes.pop("watchedAt")
        set_fields = {k: v for k, v in changes.items() if v is not None}
        unset_fields = [k for k, v in changes.items() if v is None]
        repository = self.watched if is_watched else self.to_watch
        updated = await repository.update_owned(obj_id, user.id, {**set_fields, "updatedAt": now}, unset_fields)
        if updated is None:
            # Removed between the lookup and the update
            raise MovieNotFoundError("Movie not found")

        if changes:
            action = ActivityAction.RATE if set(changes) == {"rating"} else ActivityAction.UPDATE
            details = f"Rated {changes['rating']}/5" if action == ActivityAction.RATE and changes["rating"] else None
            await self._log_change(user, action, updated, details or f"Updated {', '.join(sorted(changes))}")
        return to_movie_read(updated, is_watched)

    async def delete_movie(self, user: CurrentUser, movie_id: str) -> MovieDeleteResponse:
        """
        Soft-deletes a movie by moving it to `movies-deleted`.

        Raises:
            InvalidMovieIdError: If movie_id is not an ObjectId.
            MovieNotFoundError: If the user has no such movie.
            PyMongoError: If a database error occurs.
        """
        obj_id = self._parse_movie_id(movie_id)
        doc, is_watched = await self._find_owned(obj_id, user.id)

        deleted_doc = dict(doc)
        deleted_doc["watched"] = is_watched
        deleted_doc["deletedAt"] = utc_now()
        await self._move(deleted_doc, source=self.watched if is_watched else self.to_watch, target=self.deleted)
        logger.info(f"Movie {obj_id} soft-deleted by user {user.id}")

        await self._log_change(user, ActivityAction.DELETE, deleted_doc, None)
        return MovieDeleteResponse(
            deletedMovie=DeletedMovieSummary(
                id=str(obj_id),
                title=deleted_doc.get("title") or "",
                deletedAt=deleted_doc["deletedAt"],
            )
        )

    @staticmethod
    def _apply_changes(doc: Dict[str, Any], changes: Dict[str, Any]) -> Dict[str, Any]:
        for field, value in changes.items():
            if value is None:
                doc.pop(field, None)
            else:
                doc[field] = value
        return doc

    async def _log_change(
        self, user: CurrentUser, action: ActivityAction, doc: Dict[str, Any], details: Optional[str]
    ) -> None:
        await self.activity.log_activity(
            user, action, movie_id=str(doc["_id"]), movie_title=doc.get("title"), details=details
        )
