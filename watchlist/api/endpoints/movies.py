# watchlist/api/endpoints/movies.py

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Path, Query, status

from watchlist.api.deps import get_movie_service
from watchlist.core.security import get_current_user, get_user_or_guest
from watchlist.models.movie import (
    MAX_RATING,
    MIN_RATING,
    MovieCreate,
    MovieDeleteResponse,
    MovieEnvelope,
    MovieFacets,
    MovieListResponse,
    MovieRead,
    MovieSort,
    MovieStats,
    MovieUpdate,
    WatchFilter,
)
from watchlist.models.user import CurrentUser
from watchlist.services.movie_service import InvalidMovieIdError, MovieNotFoundError, MovieService

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get(
    "",  # GET /api/movies
    response_model=MovieListResponse,
    summary="List Movies",
    description="Merges the to-watch and watched lists of the current user (or guest), filtered and sorted.",
)
async def list_movies(
    search: Optional[str] = Query(None, description="Case-insensitive title substring."),
    watch_status: WatchFilter = Query(WatchFilter.ALL, alias="status", description="all, unwatched or watched."),
    genre: Optional[str] = Query(None, description="Exact genre."),
    year: Optional[int] = Query(None, description="Exact release year."),
    min_rating: Optional[int] = Query(None, ge=MIN_RATING, le=MAX_RATING, description="Watched movies rated at least this."),
    sort: MovieSort = Query(MovieSort.DATE, description="date, rating or title."),
    all_users: bool = Query(False, alias="all", description="Include every user's movies, tagged with their owner."),
    user: CurrentUser = Depends(get_user_or_guest),
    movie_service: MovieService = Depends(get_movie_service),
):
    try:
        return await movie_service.list_movies(
            user,
            search=search,
            status=watch_status,
            genre=genre,
            year=year,
            min_rating=min_rating,
            sort=sort,
            all_users=all_users,
        )
    except Exception as e:
        logger.error(f"Error listing movies for user {user.id}: {e}", exc_info=True)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to fetch movies")


@router.get("/stats", response_model=MovieStats, summary="Watchlist Statistics")
async def get_stats(
    user: CurrentUser = Depends(get_user_or_guest),
    movie_service: MovieService = Depends(get_movie_service),
):
    """Totals per list and the time the latest movie was added."""
    try:
        return await movie_service.get_stats(user)
    except Exception as e:
        logger.error(f"Error computing stats for user {user.id}: {e}", exc_info=True)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to fetch stats")


@router.get("/facets", response_model=MovieFacets, summary="Filter Values")
async def get_facets(
    user: CurrentUser = Depends(get_user_or_guest),
    movie_service: MovieService = Depends(get_movie_service),
):
    """Distinct genres (A-Z) and years (newest first) across the user's movies."""
    try:
        return await movie_service.get_facets(user)
    except Exception as e:
        logger.error(f"Error computing facets for user {user.id}: {e}", exc_info=True)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to fetch filters")


@router.get("/recommended", response_model=List[MovieRead], summary="Highly Rated Movies")
async def get_recommended(
    limit: int = Query(10, ge=1, le=50, description="Maximum number of movies."),
    user: CurrentUser = Depends(get_user_or_guest),
    movie_service: MovieService = Depends(get_movie_service),
):
    """Watched movies rated 4 or 5, best first."""
    try:
        return await movie_service.get_recommended(user, limit=limit)
    except Exception as e:
        logger.error(f"Error fetching recommended movies for user {user.id}: {e}", exc_info=True)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to fetch movies")


@router.post(
    "",  # POST /api/movies
    response_model=MovieEnvelope,
    status_code=status.HTTP_201_CREATED,
    summary="Add Movie",
    description="Adds a movie to the watchlist, or to the watched list when `watched` is true.",
    responses={422: {"description": "Missing title or rating outside 1-5"}},
)
async def create_movie(
    movie_data: MovieCreate,
    user: CurrentUser = Depends(get_user_or_guest),
    movie_service: MovieService = Depends(get_movie_service),
):
    try:
        movie = await movie_service.create_movie(user, movie_data)
        return MovieEnvelope(movie=movie)
    except Exception as e:
        logger.error(f"Error creating movie for user {user.id}: {e}", exc_info=True)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to create movie")


@router.get(
    "/{movie_id}",
    response_model=MovieEnvelope,
    summary="Get Movie",
    responses={
        400: {"description": "Invalid movie ID"},
        401: {"description": "Authentication required"},
        404: {"description": "Movie not found"},
    },
)
async def get_movie(
    movie_id: str = Path(..., description="The movie's id (MongoDB ObjectId)."),
    user: CurrentUser = Depends(get_current_user),
    movie_service: MovieService = Depends(get_movie_service),
):
    try:
        return MovieEnvelope(movie=await movie_service.get_movie(user, movie_id))
    except InvalidMovieIdError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except MovieNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except Exception as e:
        logger.error(f"Error fetching movie {movie_id}: {e}", exc_info=True)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to fetch movie")


@router.put(
    "/{movie_id}",
    response_model=MovieEnvelope,
    summary="Update Movie",
    description=(
        "Partially updates a movie. Changing `watched` moves the movie between "
        "the watchlist and the watched list."
    ),
    responses={
        400: {"description": "Invalid movie ID"},
        401: {"description": "Authentication required"},
        404: {"description": "Movie not found"},
        422: {"description": "Rating outside 1-5"},
    },
)
async def update_movie(
    movie_update: MovieUpdate,
    movie_id: str = Path(..., description="The movie's id (MongoDB ObjectId)."),
    user: CurrentUser = Depends(get_current_user),
    movie_service: MovieService = Depends(get_movie_service),
):
    try:
        return MovieEnvelope(movie=await movie_service.update_movie(user, movie_id, movie_update))
    except InvalidMovieIdError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except MovieNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except Exception as e:
        logger.error(f"Error updating movie {movie_id}: {e}", exc_info=True)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to update movie")


@router.delete(
    "/{movie_id}",
    response_model=MovieDeleteResponse,
    summary="Delete Movie",
    description="Soft-deletes a movie: it is moved to the deleted-movies collection.",
    responses={
        400: {"description": "Invalid movie ID"},
        401: {"description": "Authentication required"},
        404: {"description": "Movie not found"},
    },
)
async def delete_movie(
    movie_id: str = Path(..., description="The movie's id (MongoDB ObjectId)."),
    user: CurrentUser = Depends(get_current_user),
    movie_service: MovieService = Depends(get_movie_service),
):
    try:
        return await movie_service.delete_movie(user, movie_id)
    except InvalidMovieIdError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except MovieNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except Exception as e:
        logger.error(f"Error deleting movie {movie_id}: {e}", exc_info=True)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to delete movie")
