import unittest
from datetime import datetime, timedelta, timezone

from bson import ObjectId

from watchlist.models.movie import MovieRead, MovieSort, WatchFilter
from watchlist.services.movie_service import filter_and_sort_movies, to_movie_read
from watchlist.utils.helpers import as_utc, exact_name_pattern, normalize_image_url, utc_now


class TestHelpers(unittest.TestCase):
    def test_normalize_image_url(self):
        for value in (None, "", "   ", "null", "undefined", "None", "false", "0", 42):
            with self.subTest(value=value):
                self.assertIsNone(normalize_image_url(value))
        self.assertEqual(normalize_image_url(" data:image/png;base64,AAA "), "data:image/png;base64,AAA")

    def test_as_utc(self):
        naive = datetime(2024, 5, 1, 12, 0)
        self.assertEqual(as_utc(naive), datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc))
        self.assertEqual(as_utc("2024-05-01T12:00:00Z"), datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc))
        self.assertEqual(as_utc("garbage"), datetime(1970, 1, 1, tzinfo=timezone.utc))
        self.assertEqual(as_utc(None), datetime(1970, 1, 1, tzinfo=timezone.utc))

    def test_utc_now_has_millisecond_precision(self):
        self.assertEqual(utc_now().microsecond % 1000, 0)

    def test_exact_name_pattern_escapes_regex(self):
        pattern = exact_name_pattern("a.b*")
        self.assertEqual(pattern, {"$regex": r"^a\.b\*$", "$options": "i"})


class TestMovieMapping(unittest.TestCase):
    def test_unwatched_movie_hides_rating(self):
        doc = {"_id": ObjectId(), "title": "Heat", "rating": 5, "watchedAt": utc_now(), "userId": "u1"}
        movie = to_movie_read(doc, watched=False)
        self.assertIsNone(movie.rating)
        self.assertIsNone(movie.watchedAt)
        self.assertIsNone(movie.userId)

    def test_legacy_image_field_fills_image_url(self):
        doc = {"_id": ObjectId(), "title": "Heat", "image": "https://img.example/heat.jpg", "imageUrl": "undefined"}
        movie = to_movie_read(doc, watched=True, owner_name="alice")
        self.assertEqual(movie.imageUrl, "https://img.example/heat.jpg")
        self.assertTrue(movie.hasImage)
        self.assertEqual(movie.imageType, "uploaded")
        self.assertEqual(movie.userName, "alice")


class TestFilterAndSort(unittest.TestCase):
    def setUp(self) -> None:
        base = datetime(2024, 1, 1, tzinfo=timezone.utc)

        def movie(title, watched, rating=None, days=0, **extra):
            return MovieRead(
                id=str(ObjectId()), title=title, watched=watched, rating=rating,
                createdAt=base + timedelta(days=days), **extra
            )

        self.movies = [
            movie("b-side", False, days=2, genre="Drama"),
            movie("Alpha", True, rating=3, days=1, year=2001),
            movie("charlie", True, rating=5, days=3),
            movie("Delta", True, days=0),
        ]

    def _titles(self, **kwargs):
        return [m.title for m in filter_and_sort_movies(self.movies, **kwargs)]

    def test_sorts(self):
        self.assertEqual(self._titles(), ["charlie", "b-side", "Alpha", "Delta"])
        self.assertEqual(self._titles(sort=MovieSort.TITLE), ["Alpha", "b-side", "charlie", "Delta"])
        self.assertEqual(self._titles(sort=MovieSort.RATING), ["charlie", "Alpha", "b-side", "Delta"])

    def test_filters_combine(self):
        self.assertEqual(self._titles(status=WatchFilter.WATCHED, min_rating=3), ["charlie", "Alpha"])
        self.assertEqual(self._titles(search="  ALP "), ["Alpha"])
        self.assertEqual(self._titles(genre="Drama", status=WatchFilter.UNWATCHED), ["b-side"])
        self.assertEqual(self._titles(year=2001), ["Alpha"])
        self.assertEqual(self._titles(status=WatchFilter.UNWATCHED, min_rating=1), [])

    def test_input_is_not_mutated(self):
        before = [m.id for m in self.movies]
        self._titles(sort=MovieSort.TITLE)
        self.assertEqual([m.id for m in self.movies], before)
