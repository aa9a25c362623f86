"""Movie watchlist API: personal to-watch/watched lists on MongoDB."""

__version__ = "1.0.0"
