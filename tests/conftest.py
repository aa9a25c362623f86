import os

# Settings are read once at import time, so the test environment has to be
# in place before any watchlist module is imported.
os.environ.setdefault("JWT_SECRET", "test-jwt-secret")
os.environ.setdefault("ADMIN_SETUP_SECRET", "test-setup-secret")
os.environ.setdefault("ALLOW_GUEST", "true")
os.environ.setdefault("LOG_LEVEL", "WARNING")
