# watchlist/models/activity.py

from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field


class ActivityAction(str, Enum):
    """Kinds of user actions recorded in the activity log."""
    ADD = "add"
    UPDATE = "update"
    DELETE = "delete"
    WATCH = "watch"
    UNWATCH = "unwatch"
    RATE = "rate"


class ActivityLogRead(BaseModel):
    id: str
    userId: str
    userName: str
    action: ActivityAction
    movieId: Optional[str] = None
    movieTitle: Optional[str] = None
    details: Optional[str] = None
    timestamp: datetime = Field(..., description="UTC time the action was recorded.")


class ActivityLogPage(BaseModel):
    logs: List[ActivityLogRead]
    total: int
    limit: int
    skip: int
