"""
posts/models.py -- Domain dataclass for forum posts.

Pure data container with zero logic. PostStore in posts/store.py does the work.
"""

from dataclasses import dataclass
from typing import Optional


@dataclass
class Post:
    title: str
    id: Optional[int] = None
    created_at: str = ""  # ISO 8601, set by store on insert
    updated_at: str = ""  # ISO 8601, refreshed on update
