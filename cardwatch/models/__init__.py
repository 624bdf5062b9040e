"""
Models package — export all SQLAlchemy models.
"""

from cardwatch.models.base import Base
from cardwatch.models.card import CardPriceRow, CardRow, CardSourceRow
from cardwatch.models.profile import Profile, WatchEntry

__all__ = ["Base", "CardPriceRow", "CardRow", "CardSourceRow", "Profile", "WatchEntry"]
