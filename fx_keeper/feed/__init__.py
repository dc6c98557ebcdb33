"""Upstream quote feeds."""

from __future__ import annotations

from fx_keeper.feed.client import DEFAULT_FEED_URL, RateFeedClient
from fx_keeper.feed.models import FeedSnapshot
from fx_keeper.feed.strategy import RateFeed

__all__ = ["DEFAULT_FEED_URL", "FeedSnapshot", "RateFeed", "RateFeedClient"]
