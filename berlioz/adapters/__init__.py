"""Platform adapters and outbound fetchers for Slack."""

from berlioz.adapters.base import BasePlatformAdapter
from berlioz.adapters.media_fetcher import MediaFetcher
from berlioz.adapters.slack import SlackAdapter

__all__ = ["BasePlatformAdapter", "MediaFetcher", "SlackAdapter"]
