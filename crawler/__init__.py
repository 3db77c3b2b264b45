"""
Content Crawler

Acquisition pipeline for the discovery service.
Schedules crawls of curated sources, extracts candidate links and
stages them for moderation.
"""

__version__ = "1.0.0"
