"""
Happening Now event aggregation service

This package provides:
- Provider adapters for Ticketmaster, PredictHQ and community-submitted events
- Cross-provider deduplication (canonical keys plus fuzzy matching)
- Relevance ranking by source trust, recency and distance
- A time-bucketed cache in front of the aggregation pass
"""

__version__ = "1.0.0"
