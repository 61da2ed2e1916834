"""
Remote API Layer.

This package handles communication with the SponsorBlock skip-segment API.
"""

from .sponsorblock import SegmentFetcher, decode_segments

__all__ = ["SegmentFetcher", "decode_segments"]
