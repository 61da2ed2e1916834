"""
fintube-cli: fetch media with yt-dlp into a media library, optionally trimming
non-music sections and retagging the result.
"""

__version__ = "0.3.0"
