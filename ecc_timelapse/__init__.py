"""Sync printer timelapse frames over ssh and render them to mp4."""

__version__ = "0.1.0"
