"""Newsreel: breaking-news ingestion, dedup and source-health pipeline."""

__version__ = "0.1.0"
