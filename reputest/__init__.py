"""reputest: X/Twitter good-vibes and megajoules ingestion bot."""

__version__ = "0.4.0"
