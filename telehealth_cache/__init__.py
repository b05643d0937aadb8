"""
Telehealth cache: cache-aside, content-addressed AI caching and sliding-window
rate limiting over a remote KV store, with fail-open behavior throughout.
"""

__version__ = "1.0.0"
