"""Commit poller engine: org repo listing, branch/commit fetching, poll cycles."""
