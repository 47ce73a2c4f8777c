"""Notification engine: commit summaries to a chat webhook."""
