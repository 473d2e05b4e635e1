"""Data models shared by the synchronization engine."""
