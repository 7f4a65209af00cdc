"""Moderation log entries, the durable moderation log file and batched delivery."""
