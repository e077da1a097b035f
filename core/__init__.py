"""Shared CLI plumbing: errors, output, config IO, dates and logging."""
