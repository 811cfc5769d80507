"""Data import jobs."""
