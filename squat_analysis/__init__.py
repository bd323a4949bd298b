"""Squat form video analysis."""
