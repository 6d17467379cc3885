"""Instructor- and student-facing session API."""
