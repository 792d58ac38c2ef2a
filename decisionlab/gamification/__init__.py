"""Streaks, badges and progress state kept on the UserStat row."""
