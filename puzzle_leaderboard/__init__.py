"""
Leaderboard backend for the browser puzzle game.

Run with ``uvicorn puzzle_leaderboard.app:app``.
"""

__version__ = "0.1.0"
