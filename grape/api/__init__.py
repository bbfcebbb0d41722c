"""API router package for Grape backend."""

from grape.api import auth, comments, notifications, posts, search, users

__all__ = ["auth", "comments", "notifications", "posts", "search", "users"]
