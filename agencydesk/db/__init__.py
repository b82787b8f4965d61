"""Database engine, sessions and Redis."""
