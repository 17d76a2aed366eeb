"""Conduit: RealWorld social blogging backend on FastAPI and SQLAlchemy."""

__version__ = "1.0.0"
