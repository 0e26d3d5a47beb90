"""
App toolkit: embedded SQLite store for local applications.

Creates the application's single-file store on first run, evolves it through
numbered migrations applied exactly once each, and offers convention-based
asynchronous CRUD over plain record types.
"""

__version__ = "0.1.0"
