"""
mongosession: server-side sessions stored in MongoDB.

The session state lives in a MongoDB collection; the client only holds a
signed and encrypted token naming the session.
"""

from mongosession.session import MongoStore, Options, Session, save_sessions

__version__ = "1.0.0"

__all__ = ["MongoStore", "Options", "Session", "save_sessions", "__version__"]
