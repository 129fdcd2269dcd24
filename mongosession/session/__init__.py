"""
Server-side sessions persisted in MongoDB.

This package ties a signed and encrypted client token to a session record
stored in a MongoDB collection, with TTL expiry handled by the database.
"""

from mongosession.session.codec import (
    SecureCodec,
    codecs_from_pairs,
    decode_multi,
    encode_multi,
)
from mongosession.session.models import Options, Session, SessionRecord
from mongosession.session.mongo_record_store import MongoRecordStore
from mongosession.session.mongo_store import MongoStore
from mongosession.session.registry import get_registry, save_sessions
from mongosession.session.store import RecordStore, SessionStore
from mongosession.session.token import CookieToken, HeaderToken, TokenTransport

__all__ = [
    "SecureCodec",
    "codecs_from_pairs",
    "decode_multi",
    "encode_multi",
    "Options",
    "Session",
    "SessionRecord",
    "MongoRecordStore",
    "MongoStore",
    "get_registry",
    "save_sessions",
    "RecordStore",
    "SessionStore",
    "CookieToken",
    "HeaderToken",
    "TokenTransport",
]
