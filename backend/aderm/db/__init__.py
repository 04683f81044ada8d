# backend/aderm/db/__init__.py

"""
Database Module

Contains the key-value store backends, typed repositories and Pydantic schemas.
"""

from aderm.db.kv_store import KeyValueStore, InMemoryKVStore, DynamoDBKVStore, build_kv_store
from aderm.db.repositories import Repositories
from aderm.db import schemas

__all__ = [
    'KeyValueStore',
    'InMemoryKVStore',
    'DynamoDBKVStore',
    'build_kv_store',
    'Repositories',
    'schemas',
]
