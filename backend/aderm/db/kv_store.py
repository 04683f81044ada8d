# aderm/db/kv_store.py

"""
Key-value store backends.

Records are opaque JSON objects addressed by string keys with a type prefix
(``user:``, ``request:``, ``document:`` ...). Every ``set`` replaces the whole
value at a key; callers read-modify-write.
"""

from __future__ import annotations

import json
import threading
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

import boto3
from boto3.dynamodb.conditions import Attr
from botocore.exceptions import ClientError

from aderm.core.logger import logger


class KeyValueStore(ABC):
    """get / set / delete / get_by_prefix over JSON-serializable dicts."""

    @abstractmethod
    def get(self, key: str) -> Optional[Dict[str, Any]]:
        ...

    @abstractmethod
    def set(self, key: str, value: Dict[str, Any]) -> None:
        ...

    @abstractmethod
    def delete(self, key: str) -> None:
        ...

    @abstractmethod
    def get_by_prefix(self, prefix: str) -> List[Dict[str, Any]]:
        """Values whose key starts with ``prefix``, ordered by key."""

    def close(self) -> None:
        pass


class InMemoryKVStore(KeyValueStore):
    """Process-local store for development and tests."""

    def __init__(self) -> None:
        self._data: Dict[str, str] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            raw = self._data.get(key)
        return json.loads(raw) if raw is not None else None

    def set(self, key: str, value: Dict[str, Any]) -> None:
        # Round-trip through JSON so stored records never alias caller objects
        raw = json.dumps(value, default=str)
        with self._lock:
            self._data[key] = raw

    def delete(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)

    def get_by_prefix(self, prefix: str) -> List[Dict[str, Any]]:
        with self._lock:
            items = sorted((k, v) for k, v in self._data.items() if k.startswith(prefix))
        return [json.loads(v) for _, v in items]

    def keys(self, prefix: str = "") -> List[str]:
        with self._lock:
            return sorted(k for k in self._data if k.startswith(prefix))

    def snapshot(self) -> Dict[str, Dict[str, Any]]:
        with self._lock:
            return {k: json.loads(v) for k, v in self._data.items()}


class DynamoDBKVStore(KeyValueStore):
    """
    DynamoDB-backed store.

    Table layout: partition key ``key`` (S), JSON document in ``value`` (S).
    Prefix reads are paginated scans filtered with ``begins_with``.
    """

    def __init__(
        self,
        table_name: str,
        region_name: str,
        aws_access_key_id: Optional[str] = None,
        aws_secret_access_key: Optional[str] = None,
    ):
        self.dynamodb = boto3.resource(
            'dynamodb',
            region_name=region_name,
            aws_access_key_id=aws_access_key_id or None,
            aws_secret_access_key=aws_secret_access_key or None,
        )
        self.table = self.dynamodb.Table(table_name)

    def get(self, key: str) -> Optional[Dict[str, Any]]:
        try:
            response = self.table.get_item(Key={'key': key})
        except ClientError as e:
            logger.error(f"KV get failed for {key}: {str(e)}")
            raise
        item = response.get('Item')
        if not item:
            return None
        return json.loads(item['value'])

    def set(self, key: str, value: Dict[str, Any]) -> None:
        try:
            self.table.put_item(Item={'key': key, 'value': json.dumps(value, default=str)})
        except ClientError as e:
            logger.error(f"KV set failed for {key}: {str(e)}")
            raise

    def delete(self, key: str) -> None:
        try:
            self.table.delete_item(Key={'key': key})
        except ClientError as e:
            logger.error(f"KV delete failed for {key}: {str(e)}")
            raise

    def get_by_prefix(self, prefix: str) -> List[Dict[str, Any]]:
        items: List[Dict[str, Any]] = []
        scan_kwargs: Dict[str, Any] = {'FilterExpression': Attr('key').begins_with(prefix)}
        try:
            while True:
                response = self.table.scan(**scan_kwargs)
                items.extend(response.get('Items', []))
                last_key = response.get('LastEvaluatedKey')
                if not last_key:
                    break
                scan_kwargs['ExclusiveStartKey'] = last_key
        except ClientError as e:
            logger.error(f"KV prefix scan failed for {prefix}: {str(e)}")
            raise
        items.sort(key=lambda item: item['key'])
        return [json.loads(item['value']) for item in items]


def build_kv_store(settings) -> KeyValueStore:
    backend = settings.KV_BACKEND
    if backend == "memory":
        return InMemoryKVStore()
    if backend == "dynamodb":
        return DynamoDBKVStore(
            table_name=settings.DYNAMODB_TABLE_NAME,
            region_name=settings.AWS_REGION,
            aws_access_key_id=settings.AWS_ACCESS_KEY_ID,
            aws_secret_access_key=settings.AWS_SECRET_ACCESS_KEY,
        )
    raise ValueError(f"Unsupported KV_BACKEND: {backend}")
