"""Object storage and message queue adapters backed by AWS."""

from __future__ import annotations

import json
import logging
from typing import Any, Mapping, Protocol

import boto3
from botocore.exceptions import ClientError

from .engine.errors import ObjectNotFound

logger = logging.getLogger(__name__)

_MISSING_KEY_CODES = {'NoSuchKey', '404', 'NotFound'}


class ObjectStore(Protocol):
    def get_json(self, bucket: str, key: str) -> Any:
        ...

    def put_json(self, bucket: str, key: str, payload: Any) -> None:
        ...

    def delete(self, bucket: str, key: str) -> None:
        ...


class MessageQueue(Protocol):
    def send_message(self, queue_url: str, body: Mapping[str, Any]) -> Any:
        ...


class S3ObjectStore:
    """JSON documents in S3. Missing keys raise :class:`ObjectNotFound`."""

    def __init__(self, client: Any = None) -> None:
        self.client = client or boto3.client('s3')

    def get_json(self, bucket: str, key: str) -> Any:
        try:
            response = self.client.get_object(Bucket=bucket, Key=key)
        except ClientError as exc:
            if exc.response.get('Error', {}).get('Code') in _MISSING_KEY_CODES:
                raise ObjectNotFound(key) from exc
            raise
        body = response['Body'].read()
        return json.loads(body)

    def put_json(self, bucket: str, key: str, payload: Any) -> None:
        self.client.put_object(
            Bucket=bucket,
            Key=key,
            Body=json.dumps(payload).encode('utf-8'),
            ContentType='application/json',
        )

    def delete(self, bucket: str, key: str) -> None:
        self.client.delete_object(Bucket=bucket, Key=key)


class SqsMessageQueue:
    """Send JSON messages to SQS queues."""

    def __init__(self, client: Any = None) -> None:
        self.client = client or boto3.client('sqs')

    def send_message(self, queue_url: str, body: Mapping[str, Any]) -> Any:
        response = self.client.send_message(QueueUrl=queue_url, MessageBody=json.dumps(body))
        logger.debug('Sent message %s to %s', response.get('MessageId'), queue_url)
        return response
