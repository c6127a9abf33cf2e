"""
DynamoDB document store.

Single-table layout: partition key `collection`, sort key `id`. Every
collection is one partition, so listing a collection is a paged Query and the
snapshot order is the sort-key order.
"""

import logging
import random
import time
from decimal import Decimal
from typing import Any, Dict, Optional

import boto3
from boto3.dynamodb.conditions import Key
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from ..exceptions import NotFoundError, StoreError
from .base import DocumentStore, Snapshot

logger = logging.getLogger("datasprint.store.dynamodb")

RETRYABLE_ERRORS = {
    'ProvisionedThroughputExceededException',
    'ThrottlingException',
    'InternalServerError',
    'TransactionCanceledException',
}

_BOTO_CONFIG = Config(connect_timeout=5, read_timeout=15, retries={'max_attempts': 3})


def retry_dynamo(op_fn, max_attempts=5, base_delay=0.05):
    attempt = 0
    while True:
        try:
            return op_fn()
        except ClientError as e:
            code = e.response.get('Error', {}).get('Code')
            if code in RETRYABLE_ERRORS and attempt < max_attempts - 1:
                sleep_time = (base_delay * (2 ** attempt)) * (1 + random.random() * 0.5)
                sleep_time = min(sleep_time, 0.8)
                logger.warning(f"DynamoDB error {code}, attempt {attempt+1}/{max_attempts}, sleeping {sleep_time:.3f}s")
                time.sleep(sleep_time)
                attempt += 1
                continue
            raise


def to_dynamo(value):
    """Convert floats (recursively) to Decimal, which DynamoDB requires."""
    if isinstance(value, float):
        return Decimal(str(value))
    if isinstance(value, dict):
        return {k: to_dynamo(v) for k, v in value.items()}
    if isinstance(value, list):
        return [to_dynamo(v) for v in value]
    return value


def from_dynamo(value):
    if isinstance(value, Decimal):
        f = float(value)
        if f.is_integer():
            return int(f)
        return f
    if isinstance(value, dict):
        return {k: from_dynamo(v) for k, v in value.items()}
    if isinstance(value, (list, set)):
        return [from_dynamo(v) for v in value]
    return value


def _error_code(error: ClientError) -> Optional[str]:
    return error.response.get('Error', {}).get('Code')


class DynamoDBDocumentStore(DocumentStore):
    """
    Document store backed by one DynamoDB table.

    Subscribers are notified about writes made through this store instance.
    """

    def __init__(self, table_name: str, region: Optional[str] = None,
                 session: Optional[boto3.session.Session] = None, table=None,
                 read_consistent: bool = True):
        """
        Args:
            table_name: DynamoDB table with keys (collection, id)
            region: AWS region, defaults to the session's region
            session: Optional boto3 session (e.g. built from a credential bundle)
            table: Optional pre-built Table resource, mainly for tests
            read_consistent: Use strongly consistent reads
        """
        super().__init__()
        self.table_name = table_name
        self.read_consistent = read_consistent
        if table is None:
            session = session or boto3.session.Session(region_name=region)
            table = session.resource('dynamodb', region_name=region, config=_BOTO_CONFIG).Table(table_name)
        self.table = table
        logger.info(f"Using DynamoDB table: {table_name} | READ_CONSISTENT={read_consistent}")

    def _call(self, op_fn, what: str):
        try:
            return retry_dynamo(op_fn)
        except ClientError as e:
            raise StoreError(f"DynamoDB {what} failed: {_error_code(e) or e}") from e
        except BotoCoreError as e:
            raise StoreError(f"DynamoDB {what} failed: {e}") from e

    @staticmethod
    def _strip(item: Dict[str, Any]) -> Dict[str, Any]:
        doc = from_dynamo(item)
        doc.pop('collection', None)
        return doc

    def _get(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        resp = self._call(lambda: self.table.get_item(
            Key={'collection': collection, 'id': doc_id},
            ConsistentRead=self.read_consistent,
        ), 'get_item')
        item = resp.get('Item')
        return self._strip(item) if item else None

    def _list(self, collection: str) -> Snapshot:
        items = []
        query_kwargs = {
            'KeyConditionExpression': Key('collection').eq(collection),
            'ConsistentRead': self.read_consistent,
        }
        while True:
            resp = self._call(lambda: self.table.query(**query_kwargs), 'query')
            items.extend(resp.get('Items', []))
            lek = resp.get('LastEvaluatedKey')
            if not lek:
                break
            query_kwargs['ExclusiveStartKey'] = lek
        return [self._strip(item) for item in items]

    def _put(self, collection: str, doc_id: str, record: Dict[str, Any]) -> None:
        item = to_dynamo(dict(record, id=doc_id, collection=collection))
        self._call(lambda: self.table.put_item(Item=item), 'put_item')

    def _update(self, collection: str, doc_id: str, changes: Dict[str, Any]) -> None:
        names = {'#id': 'id'}
        values = {}
        assignments = []
        for i, (name, value) in enumerate(changes.items()):
            names[f'#f{i}'] = name
            values[f':v{i}'] = to_dynamo(value)
            assignments.append(f'#f{i} = :v{i}')
        try:
            retry_dynamo(lambda: self.table.update_item(
                Key={'collection': collection, 'id': doc_id},
                UpdateExpression='SET ' + ', '.join(assignments),
                ConditionExpression='attribute_exists(#id)',
                ExpressionAttributeNames=names,
                ExpressionAttributeValues=values,
            ))
        except ClientError as e:
            if _error_code(e) == 'ConditionalCheckFailedException':
                raise NotFoundError(f"Document {collection}/{doc_id} not found") from e
            raise StoreError(f"DynamoDB update_item failed: {_error_code(e) or e}") from e
        except BotoCoreError as e:
            raise StoreError(f"DynamoDB update_item failed: {e}") from e

    def _increment(self, collection: str, doc_id: str, field_name: str, amount: int) -> int:
        # ADD is applied server side, so concurrent increments never overwrite each other.
        try:
            resp = retry_dynamo(lambda: self.table.update_item(
                Key={'collection': collection, 'id': doc_id},
                UpdateExpression='ADD #field :inc',
                ConditionExpression='attribute_exists(#id)',
                ExpressionAttributeNames={'#field': field_name, '#id': 'id'},
                ExpressionAttributeValues={':inc': amount},
                ReturnValues='UPDATED_NEW',
            ))
        except ClientError as e:
            if _error_code(e) == 'ConditionalCheckFailedException':
                raise NotFoundError(f"Document {collection}/{doc_id} not found") from e
            raise StoreError(f"DynamoDB update_item failed: {_error_code(e) or e}") from e
        except BotoCoreError as e:
            raise StoreError(f"DynamoDB update_item failed: {e}") from e
        return from_dynamo(resp.get('Attributes', {}).get(field_name, 0))

    def _delete(self, collection: str, doc_id: str) -> bool:
        resp = self._call(lambda: self.table.delete_item(
            Key={'collection': collection, 'id': doc_id},
            ReturnValues='ALL_OLD',
        ), 'delete_item')
        return 'Attributes' in resp

    def health(self) -> Dict[str, Any]:
        status = {'tableName': self.table_name}
        try:
            self.table.load()
            status['tableStatus'] = self.table.table_status
        except (ClientError, BotoCoreError) as e:
            status['error'] = str(e)
        return status
