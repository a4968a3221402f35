"""
MongoDB storage for harvested quotes.

Quotes are keyed by their content hash (`_id`). A page batch is reconciled
inside one transaction, so the deployment must support transactions
(a single-node replica set is enough).
"""
from typing import Any, Dict, Iterable

import structlog
from pymongo import ASCENDING, MongoClient
from pymongo.errors import PyMongoError

from .errors import PersistenceError
from .models import BatchResult, Quote

logger = structlog.get_logger(__name__)


class MongoStorage:
    def __init__(self, config: dict = None, client: MongoClient = None):
        if config and 'mongodb' in config:
            self.connection_string = config['mongodb'].get('uri')
            self.database_name = config['mongodb'].get('database', 'bashim')
            self.collection_name = config['mongodb'].get('collection', 'quotes')
        else:
            raise ValueError("Config dict with a mongodb section must be provided")

        self.client = client
        self.db = None
        self.quotes = None

    def connect(self) -> bool:
        """Connect to MongoDB and resolve the quotes collection"""
        try:
            if self.client is None:
                self.client = MongoClient(self.connection_string)
            self.client.admin.command('ping')
            self.db = self.client[self.database_name]
            self.quotes = self.db[self.collection_name]
        except PyMongoError as e:
            raise PersistenceError(f"Failed to connect to MongoDB: {e}") from e
        logger.info("storage_connected", database=self.database_name, collection=self.collection_name)
        return True

    def bootstrap(self):
        """Create the quotes collection and its indexes if they are missing.

        Collections cannot be created implicitly inside a transaction on
        every server version, so this must run before the first batch.
        """
        try:
            if self.collection_name not in self.db.list_collection_names():
                self.db.create_collection(self.collection_name)
                logger.info("collection_created", collection=self.collection_name)
            self.quotes.create_index([("quote_date_time", ASCENDING)], name="IX_quotes_quote_date_time")
        except PyMongoError as e:
            raise PersistenceError(f"Failed to bootstrap collection {self.collection_name}: {e}") from e

    def close(self):
        """Close MongoDB connection"""
        if self.client:
            self.client.close()

    @staticmethod
    def _to_document(quote: Quote) -> Dict[str, Any]:
        return {
            '_id': quote.content_hash,
            'content': quote.text,
            'quote_date_time': quote.quote_date_time,
            'votes': quote.votes,
        }

    def save_or_update(self, quotes: Iterable[Quote]) -> BatchResult:
        """Upsert a batch of quotes by content hash as one atomic unit.

        New hashes are inserted, known ones get their content, votes and
        date overwritten. Either the whole batch commits or none of it does.
        """
        quotes = list(quotes)
        if not quotes:
            return BatchResult(size=0)

        inserted = 0
        updated = 0
        try:
            with self.client.start_session() as session:
                with session.start_transaction():
                    for quote in quotes:
                        existing = self.quotes.find_one({'_id': quote.content_hash}, {'_id': 1}, session=session)
                        if existing is None:
                            self.quotes.insert_one(self._to_document(quote), session=session)
                            inserted += 1
                        else:
                            self.quotes.update_one(
                                {'_id': quote.content_hash},
                                {'$set': {
                                    'content': quote.text,
                                    'votes': quote.votes,
                                    'quote_date_time': quote.quote_date_time,
                                }},
                                session=session,
                            )
                            updated += 1
        except (PyMongoError, OverflowError) as e:
            # bson refuses ints wider than 8 bytes with a plain OverflowError
            raise PersistenceError(f"Batch of {len(quotes)} quotes rolled back: {e}") from e

        return BatchResult(size=len(quotes), inserted=inserted, updated=updated)

    def count(self) -> int:
        """Number of stored quotes"""
        try:
            return self.quotes.count_documents({})
        except PyMongoError as e:
            raise PersistenceError(f"Failed to count quotes: {e}") from e
