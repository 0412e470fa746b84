"""
Insert-only MongoDB sink for position samples and pass searches
"""
from datetime import datetime, timezone
from typing import Any, Dict

import structlog
from pymongo import MongoClient
from pymongo.errors import PyMongoError

from .errors import SinkWriteError
from .models import Position, SearchLogEntry

logger = structlog.get_logger(__name__)

# Inserts give up fast when the server is unreachable
DEFAULT_SERVER_SELECTION_TIMEOUT_MS = 2000


class MongoSink:
    def __init__(self, config: dict = None):
        if config and 'mongodb' in config:
            self.connection_string = config['mongodb']['uri']
            self.database_name = config['mongodb']['database']
            self.collection_names = config['mongodb']['collections']
            self.server_selection_timeout_ms = int(
                config['mongodb'].get('server_selection_timeout_ms', DEFAULT_SERVER_SELECTION_TIMEOUT_MS))
        else:
            raise ValueError("config dict with a mongodb section must be provided")

        self.client = None
        self.db = None
        self.iss_tracking = None
        self.satellite_searches = None

    def connect(self, database_name: str = None, client: MongoClient = None) -> bool:
        """Connect to MongoDB and bind the two log collections"""
        try:
            self.client = client or MongoClient(
                self.connection_string,
                serverSelectionTimeoutMS=self.server_selection_timeout_ms,
            )
            self.db = self.client[database_name or self.database_name]

            self.iss_tracking = self.db[self.collection_names['iss_tracking']]
            self.satellite_searches = self.db[self.collection_names['satellite_searches']]
            return True
        except PyMongoError as e:
            logger.error("mongodb_connect_failed", error=str(e))
            return False

    def close(self):
        """Close MongoDB connection"""
        if self.client:
            self.client.close()

    def insert_position(self, position: Position) -> None:
        """Insert one ISS position sample into iss_tracking"""
        doc = position.model_dump(exclude={'timestamp'})
        self._insert(self.iss_tracking, doc)

    def insert_search(self, entry: SearchLogEntry) -> None:
        """Insert one pass search event into satellite_searches"""
        doc = {
            'city_name': entry.city_name,
            'latitude': entry.latitude,
            'longitude': entry.longitude,
            'passes_found': entry.passes_found,
            'api_response_status': entry.status,
        }
        self._insert(self.satellite_searches, doc)

    def _insert(self, collection, doc: Dict[str, Any]) -> None:
        if collection is None:
            raise SinkWriteError("Sink is not connected")
        doc['created_at'] = datetime.now(timezone.utc)
        try:
            collection.insert_one(doc)
        except PyMongoError as e:
            raise SinkWriteError(f"Failed to insert into {collection.name}: {e}") from e
