# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
MongoDB service layer with connection pooling and bounded operation timeouts.
"""

import os
import logging
from typing import Dict, Optional, Any
import pymongo
from pymongo import MongoClient, ASCENDING, DESCENDING
from pymongo.collection import Collection
from pymongo.database import Database
from pymongo.errors import ConnectionFailure, ServerSelectionTimeoutError

logger = logging.getLogger(__name__)


class MongoDBService:
    """MongoDB service with connection pooling for the registry and ledger."""

    def __init__(self, connection_string: str = None, database_name: str = None, timeout_ms: int = None):
        """Initialize MongoDB service with connection pooling."""
        self.connection_string = connection_string or os.getenv(
            'MONGODB_URI',
            'mongodb://localhost:27017/sewa_relief_dev'
        )
        self.database_name = database_name or os.getenv('MONGODB_DATABASE', 'sewa_relief_dev')
        self._client: Optional[MongoClient] = None
        self._database: Optional[Database] = None

        # Connection pool settings
        self.max_pool_size = int(os.getenv('MONGODB_MAX_POOL_SIZE', '10'))
        self.min_pool_size = int(os.getenv('MONGODB_MIN_POOL_SIZE', '1'))
        self.max_idle_time_ms = int(os.getenv('MONGODB_MAX_IDLE_TIME_MS', '30000'))
        self.server_selection_timeout_ms = int(os.getenv('MONGODB_SERVER_SELECTION_TIMEOUT_MS', '5000'))

        # Upper bound for any single registry or ledger call
        self.timeout_ms = timeout_ms or int(os.getenv('STORAGE_TIMEOUT_MS', '5000'))

        logger.info(f"MongoDB service initialized for database: {self.database_name}")

    @property
    def client(self) -> MongoClient:
        """Get MongoDB client with connection pooling."""
        if self._client is None:
            try:
                self._client = MongoClient(
                    self.connection_string,
                    maxPoolSize=self.max_pool_size,
                    minPoolSize=self.min_pool_size,
                    maxIdleTimeMS=self.max_idle_time_ms,
                    serverSelectionTimeoutMS=self.server_selection_timeout_ms,
                    retryWrites=False,
                    retryReads=True
                )
                logger.info("MongoDB client created")
            except (ConnectionFailure, ServerSelectionTimeoutError) as e:
                logger.error(f"Failed to connect to MongoDB: {e}")
                raise

        return self._client

    @property
    def database(self) -> Database:
        """Get MongoDB database."""
        if self._database is None:
            self._database = self.client[self.database_name]
        return self._database

    def get_collection(self, collection_name: str) -> Collection:
        """Get MongoDB collection."""
        return self.database[collection_name]

    def operation_timeout(self):
        """Context manager bounding every operation issued inside it."""
        return pymongo.timeout(self.timeout_ms / 1000.0)

    def health_check(self) -> Dict[str, Any]:
        """Check MongoDB connection health."""
        try:
            with self.operation_timeout():
                result = self.client.admin.command('ping')
                server_info = self.client.server_info()

            return {
                'status': 'healthy',
                'ping': result.get('ok') == 1,
                'version': server_info.get('version'),
                'database': self.database_name,
                'connection_pool_size': self.max_pool_size
            }
        except Exception as e:
            logger.error(f"MongoDB health check failed: {e}")
            return {
                'status': 'unhealthy',
                'error': str(e),
                'database': self.database_name
            }

    # Index Management

    def create_indexes(self) -> None:
        """Create indexes backing registry and ledger queries."""
        try:
            logger.info("Creating MongoDB indexes...")

            # Families are keyed by commitment (_id); one registration per claim
            families = self.get_collection("families")
            families.create_index("claimFingerprint", unique=True)
            families.create_index("active")

            # Distributions: latest-per-key, history and volunteer stats
            distributions = self.get_collection("distributions")
            distributions.create_index("distributionId", unique=True)
            # One record per chain position; backs the conditional append
            distributions.create_index(
                [("familyCommitment", ASCENDING), ("aidType", ASCENDING), ("sequence", ASCENDING)],
                unique=True
            )
            distributions.create_index([
                ("familyCommitment", ASCENDING),
                ("aidType", ASCENDING),
                ("timestamp", DESCENDING),
                ("sequence", DESCENDING)
            ])
            distributions.create_index([("familyCommitment", ASCENDING), ("timestamp", DESCENDING)])
            distributions.create_index([("recorder", ASCENDING), ("timestamp", DESCENDING), ("sequence", DESCENDING)])

            logger.info("MongoDB indexes created successfully")

        except Exception as e:
            logger.error(f"Failed to create MongoDB indexes: {e}")
            raise

