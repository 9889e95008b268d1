# src/generic_repository/__init__.py

"""
Generic MongoDB Repository Library Initialization.

A partition-aware repository over MongoDB for arbitrary document types,
with blocking (pymongo) and asyncio (motor) variants of every operation.

The package logger gets a NullHandler, so nothing is emitted unless the
consuming application configures logging.
"""

import logging

# --------------------------------------------------------------------------
# Logging Setup
# --------------------------------------------------------------------------
logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())
logger.propagate = False

# --------------------------------------------------------------------------
# Core Interfaces, Models and Exceptions
# --------------------------------------------------------------------------
from .base.interfaces import NOT_SET, ReadOnlyRepository, Repository
from .base.models import (Document, KeyedDocument, PartitionedDocument,
                          PartitionedKeyedDocument)
from .base.naming import collection_name, resolve_collection_name
from .base.exceptions import (InvalidPathError, OperationCancelledError,
                              RepositoryConfigurationError,
                              UnsupportedKeyTypeError, ValidationError,
                              ValueTypeError)

# --------------------------------------------------------------------------
# Query and Update Building
# --------------------------------------------------------------------------
from .base.query import QueryBuilder, QueryOperator, QueryOptions, fields_for
from .base.update import Update

# --------------------------------------------------------------------------
# MongoDB Implementation
# --------------------------------------------------------------------------
from .mongodb.context import MongoDbContext
from .mongodb.index_handler import IndexCreationOptions
from .mongodb.translation import (Accumulator, GroupKey, avg_of, count_of,
                                  first_of, last_of, max_of, min_of, push_of,
                                  sum_of)
from .db_implementations.mongodb_repository import (MongoRepository,
                                                    ReadOnlyMongoRepository)

__all__ = [
    # Core
    "Repository",
    "ReadOnlyRepository",
    "NOT_SET",
    # Models
    "Document",
    "PartitionedDocument",
    "KeyedDocument",
    "PartitionedKeyedDocument",
    "collection_name",
    "resolve_collection_name",
    # Exceptions
    "OperationCancelledError",
    "UnsupportedKeyTypeError",
    "RepositoryConfigurationError",
    "ValidationError",
    "InvalidPathError",
    "ValueTypeError",
    # Query / Update
    "QueryBuilder",
    "QueryOptions",
    "QueryOperator",
    "fields_for",
    "Update",
    # Grouping
    "GroupKey",
    "Accumulator",
    "count_of",
    "sum_of",
    "avg_of",
    "min_of",
    "max_of",
    "first_of",
    "last_of",
    "push_of",
    # MongoDB
    "MongoDbContext",
    "IndexCreationOptions",
    "MongoRepository",
    "ReadOnlyMongoRepository",
    # Logging
    "logger",
]
