#!/usr/bin/env python3
"""
Create the Atlas vector search index used for retrieval over workspace data.

Requires a MongoDB Atlas cluster (6.0+) with search enabled and DATABASE_URL
set in the environment or .env. Any existing `vector_index` is dropped and
recreated.

Usage:
    python create_vector_index.py
"""

import logging
import sys

from pymongo import MongoClient
from pymongo.errors import PyMongoError
from pymongo.operations import SearchIndexModel

from config import settings
from database import VECTOR_DOCUMENTS

logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(levelname)s - %(message)s")
logger = logging.getLogger(__name__)

INDEX_NAME = "vector_index"
EMBEDDING_DIMENSIONS = 1536

INDEX_DEFINITION = {
    "mappings": {
        "dynamic": True,
        "fields": {
            "embedding": {
                "dimensions": EMBEDDING_DIMENSIONS,
                "similarity": "cosine",
                "type": "knnVector",
            },
            "workspaceId": {"type": "objectId"},
            "content": {"type": "string"},
        },
    }
}


def create_vector_search_index(client: MongoClient, database_name: str):
    db = client[database_name]

    if VECTOR_DOCUMENTS not in db.list_collection_names(filter={"name": VECTOR_DOCUMENTS}):
        logger.info(f"Creating {VECTOR_DOCUMENTS} collection...")
        db.create_collection(VECTOR_DOCUMENTS)

    collection = db[VECTOR_DOCUMENTS]
    if any(index.get("name") == INDEX_NAME for index in collection.list_search_indexes()):
        logger.info("Vector search index already exists. Dropping it to recreate...")
        try:
            collection.drop_search_index(INDEX_NAME)
        except PyMongoError as e:
            logger.warning(f"Could not drop existing index, proceeding anyway: {e}")

    logger.info("Creating vector search index...")
    result = collection.create_search_index(SearchIndexModel(definition=INDEX_DEFINITION, name=INDEX_NAME))
    logger.info(f"Vector search index created successfully: {result}")
    return result


def main() -> int:
    if not settings.DATABASE_URL:
        logger.error("DATABASE_URL is not defined")
        return 1

    client = MongoClient(settings.DATABASE_URL)
    try:
        logger.info("Connecting to MongoDB...")
        create_vector_search_index(client, settings.DATABASE_NAME)
    except PyMongoError as e:
        logger.error(f"Error creating vector search index: {e}")
        return 1
    finally:
        client.close()
        logger.info("Connection closed")
    return 0


if __name__ == "__main__":
    sys.exit(main())
