from pymongo import ASCENDING, MongoClient

import config

client = MongoClient(config.MONGO_URL, tz_aware=True)
db = client[config.DATABASE_NAME]


def get_db():
    """FastAPI dependency returning the active database handle."""
    return db


def ensure_indexes(database):
    database["user"].create_index([("email", ASCENDING)], unique=True)
    database["file"].create_index([("owner", ASCENDING), ("location", ASCENDING)])
    database["file"].create_index([("is_starred", ASCENDING)])
    database["file"].create_index([("shared_with", ASCENDING)])
