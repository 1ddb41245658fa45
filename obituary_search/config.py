# obituary_search/config.py
import os
from typing import List

# --- DATABASE CONFIGURATION ---
MONGO_URI: str = os.getenv("MONGO_URI", "mongodb://localhost:27017/")
#MONGO_URI: str = "mongodb://db:27017/" # for docker containers
MONGO_DB_NAME: str = os.getenv("MONGO_DB_NAME", "obituaries")

OBITUARY_COLLECTION: str = os.getenv("OBITUARY_COLLECTION", "obituaries")
RELATIONSHIP_COLLECTION: str = os.getenv("RELATIONSHIP_COLLECTION", "family_relationships")

# Snapshot sessions need a replica set (or sharded cluster) running MongoDB 5.0+.
# Turn off for a standalone development server.
MONGO_SNAPSHOT_READS: bool = os.getenv("MONGO_SNAPSHOT_READS", "true").lower() in ("1", "true", "yes")

# strength=2 compares base letters and accents but ignores case.
MONGO_COLLATION_LOCALE: str = os.getenv("MONGO_COLLATION_LOCALE", "en")
MONGO_COLLATION_STRENGTH: int = 2


# --- STORAGE BACKEND ---
# "mongo" for the real database, "memory" to serve records from MEMORY_SEED_FILE.
STORAGE_BACKEND: str = os.getenv("STORAGE_BACKEND", "mongo")
MEMORY_SEED_FILE: str = os.getenv("MEMORY_SEED_FILE", "")


# --- HTTP ---
CORS_ALLOW_ORIGINS: List[str] = [
    origin.strip() for origin in os.getenv("CORS_ALLOW_ORIGINS", "*").split(",") if origin.strip()
]

LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()


# --- SEARCH DEFAULTS ---
DEFAULT_PAGE: int = 1
DEFAULT_PAGE_SIZE: int = 10
DEFAULT_RELATIONSHIP_PAGE_SIZE: int = 50
BROWSE_PAGE_SIZE: int = 100

# Field projection returned for every search result row.
RESULT_FIELDS: List[str] = [
    "reference",
    "givenNames",
    "surname",
    "maidenName",
    "birthDate",
    "deathDate",
]
