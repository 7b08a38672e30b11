"""Configuration settings for the chunk vault."""

import os
from common.constants import DEFAULT_CHUNK_SIZE_BYTES


DATABASE_PATH = os.environ.get("VAULT_DATABASE_PATH", "app-data/store.db")

STORAGE_PATH = os.environ.get("VAULT_STORAGE_PATH", "storage")

DEFAULT_CHUNK_SIZE = int(os.environ.get("VAULT_CHUNK_SIZE", str(DEFAULT_CHUNK_SIZE_BYTES)))
