from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Iterator

from sqlalchemy.exc import SQLAlchemyError

from formforge.config import Settings, ensure_dirs
from formforge.errors import PersistenceError
from formforge.protocols import Storage
from formforge.repo_json import JSONStorage
from formforge.repo_sqlite import SQLiteStorage

logger = logging.getLogger(__name__)

# filelock.Timeout is an OSError; corrupt JSON stores raise ValueError.
STORAGE_ERRORS = (SQLAlchemyError, OSError, ValueError)


@contextmanager
def storage_operation(operation: str) -> Iterator[None]:
    try:
        yield
    except STORAGE_ERRORS as exc:
        logger.exception("Storage operation failed: %s", operation)
        raise PersistenceError(operation, exc) from exc


def init_storage(settings: Settings) -> Storage:
    ensure_dirs(settings)
    if settings.storage_backend == "json":
        logger.info("Using JSON storage at %s", settings.json_path)
        return JSONStorage(settings.json_path)
    logger.info("Using SQLite storage at %s", settings.sqlite_path)
    return SQLiteStorage(settings.sqlite_path)
