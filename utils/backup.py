"""
Append-only backup sinks that receive a flat record per newly registered user.
"""
import csv
import logging
import os
import threading

from django.conf import settings

from utils.mongo import backup_user_record

logger = logging.getLogger(__name__)

BACKUP_FIELDS = [
    'user_id', 'username', 'full_name', 'age', 'phone',
    'national_id', 'address', 'postal_code',
]


class CSVUserBackup:
    """Append user records to a CSV file, writing the header on first use."""

    _lock = threading.Lock()

    def __init__(self, path):
        self.path = path

    def write(self, record):
        with self._lock:
            is_empty = not os.path.exists(self.path) or os.path.getsize(self.path) == 0
            with open(self.path, 'a', newline='', encoding='utf-8') as fh:
                writer = csv.DictWriter(fh, fieldnames=BACKUP_FIELDS, extrasaction='ignore')
                if is_empty:
                    writer.writeheader()
                writer.writerow(record)


class MongoUserBackup:
    """Insert user records into the ``user_backups`` collection."""

    def write(self, record):
        if not backup_user_record(record):
            logger.warning("MongoDB unavailable, user %s not backed up", record.get('user_id'))


class NullUserBackup:
    def write(self, record):
        pass


def get_user_backup():
    """Build the sink selected by USER_BACKUP_BACKEND."""
    backend = settings.USER_BACKUP_BACKEND
    if backend == 'csv':
        return CSVUserBackup(settings.USER_BACKUP_CSV_PATH)
    if backend == 'mongo':
        return MongoUserBackup()
    if backend == 'none':
        return NullUserBackup()
    raise ValueError(f"Unknown USER_BACKUP_BACKEND: {backend!r}")
