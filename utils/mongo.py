"""
MongoDB side channel: request log, reservation event log, user backups and
the aggregations behind the analytics endpoints.

Everything here is best-effort. When MongoDB is disabled or unreachable the
writers do nothing and the readers return empty lists; the relational store
never depends on it.
"""
import logging
from datetime import datetime, timezone

from pymongo import ASCENDING, DESCENDING, MongoClient
from pymongo.errors import PyMongoError
from django.conf import settings

logger = logging.getLogger(__name__)

# Cached handle to the log database, filled on first use
_mongo_client = None
_mongo_db = None
_mongo_available = None

INDEXES = {
    'api_logs': [
        [('timestamp', DESCENDING)],
        [('endpoint', ASCENDING), ('timestamp', DESCENDING)],
        [('user_id', ASCENDING), ('timestamp', DESCENDING)],
        [('response_status', ASCENDING)],
    ],
    'reservation_events': [
        [('timestamp', DESCENDING)],
        [('train_number', ASCENDING), ('action', ASCENDING)],
        [('user_id', ASCENDING), ('timestamp', DESCENDING)],
    ],
}


def _utcnow():
    return datetime.now(timezone.utc)


def get_mongo_db():
    """Return the log database, or None when MongoDB is off or down."""
    global _mongo_client, _mongo_db, _mongo_available

    if not settings.MONGODB_ENABLED or _mongo_available is False:
        return None
    if _mongo_db is not None:
        return _mongo_db

    client = None
    try:
        client = MongoClient(
            settings.MONGODB_URI,
            serverSelectionTimeoutMS=3000,
            connectTimeoutMS=3000,
        )
        client.admin.command('ping')
    except PyMongoError as e:
        # Unreachable, bad URI, rejected credentials: all mean no side channel
        logger.warning("MongoDB unavailable at %s: %s", settings.MONGODB_URI, e)
        if client is not None:
            client.close()
        _mongo_available = False
        return None

    _mongo_client = client
    _mongo_db = client[settings.MONGODB_NAME]
    _mongo_available = True
    _ensure_indexes(_mongo_db)
    return _mongo_db


def reset_mongo_connection():
    """Drop the cached client; the next call reconnects with current settings."""
    global _mongo_client, _mongo_db, _mongo_available
    if _mongo_client is not None:
        _mongo_client.close()
    _mongo_client = _mongo_db = _mongo_available = None


def _ensure_indexes(db):
    try:
        for collection, indexes in INDEXES.items():
            for keys in indexes:
                db[collection].create_index(keys)
        db.user_backups.create_index([('user_id', ASCENDING)], unique=True)
    except PyMongoError as e:
        logger.warning("Could not create MongoDB indexes: %s", e)


def _insert(collection, document):
    db = get_mongo_db()
    if db is None:
        return
    try:
        db[collection].insert_one(document)
    except PyMongoError as e:
        logger.warning("Could not write to %s: %s", collection, e)


def log_api_request(endpoint, method, user_id, request_params,
                    response_status, execution_time_ms, results_count=None):
    """Record one booking API call (written by APILoggingMiddleware)."""
    entry = {
        'endpoint': endpoint,
        'method': method,
        'user_id': user_id,
        'request_params': request_params,
        'response_status': response_status,
        'execution_time_ms': execution_time_ms,
        'timestamp': _utcnow(),
    }
    if results_count is not None:
        entry['results_count'] = results_count
    _insert('api_logs', entry)


def log_reservation_event(action, user_id, train_number, reservation_id,
                          travel_date=None, berth_type=None):
    """
    Record a committed booking or cancellation.

    Args:
        action: 'booked' or 'cancelled'
        user_id: Owner of the reservation
        train_number: Train the seat was taken from or returned to
        reservation_id: Reservation primary key
        travel_date: date of travel (optional)
        berth_type: berth category (optional)
    """
    event = {
        'action': action,
        'user_id': user_id,
        'train_number': train_number,
        'reservation_id': reservation_id,
        'timestamp': _utcnow(),
    }
    if travel_date is not None:
        event['travel_date'] = str(travel_date)
    if berth_type is not None:
        event['berth_type'] = str(berth_type)
    _insert('reservation_events', event)


def backup_user_record(record):
    """
    Store a flat copy of a newly registered user.

    Returns False when MongoDB is not available so the caller can report it.
    """
    db = get_mongo_db()
    if db is None:
        return False

    db.user_backups.insert_one({**record, 'backed_up_at': _utcnow()})
    return True


def get_top_trains(limit=5):
    """
    Trains ranked by bookings in the reservation event log.

    Returns:
        List of dicts with train_number, bookings, cancellations, net_bookings
    """
    db = get_mongo_db()
    if db is None:
        return []

    def count_of(action):
        return {'$sum': {'$cond': [{'$eq': ['$action', action]}, 1, 0]}}

    pipeline = [
        {'$group': {
            '_id': '$train_number',
            'bookings': count_of('booked'),
            'cancellations': count_of('cancelled'),
        }},
        {'$project': {
            '_id': 0,
            'train_number': '$_id',
            'bookings': 1,
            'cancellations': 1,
            'net_bookings': {'$subtract': ['$bookings', '$cancellations']},
        }},
        {'$sort': {'bookings': -1, 'train_number': 1}},
        {'$limit': limit},
    ]

    try:
        return list(db.reservation_events.aggregate(pipeline))
    except PyMongoError as e:
        logger.warning("Top trains aggregation failed: %s", e)
        return []


def get_api_logs(limit=100, offset=0, endpoint=None, user_id=None,
                 status_code=None, method=None, sort='-timestamp'):
    """
    Page through the request log, newest first by default.

    Filters left as None are not applied. ``sort`` is a field name, prefixed
    with '-' for descending order.
    """
    db = get_mongo_db()
    if db is None:
        return []

    filters = {
        'endpoint': endpoint,
        'user_id': user_id,
        'response_status': status_code,
        'method': method.upper() if method else None,
    }
    query = {field: value for field, value in filters.items() if value}
    direction = DESCENDING if sort.startswith('-') else ASCENDING

    try:
        cursor = db.api_logs.find(query).sort(sort.lstrip('-'), direction).skip(offset).limit(limit)
        logs = []
        for entry in cursor:
            entry['_id'] = str(entry['_id'])
            if isinstance(entry.get('timestamp'), datetime):
                entry['timestamp'] = entry['timestamp'].isoformat()
            logs.append(entry)
        return logs
    except PyMongoError as e:
        logger.warning("Reading API logs failed: %s", e)
        return []
