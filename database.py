from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from bson import ObjectId
from bson.errors import InvalidId
from pymongo import ASCENDING, MongoClient
from pymongo.database import Database
from pymongo.errors import OperationFailure

from app_logging import get_logger
from config import get_settings

logger = get_logger("academic.database", component="database")

STUDENTS = "students"
SUBJECTS = "subjects"
CLASSES = "classes"

# collection -> field that carries its sequential identifier
UNIQUE_CODE_FIELDS = {
    STUDENTS: "nim",
    SUBJECTS: "code",
    CLASSES: "code",
}

client: Optional[MongoClient] = None
_db: Optional[Database] = None


def connect() -> Database:
    global client, _db
    settings = get_settings()
    client = MongoClient(settings.database_url)
    _db = client[settings.database_name]
    logger.info("database_connected", database=settings.database_name)
    return _db


def set_database(database: Optional[Database]) -> None:
    """Swap the active database (tests inject a mongomock database here)."""
    global _db
    _db = database


def get_db() -> Database:
    if _db is None:
        raise RuntimeError("Database not initialized")
    return _db


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _to_str_id(doc: Dict[str, Any]) -> Dict[str, Any]:
    if not doc:
        return doc
    doc = dict(doc)
    if doc.get("_id"):
        doc["id"] = str(doc["_id"])
        del doc["_id"]
    return doc


def _object_id(doc_id: str) -> Optional[ObjectId]:
    try:
        return ObjectId(doc_id)
    except (InvalidId, TypeError):
        return None


def ensure_indexes() -> None:
    db = get_db()
    for collection_name, field in UNIQUE_CODE_FIELDS.items():
        try:
            db[collection_name].create_index([(field, ASCENDING)], unique=True, name=f"uniq_{field}")
        except OperationFailure as exc:
            # Existing duplicates block the index; generation still serializes in-process.
            logger.warning(
                "unique_index_skipped",
                collection=collection_name,
                field=field,
                error=str(exc),
            )


def create_document(collection_name: str, data: Dict[str, Any]) -> str:
    db = get_db()
    data = dict(data)
    data.pop("id", None)
    now = _now()
    if "created_at" not in data:
        data["created_at"] = now
    data["updated_at"] = now
    result = db[collection_name].insert_one(data)
    return str(result.inserted_id)


def get_documents(collection_name: str, filter_dict: Optional[Dict[str, Any]] = None, limit: int = 0) -> List[Dict[str, Any]]:
    db = get_db()
    filter_dict = filter_dict or {}
    cursor = db[collection_name].find(filter_dict)
    if limit:
        cursor = cursor.limit(int(limit))
    return [_to_str_id(doc) for doc in cursor]


def find_first(collection_name: str, filter_dict: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    docs = get_documents(collection_name, filter_dict, limit=1)
    return docs[0] if docs else None


def get_field_values(collection_name: str, field: str) -> List[Any]:
    """Return one field from every document in the collection."""
    db = get_db()
    return [doc.get(field) for doc in db[collection_name].find({}, {field: 1})]


def get_document_by_id(collection_name: str, doc_id: str) -> Optional[Dict[str, Any]]:
    oid = _object_id(doc_id)
    if oid is None:
        return None
    doc = get_db()[collection_name].find_one({"_id": oid})
    return _to_str_id(doc) if doc else None


def count_documents(collection_name: str) -> int:
    return get_db()[collection_name].count_documents({})


def replace_document(collection_name: str, doc_id: str, data: Dict[str, Any]) -> bool:
    """Replace a document wholesale, keeping its id and creation time."""
    oid = _object_id(doc_id)
    if oid is None:
        return False
    db = get_db()
    existing = db[collection_name].find_one({"_id": oid}, {"created_at": 1})
    if existing is None:
        return False
    data = dict(data)
    data.pop("id", None)
    data.pop("_id", None)
    data["created_at"] = existing.get("created_at", _now())
    data["updated_at"] = _now()
    result = db[collection_name].replace_one({"_id": oid}, data)
    return result.matched_count > 0


def update_document(collection_name: str, doc_id: str, updates: Dict[str, Any]) -> bool:
    oid = _object_id(doc_id)
    if oid is None:
        return False
    updates = dict(updates)
    updates["updated_at"] = _now()
    result = get_db()[collection_name].update_one({"_id": oid}, {"$set": updates})
    return result.matched_count > 0


def delete_document(collection_name: str, doc_id: str) -> bool:
    oid = _object_id(doc_id)
    if oid is None:
        return False
    result = get_db()[collection_name].delete_one({"_id": oid})
    return result.deleted_count > 0
