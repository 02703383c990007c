"""
Business operations for students, subjects and classes.

Every operation takes a plain dict payload and returns an outcome from
``results``; nothing here raises for a bad payload or a missing record.
"""
from typing import Any, Callable, Dict, List, Optional

from pymongo.errors import DuplicateKeyError

from app_logging import get_logger
from codes import (
    CLASS_CODE_PREFIX,
    generate_class_code,
    generate_nim,
    generate_subject_code,
    lookup_major,
    nim_prefix,
    scope_lock,
)
from config import MAJORS, get_settings
from database import (
    CLASSES,
    STUDENTS,
    SUBJECTS,
    count_documents,
    create_document,
    delete_document,
    get_document_by_id,
    get_documents,
    get_field_values,
    replace_document,
    update_document,
)
from results import Found, Invalid, NotFound, Outcome
from schemas import StudentStatus

logger = get_logger("academic.services", component="services")

MAX_CODE_ATTEMPTS = 3


def _blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _strip_meta(payload: Dict[str, Any]) -> Dict[str, Any]:
    data = dict(payload)
    for key in ("id", "_id", "created_at", "updated_at"):
        data.pop(key, None)
    return data


def _allocate(
    collection: str,
    field: str,
    scope: str,
    generate: Callable[[], str],
    write: Callable[[str], str],
) -> Outcome[Dict[str, Any]]:
    """Generate a sequential code and persist it while holding the scope lock.

    A duplicate key means another process took the same code between our scan
    and our write, so scan again.
    """
    for attempt in range(1, MAX_CODE_ATTEMPTS + 1):
        with scope_lock(scope):
            code = generate()
            try:
                doc_id = write(code)
            except DuplicateKeyError:
                logger.warning(
                    "code_collision",
                    collection=collection,
                    field=field,
                    code=code,
                    attempt=attempt,
                )
                continue
        return Found(get_document_by_id(collection, doc_id))
    return Invalid(f"Could not allocate a unique {field}", {field: "Identifier collision, please retry"})


def _insert(collection: str, field: str, data: Dict[str, Any]) -> Outcome[Dict[str, Any]]:
    try:
        doc_id = create_document(collection, data)
    except DuplicateKeyError:
        return Invalid(f"{field} already exists", {field: f"{data.get(field)} is already in use"})
    return Found(get_document_by_id(collection, doc_id))


def _replace(collection: str, field: str, doc_id: str, data: Dict[str, Any]) -> Outcome[Dict[str, Any]]:
    try:
        replace_document(collection, doc_id, data)
    except DuplicateKeyError:
        return Invalid(f"{field} already exists", {field: f"{data.get(field)} is already in use"})
    return Found(get_document_by_id(collection, doc_id))


# Students


def list_students() -> List[Dict[str, Any]]:
    return get_documents(STUDENTS)


def get_student(student_id: str) -> Outcome[Dict[str, Any]]:
    doc = get_document_by_id(STUDENTS, student_id)
    return Found(doc) if doc else NotFound("Student", student_id)


def count_students() -> int:
    return count_documents(STUDENTS)


def create_student(payload: Dict[str, Any]) -> Outcome[Dict[str, Any]]:
    data = _strip_meta(payload)
    if _blank(data.get("name")):
        return Invalid("Student name cannot be empty", {"name": "Name is required"})
    if _blank(data.get("major")):
        return Invalid("Student major cannot be empty", {"major": "Major is required"})
    if data.get("batch") is None:
        return Invalid("Student batch cannot be empty", {"batch": "Batch is required"})
    if _blank(data.get("status")):
        data["status"] = StudentStatus.ACTIVE.value

    if not _blank(data.get("nim")):
        return _insert(STUDENTS, "nim", data)

    major = lookup_major(data["major"])
    if isinstance(major, Invalid):
        return major
    batch = int(data["batch"])

    def write(nim: str) -> str:
        return create_document(STUDENTS, {**data, "nim": nim})

    return _allocate(
        STUDENTS,
        "nim",
        f"nim:{nim_prefix(major.value, batch)}",
        lambda: generate_nim(major.value, batch, get_field_values(STUDENTS, "nim")),
        write,
    )


def update_student(student_id: str, payload: Dict[str, Any]) -> Outcome[Dict[str, Any]]:
    existing = get_document_by_id(STUDENTS, student_id)
    if existing is None:
        return NotFound("Student", student_id)
    data = _strip_meta(payload)
    if _blank(data.get("nim")):
        data["nim"] = existing.get("nim")
    if _blank(data.get("status")):
        data["status"] = existing.get("status") or StudentStatus.ACTIVE.value
    return _replace(STUDENTS, "nim", student_id, data)


def delete_student(student_id: str) -> Outcome[str]:
    if get_document_by_id(STUDENTS, student_id) is None:
        return NotFound("Student", student_id)
    delete_document(STUDENTS, student_id)
    logger.info("student_deleted", student_id=student_id)
    return Found(student_id)


def major_options() -> List[str]:
    return list(get_settings().major_options)


def student_statistics() -> Dict[str, int]:
    students = list_students()
    stats: Dict[str, int] = {}
    for major in MAJORS:
        key = major.subject_prefix.lower()
        in_major = [s for s in students if s.get("major") == major.name]
        stats[f"{key}_total"] = len(in_major)
        stats[f"{key}_active"] = sum(1 for s in in_major if s.get("status") == StudentStatus.ACTIVE.value)
        stats[f"{key}_not_active"] = sum(1 for s in in_major if s.get("status") == StudentStatus.NOT_ACTIVE.value)
    stats["total_students"] = len(students)
    return stats


# Subjects


def list_subjects() -> List[Dict[str, Any]]:
    return get_documents(SUBJECTS)


def get_subject(subject_id: str) -> Outcome[Dict[str, Any]]:
    doc = get_document_by_id(SUBJECTS, subject_id)
    return Found(doc) if doc else NotFound("Subject", subject_id)


def count_subjects() -> int:
    return count_documents(SUBJECTS)


def _validate_sks(sks: Any) -> Optional[Invalid]:
    if sks is None or isinstance(sks, bool) or not isinstance(sks, int) or not 1 <= sks <= 6:
        return Invalid("SKS must be between 1 and 6", {"sks": "SKS must be between 1 and 6"})
    return None


def create_subject(payload: Dict[str, Any]) -> Outcome[Dict[str, Any]]:
    data = _strip_meta(payload)
    if _blank(data.get("name")):
        return Invalid("Subject name cannot be empty", {"name": "Name is required"})
    if _blank(data.get("major")):
        return Invalid("Subject major cannot be empty", {"major": "Major is required"})
    bad_sks = _validate_sks(data.get("sks"))
    if bad_sks:
        return bad_sks

    if not _blank(data.get("code")):
        return _insert(SUBJECTS, "code", data)

    major = lookup_major(data["major"])
    if isinstance(major, Invalid):
        return major

    def write(code: str) -> str:
        return create_document(SUBJECTS, {**data, "code": code})

    return _allocate(
        SUBJECTS,
        "code",
        f"subject:{major.value.subject_prefix}",
        lambda: generate_subject_code(major.value, get_field_values(SUBJECTS, "code")),
        write,
    )


def update_subject(subject_id: str, payload: Dict[str, Any]) -> Outcome[Dict[str, Any]]:
    """Replace a subject.

    The code follows the major only when a recorded major changes; filling in
    a missing major keeps the existing code.
    """
    existing = get_document_by_id(SUBJECTS, subject_id)
    if existing is None:
        return NotFound("Subject", subject_id)
    data = _strip_meta(payload)
    prior_major = existing.get("major")

    if _blank(prior_major) or data.get("major") == prior_major:
        if _blank(data.get("code")):
            data["code"] = existing.get("code")
        return _replace(SUBJECTS, "code", subject_id, data)

    major = lookup_major(data.get("major"))
    if isinstance(major, Invalid):
        return major

    def write(code: str) -> str:
        replace_document(SUBJECTS, subject_id, {**data, "code": code})
        return subject_id

    outcome = _allocate(
        SUBJECTS,
        "code",
        f"subject:{major.value.subject_prefix}",
        lambda: generate_subject_code(major.value, get_field_values(SUBJECTS, "code")),
        write,
    )
    if isinstance(outcome, Found):
        logger.info(
            "subject_code_regenerated",
            subject_id=subject_id,
            from_code=existing.get("code"),
            to_code=outcome.value.get("code"),
        )
    return outcome


def delete_subject(subject_id: str) -> Outcome[str]:
    if get_document_by_id(SUBJECTS, subject_id) is None:
        return NotFound("Subject", subject_id)
    delete_document(SUBJECTS, subject_id)
    logger.info("subject_deleted", subject_id=subject_id)
    return Found(subject_id)


# Classes


def list_classes() -> List[Dict[str, Any]]:
    return get_documents(CLASSES)


def get_class(class_id: str) -> Outcome[Dict[str, Any]]:
    doc = get_document_by_id(CLASSES, class_id)
    return Found(doc) if doc else NotFound("Class", class_id)


def count_classes() -> int:
    return count_documents(CLASSES)


def create_class(payload: Dict[str, Any]) -> Outcome[Dict[str, Any]]:
    data = _strip_meta(payload)
    if _blank(data.get("name")):
        return Invalid("Class name cannot be empty", {"name": "Name is required"})
    if _blank(data.get("subject_name")):
        return Invalid("Subject name cannot be empty", {"subject_name": "Subject name is required"})
    if data.get("student_ids") is None:
        data["student_ids"] = []

    if not _blank(data.get("code")):
        return _insert(CLASSES, "code", data)

    def write(code: str) -> str:
        return create_document(CLASSES, {**data, "code": code})

    return _allocate(
        CLASSES,
        "code",
        f"class:{CLASS_CODE_PREFIX}",
        lambda: generate_class_code(get_field_values(CLASSES, "code")),
        write,
    )


def update_class(class_id: str, payload: Dict[str, Any]) -> Outcome[Dict[str, Any]]:
    existing = get_document_by_id(CLASSES, class_id)
    if existing is None:
        return NotFound("Class", class_id)
    data = _strip_meta(payload)
    if _blank(data.get("code")):
        data["code"] = existing.get("code")
    if data.get("student_ids") is None:
        data["student_ids"] = []
    return _replace(CLASSES, "code", class_id, data)


def delete_class(class_id: str) -> Outcome[str]:
    if get_document_by_id(CLASSES, class_id) is None:
        return NotFound("Class", class_id)
    delete_document(CLASSES, class_id)
    logger.info("class_deleted", class_id=class_id)
    return Found(class_id)


def add_student_to_class(class_id: str, student_id: str) -> Outcome[Dict[str, Any]]:
    classroom = get_document_by_id(CLASSES, class_id)
    if classroom is None:
        return NotFound("Class", class_id)
    student_ids = list(classroom.get("student_ids") or [])
    if student_id in student_ids:
        return Found(classroom)
    student_ids.append(student_id)
    update_document(CLASSES, class_id, {"student_ids": student_ids})
    return Found(get_document_by_id(CLASSES, class_id))


def remove_student_from_class(class_id: str, student_id: str) -> Outcome[Dict[str, Any]]:
    classroom = get_document_by_id(CLASSES, class_id)
    if classroom is None:
        return NotFound("Class", class_id)
    student_ids = list(classroom.get("student_ids") or [])
    if student_id not in student_ids:
        return Found(classroom)
    student_ids.remove(student_id)
    update_document(CLASSES, class_id, {"student_ids": student_ids})
    return Found(get_document_by_id(CLASSES, class_id))
