"""
First-run data loading.

Each collection is seeded only while it is empty, and each one is handled on
its own: a failure in one is logged and the next collection still runs. When
subjects already exist, records missing ``major`` are back-filled from their
code prefix instead.
"""
import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

import services
from app_logging import get_logger
from codes import major_for_code
from config import MAJORS, Settings
from database import STUDENTS, find_first
from results import Found
from schemas import ClassRoomSeed, Student, StudentStatus, Subject

logger = get_logger("academic.seed", component="seed")


class SeedError(RuntimeError):
    pass


@dataclass
class SeedReport:
    inserted: Dict[str, int] = field(default_factory=dict)
    migrated: int = 0
    failed: List[str] = field(default_factory=list)


_ROMAN = ((1000, "M"), (900, "CM"), (500, "D"), (400, "CD"), (100, "C"), (90, "XC"),
          (50, "L"), (40, "XL"), (10, "X"), (9, "IX"), (5, "V"), (4, "IV"), (1, "I"))


def roman_numeral(number: int) -> str:
    digits = []
    for value, symbol in _ROMAN:
        count, number = divmod(number, value)
        digits.append(symbol * count)
    return "".join(digits)


def _project(record: Dict[str, Any], fields) -> Dict[str, Any]:
    return {key: value for key, value in record.items() if key in fields}


class FileSeedSource:
    """Reads seed records from ``students.json``, ``subjects.json`` and ``classes.json``."""

    def __init__(self, data_dir: Path):
        self.data_dir = Path(data_dir)

    def _read(self, filename: str) -> List[Dict[str, Any]]:
        path = self.data_dir / filename
        with path.open(encoding="utf-8") as fh:
            records = json.load(fh)
        if not isinstance(records, list):
            raise SeedError(f"{path} must contain a JSON list")
        return records

    def students(self) -> List[Dict[str, Any]]:
        return [_project(r, Student.model_fields) for r in self._read("students.json")]

    def subjects(self) -> List[Dict[str, Any]]:
        return [_project(r, Subject.model_fields) for r in self._read("subjects.json")]

    def classes(self) -> List[Dict[str, Any]]:
        return [_project(r, ClassRoomSeed.model_fields) for r in self._read("classes.json")]


class SyntheticSeedSource(FileSeedSource):
    """Fabricates students and subjects from a name-pool file; classes still come from disk.

    Output is deterministic: majors alternate record by record, batches cycle,
    and student status is assigned by position (first 70% ACTIVE, next 20%
    NOT_ACTIVE, last 10% DROPOUT).
    """

    def __init__(self, data_dir: Path, student_count: int = 100, subject_count: int = 100,
                 pools_file: str = "name_pools.json"):
        super().__init__(data_dir)
        self.student_count = student_count
        self.subject_count = subject_count
        self.pools_file = pools_file
        self._pools: Optional[Dict[str, Any]] = None

    @property
    def pools(self) -> Dict[str, Any]:
        if self._pools is None:
            with (self.data_dir / self.pools_file).open(encoding="utf-8") as fh:
                self._pools = json.load(fh)
        return self._pools

    @staticmethod
    def status_for_position(index: int, total: int) -> str:
        decile = index * 10 // total
        if decile < 7:
            return StudentStatus.ACTIVE.value
        if decile < 9:
            return StudentStatus.NOT_ACTIVE.value
        return StudentStatus.DROPOUT.value

    def students(self) -> List[Dict[str, Any]]:
        first_names = self.pools["first_names"]
        last_names = self.pools["last_names"]
        batches = self.pools["batches"]
        domain = self.pools.get("email_domain", "students.example.ac.id")
        records = []
        for i in range(self.student_count):
            major = MAJORS[i % len(MAJORS)]
            batch = batches[(i // len(MAJORS)) % len(batches)]
            first = first_names[i % len(first_names)]
            last = last_names[(i // len(first_names)) % len(last_names)]
            records.append({
                "name": f"{first} {last}",
                "email": f"{first}.{last}{i + 1}@{domain}".lower(),
                "major": major.name,
                "batch": batch,
                "status": self.status_for_position(i, self.student_count),
            })
        return records

    def subjects(self) -> List[Dict[str, Any]]:
        curated = self.pools["subjects"]
        sks_cycle = self.pools.get("sks_cycle", [2, 3, 4])
        records = []
        for i in range(self.subject_count):
            major = MAJORS[i % len(MAJORS)]
            names = curated[major.name]
            k = i // len(MAJORS)
            name = names[k % len(names)]
            # recycled names must still match schemas.NAME_PATTERN
            if k >= len(names):
                name = f"{name} {roman_numeral(k // len(names) + 1)}"
            records.append({"name": name, "major": major.name, "sks": sks_cycle[i % len(sks_cycle)]})
        return records


def source_from_settings(settings: Settings) -> FileSeedSource:
    if settings.seed_strategy == "synthetic":
        return SyntheticSeedSource(
            settings.seed_data_dir,
            student_count=settings.synthetic_student_count,
            subject_count=settings.synthetic_subject_count,
        )
    return FileSeedSource(settings.seed_data_dir)


def _create_all(collection: str, records: List[Dict[str, Any]], create: Callable) -> int:
    for record in records:
        outcome = create(record)
        if not isinstance(outcome, Found):
            raise SeedError(f"{collection} record rejected: {getattr(outcome, 'message', outcome)}")
    return len(records)


def seed_students(source: FileSeedSource) -> int:
    logger.info("seed_students_loading")
    count = _create_all("students", source.students(), services.create_student)
    logger.info("seed_students_loaded", count=count)
    return count


def seed_subjects(source: FileSeedSource) -> int:
    logger.info("seed_subjects_loading")
    count = _create_all("subjects", source.subjects(), services.create_subject)
    logger.info("seed_subjects_loaded", count=count)
    return count


def resolve_class(record: Dict[str, Any], subjects: List[Dict[str, Any]]) -> Dict[str, Any]:
    """Turn a seed class into a storable one: subject name -> id, NIMs -> student ids."""
    data = dict(record)
    nims = data.pop("student_nims", None) or []

    subject = next((s for s in subjects if s.get("name") == data.get("subject_name")), None)
    if subject is not None:
        data["subject_id"] = subject["id"]

    if nims:
        student_ids = []
        for nim in nims:
            student = find_first(STUDENTS, {"nim": nim})
            if student is not None:
                student_ids.append(student["id"])
        data["student_ids"] = student_ids
        logger.info(
            "seed_class_enrollment_resolved",
            class_name=data.get("name"),
            resolved=len(student_ids),
            dropped=len(nims) - len(student_ids),
        )
    return data


def seed_classes(source: FileSeedSource) -> int:
    logger.info("seed_classes_loading")
    subjects = services.list_subjects()
    records = [resolve_class(record, subjects) for record in source.classes()]
    count = _create_all("classes", records, services.create_class)
    logger.info("seed_classes_loaded", count=count)
    return count


def migrate_subject_majors() -> int:
    """Fill in ``major`` on subjects that lack it, inferred from the SI/TI code prefix."""
    migrated = 0
    for subject in services.list_subjects():
        if subject.get("major"):
            continue
        major = major_for_code(subject.get("code"))
        if major is None:
            continue
        outcome = services.update_subject(subject["id"], {**subject, "major": major.name})
        if isinstance(outcome, Found):
            migrated += 1
        else:
            logger.warning(
                "subject_major_not_migrated",
                subject_id=subject["id"],
                reason=getattr(outcome, "message", None),
            )
    if migrated:
        logger.info("subject_majors_migrated", count=migrated)
    else:
        logger.info("subject_majors_up_to_date")
    return migrated


def _guarded(report: SeedReport, collection: str, step: Callable[[], int]) -> Optional[int]:
    try:
        return step()
    except Exception:
        logger.exception("seed_collection_failed", collection=collection)
        report.failed.append(collection)
        return None


def run_startup_seed(source: FileSeedSource) -> SeedReport:
    report = SeedReport()
    logger.info("seed_started", source=type(source).__name__)

    if services.count_students() == 0:
        inserted = _guarded(report, "students", lambda: seed_students(source))
        report.inserted["students"] = inserted or 0
    else:
        logger.info("seed_skipped", collection="students")

    if services.count_subjects() == 0:
        inserted = _guarded(report, "subjects", lambda: seed_subjects(source))
        report.inserted["subjects"] = inserted or 0
    else:
        logger.info("seed_skipped", collection="subjects")
        report.migrated = _guarded(report, "subjects", migrate_subject_majors) or 0

    if services.count_classes() == 0:
        inserted = _guarded(report, "classes", lambda: seed_classes(source))
        report.inserted["classes"] = inserted or 0
    else:
        logger.info("seed_skipped", collection="classes")

    logger.info(
        "seed_completed",
        inserted=report.inserted,
        migrated=report.migrated,
        failed=report.failed,
    )
    return report
