"""
Database Schemas for the Academic Records App

Each Pydantic model describes a request payload for one MongoDB collection
(students, subjects, classes). Field constraints here are the API-level
validation; the services add their own business checks.
"""
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, EmailStr, Field

NAME_PATTERN = r"^[a-zA-Z\s]+$"


class StudentStatus(str, Enum):
    ACTIVE = "ACTIVE"
    NOT_ACTIVE = "NOT_ACTIVE"
    DROPOUT = "DROPOUT"


class Student(BaseModel):
    nim: Optional[str] = Field(None, description="NIM, dibuat otomatis jika kosong (AABBBBCCCC)")
    name: str = Field(..., min_length=1, pattern=NAME_PATTERN, description="Nama lengkap mahasiswa")
    email: EmailStr = Field(..., description="Email mahasiswa")
    major: Optional[str] = Field(None, description="Program studi, misal: Sistem Informasi")
    batch: int = Field(..., ge=2010, le=2030, description="Tahun angkatan")
    status: Optional[StudentStatus] = Field(None, description="ACTIVE|NOT_ACTIVE|DROPOUT")


class Subject(BaseModel):
    code: Optional[str] = Field(None, description="Kode mata kuliah (XXYYY), dibuat otomatis dari major")
    name: str = Field(..., min_length=1, pattern=NAME_PATTERN, description="Nama mata kuliah")
    major: str = Field(..., min_length=1, description="Sistem Informasi atau Teknologi Informasi")
    sks: int = Field(..., ge=1, le=6, description="Jumlah SKS")


class ClassRoom(BaseModel):
    code: Optional[str] = Field(None, description="Kode kelas (KLS###), dibuat otomatis jika kosong")
    name: str = Field(..., min_length=1, description="Nama kelas, misal: Basis Data - Kelas A")
    subject_id: Optional[str] = Field(None, description="ID mata kuliah")
    subject_name: str = Field(..., min_length=1, description="Nama mata kuliah (salinan untuk tampilan)")
    semester: Optional[str] = Field(None, description="Semester, misal: Ganjil 2024/2025")
    year: Optional[int] = Field(None, description="Tahun akademik")
    student_ids: List[str] = Field(default_factory=list, description="ID mahasiswa yang terdaftar")


class ClassRoomSeed(ClassRoom):
    """Seed-file shape of a class: enrollment is declared by NIM and resolved on load."""

    student_nims: List[str] = Field(default_factory=list)
