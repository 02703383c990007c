from codes import (
    generate_class_code,
    generate_nim,
    generate_subject_code,
    lookup_major,
    major_for_code,
    next_code,
    scope_lock,
)
from config import MAJORS
from results import Found, Invalid

SI, TI = MAJORS


def test_first_nim_in_scope_is_sequence_one():
    assert generate_nim(TI, 2023, []) == "1120230001"
    assert generate_nim(SI, 2010, ["1120100005"]) == "1020100001"


def test_nim_follows_highest_sequence_and_skips_malformed():
    existing = ["1120230007", "11202300x1", "1120230003", None, "", "1020230009", "112023"]
    assert generate_nim(TI, 2023, existing) == "1120230008"


def test_nim_ignores_other_batches():
    assert generate_nim(SI, 2024, ["1020230042"]) == "1020240001"


def test_subject_code_prefix_follows_major():
    assert generate_subject_code(SI, []) == "SI001"
    assert generate_subject_code(SI, ["SI004", "TI010", "SIabc"]) == "SI005"
    assert generate_subject_code(TI, ["SI004", "TI010"]) == "TI011"


def test_class_code_sequence():
    assert generate_class_code([]) == "KLS001"
    assert generate_class_code(["KLS009", "KLS-12", "MK001"]) == "KLS010"


def test_next_code_grows_past_width():
    assert next_code("KLS", ["KLS999"], 3) == "KLS1000"


def test_next_code_rejects_signed_suffixes():
    assert next_code("SI", ["SI+50", "SI-3", "SI 7", "SI002"], 3) == "SI003"


def test_lookup_major_never_defaults():
    found = lookup_major("Sistem Informasi")
    assert isinstance(found, Found)
    assert found.value.nim_code == "10"

    unknown = lookup_major("Teknik Sipil")
    assert isinstance(unknown, Invalid)
    assert "major" in unknown.errors
    assert isinstance(lookup_major(None), Invalid)


def test_major_for_code():
    assert major_for_code("SI012").name == "Sistem Informasi"
    assert major_for_code("TI001").name == "Teknologi Informasi"
    assert major_for_code("MK001") is None
    assert major_for_code(None) is None


def test_scope_lock_is_shared_per_scope():
    assert scope_lock("nim:112023") is scope_lock("nim:112023")
    assert scope_lock("nim:112023") is not scope_lock("nim:102023")
