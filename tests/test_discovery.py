from __future__ import annotations

from pathlib import Path

from oadoi_enrich.discovery import find_input_files


def test_explicit_names_are_returned_in_order(tmp_path: Path) -> None:
    names = [str(tmp_path / "b.json"), str(tmp_path / "a.json")]

    assert find_input_files(names, directory=tmp_path) == [Path(n) for n in names]


def test_glob_matches_export_suffix(tmp_path: Path) -> None:
    for name in (
        "2025-Publication-export.json",
        "2024-Publication-export.json",
        "notes.json",
        "Publication-export.json.bak",
    ):
        (tmp_path / name).write_text("", encoding="utf-8")
    (tmp_path / "dir-Publication-export.json").mkdir()

    found = find_input_files([], directory=tmp_path)

    assert [path.name for path in found] == [
        "2024-Publication-export.json",
        "2025-Publication-export.json",
    ]


def test_glob_defaults_to_working_directory(tmp_path: Path, monkeypatch) -> None:
    (tmp_path / "x-Publication-export.json").write_text("", encoding="utf-8")
    monkeypatch.chdir(tmp_path)

    assert [path.name for path in find_input_files([])] == ["x-Publication-export.json"]
