"""Smoke test for build_structure CLI."""
from __future__ import annotations

import json
import os
import subprocess
import sys
from pathlib import Path

import duckdb

PAGES = [
    "SADRŽAJ\n1. UVOD ........ 2\n2. OSNOVE RAČUNARA ........ 3",
    "1. UVOD\nOva knjiga je namenjena studentima prve godine. "
    "Obrađuje osnovne pojmove iz oblasti računarstva.",
    "2. OSNOVE RAČUNARA\nProcesor izvršava instrukcije jednu za drugom. "
    "Memorija čuva podatke i programe.",
]


def _run(root: Path, *args: str, check: bool = True) -> subprocess.CompletedProcess[str]:
    env = os.environ.copy()
    env["PYTHONPATH"] = str(root / "src")
    return subprocess.run(
        [sys.executable, str(root / "scripts" / "build_structure.py"), *args],
        cwd=str(root),
        env=env,
        capture_output=True,
        text=True,
        encoding="utf-8",
        check=check,
    )


def _write_book(tmp_path: Path) -> Path:
    text_path = tmp_path / "book.txt"
    text_path.write_text("\f".join(PAGES), encoding="utf-8")
    return text_path


def test_build_structure_with_toc_and_db(tmp_path: Path) -> None:
    root = Path(__file__).resolve().parents[1]
    text_path = _write_book(tmp_path)
    toc_path = tmp_path / "toc.json"
    toc_path.write_text(
        json.dumps([
            {"title": "1. UVOD", "level": 1, "pageStart": 2},
            {"title": "2. OSNOVE RAČUNARA", "level": 1, "pageStart": 3},
        ]),
        encoding="utf-8",
    )
    db_path = tmp_path / "structure.duckdb"

    proc = _run(
        root,
        "--text", str(text_path),
        "--toc", str(toc_path),
        "--db", str(db_path),
        "--doc-id", "knjiga-1",
    )

    payload = json.loads(proc.stdout)
    assert payload["doc_id"] == "knjiga-1"
    assert payload["toc_source"] == "supplied"
    assert payload["mode"] == "toc"
    assert payload["section_count"] == 2
    assert [s["title"] for s in payload["sections"]] == ["1. UVOD", "2. OSNOVE RAČUNARA"]
    assert payload["unlocated"] == []

    con = duckdb.connect(str(db_path))
    rows = con.execute(
        "SELECT title FROM sections WHERE doc_id = 'knjiga-1' ORDER BY ordinal"
    ).fetchall()
    chunk_count = con.execute("SELECT count(*) FROM chunks").fetchone()
    con.close()
    assert [r[0] for r in rows] == ["1. UVOD", "2. OSNOVE RAČUNARA"]
    assert chunk_count is not None and chunk_count[0] == payload["chunk_count"]


def test_build_structure_detects_toc(tmp_path: Path) -> None:
    root = Path(__file__).resolve().parents[1]
    text_path = _write_book(tmp_path)

    proc = _run(root, "--text", str(text_path), "--full", "--no-chunks")

    payload = json.loads(proc.stdout)
    assert payload["toc_source"] == "pattern"
    assert payload["chunks"] == []
    assert payload["sections"][1]["content"].startswith("Procesor")


def test_build_structure_failure_exit_code(tmp_path: Path) -> None:
    root = Path(__file__).resolve().parents[1]
    text_path = _write_book(tmp_path)

    proc = _run(root, "--text", str(text_path), "--max-section-chars", "10", check=False)

    assert proc.returncode == 1
    payload = json.loads(proc.stdout)
    assert payload["status"] == "failed"


def test_build_structure_rejects_page_object(tmp_path: Path) -> None:
    root = Path(__file__).resolve().parents[1]
    pages_path = tmp_path / "pages.json"
    pages_path.write_text(json.dumps({"pages": PAGES}), encoding="utf-8")

    proc = _run(root, "--pages-json", str(pages_path), check=False)

    assert proc.returncode == 1
    payload = json.loads(proc.stdout)
    assert payload["status"] == "failed"
    assert "JSON array" in payload["error"]
    assert "Traceback" not in proc.stderr


def test_build_structure_rejects_bad_config(tmp_path: Path) -> None:
    root = Path(__file__).resolve().parents[1]
    text_path = _write_book(tmp_path)
    config_path = tmp_path / "options.json"
    config_path.write_text(json.dumps({"maxSectionChars": 0}), encoding="utf-8")

    proc = _run(root, "--text", str(text_path), "--config", str(config_path), check=False)

    assert proc.returncode == 1
    assert json.loads(proc.stdout)["status"] == "failed"
