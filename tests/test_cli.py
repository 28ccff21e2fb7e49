from __future__ import annotations

import json

from courserag.cli import main
from courserag.config import get_settings


def _settings(tmp_path):
    return get_settings(
        {
            "environment": "test",
            "data_dir": tmp_path,
            "chroma_persist_dir": tmp_path / "chroma",
            "embedding_provider": "hash",
            "embedding_dim": 8,
            "chat_provider": "template",
            "chunk_size": 200,
            "chunk_overlap": 40,
        }
    )


def _run(capsys, settings, *argv) -> tuple[int, dict | None]:
    code = main(list(argv), settings=settings)
    out = capsys.readouterr().out
    return code, json.loads(out) if out.strip() else None


def test_create_ingest_and_ask(tmp_path, capsys):
    settings = _settings(tmp_path)
    notes = tmp_path / "week1.txt"
    notes.write_text(" ".join(f"Fact {i} about photosynthesis." for i in range(40)), encoding="utf-8")

    code, result = _run(capsys, settings, "init-db")
    assert code == 0
    assert result["dialect"] == "sqlite"

    code, course = _run(capsys, settings, "create-course", "Plant Biology")
    assert code == 0

    code, ingested = _run(capsys, settings, "ingest", str(course["course_id"]), str(notes))
    assert code == 0
    assert ingested["chunks_processed"] > 1

    code, answer = _run(capsys, settings, "ask", str(course["course_id"]), "What is photosynthesis?")
    assert code == 0
    assert answer == {"response": "You asked: What is photosynthesis?"}

    code, cleared = _run(capsys, settings, "clear-index", str(course["course_id"]))
    assert cleared["documents_removed"] == 1


def test_domain_errors_exit_non_zero(tmp_path, capsys):
    code = main(["ask", "123", "hello"], settings=_settings(tmp_path))

    assert code == 1
    assert "NotFoundError" in capsys.readouterr().err
