"""Administrative CLI for courserag: schema setup, ingestion and chat from the shell."""

from __future__ import annotations

import argparse
import json
import mimetypes
import sys
from pathlib import Path
from typing import Sequence
from uuid import uuid4

from courserag.api.dependencies import AppDependencies, build_dependencies
from courserag.config import Settings, get_settings
from courserag.errors import CourseRAGError
from courserag.metrics.observability import configure_logging


def _init_db(deps: AppDependencies, args: argparse.Namespace) -> dict:
    deps.database.create_all()
    return {"status": "ok", "dialect": deps.database.dialect}


def _create_course(deps: AppDependencies, args: argparse.Namespace) -> dict:
    course = deps.repositories.courses.create(
        title=args.title,
        instructor_id=args.instructor_id,
        description=args.description,
        video_transcript=args.transcript.read_text(encoding="utf-8") if args.transcript else None,
    )
    return {"course_id": course.id, "title": course.title}


def _ingest(deps: AppDependencies, args: argparse.Namespace) -> dict:
    source: str = args.source
    if "://" in source:
        file_url = source
        title = args.title or source.rstrip("/").rsplit("/", 1)[-1]
    else:
        path = Path(source)
        key = f"courses/{args.course_id}/{uuid4().hex}-{path.name}"
        mime_guess = mimetypes.guess_type(path.name)[0] or "text/plain"
        file_url = deps.blobs.put(key, path.read_bytes(), args.mime_type or mime_guess)
        title = args.title or path.name
    mime_type = args.mime_type or mimetypes.guess_type(file_url)[0] or "text/plain"
    result = deps.pipeline.ingest(args.course_id, title, file_url, mime_type)
    return {"document_id": result.document_id, "chunks_processed": result.chunks_processed}


def _ask(deps: AppDependencies, args: argparse.Namespace) -> dict:
    reply = deps.orchestrator.respond(args.user_id, args.course_id, args.message)
    return {"response": reply}


def _clear(deps: AppDependencies, args: argparse.Namespace) -> dict:
    removed = deps.pipeline.clear_course(args.course_id)
    return {"course_id": args.course_id, "documents_removed": removed}


def parse_args(argv: Sequence[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Administer courserag course indexes and chat.")
    commands = parser.add_subparsers(dest="command", required=True)

    init_db = commands.add_parser("init-db", help="Create database tables")
    init_db.set_defaults(handler=_init_db)

    course = commands.add_parser("create-course", help="Create a course")
    course.add_argument("title")
    course.add_argument("--instructor-id", type=int, default=1)
    course.add_argument("--description", default=None)
    course.add_argument("--transcript", type=Path, default=None, help="Path to a transcript text file")
    course.set_defaults(handler=_create_course)

    ingest = commands.add_parser("ingest", help="Ingest a local file or URL into a course index")
    ingest.add_argument("course_id", type=int)
    ingest.add_argument("source", help="Local path or http(s)/file URL")
    ingest.add_argument("--title", default=None)
    ingest.add_argument("--mime-type", default=None)
    ingest.set_defaults(handler=_ingest)

    ask = commands.add_parser("ask", help="Run one chat turn against a course")
    ask.add_argument("course_id", type=int)
    ask.add_argument("message")
    ask.add_argument("--user-id", type=int, default=1)
    ask.set_defaults(handler=_ask)

    clear = commands.add_parser("clear-index", help="Remove every indexed document of a course")
    clear.add_argument("course_id", type=int)
    clear.set_defaults(handler=_clear)

    return parser.parse_args(argv)


def main(argv: Sequence[str] | None = None, *, settings: Settings | None = None) -> int:
    args = parse_args(sys.argv[1:] if argv is None else argv)
    settings = settings or get_settings()
    configure_logging(settings.log_level)
    deps = build_dependencies(settings)
    try:
        if args.command != "init-db":
            deps.database.create_all()
        result = args.handler(deps, args)
    except CourseRAGError as exc:
        print(f"{type(exc).__name__}: {exc}", file=sys.stderr)
        return 1
    finally:
        deps.close()
    print(json.dumps(result, indent=2))
    return 0


if __name__ == "__main__":  # pragma: no cover - CLI entrypoint
    sys.exit(main())
