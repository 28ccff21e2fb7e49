from __future__ import annotations

from typing import Iterator

import pytest

from courserag.storage import Database, Repositories
from courserag.storage.tables import Course


@pytest.fixture()
def database() -> Iterator[Database]:
    db = Database("sqlite://")
    db.create_all()
    yield db
    db.dispose()


@pytest.fixture()
def repos(database: Database) -> Repositories:
    return Repositories(database)


@pytest.fixture()
def course(repos: Repositories) -> Course:
    return repos.courses.create(
        title="Intro to Biology",
        instructor_id=1,
        description="Cells, genetics and evolution",
        video_transcript="Today we look at the cell membrane.",
    )
