from __future__ import annotations

import random
import shutil
import sys
from collections.abc import Iterator
from pathlib import Path
from uuid import uuid4

import pytest

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from deeper.content_loader import BundledQuestions  # noqa: E402
from deeper.service import DeeperService  # noqa: E402
from deeper.storage import KeyValueStore  # noqa: E402


def _tmp_path_fixture() -> Iterator[Path]:
    """Provide per-test temporary directory path inside the workspace.

    Overrides pytest's builtin ``tmp_path`` so temporary databases live under
    ``.tmp_pytest/`` in the project directory.
    """
    base = ROOT / ".tmp_pytest"
    base.mkdir(parents=True, exist_ok=True)
    path = base / str(uuid4())
    path.mkdir(parents=True, exist_ok=False)
    try:
        yield path
    finally:
        shutil.rmtree(path, ignore_errors=True)
        try:
            next(base.iterdir())
        except StopIteration:
            base.rmdir()
        except FileNotFoundError:
            pass


tmp_path = pytest.fixture(name="tmp_path")(_tmp_path_fixture)


@pytest.fixture
def small_bundle() -> BundledQuestions:
    return {
        1: [("One A", "일 A"), ("One B", "일 B")],
        2: [("Two A", "이 A"), ("Two B", "이 B")],
        3: [("Three A", "삼 A")],
    }


@pytest.fixture
def store() -> Iterator[KeyValueStore]:
    kv = KeyValueStore(":memory:")
    try:
        yield kv
    finally:
        kv.close()


@pytest.fixture
def service(small_bundle: BundledQuestions) -> Iterator[DeeperService]:
    app = DeeperService(":memory:", rng=random.Random(7), bundled=small_bundle, avoid_immediate_repeat=False)
    try:
        yield app
    finally:
        app.close()
