"""Workloads: the timed operations a worker runs against one back-end.

A workload is a callable ``workload(recorder, ctx)`` that performs its
steps strictly in order, wrapping each one in
``recorder.record(category, name, action)``.  That recording call is
the only thing the harness exposes to a workload.

Workloads are looked up by system name in a small registry, or loaded
from a ``"module:attribute"`` spec so that back-ends living outside this
package can be benchmarked too.  Two built-in systems run the same step
list:

- ``sqlite``: users and file blobs in an on-disk SQLite database.
- ``memory``: the same data kept in plain dicts and lists.

Test data comes from ``ctx.rng``, a ``random.Random`` seeded once per
worker, so both systems see identical users and file contents.
"""

from __future__ import annotations

import importlib
import json
import logging
import random
import shutil
import sqlite3
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable

log = logging.getLogger("benchduel")

CATEGORY_GENERAL = "1.General"
CATEGORY_FS = "2.FS"

FILE_SIZE = 64 * 1024
FILES_PER_GAMER = 3
MAX_GAMERS = 200

# "Gaming" is intentionally rare in the source data.
_CATEGORY_SOURCE = [
    "Technology", "Science", "Art", "Music", "Sports", "Travel", "Food", "History", "Literature",
] * 3 + ["Gaming"]  # fmt: skip
_DISTINCT_CATEGORIES = len(set(_CATEGORY_SOURCE))
_USERNAME_CHARS = "abcdefghijklmnopqrstuvwxyz0123456789"

# Object with ``record(category, name, action)``; see benchduel.bench.worker.StepRecorder.
Recorder = Any
Workload = Callable[[Recorder, "WorkloadContext"], None]


class WorkloadError(RuntimeError):
    """A workload step observed a result that breaks its expectations."""


@dataclass
class WorkloadContext:
    """Inputs handed to a workload for one iteration."""

    rng: random.Random
    user_count: int
    work_dir: Path
    iteration: int = 1


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------

_REGISTRY: dict[str, Workload] = {}


def register_workload(name: str) -> Callable[[Workload], Workload]:
    """Decorator registering a workload under a system name."""

    def decorator(fn: Workload) -> Workload:
        _REGISTRY[name] = fn
        return fn

    return decorator


def available_workloads() -> list[str]:
    """Names of all registered systems, sorted."""
    return sorted(_REGISTRY)


def load_object(spec: str) -> Any:
    """Import ``"package.module:attr.subattr"`` and return the attribute.

    Raises:
        ValueError: If *spec* is malformed or does not resolve.
    """
    module_name, sep, attr_path = spec.partition(":")
    if not sep or not module_name or not attr_path:
        raise ValueError(f"Invalid workload spec '{spec}'. Expected 'module:attribute'.")
    try:
        obj: Any = importlib.import_module(module_name)
    except ImportError as exc:
        raise ValueError(f"Cannot import workload module '{module_name}': {exc}") from exc
    for attr in attr_path.split("."):
        try:
            obj = getattr(obj, attr)
        except AttributeError as exc:
            raise ValueError(f"Workload '{spec}' not found: {exc}") from exc
    return obj


def resolve_workload(system: str, spec: str | None = None) -> Workload:
    """Find the workload for *system*.

    An explicit *spec* wins over the registry.

    Raises:
        ValueError: If nothing callable is found.
    """
    if spec:
        workload = load_object(spec)
    else:
        try:
            workload = _REGISTRY[system]
        except KeyError:
            known = ", ".join(available_workloads()) or "none"
            raise ValueError(f"Unknown system: {system} (known: {known})") from None
    if not callable(workload):
        raise ValueError(f"Workload for system '{system}' is not callable")
    return workload


# ---------------------------------------------------------------------------
# Test data
# ---------------------------------------------------------------------------


@dataclass
class User:
    username: str
    categories: list[str]
    files: list[str] = field(default_factory=list)


def random_username(rng: random.Random, length: int = 8) -> str:
    return "".join(rng.choice(_USERNAME_CHARS) for _ in range(length))


def generate_categories(rng: random.Random, count: int) -> list[str]:
    """Pick *count* distinct categories from a shuffled, skewed source."""
    count = min(count, _DISTINCT_CATEGORIES)
    if count <= 0:
        return []
    shuffled = list(_CATEGORY_SOURCE)
    rng.shuffle(shuffled)
    picked: list[str] = []
    for category in shuffled:
        if category not in picked:
            picked.append(category)
            if len(picked) == count:
                break
    return picked


def make_users(rng: random.Random, count: int) -> list[User]:
    """Build *count* users with unique names; 70% get three categories."""
    users: list[User] = []
    seen: set[str] = set()
    while len(users) < count:
        username = random_username(rng)
        if username in seen:
            continue
        seen.add(username)
        n_categories = 3 if rng.random() <= 0.7 else 2
        users.append(User(username=username, categories=generate_categories(rng, n_categories)))
    return users


def _fresh_dir(path: Path) -> Path:
    if path.exists():
        shutil.rmtree(path)
    path.mkdir(parents=True)
    log.debug("Workload data directory: %s", path)
    return path


def _gamer_file_path(username: str, index: int) -> str:
    return f"/data/{username}/footage_gaming_{index}.bin"


# ---------------------------------------------------------------------------
# sqlite
# ---------------------------------------------------------------------------

_SQLITE_SCHEMA = """
CREATE TABLE users (
    id INTEGER PRIMARY KEY,
    username TEXT NOT NULL UNIQUE,
    categories TEXT NOT NULL,
    category_count INTEGER NOT NULL,
    files TEXT NOT NULL DEFAULT '[]'
);
CREATE INDEX users_category_count ON users (category_count);
CREATE TABLE files (
    path TEXT PRIMARY KEY,
    username TEXT NOT NULL,
    data BLOB NOT NULL,
    tags TEXT NOT NULL DEFAULT ''
);
CREATE INDEX files_username ON files (username);
"""


@register_workload("sqlite")
def sqlite_workload(recorder: Recorder, ctx: WorkloadContext) -> None:
    """Users and file blobs in a SQLite database file."""
    db_dir = _fresh_dir(ctx.work_dir / "sqlite")
    conn = sqlite3.connect(db_dir / "bench.db")
    try:
        conn.executescript(_SQLITE_SCHEMA)
        _run_sqlite_steps(conn, recorder, ctx)
    finally:
        conn.close()


def _run_sqlite_steps(conn: sqlite3.Connection, recorder: Recorder, ctx: WorkloadContext) -> None:
    rng = ctx.rng
    users = make_users(rng, ctx.user_count)
    rows = [(u.username, json.dumps(u.categories), len(u.categories)) for u in users]

    def insert() -> None:
        with conn:
            conn.executemany(
                "INSERT INTO users (username, categories, category_count) VALUES (?, ?, ?)",
                rows,
            )

    recorder.record(CATEGORY_GENERAL, f"Inserting {len(users)} users", insert)

    gamers: list[str] = []

    def search_gamers() -> None:
        gamers.extend(
            row[0]
            for row in conn.execute(
                "SELECT username FROM users WHERE categories LIKE '%\"Gaming\"%' ORDER BY id"
            )
        )

    recorder.record(CATEGORY_GENERAL, "Searching for gaming users", search_gamers)

    file_data = rng.randbytes(FILE_SIZE)
    subset = gamers[:MAX_GAMERS]

    def upload() -> None:
        with conn:
            for username in subset:
                paths = [_gamer_file_path(username, i) for i in range(FILES_PER_GAMER)]
                conn.executemany(
                    "INSERT INTO files (path, username, data, tags) VALUES (?, ?, ?, 'Gaming')",
                    [(path, username, file_data) for path in paths],
                )
                conn.execute(
                    "UPDATE users SET files = ? WHERE username = ?",
                    (json.dumps(paths), username),
                )

    recorder.record(
        CATEGORY_FS,
        f"Upload {FILES_PER_GAMER} {FILE_SIZE // 1024} kb files for {MAX_GAMERS} gamers"
        " in a transaction",
        upload,
    )

    recorder.record(CATEGORY_GENERAL, "Optimize", lambda: conn.execute("PRAGMA optimize"))

    def read_random_chunks() -> None:
        for path, size in conn.execute("SELECT path, length(data) FROM files LIMIT 50").fetchall():
            offset = rng.randint(0, max(0, size - 256))
            conn.execute(
                "SELECT substr(data, ?, 256) FROM files WHERE path = ?", (offset + 1, path)
            ).fetchone()

    recorder.record(CATEGORY_FS, "Read 256 bytes chunk from random file positions", read_random_chunks)

    def update_a_users() -> None:
        matches = conn.execute(
            "SELECT id, categories FROM users WHERE username LIKE 'a%'"
        ).fetchall()
        updates = []
        for user_id, categories in matches:
            new_categories = json.loads(categories) + ["UpdatedUser"]
            updates.append((json.dumps(new_categories), len(new_categories), user_id))
        with conn:
            cursor = conn.executemany(
                "UPDATE users SET categories = ?, category_count = ? WHERE id = ?", updates
            )
        if cursor.rowcount <= 0:
            raise WorkloadError(f"updated {cursor.rowcount} users, expected at least one")

    recorder.record(CATEGORY_GENERAL, "Update users with username starting with 'a'", update_a_users)

    def delete_small_users() -> None:
        with conn:
            conn.execute(
                "DELETE FROM files WHERE username IN "
                "(SELECT username FROM users WHERE category_count <= 2)"
            )
            conn.execute("DELETE FROM users WHERE category_count <= 2")

    recorder.record(CATEGORY_GENERAL, "Delete users with <= 2 categories", delete_small_users)

    def paginate() -> None:
        page = conn.execute(
            "SELECT username FROM users ORDER BY username LIMIT 50 OFFSET 100"
        ).fetchall()
        if len(page) != 50:
            raise WorkloadError(f"page 3 returned {len(page)} users, expected 50")

    recorder.record(CATEGORY_GENERAL, "Paginated query (page 3 of 50 users)", paginate)

    def complex_query() -> list[str]:
        results = []
        for (files,) in conn.execute(
            "SELECT files FROM users WHERE (username LIKE 'b%' OR username LIKE 'c%') "
            "AND category_count >= 1 AND files != '[]'"
        ):
            results.append(json.loads(files)[0][2:6])
        return results

    recorder.record(CATEGORY_GENERAL, "Complex query with multiple conditions", complex_query)

    def files_and_tags() -> list[tuple[str, str, str]]:
        return conn.execute("SELECT username, path, tags FROM files LIMIT 100").fetchall()

    recorder.record(CATEGORY_FS, "Retrieve file&tags from users", files_and_tags)

    def count_by_letter() -> dict[str, int]:
        return dict(
            conn.execute(
                "SELECT substr(username, 1, 1), COUNT(*) FROM users GROUP BY 1"
            ).fetchall()
        )

    recorder.record(CATEGORY_GENERAL, "Count users by username first letter", count_by_letter)

    def read_gaming_heads() -> list[bytes]:
        return [
            head
            for (head,) in conn.execute(
                "SELECT substr(data, 1, 1024) FROM files WHERE tags = 'Gaming'"
            )
        ]

    recorder.record(CATEGORY_FS, "Read first 1KB from all gaming files", read_gaming_heads)


# ---------------------------------------------------------------------------
# memory
# ---------------------------------------------------------------------------


@dataclass
class _StoredFile:
    username: str
    data: bytes
    tags: dict[str, str] = field(default_factory=dict)


@register_workload("memory")
def memory_workload(recorder: Recorder, ctx: WorkloadContext) -> None:
    """The same steps as ``sqlite`` against plain Python containers."""
    rng = ctx.rng
    users = make_users(rng, ctx.user_count)
    table: dict[str, User] = {}
    files: dict[str, _StoredFile] = {}

    def insert() -> None:
        for user in users:
            table[user.username] = User(user.username, list(user.categories))

    recorder.record(CATEGORY_GENERAL, f"Inserting {len(users)} users", insert)

    gamers: list[str] = []

    def search_gamers() -> None:
        gamers.extend(u.username for u in table.values() if "Gaming" in u.categories)

    recorder.record(CATEGORY_GENERAL, "Searching for gaming users", search_gamers)

    file_data = rng.randbytes(FILE_SIZE)
    subset = gamers[:MAX_GAMERS]

    def upload() -> None:
        staged_files: dict[str, _StoredFile] = {}
        staged_users: dict[str, list[str]] = {}
        for username in subset:
            paths = [_gamer_file_path(username, i) for i in range(FILES_PER_GAMER)]
            for path in paths:
                staged_files[path] = _StoredFile(username, bytes(file_data), {"Tags": "Gaming"})
            staged_users[username] = paths
        # Commit.
        files.update(staged_files)
        for username, paths in staged_users.items():
            table[username].files.extend(paths)

    recorder.record(
        CATEGORY_FS,
        f"Upload {FILES_PER_GAMER} {FILE_SIZE // 1024} kb files for {MAX_GAMERS} gamers"
        " in a transaction",
        upload,
    )

    def read_random_chunks() -> list[bytes]:
        chunks = []
        for stored in list(files.values())[:50]:
            offset = rng.randint(0, max(0, len(stored.data) - 256))
            chunks.append(stored.data[offset : offset + 256])
        return chunks

    recorder.record(CATEGORY_FS, "Read 256 bytes chunk from random file positions", read_random_chunks)

    def update_a_users() -> None:
        updated = 0
        for user in table.values():
            if user.username.startswith("a"):
                user.categories.append("UpdatedUser")
                updated += 1
        if updated == 0:
            raise WorkloadError("updated 0 users, expected at least one")

    recorder.record(CATEGORY_GENERAL, "Update users with username starting with 'a'", update_a_users)

    def delete_small_users() -> None:
        doomed = [u for u in table.values() if len(u.categories) <= 2]
        for user in doomed:
            for path in user.files:
                files.pop(path, None)
            del table[user.username]

    recorder.record(CATEGORY_GENERAL, "Delete users with <= 2 categories", delete_small_users)

    def paginate() -> None:
        page = sorted(table)[100:150]
        if len(page) != 50:
            raise WorkloadError(f"page 3 returned {len(page)} users, expected 50")

    recorder.record(CATEGORY_GENERAL, "Paginated query (page 3 of 50 users)", paginate)

    def complex_query() -> list[str]:
        return [
            u.files[0][2:6]
            for u in table.values()
            if u.username[:1] in ("b", "c") and len(u.categories) >= 1 and u.files
        ]

    recorder.record(CATEGORY_GENERAL, "Complex query with multiple conditions", complex_query)

    def files_and_tags() -> list[tuple[str, str, dict[str, str]]]:
        return [(f.username, path, f.tags) for path, f in list(files.items())[:100]]

    recorder.record(CATEGORY_FS, "Retrieve file&tags from users", files_and_tags)

    def count_by_letter() -> dict[str, int]:
        counts: dict[str, int] = {}
        for username in table:
            counts[username[0]] = counts.get(username[0], 0) + 1
        return counts

    recorder.record(CATEGORY_GENERAL, "Count users by username first letter", count_by_letter)

    def read_gaming_heads() -> list[bytes]:
        return [
            stored.data[:1024] for stored in files.values() if stored.tags.get("Tags") == "Gaming"
        ]

    recorder.record(CATEGORY_FS, "Read first 1KB from all gaming files", read_gaming_heads)
