"""
Data models and state database for release-watch.
"""

import json
import logging
import secrets
import sqlite3
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from pathlib import Path

from .errors import MalformedVersion, StoreWriteError
from .version import SemanticVersion, is_newer, parse_version, strip_tag_prefix

logger = logging.getLogger(__name__)


class OutcomeStatus(str, Enum):
    """Per-component result of a reconciliation cycle."""

    NOTIFIED = "notified"
    UP_TO_DATE = "up_to_date"
    ALREADY_NOTIFIED = "already_notified"
    SKIPPED = "skipped"
    ERRORED = "errored"


class RunStatus(str, Enum):
    """Status of a reconciliation cycle."""

    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass(frozen=True)
class RepositoryRef:
    """A source repository on a code host, e.g. github.com/simonw/datasette."""

    host: str
    owner: str
    name: str

    @property
    def slug(self) -> str:
        return f"{self.owner}/{self.name}"

    @property
    def url(self) -> str:
        return f"https://{self.host}/{self.owner}/{self.name}"


@dataclass(frozen=True)
class Component:
    """An installed component whose version is tracked for updates."""

    identity: str
    name: str
    declared_version: str
    repository: RepositoryRef | None = None
    repository_url: str | None = None

    @property
    def is_tracked(self) -> bool:
        """A component is tracked when it declares any source repository."""
        return self.repository is not None or bool(self.repository_url)

    @property
    def link_base(self) -> str | None:
        """
        Repository URL used when building release links.

        The canonical URL of the parsed repository; the raw reference only when
        it could not be parsed.
        """
        if self.repository:
            return self.repository.url
        if self.repository_url:
            return self.repository_url.rstrip("/")
        return None


@dataclass(frozen=True)
class Release:
    """The latest published release of a repository."""

    tag: str

    @property
    def version(self) -> str:
        """Tag with the conventional leading "v" removed."""
        return strip_tag_prefix(self.tag)

    @property
    def parsed_version(self) -> SemanticVersion:
        return parse_version(self.tag)


@dataclass
class ComponentOutcome:
    """What happened to one component during a cycle."""

    identity: str
    status: OutcomeStatus
    version: str | None = None
    error: str | None = None

    def to_dict(self) -> dict:
        result = {"identity": self.identity, "status": self.status.value}
        if self.version:
            result["version"] = self.version
        if self.error:
            result["error"] = self.error
        return result


@dataclass
class CycleResult:
    """All outcomes of one reconciliation cycle."""

    run_id: str | None = None
    outcomes: list[ComponentOutcome] = field(default_factory=list)
    error: str | None = None

    @property
    def failed(self) -> bool:
        """True when the cycle aborted before processing components."""
        return self.error is not None

    def counts(self) -> dict[str, int]:
        """Number of outcomes per status, including zeros."""
        counts = {status.value: 0 for status in OutcomeStatus}
        for outcome in self.outcomes:
            counts[outcome.status.value] += 1
        return counts


@dataclass
class CycleRun:
    """A persisted record of one cycle."""

    run_id: str
    started_ts: str
    status: str = "running"
    completed_ts: str | None = None
    components_seen: int = 0
    notified: int = 0
    errored: int = 0
    config_snapshot_json: str | None = None
    error_message: str | None = None


class StateDatabase:
    """
    SQLite-backed notification state.

    Holds, per component identity, the highest version a notification was
    already sent for. Records only ever move forward.
    """

    def __init__(self, db_path: Path):
        self.db_path = db_path

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        return conn

    def get(self, identity: str) -> SemanticVersion | None:
        """Return the last notified version, or None if never notified."""
        conn = self._connect()
        try:
            row = conn.execute(
                "SELECT version FROM notification_state WHERE identity = ?",
                (identity,),
            ).fetchone()
        finally:
            conn.close()

        if row is None:
            return None
        try:
            return parse_version(row["version"])
        except MalformedVersion:
            logger.warning(
                f"Ignoring unparseable notification record for {identity}: {row['version']!r}"
            )
            return None

    def set(self, identity: str, version: SemanticVersion) -> bool:
        """
        Record ``version`` as notified for ``identity``.

        Returns False without writing when the stored version is already
        equal or newer.

        Raises:
            StoreWriteError: if the database write fails
        """
        now = datetime.now(UTC).isoformat()
        try:
            conn = self._connect()
            try:
                conn.execute("BEGIN IMMEDIATE")
                row = conn.execute(
                    "SELECT version FROM notification_state WHERE identity = ?",
                    (identity,),
                ).fetchone()
                if row is not None:
                    try:
                        current = parse_version(row["version"])
                    except MalformedVersion:
                        current = None
                    if current is not None and not is_newer(version, current):
                        conn.rollback()
                        return False

                conn.execute(
                    """
                    INSERT INTO notification_state (identity, version, updated_ts)
                    VALUES (?, ?, ?)
                    ON CONFLICT(identity) DO UPDATE SET
                        version = excluded.version,
                        updated_ts = excluded.updated_ts
                    """,
                    (identity, str(version), now),
                )
                conn.commit()
                return True
            finally:
                conn.close()
        except sqlite3.Error as e:
            raise StoreWriteError(f"Could not record {version} for {identity}: {e}") from e

    def all_records(self) -> dict[str, str]:
        """Return every stored record as identity -> version string."""
        conn = self._connect()
        try:
            cursor = conn.execute(
                "SELECT identity, version FROM notification_state ORDER BY identity"
            )
            return {row["identity"]: row["version"] for row in cursor.fetchall()}
        finally:
            conn.close()

    # -------------------------------------------------------------------------
    # Cycle runs
    # -------------------------------------------------------------------------

    def create_run(self, config: dict | None = None) -> CycleRun:
        """Create a new cycle run record."""
        run = CycleRun(
            run_id=secrets.token_hex(16),
            started_ts=datetime.now(UTC).isoformat(),
            config_snapshot_json=json.dumps(config) if config else None,
        )

        conn = self._connect()
        try:
            conn.execute(
                """
                INSERT INTO cycle_runs (run_id, started_ts, status, config_snapshot_json)
                VALUES (?, ?, ?, ?)
                """,
                (run.run_id, run.started_ts, run.status, run.config_snapshot_json),
            )
            conn.commit()
        finally:
            conn.close()

        return run

    def complete_run(
        self,
        run_id: str,
        counts: dict[str, int],
        status: RunStatus = RunStatus.COMPLETED,
        error_message: str | None = None,
    ) -> None:
        """Mark a cycle run as complete."""
        now = datetime.now(UTC).isoformat()
        conn = self._connect()
        try:
            conn.execute(
                """
                UPDATE cycle_runs SET
                    completed_ts = ?,
                    status = ?,
                    components_seen = ?,
                    notified = ?,
                    errored = ?,
                    error_message = ?
                WHERE run_id = ?
                """,
                (
                    now,
                    status.value,
                    sum(counts.values()),
                    counts.get(OutcomeStatus.NOTIFIED.value, 0),
                    counts.get(OutcomeStatus.ERRORED.value, 0),
                    error_message,
                    run_id,
                ),
            )
            conn.commit()
        finally:
            conn.close()

    def get_run(self, run_id: str) -> CycleRun | None:
        """Get a single cycle run by ID."""
        conn = self._connect()
        try:
            row = conn.execute(
                "SELECT * FROM cycle_runs WHERE run_id = ?", (run_id,)
            ).fetchone()
            return CycleRun(**dict(row)) if row else None
        finally:
            conn.close()

    def recent_runs(self, limit: int = 10) -> list[CycleRun]:
        """Most recent cycle runs, newest first."""
        conn = self._connect()
        try:
            cursor = conn.execute(
                "SELECT * FROM cycle_runs ORDER BY started_ts DESC LIMIT ?", (limit,)
            )
            return [CycleRun(**dict(row)) for row in cursor.fetchall()]
        finally:
            conn.close()
