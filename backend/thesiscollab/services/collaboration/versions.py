"""Append-only version history of a document and on-demand diffs."""

from __future__ import annotations

import difflib
import logging
import uuid
from dataclasses import dataclass, replace
from datetime import datetime
from typing import List, Optional, Tuple
from uuid import UUID

from .authorization import Action, authorize
from .errors import Err, ErrorKind, Ok, Result
from .events import DomainEvent, EventType, utcnow
from .policy import CollaborationPolicy, resolve_policy
from .types import Document, Version

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DiffLine:
    type: str  # "added", "deleted" or "unchanged"
    content: str
    old_line_number: Optional[int] = None
    new_line_number: Optional[int] = None


@dataclass(frozen=True)
class DiffStats:
    additions: int
    deletions: int
    unchanged: int


@dataclass(frozen=True)
class VersionDiff:
    document_id: UUID
    from_version: int
    to_version: int
    diff_lines: Tuple[DiffLine, ...]
    stats: DiffStats


@dataclass(frozen=True)
class VersionHistory:
    document_id: UUID
    versions: Tuple[Version, ...] = ()

    def __len__(self) -> int:
        return len(self.versions)

    @property
    def latest_number(self) -> int:
        return max((v.version_number for v in self.versions), default=0)

    @property
    def current(self) -> Optional[Version]:
        return self.get(self.latest_number) if self.versions else None

    def get(self, version_number: int) -> Optional[Version]:
        for version in self.versions:
            if version.version_number == version_number:
                return version
        return None

    def by_id(self, version_id: UUID) -> Optional[Version]:
        for version in self.versions:
            if version.id == version_id:
                return version
        return None

    def find_by_request_id(self, request_id: Optional[str]) -> Optional[Version]:
        if not request_id:
            return None
        for version in self.versions:
            if version.request_id == request_id:
                return version
        return None

    def append(self, version: Version) -> "VersionHistory":
        if version.document_id != self.document_id:
            raise ValueError("Version belongs to another document")
        if version.version_number != self.latest_number + 1:
            raise ValueError(
                f"Version {version.version_number} does not follow {self.latest_number}"
            )
        return replace(self, versions=self.versions + (version,))


@dataclass(frozen=True)
class CreatedVersion:
    history: VersionHistory
    version: Version


def create_version(
    document: Document,
    history: VersionHistory,
    actor_user_id: UUID,
    content: str,
    commit_message: Optional[str] = None,
    *,
    request_id: Optional[str] = None,
    policy: Optional[CollaborationPolicy] = None,
    now: Optional[datetime] = None,
) -> Result[CreatedVersion]:
    """Snapshot ``content`` as the next version of ``document``.

    A retried call carrying an already used ``request_id`` returns the
    version it created the first time, without events.
    """
    policy = resolve_policy(policy)
    decision = authorize(
        document.collaborators,
        actor_user_id,
        Action.CREATE_VERSION,
        status=document.status,
        policy=policy,
    )
    if not decision.allowed:
        return decision.to_error()

    existing = history.find_by_request_id(request_id)
    if existing is not None:
        if existing.created_by_user_id != actor_user_id:
            return Err(
                ErrorKind.VALIDATION_FAILED,
                "request_id was already used by another collaborator",
                {"request_id": request_id},
            )
        logger.debug("Version request %s replayed on document %s", request_id, document.id)
        return Ok(CreatedVersion(history, existing))

    now = now or utcnow()
    version = Version(
        id=uuid.uuid4(),
        document_id=document.id,
        version_number=history.latest_number + 1,
        content=content or "",
        created_by_user_id=actor_user_id,
        created_at=now,
        commit_message=(commit_message or "").strip() or None,
        request_id=request_id,
    )
    logger.info("Version %s created on document %s by %s", version.version_number, document.id, actor_user_id)
    return Ok(
        CreatedVersion(history.append(version), version),
        (
            DomainEvent(
                type=EventType.VERSION_CREATED,
                document_id=document.id,
                actor_user_id=actor_user_id,
                timestamp=now,
                extra={
                    "version_id": str(version.id),
                    "version_number": version.version_number,
                    "commit_message": version.commit_message,
                },
            ),
        ),
    )


def compute_diff(old_text: str, new_text: str) -> Tuple[List[DiffLine], DiffStats]:
    """Line-by-line diff between two texts, covering every line of both."""
    old_lines = (old_text or "").splitlines()
    new_lines = (new_text or "").splitlines()

    diff_lines: List[DiffLine] = []
    additions = 0
    deletions = 0
    unchanged = 0

    matcher = difflib.SequenceMatcher(None, old_lines, new_lines, autojunk=False)
    for tag, i1, i2, j1, j2 in matcher.get_opcodes():
        if tag == "equal":
            for offset, line in enumerate(old_lines[i1:i2]):
                diff_lines.append(DiffLine(
                    type="unchanged",
                    content=line,
                    old_line_number=i1 + offset + 1,
                    new_line_number=j1 + offset + 1,
                ))
                unchanged += 1
            continue
        # "replace" is reported as the old lines deleted, then the new ones added
        if tag in ("delete", "replace"):
            for offset, line in enumerate(old_lines[i1:i2]):
                diff_lines.append(DiffLine(type="deleted", content=line, old_line_number=i1 + offset + 1))
                deletions += 1
        if tag in ("insert", "replace"):
            for offset, line in enumerate(new_lines[j1:j2]):
                diff_lines.append(DiffLine(type="added", content=line, new_line_number=j1 + offset + 1))
                additions += 1

    stats = DiffStats(additions=additions, deletions=deletions, unchanged=unchanged)
    return diff_lines, stats


def diff_versions(
    document: Document,
    history: VersionHistory,
    actor_user_id: UUID,
    from_number: int,
    to_number: int,
) -> Result[VersionDiff]:
    """Read-only diff between two stored versions; never persisted."""
    decision = authorize(document.collaborators, actor_user_id, Action.VIEW_DOCUMENT)
    if not decision.allowed:
        return decision.to_error()

    old = history.get(from_number)
    new = history.get(to_number)
    missing = [n for n, v in ((from_number, old), (to_number, new)) if v is None]
    if missing:
        return Err(
            ErrorKind.ENTITY_NOT_FOUND,
            f"Version {missing[0]} not found",
            {"version_numbers": missing},
        )

    diff_lines, stats = compute_diff(old.content, new.content)
    return Ok(VersionDiff(
        document_id=document.id,
        from_version=from_number,
        to_version=to_number,
        diff_lines=tuple(diff_lines),
        stats=stats,
    ))
