"""
Flat-file persistence for the pipeline: the profile snapshot (JSON array)
and the append-only enrichment log (NDJSON).
"""

import json
import logging
from collections.abc import Iterable, Iterator
from pathlib import Path

from pydantic import ValidationError

from models.enrichment import EnrichedRecord, Profile, normalize_email

logger = logging.getLogger(__name__)


def save_profile_snapshot(path: Path, profiles: Iterable[Profile]) -> int:
    """Overwrite ``path`` with the full profile list; returns the count written."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    rows = [p.model_dump(by_alias=True) for p in profiles]
    tmp_path = path.with_suffix(path.suffix + ".tmp")
    with open(tmp_path, "w", encoding="utf-8") as f:
        json.dump(rows, f, ensure_ascii=False, indent=2)
    tmp_path.replace(path)
    return len(rows)


def load_profile_snapshot(path: Path) -> list[Profile]:
    """Read a snapshot written by :func:`save_profile_snapshot`.

    Entries without an email are dropped.
    """
    with open(path, "r", encoding="utf-8") as f:
        rows = json.load(f)
    profiles = []
    for row in rows:
        if not normalize_email(row.get("email")):
            logger.warning(f"Skipping snapshot entry with no email: {row.get('profileId')}")
            continue
        profiles.append(Profile.model_validate(row))
    return profiles


def iter_log_lines(path: Path) -> Iterator[tuple[int, str]]:
    """Yield ``(line_number, line)`` for each non-blank line of an NDJSON file."""
    with open(path, "r", encoding="utf-8") as f:
        for number, line in enumerate(f, start=1):
            line = line.strip()
            if line:
                yield number, line


def load_processed_emails(path: Path) -> set[str]:
    """
    Build the resumability set from an existing enrichment log.

    Missing file means nothing was processed yet. Lines that are not valid
    JSON objects are logged and ignored.
    """
    path = Path(path)
    emails: set[str] = set()
    if not path.exists():
        return emails

    for number, line in iter_log_lines(path):
        try:
            record = json.loads(line)
        except json.JSONDecodeError:
            logger.warning(f"Skipping invalid NDJSON line {number}: {line[:200]}")
            continue
        email = normalize_email(record.get("email")) if isinstance(record, dict) else ""
        if email:
            emails.add(email)
    logger.info(f"Loaded {len(emails)} already-enriched emails from {path}")
    return emails


def append_enriched_record(path: Path, record: EnrichedRecord) -> None:
    """Append one record as a JSON line and close the file immediately."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "a", encoding="utf-8") as f:
        f.write(record.to_json_line() + "\n")


def iter_enriched_records(path: Path) -> Iterator[EnrichedRecord]:
    """Yield parsed records from the log, skipping malformed lines."""
    for number, line in iter_log_lines(path):
        try:
            yield EnrichedRecord.model_validate_json(line)
        except ValidationError as exc:
            logger.warning(f"Skipping malformed record on line {number}: {exc.errors()[0]['msg']}")
