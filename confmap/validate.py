"""Validate the JSON data tree.

Checks every conference, venue and event file against its schema, then
checks cross-file references (event -> venue, event -> conference).
Exits 0 when everything is valid, 1 otherwise.

Usage:
    confmap-validate [--data-dir DATA_DIR]
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional, Set, Type

from pydantic import BaseModel, ValidationError

from confmap.data import (
    CONFERENCES_SUBDIR,
    EVENTS_SUBDIR,
    VENUES_FILE,
    VENUES_SUBDIR,
    get_data_dir,
    load_prefecture_venues,
    read_json,
)
from confmap.models import Conference, ConferenceEvent

logger = logging.getLogger("confmap.validate")


def validate_file(path: Path, model: Type[BaseModel], *, expect_array: bool) -> List[BaseModel]:
    """Validated records from one file; raises on the first bad record."""
    data = read_json(path)
    if expect_array:
        if not isinstance(data, list):
            raise ValueError("expected a JSON array")
        return [model.model_validate(item) for item in data]
    return [model.model_validate(data)]


def _check_files(paths: List[Path], model: Type[BaseModel], *, expect_array: bool, root: Path) -> tuple[bool, list]:
    ok = True
    records: list = []
    if not paths:
        logger.warning("No JSON files found for %s", model.__name__)
    for path in paths:
        rel = path.relative_to(root).as_posix()
        try:
            records.extend(validate_file(path, model, expect_array=expect_array))
            logger.info("OK   %s (%s)", rel, model.__name__)
        except (OSError, ValueError, ValidationError) as exc:
            ok = False
            logger.error("FAIL %s (%s): %s", rel, model.__name__, exc)
    return ok, records


def validate_data_dir(data_dir: Path) -> bool:
    conf_ok, conferences = _check_files(
        sorted((data_dir / CONFERENCES_SUBDIR).glob("*.json")), Conference, expect_array=False, root=data_dir
    )
    ids = [c.id for c in conferences]
    duplicates = sorted({cid for cid in ids if ids.count(cid) > 1})
    if duplicates:
        conf_ok = False
        logger.error("Duplicate conference ids: %s", ", ".join(duplicates))

    venues_ok = True
    venue_ids: Set[str] = set()
    venues_dir = data_dir / VENUES_SUBDIR
    prefecture_dirs = sorted(p for p in venues_dir.iterdir() if p.is_dir()) if venues_dir.is_dir() else []
    for prefecture_dir in prefecture_dirs:
        if not (prefecture_dir / VENUES_FILE).exists():
            continue
        rel = (prefecture_dir / VENUES_FILE).relative_to(data_dir).as_posix()
        try:
            venue_ids.update(v.id for v in load_prefecture_venues(prefecture_dir))
            logger.info("OK   %s (Venue)", rel)
        except (OSError, ValueError, ValidationError) as exc:
            venues_ok = False
            logger.error("FAIL %s (Venue): %s", rel, exc)

    events_ok, events = _check_files(
        sorted((data_dir / EVENTS_SUBDIR).glob("*.json")), ConferenceEvent, expect_array=True, root=data_dir
    )

    refs_ok = True
    known_conferences = set(ids)
    for event in events:
        if event.venue_id not in venue_ids:
            refs_ok = False
            logger.error("Event %r references unknown venue %r", event.name, event.venue_id)
        if event.conference_id not in known_conferences:
            refs_ok = False
            logger.error("Event %r references unknown conference %r", event.name, event.conference_id)

    return conf_ok and venues_ok and events_ok and refs_ok


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Validate conference/venue/event JSON data.")
    parser.add_argument("--data-dir", type=Path, default=None, help="Data root (default: $CONFMAP_DATA_DIR or ./data)")
    parser.add_argument("-q", "--quiet", action="store_true", help="Only report failures")
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.WARNING if args.quiet else logging.INFO, format="%(levelname)s %(message)s")
    data_dir = args.data_dir or get_data_dir()
    logger.info("Validating data under %s", data_dir)

    if validate_data_dir(data_dir):
        logger.info("All data validation passed")
        return 0
    logger.error("Data validation failed")
    return 1


if __name__ == "__main__":
    sys.exit(main())
