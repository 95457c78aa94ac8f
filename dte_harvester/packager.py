"""ZIP packaging and cleanup of harvest output directories."""

from __future__ import annotations

import logging
import shutil
import time
import zipfile
from datetime import UTC, date, datetime
from pathlib import Path

logger = logging.getLogger(__name__)

INFO_FILENAME = "INFO.txt"


def write_info_file(directory: Path, start: date, end: date, account_email: str | None) -> Path:
    """Describe the batch inside the archive."""
    path = directory / INFO_FILENAME
    lines = [
        f"Batch: {start.isoformat()} a {end.isoformat()}",
        f"Extraído de: {account_email or 'desconocido'}",
        f"Fecha actual: {datetime.now(tz=UTC).isoformat()}",
    ]
    path.write_text("\n".join(lines), encoding="utf-8")
    return path


def zip_directory(source_dir: Path, out_path: Path) -> int:
    """Zip the contents of ``source_dir`` (paths relative to it); return the archive size."""
    out_path.parent.mkdir(parents=True, exist_ok=True)
    with zipfile.ZipFile(out_path, "w", compression=zipfile.ZIP_DEFLATED, compresslevel=9) as archive:
        for path in sorted(source_dir.rglob("*")):
            archive.write(path, str(path.relative_to(source_dir)))
    return out_path.stat().st_size


def remove_paths(*paths: Path) -> None:
    """Best-effort removal of local batch directories and archives."""
    for path in paths:
        try:
            if path.is_dir():
                shutil.rmtree(path)
            elif path.exists():
                path.unlink()
        except OSError as exc:
            logger.warning("Could not remove %s: %s", path, exc)


def clean_old_batches(base_dir: Path, max_age_hours: float = 24) -> list[Path]:
    """Delete ``{base}/{user}/{batch}`` entries older than ``max_age_hours``."""
    if not base_dir.exists():
        return []
    threshold = time.time() - max_age_hours * 3600
    removed: list[Path] = []
    for user_dir in base_dir.iterdir():
        if not user_dir.is_dir():
            continue
        for batch in user_dir.iterdir():
            if batch.stat().st_mtime < threshold:
                remove_paths(batch)
                removed.append(batch)
    if removed:
        logger.info("Removed %s stale batches under %s", len(removed), base_dir)
    return removed
