from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from dotenv import load_dotenv
from loguru import logger
from pydantic import ValidationError
from sqlalchemy.orm import Session

from celpip_prep.models.practice_set import PracticeSet as SetRow
from celpip_prep.schemas.practice_set import PracticeSet
from celpip_prep.utils.content_validation import error_issues, validate_practice_set, warning_issues
from celpip_prep.utils.set_store import save_set

load_dotenv(Path(__file__).resolve().parents[1] / ".env")

# Folder with the YAML practice sets shipped alongside the package
CATALOG_ROOT = Path(os.getenv("CATALOG_ROOT") or Path(__file__).resolve().parents[1] / "catalog")


class CatalogError(Exception):
    """A catalog file that cannot become a practice set."""


def _load_yaml(path: Path) -> Dict[str, Any]:
    """Reads one YAML file into a dict, raising CatalogError on anything else."""
    try:
        with path.open("r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        raise CatalogError(f"Cannot read YAML {path}: {e}") from e
    if not isinstance(data, dict):
        raise CatalogError(f"{path}: top level must be a mapping")
    return data


def discover_sets(root: Path | None = None) -> List[Path]:
    """All *.yaml / *.yml files under the catalog root, sorted."""
    root = Path(root) if root else CATALOG_ROOT
    if not root.exists():
        return []
    return sorted(p for p in root.rglob("*.y*ml") if p.is_file())


def parse_set_file(path: Path) -> PracticeSet:
    data = _load_yaml(path)
    if not data.get("id"):
        raise CatalogError(f"{path}: missing 'id'")
    if not data.get("title"):
        raise CatalogError(f"{path}: missing 'title'")
    if not isinstance(data.get("sections", []), list):
        raise CatalogError(f"{path}: 'sections' must be a list")

    try:
        practice_set = PracticeSet.model_validate(data)
    except ValidationError as e:
        raise CatalogError(f"{path}: {e}") from e

    issues = validate_practice_set(practice_set)
    bad = error_issues(issues)
    if bad:
        raise CatalogError(f"{path}: " + "; ".join(str(i) for i in bad))
    for issue in warning_issues(issues):
        logger.warning("{}: {}", path.name, issue)
    return practice_set


def import_set_file(db: Session, path: Path, overwrite: bool = True) -> Optional[str]:
    """Upserts one catalog file by set id and returns the id (None when skipped)."""
    practice_set = parse_set_file(path)
    if not overwrite and db.get(SetRow, practice_set.id) is not None:
        logger.info("Set {} already stored; keeping the edited copy", practice_set.id)
        return None
    save_set(db, practice_set)
    return practice_set.id


def import_all(
    db: Session,
    root: Path | None = None,
    stop_on_error: bool = False,
    overwrite: bool = True,
) -> Dict[str, Any]:
    """
    Imports every set in the catalog.
    Returns { imported: [ids], errors: {path: error}, root: str, count: int }.
    With stop_on_error=True the first failure is raised instead; with
    overwrite=False sets already in the database are left alone.
    """
    root = Path(root) if root else CATALOG_ROOT
    imported: List[str] = []
    errors: Dict[str, str] = {}

    for p in discover_sets(root):
        try:
            set_id = import_set_file(db, p, overwrite=overwrite)
            if set_id:
                imported.append(set_id)
        except CatalogError as e:
            errors[str(p)] = str(e)
            logger.error("Catalog file rejected: {}", e)
            if stop_on_error:
                raise

    logger.info("Catalog import from {}: {} set(s), {} error(s)", root, len(imported), len(errors))
    return {"imported": imported, "errors": errors, "root": str(root), "count": len(imported)}


if __name__ == "__main__":
    # python -m celpip_prep.utils.set_loader
    from celpip_prep.database import Base, SessionLocal, engine
    from celpip_prep import models  # noqa: F401

    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        result = import_all(db)
        logger.info("Import finished: {}", result)
    finally:
        db.close()
