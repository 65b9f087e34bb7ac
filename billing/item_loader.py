"""
Load raw line items from a file for the CLI.

Accepted formats:
  .json   a list of item objects, or an object with an "items" list
  .csv    one item per row; header names follow the item fields
          (description, quantity, unitPrice / unit_price, itemCode, ...)

Values are returned as read; normalize() does the coercion.
"""
import csv
import json
import logging
from pathlib import Path

from .errors import ValidationError

logger = logging.getLogger(__name__)


def load_raw_items(path: Path) -> list[dict]:
    """Read raw line items from *path*.  Raises ValidationError on an unusable file."""
    path = Path(path)
    suffix = path.suffix.lower()

    if suffix == ".csv":
        with open(path, newline="", encoding="utf-8") as f:
            rows = [
                {k.strip(): v for k, v in row.items() if k}
                for row in csv.DictReader(f)
            ]
        logger.debug("Loaded %d items from %s", len(rows), path)
        return rows

    if suffix == ".json":
        try:
            with open(path, encoding="utf-8") as f:
                data = json.load(f)
        except json.JSONDecodeError as exc:
            raise ValidationError(f"{path.name} is not valid JSON: {exc}") from exc
        if isinstance(data, dict):
            data = data.get("items")
        if not isinstance(data, list):
            raise ValidationError(f"{path.name} must hold a list of items or an object with \"items\"")
        logger.debug("Loaded %d items from %s", len(data), path)
        return data

    raise ValidationError(f"Unsupported item file type: {path.suffix or '(none)'} (use .json or .csv)")
