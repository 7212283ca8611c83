"""
Record source - Load LOINC records from the persisted corpus file.

Falls back to the built-in sample set when no corpus file exists. Also maps
rows of the LOINC distribution table (Loinc.csv) to records.
"""

import csv
import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Union

from ..core.exceptions import ConfigError, CorpusError
from ..core.types import LoincCode
from ..core.utils import atomic_write_text
from .reader import DEFAULT_CHUNK_SIZE
from .sample_data import SAMPLE_LOINC_CODES


logger = logging.getLogger(__name__)


@dataclass
class LoaderConfig:
    """Locations and read settings for the persisted corpus."""
    data_dir: str = "data"
    codes_file: str = "loinc-codes.json"
    vectors_file: str = "loinc-embeddings.json"
    csv_file: str = "Loinc.csv"
    chunk_size: int = DEFAULT_CHUNK_SIZE
    max_buffer_chars: Optional[int] = None
    prefetch: bool = False

    @property
    def codes_path(self) -> Path:
        return Path(self.data_dir) / self.codes_file

    @property
    def vectors_path(self) -> Path:
        return Path(self.data_dir) / self.vectors_file

    @property
    def csv_path(self) -> Path:
        return Path(self.data_dir) / self.csv_file

    def validate(self) -> None:
        if self.chunk_size <= 0:
            raise ConfigError(f"loader.chunk_size must be positive, got {self.chunk_size}")
        if self.max_buffer_chars is not None and self.max_buffer_chars <= 0:
            raise ConfigError(
                f"loader.max_buffer_chars must be positive, got {self.max_buffer_chars}"
            )


def load_loinc_codes(path: Optional[Union[str, Path]] = None) -> List[LoincCode]:
    """
    Load the ordered record corpus.

    Args:
        path: Persisted corpus file (JSON array of records). When missing or
            unreadable, the built-in sample set is returned.

    Returns:
        Records in file order

    Raises:
        CorpusError: If the file holds an empty or duplicate code
    """
    if path is not None and Path(path).exists():
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            logger.error(f"Error loading LOINC data from {path}: {e}")
        else:
            if isinstance(data, list):
                codes = records_from_dicts(data)
                logger.info(f"Loaded {len(codes)} LOINC codes from {path}")
                return codes
            logger.error(f"LOINC data file {path} does not hold a JSON array")

    logger.info("Using sample LOINC data")
    return list(SAMPLE_LOINC_CODES)


def records_from_dicts(rows: Iterable[Dict[str, Any]]) -> List[LoincCode]:
    """Convert persisted dicts to records, enforcing unique codes."""
    codes: List[LoincCode] = []
    seen = set()

    for row in rows:
        record = LoincCode.from_dict(row)
        if record.code in seen:
            raise CorpusError(f"Duplicate LOINC code in corpus: {record.code}")
        seen.add(record.code)
        codes.append(record)

    return codes


def save_loinc_codes(codes: List[LoincCode], path: Union[str, Path]) -> None:
    """Persist records as a JSON array for quick loading."""
    atomic_write_text(path, json.dumps([c.to_dict() for c in codes], indent=2))
    logger.info(f"Saved {len(codes)} codes to {path}")


def records_from_csv(path: Union[str, Path], active_only: bool = True) -> List[LoincCode]:
    """
    Map rows of the LOINC table to records.

    Args:
        path: Loinc.csv from the LOINC distribution
        active_only: Keep only rows with STATUS == ACTIVE

    Returns:
        Records in file order. Rows with an empty LOINC_NUM, and repeats of a
        code already seen, are skipped with a warning.
    """
    codes: List[LoincCode] = []
    seen = set()
    total = 0
    rejected = 0

    with open(path, "r", encoding="utf-8", newline="") as f:
        for row in csv.DictReader(f):
            total += 1
            if active_only and row.get("STATUS") != "ACTIVE":
                continue
            code = (row.get("LOINC_NUM") or "").strip()
            if not code:
                rejected += 1
                logger.warning(f"Skipping LOINC row {total} with an empty LOINC_NUM")
                continue
            if code in seen:
                rejected += 1
                logger.warning(f"Skipping duplicate LOINC code {code} at row {total}")
                continue
            seen.add(code)
            codes.append(LoincCode(
                code=code,
                display_name=row.get("DisplayName") or row.get("LONG_COMMON_NAME", ""),
                long_common_name=row.get("LONG_COMMON_NAME", ""),
                short_name=row.get("SHORTNAME", ""),
                component=row.get("COMPONENT", ""),
                property=row.get("PROPERTY", ""),
                time_aspect=row.get("TIME_ASPCT", ""),
                system=row.get("SYSTEM", ""),
                scale_type=row.get("SCALE_TYP", ""),
                method_type=row.get("METHOD_TYP") or None,
                class_name=row.get("CLASS", ""),
                version_last_changed=row.get("VersionLastChanged", ""),
            ))

    logger.info(f"Found {total} LOINC rows, {len(codes)} to process, {rejected} rejected")
    return codes
