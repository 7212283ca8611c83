"""
Core data types for the LOINC search module.

Records use the camelCase field names of the persisted corpus file when
serialized, and snake_case attributes in Python.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from .exceptions import CorpusError


# Python attribute -> persisted JSON field
_RECORD_FIELDS: Tuple[Tuple[str, str], ...] = (
    ("code", "code"),
    ("display_name", "displayName"),
    ("long_common_name", "longCommonName"),
    ("short_name", "shortName"),
    ("component", "component"),
    ("property", "property"),
    ("time_aspect", "timeAspect"),
    ("system", "system"),
    ("scale_type", "scaleType"),
    ("method_type", "methodType"),
    ("class_name", "className"),
    ("version_last_changed", "versionLastChanged"),
)


@dataclass(frozen=True)
class LoincCode:
    """
    One LOINC terminology entry.

    Attributes:
        code: LOINC number, the unique join key between records and vectors
        display_name: Consumer-friendly display name
        long_common_name: Fully specified long common name
        short_name: Abbreviated name
        component: Analyte or measured component
        property: Kind of property (MCnc, SCnc, ...)
        time_aspect: Timing (Pt, 24H, ...)
        system: Specimen or system (Bld, Ser/Plas, ...)
        scale_type: Scale (Qn, Ord, Nom, ...)
        method_type: Optional method
        class_name: LOINC class (CHEM, HEM/BC, ...)
        version_last_changed: LOINC release that last changed the entry
    """
    code: str
    display_name: str = ""
    long_common_name: str = ""
    short_name: str = ""
    component: str = ""
    property: str = ""
    time_aspect: str = ""
    system: str = ""
    scale_type: str = ""
    method_type: Optional[str] = None
    class_name: str = ""
    version_last_changed: str = ""

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the persisted JSON shape."""
        return {json_name: getattr(self, attr) for attr, json_name in _RECORD_FIELDS}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LoincCode":
        """Create from the persisted JSON shape."""
        code = data.get("code")
        if not isinstance(code, str) or not code.strip():
            raise CorpusError(f"LOINC record has an empty code: {data!r:.120}")

        values = {}
        for attr, json_name in _RECORD_FIELDS:
            value = data.get(json_name)
            if attr == "method_type":
                values[attr] = value or None
            else:
                values[attr] = "" if value is None else str(value)
        values["code"] = code.strip()
        return cls(**values)


@dataclass(frozen=True)
class EmbeddingEntry:
    """
    A record joined with its embedding vector.

    Attributes:
        record: The LOINC record
        vector: Embedding vector
        search_text: Case-normalized text the vector was (or would be) generated from
    """
    record: LoincCode
    vector: Tuple[float, ...]
    search_text: str = ""

    @property
    def code(self) -> str:
        return self.record.code


@dataclass
class SearchHit:
    """
    A single ranked search result.

    Attributes:
        record: Matched LOINC record
        score: Cosine similarity to the query
        rank: 1-based rank in the result list
        corpus_index: Position of the entry in the store
    """
    record: LoincCode
    score: float
    rank: int
    corpus_index: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.record.code,
            "score": self.score,
            "rank": self.rank,
            "record": self.record.to_dict(),
        }


@dataclass
class MatchResult:
    """A search hit with its natural-language explanation."""
    record: LoincCode
    confidence: float
    reasoning: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.record.to_dict(),
            "confidence": self.confidence,
            "reasoning": self.reasoning,
        }


@dataclass
class ProgressMarker:
    """
    Durable checkpoint of the batch importer.

    Attributes:
        processed_count: Number of records successfully processed so far
        last_code: Code of the last successfully processed record
        updated_utc: When the marker was written
    """
    processed_count: int
    last_code: Optional[str] = None
    updated_utc: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "processed_count": self.processed_count,
            "last_code": self.last_code,
            "updated_utc": self.updated_utc.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ProgressMarker":
        """Create from dictionary. Raises ValueError/TypeError on bad shapes."""
        processed = data["processed_count"]
        if isinstance(processed, bool) or not isinstance(processed, int) or processed < 0:
            raise ValueError(f"Invalid processed_count: {processed!r}")

        last_code = data.get("last_code")
        if last_code is not None and not isinstance(last_code, str):
            raise ValueError(f"Invalid last_code: {last_code!r}")

        updated = data.get("updated_utc")
        if isinstance(updated, str):
            updated = datetime.fromisoformat(updated)
        else:
            updated = datetime.now(timezone.utc)

        return cls(processed_count=processed, last_code=last_code, updated_utc=updated)


def create_searchable_text(record: LoincCode) -> str:
    """
    Build the text used to embed a record on the fly.

    Concatenates the descriptive fields, lower-cased.
    """
    parts: List[str] = [
        record.display_name,
        record.long_common_name,
        record.short_name,
        record.component,
        record.system,
        record.property,
        record.class_name,
    ]
    return " ".join(parts).lower()


def create_import_text(record: LoincCode) -> str:
    """Build the text the batch importer embeds for a record."""
    return (
        f"{record.display_name} {record.long_common_name} "
        f"{record.component} {record.system}"
    ).lower()


@dataclass
class ProviderConfig:
    """
    Configuration for the embedding/explanation provider.

    Attributes:
        provider: Provider name (e.g., 'ollama')
        base_url: Base URL for the provider API
        embed_model: Model used for embeddings
        chat_model: Model used for explanations
        temperature: Sampling temperature for explanations
        max_tokens: Maximum tokens in an explanation
        timeout_seconds: Request timeout in seconds
    """
    provider: str = "ollama"
    base_url: str = "http://localhost:11434"
    embed_model: str = "nomic-embed-text"
    chat_model: str = "llama3.2"
    temperature: float = 0.3
    max_tokens: Optional[int] = 150
    timeout_seconds: int = 120
