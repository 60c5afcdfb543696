"""
Line Classifier & Metadata Tagger
=================================
Assigns every raw telemetry line a record type, transmission batch
and position within that batch.
"""

import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterable, List, Optional, Tuple, Type

from gemsreport.processing.schemas import (
    AdvRow,
    MassSpecRow,
    PostTimeRow,
    StatusRow,
    TelemetryRow,
    TemperatureRow,
    TurboRow,
)

logger = logging.getLogger(__name__)


class RecordType(Enum):
    """Telemetry record types."""
    POST_TIME = "post_time"
    STATUS = "status"
    MASS_SPEC = "mass_spec"
    TURBO = "turbo"
    TEMPERATURE = "temperature"
    ADV = "adv"


# tag -> (record type, row schema)
RECORD_SCHEMAS: Dict[str, Tuple[RecordType, Type[TelemetryRow]]] = {
    "POST": (RecordType.POST_TIME, PostTimeRow),
    "S": (RecordType.STATUS, StatusRow),
    "R": (RecordType.MASS_SPEC, MassSpecRow),
    "U": (RecordType.TURBO, TurboRow),
    "T": (RecordType.TEMPERATURE, TemperatureRow),
    "D": (RecordType.ADV, AdvRow),
}

# tag -> (record type, number of payload fields after the tag)
SIGNATURES: Dict[str, Tuple[RecordType, int]] = {
    tag: (record_type, len(schema.payload_fields()))
    for tag, (record_type, schema) in RECORD_SCHEMAS.items()
}

# Modem noise: a '?' directly followed by 0/1, or a stray "V:" prompt
GARBAGE_PATTERNS = (
    re.compile(r"\?[01]"),
    re.compile(r"V:"),
)


@dataclass(frozen=True)
class TaggedRecord:
    """A raw line with its derived type and position."""
    record_type: RecordType
    batch_id: int
    line_number: int
    fields: Tuple[str, ...]


@dataclass
class ClassifierStats:
    """Line accounting for one tagging pass."""
    total_lines: int = 0
    garbage_lines: int = 0
    unclassified_lines: int = 0
    orphaned_lines: int = 0
    batches: int = 0
    by_type: Dict[str, int] = field(default_factory=dict)

    @property
    def tagged_lines(self) -> int:
        return sum(self.by_type.values())

    def to_dict(self) -> Dict:
        return {
            'total_lines': self.total_lines,
            'garbage_lines': self.garbage_lines,
            'unclassified_lines': self.unclassified_lines,
            'orphaned_lines': self.orphaned_lines,
            'tagged_lines': self.tagged_lines,
            'batches': self.batches,
            **{f'{name}_lines': count for name, count in sorted(self.by_type.items())},
        }


def is_garbage(line: str) -> bool:
    """True for the known modem-noise line patterns."""
    return any(pattern.search(line) for pattern in GARBAGE_PATTERNS)


def split_fields(line: str) -> List[str]:
    return [part.strip() for part in line.strip().split(",")]


def classify(line: str) -> Optional[RecordType]:
    """
    Classify a line by its signature (tag plus field count).

    Returns:
        The RecordType, or None when the line matches no signature
    """
    parts = split_fields(line)
    signature = SIGNATURES.get(parts[0])
    if signature is None:
        return None
    record_type, n_fields = signature
    if len(parts) - 1 != n_fields:
        return None
    return record_type


def _parse_batch_id(value: str) -> Optional[int]:
    try:
        return int(value)
    except ValueError:
        return None


class LineTagger:
    """
    Tags a stream of raw lines.

    A POST line opens a batch whose id is the line's send id. Line numbers
    count every raw line of a batch, dropped ones included, starting at 0
    on the POST line. A send id seen twice continues its earlier numbering.
    """

    def __init__(self):
        self.stats = ClassifierStats()
        self._next_line: Dict[int, int] = {}

    def tag(self, lines: Iterable[str]) -> List[TaggedRecord]:
        records: List[TaggedRecord] = []
        batch_id: Optional[int] = None

        for line in lines:
            self.stats.total_lines += 1
            record_type = None if is_garbage(line) else classify(line)

            if record_type == RecordType.POST_TIME:
                batch_id = _parse_batch_id(split_fields(line)[1])
                if batch_id is not None and batch_id not in self._next_line:
                    self._next_line[batch_id] = 0
                    self.stats.batches += 1

            if batch_id is None:
                self.stats.orphaned_lines += 1
                continue

            line_number = self._next_line[batch_id]
            self._next_line[batch_id] = line_number + 1

            if record_type is None:
                if is_garbage(line):
                    self.stats.garbage_lines += 1
                else:
                    self.stats.unclassified_lines += 1
                    logger.debug("Unclassified line in batch %d: %r", batch_id, line[:80])
                continue

            name = record_type.value
            self.stats.by_type[name] = self.stats.by_type.get(name, 0) + 1
            records.append(
                TaggedRecord(
                    record_type=record_type,
                    batch_id=batch_id,
                    line_number=line_number,
                    fields=tuple(split_fields(line)[1:]),
                )
            )

        logger.info(
            "Tagged %d of %d lines (%d garbage, %d unclassified, %d orphaned) in %d batches",
            self.stats.tagged_lines,
            self.stats.total_lines,
            self.stats.garbage_lines,
            self.stats.unclassified_lines,
            self.stats.orphaned_lines,
            self.stats.batches,
        )
        return records


def tag_lines(lines: Iterable[str]) -> Tuple[List[TaggedRecord], ClassifierStats]:
    """
    Convenience function to tag lines.

    Returns:
        Tuple of (tagged records, classifier stats)
    """
    tagger = LineTagger()
    records = tagger.tag(lines)
    return records, tagger.stats
