"""Section scoping, entity grouping and block library extraction."""

import logging
import math
from typing import Dict, List, Optional, Sequence

from .elements import Block, DxfDocument, Entity, TagRecord
from .records import parse_float, parse_int, read_records

logger = logging.getLogger(__name__)


# Code-0 markers that stay attached to their composite parent entity
COMPOSITE_MARKERS = {
    "POLYLINE": frozenset({"VERTEX", "SEQEND"}),
    "INSERT": frozenset({"ATTRIB", "SEQEND"}),
}


def split_sections(records: Sequence[TagRecord]) -> Dict[str, List[TagRecord]]:
    """Group records by the section they belong to.

    A section opens with ``0/SECTION`` immediately followed by ``2/<NAME>``
    and closes at ``0/ENDSEC``. Records outside any section are dropped;
    repeated sections with the same name are concatenated.
    """
    sections: Dict[str, List[TagRecord]] = {}
    current: Optional[List[TagRecord]] = None
    i = 0
    while i < len(records):
        record = records[i]
        value = record.value.strip()
        if record.code == 0 and value == "SECTION":
            current = None
            if i + 1 < len(records) and records[i + 1].code == 2:
                name = records[i + 1].value.strip().upper()
                current = sections.setdefault(name, [])
                i += 2
                continue
        elif record.code == 0 and value == "ENDSEC":
            current = None
        elif current is not None:
            current.append(record)
        i += 1
    return sections


def parse_insunits(header: Sequence[TagRecord]) -> int:
    """Return the $INSUNITS code, or 0 when absent or malformed."""
    for i, record in enumerate(header):
        if record.code == 9 and record.value.strip() == "$INSUNITS":
            if i + 1 < len(header) and header[i + 1].code == 70:
                return parse_int(header[i + 1].value, default=0)
            return 0
    return 0


class _EntityCollector:
    """Accumulates code-0 delimited entities, honouring composite markers."""

    def __init__(self) -> None:
        self.entities: List[Entity] = []
        self._kind: Optional[str] = None
        self._records: List[TagRecord] = []

    @property
    def active(self) -> bool:
        return self._kind is not None

    def feed(self, record: TagRecord) -> None:
        if record.code == 0:
            value = record.value.strip()
            markers = COMPOSITE_MARKERS.get(self._kind or "", frozenset())
            if value in markers:
                self._records.append(TagRecord(code=0, value=value))
                return
            self.flush()
            self._kind = value
            return
        if self._kind is not None:
            self._records.append(record)

    def flush(self) -> None:
        if self._kind is not None:
            self.entities.append(Entity(kind=self._kind, records=tuple(self._records)))
        self._kind = None
        self._records = []


def extract_entities(records: Sequence[TagRecord]) -> List[Entity]:
    """Build the flat entity list of an ENTITIES section."""
    collector = _EntityCollector()
    for record in records:
        collector.feed(record)
    collector.flush()
    return collector.entities


def extract_blocks(records: Sequence[TagRecord]) -> Dict[str, Block]:
    """Build the name-keyed block library of a BLOCKS section."""
    blocks: Dict[str, Block] = {}
    in_block = False
    name = ""
    base_x, base_y = 0.0, 0.0
    collector = _EntityCollector()

    for record in records:
        value = record.value.strip()
        if record.code == 0 and value == "BLOCK":
            in_block = True
            name = ""
            base_x, base_y = 0.0, 0.0
            collector = _EntityCollector()
            continue
        if record.code == 0 and value == "ENDBLK":
            collector.flush()
            if in_block and name:
                if name in blocks:
                    logger.debug(f"Block {name!r} redefined, keeping the later definition")
                blocks[name] = Block(
                    name=name,
                    base_point=(base_x, base_y),
                    entities=tuple(collector.entities),
                )
            in_block = False
            continue
        if not in_block:
            continue

        if not collector.active:
            if record.code == 2 and not name:
                name = value
                continue
            if record.code == 10:
                x = parse_float(value)
                if math.isfinite(x):
                    base_x = x
                continue
            if record.code == 20:
                y = parse_float(value)
                if math.isfinite(y):
                    base_y = y
                continue
        collector.feed(record)

    return blocks


def extract_document(records: Sequence[TagRecord]) -> DxfDocument:
    """Scope records into header, entities and blocks."""
    sections = split_sections(records)
    document = DxfDocument(
        insunits=parse_insunits(sections.get("HEADER", [])),
        entities=extract_entities(sections.get("ENTITIES", [])),
        blocks=extract_blocks(sections.get("BLOCKS", [])),
        record_count=len(records),
    )
    logger.info(
        f"Read {len(records)} records: {len(document.entities)} entities, "
        f"{len(document.blocks)} blocks, $INSUNITS={document.insunits}"
    )
    return document


def load_document(text: str) -> DxfDocument:
    """Read and extract a DXF document from its full text."""
    return extract_document(read_records(text))
