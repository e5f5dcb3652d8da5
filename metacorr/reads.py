"""Project alignment records onto reference coordinates."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, Iterator, Optional, Tuple

import pysam

from metacorr.config import P2Config
from metacorr.errors import MalformedRecordError

logger = logging.getLogger(__name__)

# Placeholder for reference positions a read skips (deletions, introns)
GAP = "*"

# CIGAR operations grouped by what they consume
_COPY_OPS = (pysam.CMATCH, pysam.CEQUAL, pysam.CDIFF)
_QUERY_ONLY_OPS = (pysam.CINS, pysam.CSOFT_CLIP)
_REFERENCE_ONLY_OPS = (pysam.CDEL, pysam.CREF_SKIP)

# Flags that make a record unusable regardless of mapping quality
_EXCLUDED_FLAGS = 0x4 | 0x100 | 0x200 | 0x800


@dataclass(frozen=True)
class MappedRead:
    """The part of a read that lies on the reference, one base per position."""
    position: int
    bases: str
    qualities: bytes

    def __post_init__(self):
        if len(self.bases) != len(self.qualities):
            raise ValueError(
                f"Read at {self.position} has {len(self.bases)} bases "
                f"but {len(self.qualities)} qualities"
            )

    def __len__(self) -> int:
        return len(self.bases)

    @property
    def end(self) -> int:
        return self.position + len(self.bases)


@dataclass(frozen=True)
class AlignmentRecord:
    """Picklable copy of the AlignedSegment fields the projector reads.

    Attribute names match pysam.AlignedSegment so that either can be passed
    to project_record and ReadFilter.
    """
    reference_start: int
    mapping_quality: int
    cigartuples: Optional[Tuple[Tuple[int, int], ...]]
    query_sequence: Optional[str]
    query_qualities: Optional[bytes]
    flag: int = 0

    @classmethod
    def from_segment(cls, segment: pysam.AlignedSegment) -> "AlignmentRecord":
        quals = segment.query_qualities
        cigar = segment.cigartuples
        return cls(
            reference_start=segment.reference_start,
            mapping_quality=segment.mapping_quality,
            cigartuples=tuple(cigar) if cigar is not None else None,
            query_sequence=segment.query_sequence,
            query_qualities=bytes(quals) if quals is not None else None,
            flag=segment.flag,
        )


class ReadFilter:
    """Mapping quality and flag screen, with counters for diagnostics."""

    def __init__(self, config: P2Config):
        self.min_mapq = config.min_mapq
        self.max_mapq = config.max_mapq
        self.used = 0
        self.discarded = 0

    def accepts(self, record) -> bool:
        mapq = record.mapping_quality
        ok = (
            self.min_mapq < mapq <= self.max_mapq
            and not (record.flag & _EXCLUDED_FLAGS)
            and record.cigartuples is not None
            and record.query_sequence is not None
        )
        if ok:
            self.used += 1
        else:
            self.discarded += 1
        return ok


def project_record(record) -> Optional[MappedRead]:
    """Expand a record into reference-frame bases and qualities.

    Matches copy read bases, insertions and soft clips are dropped, and
    deletions and skips are filled with GAP at quality 0. Returns None for a
    record without a sequence or CIGAR.
    """
    seq = record.query_sequence
    cigar = record.cigartuples
    if seq is None or cigar is None:
        return None
    quals = record.query_qualities
    if quals is None:
        quals = bytes(len(seq))

    bases = []
    qualities = bytearray()
    p = 0  # position in the read sequence
    for op, length in cigar:
        if op in _COPY_OPS:
            if p + length > len(seq):
                raise MalformedRecordError(
                    f"CIGAR of read at {record.reference_start} runs past its "
                    f"{len(seq)} bases"
                )
            bases.append(seq[p:p + length])
            qualities.extend(quals[p:p + length])
            p += length
        elif op in _QUERY_ONLY_OPS:
            p += length
        elif op in _REFERENCE_ONLY_OPS:
            bases.append(GAP * length)
            qualities.extend(bytes(length))
        # hard clips and padding consume neither the read nor the reference

    if p > len(seq):
        raise MalformedRecordError(
            f"CIGAR of read at {record.reference_start} consumes {p} bases, "
            f"sequence has {len(seq)}"
        )
    return MappedRead(record.reference_start, "".join(bases).upper(), bytes(qualities))


def project_records(records: Iterable, read_filter: ReadFilter) -> Iterator[MappedRead]:
    """Yield MappedReads for the records that pass the filter."""
    for record in records:
        if not read_filter.accepts(record):
            continue
        read = project_record(record)
        if read is not None:
            yield read
