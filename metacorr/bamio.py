"""Read SAM/BAM files as one batch of records per reference sequence."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterator, List

import pysam

from metacorr.errors import UnsortedReadsError
from metacorr.reads import AlignmentRecord

logger = logging.getLogger(__name__)


@dataclass
class ReferenceBatch:
    """All records mapped to one reference sequence, in file order."""
    reference: str
    records: List[AlignmentRecord]

    def __len__(self) -> int:
        return len(self.records)


def _open_mode(path: str) -> str:
    if path.endswith(".bam"):
        return "rb"
    if path.endswith(".cram"):
        return "rc"
    return "r"


def open_alignments(path: str) -> pysam.AlignmentFile:
    return pysam.AlignmentFile(path, _open_mode(path))


def count_references(path: str) -> int:
    with open_alignments(path) as bam:
        return bam.nreferences


def iter_reference_batches(path: str) -> Iterator[ReferenceBatch]:
    """Yield one ReferenceBatch per contiguous run of a reference id.

    Unplaced records are skipped. A reference that shows up again after its
    run has ended means the file is not coordinate sorted.
    """
    with open_alignments(path) as bam:
        sort_order = bam.header.to_dict().get("HD", {}).get("SO")
        if sort_order != "coordinate":
            logger.warning(f"{path} does not declare coordinate sort order (SO:{sort_order})")

        seen = set()
        current_id = None
        records: List[AlignmentRecord] = []
        for segment in bam.fetch(until_eof=True):
            ref_id = segment.reference_id
            if ref_id < 0:
                continue
            if ref_id != current_id:
                if records:
                    yield ReferenceBatch(bam.get_reference_name(current_id), records)
                    records = []
                if ref_id in seen:
                    raise UnsortedReadsError(
                        f"Records for {bam.get_reference_name(ref_id)} are not contiguous in {path}"
                    )
                seen.add(ref_id)
                current_id = ref_id
            records.append(AlignmentRecord.from_segment(segment))
        if records:
            yield ReferenceBatch(bam.get_reference_name(current_id), records)
    logger.info(f"Finished reading {path}")
