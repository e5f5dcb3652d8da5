"""Codon-aware comparison of overlapping reads at third codon positions."""
from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache
from typing import Dict, Iterable, Iterator, Mapping, Optional, Tuple

from Bio.Data import CodonTable

from metacorr.reads import MappedRead
from metacorr.window import ReadPair

NUCLEOTIDES = frozenset("ACGT")
STOP = "*"


@dataclass(frozen=True)
class SubstitutionProfile:
    """Substitution indicators of one read pair, in reference order.

    values[k] belongs to reference position positions[k]; None marks a site
    that could not be scored.
    """
    anchor: int
    positions: Tuple[int, ...]
    values: Tuple[Optional[int], ...]

    def __len__(self) -> int:
        return len(self.values)


@lru_cache(maxsize=None)
def genetic_code(table_id: int = 11) -> Dict[str, str]:
    """Codon to amino acid map for an NCBI table, stop codons as '*'."""
    table = CodonTable.unambiguous_dna_by_id[table_id]
    code = dict(table.forward_table)
    for codon in table.stop_codons:
        code[codon] = STOP
    return code


def _score_site(a: MappedRead, i: int, b: MappedRead, j: int,
                code_table: Mapping[str, str], min_base_quality: int) -> Optional[int]:
    base_a = a.bases[i]
    base_b = b.bases[j]
    if base_a not in NUCLEOTIDES or base_b not in NUCLEOTIDES:
        return None
    if a.qualities[i] <= min_base_quality or b.qualities[j] <= min_base_quality:
        return None
    aa_a = code_table.get(a.bases[i - 2:i + 1])
    aa_b = code_table.get(b.bases[j - 2:j + 1])
    if aa_a is None or aa_a != aa_b:
        return None
    return 1 if base_a != base_b else 0


def compare_reads(a: MappedRead, b: MappedRead, code_table: Mapping[str, str],
                  min_base_quality: int) -> SubstitutionProfile:
    """Compare b against a over their overlap, at third codon positions only.

    a must not start after b. A site is scored when both bases are
    unambiguous, both qualities exceed min_base_quality and the codons ending
    there translate to the same amino acid in both reads.
    """
    lag = b.position - a.position
    positions = []
    values = []
    for j in range(min(len(a) - lag, len(b))):
        pos = b.position + j
        # first codon of b has no complete preceding context
        if (pos + 1) % 3 != 0 or j <= 1:
            continue
        positions.append(pos)
        values.append(_score_site(a, j + lag, b, j, code_table, min_base_quality))
    return SubstitutionProfile(b.position, tuple(positions), tuple(values))


def compare_pairs(pairs: Iterable[ReadPair], code_table: Mapping[str, str],
                  min_base_quality: int) -> Iterator[SubstitutionProfile]:
    for a, b in pairs:
        yield compare_reads(a, b, code_table, min_base_quality)
