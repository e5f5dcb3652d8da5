"""Builders shared by the test modules."""
from metacorr.reads import AlignmentRecord, MappedRead

HIGH_QUAL = 30


def mapped(position, bases, qual=HIGH_QUAL):
    return MappedRead(position, bases, bytes([qual] * len(bases)))


def record(position, bases, mapq=40, qual=HIGH_QUAL, cigar=None, flag=0):
    if cigar is None:
        cigar = ((0, len(bases)),)
    return AlignmentRecord(
        reference_start=position,
        mapping_quality=mapq,
        cigartuples=tuple(cigar),
        query_sequence=bases,
        query_qualities=bytes([qual] * len(bases)),
        flag=flag,
    )


def all_same_amino_acid():
    """Code table where every codon is synonymous with every other."""
    bases = "ACGT"
    return {x + y + z: "X" for x in bases for y in bases for z in bases}


# a and b overlap by 12 bases at lag 3; scored sites at reference positions
# 107, 110 and 113 differ, match and differ
SCENARIO_A = mapped(100, "ATGAAATTTGGGCCC")
SCENARIO_B = mapped(103, "AAATCTGGGCACAAA")
