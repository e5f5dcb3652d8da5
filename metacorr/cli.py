#!/usr/bin/env python3
"""
metacorr command line

Calculate the correlation of synonymous substitutions between overlapping
reads as a function of distance, from a coordinate-sorted SAM/BAM file.

Config:
- Accepts a TOML file with a [p2] table (keys as in P2Config)
- CLI flags override TOML
"""
from __future__ import annotations

import argparse
import logging
import sys
from typing import List, Optional

from metacorr import __version__
from metacorr.bamio import count_references, iter_reference_batches
from metacorr.config import P2Config, load_config
from metacorr.errors import MetacorrError
from metacorr.output import write_results
from metacorr.pipeline import run_pipeline

logger = logging.getLogger("metacorr")


def setup_logging(log_file: Optional[str] = None, verbose: bool = False) -> logging.Logger:
    """Log to stdout and, if given, to a file."""
    handlers: List[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if log_file:
        handlers.append(logging.FileHandler(log_file))
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format='%(asctime)s - %(levelname)s - %(message)s',
        handlers=handlers,
        force=True,
    )
    return logger


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="metacorr",
        description="Calculate mutation correlation from bacterial metagenomic sequence data",
    )
    p.add_argument("bamfile", help="Coordinate-sorted SAM/BAM file")
    p.add_argument("outfile", help="Output table (.csv, or .json for JSON records)")
    p.add_argument("--config", help="TOML config with a [p2] table")
    p.add_argument("--maxl", dest="max_lag", type=int, help="Max length of correlations (default 100)")
    p.add_argument("--ncpu", dest="workers", type=int, help="Number of worker processes, 0 = all CPUs")
    p.add_argument("--minbq", dest="min_base_quality", type=int, help="Min base quality (default 13)")
    p.add_argument("--minmq", dest="min_mapq", type=int, help="Min mapping quality, exclusive (default 30)")
    p.add_argument("--maxmq", dest="max_mapq", type=int, help="Max mapping quality (default 50)")
    p.add_argument("--genetic-code", dest="genetic_code", type=int, help="NCBI genetic code table (default 11)")
    p.add_argument("--min-pairs", dest="min_pairs", type=int,
                   help="Min observation pairs for a reference to count at a lag (default 0)")
    p.add_argument("--progress", action="store_true", default=None, help="Show progress")
    p.add_argument("--log-file", dest="log_file", help="Also write the log to this file")
    p.add_argument("--verbose", action="store_true", help="Debug logging")
    p.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return p


def run(bam_path: str, out_path: str, config: P2Config) -> None:
    total = count_references(bam_path)
    stats = run_pipeline(iter_reference_batches(bam_path), config, total=total)
    write_results(stats, out_path)


def main(argv: Optional[List[str]] = None) -> None:
    args = build_parser().parse_args(argv)
    overrides = {
        k: getattr(args, k)
        for k in ("max_lag", "workers", "min_base_quality", "min_mapq", "max_mapq",
                  "genetic_code", "min_pairs", "progress", "log_file")
    }
    setup_logging(args.log_file, args.verbose)
    try:
        config = load_config(args.config, overrides)
        if config.log_file and not args.log_file:
            setup_logging(config.log_file, args.verbose)
        run(args.bamfile, args.outfile, config)
    except (MetacorrError, OSError, ValueError) as e:
        logger.error(f"Run failed: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
