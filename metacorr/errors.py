"""Exceptions raised by metacorr."""


class MetacorrError(Exception):
    """Base class for fatal metacorr errors."""


class ConfigError(MetacorrError):
    """Invalid or unreadable configuration."""


class MalformedRecordError(MetacorrError):
    """An alignment record whose CIGAR does not match its sequence."""


class UnsortedReadsError(MetacorrError):
    """Reads were not coordinate sorted."""


class PipelineError(MetacorrError):
    """A worker process failed while processing a batch."""
