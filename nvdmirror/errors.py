"""Fatal error types raised during a sync run.

Anything raised from here aborts the run and leaves the checkpoint
untouched.  Per-record shape problems are *not* errors; see
``records.SkippedRecord``.
"""


class NvdMirrorError(Exception):
    """Base class for all fatal sync errors."""


class MetadataRetrievalError(NvdMirrorError):
    """A feed's ``.meta`` document could not be fetched or parsed."""


class PayloadRetrievalError(NvdMirrorError):
    """A feed's ``.json.gz`` payload could not be downloaded."""


class PayloadDecodeError(NvdMirrorError):
    """A downloaded payload failed decompression or JSON decoding."""


class RecordWriteError(NvdMirrorError):
    """A CVE record could not be written to disk."""


class CheckpointError(NvdMirrorError):
    """The checkpoint file could not be read or persisted."""


class PublishError(NvdMirrorError):
    """Staging, committing or pushing the record tree failed."""
