"""Error kinds raised inside the extraction engine.

None of these is fatal to a run. Each one is caught at the boundary of the
component that raises it and degrades to fewer (or zero) results.
"""


class GqlHoundError(Exception):
    """Base class for extraction errors."""

    #: Short tag used in error records that cross the worker boundary.
    kind = "error"


class ParseFailure(GqlHoundError):
    """Source text did not parse cleanly with the tree-sitter grammar."""

    kind = "parse_failure"


class MalformedOperationBody(GqlHoundError):
    """An operation-shaped match never closes its brace body."""

    kind = "malformed_body"


class PayloadDecodeFailure(GqlHoundError):
    """An HTTP-call body looked like JSON but did not decode."""

    kind = "payload_decode"


class TaskIOFailure(GqlHoundError):
    """Content for a task could not be read."""

    kind = "task_io"


class WorkerFault(GqlHoundError):
    """Uncaught failure while processing a single task."""

    kind = "worker_fault"
