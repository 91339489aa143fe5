# Exception taxonomy for acctwarden.
# Per-account command failures are not exceptions: the identity adapter
# returns False and logs, and the engine records a "failed" outcome.


class WardenError(Exception):
    """Base class for errors that end a run."""

    exit_code = 1


class PreconditionError(WardenError):
    """The run cannot start at all (not root, unsupported interpreter)."""


class SetupError(WardenError):
    """Ledger, log, report or backup storage could not be prepared."""


class OperatorCancelled(WardenError):
    """The operator declined a confirmation; nothing was mutated."""
