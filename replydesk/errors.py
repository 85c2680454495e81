"""Exception taxonomy for the reply pipeline."""


class ReplyDeskError(Exception):
    """Base class for all reply pipeline errors."""


class DraftUnavailable(ReplyDeskError):
    """The drafting service failed or returned a payload without a reply."""


class SendFailed(ReplyDeskError):
    """The mailbox rejected an outgoing reply."""


class MarkAsRepliedFailed(ReplyDeskError):
    """The reply went out but the original message could not be marked as replied.

    Never raised out of the sender; carried on the SendReceipt instead so the
    caller can report the inconsistency without treating the send as failed.
    """


class InvalidBatch(ReplyDeskError):
    """The orchestrator was handed something that is not a message list."""


class BatchInProgress(ReplyDeskError):
    """An auto-reply run was requested while another one is still active."""
