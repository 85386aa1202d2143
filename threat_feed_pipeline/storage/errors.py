"""
Errors raised by the content store.
"""


class UpsertError(RuntimeError):
    """An individual record was rejected by the content store."""
