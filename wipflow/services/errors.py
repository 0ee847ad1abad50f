# wipflow/services/errors.py
"""
Typed failures raised by the engine.

The HTTP layer maps these to status codes in wipflow.main; the engine
itself never retries.
"""


class WipflowError(Exception):
    """Base class for every failure the engine reports."""


class NotFound(WipflowError):
    def __init__(self, kind: str, ident: str):
        self.kind = kind
        self.ident = ident
        super().__init__(f"{kind} {ident} not found")


class InvalidInput(WipflowError):
    pass


class StructureLocked(WipflowError):
    """A structural edit was attempted after production had started."""


class SoftOvershoot(WipflowError):
    """
    Requested quantity is above the computed ready quantity.

    Not an engine failure: callers raise it to ask the operator for
    confirmation, then call again with confirmation.
    """

    def __init__(self, requested: int, ready: int):
        self.requested = requested
        self.ready = ready
        super().__init__(f"input ({requested}) exceeds ready stock ({ready})")
