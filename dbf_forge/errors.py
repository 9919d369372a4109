from __future__ import annotations


class ForgeError(Exception):
    """Base class for every error raised by dbf-forge."""


class UnsupportedFormatError(ForgeError, ValueError):
    def __init__(self, path) -> None:
        super().__init__(f"Unsupported file format: {path}")
        self.path = path


class UnreadableSourceError(ForgeError, ValueError):
    """The container could not be opened: corrupt, truncated, or not what its extension claims."""


class WritePathExhaustedError(ForgeError, OSError):
    def __init__(self, path, attempts: int) -> None:
        super().__init__(f"No writable path found for {path} after {attempts} attempts")
        self.path = path
        self.attempts = attempts
