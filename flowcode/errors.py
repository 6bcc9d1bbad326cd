from __future__ import annotations

from pathlib import Path


class FlowcodeError(RuntimeError):
    pass


class TransportError(FlowcodeError):
    pass


class StorageError(FlowcodeError):
    def __init__(self, message: str, path: Path | None = None) -> None:
        super().__init__(message)
        self.path = path


class PlanWriteError(FlowcodeError):
    def __init__(self, message: str, version: int, path: Path | None = None) -> None:
        super().__init__(message)
        self.version = version
        self.path = path
