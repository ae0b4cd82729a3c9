from feedline.shovel.cursor import CursorKind
from feedline.shovel.cursor_repo import CursorRepository
from feedline.shovel.lock import SweepLock
from feedline.shovel.scanner import BatchScanner, ScannerState, SweepResult, SweepSpec
from feedline.shovel.sweeps import analyze_global, crunch_global

__all__ = [
    "BatchScanner",
    "CursorKind",
    "CursorRepository",
    "ScannerState",
    "SweepLock",
    "SweepResult",
    "SweepSpec",
    "analyze_global",
    "crunch_global",
]
