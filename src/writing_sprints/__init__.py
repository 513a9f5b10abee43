"""Writing sprint tracking for a single document.

This package derives writing sprints from periodic word-count samples and
keeps their history in a document-scoped key-value store.
"""

from __future__ import annotations

from pathlib import Path

from .document import TextFileDocument
from .models import PollCommand, Sprint, TrackingState
from .persistence import StateStoreAdapter
from .store import JsonFileStore, store_path_for_document
from .tracker import SprintTracker

__all__ = [
    "create_tracker",
    "PollCommand",
    "Sprint",
    "SprintTracker",
    "StateStoreAdapter",
    "TrackingState",
]


def create_tracker(document_path: Path, store_dir: Path) -> SprintTracker:
    """Factory function to create a SprintTracker for a text file.

    Args:
        document_path: Text file whose writing activity is tracked
        store_dir: Directory holding per-document state files

    Returns:
        Configured SprintTracker instance
    """
    store = JsonFileStore(store_path_for_document(store_dir, document_path))
    return SprintTracker(StateStoreAdapter(store), TextFileDocument(document_path))
