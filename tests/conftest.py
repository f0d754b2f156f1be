"""Pytest configuration and fixtures"""

from typing import Any, Dict, List, Tuple

import pytest

from dataroom_access.application.notifications import Notifier
from dataroom_access.application.session import PermissionEditingSession
from dataroom_access.core.config import Settings
from dataroom_access.core.permissions.builder import TreeBuilder
from dataroom_access.core.permissions.propagation import PropagationEngine
from dataroom_access.core.permissions.tree import PermissionTree
from dataroom_access.infrastructure.clock import ManualClock
from dataroom_access.infrastructure.persistence import InMemoryPersistenceGateway


def document(item_id: str, name: str) -> Dict[str, Any]:
    return {"id": item_id, "document": {"id": f"doc-{item_id}", "name": name}}


class RecordingNotifier(Notifier):
    """Notifier that keeps every notice it receives"""

    def __init__(self):
        self.notices: List[Tuple[str, str, str]] = []

    def success(self, title: str, description: str) -> None:
        self.notices.append(("success", title, description))

    def failure(self, title: str, description: str) -> None:
        self.notices.append(("failure", title, description))


@pytest.fixture
def records() -> List[Dict[str, Any]]:
    """Dataroom layout used across tests

    folder-a
        folder-b
            doc-3
        doc-1
        doc-2
    doc-root
    """
    return [
        {
            "id": "folder-a",
            "name": "Folder A",
            "parentId": None,
            "documents": [document("doc-1", "Doc 1"), document("doc-2", "Doc 2")],
        },
        {
            "id": "folder-b",
            "name": "Folder B",
            "parentId": "folder-a",
            "documents": [document("doc-3", "Doc 3")],
        },
        {
            "id": "doc-root",
            "parentId": None,
            "document": {"id": "doc-doc-root", "name": "Readme"},
        },
    ]


@pytest.fixture
def builder() -> TreeBuilder:
    return TreeBuilder()


@pytest.fixture
def engine() -> PropagationEngine:
    return PropagationEngine()


@pytest.fixture
def tree(builder: TreeBuilder, records) -> PermissionTree:
    """Tree without any override: nothing is viewable"""
    return builder.build(records, [])


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock()


@pytest.fixture
def gateway() -> InMemoryPersistenceGateway:
    return InMemoryPersistenceGateway()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def settings() -> Settings:
    return Settings(
        quiescence_seconds=2.0,
        flush_poll_interval_seconds=0.01,
        flush_on_teardown=True,
    )


@pytest.fixture
def session(records, gateway, notifier, settings, clock) -> PermissionEditingSession:
    session = PermissionEditingSession(
        dataroom_id="dataroom-1",
        group_id="group-1",
        gateway=gateway,
        notifier=notifier,
        settings=settings,
        clock=clock,
    )
    session.load(records, [])
    yield session
    session.stop_auto_flush()
