from relay.core.coordinator import OneShot, TurnCoordinator
from relay.core.deadline import with_deadline
from relay.core.store import ProgressStore

__all__ = ["OneShot", "ProgressStore", "TurnCoordinator", "with_deadline"]
