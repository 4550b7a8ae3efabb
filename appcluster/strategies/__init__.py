from .base import SynchronizationStrategy
from .rsync import RsyncResourceNode, RsyncStrategy
from .csync2 import Csync2ResourceNode, Csync2Strategy

__all__ = [
    "SynchronizationStrategy",
    "RsyncResourceNode",
    "RsyncStrategy",
    "Csync2ResourceNode",
    "Csync2Strategy",
]
