from codehydra.core.store.base import ProjectStore
from codehydra.core.store.local import LocalProjectStore

__all__ = ["LocalProjectStore", "ProjectStore"]
