"""pglo large object access layer."""

from pglo.store.large_object import LargeObject
from pglo.store.manager import LargeObjectManager

__all__ = ["LargeObject", "LargeObjectManager"]
