# wipflow/services/authorization.py
"""
Authorization seam.

Mutating endpoints ask an Authorizer before calling the engine. The
default grants everything; deployments plug in their own implementation
with `set_authorizer()`.
"""

from abc import ABC, abstractmethod
from typing import Dict, Set, Tuple


class Authorizer(ABC):
    @abstractmethod
    def can(self, operator: str, module: str, action: str) -> bool:
        ...


class AllowAll(Authorizer):
    def can(self, operator: str, module: str, action: str) -> bool:
        return True


class StaticPermissions(Authorizer):
    """Grants exactly the (module, action) pairs listed per operator."""

    def __init__(self, grants: Dict[str, Set[Tuple[str, str]]]):
        self.grants = grants

    def can(self, operator: str, module: str, action: str) -> bool:
        return (module, action) in self.grants.get(operator, set())


_authorizer: Authorizer = AllowAll()


def get_authorizer() -> Authorizer:
    return _authorizer


def set_authorizer(authorizer: Authorizer) -> None:
    global _authorizer
    _authorizer = authorizer
