"""
Collaborator Package

Interfaces and implementations of the engine's external collaborators:
the domain source and the permission checker.
"""

from .base import DomainSource, PermissionChecker
from .memory import InMemoryDomainSource, InMemoryPermissionChecker
from .http import HttpDomainSource, HttpPermissionChecker

__all__ = [
    'DomainSource',
    'PermissionChecker',
    'InMemoryDomainSource',
    'InMemoryPermissionChecker',
    'HttpDomainSource',
    'HttpPermissionChecker',
]
