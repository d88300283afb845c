"""Port interfaces for the pattern knowledge base."""

from pattern_kb.ports.collaborators import (
    AuxiliaryMinerProtocol,
    BaselineGeneratorProtocol,
    DiscoveryProtocol,
    ElementMinerProtocol,
    PackLoaderProtocol,
    TemplateGeneratorProtocol,
)
from pattern_kb.ports.locking import LockBackend

__all__ = [
    "AuxiliaryMinerProtocol",
    "BaselineGeneratorProtocol",
    "DiscoveryProtocol",
    "ElementMinerProtocol",
    "LockBackend",
    "PackLoaderProtocol",
    "TemplateGeneratorProtocol",
]
