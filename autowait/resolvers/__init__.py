"""Selector resolver interface and implementations."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from lxml import etree

    from autowait.models import Selector
    from autowait.snapshot import DocumentSnapshot


class BaseResolver(ABC):
    """Base class for leaf selector engines."""

    @abstractmethod
    def query(
        self, document: DocumentSnapshot, scope: etree._Element, selector: Selector
    ) -> list[etree._Element]:
        """Return every element under ``scope`` matching ``selector``, in document order."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Resolver name for logging."""
