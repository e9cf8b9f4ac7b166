"""XPath selector resolver."""

from __future__ import annotations

import re
from functools import lru_cache
from typing import TYPE_CHECKING

from lxml import etree

from autowait.exceptions import SelectorSyntaxError
from autowait.resolvers import BaseResolver
from autowait.snapshot import is_element

if TYPE_CHECKING:
    from autowait.models import Selector
    from autowait.snapshot import DocumentSnapshot

# An absolute path at the start of the expression, possibly inside grouping parens.
_LEADING_ABSOLUTE = re.compile(r"^(\s*\(*\s*)/")


@lru_cache(maxsize=512)
def compile_xpath(expression: str) -> etree.XPath:
    try:
        return etree.XPath(expression)
    except etree.XPathSyntaxError as exc:
        raise SelectorSyntaxError(expression, str(exc)) from exc


class XPathResolver(BaseResolver):
    """Resolve elements using XPath expressions.

    Inside a chain, absolute expressions are evaluated relative to the
    previous step's element, so ``//span`` means "any span below it".
    """

    @property
    def name(self) -> str:
        return "xpath"

    def query(
        self, document: DocumentSnapshot, scope: etree._Element, selector: Selector
    ) -> list[etree._Element]:
        expression = selector.value
        if scope is not document.root:
            expression = _LEADING_ABSOLUTE.sub(r"\1./", expression, count=1)
        try:
            result = compile_xpath(expression)(scope)
        except etree.XPathEvalError as exc:
            raise SelectorSyntaxError(selector.value, str(exc)) from exc
        if not isinstance(result, list):
            return []
        found = [el for el in result if is_element(el)]
        found.sort(key=document.position)
        return found
