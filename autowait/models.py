"""All Pydantic models for autowait."""

from __future__ import annotations

import json
import re
from datetime import datetime
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

_WHITESPACE = re.compile(r"\s+")


def normalize_whitespace(text: str) -> str:
    """Collapse runs of whitespace into single spaces and strip the ends."""
    return _WHITESPACE.sub(" ", text).strip()


# --- Selector models ---


class SelectorKind(str, Enum):
    """Query kinds a selector step can have."""

    ROLE = "role"
    TEXT = "text"
    LABEL = "label"
    PLACEHOLDER = "placeholder"
    ALT_TEXT = "alt"
    TITLE = "title"
    TEST_ID = "testid"
    CSS = "css"
    XPATH = "xpath"
    # Composition and root substitution
    CHAIN = "chain"
    UNION = "union"
    FRAME = "frame"
    SHADOW = "shadow"


class FilterKind(str, Enum):
    """Post-resolution filters."""

    HAS_TEXT = "has-text"
    HAS_NOT_TEXT = "has-not-text"
    HAS = "has"
    HAS_NOT = "has-not"


class TextMatcher(BaseModel):
    """Text predicate shared by the text-like selector kinds and filters."""

    model_config = ConfigDict(frozen=True)

    value: str | re.Pattern[str]
    exact: bool = False
    ignore_case: bool = True

    def matches(self, text: str | None) -> bool:
        if text is None:
            return False
        actual = normalize_whitespace(text)
        if isinstance(self.value, re.Pattern):
            return self.value.search(actual) is not None
        expected = normalize_whitespace(self.value)
        if self.ignore_case:
            actual, expected = actual.casefold(), expected.casefold()
        if self.exact:
            return actual == expected
        return expected in actual

    def describe(self) -> str:
        if isinstance(self.value, re.Pattern):
            flags = "i" if self.value.flags & re.IGNORECASE else ""
            return f"/{self.value.pattern}/{flags}"
        quoted = json.dumps(self.value)
        if self.exact:
            return quoted if not self.ignore_case else f"{quoted}i"
        return quoted if not self.ignore_case else self.value


class RoleOptions(BaseModel):
    """Accessibility-tree predicates for a role selector."""

    model_config = ConfigDict(frozen=True)

    name: TextMatcher | None = None
    level: int | None = None
    checked: bool | Literal["mixed"] | None = None
    disabled: bool | None = None
    expanded: bool | None = None
    pressed: bool | None = None
    selected: bool | None = None
    include_hidden: bool = False


class Filter(BaseModel):
    """A filter applied to a selector step's candidates."""

    model_config = ConfigDict(frozen=True)

    kind: FilterKind
    text: TextMatcher | None = None
    selector: Selector | None = None


class Selector(BaseModel):
    """Immutable, composable element query.

    Leaf kinds carry their payload in ``value`` (CSS, XPath, role name, frame
    name), ``text`` (text-like kinds) and ``role``. ``CHAIN`` and ``UNION``
    combine ``parts``. Filters run after resolution, ``index`` runs last.
    """

    model_config = ConfigDict(frozen=True)

    kind: SelectorKind
    value: str = ""
    text: TextMatcher | None = None
    role: RoleOptions | None = None
    parts: tuple[Selector, ...] = ()
    filters: tuple[Filter, ...] = ()
    index: int | None = None

    @property
    def is_plain(self) -> bool:
        """True when no filter or index has been applied to this step."""
        return not self.filters and self.index is None

    def with_filter(self, flt: Filter) -> Selector:
        base = self if self.index is None else Selector(kind=SelectorKind.CHAIN, parts=(self,))
        return base.model_copy(update={"filters": base.filters + (flt,)})

    def with_index(self, index: int) -> Selector:
        base = self if self.index is None else Selector(kind=SelectorKind.CHAIN, parts=(self,))
        return base.model_copy(update={"index": index})

    def chain(self, child: Selector) -> Selector:
        head = self.parts if self.kind == SelectorKind.CHAIN and self.is_plain else (self,)
        tail = child.parts if child.kind == SelectorKind.CHAIN and child.is_plain else (child,)
        return Selector(kind=SelectorKind.CHAIN, parts=head + tail)

    def union(self, other: Selector) -> Selector:
        head = self.parts if self.kind == SelectorKind.UNION and self.is_plain else (self,)
        return Selector(kind=SelectorKind.UNION, parts=head + (other,))

    def describe(self) -> str:
        kind = self.kind
        if kind == SelectorKind.CSS:
            out = self.value
        elif kind == SelectorKind.XPATH:
            out = f"xpath={self.value}"
        elif kind == SelectorKind.CHAIN:
            out = " >> ".join(p.describe() for p in self.parts)
        elif kind == SelectorKind.UNION:
            out = " | ".join(p.describe() for p in self.parts)
        elif kind == SelectorKind.FRAME:
            out = f"frame={self.value}"
        elif kind == SelectorKind.SHADOW:
            out = "shadow"
        elif kind == SelectorKind.ROLE:
            out = f"role={self.value}{_describe_role(self.role)}"
        else:
            out = f"{kind.value}={self.text.describe() if self.text else ''}"
        for flt in self.filters:
            if flt.text is not None:
                out += f" >> {flt.kind.value}={flt.text.describe()}"
            elif flt.selector is not None:
                out += f" >> {flt.kind.value}={json.dumps(flt.selector.describe())}"
        if self.index is not None:
            out += f" >> nth={self.index}"
        return out

    def __str__(self) -> str:
        return self.describe()


def _describe_role(options: RoleOptions | None) -> str:
    if options is None:
        return ""
    attrs: list[str] = []
    if options.name is not None:
        name = options.name
        suffix = "s" if name.exact and not name.ignore_case else ""
        if isinstance(name.value, re.Pattern):
            attrs.append(f"[name={name.describe()}]")
        else:
            attrs.append(f"[name={json.dumps(name.value)}{suffix}]")
    for field in ("level", "checked", "disabled", "expanded", "pressed", "selected"):
        value = getattr(options, field)
        if value is not None:
            attrs.append(f"[{field}={str(value).lower()}]")
    if options.include_hidden:
        attrs.append("[include-hidden=true]")
    return "".join(attrs)


Filter.model_rebuild()
Selector.model_rebuild()


# --- Actionability models ---


class ActionKind(str, Enum):
    """Input actions and committed-state reads routed through the scheduler."""

    CLICK = "click"
    DBLCLICK = "dblclick"
    TAP = "tap"
    HOVER = "hover"
    FOCUS = "focus"
    FILL = "fill"
    CLEAR = "clear"
    PRESS = "press"
    TYPE = "type"
    CHECK = "check"
    UNCHECK = "uncheck"
    SELECT_OPTION = "select_option"
    SET_INPUT_FILES = "set_input_files"
    SCROLL_INTO_VIEW = "scroll_into_view"
    # Reads
    INNER_TEXT = "inner_text"
    INNER_HTML = "inner_html"
    TEXT_CONTENT = "text_content"
    INPUT_VALUE = "input_value"
    GET_ATTRIBUTE = "get_attribute"


READ_ACTIONS = frozenset(
    {
        ActionKind.INNER_TEXT,
        ActionKind.INNER_HTML,
        ActionKind.TEXT_CONTENT,
        ActionKind.INPUT_VALUE,
        ActionKind.GET_ATTRIBUTE,
    }
)


class Condition(str, Enum):
    """Actionability preconditions."""

    ATTACHED = "attached"
    UNIQUE = "unique"
    VISIBLE = "visible"
    STABLE = "stable"
    RECEIVES_EVENTS = "receives-events"
    ENABLED = "enabled"
    EDITABLE = "editable"

    def __str__(self) -> str:
        return self.value


class Rect(BaseModel):
    """Element bounding box in CSS pixels."""

    model_config = ConfigDict(frozen=True)

    x: float
    y: float
    width: float
    height: float

    @property
    def is_empty(self) -> bool:
        return self.width <= 0 or self.height <= 0

    @property
    def center(self) -> tuple[float, float]:
        return self.x + self.width / 2, self.y + self.height / 2

    def contains(self, x: float, y: float) -> bool:
        return self.x <= x <= self.x + self.width and self.y <= y <= self.y + self.height


class CheckResult(BaseModel):
    """Outcome of one actionability evaluation."""

    satisfied: bool
    unmet: frozenset[Condition] = frozenset()
    box: Rect | None = None


# --- Network models ---


class Request(BaseModel):
    """An outgoing request as seen by routes and event waits."""

    url: str
    method: str = "GET"
    headers: dict[str, str] = Field(default_factory=dict)
    post_data: str | None = None
    resource_type: str = "fetch"


class Response(BaseModel):
    """A network response event."""

    url: str
    status: int
    headers: dict[str, str] = Field(default_factory=dict)
    body: bytes | None = None
    request: Request | None = None

    @property
    def ok(self) -> bool:
        return 200 <= self.status <= 299

    def text(self) -> str:
        return (self.body or b"").decode("utf-8", errors="replace")

    def json(self) -> Any:
        return json.loads(self.text())


class RouteAction(str, Enum):
    """What a route handler decided to do with a request."""

    FULFILL = "fulfill"
    CONTINUE = "continue"
    ABORT = "abort"


class RouteDecision(BaseModel):
    """Instruction handed back to the driver for an intercepted request."""

    action: RouteAction = RouteAction.CONTINUE
    status: int = 200
    headers: dict[str, str] = Field(default_factory=dict)
    body: bytes | None = None
    url: str | None = None
    method: str | None = None
    post_data: str | None = None
    error_code: str = "failed"


class Navigation(BaseModel):
    """Main-frame navigation event."""

    url: str
    navigation_id: int


# --- Dialog and trace models ---


class DialogKind(str, Enum):
    """Native dialog types."""

    ALERT = "alert"
    CONFIRM = "confirm"
    PROMPT = "prompt"
    BEFOREUNLOAD = "beforeunload"


class ActionRecord(BaseModel):
    """One engine action, as recorded by the tracer."""

    action: str
    selector: str
    status: Literal["succeeded", "timed_out", "failed", "cancelled"]
    started_at: datetime
    duration_ms: float
    error: str | None = None
