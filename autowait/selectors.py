"""Selector text parsing and the builders behind the ``get_by_*`` methods.

Grammar (Playwright-flavoured)::

    selector   := part (">>" part)*
    part       := atom (" | " atom)*  |  "nth=" INT
    atom       := engine "=" body  |  xpath  |  quoted-text  |  css

Parsing happens when a locator is built, so a malformed selector fails
before any waiting begins.
"""

from __future__ import annotations

import re
from typing import Any

from autowait.exceptions import SelectorSyntaxError
from autowait.models import (
    Filter,
    FilterKind,
    RoleOptions,
    Selector,
    SelectorKind,
    TextMatcher,
)
from autowait.resolvers.css import compile_css
from autowait.resolvers.xpath import compile_xpath

_ENGINE = re.compile(
    r"^(css|xpath|text|role|label|placeholder|alt|title|testid|frame|nth)\s*=(.*)$",
    re.DOTALL,
)
_HAS_TEXT = re.compile(r"^(.*?):has-text\(\s*(\"(?:[^\"\\]|\\.)*\"|'(?:[^'\\]|\\.)*')\s*\)$", re.DOTALL)
_REGEX = re.compile(r"^/(.*)/([imsux]*)$", re.DOTALL)
_ROLE = re.compile(r"^([a-zA-Z]+)\s*(.*)$", re.DOTALL)
_ESCAPE = re.compile(r"\\(.)")
_REGEX_START = re.compile(r"(?:text|label|placeholder|alt|title|name)\s*=\s*$")

_TEXT_KINDS = {
    "text": SelectorKind.TEXT,
    "label": SelectorKind.LABEL,
    "placeholder": SelectorKind.PLACEHOLDER,
    "alt": SelectorKind.ALT_TEXT,
    "title": SelectorKind.TITLE,
}
_REGEX_FLAGS = {"i": re.IGNORECASE, "m": re.MULTILINE, "s": re.DOTALL, "u": 0, "x": re.VERBOSE}
_BOOLEAN_STATES = ("disabled", "expanded", "pressed", "selected")


# --- Tokenising ---


def split_top_level(text: str, separator: str) -> list[str]:
    """Split on ``separator`` outside quotes, brackets, parens and ``=/regex/`` bodies."""
    parts: list[str] = []
    depth = 0
    quote: str | None = None
    in_regex = False
    start = 0
    i = 0
    while i < len(text):
        ch = text[i]
        if quote or in_regex:
            if ch == "\\":
                i += 2
                continue
            if (quote and ch == quote) or (in_regex and ch == "/"):
                quote, in_regex = None, False
        elif depth == 0 and text.startswith(separator, i):
            parts.append(text[start:i])
            i += len(separator)
            start = i
            continue
        elif ch in ("'", '"'):
            quote = ch
        elif ch == "/" and _REGEX_START.search(text[:i]):
            in_regex = True
        elif ch in "[(":
            depth += 1
        elif ch in "])":
            depth = max(depth - 1, 0)
        i += 1
    if quote or in_regex:
        raise SelectorSyntaxError(text, "unterminated quote or regular expression")
    parts.append(text[start:])
    return parts


def _unquote(body: str) -> tuple[str, str] | None:
    """``"abc"s`` -> ("abc", "s"); None when ``body`` is not quoted."""
    if not body or body[0] not in ("'", '"'):
        return None
    quote = body[0]
    i = 1
    while i < len(body):
        if body[i] == "\\":
            i += 2
            continue
        if body[i] == quote:
            return _ESCAPE.sub(r"\1", body[1:i]), body[i + 1 :].strip()
        i += 1
    return None


def _compile_regex(source: str, pattern: str, flags: str) -> re.Pattern[str]:
    value = 0
    for flag in flags:
        value |= _REGEX_FLAGS[flag]
    try:
        return re.compile(pattern, value)
    except re.error as exc:
        raise SelectorSyntaxError(source, f"invalid regular expression: {exc}") from exc


def parse_text_value(source: str, body: str) -> TextMatcher:
    """``foo`` substring, ``"foo"`` exact case-sensitive, ``"foo"i`` exact, ``/re/i`` regex."""
    body = body.strip()
    if not body:
        raise SelectorSyntaxError(source, "empty text value")
    regex = _REGEX.match(body)
    if regex:
        return TextMatcher(value=_compile_regex(source, *regex.groups()))
    quoted = _unquote(body)
    if quoted is not None:
        value, suffix = quoted
        if suffix not in ("", "i", "s"):
            raise SelectorSyntaxError(source, f"unexpected '{suffix}' after quoted text")
        return TextMatcher(value=value, exact=True, ignore_case=suffix == "i")
    if body[0] in ("'", '"'):
        raise SelectorSyntaxError(source, "unterminated quote")
    return TextMatcher(value=body, exact=False, ignore_case=True)


# --- Role attributes ---


def _role_attributes(source: str, text: str) -> list[tuple[str, str | None]]:
    attrs: list[tuple[str, str | None]] = []
    rest = text.strip()
    while rest:
        if rest[0] != "[":
            raise SelectorSyntaxError(source, f"unexpected '{rest}' in role selector")
        inner = split_top_level(rest[1:], "]")
        if len(inner) < 2:
            raise SelectorSyntaxError(source, "unterminated '[' in role selector")
        content = inner[0].strip()
        rest = rest[1 + len(inner[0]) + 1 :].strip()
        if "=" in content:
            key, value = content.split("=", 1)
            attrs.append((key.strip().lower(), value.strip()))
        else:
            attrs.append((content.lower(), None))
    return attrs


def _bool_value(source: str, key: str, value: str | None) -> bool:
    if value is None:
        return True
    unquoted = _unquote(value)
    text = (unquoted[0] if unquoted else value).lower()
    if text not in ("true", "false"):
        raise SelectorSyntaxError(source, f"'{key}' must be true or false")
    return text == "true"


def parse_role(source: str, body: str) -> Selector:
    match = _ROLE.match(body.strip())
    if not match:
        raise SelectorSyntaxError(source, "role name expected")
    role, tail = match.groups()
    options: dict[str, Any] = {}
    for key, value in _role_attributes(source, tail):
        if key == "name":
            if value is None:
                raise SelectorSyntaxError(source, "'name' needs a value")
            options["name"] = _role_name(source, value)
        elif key == "level":
            if value is None or not value.strip("\"'").isdigit():
                raise SelectorSyntaxError(source, "'level' must be an integer")
            options["level"] = int(value.strip("\"'"))
        elif key == "checked":
            if value is not None and value.strip("\"'").lower() == "mixed":
                options["checked"] = "mixed"
            else:
                options["checked"] = _bool_value(source, key, value)
        elif key in _BOOLEAN_STATES:
            options[key] = _bool_value(source, key, value)
        elif key == "include-hidden":
            options["include_hidden"] = _bool_value(source, key, value)
        else:
            raise SelectorSyntaxError(source, f"unknown role attribute '{key}'")
    return Selector(
        kind=SelectorKind.ROLE,
        value=role.lower(),
        role=RoleOptions(**options) if options else None,
    )


def _role_name(source: str, value: str) -> TextMatcher:
    regex = _REGEX.match(value)
    if regex:
        return TextMatcher(value=_compile_regex(source, *regex.groups()))
    quoted = _unquote(value)
    if quoted is None:
        return TextMatcher(value=value, exact=False, ignore_case=True)
    text, suffix = quoted
    if suffix == "s":
        return TextMatcher(value=text, exact=True, ignore_case=False)
    if suffix in ("", "i"):
        return TextMatcher(value=text, exact=False, ignore_case=True)
    raise SelectorSyntaxError(source, f"unexpected '{suffix}' after role name")


# --- Atoms and parts ---


def parse_css(source: str, body: str) -> Selector:
    css = body.strip()
    has_text: TextMatcher | None = None
    match = _HAS_TEXT.match(css)
    if match:
        css = match.group(1).strip() or "*"
        value, _ = _unquote(match.group(2))
        has_text = TextMatcher(value=value, exact=False, ignore_case=True)
    if not css:
        raise SelectorSyntaxError(source, "empty CSS selector")
    compile_css(css)
    selector = Selector(kind=SelectorKind.CSS, value=css)
    if has_text is not None:
        selector = selector.with_filter(Filter(kind=FilterKind.HAS_TEXT, text=has_text))
    return selector


def parse_xpath(source: str, body: str) -> Selector:
    expression = body.strip()
    if not expression:
        raise SelectorSyntaxError(source, "empty XPath expression")
    compile_xpath(expression)
    return Selector(kind=SelectorKind.XPATH, value=expression)


def _parse_atom(source: str, atom: str) -> Selector:
    atom = atom.strip()
    if not atom:
        raise SelectorSyntaxError(source, "empty selector part")
    engine = _ENGINE.match(atom)
    if engine:
        name, body = engine.group(1), engine.group(2)
        if name == "css":
            return parse_css(source, body)
        if name == "xpath":
            return parse_xpath(source, body)
        if name == "role":
            return parse_role(source, body)
        if name == "testid":
            quoted = _unquote(body.strip())
            value = quoted[0] if quoted else body.strip()
            if not value:
                raise SelectorSyntaxError(source, "empty test id")
            return testid_selector(value)
        if name == "frame":
            quoted = _unquote(body.strip())
            value = quoted[0] if quoted else body.strip()
            if not value:
                raise SelectorSyntaxError(source, "empty frame name")
            return Selector(kind=SelectorKind.FRAME, value=value)
        if name == "nth":
            raise SelectorSyntaxError(source, "'nth=' must follow another selector part")
        return Selector(kind=_TEXT_KINDS[name], text=parse_text_value(source, body))
    if atom.startswith(("//", "..", "(//")):
        return parse_xpath(source, atom)
    if atom[0] in ("'", '"'):
        return Selector(kind=SelectorKind.TEXT, text=parse_text_value(source, atom))
    return parse_css(source, atom)


def _parse_index(source: str, body: str) -> int:
    try:
        return int(body.strip())
    except ValueError as exc:
        raise SelectorSyntaxError(source, f"'nth=' needs an integer, got '{body.strip()}'") from exc


def parse_selector(text: str) -> Selector:
    """Parse selector text into a :class:`Selector`, raising ``SelectorSyntaxError``."""
    if not isinstance(text, str) or not text.strip():
        raise SelectorSyntaxError(str(text), "selector is empty")
    result: Selector | None = None
    for raw in split_top_level(text, ">>"):
        part = raw.strip()
        if not part:
            raise SelectorSyntaxError(text, "empty selector part")
        if part.startswith("nth="):
            if result is None:
                raise SelectorSyntaxError(text, "'nth=' must follow another selector part")
            # The index applies to everything matched so far.
            result = result.with_index(_parse_index(text, part[4:]))
            continue
        alternatives = split_top_level(part, " | ")
        step = _parse_atom(text, alternatives[0])
        for alternative in alternatives[1:]:
            step = step.union(_parse_atom(text, alternative))
        result = step if result is None else result.chain(step)
    if result is None:
        raise SelectorSyntaxError(text, "selector has no parts")
    return result


# --- Builders ---


def text_matcher(
    value: str | re.Pattern[str], *, exact: bool = False
) -> TextMatcher:
    """get_by_* matching: substring ignoring case, or exact case-sensitive."""
    if isinstance(value, re.Pattern):
        return TextMatcher(value=value)
    if exact:
        return TextMatcher(value=value, exact=True, ignore_case=False)
    return TextMatcher(value=value, exact=False, ignore_case=True)


def text_selector(
    kind: SelectorKind, value: str | re.Pattern[str], *, exact: bool = False
) -> Selector:
    return Selector(kind=kind, text=text_matcher(value, exact=exact))


def testid_selector(value: str | re.Pattern[str]) -> Selector:
    if isinstance(value, re.Pattern):
        return Selector(kind=SelectorKind.TEST_ID, text=TextMatcher(value=value))
    return Selector(
        kind=SelectorKind.TEST_ID,
        text=TextMatcher(value=value, exact=True, ignore_case=False),
    )


def role_selector(
    role: str,
    *,
    name: str | re.Pattern[str] | None = None,
    exact: bool = False,
    level: int | None = None,
    checked: bool | str | None = None,
    disabled: bool | None = None,
    expanded: bool | None = None,
    pressed: bool | None = None,
    selected: bool | None = None,
    include_hidden: bool = False,
) -> Selector:
    options = RoleOptions(
        name=text_matcher(name, exact=exact) if name is not None else None,
        level=level,
        checked=checked,
        disabled=disabled,
        expanded=expanded,
        pressed=pressed,
        selected=selected,
        include_hidden=include_hidden,
    )
    return Selector(kind=SelectorKind.ROLE, value=role.lower(), role=options)


def text_filter(
    kind: FilterKind, value: str | re.Pattern[str], *, ignore_case: bool = False
) -> Filter:
    """Locator ``filter(has_text=...)``: case-sensitive substring unless asked otherwise."""
    if isinstance(value, re.Pattern):
        return Filter(kind=kind, text=TextMatcher(value=value))
    return Filter(
        kind=kind, text=TextMatcher(value=value, exact=False, ignore_case=ignore_case)
    )
