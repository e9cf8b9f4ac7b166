"""Accessibility semantics computed from snapshot markup.

Implicit roles follow the HTML-AAM mapping for the elements test authors
actually query; accessible names follow a trimmed-down accname algorithm
(labelledby, aria-label, native labels, alt, content, title, placeholder).
"""

from __future__ import annotations

import re

from lxml import etree

from autowait.models import normalize_whitespace
from autowait.snapshot import HIDDEN_ATTR, NON_TEXT_TAGS, DocumentSnapshot, is_element

_HEADING = re.compile(r"^h([1-6])$")
_DISPLAY_NONE = re.compile(r"display\s*:\s*none", re.IGNORECASE)
_VISIBILITY_HIDDEN = re.compile(r"visibility\s*:\s*hidden", re.IGNORECASE)

_TAG_ROLES = {
    "article": "article",
    "aside": "complementary",
    "button": "button",
    "datalist": "listbox",
    "details": "group",
    "dialog": "dialog",
    "fieldset": "group",
    "footer": "contentinfo",
    "form": "form",
    "header": "banner",
    "hr": "separator",
    "li": "listitem",
    "main": "main",
    "menu": "list",
    "meter": "meter",
    "nav": "navigation",
    "ol": "list",
    "optgroup": "group",
    "option": "option",
    "output": "status",
    "progress": "progressbar",
    "table": "table",
    "tbody": "rowgroup",
    "td": "cell",
    "textarea": "textbox",
    "tfoot": "rowgroup",
    "th": "columnheader",
    "thead": "rowgroup",
    "tr": "row",
    "ul": "list",
}

_INPUT_ROLES = {
    "button": "button",
    "checkbox": "checkbox",
    "email": "textbox",
    "image": "button",
    "number": "spinbutton",
    "radio": "radio",
    "range": "slider",
    "reset": "button",
    "search": "searchbox",
    "submit": "button",
    "tel": "textbox",
    "text": "textbox",
    "url": "textbox",
}

# Roles whose accessible name may come from their content.
_NAME_FROM_CONTENT = frozenset(
    {
        "button",
        "cell",
        "checkbox",
        "columnheader",
        "gridcell",
        "heading",
        "link",
        "menuitem",
        "menuitemcheckbox",
        "menuitemradio",
        "option",
        "radio",
        "row",
        "rowheader",
        "switch",
        "tab",
        "tooltip",
        "treeitem",
    }
)

LABELABLE_TAGS = frozenset(
    {"button", "input", "meter", "output", "progress", "select", "textarea"}
)
_FORM_CONTROL_TAGS = frozenset({"button", "input", "select", "textarea", "option", "optgroup"})
_DEFAULT_BUTTON_NAMES = {"submit": "Submit", "reset": "Reset"}


def implicit_role(el: etree._Element) -> str | None:
    tag = el.tag
    if tag in ("a", "area"):
        return "link" if el.get("href") is not None else None
    if tag == "img":
        return "presentation" if el.get("alt") == "" else "img"
    if tag == "select":
        multiple = el.get("multiple") is not None
        size = el.get("size")
        if multiple or (size and size.isdigit() and int(size) > 1):
            return "listbox"
        return "combobox"
    if tag == "input":
        kind = (el.get("type") or "text").lower()
        if kind in ("text", "search", "email", "tel", "url") and el.get("list"):
            return "combobox"
        return _INPUT_ROLES.get(kind)
    if tag == "section":
        return "region" if el.get("aria-label") or el.get("aria-labelledby") else None
    if _HEADING.match(tag):
        return "heading"
    return _TAG_ROLES.get(tag)


def role_of(el: etree._Element) -> str | None:
    """Explicit ``role`` attribute (first token) or the implicit HTML role."""
    explicit = (el.get("role") or "").split()
    if explicit:
        return explicit[0].lower()
    return implicit_role(el)


def heading_level(el: etree._Element) -> int | None:
    level = el.get("aria-level")
    if level and level.isdigit():
        return int(level)
    match = _HEADING.match(el.tag)
    return int(match.group(1)) if match else None


def _self_hidden(el: etree._Element) -> bool:
    if el.tag in NON_TEXT_TAGS:
        return True
    if el.get(HIDDEN_ATTR) is not None or el.get("hidden") is not None:
        return True
    if el.get("aria-hidden", "").lower() == "true":
        return True
    style = el.get("style") or ""
    return bool(_DISPLAY_NONE.search(style) or _VISIBILITY_HIDDEN.search(style))


def is_hidden(doc: DocumentSnapshot, el: etree._Element) -> bool:
    """Hidden from the accessibility tree (self or any composed ancestor)."""
    if _self_hidden(el):
        return True
    return any(_self_hidden(a) for a in doc.ancestors(el))


def is_disabled(doc: DocumentSnapshot, el: etree._Element) -> bool:
    if el.get("aria-disabled", "").lower() == "true":
        return True
    if el.tag in _FORM_CONTROL_TAGS and el.get("disabled") is not None:
        return True
    for ancestor in doc.ancestors(el):
        if ancestor.get("aria-disabled", "").lower() == "true":
            return True
        if ancestor.tag == "fieldset" and ancestor.get("disabled") is not None:
            return True
        if el.tag == "option" and ancestor.tag in ("select", "optgroup") and ancestor.get(
            "disabled"
        ) is not None:
            return True
    return False


def is_editable(doc: DocumentSnapshot, el: etree._Element) -> bool:
    """Accepts text input: text-like input, textarea or contenteditable, not readonly."""
    if is_disabled(doc, el):
        return False
    if el.get("readonly") is not None or el.get("aria-readonly", "").lower() == "true":
        return False
    if el.tag == "textarea":
        return True
    if el.tag == "input":
        kind = (el.get("type") or "text").lower()
        return kind not in (
            "button", "checkbox", "file", "hidden", "image", "radio", "reset", "submit",
        )
    editable = el.get("contenteditable")
    return editable is not None and editable.lower() in ("", "true", "plaintext-only")


def checked_state(el: etree._Element) -> bool | str | None:
    aria = el.get("aria-checked")
    if aria is not None:
        return "mixed" if aria.lower() == "mixed" else aria.lower() == "true"
    if el.tag == "input" and (el.get("type") or "").lower() in ("checkbox", "radio"):
        return el.get("checked") is not None
    return None


def _bool_attr(el: etree._Element, name: str) -> bool | None:
    value = el.get(name)
    if value is None:
        return None
    return value.lower() == "true"


def selected_state(el: etree._Element) -> bool | None:
    aria = _bool_attr(el, "aria-selected")
    if aria is not None:
        return aria
    if el.tag == "option":
        return el.get("selected") is not None
    return None


def expanded_state(el: etree._Element) -> bool | None:
    return _bool_attr(el, "aria-expanded")


def pressed_state(el: etree._Element) -> bool | None:
    return _bool_attr(el, "aria-pressed")


# --- Accessible names ---


def _labelledby_text(doc: DocumentSnapshot, el: etree._Element) -> str | None:
    ids = (el.get("aria-labelledby") or "").split()
    if not ids:
        return None
    texts = []
    for html_id in ids:
        target = doc.by_html_id(el, html_id)
        if target is not None:
            texts.append(_content_name(doc, target))
    return normalize_whitespace(" ".join(texts))


def native_labels(doc: DocumentSnapshot, el: etree._Element) -> list[etree._Element]:
    """``<label>`` elements associated with a labelable control."""
    if el.tag not in LABELABLE_TAGS:
        return []
    labels: list[etree._Element] = []
    html_id = el.get("id")
    if html_id:
        tree_root = el
        while tree_root.getparent() is not None:
            tree_root = tree_root.getparent()
        labels.extend(
            lbl for lbl in tree_root.iter("label") if lbl.get("for") == html_id
        )
    for ancestor in doc.ancestors(el):
        if ancestor.tag == "label" and ancestor.get("for") is None and ancestor not in labels:
            labels.append(ancestor)
    return labels


def _tree_by_id(context: etree._Element, html_id: str) -> etree._Element | None:
    tree_root = context
    while tree_root.getparent() is not None:
        tree_root = tree_root.getparent()
    return next(
        (el for el in tree_root.iter() if is_element(el) and el.get("id") == html_id), None
    )


def label_control(label: etree._Element) -> etree._Element | None:
    """The control a ``<label>`` element labels, looked up in the label's own tree."""
    target = label.get("for")
    if target is not None:
        control = _tree_by_id(label, target)
        return control if control is not None and control.tag in LABELABLE_TAGS else None
    for el in label.iterdescendants():
        if is_element(el) and el.tag in LABELABLE_TAGS:
            if el.tag == "input" and (el.get("type") or "").lower() == "hidden":
                continue
            return el
    return None


def _content_name(doc: DocumentSnapshot, el: etree._Element) -> str:
    parts: list[str] = []

    def walk(node: etree._Element) -> None:
        if node.text:
            parts.append(node.text)
        for child in node:
            if is_element(child) and not _self_hidden(child):
                label = child.get("aria-label")
                if label:
                    parts.append(f" {label} ")
                elif child.tag == "img":
                    parts.append(f" {child.get('alt') or ''} ")
                else:
                    walk(child)
            if child.tail:
                parts.append(child.tail)

    walk(el)
    return normalize_whitespace("".join(parts))


def accessible_name(doc: DocumentSnapshot, el: etree._Element) -> str:
    labelledby = _labelledby_text(doc, el)
    if labelledby:
        return labelledby
    aria_label = normalize_whitespace(el.get("aria-label") or "")
    if aria_label:
        return aria_label

    tag = el.tag
    if tag == "input":
        kind = (el.get("type") or "text").lower()
        if kind in ("button", "submit", "reset"):
            value = el.get("value")
            if value:
                return normalize_whitespace(value)
            if kind in _DEFAULT_BUTTON_NAMES:
                return _DEFAULT_BUTTON_NAMES[kind]
        if kind == "image" and el.get("alt"):
            return normalize_whitespace(el.get("alt"))
    if tag in LABELABLE_TAGS:
        labels = native_labels(doc, el)
        if labels:
            return normalize_whitespace(" ".join(_content_name(doc, lbl) for lbl in labels))
    if tag in ("img", "area") and el.get("alt"):
        return normalize_whitespace(el.get("alt"))

    role = role_of(el)
    if role in _NAME_FROM_CONTENT or tag in ("button", "a"):
        content = _content_name(doc, el)
        if content:
            return content

    title = el.get("title") or el.get("placeholder") or ""
    return normalize_whitespace(title)
