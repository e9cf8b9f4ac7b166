"""Tests for the query resolver and the leaf resolvers."""

import re

import pytest

from autowait import aria
from autowait.config import EngineConfig
from autowait.drivers.memory import MemoryDriver
from autowait.models import Filter, FilterKind, Selector, SelectorKind
from autowait.resolver import QueryResolver
from autowait.selectors import parse_selector, role_selector, text_filter, text_selector
from autowait.snapshot import DocumentSnapshot, text_content


async def _snapshot(html: str) -> DocumentSnapshot:
    return await MemoryDriver(html).snapshot()


@pytest.fixture
def resolver() -> QueryResolver:
    return QueryResolver(EngineConfig())


@pytest.fixture
async def store(store_html: str) -> DocumentSnapshot:
    return await _snapshot(store_html)


def _texts(found) -> list[str]:
    return [" ".join(text_content(c.element).split()) for c in found]


class TestCssAndXPath:
    def test_css_matches_in_document_order(self, resolver, store) -> None:
        found = resolver.resolve(parse_selector("li.card h3"), store)
        assert _texts(found) == ["Combination Pliers", "Pliers", "Bolt Cutters", "Long Nose Pliers"]

    def test_xpath(self, resolver, store) -> None:
        found = resolver.resolve(parse_selector("//li/h3[contains(., 'Pliers')]"), store)
        assert len(found) == 3

    def test_chain_scopes_next_part(self, resolver, store) -> None:
        found = resolver.resolve(parse_selector("#products >> .price"), store)
        assert _texts(found) == ["$14.15", "$12.01", "$48.41", "$14.24"]

    def test_absolute_xpath_inside_chain_is_relative(self, resolver, store) -> None:
        found = resolver.resolve(parse_selector("li >> nth=1 >> //span"), store)
        assert _texts(found) == ["$12.01"]

    def test_grouped_xpath_inside_chain_is_relative(self, resolver, store) -> None:
        found = resolver.resolve(parse_selector("li >> nth=2 >> (//span)[1]"), store)
        assert _texts(found) == ["$48.41"]
        explicit = resolver.resolve(parse_selector("#products >> xpath=( //h3 )[last()]"), store)
        assert _texts(explicit) == ["Long Nose Pliers"]

    def test_no_match_is_empty_list(self, resolver, store) -> None:
        assert resolver.resolve(parse_selector("#missing"), store) == []

    def test_resolution_is_idempotent(self, resolver, store) -> None:
        selector = parse_selector("text=Pliers")
        first = resolver.resolve(selector, store)
        second = resolver.resolve(selector, store)
        assert [c.element for c in first] == [c.element for c in second]


class TestText:
    def test_substring_matches_smallest_elements(self, resolver, store) -> None:
        found = resolver.resolve(parse_selector("text=pliers"), store)
        assert [c.element.tag for c in found] == ["h3", "h3", "h3"]

    def test_exact_text(self, resolver, store) -> None:
        found = resolver.resolve(parse_selector('text="Pliers"'), store)
        assert _texts(found) == ["Pliers"]

    def test_regex_text(self, resolver, store) -> None:
        found = resolver.resolve(text_selector(SelectorKind.TEXT, re.compile(r"^\$14")), store)
        assert _texts(found) == ["$14.15", "$14.24"]

    async def test_button_input_matches_on_value(self, resolver) -> None:
        snapshot = await _snapshot('<input type="submit" value="Place order"><p>order</p>')
        found = resolver.resolve(parse_selector('text="Place order"'), snapshot)
        assert [c.element.tag for c in found] == ["input"]

    async def test_style_content_is_ignored(self, resolver) -> None:
        snapshot = await _snapshot("<style>.pliers{}</style><p>none</p>")
        assert resolver.resolve(parse_selector("text=pliers"), snapshot) == []


class TestRole:
    def test_role_by_name_substring(self, resolver, store) -> None:
        found = resolver.resolve(parse_selector('role=button[name="add to"]'), store)
        assert len(found) == 4

    def test_role_name_exact(self, resolver, store) -> None:
        assert len(resolver.resolve(parse_selector('role=button[name="Search"s]'), store)) == 1
        assert resolver.resolve(parse_selector('role=button[name="search"s]'), store) == []

    def test_disabled_state(self, resolver, store) -> None:
        found = resolver.resolve(role_selector("button", disabled=True), store)
        assert len(found) == 1

    def test_heading_level_and_link(self, resolver, store) -> None:
        assert len(resolver.resolve(parse_selector("role=heading[level=3]"), store)) == 4
        assert resolver.resolve(parse_selector("role=heading[level=2]"), store) == []
        assert len(resolver.resolve(parse_selector("role=link"), store)) == 3

    def test_name_from_aria_label_and_alt(self, resolver, store) -> None:
        assert len(resolver.resolve(role_selector("navigation", name="Main"), store)) == 1
        assert len(resolver.resolve(role_selector("img", name="Toolshop logo"), store)) == 1
        assert len(resolver.resolve(role_selector("searchbox", name="Search products"), store)) == 1

    async def test_hidden_elements_excluded_unless_requested(self, resolver) -> None:
        snapshot = await _snapshot(
            '<button>Shown</button><div style="display: none"><button>Gone</button></div>'
            '<button aria-hidden="true">Muted</button>'
        )
        assert len(resolver.resolve(parse_selector("role=button"), snapshot)) == 1
        assert len(resolver.resolve(parse_selector("role=button[include-hidden]"), snapshot)) == 3

    async def test_checkbox_checked_state(self, resolver) -> None:
        snapshot = await _snapshot(
            '<input type="checkbox" checked><input type="checkbox">'
            '<div role="checkbox" aria-checked="mixed"></div>'
        )
        assert len(resolver.resolve(parse_selector("role=checkbox[checked]"), snapshot)) == 1
        assert len(resolver.resolve(parse_selector("role=checkbox[checked=false]"), snapshot)) == 1
        assert len(resolver.resolve(parse_selector("role=checkbox[checked=mixed]"), snapshot)) == 1


class TestAttributeEngines:
    def test_placeholder_alt_title(self, resolver, store) -> None:
        assert len(resolver.resolve(parse_selector("placeholder=search"), store)) == 1
        assert len(resolver.resolve(parse_selector("alt=logo"), store)) == 1
        assert _texts(resolver.resolve(parse_selector('title="Items in cart"'), store)) == ["0"]

    def test_test_id_is_exact(self, resolver, store) -> None:
        assert len(resolver.resolve(parse_selector("testid=product-card"), store)) == 4
        assert resolver.resolve(parse_selector("testid=product"), store) == []

    async def test_custom_test_id_attribute(self) -> None:
        snapshot = await _snapshot('<button data-qa="go">Go</button><button data-testid="go">No</button>')
        custom = QueryResolver(EngineConfig(test_id_attribute="data-qa"))
        assert _texts(custom.resolve(parse_selector("testid=go"), snapshot)) == ["Go"]


class TestLabel:
    async def test_label_for_nested_and_aria(self, resolver, simple_form_path) -> None:
        snapshot = await _snapshot(simple_form_path.read_text())
        username = resolver.resolve(parse_selector("label=Username"), snapshot)
        assert [c.element.get("id") for c in username] == ["username"]
        remember = resolver.resolve(parse_selector("label=Remember me"), snapshot)
        assert [c.element.get("id") for c in remember] == ["remember"]

    async def test_aria_labelledby(self, resolver) -> None:
        snapshot = await _snapshot('<span id="q">Quantity</span><input aria-labelledby="q">')
        found = resolver.resolve(parse_selector('label="Quantity"'), snapshot)
        assert [c.element.tag for c in found] == ["input"]


class TestFiltersAndIndex:
    def test_has_text_is_case_sensitive_by_default(self, resolver, store) -> None:
        cards = parse_selector("li.card")
        exact = cards.with_filter(text_filter(FilterKind.HAS_TEXT, "Pliers"))
        lower = cards.with_filter(text_filter(FilterKind.HAS_TEXT, "pliers"))
        assert len(resolver.resolve(exact, store)) == 3
        assert resolver.resolve(lower, store) == []
        relaxed = cards.with_filter(text_filter(FilterKind.HAS_TEXT, "pliers", ignore_case=True))
        assert len(resolver.resolve(relaxed, store)) == 3

    def test_has_not_text(self, resolver, store) -> None:
        cards = parse_selector("li.card").with_filter(text_filter(FilterKind.HAS_NOT_TEXT, "Pliers"))
        assert len(resolver.resolve(cards, store)) == 1

    def test_has_and_has_not_resolve_relative_to_candidate(self, resolver, store) -> None:
        disabled = parse_selector("button[disabled]")
        has = parse_selector("li.card").with_filter(Filter(kind=FilterKind.HAS, selector=disabled))
        has_not = parse_selector("li.card").with_filter(
            Filter(kind=FilterKind.HAS_NOT, selector=disabled)
        )
        assert [t.split("$")[0].strip() for t in _texts(resolver.resolve(has, store))] == ["Bolt Cutters"]
        assert len(resolver.resolve(has_not, store)) == 3

    def test_nth_first_last_and_out_of_range(self, resolver, store) -> None:
        h3 = parse_selector("li h3")
        assert _texts(resolver.resolve(h3.with_index(0), store)) == ["Combination Pliers"]
        assert _texts(resolver.resolve(h3.with_index(-1), store)) == ["Long Nose Pliers"]
        assert resolver.resolve(h3.with_index(10), store) == []

    def test_filter_then_index(self, resolver, store) -> None:
        selector = parse_selector("li h3").with_filter(text_filter(FilterKind.HAS_TEXT, "Pliers"))
        assert _texts(resolver.resolve(selector.with_index(1), store)) == ["Pliers"]

    def test_union_is_in_document_order_without_duplicates(self, resolver, store) -> None:
        found = resolver.resolve(parse_selector(".price | li h3 | h3"), store)
        assert [c.element.tag for c in found] == ["h3", "span"] * 4


class TestRoots:
    async def test_frame_by_name_id_or_css(self, resolver) -> None:
        snapshot = await _snapshot(
            '<button>Outside</button>'
            '<iframe name="checkout" class="pay" srcdoc="&lt;button&gt;Pay&lt;/button&gt;"></iframe>'
        )
        for key in ("checkout", "iframe.pay"):
            chained = Selector(kind=SelectorKind.FRAME, value=key).chain(parse_selector("role=button"))
            assert _texts(resolver.resolve(chained, snapshot)) == ["Pay"]
        assert _texts(resolver.resolve(parse_selector("role=button"), snapshot)) == ["Outside"]

    async def test_shadow_root_is_only_entered_explicitly(self, resolver) -> None:
        snapshot = await _snapshot(
            '<div id="host"><template shadowrootmode="open"><button>Inside</button></template></div>'
        )
        assert resolver.resolve(parse_selector("button"), snapshot) == []
        shadow = parse_selector("#host").chain(Selector(kind=SelectorKind.SHADOW))
        found = resolver.resolve(shadow.chain(parse_selector("button")), snapshot)
        assert _texts(found) == ["Inside"]
        assert not aria.is_hidden(snapshot, found[0].element)


class TestAria:
    async def test_accessible_name_sources(self) -> None:
        snapshot = await _snapshot(
            '<span id="t">Total</span>'
            '<button aria-labelledby="t">x</button>'
            '<button aria-label="Close">X</button>'
            '<label for="e">Email</label><input id="e">'
            '<input type="submit">'
            '<button title="Help"></button>'
        )
        names = [
            aria.accessible_name(snapshot, el)
            for el in snapshot.elements()
            if el.tag in ("button", "input")
        ]
        assert names == ["Total", "Close", "Email", "Submit", "Help"]

    async def test_disabled_by_fieldset(self) -> None:
        snapshot = await _snapshot('<fieldset disabled><input id="a"></fieldset><input id="b">')
        a, b = [el for el in snapshot.elements() if el.tag == "input"]
        assert aria.is_disabled(snapshot, a)
        assert not aria.is_disabled(snapshot, b)

    async def test_editable(self) -> None:
        snapshot = await _snapshot(
            '<input id="a"><input id="b" readonly><input id="c" type="checkbox">'
            '<div id="d" contenteditable></div><textarea id="e"></textarea>'
        )
        editable = {
            el.get("id"): aria.is_editable(snapshot, el)
            for el in snapshot.elements()
            if el.get("id")
        }
        assert editable == {"a": True, "b": False, "c": False, "d": True, "e": True}
