"""Tests for selector text parsing."""

import re

import pytest

from autowait.exceptions import SelectorSyntaxError
from autowait.models import FilterKind, SelectorKind
from autowait.selectors import (
    parse_selector,
    parse_text_value,
    role_selector,
    split_top_level,
    text_filter,
)


class TestSplitTopLevel:
    def test_splits_chain(self) -> None:
        assert split_top_level("#a >> .b >> text=c", ">>") == ["#a ", " .b ", " text=c"]

    def test_ignores_separator_inside_quotes(self) -> None:
        assert split_top_level('text="a >> b"', ">>") == ['text="a >> b"']

    def test_ignores_separator_inside_brackets(self) -> None:
        assert split_top_level('role=button[name="x"] >> nth=1', ">>") == [
            'role=button[name="x"] ',
            " nth=1",
        ]

    def test_ignores_separator_inside_regex(self) -> None:
        assert split_top_level("text=/a | b/ | #c", " | ") == ["text=/a | b/", "#c"]

    def test_unterminated_quote_raises(self) -> None:
        with pytest.raises(SelectorSyntaxError, match="unterminated"):
            split_top_level('text="abc', ">>")


class TestTextValues:
    def test_bare_text_is_case_insensitive_substring(self) -> None:
        matcher = parse_text_value("text=log", "log")
        assert not matcher.exact
        assert matcher.matches("Please LOG in")

    def test_quoted_text_is_exact_case_sensitive(self) -> None:
        matcher = parse_text_value('text="Log in"', '"Log in"')
        assert matcher.matches("  Log   in ")
        assert not matcher.matches("log in")
        assert not matcher.matches("Log in now")

    def test_quoted_with_i_suffix_ignores_case(self) -> None:
        matcher = parse_text_value('text="log in"i', '"log in"i')
        assert matcher.matches("Log In")

    def test_regex_with_flags(self) -> None:
        matcher = parse_text_value("text=/^sign/i", "/^sign/i")
        assert isinstance(matcher.value, re.Pattern)
        assert matcher.matches("Sign in")

    def test_invalid_regex_raises(self) -> None:
        with pytest.raises(SelectorSyntaxError, match="regular expression"):
            parse_text_value("text=/(/", "/(/")

    def test_empty_value_raises(self) -> None:
        with pytest.raises(SelectorSyntaxError):
            parse_text_value("text=", "  ")


class TestParseSelector:
    def test_plain_css(self) -> None:
        selector = parse_selector("#login-btn")
        assert selector.kind == SelectorKind.CSS
        assert selector.value == "#login-btn"

    def test_implicit_xpath(self) -> None:
        selector = parse_selector("//button[@id='go']")
        assert selector.kind == SelectorKind.XPATH

    def test_implicit_quoted_text(self) -> None:
        selector = parse_selector('"Add to cart"')
        assert selector.kind == SelectorKind.TEXT
        assert selector.text.exact

    def test_chain_and_union(self) -> None:
        selector = parse_selector("#products >> text=Pliers | .price")
        assert selector.kind == SelectorKind.CHAIN
        first, second = selector.parts
        assert first.kind == SelectorKind.CSS
        assert second.kind == SelectorKind.UNION
        assert [p.kind for p in second.parts] == [SelectorKind.TEXT, SelectorKind.CSS]

    def test_nth_applies_to_preceding_parts(self) -> None:
        selector = parse_selector("li >> nth=-1")
        assert selector.kind == SelectorKind.CSS
        assert selector.index == -1

    def test_nth_first_raises(self) -> None:
        with pytest.raises(SelectorSyntaxError, match="must follow"):
            parse_selector("nth=0")

    def test_nth_needs_integer(self) -> None:
        with pytest.raises(SelectorSyntaxError, match="integer"):
            parse_selector("li >> nth=first")

    def test_has_text_pseudo_class(self) -> None:
        selector = parse_selector('li:has-text("pliers")')
        assert selector.value == "li"
        assert selector.filters[0].kind == FilterKind.HAS_TEXT
        assert selector.filters[0].text.ignore_case

    def test_invalid_css_raises(self) -> None:
        with pytest.raises(SelectorSyntaxError):
            parse_selector("div[[")

    def test_invalid_xpath_raises(self) -> None:
        with pytest.raises(SelectorSyntaxError):
            parse_selector("xpath=//div[")

    def test_empty_selector_raises(self) -> None:
        with pytest.raises(SelectorSyntaxError, match="empty"):
            parse_selector("   ")

    def test_empty_chain_part_raises(self) -> None:
        with pytest.raises(SelectorSyntaxError, match="empty"):
            parse_selector("#a >>  >> #b")

    def test_testid_and_frame(self) -> None:
        assert parse_selector("testid=search-submit").kind == SelectorKind.TEST_ID
        frame = parse_selector('frame="checkout" >> #pay')
        assert frame.parts[0].kind == SelectorKind.FRAME
        assert frame.parts[0].value == "checkout"

    def test_text_like_engines(self) -> None:
        for engine, kind in (
            ("label", SelectorKind.LABEL),
            ("placeholder", SelectorKind.PLACEHOLDER),
            ("alt", SelectorKind.ALT_TEXT),
            ("title", SelectorKind.TITLE),
        ):
            assert parse_selector(f"{engine}=Search").kind == kind


class TestRoleSelectors:
    def test_role_with_quoted_name(self) -> None:
        selector = parse_selector('role=button[name="Search"]')
        assert selector.value == "button"
        name = selector.role.name
        assert not name.exact
        assert name.ignore_case

    def test_role_name_with_s_suffix_is_exact(self) -> None:
        selector = parse_selector('role=button[name="Search"s]')
        assert selector.role.name.exact
        assert not selector.role.name.ignore_case

    def test_role_state_attributes(self) -> None:
        selector = parse_selector("role=checkbox[checked][disabled=false][include-hidden]")
        assert selector.role.checked is True
        assert selector.role.disabled is False
        assert selector.role.include_hidden

    def test_role_checked_mixed(self) -> None:
        assert parse_selector("role=checkbox[checked=mixed]").role.checked == "mixed"

    def test_heading_level(self) -> None:
        assert parse_selector("role=heading[level=2]").role.level == 2

    def test_unknown_attribute_raises(self) -> None:
        with pytest.raises(SelectorSyntaxError, match="unknown role attribute"):
            parse_selector("role=button[colour=red]")

    def test_role_name_containing_bracket_separator(self) -> None:
        selector = parse_selector('role=link[name="a >> b"] >> nth=0')
        assert selector.role.name.value == "a >> b"
        assert selector.index == 0

    def test_builder_matches_parser_description(self) -> None:
        built = role_selector("button", name="Search", exact=True)
        assert str(built) == 'role=button[name="Search"s]'


class TestDescribe:
    def test_description_round_trips_common_shapes(self) -> None:
        for text in ("#login-btn", "xpath=//a", 'role=button[name="Go"]', "li >> nth=2"):
            assert str(parse_selector(str(parse_selector(text)))) == str(parse_selector(text))

    def test_filter_description(self) -> None:
        selector = parse_selector("li").with_filter(text_filter(FilterKind.HAS_TEXT, "Pliers"))
        assert str(selector) == 'li >> has-text="Pliers"'
