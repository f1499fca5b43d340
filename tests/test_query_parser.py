import pytest

from apps.subjects.dto import ParsedQuery
from apps.subjects.services.lexicon import DEFAULT_LEXICON, build_lexicon
from apps.subjects.services.query_parser import QueryParser


@pytest.fixture
def parser():
    return QueryParser(DEFAULT_LEXICON)


def test_category_and_city_leave_no_free_text(parser):
    assert parser.parse("restaurant in denver") == ParsedQuery(query=None, type="restaurants", city="denver")


def test_first_city_token_wins(parser):
    parsed = parser.parse("boston denver")
    assert parsed.city == "boston"
    # the second city is not consumed, so it stays in the free text
    assert parsed.query == "denver"


@pytest.mark.parametrize("text", ["", "   ", "\t\n"])
def test_empty_input(parser, text):
    assert parser.parse(text) == ParsedQuery()


def test_input_is_case_folded(parser):
    assert parser.parse("Ramen In SEATTLE") == ParsedQuery(query=None, type="restaurants", city="seattle")


def test_stopwords_never_reach_query(parser):
    parsed = parser.parse("the best of boston with a view")
    assert parsed.city == "boston"
    assert parsed.query == "best view"


SINGLE_TOKEN_CORRECTIONS = sorted(
    (wrong, right) for wrong, right in DEFAULT_LEXICON.corrections.items() if " " not in right
)


@pytest.mark.parametrize("misspelled, canonical", SINGLE_TOKEN_CORRECTIONS)
def test_corrections_apply_before_matching(parser, misspelled, canonical):
    assert parser.parse(f"cheap {misspelled} tonight") == parser.parse(f"cheap {canonical} tonight")


def test_nyc_resolves_to_multi_word_city(parser):
    assert parser.parse("restourants nyc") == ParsedQuery(query=None, type="restaurants", city="new york")


def test_multi_word_city_is_not_matched_across_tokens(parser):
    parsed = parser.parse("pizza in new york")
    assert parsed.city is None
    assert parsed.query == "pizza new york"


def test_category_group_declaration_order_decides(parser):
    # "bakery" is listed by restaurants, cafes and desserts; restaurants is declared first
    assert parser.parse("bakery").type == "restaurants"
    assert parser.parse("coffee").type == "cafes"


def test_last_category_token_overwrites_type(parser):
    parsed = parser.parse("cafe dessert")
    assert parsed.type == "desserts"
    # "cafe" belonged to the overwritten group, so it survives as free text
    assert parsed.query == "cafe"


def test_city_assignment_is_not_overwritten(parser):
    assert parser.parse("denver miami austin").city == "denver"


def test_free_text_is_joined_with_single_spaces(parser):
    assert parser.parse("  cozy   rooftop\tbar ").query == "cozy rooftop bar"


def test_parse_is_deterministic(parser):
    text = "best coffe near boson for the weekend"
    assert {parser.parse(text) for _ in range(5)} == {parser.parse(text)}


def test_substituted_lexicon():
    lexicon = build_lexicon(
        stopwords=["at"],
        cities=["springfield"],
        category_groups={"diners": ["diner", "diners"]},
        corrections={"dinr": "diner"},
        category_expansion={},
    )
    parsed = QueryParser(lexicon).parse("Krusty dinr at Springfield")
    assert parsed == ParsedQuery(query="krusty", type="diners", city="springfield")
