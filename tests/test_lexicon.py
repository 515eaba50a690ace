"""Lexicon loading and query expansion."""

import json

import pytest

from craftsearch.lexicon import Lexicon, expand, load_lexicon
from craftsearch.utils import tokenize


def test_default_lexicon_loads_all_sections():
    lexicon = load_lexicon()
    assert "basket" in lexicon.spelling_variants
    assert "handicrafts" in lexicon.category_synonyms
    assert "weaving" in lexicon.craft_type_synonyms


def test_lexicon_is_read_only(lexicon):
    with pytest.raises(TypeError):
        lexicon.spelling_variants["new"] = ("entry",)


def test_unknown_section_rejected():
    with pytest.raises(ValueError):
        Lexicon.from_mapping({"colours": {"red": ["crimson"]}})


def test_from_file(tmp_path):
    path = tmp_path / "lexicon.json"
    path.write_text(json.dumps({"spelling_variants": {"Basket": ["BASKIT"]}}), encoding="utf-8")
    lexicon = Lexicon.from_file(path)
    assert lexicon.spelling_variants["basket"] == ("baskit",)
    assert lexicon.category_synonyms == {}


@pytest.mark.parametrize("query", ["baskit", "Red Handmade BAG", "clay pot", "unknownword", "  spaced   out "])
def test_expansion_is_superset_of_tokens(lexicon, query):
    assert set(tokenize(query)) <= lexicon.expand(query)


def test_variant_pulls_in_canonical_and_siblings(lexicon):
    terms = lexicon.expand("baskit")
    assert {"basket", "baskit", "bascet", "basquet"} <= terms


def test_term_in_several_buckets_expands_all(lexicon):
    terms = lexicon.expand("basket")
    # spelling bucket
    assert "baskit" in terms
    # craft-type bucket lists basket under basketry
    assert {"basketry", "wicker", "rattan"} <= terms


def test_category_synonym_expansion_is_case_insensitive(lexicon):
    assert {"handicrafts", "crafts", "artisan"} <= lexicon.expand("HANDMADE")


def test_expansion_is_one_level_deep(lexicon):
    terms = lexicon.expand("rattan")
    assert "basketry" in terms
    # "basket" is added as a sibling, but its own spelling variants are not
    assert "baskit" not in terms


def test_accented_tokens_add_folded_form(lexicon):
    terms = lexicon.expand("piña")
    assert {"piña", "pina"} <= terms


def test_module_level_expand_uses_supplied_lexicon(lexicon):
    assert expand("potery", lexicon) >= {"pottery", "potery"}


def test_canonical_lookup_helpers(lexicon):
    assert lexicon.canonical_for_variant("BAGS") == "bag"
    assert lexicon.canonical_for_variant("pottery") is None
    assert lexicon.canonical_terms()[0] == "basket"
    # weaving appears in two buckets but only once here
    assert lexicon.canonical_terms().count("weaving") == 1
