from adapters.autolinker.scanning import (
    enclosing_link_target,
    find_entity_mention,
    is_inside_inline_code,
    is_inside_link,
    is_inside_link_target,
    is_word_boundary,
    iter_entity_mentions,
)


def test_word_boundaries():
    for ch in " \t,.:;!?()[]{}\"'/-—–":
        assert is_word_boundary(ch), ch
    for ch in "aZ0_`*":
        assert not is_word_boundary(ch), ch


def test_find_entity_mention_respects_boundaries():
    assert find_entity_mention("mdmaergic", "mdma") == -1
    assert find_entity_mention("pre-MDMA.", "mdma") == 4
    assert find_entity_mention("MDMA", "mdma") == 0
    assert find_entity_mention("", "mdma") == -1


def test_iter_entity_mentions_yields_all_delimited_hits():
    text = "MDMA, xMDMA und mdma"
    assert list(iter_entity_mentions(text, "mdma")) == [0, 16]


def test_iter_entity_mentions_handles_length_changing_lowercase():
    # "İ".lower() is two code points long
    text = "İ MDMA"
    assert list(iter_entity_mentions(text, "mdma")) == [2]


def test_inside_link_text_and_target():
    text = "a [MDMA info](/x/mdma) b"
    assert is_inside_link(text, text.index("MDMA"))
    assert not is_inside_link(text, text.index("b"))
    assert is_inside_link_target(text, text.index("mdma"))
    assert not is_inside_link_target(text, text.index("MDMA"))


def test_plain_brackets_and_parens_are_not_links():
    text = "[Hinweis] MDMA (siehe oben)"
    assert not is_inside_link(text, text.index("MDMA"))
    assert not is_inside_link_target(text, text.index("siehe"))


def test_inline_code_by_backtick_parity():
    text = "`a MDMA` MDMA"
    assert is_inside_inline_code(text, 3)
    assert not is_inside_inline_code(text, 9)


def test_enclosing_link_target():
    text = "[MDMA](/entities/mdma) und MDMA"
    assert enclosing_link_target(text, 1) == "/entities/mdma"
    assert enclosing_link_target(text, text.rindex("MDMA")) is None
