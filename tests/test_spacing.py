from Md2Doc.block_translator import BlockTranslator
from Md2Doc.inline_formatter import InlineFormatter
from Md2Doc.model import HeadingToken, ListItemToken, ListToken, Paragraph, ParagraphToken, SpaceToken, Spacer
from Md2Doc.spacing import SPACER_SPACING, SpacingCoordinator


def test_first_token_never_gets_a_spacer():
    coordinator = SpacingCoordinator()
    assert coordinator.observe("space") is None
    assert coordinator.last_kind == "space"


def test_consecutive_blank_tokens_collapse():
    coordinator = SpacingCoordinator()
    results = [coordinator.observe(kind) for kind in ("paragraph", "space", "space", "space", "paragraph")]
    spacers = [result for result in results if result is not None]
    assert len(spacers) == 1
    assert spacers[0].spacing == SPACER_SPACING
    assert coordinator.consecutive_breaks == 0


def test_each_block_transition_resets_the_counter():
    coordinator = SpacingCoordinator()
    results = [coordinator.observe(kind) for kind in ("paragraph", "space", "list", "space", "code")]
    assert [result is not None for result in results] == [False, True, False, True, False]


def test_translator_emits_one_spacer_between_paragraphs(bridge):
    tokens = [
        ParagraphToken(text="One"),
        SpaceToken(),
        SpaceToken(),
        ParagraphToken(text="Two"),
    ]
    blocks = BlockTranslator(InlineFormatter(bridge)).translate(tokens)
    assert [type(block) for block in blocks] == [Paragraph, Spacer, Paragraph]


def test_no_spacer_without_blank_tokens(bridge):
    tokens = [
        HeadingToken(depth=2, text="Title"),
        ParagraphToken(text="Body"),
        ListToken(ordered=False, items=(ListItemToken("a"),)),
    ]
    blocks = BlockTranslator(InlineFormatter(bridge)).translate(tokens)
    assert not any(isinstance(block, Spacer) for block in blocks)
