from __future__ import annotations

import asyncio
import logging
from typing import Iterable, List, Union

from . import markdown_parser
from .block_translator import BlockTranslator
from .errors import ConversionFailedError, Md2DocError
from .inline_formatter import InlineFormatter
from .math_bridge import MathBridge, get_math_bridge
from .model import Document
from .renderer_docx import render_document
from .style_config import StyleConfig, default_style_config

logger = logging.getLogger(__name__)


def build_document(
    markdown_text: str, bridge: MathBridge | None = None, config: StyleConfig | None = None
) -> Document:
    """Tokenize and translate Markdown into the block model without serializing it."""
    bridge = bridge or get_math_bridge()
    config = config or default_style_config()
    try:
        stream = markdown_parser.tokenize(markdown_text)
    except Md2DocError:
        raise
    except Exception as exc:
        raise ConversionFailedError(f"Markdown could not be tokenized: {exc}") from exc
    logger.info("Parsed %d markdown tokens", len(stream.tokens))
    if stream.tokens:
        logger.debug("First token types: %s", [token.kind for token in stream.tokens[:5]])

    translator = BlockTranslator(InlineFormatter(bridge, config), config)
    blocks = translator.translate(stream.tokens)
    return Document(blocks=blocks, metadata=stream.metadata)


async def convert_markdown(
    markdown_text: str, bridge: MathBridge | None = None, config: StyleConfig | None = None
) -> bytes:
    """Convert Markdown text into DOCX bytes."""
    bridge = bridge or get_math_bridge()
    logger.info("Input markdown: %d chars, sample %r", len(markdown_text), markdown_text[:200])
    if "$" in markdown_text:
        await bridge.ready()
    document = build_document(markdown_text, bridge=bridge, config=config)
    return render_document(document, config)


def convert_markdown_sync(
    markdown_text: str, bridge: MathBridge | None = None, config: StyleConfig | None = None
) -> bytes:
    return asyncio.run(convert_markdown(markdown_text, bridge=bridge, config=config))


async def convert_batch(
    texts: Iterable[str], bridge: MathBridge | None = None, config: StyleConfig | None = None
) -> List[Union[bytes, Md2DocError]]:
    """Convert several documents concurrently; a failure only affects its own slot."""
    bridge = bridge or get_math_bridge()
    results = await asyncio.gather(
        *(convert_markdown(text, bridge=bridge, config=config) for text in texts),
        return_exceptions=True,
    )
    for idx, result in enumerate(results, start=1):
        if isinstance(result, Md2DocError):
            logger.error("Document %d failed: %s", idx, result)
        elif isinstance(result, BaseException):
            raise result
    return list(results)
