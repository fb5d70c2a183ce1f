"""
Character-bounded chunking for LLM submission.

Splits oversized document text while preserving natural boundaries:
1. Paragraph breaks (blank lines)
2. Sentence breaks
3. Hard character cuts (last resort)

The character budget is what the prompt builder enforces; token counts are
reported alongside for logging and cost estimates.
"""

import logging
import re
from typing import Optional

import tiktoken

logger = logging.getLogger(__name__)

DEFAULT_MAX_CHARS = 8000

PARAGRAPH_SPLIT = re.compile(r"\n\s*\n")
SENTENCE_PATTERN = re.compile(r"[^.!?]+[.!?]+|[^.!?]+$")
SENTENCE_END = re.compile(r"[.!?]+(?=\s)")


class ChunkingConfig:
    """Configuration for chunking behavior."""

    def __init__(
        self,
        max_chars: int = DEFAULT_MAX_CHARS,
        tokenizer_model: str = "gpt-4o-mini",
    ):
        """
        Initialize chunking configuration.

        Args:
            max_chars: Maximum characters per chunk
            tokenizer_model: Model whose tokenizer is used for token estimates
        """
        if max_chars <= 0:
            raise ValueError(f"max_chars must be positive, got {max_chars}")
        self.max_chars = max_chars
        self.tokenizer_model = tokenizer_model


class TextChunker:
    """
    Chunks text into pieces no longer than max_chars.

    Paragraphs are packed greedily; a paragraph that alone exceeds the budget
    is split by sentences, and a sentence that alone exceeds it is cut.
    """

    def __init__(self, config: Optional[ChunkingConfig] = None):
        self.config = config or ChunkingConfig()
        self._tokenizer = None  # Loaded on first count_tokens call

    @property
    def tokenizer(self):
        if self._tokenizer is None:
            try:
                self._tokenizer = tiktoken.encoding_for_model(self.config.tokenizer_model)
            except KeyError:
                self._tokenizer = tiktoken.get_encoding("cl100k_base")
        return self._tokenizer

    def count_tokens(self, text: str) -> int:
        """Count tokens in text."""
        return len(self.tokenizer.encode(text))

    def chunk_text(self, text: str) -> list[str]:
        """Split text into chunks of at most max_chars characters."""
        max_chars = self.config.max_chars
        if not text or len(text) <= max_chars:
            return [text]

        chunks: list[str] = []
        current = ""

        for paragraph in PARAGRAPH_SPLIT.split(text):
            if len(current) + len(paragraph) + 2 > max_chars:
                if current:
                    chunks.append(current)
                if len(paragraph) > max_chars:
                    chunks.extend(self._chunk_by_sentences(paragraph))
                    current = ""
                else:
                    current = paragraph
            else:
                current = f"{current}\n\n{paragraph}" if current else paragraph

        if current:
            chunks.append(current)

        logger.debug(f"Chunked {len(text)} chars into {len(chunks)} chunks")
        return chunks

    def _chunk_by_sentences(self, text: str) -> list[str]:
        max_chars = self.config.max_chars
        sentences = SENTENCE_PATTERN.findall(text) or [text]

        chunks: list[str] = []
        current = ""

        for sentence in sentences:
            sentence = sentence.strip()
            if not sentence:
                continue
            if len(current) + len(sentence) + 1 > max_chars:
                if current:
                    chunks.append(current)
                if len(sentence) > max_chars:
                    for start in range(0, len(sentence), max_chars):
                        chunks.append(sentence[start:start + max_chars])
                    current = ""
                else:
                    current = sentence
            else:
                current = f"{current} {sentence}" if current else sentence

        if current:
            chunks.append(current)
        return chunks

    def truncate(self, text: str) -> tuple[str, bool]:
        """
        Cut text to max_chars at the last paragraph or sentence boundary.

        A boundary is used only when it keeps at least half the budget;
        otherwise the text is hard cut at max_chars.

        Returns:
            (text, was_truncated). The text never exceeds max_chars.
        """
        max_chars = self.config.max_chars
        if len(text) <= max_chars:
            return text, False

        floor = max_chars // 2
        cut = text.rfind("\n\n", 0, max_chars)
        if cut < floor:
            cut = -1
            for match in SENTENCE_END.finditer(text, 0, max_chars + 1):
                cut = match.end()
        if cut < floor:
            cut = max_chars

        truncated = text[:cut].rstrip()
        logger.debug(f"Truncated {len(text)} chars to {len(truncated)}")
        return truncated, True


def chunk_text(text: str, max_chars: int = DEFAULT_MAX_CHARS) -> list[str]:
    """Convenience function for one-off chunking."""
    return TextChunker(ChunkingConfig(max_chars=max_chars)).chunk_text(text)


def count_tokens(text: str, model: str = "gpt-4o-mini") -> int:
    """Token estimate for a piece of text."""
    return TextChunker(ChunkingConfig(tokenizer_model=model)).count_tokens(text)
