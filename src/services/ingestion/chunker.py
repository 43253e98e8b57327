"""Sentence-based chunking with token budgets and sentence-level overlap.

Splits parsed document text into :class:`~src.models.chunk.ChunkDraft`
objects sized for embedding models (1000 estimated tokens with 200 tokens of
overlap by default).

The strategy:

1. **Sentence splitting** -- break on ``.``, ``!`` or ``?`` followed by
   whitespace, unless the sentence's last word is a known abbreviation
   ("Dr.", "e.g.", "Ph.D." ...).  Each sentence keeps its character offsets
   in the source text.

2. **Greedy packing** -- sentences are joined with single spaces until the
   next one would push the chunk's estimated token count over the budget.

3. **Overlap** -- the next chunk is seeded with whole sentences taken from
   the tail of the chunk just closed, until the seed reaches the overlap
   budget.  Seed sentences are dropped from the front if the seed plus the
   incoming sentence would not fit, so only a single sentence that is
   itself over budget ever produces an oversized chunk.

Tables bypass the budget entirely and become one chunk each.
"""

from __future__ import annotations

import math
import re
from typing import NamedTuple

import structlog

from src.models.chunk import ChunkDraft, ChunkType
from src.models.parsed import ParsedTable
from src.models.pipeline import ProcessingOptions

logger = structlog.get_logger(logger_name=__name__)

# A sentence whose last word is one of these does not end there.
ABBREVIATIONS = frozenset(
    {
        "Dr.",
        "Mr.",
        "Mrs.",
        "Ms.",
        "Prof.",
        "Sr.",
        "Jr.",
        "Ph.D.",
        "M.D.",
        "B.A.",
        "M.A.",
        "B.S.",
        "M.S.",
        "i.e.",
        "e.g.",
        "etc.",
        "vs.",
        "Inc.",
        "Ltd.",
        "Co.",
        "St.",
    }
)

_SENTENCE_END_RE = re.compile(r"[.!?]\s+")


class Sentence(NamedTuple):
    text: str
    start: int
    end: int


def estimate_tokens(text: str) -> int:
    """Approximate token count: one token per four characters, rounded up."""
    return math.ceil(len(text) / 4)


def split_sentences(text: str) -> list[Sentence]:
    """Split *text* into sentences with ``[start, end)`` offsets into *text*."""
    sentences: list[Sentence] = []
    last = 0

    for match in _SENTENCE_END_RE.finditer(text):
        end = match.start() + 1
        candidate = text[last:end]
        words = candidate.split()
        if not words or words[-1] in ABBREVIATIONS:
            continue
        lead = len(candidate) - len(candidate.lstrip())
        sentences.append(Sentence(candidate.strip(), last + lead, end))
        last = match.end()

    remainder = text[last:]
    if remainder.strip():
        lead = len(remainder) - len(remainder.lstrip())
        stripped = remainder.strip()
        start = last + lead
        sentences.append(Sentence(stripped, start, start + len(stripped)))

    return sentences


def render_table(table: ParsedTable) -> str:
    """Render a table as ``Table:`` + pipe-joined header and rows."""
    lines = ["Table:", " | ".join(table.headers)]
    lines.extend(" | ".join(row) for row in table.rows)
    return "\n".join(lines)


class SentenceChunker:
    """Packs sentences into token-budgeted chunks with sentence-level overlap.

    Parameters
    ----------
    chunk_size:
        Maximum estimated tokens per chunk (default 1000).
    chunk_overlap:
        Target estimated tokens carried over from the previous chunk
        (default 200, ``0`` disables overlap).
    """

    def __init__(self, chunk_size: int = 1000, chunk_overlap: int = 200) -> None:
        if chunk_size <= 0:
            raise ValueError(f"chunk_size must be positive, got {chunk_size}")
        if not 0 <= chunk_overlap <= chunk_size:
            raise ValueError(
                f"chunk_overlap must be between 0 and chunk_size, got {chunk_overlap}"
            )
        self._chunk_size = chunk_size
        self._chunk_overlap = chunk_overlap

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def chunk(
        self,
        text: str,
        tables: list[ParsedTable] | None = None,
        options: ProcessingOptions | None = None,
    ) -> list[ChunkDraft]:
        """Chunk *text* and append one chunk per table.

        Parameters
        ----------
        text:
            Normalized document text.
        tables:
            Tables to append as standalone chunks.
        options:
            Per-call override of ``chunk_size`` / ``chunk_overlap``.
        """
        chunk_size = options.chunk_size if options else self._chunk_size
        overlap = options.chunk_overlap if options else self._chunk_overlap

        drafts = self._pack(split_sentences(text or ""), chunk_size, overlap)
        text_count = len(drafts)

        for table in tables or []:
            if not table.headers and not table.rows:
                continue
            content = render_table(table)
            drafts.append(
                ChunkDraft(
                    content=content,
                    tokens=estimate_tokens(content),
                    chunk_type=ChunkType.TABLE,
                    start_index=None,
                    end_index=None,
                    extra=dict(table.metadata),
                )
            )

        logger.info(
            "chunking_complete",
            text_chunks=text_count,
            table_chunks=len(drafts) - text_count,
            chunk_size=chunk_size,
            chunk_overlap=overlap,
        )
        return drafts

    # ------------------------------------------------------------------
    # Packing
    # ------------------------------------------------------------------

    @staticmethod
    def _joined_length(sentences: list[Sentence]) -> int:
        if not sentences:
            return 0
        return sum(len(s.text) for s in sentences) + len(sentences) - 1

    def _pack(
        self,
        sentences: list[Sentence],
        chunk_size: int,
        overlap: int,
    ) -> list[ChunkDraft]:
        drafts: list[ChunkDraft] = []
        current: list[Sentence] = []
        current_len = 0

        for sentence in sentences:
            candidate_len = current_len + 1 + len(sentence.text) if current else len(sentence.text)

            if current and math.ceil(candidate_len / 4) > chunk_size:
                drafts.append(self._to_draft(current))
                current = self._overlap_seed(current, sentence, chunk_size, overlap)
                current_len = self._joined_length(current)
                candidate_len = (
                    current_len + 1 + len(sentence.text) if current else len(sentence.text)
                )

            current.append(sentence)
            current_len = candidate_len

        if current:
            drafts.append(self._to_draft(current))
        return drafts

    @staticmethod
    def _overlap_seed(
        closed: list[Sentence],
        incoming: Sentence,
        chunk_size: int,
        overlap: int,
    ) -> list[Sentence]:
        """Return tail sentences of *closed* to prefix the next chunk."""
        if overlap <= 0:
            return []

        seed: list[Sentence] = []
        tokens = 0
        for sentence in reversed(closed):
            if tokens >= overlap:
                break
            seed.insert(0, sentence)
            tokens += estimate_tokens(sentence.text)

        while seed:
            joined = sum(len(s.text) for s in seed) + len(seed) + len(incoming.text)
            if math.ceil(joined / 4) <= chunk_size:
                break
            seed.pop(0)
        return seed

    @staticmethod
    def _to_draft(sentences: list[Sentence]) -> ChunkDraft:
        content = " ".join(s.text for s in sentences)
        return ChunkDraft(
            content=content,
            tokens=estimate_tokens(content),
            chunk_type=ChunkType.TEXT,
            start_index=sentences[0].start,
            end_index=sentences[-1].end,
        )
