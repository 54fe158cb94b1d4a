"""Section extraction and sliding-window chunking.

Sections are the unit of selection and are shown to the model verbatim.
Chunks are fixed-size overlapping windows used only for semantic similarity.
"""
from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from doccontext.config import settings
from doccontext.storage.models import Chunk, Document, Section
from doccontext.utils.exceptions import InvalidConfigurationError
from doccontext.utils.logger import logger
from doccontext.utils.utils import log_errors

PARAGRAPH_BREAK = re.compile(r"\n\s*\n")


@dataclass
class ExtractionResult:
    sections: List[Section] = field(default_factory=list)
    chunks: List[Chunk] = field(default_factory=list)


class SlidingWindowChunker:
    """Packs paragraphs into windows of ``window_tokens`` with a carried overlap.

    A paragraph longer than a window is hard-split with the same overlap.
    """

    def __init__(
        self,
        window_tokens: Optional[int] = None,
        overlap_percent: Optional[int] = None,
        chars_per_token: Optional[int] = None,
    ):
        self.window_tokens = window_tokens or settings.chunking.window_tokens
        self.overlap_percent = (
            overlap_percent if overlap_percent is not None else settings.chunking.overlap_percent
        )
        self.chars_per_token = chars_per_token or settings.chunking.chars_per_token

        if not 10 <= self.overlap_percent <= 25:
            raise InvalidConfigurationError(
                "chunking.overlap_percent", self.overlap_percent, "a value between 10 and 25"
            )

        self.window_chars = self.window_tokens * self.chars_per_token
        self.overlap_chars = self.window_chars * self.overlap_percent // 100

    def _tail(self, text: str) -> str:
        return text[-self.overlap_chars:].lstrip() if self.overlap_chars else ""

    def _hard_split(self, text: str) -> List[str]:
        step = self.window_chars - self.overlap_chars
        pieces = []
        start = 0
        while True:
            pieces.append(text[start:start + self.window_chars])
            if start + self.window_chars >= len(text):
                break
            start += step
        return pieces

    def chunk_text(self, text: str) -> List[str]:
        paragraphs = [p.strip() for p in PARAGRAPH_BREAK.split(text or "") if p.strip()]
        windows: List[str] = []
        current = ""
        has_new = False  # current holds more than the carried overlap

        for para in paragraphs:
            if len(para) > self.window_chars:
                if has_new:
                    windows.append(current)
                pieces = self._hard_split(para)
                windows.extend(pieces)
                current = self._tail(pieces[-1])
                has_new = False
                continue

            candidate = f"{current}\n\n{para}" if current else para
            if len(candidate) <= self.window_chars:
                current = candidate
                has_new = True
                continue

            if has_new:
                windows.append(current)
            tail = self._tail(current)
            candidate = f"{tail}\n\n{para}" if tail else para
            current = candidate if len(candidate) <= self.window_chars else para
            has_new = True

        if has_new and current:
            windows.append(current)
        return windows

    def chunk(self, document: Document, text: Optional[str] = None) -> List[Chunk]:
        windows = self.chunk_text(document.raw_text if text is None else text)
        return [
            Chunk(
                id=Chunk.make_id(document.id, i),
                document_id=document.id,
                document_name=document.name,
                chunk_index=i,
                content=window,
            )
            for i, window in enumerate(windows)
        ]


class SectionExtractor:
    """Turns a document into ordered sections and embedding chunks.

    Parser-provided sections win. Otherwise page markers split the text into
    one section per page, and a marker-free document becomes a single section.
    """

    def __init__(self, chunker: Optional[SlidingWindowChunker] = None, page_marker_pattern: Optional[str] = None):
        self.chunker = chunker or SlidingWindowChunker()
        self.page_marker = re.compile(page_marker_pattern or settings.chunking.page_marker_pattern)

    @staticmethod
    def _section_id(document_id: str, position: int) -> str:
        return f"{document_id}_section_{position}"

    def _from_parser(self, document: Document, sections: Sequence[Section]) -> List[Section]:
        kept = [s for s in sections if s.content and s.content.strip()]
        return [
            s.model_copy(update={"document_id": document.id, "position": i})
            for i, s in enumerate(kept)
        ]

    def _from_page_markers(self, document: Document) -> List[Section]:
        parts = self.page_marker.split(document.raw_text)
        if len(parts) < 3:
            return []

        out: List[Section] = []
        preamble = parts[0].strip()
        if preamble:
            out.append(Section(
                id=self._section_id(document.id, 0),
                document_id=document.id,
                title=document.name,
                content=preamble,
                page_number=None,
                position=0,
            ))

        for i in range(1, len(parts) - 1, 2):
            content = parts[i + 1].strip()
            if not content:
                continue
            page = int(parts[i])
            position = len(out)
            out.append(Section(
                id=self._section_id(document.id, position),
                document_id=document.id,
                title=f"Page {page}",
                content=content,
                page_number=page,
                position=position,
            ))
        return out

    def extract_sections(self, document: Document, sections: Optional[Sequence[Section]] = None) -> List[Section]:
        if document.is_empty:
            return []
        if sections:
            return self._from_parser(document, sections)

        paged = self._from_page_markers(document)
        if paged:
            return paged

        return [Section(
            id=self._section_id(document.id, 0),
            document_id=document.id,
            title=document.name,
            content=document.raw_text.strip(),
            page_number=1,
            position=0,
        )]

    @log_errors("Section extraction error")
    def extract(self, document: Document, sections: Optional[Sequence[Section]] = None) -> ExtractionResult:
        """Extract sections and chunks; an empty document yields neither."""
        if document.is_empty:
            logger.info(f"Document {document.id} has no text; nothing to extract")
            return ExtractionResult()

        extracted = self.extract_sections(document, sections)
        body = self.page_marker.sub("\n\n", document.raw_text)
        chunks = self.chunker.chunk(document, body)
        logger.debug(
            f"Extracted {len(extracted)} sections and {len(chunks)} chunks from {document.name}"
        )
        return ExtractionResult(sections=extracted, chunks=chunks)


__all__ = ["ExtractionResult", "SectionExtractor", "SlidingWindowChunker"]
