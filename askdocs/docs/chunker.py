"""Document chunker - deterministic, format-aware text splitting."""

import re
from pathlib import PurePosixPath
from typing import Literal

Strategy = Literal["prose", "code", "tabular"]

CODE_EXTENSIONS = frozenset(
    {
        "py", "js", "ts", "jsx", "tsx", "java", "c", "cpp", "h", "hpp", "cs", "go", "rs",
        "rb", "php", "swift", "kt", "scala", "sh", "sql", "html", "css", "json", "xml",
        "yaml", "yml", "toml",
    }
)  # fmt: skip
TABULAR_EXTENSIONS = frozenset({"csv", "tsv", "xls", "xlsx"})

_PARAGRAPH_BREAK = re.compile(r"\n\s*\n")
_SENTENCE_END = re.compile(r"(?<=[.!?])\s+")
_BLOCK_START = re.compile(
    r"^(?:(?:async|export|public|private|protected|static|pub)\s+)*"
    r"(?:def|class|function|func|fn|impl|struct|interface|enum|module|package|create|select)\b",
    re.IGNORECASE,
)


def detect_strategy(filename: str) -> Strategy:
    """Pick a chunking strategy from the filename extension."""
    suffix = PurePosixPath(filename.lower()).suffix.lstrip(".")
    if suffix in CODE_EXTENSIONS:
        return "code"
    if suffix in TABULAR_EXTENSIONS:
        return "tabular"
    return "prose"


def chunk_document(
    text: str,
    filename: str = "",
    *,
    max_chars: int = 1000,
    overlap_chars: int = 200,
    min_chars: int = 20,
) -> list[str]:
    """Chunk document text into ordered, overlapping segments.

    Pure function with no I/O or randomness. The list index of each chunk is
    its ordinal within the document.

    Args:
        text: Raw document text to chunk
        filename: Source filename, used only to pick the strategy
        max_chars: Target characters per chunk (default 1000)
        overlap_chars: Characters carried over from the previous chunk (default 200)
        min_chars: Chunks shorter than this are discarded (default 20)

    Returns:
        Chunk texts in document order. Every chunk satisfies
        min_chars <= len(chunk) <= max_chars + overlap_chars.

    Strategy:
        - prose: pack sentences, paragraph breaks kept; overlap is the
          trailing words of the previous chunk
        - code: pack lines, breaking at block boundaries once half full;
          overlap is up to overlap_chars // 50 trailing lines
        - tabular: pack rows under a repeated header; overlap is one row
    """
    if not text or not text.strip():
        return []

    # Normalize line endings
    normalized = text.replace("\r\n", "\n").replace("\r", "\n")

    strategy = detect_strategy(filename)
    if strategy == "code":
        chunks = _chunk_code(normalized, max_chars, overlap_chars)
    elif strategy == "tabular":
        chunks = _chunk_tabular(normalized, max_chars, overlap_chars)
    else:
        chunks = _chunk_prose(normalized, max_chars, overlap_chars)

    return [chunk for chunk in chunks if len(chunk) >= min_chars]


def _split_long(unit: str, limit: int) -> list[str]:
    """Split an oversized unit at whitespace, hard-splitting when there is none."""
    pieces: list[str] = []
    remaining = unit
    while len(remaining) > limit:
        window = remaining[: limit + 1]
        cut = max(window.rfind(" "), window.rfind("\t"), window.rfind("\n"))
        if cut <= 0:
            cut = limit
        piece = remaining[:cut].rstrip()
        if piece:
            pieces.append(piece)
        remaining = remaining[cut:].lstrip()
    if remaining:
        pieces.append(remaining)
    return pieces


def _tail_words(text: str, limit: int) -> str:
    """Trailing whole words of `text` whose joined length fits in `limit`."""
    if limit <= 0:
        return ""
    kept: list[str] = []
    length = 0
    for word in reversed(text.split()):
        added = len(word) + (1 if kept else 0)
        if length + added > limit:
            break
        kept.append(word)
        length += added
    return " ".join(reversed(kept))


def _chunk_prose(text: str, max_chars: int, overlap_chars: int) -> list[str]:
    # (unit, starts_paragraph)
    units: list[tuple[str, bool]] = []
    for paragraph in _PARAGRAPH_BREAK.split(text):
        paragraph = paragraph.strip()
        if not paragraph:
            continue
        first = True
        for sentence in _SENTENCE_END.split(paragraph):
            sentence = " ".join(sentence.split())
            if not sentence:
                continue
            for piece in _split_long(sentence, max_chars):
                units.append((piece, first))
                first = False

    chunks: list[str] = []
    current = ""
    has_new = False

    for unit, starts_paragraph in units:
        separator = "\n\n" if starts_paragraph else " "
        if has_new and len(current) + len(separator) + len(unit) > max_chars:
            chunks.append(current)
            budget = min(overlap_chars, max_chars + overlap_chars - len(unit) - 1)
            current = _tail_words(current, budget)
            has_new = False
            separator = " "
        current = f"{current}{separator}{unit}" if current else unit
        has_new = True

    if has_new:
        chunks.append(current)

    return chunks


def _overlap_lines(lines: list[str], max_lines: int, limit: int) -> list[str]:
    kept: list[str] = []
    length = 0
    for line in reversed(lines):
        if len(kept) >= max_lines:
            break
        added = len(line) + (1 if kept else 0)
        if length + added > limit:
            break
        kept.append(line)
        length += added
    kept.reverse()
    # Drop leading blank lines from the carried-over context
    while kept and not kept[0].strip():
        kept.pop(0)
    return kept


def _chunk_code(text: str, max_chars: int, overlap_chars: int) -> list[str]:
    max_overlap_lines = overlap_chars // 50

    lines: list[str] = []
    for raw in text.split("\n"):
        line = raw.rstrip()
        if len(line) > max_chars:
            lines.extend(_split_long(line, max_chars))
        else:
            lines.append(line)

    chunks: list[str] = []
    current: list[str] = []
    current_len = 0
    has_new = False

    def flush(next_line: str) -> None:
        nonlocal current, current_len, has_new
        body = "\n".join(current).strip("\n")
        if body:
            chunks.append(body)
        budget = min(overlap_chars, max_chars + overlap_chars - len(next_line) - 1)
        current = _overlap_lines(current, max_overlap_lines, budget)
        current_len = len("\n".join(current))
        has_new = False

    for line in lines:
        added = len(line) + (1 if current else 0)
        is_boundary = not line.strip() or bool(_BLOCK_START.match(line))
        if has_new and (
            current_len + added > max_chars
            or (is_boundary and current_len >= max_chars // 2)
        ):
            flush(line)
            added = len(line) + (1 if current else 0)
        if not current and not line.strip():
            continue
        current.append(line)
        current_len += added
        if line.strip():
            has_new = True

    if has_new:
        body = "\n".join(current).strip("\n")
        if body:
            chunks.append(body)

    return chunks


def _chunk_tabular(text: str, max_chars: int, overlap_chars: int) -> list[str]:
    rows = [line.rstrip() for line in text.split("\n") if line.strip()]
    if len(rows) < 2:
        return []

    header, body = rows[0], rows[1:]
    budget = max_chars - len(header) - 1
    if budget < max_chars // 4:
        # Header too wide to repeat; treat as free text
        return _chunk_prose(text, max_chars, overlap_chars)

    pieces: list[str] = []
    for row in body:
        pieces.extend(_split_long(row, budget) if len(row) > budget else [row])

    chunks: list[str] = []
    current: list[str] = []
    current_len = len(header)
    has_new = False

    for row in pieces:
        if has_new and current_len + 1 + len(row) > max_chars:
            chunks.append("\n".join([header, *current]))
            carried = current[-1]
            current = []
            current_len = len(header)
            if (
                len(carried) <= overlap_chars
                and current_len + len(carried) + len(row) + 2 <= max_chars + overlap_chars
            ):
                current.append(carried)
                current_len += len(carried) + 1
            has_new = False
        current.append(row)
        current_len += len(row) + 1
        has_new = True

    if has_new:
        chunks.append("\n".join([header, *current]))

    return chunks
