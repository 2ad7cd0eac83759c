"""
Front Matter and Section Parser.

Documents handled here have the shape:

    ---
    key: value
    list_key:
      - item
    ---
    # Title
    preamble text

    ## Section Name
    section body

The header block is optional. Inside it every line is either a `key: value`
pair or a continuation line (indented or starting with `-`) belonging to the
previous key. After the header, lines beginning with `## ` open a named
section; headings inside fenced code blocks are ignored. `serialize` is the
exact inverse of `parse` for documents this module produced.
"""

from dataclasses import dataclass, field
from typing import Optional

DELIMITER = "---"
SECTION_PREFIX = "## "
FENCE = "```"


class FrontMatterError(Exception):
    """Raised for a malformed header block."""

    def __init__(self, message: str, line: int | None = None) -> None:
        super().__init__(f"{message} (line {line})" if line is not None else message)
        self.line = line


@dataclass
class Section:
    """A `##` section: its title and raw body text."""

    title: str
    body: str = ""


@dataclass
class MarkdownDocument:
    """A parsed document.

    Attributes:
        front_matter: Header fields in file order, or None without a header
        preamble: Text between the header and the first section
        sections: Named sections in file order
    """

    front_matter: Optional[dict[str, str]] = None
    preamble: str = ""
    sections: list[Section] = field(default_factory=list)

    def get(self, key: str) -> str | None:
        """Get a header field value."""
        if self.front_matter is None:
            return None
        return self.front_matter.get(key)

    def set(self, key: str, value: str) -> None:
        """Set a header field, creating the header if needed."""
        if "\n" in value and not value.startswith("\n"):
            raise ValueError(f"Multi-line value for {key!r} must start with a newline")
        if self.front_matter is None:
            self.front_matter = {}
        self.front_matter[key] = value

    def section(self, title: str) -> str | None:
        """Get the body of the first section with a title (case-insensitive)."""
        wanted = title.strip().lower()
        for section in self.sections:
            if section.title.lower() == wanted:
                return section.body
        return None

    @property
    def body(self) -> str:
        """Everything after the header block."""
        parts = [self.preamble]
        for section in self.sections:
            parts.append(f"{SECTION_PREFIX}{section.title}\n{section.body}")
        return "".join(parts)


def parse(text: str, require_front_matter: bool = False) -> MarkdownDocument:
    """Parse a document.

    Args:
        text: Document text
        require_front_matter: Raise if the document has no header block

    Returns:
        Parsed MarkdownDocument

    Raises:
        FrontMatterError: On an unterminated header, a line that is neither a
            pair nor a continuation, an empty or duplicate key, or a missing
            header when one is required
    """
    lines = text.splitlines(keepends=True)
    front_matter: Optional[dict[str, str]] = None
    index = 0

    if lines and lines[0].rstrip("\r\n") == DELIMITER:
        front_matter, index = _parse_header(lines)
    elif require_front_matter:
        raise FrontMatterError("Document has no front matter", line=1)

    preamble: list[str] = []
    sections: list[Section] = []
    body: list[str] = []
    in_fence = False

    for line in lines[index:]:
        if line.lstrip().startswith(FENCE):
            in_fence = not in_fence
        if not in_fence and line.startswith(SECTION_PREFIX):
            if sections:
                sections[-1].body = "".join(body)
            body = []
            sections.append(Section(title=line[len(SECTION_PREFIX):].strip()))
            continue
        (body if sections else preamble).append(line)

    if sections:
        sections[-1].body = "".join(body)

    return MarkdownDocument(front_matter=front_matter, preamble="".join(preamble), sections=sections)


def _parse_header(lines: list[str]) -> tuple[dict[str, str], int]:
    fields: dict[str, str] = {}
    current: str | None = None

    for number, raw in enumerate(lines[1:], start=2):
        line = raw.rstrip("\r\n")
        if line == DELIMITER:
            return fields, number
        if not line.strip():
            continue
        if current is not None and (line[0] in " \t" or line.startswith("-")):
            fields[current] += "\n" + line
            continue
        key, sep, value = line.partition(":")
        key = key.strip()
        if not sep:
            raise FrontMatterError(f"Expected 'key: value', got {line!r}", line=number)
        if not key or " " in key:
            raise FrontMatterError(f"Invalid key in {line!r}", line=number)
        if key in fields:
            raise FrontMatterError(f"Duplicate key {key!r}", line=number)
        fields[key] = value.strip()
        current = key

    raise FrontMatterError("Unterminated front matter", line=len(lines))


def serialize(document: MarkdownDocument) -> str:
    """Render a document back to text."""
    parts: list[str] = []
    if document.front_matter is not None:
        parts.append(f"{DELIMITER}\n")
        for key, value in document.front_matter.items():
            if not value:
                parts.append(f"{key}:\n")
            elif value.startswith("\n"):
                parts.append(f"{key}:{value}\n")
            else:
                parts.append(f"{key}: {value}\n")
        parts.append(f"{DELIMITER}\n")
    parts.append(document.body)
    return "".join(parts)


def extract_summary(text: str, max_words: int = 200) -> str | None:
    """Summarize a document from its Overview section.

    Falls back to the first non-heading paragraph. Summaries longer than
    max_words are cut and, when possible, end on a full sentence.

    Raises:
        FrontMatterError: If the document header is malformed
    """
    document = parse(text)
    overview = document.section("Overview")
    source = overview if overview and overview.strip() else _first_paragraph(document.body)
    if not source:
        return None

    words = source.split()
    if len(words) <= max_words:
        return " ".join(words)

    truncated = " ".join(words[:max_words])
    end = max(truncated.rfind(". "), truncated.rfind("! "), truncated.rfind("? "))
    if truncated[-1] in ".!?":
        return truncated
    if end > 0:
        return truncated[: end + 1]
    return truncated + "..."


def _first_paragraph(body: str) -> str | None:
    for block in body.split("\n\n"):
        block = block.strip()
        if block and not block.startswith("#"):
            return block
    return None
