"""Markdown parsing for heading-based splitting.

Handles:
- YAML frontmatter (stripped from the body, selected fields kept as metadata)
- Headings outside fenced code blocks
- Sections carrying a breadcrumb of their parent headings
"""
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Tuple

import structlog
import yaml

logger = structlog.get_logger()

# Frontmatter keys copied into every chunk payload
FRONTMATTER_FIELDS = ("title", "tags", "created", "updated", "author")

FRONTMATTER_RE = re.compile(r"\A---[ \t]*\n(.*?)\n---[ \t]*(?:\n|\Z)", re.DOTALL)
HEADING_RE = re.compile(r"^(#{1,6})[ \t]+(.+?)(?:[ \t]+#+)?[ \t]*$", re.MULTILINE)
FENCE_RE = re.compile(r"^(```|~~~).*?^\1", re.DOTALL | re.MULTILINE)


@dataclass
class Heading:
    level: int
    text: str
    offset: int

    def render(self) -> str:
        return f"{'#' * self.level} {self.text}"


@dataclass
class MarkdownDocument:
    """A markdown file split into frontmatter and body."""

    source: str
    body: str
    frontmatter: Dict[str, Any] = field(default_factory=dict)
    headings: List[Heading] = field(default_factory=list)


@dataclass
class Section:
    """A heading and the text under it, up to the next heading."""

    text: str
    heading_context: str
    char_start: int
    char_end: int


def split_frontmatter(content: str, source: str = "") -> Tuple[Dict[str, Any], str]:
    """Return (frontmatter, body). Unparseable frontmatter counts as none."""
    match = FRONTMATTER_RE.match(content)
    if not match:
        return {}, content

    try:
        data = yaml.safe_load(match.group(1))
    except yaml.YAMLError as e:
        logger.warning("frontmatter_parse_error", source=source, error=str(e))
        data = None

    return (data if isinstance(data, dict) else {}), content[match.end() :]


def find_headings(body: str) -> List[Heading]:
    """Headings in document order, ignoring '#' lines inside code fences."""
    fences = [m.span() for m in FENCE_RE.finditer(body)]

    return [
        Heading(level=len(m.group(1)), text=m.group(2).strip(), offset=m.start())
        for m in HEADING_RE.finditer(body)
        if not any(start <= m.start() < end for start, end in fences)
    ]


class MarkdownParser:
    """Parses markdown documents and cuts them at their headings."""

    def parse(self, content: str, source: str = "") -> MarkdownDocument:
        frontmatter, body = split_frontmatter(content, source)
        headings = find_headings(body)

        logger.debug(
            "markdown_parsed",
            source=source,
            has_frontmatter=bool(frontmatter),
            heading_count=len(headings),
        )
        return MarkdownDocument(source=source, body=body, frontmatter=frontmatter, headings=headings)

    def split_sections(self, doc: MarkdownDocument) -> List[Section]:
        """One section per heading, plus any text before the first heading.

        A section's breadcrumb lists the heading itself and every shallower
        heading it sits under, e.g. "# Setup > ## Linux". Whitespace-only
        sections are dropped.
        """
        cuts = [h.offset for h in doc.headings]
        starts_with_heading = bool(cuts) and cuts[0] == 0
        if not starts_with_heading:
            cuts.insert(0, 0)
        cuts.append(len(doc.body))

        headings = iter(doc.headings)
        trail: List[Heading] = []
        sections = []

        for index, (start, end) in enumerate(zip(cuts, cuts[1:])):
            if index > 0 or starts_with_heading:
                heading = next(headings)
                while trail and trail[-1].level >= heading.level:
                    trail.pop()
                trail.append(heading)

            text = doc.body[start:end].strip()
            if text:
                context = " > ".join(h.render() for h in trail)
                sections.append(Section(text, context, start, end))

        return sections

    def get_document_metadata(self, doc: MarkdownDocument) -> Dict[str, Any]:
        """Frontmatter fields for chunk payloads; the title defaults to the first heading."""
        metadata: Dict[str, Any] = {}

        for key in FRONTMATTER_FIELDS:
            if key not in doc.frontmatter:
                continue
            value = doc.frontmatter[key]
            # YAML turns bare dates into date objects
            metadata[key] = value.isoformat() if hasattr(value, "isoformat") else value

        if "title" not in metadata and doc.headings:
            metadata["title"] = doc.headings[0].text

        return metadata
