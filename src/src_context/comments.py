from __future__ import annotations

import re
from pathlib import PurePosixPath
from typing import TYPE_CHECKING

from src_context.config import HTML_COMMENT_EXEMPT_EXTENSIONS, file_extension, is_python_path
from src_context.exceptions import CommentStripError

if TYPE_CHECKING:
    from collections.abc import Iterable

_TRIPLE_QUOTES = ('"""', "'''")
_DIRECTIVE_RE = re.compile(r"//go:[A-Za-z]\w*")
# Quotes in prose and markup are apostrophes, not string delimiters, and `/*` is a glob.
_MARKUP_EXTENSIONS = frozenset({"html", "htm", "xhtml", "xml", "md", "markdown", "mdx", "txt", "rst"})
# `'` also starts lifetimes and labels.
_DOUBLE_QUOTE_ONLY_EXTENSIONS = frozenset({"rs"})
_ALL_QUOTES = "\"'`"


def _find_python_comment(line: str) -> int:
    """Index of the first `#` outside a single-line string literal, or -1."""
    in_single = False
    in_double = False
    escaped = False
    for j, ch in enumerate(line):
        if escaped:
            escaped = False
            continue
        if ch == "\\":
            escaped = True
            continue
        if ch == '"' and not in_single:
            in_double = not in_double
            continue
        if ch == "'" and not in_double:
            in_single = not in_single
            continue
        if ch == "#" and not in_single and not in_double:
            return j
    return -1


def strip_python_comments(source: str) -> str:
    """Remove `#` comments from Python source, line by line.

    Triple-quoted strings (both quote styles, including ones opening and closing on
    the same line) are copied verbatim, `#` characters included. Code lines keep
    their indentation; a line holding only a comment becomes empty.

    Args:
        source (str): Python source

    Returns:
        str: the source without `#` comments
    """
    out: list[str] = []
    open_quote: str | None = None
    for line in source.split("\n"):
        stripped = line.strip()
        if open_quote is not None:
            if open_quote in stripped:
                open_quote = None
            out.append(line)
            continue

        quote = next((q for q in _TRIPLE_QUOTES if q in stripped), None)
        if quote is not None:
            first = stripped.index(quote)
            if stripped.find(quote, first + 3) == -1:
                open_quote = quote
            out.append(line)
            continue

        idx = _find_python_comment(line)
        out.append(line if idx == -1 else line[:idx].rstrip())
    return "\n".join(out)


def _line_end(text: str, start: int) -> int:
    end = text.find("\n", start)
    return len(text) if end == -1 else end


def _line_start(text: str, pos: int) -> int:
    return text.rfind("\n", 0, pos) + 1


def _skip_string(text: str, i: int) -> int:
    """Return the index just past the string literal opening at `i`.

    Single and double quoted strings end at the line break when left open; template
    literals may span lines.
    """
    quote = text[i]
    n = len(text)
    j = i + 1
    while j < n:
        ch = text[j]
        if ch == "\\":
            j += 2
            continue
        if ch == quote:
            return j + 1
        if ch == "\n" and quote != "`":
            return j
        j += 1
    return n


def _skip_code_span(text: str, i: int) -> int:
    """Return the index just past the Markdown code span or fence opening at `i`.

    The span closes at the next run of the same number of backticks; an unclosed run
    is plain text.
    """
    j = i
    while j < len(text) and text[j] == "`":
        j += 1
    fence = text[i:j]
    end = text.find(fence, j)
    return j if end == -1 else end + len(fence)


def strip_comments(
    text: str,
    *,
    strip_html: bool = True,
    quotes: str = _ALL_QUOTES,
    block_comments: bool = True,
    code_spans: bool = False,
    path: str = "<string>",
) -> str:
    """Remove C-style and (optionally) HTML comments, keeping line structure.

    - `/* ... */` blocks are dropped, their newlines are kept, unless `block_comments`
      is false.
    - `// ...` runs to end of line are dropped, the newline is kept.
    - Protected comments (`/*! ... */`, `//! ...`) survive.
    - `//go:<directive>` lines survive.
    - `//` preceded by `:` (URLs) and comment markers inside string literals are code.
    - `<!-- ... -->` blocks are dropped when `strip_html` is true.

    Args:
        text (str): file content
        strip_html (bool): also strip HTML comments
        quotes (str): characters that open string literals
        block_comments (bool): strip `/* ... */` blocks
        code_spans (bool): keep backtick code spans and fences untouched
        path (str): used in error messages only

    Raises:
        CommentStripError: on an unterminated block or HTML comment

    Returns:
        str: the content without comments
    """
    out: list[str] = []
    n = len(text)
    i = 0
    copy_from = 0
    while i < n:
        ch = text[i]
        if code_spans and ch == "`":
            i = _skip_code_span(text, i)
            continue
        if ch in quotes:
            i = _skip_string(text, i)
            continue
        if strip_html and text.startswith("<!--", i):
            end = text.find("-->", i + 4)
            if end == -1:
                raise CommentStripError(path=path, reason=f"unterminated HTML comment at offset {i}")
            out.append(text[copy_from:i])
            out.append("\n" * text.count("\n", i, end))
            i = copy_from = end + 3
            continue
        if block_comments and text.startswith("/*", i):
            end = text.find("*/", i + 2)
            if end == -1:
                raise CommentStripError(path=path, reason=f"unterminated block comment at offset {i}")
            if text.startswith("/*!", i):
                i = end + 2
                continue
            out.append(text[copy_from:i])
            out.append("\n" * text.count("\n", i, end))
            i = copy_from = end + 2
            continue
        if text.startswith("//", i):
            eol = _line_end(text, i)
            is_url = i > 0 and text[i - 1] == ":"
            is_protected = text.startswith("//!", i)
            is_directive = bool(_DIRECTIVE_RE.match(text, i)) and not text[_line_start(text, i) : i].strip()
            if not (is_url or is_protected or is_directive):
                out.append(text[copy_from:i])
                copy_from = eol
            i = eol if not is_url else i + 2
            continue
        i += 1
    out.append(text[copy_from:])
    return "".join(out)


class CommentStripper:
    """Comment-stripping policy for one run.

    Python files get the line-oriented `#` stripper; every other type goes through
    `strip_comments`, with HTML comments kept for the exempt extensions (Markdown by
    default). Markup files keep backtick code spans and any `/*`, as do suffix-less
    dotfiles; Rust only treats `"` as a string delimiter.
    """

    def __init__(self, html_comment_exempt_extensions: Iterable[str] = HTML_COMMENT_EXEMPT_EXTENSIONS) -> None:
        self.html_comment_exempt_extensions = frozenset(e.lower().lstrip(".") for e in html_comment_exempt_extensions)

    def strips_html(self, path: str) -> bool:
        return file_extension(path) not in self.html_comment_exempt_extensions

    def strip(self, path: str, text: str) -> str:
        if is_python_path(path):
            return strip_python_comments(text)
        ext = file_extension(path)
        is_markup = ext in _MARKUP_EXTENSIONS
        # .gitignore, .dockerignore and friends hold globs like `dist/*`.
        is_dotfile = not ext and PurePosixPath(path).name.startswith(".")
        if is_markup:
            quotes = ""
        elif ext in _DOUBLE_QUOTE_ONLY_EXTENSIONS:
            quotes = '"'
        else:
            quotes = _ALL_QUOTES
        return strip_comments(
            text,
            strip_html=self.strips_html(path),
            quotes=quotes,
            block_comments=not (is_markup or is_dotfile),
            code_spans=is_markup,
            path=path,
        )
