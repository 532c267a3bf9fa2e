from __future__ import annotations

import io
from typing import TYPE_CHECKING, Any

from src_context.config import file_extension

if TYPE_CHECKING:
    from collections.abc import Sequence

    from src_context.config import BuildStats, FileTokenStat, ProcessedFile

ROOT_MARKER = "./"


def format_file_content(path: str, content: str, *, placeholder: bool = False) -> str:
    """Format one file as a Markdown block.

    Args:
        path (str): the candidate path, used in the `# <path>` header
        content (str): file content, or a bracketed placeholder sentence
        placeholder (bool): placeholders go right under the header, without a fence

    Returns:
        str: the formatted block
    """
    if placeholder:
        return f"# {path}\n\n{content}"
    return f"# {path}\n\n```{file_extension(path)}\n{content}\n```"


def _is_git(path: str) -> bool:
    return "/.git/" in f"/{path}" or path.endswith(".git")


def build_tree_lines(rel_paths: Sequence[str], root_name: str = ROOT_MARKER) -> list[str]:
    """Build a visual tree representation of file paths.

    Args:
        rel_paths (Sequence[str]): file paths using POSIX separators (e.g. "src/main.py")
        root_name (str): the first line of the tree

    Returns:
        list[str]: a list of strings representing the tree structure, suitable for printing
    """
    tree: dict[str, Any] = {}
    for rp in rel_paths:
        rp = rp.replace("\\", "/").strip("/")  # noqa: PLW2901
        if not rp or _is_git(rp):
            continue
        cur = tree
        for part in rp.split("/"):
            if part in {"", "."}:
                continue
            cur = cur.setdefault(part, {})

    lines: list[str] = [root_name]

    def walk(node: dict[str, Any], prefix: str) -> None:
        names = sorted(node)
        for idx, name in enumerate(names):
            child = node[name]
            last = idx == len(names) - 1
            branch = "└── " if last else "├── "
            lines.append(prefix + branch + name + ("/" if child else ""))
            if child:
                walk(child, prefix + ("    " if last else "│   "))

    walk(tree, "")
    return lines


def generate_structure_tree(rel_paths: Sequence[str]) -> str:
    return "\n".join(build_tree_lines(rel_paths))


def build_context(files: Sequence[ProcessedFile]) -> str:
    """Render the final artifact: the tree, a blank line, then every file block by path."""
    ordered = sorted(files, key=lambda f: f.path)
    tree = generate_structure_tree([f.path for f in ordered])
    return "\n\n".join([tree, *(f.content for f in ordered)])


def build_summary_report(stats: BuildStats) -> str:
    """Render run statistics as a human-readable multi-line report."""
    out = io.StringIO()
    out.write("Context build summary\n")
    out.write(f"  Files found:          {stats.total_files_found}\n")
    out.write(f"  Files included:       {stats.files_to_include}\n")
    out.write(f"  Files minified:       {stats.files_to_minify}\n")
    out.write(
        f"  Files ignored:        {stats.files_ignored}"
        f" (default: {stats.files_ignored_by_default},"
        f" custom: {stats.files_ignored_by_custom},"
        f" cli: {stats.files_ignored_by_cli})\n",
    )
    out.write(f"  Binary/SVG files:     {stats.binary_and_svg_files}\n")
    out.write(f"  Skipped (too large):  {stats.skipped_large_files}\n")
    out.write(f"  Total tokens:         {stats.total_token_count}\n")
    out.write(f"  Total size:           {stats.total_file_size_kb:.2f}KB\n")
    if stats.top_token_consumers:
        out.write("  Top token consumers:\n")
        for i, consumer in enumerate(stats.top_token_consumers, start=1):
            out.write(f"    {i}. {consumer.path} ({consumer.token_count} tokens)\n")
    return out.getvalue().rstrip("\n")


def build_token_table(files: Sequence[FileTokenStat]) -> str:
    """Two-column path/token table for `--show-tokens`."""
    if not files:
        return "No files to include."
    width = max(len("Path"), *(len(f.path) for f in files))
    rows = [f"{'Path':<{width}}  Tokens", f"{'-' * width}  ------"]
    rows.extend(f"{f.path:<{width}}  {f.token_count}" for f in files)
    rows.append(f"{'Total':<{width}}  {sum(f.token_count for f in files)}")
    return "\n".join(rows)
