"""Atlassian Document Format (ADF) conversion.

``render`` turns a Jira rich-text document into Discord markdown;
``build_document`` wraps inline nodes into a minimal ADF ``doc``.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from typing import Any

MentionResolver = Callable[[str | None, str | None], str]
"""Maps ``(account_id, display_name)`` to the text rendered for a mention."""


def _default_mention(_account_id: str | None, display_name: str | None) -> str:
    return f"@{display_name or 'user'}"


def render(document: Any, resolve_mention: MentionResolver | None = None) -> str:
    """Render an ADF node (usually a ``doc``) as Discord markdown."""

    return _render_node(document, resolve_mention or _default_mention, 0)


def _render_node(node: Any, resolve_mention: MentionResolver, list_depth: int) -> str:
    if not isinstance(node, dict):
        return ""

    node_type = node.get("type")
    if node_type == "text":
        return _apply_marks(str(node.get("text", "")), node.get("marks") or [])

    content = node.get("content") or []
    attrs = node.get("attrs") or {}

    def children(depth: int = list_depth) -> list[str]:
        return [_render_node(child, resolve_mention, depth) for child in content]

    if node_type == "doc":
        return "\n\n".join(children())
    if node_type == "paragraph":
        return "".join(children())
    if node_type == "heading":
        level = attrs.get("level") or 1
        # Discord only renders up to ###.
        return f"{'#' * min(int(level), 3)} {''.join(children())}"
    if node_type == "bulletList":
        return "\n".join(children())
    if node_type == "orderedList":
        start = int(attrs.get("order") or 1)
        items = []
        for index, item in enumerate(children()):
            indent = "  " * list_depth
            prefix = f"{indent}- "
            if item.startswith(prefix):
                item = f"{indent}{start + index}. {item[len(prefix):]}"
            items.append(item)
        return "\n".join(items)
    if node_type == "listItem":
        parts = []
        for child in content:
            rendered = _render_node(child, resolve_mention, list_depth + 1)
            if isinstance(child, dict) and child.get("type") in {"bulletList", "orderedList"}:
                rendered = "\n" + rendered
            parts.append(rendered)
        return f"{'  ' * list_depth}- {''.join(parts)}"
    if node_type == "codeBlock":
        language = attrs.get("language") or ""
        return f"```{language}\n{''.join(children())}\n```"
    if node_type == "blockquote":
        body = "\n".join(children())
        return "\n".join(f"> {line}" for line in body.split("\n"))
    if node_type == "rule":
        return "---"
    if node_type == "hardBreak":
        return "\n"
    if node_type == "mention":
        display = str(attrs.get("text") or "").lstrip("@") or None
        return resolve_mention(attrs.get("id"), display)
    if node_type == "emoji":
        return str(attrs.get("text") or attrs.get("shortName") or "")
    if node_type == "inlineCard":
        return str(attrs.get("url") or "")
    return "".join(children())


def _apply_marks(text: str, marks: Iterable[dict[str, Any]]) -> str:
    for mark in marks:
        mark_type = mark.get("type")
        if mark_type == "strong":
            text = f"**{text}**"
        elif mark_type == "em":
            text = f"*{text}*"
        elif mark_type == "code":
            text = f"`{text}`"
        elif mark_type == "strike":
            text = f"~~{text}~~"
        elif mark_type == "underline":
            text = f"__{text}__"
        elif mark_type == "link":
            href = (mark.get("attrs") or {}).get("href")
            if href:
                text = f"[{text}]({href})"
    return text


def text_node(text: str) -> dict[str, Any]:
    return {"type": "text", "text": text}


def mention_node(account_id: str, display_name: str) -> dict[str, Any]:
    return {"type": "mention", "attrs": {"id": account_id, "text": f"@{display_name}"}}


def build_document(paragraphs: Iterable[list[dict[str, Any]]]) -> dict[str, Any]:
    """Wrap lists of inline nodes into an ADF ``doc`` with one paragraph each."""

    content = []
    for inline_nodes in paragraphs:
        nodes = [node for node in inline_nodes if node.get("type") != "text" or node.get("text")]
        content.append({"type": "paragraph", "content": nodes} if nodes else {"type": "paragraph"})
    return {"type": "doc", "version": 1, "content": content}
