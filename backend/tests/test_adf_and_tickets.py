"""Tests for ADF rendering and the Jira ticket notification card."""

from __future__ import annotations

import unittest

from relay.schemas.jira_webhook import JiraIssue
from relay.services.adf import build_document, render
from relay.services.tickets import (
    CARD_FOOTER,
    DEFAULT_COLOR,
    TicketInfo,
    build_ticket_card,
    parse_issue,
    thread_name,
)


def _doc(*content: dict) -> dict:
    return {"type": "doc", "version": 1, "content": list(content)}


def _para(*content: dict) -> dict:
    return {"type": "paragraph", "content": list(content)}


def _text(text: str, *marks: dict) -> dict:
    node = {"type": "text", "text": text}
    if marks:
        node["marks"] = list(marks)
    return node


def _item(*content: dict) -> dict:
    return {"type": "listItem", "content": list(content)}


class AdfRenderTests(unittest.TestCase):
    def test_inline_marks(self) -> None:
        document = _doc(
            _para(
                _text("bold", {"type": "strong"}),
                _text(" "),
                _text("code", {"type": "code"}),
                _text(" "),
                _text("gone", {"type": "strike"}),
                _text(" "),
                _text("site", {"type": "link", "attrs": {"href": "https://example.com"}}),
            )
        )

        self.assertEqual(render(document), "**bold** `code` ~~gone~~ [site](https://example.com)")

    def test_paragraphs_headings_and_breaks(self) -> None:
        document = _doc(
            {"type": "heading", "attrs": {"level": 5}, "content": [_text("Deep heading")]},
            _para(_text("line one"), {"type": "hardBreak"}, _text("line two")),
            {"type": "rule"},
        )

        self.assertEqual(render(document), "### Deep heading\n\nline one\nline two\n\n---")

    def test_nested_bullet_list(self) -> None:
        document = _doc(
            {
                "type": "bulletList",
                "content": [
                    _item(_para(_text("one")), {"type": "bulletList", "content": [_item(_para(_text("nested")))]}),
                    _item(_para(_text("two"))),
                ],
            }
        )

        self.assertEqual(render(document), "- one\n  - nested\n- two")

    def test_ordered_list_respects_start(self) -> None:
        document = _doc(
            {
                "type": "orderedList",
                "attrs": {"order": 3},
                "content": [_item(_para(_text("third"))), _item(_para(_text("fourth")))],
            }
        )

        self.assertEqual(render(document), "3. third\n4. fourth")

    def test_code_block_and_quote(self) -> None:
        document = _doc(
            {"type": "codeBlock", "attrs": {"language": "python"}, "content": [_text("print(1)")]},
            {"type": "blockquote", "content": [_para(_text("quoted"))]},
        )

        self.assertEqual(render(document), "```python\nprint(1)\n```\n\n> quoted")

    def test_mentions_use_resolver_or_display_name(self) -> None:
        document = _doc(_para(_text("cc "), {"type": "mention", "attrs": {"id": "acc-9", "text": "@Bob"}}))
        seen: list[tuple] = []

        def resolver(account_id, display_name):  # noqa: ANN001
            seen.append((account_id, display_name))
            return "<@555>"

        self.assertEqual(render(document), "cc @Bob")
        self.assertEqual(render(document, resolver), "cc <@555>")
        self.assertEqual(seen, [("acc-9", "Bob")])

    def test_unknown_nodes_render_their_children(self) -> None:
        document = _doc({"type": "panel", "content": [_para(_text("inside"))]}, "not-a-node")

        self.assertEqual(render(document), "inside\n\n")

    def test_build_document_drops_empty_text(self) -> None:
        document = build_document([[_text("hello"), _text("")], []])

        self.assertEqual(
            document,
            {
                "type": "doc",
                "version": 1,
                "content": [
                    {"type": "paragraph", "content": [_text("hello")]},
                    {"type": "paragraph"},
                ],
            },
        )


class TicketCardTests(unittest.TestCase):
    def _issue(self, **fields) -> JiraIssue:  # noqa: ANN003
        return JiraIssue.model_validate({"id": 10001, "key": "PROJ-7", "fields": {"summary": "Login broken", **fields}})

    def test_parse_issue_reads_fields(self) -> None:
        issue = self._issue(
            issuetype={"name": "Bug"},
            priority={"name": "High"},
            status={"name": "In Progress"},
            assignee={"accountId": "acc-1", "displayName": "Alice"},
            description=_doc(_para(_text("Steps", {"type": "strong"}))),
        )

        ticket = parse_issue(issue, "https://acme.atlassian.net/")

        self.assertEqual(ticket.key, "PROJ-7")
        self.assertEqual(ticket.type, "Bug")
        self.assertEqual(ticket.priority, "High")
        self.assertEqual(ticket.status, "In Progress")
        self.assertEqual(ticket.assignee, "Alice")
        self.assertEqual(ticket.description, "**Steps**")
        self.assertEqual(ticket.url, "https://acme.atlassian.net/browse/PROJ-7")
        self.assertEqual(issue.id, "10001")

    def test_card_layout_and_colour(self) -> None:
        card = build_ticket_card(parse_issue(self._issue(issuetype={"name": "Bug"}, priority={"name": "High"}), "https://acme"))

        self.assertEqual(card.title, "🐛 [PROJ-7] Login broken")
        self.assertEqual(card.color, 0xFF6B6B)
        self.assertEqual(card.url, "https://acme/browse/PROJ-7")
        self.assertEqual(card.footer, CARD_FOOTER)
        self.assertEqual([f.name for f in card.fields], ["Type", "Assignee", "Priority", "Status"])
        self.assertEqual(card.fields[1].value, "Unassigned")
        self.assertTrue(all(f.inline for f in card.fields))

    def test_missing_fields_use_defaults(self) -> None:
        ticket = parse_issue(self._issue(), "https://acme")
        card = build_ticket_card(ticket)

        self.assertEqual((ticket.type, ticket.priority, ticket.status), ("Task", "Medium", "To Do"))
        self.assertTrue(card.title.startswith("📋 "))
        self.assertEqual(card.color, 0xFFA500)

    def test_unknown_type_and_priority(self) -> None:
        card = build_ticket_card(
            parse_issue(self._issue(issuetype={"name": "Incident"}, priority={"name": "Blocker"}), "https://acme")
        )

        self.assertTrue(card.title.startswith("🎫 "))
        self.assertEqual(card.color, DEFAULT_COLOR)

    def test_long_descriptions_are_truncated(self) -> None:
        self.assertEqual(len(parse_issue(self._issue(description="x" * 5000), "https://acme").description), 1000)

        ticket = TicketInfo(
            key="PROJ-7",
            summary="s",
            type="Task",
            assignee=None,
            priority="Low",
            status="Done",
            description="y" * 1500,
            url="https://acme/browse/PROJ-7",
        )
        description = build_ticket_card(ticket).fields[-1]

        self.assertEqual(description.name, "Description")
        self.assertFalse(description.inline)
        self.assertEqual(len(description.value), 1024)
        self.assertTrue(description.value.endswith("..."))

    def test_thread_name_is_capped(self) -> None:
        ticket = parse_issue(self._issue(summary="z" * 300), "https://acme")

        name = thread_name(ticket)

        self.assertEqual(len(name), 100)
        self.assertTrue(name.startswith("[PROJ-7] zzz"))


if __name__ == "__main__":
    unittest.main()
