"""Tests for mirroring Jira webhook events into Discord."""

from __future__ import annotations

import unittest
from typing import Any

from sqlalchemy import create_engine, delete
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from relay.models.base import Base
from relay.models.comment_message_mapping import CommentMessageMapping
from relay.models.thread_ticket_mapping import ThreadTicketMapping
from relay.models.user_mapping import UserMapping
from relay.schemas.jira_webhook import JiraWebhookPayload
from relay.services import identity_store
from relay.services.discord_client import ChatNotFoundError, ChatPermissionError
from relay.services.jira_sync import InvalidWebhookPayload, JiraSyncError, JiraSyncService, format_jira_comment
from relay.services.origin import mark_self_originated
from relay.services.tickets import TicketCard

from stubs import StubChatClient

CHANNEL_ID = "700"


def _issue(key: str = "PROJ-1", **fields: Any) -> dict[str, Any]:
    return {"id": "10001", "key": key, "fields": {"summary": "Login broken", **fields}}


def _payload(event: str, **body: Any) -> JiraWebhookPayload:
    return JiraWebhookPayload.model_validate({"webhookEvent": event, **body})


def _comment(comment_id: str = "c-1", body: Any = "hello", author: str = "Bob") -> dict[str, Any]:
    return {"id": comment_id, "body": body, "author": {"accountId": "acc-bob", "displayName": author}}


class JiraSyncServiceTests(unittest.IsolatedAsyncioTestCase):
    @classmethod
    def setUpClass(cls) -> None:
        cls.engine = create_engine(
            "sqlite+pysqlite:///:memory:",
            future=True,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
        cls.SessionLocal = sessionmaker(bind=cls.engine, autoflush=False, autocommit=False, future=True)
        Base.metadata.create_all(cls.engine)

    @classmethod
    def tearDownClass(cls) -> None:
        Base.metadata.drop_all(cls.engine)
        cls.engine.dispose()

    def setUp(self) -> None:
        self.db: Session = self.SessionLocal()
        self.db.execute(delete(CommentMessageMapping))
        self.db.execute(delete(ThreadTicketMapping))
        self.db.execute(delete(UserMapping))
        self.db.commit()
        self.chat = StubChatClient()
        self.service = JiraSyncService(
            db=self.db,
            chat=self.chat,
            channel_id=CHANNEL_ID,
            jira_site_url="https://acme.atlassian.net",
        )

    def tearDown(self) -> None:
        self.db.close()

    def _map_ticket(self, ticket_key: str = "PROJ-1") -> None:
        identity_store.save_thread_mapping(
            self.db,
            thread_id="900",
            ticket_key=ticket_key,
            message_id="800",
            channel_id=CHANNEL_ID,
        )

    def _map_comment(self, comment_id: str = "c-1", message_id: str = "m-1") -> None:
        identity_store.save_comment_mapping(
            self.db,
            discord_message_id=message_id,
            jira_comment_id=comment_id,
            thread_id="900",
            ticket_key="PROJ-1",
            source="jira",
        )

    # --- issues ----------------------------------------------------------------

    async def test_issue_created_posts_card_and_opens_thread(self) -> None:
        outcome = await self.service.handle(_payload("jira:issue_created", issue=_issue(issuetype={"name": "Bug"})))

        self.assertEqual(outcome.status, "success")
        self.assertEqual(self.chat.actions(), ["send_message", "start_thread"])
        _, channel_id, content, card = self.chat.calls[0]
        self.assertEqual(channel_id, CHANNEL_ID)
        self.assertIsNone(content)
        self.assertIsInstance(card, TicketCard)
        self.assertEqual(card.title, "🐛 [PROJ-1] Login broken")
        self.assertEqual(self.chat.calls[1], ("start_thread", CHANNEL_ID, outcome.discord_message_id, "[PROJ-1] Login broken"))

        mapping = identity_store.get_mapping_by_ticket_key(self.db, "PROJ-1")
        self.assertEqual(mapping.thread_id, outcome.thread_id)
        self.assertEqual(mapping.message_id, outcome.discord_message_id)
        self.assertEqual(mapping.channel_id, CHANNEL_ID)

    async def test_repeated_issue_created_is_ignored(self) -> None:
        await self.service.handle(_payload("jira:issue_created", issue=_issue()))
        outcome = await self.service.handle(_payload("jira:issue_created", issue=_issue()))

        self.assertEqual((outcome.status, outcome.reason), ("ignored", "already-mapped"))
        self.assertEqual(self.chat.actions(), ["send_message", "start_thread"])

    async def test_issue_created_failure_saves_nothing(self) -> None:
        self.chat.fail("start_thread", ChatPermissionError("start thread: forbidden"))

        with self.assertRaises(JiraSyncError):
            await self.service.handle(_payload("jira:issue_created", issue=_issue()))

        self.assertIsNone(identity_store.get_mapping_by_ticket_key(self.db, "PROJ-1"))

    async def test_issue_updated_edits_notification(self) -> None:
        self._map_ticket()

        outcome = await self.service.handle(
            _payload("jira:issue_updated", issue=_issue(status={"name": "Done"}, summary="Login fixed"))
        )

        self.assertEqual(outcome.action, "updated")
        action, channel_id, message_id, content, card = self.chat.calls[0]
        self.assertEqual((action, channel_id, message_id, content), ("edit_message", CHANNEL_ID, "800", None))
        self.assertEqual(card.title, "📋 [PROJ-1] Login fixed")
        self.assertIn("Done", [f.value for f in card.fields])

    async def test_issue_updated_without_mapping_is_ignored(self) -> None:
        outcome = await self.service.handle(_payload("jira:issue_updated", issue=_issue()))

        self.assertEqual((outcome.status, outcome.reason), ("ignored", "no-mapping"))
        self.assertEqual(self.chat.calls, [])

    async def test_issue_deleted_removes_thread_message_and_mappings(self) -> None:
        self._map_ticket()
        self._map_comment()

        outcome = await self.service.handle(_payload("jira:issue_deleted", issue=_issue()))

        self.assertEqual(outcome.action, "deleted")
        self.assertEqual(self.chat.calls, [("delete_thread", "900"), ("delete_message", CHANNEL_ID, "800")])
        self.assertIsNone(identity_store.get_mapping_by_ticket_key(self.db, "PROJ-1"))
        self.assertEqual(identity_store.list_comment_mappings(self.db, "PROJ-1"), [])

    async def test_issue_deleted_tolerates_missing_thread(self) -> None:
        self._map_ticket()
        self.chat.fail("delete_thread", ChatNotFoundError("delete thread 900: not found"))

        outcome = await self.service.handle(_payload("jira:issue_deleted", issue=_issue()))

        self.assertEqual(outcome.status, "success")
        self.assertEqual(self.chat.actions(), ["delete_thread", "delete_message"])
        self.assertIsNone(identity_store.get_mapping_by_ticket_key(self.db, "PROJ-1"))

    async def test_issue_deleted_clears_every_mapping_when_discord_fails(self) -> None:
        self._map_ticket()
        for index in range(3):
            self._map_comment(f"c-{index}", f"m-{index}")
        self.chat.fail("delete_thread", ChatPermissionError("delete thread 900: forbidden"))
        self.chat.fail("delete_message", ChatNotFoundError("delete message 800: not found"))

        outcome = await self.service.handle(_payload("jira:issue_deleted", issue=_issue()))

        self.assertEqual(outcome.status, "success")
        self.assertEqual(self.chat.actions(), ["delete_thread", "delete_message"])
        self.assertEqual(identity_store.list_comment_mappings(self.db), [])
        self.assertEqual(identity_store.list_thread_mappings(self.db), [])

    # --- comments ----------------------------------------------------------------

    async def test_comment_created_mirrors_into_thread(self) -> None:
        self._map_ticket()
        identity_store.save_user_mapping(
            self.db,
            jira_account_id="acc-alice",
            jira_display_name="Alice",
            discord_user_id="111",
        )
        body = {
            "type": "doc",
            "version": 1,
            "content": [
                {
                    "type": "paragraph",
                    "content": [
                        {"type": "text", "text": "thanks "},
                        {"type": "mention", "attrs": {"id": "acc-alice", "text": "@Alice"}},
                    ],
                }
            ],
        }

        outcome = await self.service.handle(
            _payload("comment_created", issue=_issue(), comment=_comment(body=body))
        )

        self.assertEqual(outcome.action, "created")
        self.assertEqual(self.chat.actions(), ["unarchive_thread", "send_message"])
        self.assertEqual(self.chat.calls[1][1:3], ("900", "**[Jira - Bob]**\nthanks <@111>"))
        mapping = identity_store.get_comment_mapping_by_jira_comment(self.db, "c-1")
        self.assertEqual(mapping.discord_message_id, outcome.discord_message_id)
        self.assertEqual(mapping.source, "jira")
        self.assertEqual(mapping.ticket_key, "PROJ-1")

    async def test_self_originated_comment_is_not_echoed(self) -> None:
        self._map_ticket()

        outcome = await self.service.handle(
            _payload(
                "comment_created",
                issue=_issue(),
                comment=_comment(body=mark_self_originated("from discord", "Alice")),
            )
        )

        self.assertEqual((outcome.status, outcome.reason), ("ignored", "discord-originated"))
        self.assertEqual(self.chat.calls, [])
        self.assertIsNone(identity_store.get_comment_mapping_by_jira_comment(self.db, "c-1"))

    async def test_duplicate_comment_delivery_is_ignored(self) -> None:
        self._map_ticket()
        self._map_comment()

        outcome = await self.service.handle(_payload("comment_created", issue=_issue(), comment=_comment()))

        self.assertEqual((outcome.status, outcome.reason), ("ignored", "already-mirrored"))
        self.assertEqual(outcome.discord_message_id, "m-1")
        self.assertEqual(self.chat.calls, [])

    async def test_comment_on_unmapped_ticket_is_ignored(self) -> None:
        outcome = await self.service.handle(_payload("comment_created", issue=_issue(), comment=_comment()))

        self.assertEqual((outcome.status, outcome.reason), ("ignored", "no-mapping"))
        self.assertEqual(self.chat.calls, [])

    async def test_comment_updated_edits_discord_message(self) -> None:
        self._map_ticket()
        self._map_comment()

        outcome = await self.service.handle(
            _payload("comment_updated", issue=_issue(), comment=_comment(body="edited"))
        )

        self.assertEqual(outcome.action, "updated")
        self.assertEqual(
            self.chat.calls,
            [("edit_message", "900", "m-1", format_jira_comment("Bob", "edited"), None)],
        )

    async def test_comment_updated_without_mapping_is_ignored(self) -> None:
        outcome = await self.service.handle(_payload("comment_updated", issue=_issue(), comment=_comment()))

        self.assertEqual(outcome.reason, "no-mapping")
        self.assertEqual(self.chat.calls, [])

    async def test_comment_deleted_removes_message_and_mapping(self) -> None:
        self._map_ticket()
        self._map_comment()

        outcome = await self.service.handle(_payload("comment_deleted", issue=_issue(), comment=_comment()))

        self.assertEqual(outcome.action, "deleted")
        self.assertEqual(outcome.discord_message_id, "m-1")
        self.assertEqual(self.chat.calls, [("delete_message", "900", "m-1")])
        self.assertIsNone(identity_store.get_comment_mapping_by_jira_comment(self.db, "c-1"))

    async def test_comment_deleted_without_mapping_makes_no_remote_calls(self) -> None:
        outcome = await self.service.handle(_payload("comment_deleted", issue=_issue(), comment=_comment()))

        self.assertEqual((outcome.status, outcome.reason), ("ignored", "no-mapping"))
        self.assertEqual(self.chat.calls, [])

    async def test_comment_deleted_when_message_already_gone(self) -> None:
        self._map_comment()
        self.chat.fail("delete_message", ChatNotFoundError("delete message m-1: not found"))

        outcome = await self.service.handle(_payload("comment_deleted", issue=_issue(), comment=_comment()))

        self.assertEqual(outcome.status, "success")
        self.assertIsNone(identity_store.get_comment_mapping_by_jira_comment(self.db, "c-1"))

    async def test_comment_deleted_failure_keeps_mapping(self) -> None:
        self._map_comment()
        self.chat.fail("delete_message", ChatPermissionError("delete message m-1: forbidden"))

        with self.assertRaises(JiraSyncError):
            await self.service.handle(_payload("comment_deleted", issue=_issue(), comment=_comment()))

        self.assertIsNotNone(identity_store.get_comment_mapping_by_jira_comment(self.db, "c-1"))

    # --- dispatch ----------------------------------------------------------------

    async def test_unsupported_event_is_ignored(self) -> None:
        outcome = await self.service.handle(_payload("jira:worklog_updated", issue=_issue()))

        self.assertEqual((outcome.status, outcome.reason), ("ignored", "unsupported-event"))
        self.assertEqual(self.chat.calls, [])

    async def test_comment_event_without_comment_is_rejected(self) -> None:
        with self.assertRaises(InvalidWebhookPayload):
            await self.service.handle(_payload("comment_created", issue=_issue()))


if __name__ == "__main__":
    unittest.main()
