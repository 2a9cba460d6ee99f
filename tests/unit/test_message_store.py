"""Unit tests for MessageStore (in-memory SQLite)"""
import pytest

from database.message_store import MessageStore
from domain.audience import DirectAudience, GENERAL
from domain.errors import NotFoundError, PermissionDeniedError, ValidationError
from domain.models import DraftMessage


def general(author, content="hello", **kwargs) -> DraftMessage:
    return DraftMessage(author=author, content=content, audience=GENERAL, **kwargs)


def direct(author, recipient, content="psst", **kwargs) -> DraftMessage:
    return DraftMessage(author=author, content=content, audience=DirectAudience.between(author.id, recipient.id), **kwargs)


@pytest.mark.unit
@pytest.mark.asyncio
class TestMessageStoreAppend:
    """Test appending messages"""

    async def test_append_assigns_id_and_timestamp(self, in_memory_store, alice):
        message = await in_memory_store.append(general(alice))

        assert len(message.id) == 32
        assert message.created_at
        assert message.author == alice
        assert message.recipient_id is None
        assert message.reactions == []

    async def test_ids_are_unique(self, in_memory_store, alice):
        first = await in_memory_store.append(general(alice))
        second = await in_memory_store.append(general(alice))

        assert first.id != second.id

    async def test_round_trip_through_history(self, in_memory_store, alice, bob):
        appended = await in_memory_store.append(
            direct(
                alice, bob,
                content="see attached",
                message_type="image",
                file_url="https://files.example.com/cat.png",
                file_name="cat.png",
                file_size=512,
            )
        )

        [fetched] = await in_memory_store.history(DirectAudience.between(alice.id, bob.id))

        assert fetched == appended

    async def test_empty_content_without_file_rejected(self, in_memory_store, alice):
        with pytest.raises(ValidationError):
            await in_memory_store.append(general(alice, content=""))
        with pytest.raises(ValidationError):
            await in_memory_store.append(general(alice, content="   "))

        assert await in_memory_store.history(GENERAL) == []

    async def test_empty_content_with_file_accepted(self, in_memory_store, alice):
        message = await in_memory_store.append(
            general(alice, content="", message_type="file", file_url="https://files.example.com/a.pdf")
        )

        assert message.content == ""
        assert message.file_url == "https://files.example.com/a.pdf"

    async def test_reply_to_existing_message(self, in_memory_store, alice, bob):
        original = await in_memory_store.append(general(alice))
        reply = await in_memory_store.append(general(bob, content="agreed", reply_to_id=original.id))

        assert reply.reply_to_id == original.id

    async def test_reply_to_unknown_message_rejected(self, in_memory_store, alice):
        with pytest.raises(ValidationError):
            await in_memory_store.append(general(alice, reply_to_id="missing"))

    async def test_reply_survives_target_deletion(self, in_memory_store, alice, bob):
        original = await in_memory_store.append(general(alice))
        reply = await in_memory_store.append(general(bob, content="agreed", reply_to_id=original.id))
        await in_memory_store.remove(original.id, alice)

        [remaining] = await in_memory_store.history(GENERAL)

        assert remaining.id == reply.id
        assert remaining.reply_to_id == original.id


@pytest.mark.unit
@pytest.mark.asyncio
class TestMessageStoreHistory:
    """Test audience-scoped history queries"""

    async def test_general_history_excludes_direct_messages(self, in_memory_store, alice, bob):
        await in_memory_store.append(general(alice, content="one"))
        await in_memory_store.append(direct(alice, bob))
        await in_memory_store.append(general(bob, content="two"))

        history = await in_memory_store.history(GENERAL)

        assert [m.content for m in history] == ["one", "two"]
        assert all(m.recipient_id is None for m in history)

    async def test_direct_history_contains_both_directions(self, in_memory_store, alice, bob, carol):
        await in_memory_store.append(direct(alice, bob, content="a->b"))
        await in_memory_store.append(direct(bob, alice, content="b->a"))
        await in_memory_store.append(direct(alice, carol, content="a->c"))
        await in_memory_store.append(direct(carol, bob, content="c->b"))
        await in_memory_store.append(general(alice, content="everyone"))

        history = await in_memory_store.history(DirectAudience.between(bob.id, alice.id))

        assert [m.content for m in history] == ["a->b", "b->a"]

    async def test_history_is_ascending(self, in_memory_store, alice):
        for i in range(5):
            await in_memory_store.append(general(alice, content=str(i)))

        history = await in_memory_store.history(GENERAL)

        assert [m.content for m in history] == ["0", "1", "2", "3", "4"]
        assert [m.created_at for m in history] == sorted(m.created_at for m in history)

    async def test_limit_keeps_most_recent(self, in_memory_store, alice):
        for i in range(5):
            await in_memory_store.append(general(alice, content=str(i)))

        history = await in_memory_store.history(GENERAL, limit=2)

        assert [m.content for m in history] == ["3", "4"]

    async def test_default_limit_from_constructor(self, alice):
        store = MessageStore(":memory:", history_limit=3)
        await store.init()
        try:
            for i in range(4):
                await store.append(general(alice, content=str(i)))
            assert [m.content for m in await store.history(GENERAL)] == ["1", "2", "3"]
        finally:
            await store.close()

    async def test_history_includes_reactions(self, in_memory_store, alice, bob):
        message = await in_memory_store.append(general(alice))
        await in_memory_store.add_reaction(message.id, bob, "👍")
        await in_memory_store.add_reaction(message.id, alice, "🔥")
        await in_memory_store.add_reaction(message.id, alice, "👍")

        [fetched] = await in_memory_store.history(GENERAL)

        assert [(r.emoji, r.users) for r in fetched.reactions] == [("👍", [bob.id, alice.id]), ("🔥", [alice.id])]


@pytest.mark.unit
@pytest.mark.asyncio
class TestMessageStoreReactions:
    """Test reaction handling"""

    async def test_add_reaction(self, in_memory_store, alice, bob):
        message = await in_memory_store.append(general(alice))

        reaction = await in_memory_store.add_reaction(message.id, bob, "👍")

        assert reaction.emoji == "👍"
        assert reaction.users == [bob.id]

    async def test_add_reaction_is_idempotent(self, in_memory_store, alice):
        message = await in_memory_store.append(general(alice))

        first = await in_memory_store.add_reaction(message.id, alice, "👍")
        second = await in_memory_store.add_reaction(message.id, alice, "👍")

        assert first == second
        assert second.users == [alice.id]

    async def test_add_reaction_unknown_message(self, in_memory_store, alice):
        with pytest.raises(NotFoundError):
            await in_memory_store.add_reaction("missing", alice, "👍")

    async def test_add_reaction_blank_emoji(self, in_memory_store, alice):
        message = await in_memory_store.append(general(alice))

        with pytest.raises(ValidationError):
            await in_memory_store.add_reaction(message.id, alice, " ")

    async def test_add_reaction_to_deleted_message(self, in_memory_store, alice):
        message = await in_memory_store.append(general(alice))
        await in_memory_store.remove(message.id, alice)

        with pytest.raises(NotFoundError):
            await in_memory_store.add_reaction(message.id, alice, "👍")


@pytest.mark.unit
@pytest.mark.asyncio
class TestMessageStoreRemove:
    """Test author-only tombstoning"""

    async def test_non_author_cannot_remove(self, in_memory_store, alice, bob):
        message = await in_memory_store.append(general(alice))

        with pytest.raises(PermissionDeniedError):
            await in_memory_store.remove(message.id, bob)

        assert [m.id for m in await in_memory_store.history(GENERAL)] == [message.id]

    async def test_author_removes_message(self, in_memory_store, alice):
        keep = await in_memory_store.append(general(alice, content="keep"))
        drop = await in_memory_store.append(general(alice, content="drop"))

        removed = await in_memory_store.remove(drop.id, alice)

        assert removed.id == drop.id
        assert removed.deleted_at is not None
        assert [m.id for m in await in_memory_store.history(GENERAL)] == [keep.id]
        assert await in_memory_store.get(drop.id) is None

    async def test_remove_unknown_message(self, in_memory_store, alice):
        with pytest.raises(NotFoundError):
            await in_memory_store.remove("missing", alice)

    async def test_remove_twice(self, in_memory_store, alice):
        message = await in_memory_store.append(general(alice))
        await in_memory_store.remove(message.id, alice)

        with pytest.raises(NotFoundError):
            await in_memory_store.remove(message.id, alice)

    async def test_tombstone_is_retained(self, in_memory_store, alice):
        message = await in_memory_store.append(general(alice))
        await in_memory_store.remove(message.id, alice)

        cursor = await in_memory_store.conn.execute("SELECT deleted_at FROM messages WHERE id = ?", (message.id,))
        row = await cursor.fetchone()

        assert row is not None
        assert row[0] is not None
