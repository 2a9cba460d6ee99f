"""Message persistence: append-only history with reactions and tombstones"""
import asyncio
import logging
import uuid

import aiosqlite

from domain.audience import Audience, DirectAudience
from domain.constants import MESSAGE_TYPES
from domain.errors import NotFoundError, PermissionDeniedError, ValidationError
from domain.models import DraftMessage, Identity, Message, Reaction, utc_timestamp

logger = logging.getLogger(__name__)

# Database path
DB_PATH = "chat_history.db"
DEFAULT_HISTORY_LIMIT = 50

MESSAGE_COLUMNS = (
    "id, author_id, author_username, author_email, content, created_at, message_type, "
    "file_url, file_name, file_size, reply_to_id, recipient_id, deleted_at"
)


class MessageStore:
    """SQLite-backed store for chat messages and their reactions

    Writes are serialised with an internal lock so callers never need their
    own locking.
    """

    def __init__(self, db_path: str = DB_PATH, history_limit: int = DEFAULT_HISTORY_LIMIT) -> None:
        self.db_path = db_path
        self.history_limit = history_limit
        self.conn: aiosqlite.Connection | None = None
        self._write_lock = asyncio.Lock()

    async def init(self) -> None:
        """Open the database and create tables"""
        self.conn = await aiosqlite.connect(self.db_path)
        assert self.conn is not None

        await self.conn.execute("PRAGMA foreign_keys = ON")

        # seq keeps insertion order when two messages share a timestamp
        await self.conn.execute("""
            CREATE TABLE IF NOT EXISTS messages (
                seq INTEGER PRIMARY KEY AUTOINCREMENT,
                id TEXT NOT NULL UNIQUE,
                author_id INTEGER NOT NULL,
                author_username TEXT NOT NULL,
                author_email TEXT NOT NULL,
                content TEXT NOT NULL,
                created_at TEXT NOT NULL,
                message_type TEXT NOT NULL DEFAULT 'text',
                file_url TEXT,
                file_name TEXT,
                file_size INTEGER,
                reply_to_id TEXT,
                recipient_id INTEGER,
                deleted_at TEXT
            )
        """)

        await self.conn.execute("""
            CREATE TABLE IF NOT EXISTS reactions (
                seq INTEGER PRIMARY KEY AUTOINCREMENT,
                message_id TEXT NOT NULL,
                emoji TEXT NOT NULL,
                user_id INTEGER NOT NULL,
                created_at TEXT NOT NULL,
                UNIQUE (message_id, emoji, user_id),
                FOREIGN KEY (message_id) REFERENCES messages(id)
            )
        """)

        await self.conn.execute("""
            CREATE INDEX IF NOT EXISTS idx_messages_recipient
            ON messages(recipient_id, seq)
        """)

        await self.conn.execute("""
            CREATE INDEX IF NOT EXISTS idx_messages_direct
            ON messages(author_id, recipient_id, seq)
        """)

        await self.conn.execute("""
            CREATE INDEX IF NOT EXISTS idx_reactions_message
            ON reactions(message_id, seq)
        """)

        await self.conn.commit()
        logger.info("Message store initialized at %s", self.db_path)

    async def close(self) -> None:
        """Close database connection"""
        if self.conn:
            await self.conn.close()
            self.conn = None

    def validate(self, draft: DraftMessage) -> None:
        """Check a draft before it is persisted"""
        if not draft.content.strip() and not draft.file_url:
            raise ValidationError("Message content is empty and no file is attached")
        if draft.message_type not in MESSAGE_TYPES:
            raise ValidationError(f"Unknown message type: {draft.message_type!r}")
        if draft.file_size is not None and draft.file_size < 0:
            raise ValidationError("File size must not be negative")

    async def append(self, draft: DraftMessage) -> Message:
        """Persist a draft, assigning its id and creation time"""
        assert self.conn is not None
        self.validate(draft)

        async with self._write_lock:
            if draft.reply_to_id is not None and not await self._exists(draft.reply_to_id):
                raise ValidationError(f"Reply target {draft.reply_to_id} does not exist")

            message = Message(
                id=uuid.uuid4().hex,
                author=draft.author,
                content=draft.content,
                created_at=utc_timestamp(),
                message_type=draft.message_type,
                file_url=draft.file_url,
                file_name=draft.file_name,
                file_size=draft.file_size,
                reply_to_id=draft.reply_to_id,
                recipient_id=draft.recipient_id,
            )
            await self.conn.execute(
                f"INSERT INTO messages ({MESSAGE_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                (
                    message.id,
                    message.author.id,
                    message.author.username,
                    message.author.email,
                    message.content,
                    message.created_at,
                    message.message_type,
                    message.file_url,
                    message.file_name,
                    message.file_size,
                    message.reply_to_id,
                    message.recipient_id,
                    None,
                ),
            )
            await self.conn.commit()

        logger.debug("Appended message %s from user %s", message.id, message.author.id)
        return message

    async def get(self, message_id: str) -> Message | None:
        """Fetch a live (not deleted) message with its reactions"""
        assert self.conn is not None
        cursor = await self.conn.execute(
            f"SELECT {MESSAGE_COLUMNS} FROM messages WHERE id = ? AND deleted_at IS NULL",
            (message_id,),
        )
        row = await cursor.fetchone()
        if row is None:
            return None
        message = self._row_to_message(row)
        reactions = await self._reactions_for([message.id])
        message.reactions = reactions.get(message.id, [])
        return message

    async def history(self, audience: Audience, limit: int | None = None) -> list[Message]:
        """Most recent messages of an audience, oldest first"""
        assert self.conn is not None
        limit = self.history_limit if limit is None else limit
        if limit <= 0:
            return []

        if isinstance(audience, DirectAudience):
            query = f"""
                SELECT {MESSAGE_COLUMNS} FROM messages
                WHERE deleted_at IS NULL
                  AND recipient_id IS NOT NULL
                  AND ((author_id = ? AND recipient_id = ?) OR (author_id = ? AND recipient_id = ?))
                ORDER BY seq DESC LIMIT ?
            """
            params: tuple = (audience.low, audience.high, audience.high, audience.low, limit)
        else:
            query = f"""
                SELECT {MESSAGE_COLUMNS} FROM messages
                WHERE deleted_at IS NULL AND recipient_id IS NULL
                ORDER BY seq DESC LIMIT ?
            """
            params = (limit,)

        cursor = await self.conn.execute(query, params)
        rows = await cursor.fetchall()
        messages = [self._row_to_message(row) for row in reversed(list(rows))]

        reactions = await self._reactions_for([message.id for message in messages])
        for message in messages:
            message.reactions = reactions.get(message.id, [])
        return messages

    async def add_reaction(self, message_id: str, identity: Identity, emoji: str) -> Reaction:
        """Add `identity` to the `emoji` reaction of a message (idempotent)"""
        assert self.conn is not None
        if not emoji or not emoji.strip():
            raise ValidationError("Emoji must not be empty")

        async with self._write_lock:
            if not await self._exists(message_id):
                raise NotFoundError(f"Message {message_id} not found")

            await self.conn.execute(
                "INSERT OR IGNORE INTO reactions (message_id, emoji, user_id, created_at) VALUES (?, ?, ?, ?)",
                (message_id, emoji, identity.id, utc_timestamp()),
            )
            await self.conn.commit()

        cursor = await self.conn.execute(
            "SELECT user_id FROM reactions WHERE message_id = ? AND emoji = ? ORDER BY seq ASC",
            (message_id, emoji),
        )
        rows = await cursor.fetchall()
        return Reaction(emoji=emoji, users=[row[0] for row in rows])

    async def remove(self, message_id: str, requester: Identity) -> Message:
        """Tombstone a message; only its author may do so

        Returns the removed message so callers can notify its audience.
        """
        assert self.conn is not None
        async with self._write_lock:
            message = await self.get(message_id)
            if message is None:
                raise NotFoundError(f"Message {message_id} not found")
            if message.author.id != requester.id:
                raise PermissionDeniedError("Only the author can delete this message")

            message.deleted_at = utc_timestamp()
            await self.conn.execute(
                "UPDATE messages SET deleted_at = ? WHERE id = ?",
                (message.deleted_at, message_id),
            )
            await self.conn.commit()

        logger.info("Message %s deleted by user %s", message_id, requester.id)
        return message

    async def _exists(self, message_id: str) -> bool:
        assert self.conn is not None
        cursor = await self.conn.execute(
            "SELECT 1 FROM messages WHERE id = ? AND deleted_at IS NULL",
            (message_id,),
        )
        return await cursor.fetchone() is not None

    async def _reactions_for(self, message_ids: list[str]) -> dict[str, list[Reaction]]:
        """Reactions grouped per message, emojis ordered by first use"""
        assert self.conn is not None
        if not message_ids:
            return {}

        placeholders = ", ".join("?" for _ in message_ids)
        cursor = await self.conn.execute(
            f"SELECT message_id, emoji, user_id FROM reactions WHERE message_id IN ({placeholders}) ORDER BY seq ASC",
            tuple(message_ids),
        )
        rows = await cursor.fetchall()

        grouped: dict[str, dict[str, Reaction]] = {}
        for message_id, emoji, user_id in rows:
            by_emoji = grouped.setdefault(message_id, {})
            by_emoji.setdefault(emoji, Reaction(emoji=emoji)).users.append(user_id)
        return {message_id: list(by_emoji.values()) for message_id, by_emoji in grouped.items()}

    @staticmethod
    def _row_to_message(row) -> Message:
        return Message(
            id=row[0],
            author=Identity(id=row[1], username=row[2], email=row[3]),
            content=row[4],
            created_at=row[5],
            message_type=row[6],
            file_url=row[7],
            file_name=row[8],
            file_size=row[9],
            reply_to_id=row[10],
            recipient_id=row[11],
            deleted_at=row[12],
        )
