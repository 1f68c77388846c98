"""Event normalizer — raw Discord objects → typed relay events.

Learn: Upstream objects (discord.Message, RawMessageDeleteEvent, or any
object with the same attribute names) are read defensively with getattr:
missing text becomes "", missing numbers become 0, missing collections
become empty. What comes out is a closed set of variants:

  MessageCreated  → "message"         (full record, edited=False)
  MessageUpdated  → "message_update"  (full record, edited=True)
  MessageDeleted  → "message_delete"  ({messageId, channelId} only)

Downstream code only ever sees these three types. Anything that cannot be
normalized raises MalformedEvent.
"""

from datetime import datetime, timezone
from typing import Annotated, Any, ClassVar, Iterable, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from discord_relay.errors import MalformedEvent
from discord_relay.events.types import MESSAGE, MESSAGE_DELETE, MESSAGE_UPDATE
from discord_relay.schemas.message import (
    Attachment,
    DeletedMessage,
    Embed,
    EmbedAuthor,
    EmbedField,
    EmbedMedia,
    MessageAuthor,
    NormalizedMessage,
    Reaction,
)


# ─── Typed relay events ──────────────────────────────────


class _RelayEvent(BaseModel):
    model_config = ConfigDict(frozen=True)

    event_name: ClassVar[str] = ""

    @property
    def channel_id(self) -> str:
        raise NotImplementedError

    def payload(self) -> dict:
        raise NotImplementedError


class MessageCreated(_RelayEvent):
    kind: Literal["created"] = "created"
    event_name: ClassVar[str] = MESSAGE
    message: NormalizedMessage

    @property
    def channel_id(self) -> str:
        return self.message.channel_id

    def payload(self) -> dict:
        return self.message.wire()


class MessageUpdated(_RelayEvent):
    kind: Literal["updated"] = "updated"
    event_name: ClassVar[str] = MESSAGE_UPDATE
    message: NormalizedMessage

    @property
    def channel_id(self) -> str:
        return self.message.channel_id

    def payload(self) -> dict:
        return self.message.wire()


class MessageDeleted(_RelayEvent):
    kind: Literal["deleted"] = "deleted"
    event_name: ClassVar[str] = MESSAGE_DELETE
    deleted: DeletedMessage

    @property
    def channel_id(self) -> str:
        return self.deleted.channel_id

    def payload(self) -> dict:
        return self.deleted.wire()


RelayEvent = Annotated[
    Union[MessageCreated, MessageUpdated, MessageDeleted],
    Field(discriminator="kind"),
]


# ─── Field helpers ───────────────────────────────────────


def _str(value: Any) -> str:
    return "" if value is None else str(value)


def _int(value: Any) -> int:
    if value is None:
        return 0
    # discord.Colour exposes its int as .value
    value = getattr(value, "value", value)
    return int(value)


def iso_timestamp(value: Any) -> str:
    """ISO-8601 in UTC with millisecond precision and a Z suffix."""
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    if not isinstance(value, datetime):
        raise TypeError(f"expected datetime, got {type(value).__name__}")
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    iso = value.astimezone(timezone.utc).isoformat(timespec="milliseconds")
    return iso.replace("+00:00", "Z")


def _items(collection: Any) -> Iterable[Any]:
    if collection is None:
        return ()
    # discord.py caches some collections as dicts keyed by id
    if isinstance(collection, dict):
        return collection.values()
    return collection


def _nested_id(obj: Any, attr: str) -> str:
    nested = getattr(obj, attr, None)
    return _str(getattr(nested, "id", None))


def _required(value: str, name: str) -> str:
    if not value:
        raise MalformedEvent(f"upstream event has no {name}")
    return value


# ─── Sub-record builders ─────────────────────────────────


def _author(raw: Any) -> MessageAuthor:
    author = getattr(raw, "author", None)
    if author is None:
        raise MalformedEvent("upstream message has no author")
    username = _str(getattr(author, "name", None) or getattr(author, "username", None))
    avatar = getattr(author, "display_avatar", None)
    return MessageAuthor(
        id=_required(_str(getattr(author, "id", None)), "author id"),
        username=username,
        display_name=_str(getattr(author, "display_name", None)) or username,
        avatar=_str(getattr(avatar, "url", avatar)),
        bot=bool(getattr(author, "bot", False)),
    )


def _attachment(raw: Any) -> Attachment:
    return Attachment(
        id=_str(getattr(raw, "id", None)),
        filename=_str(getattr(raw, "filename", None)) or "unknown",
        url=_str(getattr(raw, "url", None)),
        proxy_url=_str(getattr(raw, "proxy_url", None)),
        size=_int(getattr(raw, "size", None)),
        content_type=_str(getattr(raw, "content_type", None)),
        width=_int(getattr(raw, "width", None)),
        height=_int(getattr(raw, "height", None)),
    )


def _media(raw: Any) -> EmbedMedia:
    return EmbedMedia(url=_str(getattr(raw, "url", None)))


def _embed(raw: Any) -> Embed:
    author = getattr(raw, "author", None)
    return Embed(
        title=_str(getattr(raw, "title", None)),
        description=_str(getattr(raw, "description", None)),
        url=_str(getattr(raw, "url", None)),
        color=_int(getattr(raw, "color", None)),
        thumbnail=_media(getattr(raw, "thumbnail", None)),
        image=_media(getattr(raw, "image", None)),
        author=EmbedAuthor(
            name=_str(getattr(author, "name", None)),
            icon_url=_str(getattr(author, "icon_url", None)),
        ),
        fields=tuple(
            EmbedField(
                name=_str(getattr(f, "name", None)),
                value=_str(getattr(f, "value", None)),
                inline=bool(getattr(f, "inline", False)),
            )
            for f in _items(getattr(raw, "fields", None))
        ),
    )


def _reaction(raw: Any) -> Reaction:
    emoji = getattr(raw, "emoji", None)
    label = emoji if isinstance(emoji, str) else getattr(emoji, "name", None)
    return Reaction(
        emoji=_str(label) or _str(emoji),
        count=_int(getattr(raw, "count", None)),
    )


def _message(raw: Any, edited: bool = False) -> NormalizedMessage:
    return NormalizedMessage(
        id=_required(_str(getattr(raw, "id", None)), "message id"),
        content=_str(getattr(raw, "content", None)),
        author=_author(raw),
        timestamp=iso_timestamp(getattr(raw, "created_at", None)),
        channel_id=_required(_nested_id(raw, "channel"), "channel id"),
        server_id=_nested_id(raw, "guild"),
        attachments=tuple(_attachment(a) for a in _items(getattr(raw, "attachments", None))),
        embeds=tuple(_embed(e) for e in _items(getattr(raw, "embeds", None))),
        reactions=tuple(_reaction(r) for r in _items(getattr(raw, "reactions", None))),
        edited=edited,
        edited_timestamp=iso_timestamp(getattr(raw, "edited_at", None)) if edited else "",
    )


# ─── Public entry points ─────────────────────────────────


def is_bot_authored(raw: Any) -> bool:
    """Bot messages are never relayed; checked before normalization."""
    return bool(getattr(getattr(raw, "author", None), "bot", False))


def _wrap(build):
    try:
        return build()
    except MalformedEvent:
        raise
    except (AttributeError, TypeError, ValueError) as e:
        raise MalformedEvent(f"{type(e).__name__}: {e}") from e


def normalize_created(raw: Any) -> Optional[MessageCreated]:
    """Normalize a new message. Returns None for bot-authored messages."""
    if is_bot_authored(raw):
        return None
    return _wrap(lambda: MessageCreated(message=_message(raw)))


def normalize_updated(raw: Any) -> Optional[MessageUpdated]:
    """Normalize an edited message (same id as the original, edited=True)."""
    if is_bot_authored(raw):
        return None
    return _wrap(lambda: MessageUpdated(message=_message(raw, edited=True)))


def normalize_deleted(raw: Any) -> MessageDeleted:
    """Normalize a deletion to {messageId, channelId}; content is not rebuilt.

    Accepts a RawMessageDeleteEvent (message_id / channel_id) or a cached
    Message (id / channel.id).
    """

    def build() -> MessageDeleted:
        message_id = _str(getattr(raw, "message_id", None) or getattr(raw, "id", None))
        channel_id = _str(getattr(raw, "channel_id", None)) or _nested_id(raw, "channel")
        return MessageDeleted(
            deleted=DeletedMessage(
                message_id=_required(message_id, "message id"),
                channel_id=_required(channel_id, "channel id"),
            )
        )

    return _wrap(build)
