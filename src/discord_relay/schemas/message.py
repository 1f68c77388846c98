"""Pydantic schemas for the normalized message wire record.

Learn: Field names are snake_case in Python and camelCase on the wire
(alias_generator=to_camel). Records are frozen — an edit produces a new
record with edited=True, never a patch of the old one.
"""

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class WireModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )

    def wire(self) -> dict:
        return self.model_dump(by_alias=True, mode="json")


class MessageAuthor(WireModel):
    id: str
    username: str = ""
    display_name: str = ""
    avatar: str = ""
    bot: bool = False


class Attachment(WireModel):
    id: str
    filename: str = ""
    url: str = ""
    proxy_url: str = ""
    size: int = 0
    content_type: str = ""
    width: int = 0
    height: int = 0


class EmbedMedia(WireModel):
    url: str = ""


class EmbedAuthor(WireModel):
    name: str = ""
    icon_url: str = ""


class EmbedField(WireModel):
    name: str = ""
    value: str = ""
    inline: bool = False


class Embed(WireModel):
    title: str = ""
    description: str = ""
    url: str = ""
    color: int = 0
    thumbnail: EmbedMedia = EmbedMedia()
    image: EmbedMedia = EmbedMedia()
    author: EmbedAuthor = EmbedAuthor()
    fields: tuple[EmbedField, ...] = ()


class Reaction(WireModel):
    emoji: str = ""
    count: int = 0
    users: tuple[str, ...] = ()


class NormalizedMessage(WireModel):
    id: str
    content: str = ""
    author: MessageAuthor
    timestamp: str = ""
    channel_id: str
    server_id: str = ""
    attachments: tuple[Attachment, ...] = ()
    embeds: tuple[Embed, ...] = ()
    reactions: tuple[Reaction, ...] = ()
    edited: bool = False
    edited_timestamp: str = ""


class DeletedMessage(WireModel):
    message_id: str
    channel_id: str
