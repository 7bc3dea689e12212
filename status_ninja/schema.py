from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class TelegramUser(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: int
    first_name: str | None = None
    username: str | None = None


class TelegramChat(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: int
    type: str = "private"
    title: str | None = None
    first_name: str | None = None
    username: str | None = None


class TelegramMessage(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    message_id: int
    from_user: TelegramUser | None = Field(None, alias="from")
    chat: TelegramChat
    date: int
    edit_date: int | None = None
    text: str | None = None


class ChatMemberUpdated(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    chat: TelegramChat
    from_user: TelegramUser = Field(..., alias="from")
    date: int


class TelegramUpdate(BaseModel):
    model_config = ConfigDict(extra="ignore")

    update_id: int
    message: TelegramMessage | None = None
    edited_message: TelegramMessage | None = None
    my_chat_member: ChatMemberUpdated | None = None


class ExportedApi(BaseModel):
    name: str
    url: str
    chat_ids: list[str]


class ExportedConfig(BaseModel):
    apis: list[ExportedApi]
