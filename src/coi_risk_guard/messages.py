"""Request/response shapes exchanged with the popup, content script and blocked page."""

from __future__ import annotations

from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, StrictBool, TypeAdapter
from pydantic.alias_generators import to_camel


class _Message(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class MessageSender(_Message):
    """Origin of a runtime message: extension id and, for tab senders, the tab URL."""

    id: str | None = None
    tab_url: str | None = None


class CheckDomainRequest(_Message):
    action: Literal["checkDomain"]
    url: str | None = None


class AllowDomainRequest(_Message):
    action: Literal["allowDomain"]
    domain: str = Field(min_length=1)


class SetProtectionRequest(_Message):
    action: Literal["setProtection"]
    enabled: StrictBool


class GetBlacklistRequest(_Message):
    action: Literal["getBlacklist"]


class RefreshBlacklistRequest(_Message):
    action: Literal["refreshBlacklist"]


Request = Annotated[
    Union[
        CheckDomainRequest,
        AllowDomainRequest,
        SetProtectionRequest,
        GetBlacklistRequest,
        RefreshBlacklistRequest,
    ],
    Field(discriminator="action"),
]

request_adapter: TypeAdapter[Request] = TypeAdapter(Request)


class CheckDomainResponse(_Message):
    is_risky: bool = False
    is_overridden: bool = False
    protection_enabled: bool = True
    domain: str = ""
    reason: str | None = None
    matched_domain: str | None = None


class SuccessResponse(_Message):
    success: bool
    error: str | None = None


class SetProtectionResponse(_Message):
    success: bool = True
    protection_enabled: bool


class BlacklistResponse(_Message):
    blacklist: list[str]
    protection_enabled: bool
    last_update: str | None = None


class RefreshResponse(_Message):
    success: bool
    count: int = 0
    last_update: str | None = None
    error: str | None = None


class ProtectionChangedNotice(_Message):
    """Broadcast to open tabs so warnings can be shown or removed in place."""

    action: Literal["protectionChanged"] = "protectionChanged"
    protection_enabled: bool


Response = Union[
    CheckDomainResponse,
    SuccessResponse,
    SetProtectionResponse,
    BlacklistResponse,
    RefreshResponse,
]
