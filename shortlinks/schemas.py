from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class CreateTokenParams(CamelModel):
    admin_perm: bool = False
    create_link_perm: bool = False
    create_token_perm: bool = False
    view_ips_perm: bool = False
    expires_at: datetime | None = None


class LinkInfo(CamelModel):
    id: str
    hash: str
    link: str
    created_at: datetime
    created_by: str | None = None


class StrikesIn(BaseModel):
    amount: int = Field(ge=0)


class StrikesOut(BaseModel):
    address: str
    amount: int


class IpRecordingInfo(BaseModel):
    retention_period: str
    retention_check_period: str


class TokenConfigInfo(BaseModel):
    link_creation_requires_auth: bool


class ConfigInfo(BaseModel):
    service_version: str
    max_strikes: int
    log_level: str
    ip_recording: IpRecordingInfo | None = None
    tokens: TokenConfigInfo | None = None
