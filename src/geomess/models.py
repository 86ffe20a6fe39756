from typing import Annotated, Optional, List

from pydantic import BaseModel, Field, AfterValidator

from src.geomess.projection import LONGITUDE_MIN, LONGITUDE_MAX, LATITUDE_MIN, LATITUDE_MAX

# Limits on client input
UUID_LENGTH = 36
USER_NAME_LENGTH_MAX = 128    # bytes, UTF-8
MESSAGE_LENGTH_MAX = 4096     # bytes, UTF-8


def _check_uuid(value: str) -> str:
    if value == "":
        raise ValueError("uuid is expected")
    if len(value) != UUID_LENGTH:
        raise ValueError("the uuid is invalid")
    return value


def _check_name(value: str) -> str:
    if value == "":
        raise ValueError("name is expected")
    if len(value.encode("utf-8")) > USER_NAME_LENGTH_MAX:
        raise ValueError("the name is too long")
    return value


def _check_message(value: str) -> str:
    if value == "":
        raise ValueError("message is expected")
    if len(value.encode("utf-8")) > MESSAGE_LENGTH_MAX:
        raise ValueError("the message is too long")
    return value


def _check_longitude(value: float) -> float:
    # Written as a negated range check so NaN is rejected too
    if not LONGITUDE_MIN <= value <= LONGITUDE_MAX:
        raise ValueError("invalid coordinates")
    return value


def _check_latitude(value: float) -> float:
    if not LATITUDE_MIN <= value <= LATITUDE_MAX:
        raise ValueError("invalid coordinates")
    return value


def _check_newer_than(value: int) -> int:
    if value < 0:
        raise ValueError("the newer than value is invalid")
    return value


DeviceToken = Annotated[str, AfterValidator(_check_uuid)]
UserName = Annotated[str, AfterValidator(_check_name)]
MessageText = Annotated[str, AfterValidator(_check_message)]
Longitude = Annotated[float, AfterValidator(_check_longitude)]
Latitude = Annotated[float, AfterValidator(_check_latitude)]
Timestamp = Annotated[int, AfterValidator(_check_newer_than)]


class RegisterRequest(BaseModel):
    """Device registration."""
    uuid: DeviceToken
    name: UserName
    longitude: Longitude
    latitude: Latitude


class PostMessageRequest(BaseModel):
    """A message posted at the device's current location."""
    uuid: DeviceToken
    longitude: Longitude
    latitude: Latitude
    message: MessageText


class MessagesQuery(BaseModel):
    """Query string of GET /api/v1/messages."""
    uuid: DeviceToken
    longitude: Longitude
    latitude: Latitude
    newer_than: Timestamp = Field(..., description="Only return messages with ts greater than this (UTC seconds)")


class MessageOut(BaseModel):
    id: int
    user_id: int
    user_name: str
    ts: int
    message: str


class ApiResult(BaseModel):
    """Envelope returned by every API route."""
    result: bool
    msg: Optional[str] = None
    err: Optional[str] = Field(default=None, description="Diagnostic detail, only in debug mode")
    user_id: Optional[int] = None
    message_id: Optional[int] = None
    messages: Optional[List[MessageOut]] = None
