import datetime as dt
from typing import List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from config import MAX_FACE_IMAGE_LENGTH


class _Payload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class RegisterRequest(_Payload):
    """Fields are optional here so that missing ones get the form's messages."""

    username: Optional[str] = None
    email: Optional[str] = None
    password: Optional[str] = None
    confirm_password: Optional[str] = Field(None, alias="confirmPassword")
    face_descriptor: Optional[Union[str, List[float]]] = Field(None, alias="faceDescriptor")
    face_image: Optional[str] = Field(None, alias="faceImage", max_length=MAX_FACE_IMAGE_LENGTH)


class LoginRequest(_Payload):
    email: Optional[str] = None
    password: Optional[str] = None


class FaceCheckRequest(_Payload):
    face_descriptor: Optional[Union[str, List[float]]] = Field(None, alias="faceDescriptor")
    face_image: Optional[str] = Field(None, alias="faceImage", max_length=MAX_FACE_IMAGE_LENGTH)


class EntryRequest(_Payload):
    entry_date: Optional[dt.date] = Field(None, alias="date")
    time_in: dt.time = Field(..., alias="timeIn")
    time_out: dt.time = Field(..., alias="timeOut")
    reason: Optional[str] = Field(None, max_length=255)

    @field_validator("time_in", "time_out")
    @classmethod
    def _no_utc_offset(cls, value: dt.time) -> dt.time:
        if value.tzinfo is not None:
            raise ValueError("Times must not carry a UTC offset")
        return value


class TimeOutRequest(_Payload):
    reason: Optional[str] = Field(None, max_length=255)
