from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class RequestModel(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class LoginRequest(RequestModel):
    username: Optional[str] = None
    password: Optional[str] = None


class ForgotPasswordRequest(RequestModel):
    username: Optional[str] = None


class ResetPasswordRequest(RequestModel):
    token: Optional[str] = None
    new_password: Optional[str] = Field(default=None, alias="newPassword")


class AssetCreateRequest(RequestModel):
    # submitted_by is taken from the session, never from the body.
    name: Optional[str] = None
    serial_number: Optional[str] = None
    employee_name: Optional[str] = None
