from __future__ import annotations
from datetime import datetime
from typing import Optional
from pydantic import BaseModel
from pydantic.alias_generators import to_camel

CAMEL = {"alias_generator": to_camel, "populate_by_name": True}


class VerifyWalletRequest(BaseModel):
    # Presence is checked by the route so a missing field is a 400, not a 422.
    wallet_address: Optional[str] = None
    message: Optional[str] = None
    signature: Optional[str] = None

    model_config = CAMEL


class LoginUser(BaseModel):
    wallet_address: str
    created_at: datetime
    last_login_at: datetime
    is_new_user: bool

    model_config = CAMEL


class VerifyWalletResponse(BaseModel):
    success: bool = True
    token: str
    user: LoginUser


class UserResponse(BaseModel):
    wallet_address: str
    created_at: datetime
    last_login_at: datetime
    is_active: bool

    model_config = {"from_attributes": True, **CAMEL}


class UserEnvelope(BaseModel):
    success: bool = True
    user: UserResponse
