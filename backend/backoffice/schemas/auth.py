from pydantic import BaseModel

from backoffice.schemas.user import UserOut

class LoginIn(BaseModel):
    email: str
    password: str
    user_type: str

class TokenOut(BaseModel):
    access_token: str
    token_type: str = "bearer"
    role: str
    user: UserOut

class ForgotPasswordIn(BaseModel):
    email: str

class MessageOut(BaseModel):
    ok: bool = True
    message: str
