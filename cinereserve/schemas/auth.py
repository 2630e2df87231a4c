from pydantic import BaseModel


class LoginRequest(BaseModel):
    email: str  # plain str to allow .local and other dev domains
    password: str


class RegisterRequest(BaseModel):
    email: str
    password: str
    fullName: str = ""


class TokenPair(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
