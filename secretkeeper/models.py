from typing import List, Optional

from pydantic import BaseModel, Field


USERNAME_MAX_LENGTH = 150
PASSWORD_MIN_LENGTH = 8
SECRET_MAX_LENGTH = 2000


# Page descriptors
class ProviderInfo(BaseModel):
    name: str
    display_name: str
    type: str  # "credentials" or "oauth"
    login_url: str


class HomePage(BaseModel):
    page: str = "home"
    authenticated: bool
    providers: List[ProviderInfo] = Field(default_factory=list)


class FormPage(BaseModel):
    page: str
    action: str
    method: str = "POST"
    fields: List[str]
    error: Optional[str] = None
    providers: List[ProviderInfo] = Field(default_factory=list)


class SecretsPage(BaseModel):
    page: str = "secrets"
    secrets: List[str]


class HealthResponse(BaseModel):
    status: str
    env: str
    database: dict
    session_backend: str
    jobs: List[dict] = Field(default_factory=list)
