"""Protected pages: list and submit secrets."""

from fastapi import APIRouter, Depends, Form, Request, status
from fastapi.responses import ORJSONResponse, RedirectResponse

from ..audit import AuditEventType, audit_log
from ..auth import AuthenticatedUser, require_user
from ..middleware.metrics import track_secret_submitted
from ..models import SECRET_MAX_LENGTH, FormPage, SecretsPage
from ..store import CredentialStore, get_store


router = APIRouter(tags=["secrets"])


@router.get("/secrets", response_model=SecretsPage, response_class=ORJSONResponse)
async def list_secrets(
    current_user: AuthenticatedUser = Depends(require_user),
    store: CredentialStore = Depends(get_store),
):
    """The current user's secrets, oldest first."""
    return SecretsPage(secrets=await store.list_secrets(current_user.user_id))


@router.get("/submit", response_model=FormPage, response_class=ORJSONResponse)
async def submit_page(
    current_user: AuthenticatedUser = Depends(require_user),
):
    return FormPage(page="submit", action="/submit", fields=["secret"])


@router.post("/submit")
async def submit_secret(
    request: Request,
    current_user: AuthenticatedUser = Depends(require_user),
    store: CredentialStore = Depends(get_store),
    secret: str = Form(..., min_length=1, max_length=SECRET_MAX_LENGTH),
):
    """Append one secret and show the list.

    Unauthenticated requests are redirected by require_user before the form
    is read, so nothing is written.
    """
    await store.append_secret(current_user.user_id, secret)

    track_secret_submitted()
    audit_log(
        AuditEventType.DATA_CREATED,
        {"length": len(secret)},
        actor=current_user.user_id,
        resource="secret",
        request=request,
    )
    return RedirectResponse("/secrets", status_code=status.HTTP_303_SEE_OTHER)
