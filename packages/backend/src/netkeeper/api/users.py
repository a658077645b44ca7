"""Admin API — bootstrap, login and deletion of the single admin.

- GET    /users/adm/hasadmin      → bare JSON bool, no auth
- POST   /users/adm/createadmin   → master key
- POST   /users/adm/authenticate  → master key; returns the admin's token
- DELETE /users/{username}        → master key or the admin's own token
"""

from fastapi import APIRouter, Depends

from netkeeper.api.deps import admin_service
from netkeeper.auth.dependencies import CurrentIdentity, get_current_identity
from netkeeper.schemas.envelope import Envelope
from netkeeper.schemas.user import AdminCredentials, AdminRead, AuthResult
from netkeeper.services.admin_service import AdminService

router = APIRouter(prefix="/users")


@router.get("/adm/hasadmin", response_model=bool)
async def has_admin(svc: AdminService = Depends(admin_service)):
    return await svc.has_admin()


@router.post("/adm/createadmin", response_model=AdminRead)
async def create_admin(
    body: AdminCredentials,
    identity: CurrentIdentity = Depends(get_current_identity),
    svc: AdminService = Depends(admin_service),
):
    return await svc.create_admin(identity, body.username, body.password)


@router.post("/adm/authenticate", response_model=Envelope[AuthResult])
async def authenticate(
    body: AdminCredentials,
    identity: CurrentIdentity = Depends(get_current_identity),
    svc: AdminService = Depends(admin_service),
):
    identity.require_master_key()
    username, token = await svc.authenticate(body.username, body.password)
    return Envelope[AuthResult](
        Code=200,
        Message="W1R3: Device admin Authorized",
        Response=AuthResult(UserName=username, AuthToken=token),
    )


@router.delete("/{username}", response_model=Envelope)
async def delete_admin(
    username: str,
    identity: CurrentIdentity = Depends(get_current_identity),
    svc: AdminService = Depends(admin_service),
):
    await svc.delete_admin(identity, username)
    return Envelope(Code=200, Message=f"User {username} deleted")
