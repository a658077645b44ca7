"""Network and access key API routes.

Routes handle HTTP concerns only; authorization and all invariants live
in NetworkService / AccessKeyService. Every route here needs the master
key, which the services check.
"""

from typing import Optional

from fastapi import APIRouter, Depends

from netkeeper.api.deps import access_key_service, network_service
from netkeeper.auth.dependencies import CurrentIdentity, get_current_identity
from netkeeper.schemas.envelope import Envelope
from netkeeper.schemas.network import (
    AccessKeyCreate,
    AccessKeyRead,
    ConsumeRequest,
    ConsumeResult,
    NetworkCreate,
    NetworkRead,
)
from netkeeper.services.access_key_service import AccessKeyService
from netkeeper.services.network_service import NetworkService

router = APIRouter(prefix="/networks")


# ─── Networks ───────────────────────────────────────────

@router.post("", response_model=NetworkRead)
async def create_network(
    body: NetworkCreate,
    identity: CurrentIdentity = Depends(get_current_identity),
    svc: NetworkService = Depends(network_service),
):
    return await svc.create_network(identity, body.netid, body.addressrange)


@router.get("", response_model=list[NetworkRead])
async def list_networks(
    identity: CurrentIdentity = Depends(get_current_identity),
    svc: NetworkService = Depends(network_service),
):
    return await svc.list_networks(identity)


@router.get("/{netid}", response_model=NetworkRead)
async def get_network(
    netid: str,
    identity: CurrentIdentity = Depends(get_current_identity),
    svc: NetworkService = Depends(network_service),
):
    return await svc.get_network(identity, netid)


@router.delete("/{netid}", response_model=Envelope)
async def delete_network(
    netid: str,
    identity: CurrentIdentity = Depends(get_current_identity),
    svc: NetworkService = Depends(network_service),
):
    keys_deleted = await svc.delete_network(identity, netid)
    return Envelope(
        Code=200,
        Message=f"Network {netid} deleted ({keys_deleted} access keys removed)",
    )


# ─── Access keys ────────────────────────────────────────

@router.post("/{netid}/keys", response_model=AccessKeyRead)
async def create_key(
    netid: str,
    body: AccessKeyCreate,
    identity: CurrentIdentity = Depends(get_current_identity),
    svc: AccessKeyService = Depends(access_key_service),
):
    return await svc.create_key(identity, netid, body.name, body.uses)


@router.get("/{netid}/keys", response_model=list[AccessKeyRead])
async def list_keys(
    netid: str,
    identity: CurrentIdentity = Depends(get_current_identity),
    svc: AccessKeyService = Depends(access_key_service),
):
    return await svc.list_keys(identity, netid)


@router.get("/{netid}/keys/{name}", response_model=AccessKeyRead)
async def get_key(
    netid: str,
    name: str,
    identity: CurrentIdentity = Depends(get_current_identity),
    svc: AccessKeyService = Depends(access_key_service),
):
    return await svc.get_key(identity, netid, name)


@router.delete("/{netid}/keys/{name}", response_model=Envelope)
async def delete_key(
    netid: str,
    name: str,
    identity: CurrentIdentity = Depends(get_current_identity),
    svc: AccessKeyService = Depends(access_key_service),
):
    await svc.delete_key(identity, netid, name)
    return Envelope(Code=200, Message=f"Access key {name} deleted")


@router.post("/{netid}/keys/{name}/consume", response_model=Envelope[ConsumeResult])
async def consume_key(
    netid: str,
    name: str,
    body: Optional[ConsumeRequest] = None,
    identity: CurrentIdentity = Depends(get_current_identity),
    svc: AccessKeyService = Depends(access_key_service),
):
    attempt_id = body.attempt_id if body else None
    consumption = await svc.consume_key(identity, netid, name, attempt_id=attempt_id)
    return Envelope[ConsumeResult](
        Code=200,
        Message="Access key consumed",
        Response=ConsumeResult(
            name=consumption.name,
            network=consumption.network,
            value=consumption.value,
            uses=consumption.uses_remaining,
            replayed=consumption.replayed,
        ),
    )
