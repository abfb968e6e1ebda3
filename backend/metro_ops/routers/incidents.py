from typing import List
from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.datastructures import UploadFile
from metro_ops.core.config import settings
from metro_ops.core.database import get_db
from metro_ops.core.events import Notifier, get_notifier
from metro_ops.core.security import Identity, get_current_identity
from metro_ops.core.storage import BlobStore, UploadedBlob, get_blob_store
from metro_ops.schemas.incident import IncidentCreate, IncidentResponse, IncidentUpdate
from metro_ops.services.incident_workflow import DETAIL_POLICIES, IncidentWorkflow

router = APIRouter(
    prefix="/incidents",
    tags=["incidents"],
    responses={404: {"description": "Not found"}},
)

def get_incident_workflow(
    db: AsyncSession = Depends(get_db),
    blob_store: BlobStore = Depends(get_blob_store),
    notifier: Notifier = Depends(get_notifier),
) -> IncidentWorkflow:
    return IncidentWorkflow(
        db,
        blob_store,
        notifier,
        transition_policy=settings.INCIDENT_TRANSITION_POLICY,
        can_view=DETAIL_POLICIES[settings.INCIDENT_DETAIL_POLICY],
    )

@router.post("/", response_model=IncidentResponse)
async def create_incident(
    request: Request,
    identity: Identity = Depends(get_current_identity),
    workflow: IncidentWorkflow = Depends(get_incident_workflow),
):
    """Create a report from a multipart form; every file field becomes an attachment."""
    form = await request.form()
    fields = {}
    blobs = []
    for key, value in form.multi_items():
        if isinstance(value, UploadFile):
            blobs.append(UploadedBlob(
                field_name=key,
                content_type=value.content_type or "",
                filename=value.filename or "",
                data=await value.read(),
            ))
        else:
            fields[key] = value
    payload = IncidentCreate.model_validate(fields)
    return await workflow.create(identity.id, payload, blobs)

@router.get("/", response_model=List[IncidentResponse])
async def list_incidents(
    identity: Identity = Depends(get_current_identity),
    workflow: IncidentWorkflow = Depends(get_incident_workflow),
):
    return await workflow.list(identity)

@router.get("/{incident_id}", response_model=IncidentResponse)
async def get_incident(
    incident_id: int,
    identity: Identity = Depends(get_current_identity),
    workflow: IncidentWorkflow = Depends(get_incident_workflow),
):
    return await workflow.get_detail(incident_id, identity)

@router.put("/{incident_id}", response_model=IncidentResponse)
async def update_incident(
    incident_id: int,
    changes: IncidentUpdate,
    identity: Identity = Depends(get_current_identity),
    workflow: IncidentWorkflow = Depends(get_incident_workflow),
):
    """Review step or reporter edit, depending on who is calling."""
    return await workflow.transition(incident_id, identity, changes)
