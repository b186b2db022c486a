import logging

from fastapi import APIRouter, Depends, File, Form, UploadFile, status
from starlette.concurrency import run_in_threadpool

from app.config import settings
from app.dependencies import get_provisioning_service
from app.schemas.registration import RegistrationResponse, Role
from app.services.provisioning_service import ProvisioningService, UploadedImage
from app.utils.response import create_response, handle_exception

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Registration"])


async def _read_image(upload: UploadFile | None) -> UploadedImage | None:
    if upload is None:
        return None
    # One byte past the limit is enough to reject oversized uploads
    contents = await upload.read(settings.MAX_PROFILE_IMAGE_BYTES + 1)
    return UploadedImage(filename=upload.filename, content_type=upload.content_type, data=contents)


async def _provision(
    service: ProvisioningService,
    role: Role,
    fields: dict,
    upload: UploadFile | None,
    request_id: str | None,
):
    image = await _read_image(upload)
    result = await run_in_threadpool(service.provision, role, fields, image, request_id)
    payload = RegistrationResponse(
        uid=result.uid,
        customToken=result.custom_token,
        handoffCode=result.handoff_code,
        replayed=result.replayed,
    ).model_dump()
    status_code = status.HTTP_200_OK if result.replayed else status.HTTP_201_CREATED
    return create_response(payload, status_code=status_code)


@router.post("/create-provider", status_code=status.HTTP_201_CREATED)
async def create_provider(
    fullName: str | None = Form(None),
    email: str | None = Form(None),
    age: str | None = Form(None),
    password: str | None = Form(None),
    phone: str | None = Form(None),
    tags: str | None = Form(None),
    location: str | None = Form(None),
    serviceArea: str | None = Form(None),
    requestId: str | None = Form(None),
    profileImage: UploadFile | None = File(None),
    service: ProvisioningService = Depends(get_provisioning_service),
):
    try:
        fields = {
            "fullName": fullName,
            "email": email,
            "age": age,
            "password": password,
            "phone": phone,
            "tags": tags,
            "location": location,
            "serviceArea": serviceArea,
        }
        return await _provision(service, Role.provider, fields, profileImage, requestId)
    except Exception as exc:
        return handle_exception(exc)


@router.post("/create-requester", status_code=status.HTTP_201_CREATED)
async def create_requester(
    fullName: str | None = Form(None),
    email: str | None = Form(None),
    age: str | None = Form(None),
    password: str | None = Form(None),
    phone: str | None = Form(None),
    location: str | None = Form(None),
    serviceArea: str | None = Form(None),
    requestId: str | None = Form(None),
    profileImage: UploadFile | None = File(None),
    service: ProvisioningService = Depends(get_provisioning_service),
):
    try:
        fields = {
            "fullName": fullName,
            "email": email,
            "age": age,
            "password": password,
            "phone": phone,
            "location": location,
            "serviceArea": serviceArea,
        }
        return await _provision(service, Role.requester, fields, profileImage, requestId)
    except Exception as exc:
        return handle_exception(exc)
