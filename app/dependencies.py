from fastapi import Depends
from sqlalchemy.orm import Session

from app.database import get_db
from app.services.firebase_service import FirebaseIdentityProvider, FirestoreProfileStore
from app.services.provisioning_service import ProvisioningService
from app.services.spaces_service import build_image_store


def get_identity_provider() -> FirebaseIdentityProvider:
    return FirebaseIdentityProvider()


def get_profile_store() -> FirestoreProfileStore:
    return FirestoreProfileStore()


def get_image_store():
    return build_image_store()


def get_provisioning_service(
    identity=Depends(get_identity_provider),
    profiles=Depends(get_profile_store),
    images=Depends(get_image_store),
    db: Session = Depends(get_db),
) -> ProvisioningService:
    return ProvisioningService(identity=identity, profiles=profiles, images=images, db=db)
