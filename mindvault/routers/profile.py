# profile router — the accumulated core memories

from fastapi import APIRouter, Depends

from mindvault.dependencies import get_store
from mindvault.models.journal import UserProfile
from mindvault.services.store import JournalStore

router = APIRouter(prefix="/profile", tags=["profile"])


@router.get("", response_model=UserProfile)
async def get_profile(store: JournalStore = Depends(get_store)):
    return await store.get_user_profile()
