from fastapi import APIRouter, Depends, Header, HTTPException
from sqlalchemy.orm import Session

from captcha_provider.config import settings
from captcha_provider.database import get_db
from captcha_provider.paths import ApiPaths
from captcha_provider.schemas.dataset import DatasetCreate, DatasetResponse, ProviderDetailsResponse
from captcha_provider.services.crypto_utils import verify_admin_token
from captcha_provider.services.dataset_service import list_datasets, load_dataset
from captcha_provider.services.signer_service import get_provider_address

router = APIRouter()


def extract_bearer_token(authorization: str = Header(...)) -> str:
    """Extract token from Authorization header."""
    if not authorization.startswith("Bearer "):
        raise HTTPException(status_code=401, detail="Invalid authorization header format")
    return authorization[7:]


def require_admin(token: str = Depends(extract_bearer_token)) -> None:
    if not verify_admin_token(token):
        raise HTTPException(status_code=401, detail="Invalid admin token")


@router.post(
    ApiPaths.ADMIN_UPDATE_DATASET.route,
    response_model=DatasetResponse,
    status_code=201,
    dependencies=[Depends(require_admin)],
)
async def upload_dataset(
    dataset: DatasetCreate,
    db: Session = Depends(get_db),
):
    """Load a solved dataset. Loading the same dataset twice returns the stored one."""
    try:
        record = load_dataset(db, dataset)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return DatasetResponse(
        dataset_id=record.dataset_id,
        dataset_content_id=record.dataset_content_id,
        captcha_count=len(dataset.captchas),
    )


@router.get(ApiPaths.GET_PROVIDER_DETAILS.route, response_model=ProviderDetailsResponse)
async def get_provider_details(db: Session = Depends(get_db)):
    return ProviderDetailsResponse(
        address=get_provider_address(),
        url=settings.provider_url,
        datasets=[
            DatasetResponse(
                dataset_id=dataset.dataset_id,
                dataset_content_id=dataset.dataset_content_id,
                captcha_count=count,
            )
            for dataset, count in list_datasets(db)
        ],
    )
