from fastapi import APIRouter, Depends, File, HTTPException, UploadFile
from starlette.concurrency import run_in_threadpool

from wingx.api.deps import get_uploader, require_payments_role
from wingx.application.catalog import AVAILABLE_SIZES, CATALOG_PATH, GENDERS, MAX_IMAGES, PRODUCT_CATEGORIES
from wingx.application.schemas import (
    CategorySelect,
    DraftFieldsUpdate,
    DraftRead,
    ImageRef,
    ProductRead,
    PublishResponse,
)
from wingx.application.session import DashboardSession
from wingx.domain.errors import DraftValidationError, PersistenceError, UploadError
from wingx.infrastructure.imagekit import ImageKitUploader

router = APIRouter(prefix="/api/store", tags=["store"])


def _invalid(error: DraftValidationError) -> HTTPException:
    return HTTPException(status_code=422, detail={"field": error.field, "message": error.message})


@router.get("/products", response_model=list[ProductRead])
async def list_products(session: DashboardSession = Depends(require_payments_role)):
    return await run_in_threadpool(session.publisher.list)


@router.get("/catalog-options")
def catalog_options():
    return {
        "categories": PRODUCT_CATEGORIES,
        "sizes": AVAILABLE_SIZES,
        "genders": GENDERS,
        "max_images": MAX_IMAGES,
    }


# ---- new product form ----

@router.get("/products/new", response_model=DraftRead)
async def get_draft(session: DashboardSession = Depends(require_payments_role)):
    return session.draft.read()


@router.patch("/products/new", response_model=DraftRead)
async def update_draft(payload: DraftFieldsUpdate, session: DashboardSession = Depends(require_payments_role)):
    try:
        session.draft.update_fields(**payload.model_dump(exclude_unset=True))
    except DraftValidationError as e:
        raise _invalid(e)
    return session.draft.read()


@router.post("/products/new/category", response_model=DraftRead)
async def select_category(payload: CategorySelect, session: DashboardSession = Depends(require_payments_role)):
    try:
        session.draft.select_main_category(payload.category)
    except DraftValidationError as e:
        raise _invalid(e)
    return session.draft.read()


@router.post("/products/new/subcategories", response_model=DraftRead)
async def toggle_subcategory(payload: CategorySelect, session: DashboardSession = Depends(require_payments_role)):
    try:
        session.draft.toggle_subcategory(payload.category)
    except DraftValidationError as e:
        raise _invalid(e)
    return session.draft.read()


@router.post("/products/new/sizes/{size}", response_model=DraftRead)
async def toggle_size(size: str, session: DashboardSession = Depends(require_payments_role)):
    try:
        session.draft.toggle_size(size)
    except DraftValidationError as e:
        raise _invalid(e)
    return session.draft.read()


@router.post("/products/new/images", response_model=DraftRead)
async def upload_image(
    file: UploadFile = File(...),
    session: DashboardSession = Depends(require_payments_role),
    uploader: ImageKitUploader = Depends(get_uploader),
):
    content = await file.read()
    try:
        await session.publisher.upload_image(
            session.draft, uploader, content, file.content_type or "application/octet-stream"
        )
    except DraftValidationError as e:
        raise _invalid(e)
    except UploadError as e:
        raise HTTPException(status_code=502, detail=e.message)
    return session.draft.read()


@router.delete("/products/new/images", response_model=DraftRead)
async def remove_image(url: str, session: DashboardSession = Depends(require_payments_role)):
    session.draft.remove_image(url)
    return session.draft.read()


@router.put("/products/new/cover", response_model=DraftRead)
async def set_cover(payload: ImageRef, session: DashboardSession = Depends(require_payments_role)):
    try:
        session.draft.set_cover(payload.url)
    except DraftValidationError as e:
        raise _invalid(e)
    return session.draft.read()


@router.post("/products/new/publish", response_model=PublishResponse, status_code=201)
async def publish(session: DashboardSession = Depends(require_payments_role)):
    try:
        product = await session.publisher.publish(session.draft)
    except DraftValidationError as e:
        raise _invalid(e)
    except PersistenceError as e:
        raise HTTPException(status_code=502, detail=e.message)
    return PublishResponse(product=product, redirect=CATALOG_PATH)
