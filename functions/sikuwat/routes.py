"""
HTTP routes for the Sikuwat API.
"""

from __future__ import annotations

import logging
import mimetypes
import time
from datetime import date

from fastapi import (
    APIRouter,
    Depends,
    File,
    HTTPException,
    Query,
    Response,
    UploadFile,
)
from fastapi.responses import JSONResponse

from shared.constants import (
    DEFAULT_DASHBOARD_LIMIT,
    DEFAULT_TIP_CATEGORY,
    IMAGE_UPLOAD_PREFIX,
    LOCAL_MODEL_NAME,
)
from shared.types import HarvestFilter, Role
from sikuwat import chat
from sikuwat.auth import AuthClient, AuthError, AuthUser
from sikuwat.config import Settings, get_settings
from sikuwat.db import (
    ArticleRecord,
    DbClient,
    MarketPriceRecord,
    PlantingRecord,
    ProfileRecord,
    TipRecord,
    new_record_id,
    utc_now_iso,
)
from sikuwat.dependencies import (
    PENDING_APPROVAL,
    get_access_token,
    get_auth_client,
    get_current_user,
    get_db_client,
    get_optional_user,
    get_storage_client,
    require_admin,
    require_farmer,
)
from sikuwat.fetch_utils import FetchError, fetch_article_preview
from sikuwat.schemas import (
    ArticlePayload,
    ArticlePreviewRequest,
    ChatRequest,
    ChatResponse,
    DataResponse,
    HarvestPayload,
    MarketPricePayload,
    MessageResponse,
    PlantingPayload,
    SignInRequest,
    SignUpRequest,
    TipPayload,
    UploadResponse,
)
from sikuwat.stats import (
    calculate_planting_stats,
    export_plantings_csv,
    filter_plantings,
    monthly_harvest_series,
)
from sikuwat.storage import StorageClient
from sikuwat.validation import (
    ValidationResult,
    validate_article,
    validate_market_price,
    validate_planting,
    validate_tip,
)

logger = logging.getLogger(__name__)

router = APIRouter()

PLANTING_NOT_FOUND = "Planting data not found or unauthorized"
PLANTING_FIELDS = (
    "seed_type",
    "seed_count",
    "planting_date",
    "harvest_date",
    "harvest_yield",
    "sales_amount",
)


def _ensure_valid(result: ValidationResult) -> None:
    if not result.is_valid:
        raise HTTPException(
            status_code=400,
            detail={"error": "Validation failed", "details": result.errors},
        )


def _strip(value: str | None) -> str | None:
    return value.strip() if isinstance(value, str) else value


@router.get("/health")
def health():
    return {"status": "ok"}


# ---------------------------------------------------------------------------
# Auth
# ---------------------------------------------------------------------------


@router.post("/auth/signup", response_model=DataResponse, status_code=201)
def sign_up(
    payload: SignUpRequest,
    auth: AuthClient = Depends(get_auth_client),
    db: DbClient = Depends(get_db_client),
    settings: Settings = Depends(get_settings),
):
    email = _strip(payload.email)
    name = _strip(payload.name)
    if not email or not payload.password or not name or not payload.role:
        raise HTTPException(status_code=400, detail="All fields are required")
    try:
        role = Role(payload.role)
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid role")
    if role == Role.ADMIN and not settings.allow_admin_signup:
        raise HTTPException(status_code=403, detail="Admin signup is disabled")

    try:
        user = auth.sign_up(
            email, payload.password, {"name": name, "role": role.value}
        )
    except AuthError as exc:
        logger.warning("Signup rejected for %s: %s", email, exc.message)
        raise HTTPException(status_code=400, detail=exc.message)

    profile = db.save_profile(
        ProfileRecord(
            id=user.id,
            email=user.email,
            name=name,
            role=role,
            is_approved=role == Role.ADMIN,
        )
    )
    return DataResponse(
        data={
            "user": user.as_dict(),
            "profile": profile.as_dict(),
            "requires_approval": not profile.is_approved,
        }
    )


@router.post("/auth/signin", response_model=DataResponse)
def sign_in(
    payload: SignInRequest,
    auth: AuthClient = Depends(get_auth_client),
    db: DbClient = Depends(get_db_client),
):
    email = _strip(payload.email)
    if not email or not payload.password:
        raise HTTPException(status_code=400, detail="Email and password are required")
    try:
        session = auth.sign_in(email, payload.password)
    except AuthError as exc:
        raise HTTPException(status_code=exc.status_code, detail=exc.message)

    role = session.user.role
    if role == Role.USER:
        profile = db.get_profile(session.user.id)
        if profile is None or not profile.is_approved:
            auth.sign_out(session.access_token)
            raise HTTPException(status_code=403, detail=PENDING_APPROVAL)

    return DataResponse(
        data={
            "access_token": session.access_token,
            "user": session.user.as_dict(),
            "role": role,
        }
    )


@router.get("/auth/session")
def session_check(user: AuthUser | None = Depends(get_optional_user)):
    if user is None:
        return JSONResponse(status_code=401, content={"authenticated": False})
    return {"authenticated": True, "user": user.as_dict(), "role": user.role}


@router.post("/auth/signout", response_model=MessageResponse)
def sign_out(
    token: str | None = Depends(get_access_token),
    auth: AuthClient = Depends(get_auth_client),
):
    if token:
        auth.sign_out(token)
    return MessageResponse(message="Signed out")


# ---------------------------------------------------------------------------
# Market prices
# ---------------------------------------------------------------------------


@router.get("/market-prices", response_model=DataResponse)
def list_market_prices(
    limit: int | None = Query(None, ge=1, le=500),
    db: DbClient = Depends(get_db_client),
):
    return DataResponse(data=[p.as_dict() for p in db.list_market_prices(limit)])


@router.get("/market-prices/{price_id}", response_model=DataResponse)
def get_market_price(price_id: str, db: DbClient = Depends(get_db_client)):
    record = db.get_market_price(price_id)
    if not record:
        raise HTTPException(status_code=404, detail="Market price not found")
    return DataResponse(data=record.as_dict())


@router.post("/admin/market-prices", response_model=DataResponse, status_code=201)
def create_market_price(
    payload: MarketPricePayload,
    user: AuthUser = Depends(require_admin),
    db: DbClient = Depends(get_db_client),
):
    result = validate_market_price(payload.model_dump())
    _ensure_valid(result)
    record = db.add_market_price(
        MarketPriceRecord(
            id=new_record_id("price"),
            commodity=payload.commodity.strip(),
            price=payload.price,
            unit=payload.unit.strip(),
            date=payload.date or utc_now_iso(),
            created_by=user.id,
        )
    )
    return DataResponse(data=record.as_dict(), warnings=result.warnings)


@router.put("/admin/market-prices/{price_id}", response_model=DataResponse)
def update_market_price(
    price_id: str,
    payload: MarketPricePayload,
    _: AuthUser = Depends(require_admin),
    db: DbClient = Depends(get_db_client),
):
    existing = db.get_market_price(price_id)
    if not existing:
        raise HTTPException(status_code=404, detail="Market price not found")
    changes = {
        key: _strip(value)
        for key, value in payload.model_dump(exclude_unset=True).items()
        if value is not None
    }
    result = validate_market_price({**existing.as_dict(), **changes})
    _ensure_valid(result)
    record = db.update_market_price(price_id, changes)
    return DataResponse(data=record.as_dict(), warnings=result.warnings)


@router.delete("/admin/market-prices/{price_id}", response_model=MessageResponse)
def delete_market_price(
    price_id: str,
    _: AuthUser = Depends(require_admin),
    db: DbClient = Depends(get_db_client),
):
    if not db.delete_market_price(price_id):
        raise HTTPException(status_code=404, detail="Market price not found")
    return MessageResponse(message="Market price deleted successfully")


# ---------------------------------------------------------------------------
# Tips
# ---------------------------------------------------------------------------


@router.get("/tips", response_model=DataResponse)
def list_tips(
    limit: int | None = Query(None, ge=1, le=500),
    db: DbClient = Depends(get_db_client),
):
    return DataResponse(data=[t.as_dict() for t in db.list_tips(limit)])


@router.get("/tips/{tip_id}", response_model=DataResponse)
def get_tip(tip_id: str, db: DbClient = Depends(get_db_client)):
    record = db.get_tip(tip_id)
    if not record:
        raise HTTPException(status_code=404, detail="Tip not found")
    return DataResponse(data=record.as_dict())


@router.post("/admin/tips", response_model=DataResponse, status_code=201)
def create_tip(
    payload: TipPayload,
    user: AuthUser = Depends(require_admin),
    db: DbClient = Depends(get_db_client),
):
    result = validate_tip(payload.model_dump())
    _ensure_valid(result)
    record = db.add_tip(
        TipRecord(
            id=new_record_id("tip"),
            title=payload.title.strip(),
            content=payload.content.strip(),
            category=_strip(payload.category) or DEFAULT_TIP_CATEGORY,
            created_by=user.id,
        )
    )
    return DataResponse(data=record.as_dict(), warnings=result.warnings)


@router.put("/admin/tips/{tip_id}", response_model=DataResponse)
def update_tip(
    tip_id: str,
    payload: TipPayload,
    _: AuthUser = Depends(require_admin),
    db: DbClient = Depends(get_db_client),
):
    existing = db.get_tip(tip_id)
    if not existing:
        raise HTTPException(status_code=404, detail="Tip not found")
    changes = {
        key: _strip(value)
        for key, value in payload.model_dump(exclude_unset=True).items()
        if value is not None
    }
    if "category" in changes and not changes["category"]:
        changes["category"] = DEFAULT_TIP_CATEGORY
    result = validate_tip({**existing.as_dict(), **changes})
    _ensure_valid(result)
    record = db.update_tip(tip_id, changes)
    return DataResponse(data=record.as_dict(), warnings=result.warnings)


@router.delete("/admin/tips/{tip_id}", response_model=MessageResponse)
def delete_tip(
    tip_id: str,
    _: AuthUser = Depends(require_admin),
    db: DbClient = Depends(get_db_client),
):
    if not db.delete_tip(tip_id):
        raise HTTPException(status_code=404, detail="Tip not found")
    return MessageResponse(message="Tip deleted successfully")


# ---------------------------------------------------------------------------
# Articles
# ---------------------------------------------------------------------------


@router.get("/articles", response_model=DataResponse)
def list_articles(
    limit: int | None = Query(None, ge=1, le=500),
    db: DbClient = Depends(get_db_client),
):
    return DataResponse(data=[a.as_dict() for a in db.list_articles(limit)])


@router.get("/articles/{article_id}", response_model=DataResponse)
def get_article(article_id: str, db: DbClient = Depends(get_db_client)):
    record = db.get_article(article_id)
    if not record:
        raise HTTPException(status_code=404, detail="Article not found")
    return DataResponse(data=record.as_dict())


@router.post("/admin/articles", response_model=DataResponse, status_code=201)
def create_article(
    payload: ArticlePayload,
    user: AuthUser = Depends(require_admin),
    db: DbClient = Depends(get_db_client),
):
    result = validate_article(payload.model_dump())
    _ensure_valid(result)
    record = db.add_article(
        ArticleRecord(
            id=new_record_id("article"),
            title=payload.title.strip(),
            content=payload.content.strip(),
            source=_strip(payload.source) or "",
            url=_strip(payload.url) or "",
            image_url=_strip(payload.image_url) or "",
            created_by=user.id,
        )
    )
    return DataResponse(data=record.as_dict(), warnings=result.warnings)


@router.put("/admin/articles/{article_id}", response_model=DataResponse)
def update_article(
    article_id: str,
    payload: ArticlePayload,
    _: AuthUser = Depends(require_admin),
    db: DbClient = Depends(get_db_client),
):
    existing = db.get_article(article_id)
    if not existing:
        raise HTTPException(status_code=404, detail="Article not found")
    changes = {
        key: _strip(value)
        for key, value in payload.model_dump(exclude_unset=True).items()
        if value is not None
    }
    result = validate_article({**existing.as_dict(), **changes})
    _ensure_valid(result)
    record = db.update_article(article_id, changes)
    return DataResponse(data=record.as_dict(), warnings=result.warnings)


@router.delete("/admin/articles/{article_id}", response_model=MessageResponse)
def delete_article(
    article_id: str,
    _: AuthUser = Depends(require_admin),
    db: DbClient = Depends(get_db_client),
):
    if not db.delete_article(article_id):
        raise HTTPException(status_code=404, detail="Article not found")
    return MessageResponse(message="Article deleted successfully")


@router.post("/admin/articles/preview", response_model=DataResponse)
def preview_article(
    payload: ArticlePreviewRequest,
    _: AuthUser = Depends(require_admin),
    settings: Settings = Depends(get_settings),
):
    url = payload.url.strip()
    if not url:
        raise HTTPException(status_code=400, detail="URL is required")
    try:
        preview = fetch_article_preview(url, timeout=settings.request_timeout)
    except FetchError as exc:
        raise HTTPException(status_code=502, detail=str(exc))
    return DataResponse(data=preview.as_dict())


# ---------------------------------------------------------------------------
# Admin extras
# ---------------------------------------------------------------------------


@router.get("/admin/user-data", response_model=DataResponse)
def list_all_plantings(
    _: AuthUser = Depends(require_admin),
    db: DbClient = Depends(get_db_client),
):
    return DataResponse(data=[p.as_dict() for p in db.list_plantings()])


@router.get("/admin/stats", response_model=DataResponse)
def all_planting_stats(
    _: AuthUser = Depends(require_admin),
    db: DbClient = Depends(get_db_client),
):
    plantings = db.list_plantings()
    return DataResponse(
        data={
            "stats": calculate_planting_stats(plantings).as_dict(),
            "monthly": [m.as_dict() for m in monthly_harvest_series(plantings)],
        }
    )


@router.get("/admin/pending-users", response_model=DataResponse)
def list_pending_users(
    _: AuthUser = Depends(require_admin),
    db: DbClient = Depends(get_db_client),
):
    return DataResponse(data=[p.as_dict() for p in db.list_pending_profiles()])


@router.post("/admin/users/{user_id}/approve", response_model=DataResponse)
def approve_user(
    user_id: str,
    _: AuthUser = Depends(require_admin),
    db: DbClient = Depends(get_db_client),
):
    profile = db.approve_profile(user_id)
    if not profile:
        raise HTTPException(status_code=404, detail="User not found")
    logger.info("Approved user %s", user_id)
    return DataResponse(data=profile.as_dict())


@router.delete("/admin/users/{user_id}", response_model=MessageResponse)
def reject_user(
    user_id: str,
    _: AuthUser = Depends(require_admin),
    db: DbClient = Depends(get_db_client),
):
    if not db.delete_profile(user_id):
        raise HTTPException(status_code=404, detail="User not found")
    logger.info("Rejected user %s", user_id)
    return MessageResponse(message="User rejected")


def _image_extension(filename: str | None, content_type: str) -> str:
    extension = ""
    if filename and "." in filename:
        extension = filename.rsplit(".", 1)[1].lower()
    guessed_type = mimetypes.guess_type(f"upload.{extension}")[0] or ""
    if extension.isascii() and extension.isalnum() and guessed_type.startswith("image/"):
        return extension
    return (mimetypes.guess_extension(content_type) or ".bin").lstrip(".")


@router.post("/admin/uploads/images", response_model=UploadResponse, status_code=201)
async def upload_image(
    file: UploadFile = File(...),
    _: AuthUser = Depends(require_admin),
    storage: StorageClient = Depends(get_storage_client),
    settings: Settings = Depends(get_settings),
):
    content_type = file.content_type or ""
    if not content_type.startswith("image/"):
        raise HTTPException(status_code=400, detail="Image file required")

    data = await file.read()
    if len(data) > settings.max_upload_bytes:
        raise HTTPException(status_code=413, detail="Image too large")

    extension = _image_extension(file.filename, content_type)
    path = f"{IMAGE_UPLOAD_PREFIX}/{int(time.time() * 1000)}.{extension}"
    storage.upload_bytes(path, data, content_type)
    return UploadResponse(url=storage.public_url(path), path=path)


# ---------------------------------------------------------------------------
# Plantings
# ---------------------------------------------------------------------------


def _owned_planting(db: DbClient, planting_id: str, user: AuthUser) -> PlantingRecord:
    planting = db.get_planting(planting_id)
    if planting is None or planting.user_id != user.id:
        raise HTTPException(status_code=404, detail=PLANTING_NOT_FOUND)
    return planting


@router.post("/user/plantings", response_model=DataResponse, status_code=201)
def create_planting(
    payload: PlantingPayload,
    user: AuthUser = Depends(require_farmer),
    db: DbClient = Depends(get_db_client),
):
    _ensure_valid(validate_planting(payload.model_dump()))
    profile = db.get_profile(user.id)
    user_name = (profile.name if profile else None) or user.name or user.email
    record = db.add_planting(
        PlantingRecord(
            id=new_record_id("planting"),
            user_id=user.id,
            user_name=user_name,
            seed_type=payload.seed_type.strip(),
            seed_count=int(payload.seed_count),
            planting_date=payload.planting_date,
            harvest_date=payload.harvest_date or None,
            harvest_yield=payload.harvest_yield,
            sales_amount=payload.sales_amount,
        )
    )
    return DataResponse(data=record.as_dict())


@router.get("/user/plantings", response_model=DataResponse)
def list_my_plantings(
    user: AuthUser = Depends(get_current_user),
    db: DbClient = Depends(get_db_client),
):
    return DataResponse(data=[p.as_dict() for p in db.list_plantings(user.id)])


@router.get("/user/plantings/unharvested", response_model=DataResponse)
def list_my_unharvested_plantings(
    user: AuthUser = Depends(get_current_user),
    db: DbClient = Depends(get_db_client),
):
    plantings = db.list_plantings(user.id, unharvested_only=True)
    return DataResponse(data=[p.as_dict() for p in plantings])


@router.get("/user/plantings/export")
def export_my_plantings(
    search: str = Query(""),
    status: HarvestFilter = Query(HarvestFilter.ALL),
    user: AuthUser = Depends(get_current_user),
    db: DbClient = Depends(get_db_client),
):
    plantings = filter_plantings(db.list_plantings(user.id), search, status)
    filename = f"data-tanam-{date.today().isoformat()}.csv"
    return Response(
        content=export_plantings_csv(plantings),
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.put("/user/plantings/{planting_id}", response_model=DataResponse)
def update_planting(
    planting_id: str,
    payload: PlantingPayload,
    user: AuthUser = Depends(get_current_user),
    db: DbClient = Depends(get_db_client),
):
    existing = _owned_planting(db, planting_id, user)
    changes = {
        key: value
        for key, value in payload.model_dump(exclude_unset=True).items()
        if key in PLANTING_FIELDS
    }
    if "harvest_date" in changes:
        changes["harvest_date"] = _strip(changes["harvest_date"]) or None
    _ensure_valid(validate_planting({**existing.as_dict(), **changes}))
    if changes.get("seed_count") is not None:
        changes["seed_count"] = int(changes["seed_count"])
    if "seed_type" in changes and changes["seed_type"]:
        changes["seed_type"] = changes["seed_type"].strip()
    record = db.update_planting(planting_id, changes)
    return DataResponse(data=record.as_dict())


@router.post("/user/plantings/{planting_id}/harvest", response_model=DataResponse)
def record_harvest(
    planting_id: str,
    payload: HarvestPayload,
    user: AuthUser = Depends(require_farmer),
    db: DbClient = Depends(get_db_client),
):
    existing = _owned_planting(db, planting_id, user)
    if existing.is_harvested:
        raise HTTPException(status_code=409, detail="Planting already harvested")
    if not payload.harvest_date or payload.harvest_yield is None:
        raise HTTPException(
            status_code=400,
            detail="Tanggal panen dan hasil panen harus diisi",
        )

    sales_amount = payload.sales_amount
    if sales_amount is None and payload.selling_price is not None:
        sales_amount = payload.selling_price * payload.harvest_yield
    changes = {
        "harvest_date": payload.harvest_date,
        "harvest_yield": payload.harvest_yield,
        "sales_amount": sales_amount,
    }
    _ensure_valid(validate_planting({**existing.as_dict(), **changes}))
    record = db.update_planting(planting_id, changes)
    return DataResponse(data=record.as_dict())


@router.delete("/user/plantings/{planting_id}", response_model=MessageResponse)
def delete_planting(
    planting_id: str,
    user: AuthUser = Depends(get_current_user),
    db: DbClient = Depends(get_db_client),
):
    _owned_planting(db, planting_id, user)
    db.delete_planting(planting_id)
    return MessageResponse(message="Planting data deleted successfully")


@router.get("/user/stats", response_model=DataResponse)
def my_planting_stats(
    user: AuthUser = Depends(get_current_user),
    db: DbClient = Depends(get_db_client),
):
    plantings = db.list_plantings(user.id)
    return DataResponse(
        data={
            "stats": calculate_planting_stats(plantings).as_dict(),
            "monthly": [m.as_dict() for m in monthly_harvest_series(plantings)],
        }
    )


# ---------------------------------------------------------------------------
# Dashboard and chat
# ---------------------------------------------------------------------------


@router.get("/dashboard", response_model=DataResponse)
def dashboard(
    limit: int = Query(DEFAULT_DASHBOARD_LIMIT, ge=1, le=50),
    db: DbClient = Depends(get_db_client),
):
    return DataResponse(
        data={
            "market_prices": [p.as_dict() for p in db.list_market_prices(limit)],
            "articles": [a.as_dict() for a in db.list_articles(limit)],
            "tips": [t.as_dict() for t in db.list_tips(limit)],
        }
    )


def _require_message(payload: ChatRequest) -> str:
    message = (payload.message or "").strip()
    if not message:
        raise HTTPException(status_code=400, detail="Message is required")
    return message


@router.post("/chat", response_model=ChatResponse)
def chat_completion(
    payload: ChatRequest,
    db: DbClient = Depends(get_db_client),
    settings: Settings = Depends(get_settings),
):
    message = _require_message(payload)
    context = payload.context
    result = chat.answer_chat(
        message,
        db=db,
        api_key=settings.gemini_api_key,
        model=settings.gemini_model,
        system_prompt=payload.system_prompt or "",
        context_articles=context.articles if context else None,
        context_tips=context.tips if context else None,
        detail=payload.detail,
    )
    return ChatResponse(success=True, **result.as_dict())


@router.post("/chat/local", response_model=ChatResponse)
def chat_local(payload: ChatRequest):
    message = _require_message(payload)
    context = payload.context
    response = chat.generate_local_answer(
        message,
        context.articles if context else None,
        context.tips if context else None,
        payload.detail,
    )
    return ChatResponse(
        success=True,
        response=response,
        is_local=True,
        model=LOCAL_MODEL_NAME,
    )
