# shopapi/main.py
import logging
from typing import Any, Dict, Optional, Tuple

from fastapi import APIRouter, BackgroundTasks, Depends, FastAPI, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from fastapi.staticfiles import StaticFiles
from starlette.concurrency import run_in_threadpool
from starlette.datastructures import UploadFile

from .auth import AdminAuth
from .config import DEFAULT_JWT_SECRET, Settings
from .database import InMemoryAdminStore, InMemoryProductStore, connect_mongo
from .errors import StoreAPIError, ValidationError
from .images import ImageIngestor, LocalAssetHost, UploadedImage
from .log import configure_logging
from .logic import (
    create_product_logic, delete_product_logic, get_product_logic,
    list_products_logic, update_product_logic,
)
from .models import (
    CATEGORIES, LoginIn, MessageOut, Product, ProductPage, TokenOut, VerifyOut,
    describe_validation_error,
)
from .query import ProductQuery

logger = logging.getLogger(__name__)

router = APIRouter()
bearer = HTTPBearer(auto_error=False)


# ---------------------------
# Dependencies
# ---------------------------
def require_admin(request: Request,
                  credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer)) -> Dict[str, Any]:
    if credentials:
        token = credentials.credentials
    else:
        # another scheme still carries a token, which then fails verification (403)
        parts = request.headers.get("authorization", "").split(" ")
        token = parts[1] if len(parts) > 1 and parts[1] else None
    return request.app.state.auth.verify(token)


async def read_product_payload(request: Request) -> Tuple[Dict[str, Any], Optional[UploadedImage]]:
    """Accept either multipart/form fields (with an optional ``image`` file) or a JSON object."""
    content_type = request.headers.get("content-type", "")
    fields: Dict[str, Any] = {}
    upload: Optional[UploadedImage] = None

    if content_type.startswith(("multipart/form-data", "application/x-www-form-urlencoded")):
        max_bytes = request.app.state.images.max_bytes
        form = await request.form()
        for key, value in form.multi_items():
            if isinstance(value, UploadFile):
                if key == "image" and value.filename:
                    # one byte past the limit is enough to reject
                    data = await value.read(max_bytes + 1)
                    upload = UploadedImage(value.filename, value.content_type, data)
                continue
            fields[key] = value
        return fields, upload

    try:
        body = await request.json()
    except ValueError:
        raise ValidationError("Request body must be JSON or multipart form data")
    if not isinstance(body, dict):
        raise ValidationError("Request body must be a JSON object")
    return body, None


# ---------------------------
# Product endpoints
# ---------------------------
@router.get("/products", response_model=ProductPage)
def list_products(request: Request,
                  search: Optional[str] = None,
                  category: Optional[str] = None,
                  sort: Optional[str] = None,
                  page: int = Query(1, ge=1),
                  limit: Optional[int] = Query(None, ge=1, le=100)):
    limit = limit or request.app.state.settings.default_page_size
    q = ProductQuery(search=search, category=category, sort=sort, page=page, limit=limit)
    return list_products_logic(request.app.state.store, q)


@router.get("/categories")
def list_categories():
    return list(CATEGORIES)


@router.get("/products/{product_id}", response_model=Product)
def get_product(product_id: str, request: Request):
    return get_product_logic(request.app.state.store, product_id)


@router.post("/products", status_code=201, response_model=Product)
async def create_product(request: Request, _admin: Dict[str, Any] = Depends(require_admin)):
    fields, upload = await read_product_payload(request)
    state = request.app.state
    return await run_in_threadpool(create_product_logic, state.store, state.images, fields, upload)


@router.put("/products/{product_id}", response_model=Product)
async def update_product(product_id: str, request: Request, background_tasks: BackgroundTasks,
                         _admin: Dict[str, Any] = Depends(require_admin)):
    fields, upload = await read_product_payload(request)
    state = request.app.state
    product, replaced = await run_in_threadpool(
        update_product_logic, state.store, state.images, product_id, fields, upload
    )
    if replaced:
        background_tasks.add_task(state.images.discard, replaced)
    return product


@router.delete("/products/{product_id}", response_model=MessageOut)
def delete_product(product_id: str, request: Request, background_tasks: BackgroundTasks,
                   _admin: Dict[str, Any] = Depends(require_admin)):
    state = request.app.state
    image = delete_product_logic(state.store, product_id)
    if image:
        background_tasks.add_task(state.images.discard, image)
    return {"message": "Product deleted successfully"}


# ---------------------------
# Auth endpoints
# ---------------------------
@router.post("/auth/login", response_model=TokenOut)
def login(body: LoginIn, request: Request):
    token = request.app.state.auth.login(body.email, body.password)
    return {"token": token}


@router.get("/auth/verify", response_model=VerifyOut)
def verify(_admin: Dict[str, Any] = Depends(require_admin)):
    return {"valid": True}


# ---------------------------
# Health
# ---------------------------
def root():
    return {"message": "API is running!"}


# ---------------------------
# Error handlers
# ---------------------------
async def _api_error(request: Request, exc: StoreAPIError):
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


async def _request_validation_error(request: Request, exc: RequestValidationError):
    return JSONResponse(status_code=400, content={"error": describe_validation_error(exc.errors())})


async def _unhandled_error(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"error": "Something went wrong!"})


# ---------------------------
# App factory
# ---------------------------
def create_app(settings: Optional[Settings] = None, store=None, admins=None, asset_host=None) -> FastAPI:
    settings = settings or Settings.from_env()
    configure_logging(settings.log_level)

    if store is None or admins is None:
        if settings.mongodb_uri:
            default_store, default_admins = connect_mongo(settings.mongodb_uri, settings.mongodb_db)
        else:
            logger.warning("MONGODB_URI not set, products are kept in memory")
            default_store, default_admins = InMemoryProductStore(), InMemoryAdminStore()
        store = store or default_store
        admins = admins or default_admins

    if settings.jwt_secret == DEFAULT_JWT_SECRET:
        logger.warning("JWT_SECRET not set, using the development default")

    asset_host = asset_host or LocalAssetHost(settings.upload_dir, settings.upload_url_prefix)

    app = FastAPI(title="storefront-api")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.settings = settings
    app.state.store = store
    app.state.auth = AdminAuth(admins, settings.jwt_secret, settings.jwt_expires_hours)
    app.state.images = ImageIngestor(asset_host, settings.max_upload_bytes)

    if settings.admin_email and settings.admin_password:
        app.state.auth.seed_admin(settings.admin_email, settings.admin_password)

    app.add_exception_handler(StoreAPIError, _api_error)
    app.add_exception_handler(RequestValidationError, _request_validation_error)
    app.add_exception_handler(Exception, _unhandled_error)

    app.add_api_route("/", root, methods=["GET"])
    app.include_router(router, prefix="/api")
    if isinstance(asset_host, LocalAssetHost):
        app.mount(asset_host.url_prefix, StaticFiles(directory=asset_host.directory), name="uploads")

    logger.info("Storefront API ready (store=%s)", type(store).__name__)
    return app


if __name__ == "__main__":
    import os

    import uvicorn

    uvicorn.run(create_app, factory=True, host="0.0.0.0", port=int(os.getenv("PORT", 5000)))
