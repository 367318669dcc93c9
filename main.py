import logging
from contextlib import asynccontextmanager
from typing import List, Optional

from fastapi import APIRouter, Depends, FastAPI, HTTPException, Request, Response, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pymongo.errors import PyMongoError

from auth import (
    end_session,
    get_current_user,
    get_password_hash,
    public_user,
    request_token,
    session_user_id,
    start_session,
    verify_password,
)
from config import Settings, configure_logging, get_settings
from database import AdminDatabase
from schemas import (
    Category,
    CategoryCreate,
    CategoryUpdate,
    ConnectionResult,
    ConnectionTest,
    LoginRequest,
    Product,
    ProductCreate,
    ProductUpdate,
    Shop,
    ShopCreate,
    ShopRecord,
    ShopUpdate,
    Stats,
    User,
    UserCreate,
)
from storage import ConflictError, Storage, get_storage

logger = logging.getLogger(__name__)

CONNECTION_FAILED = "Cannot connect to provided MongoDB URI"

# routes under /api reachable without a session
PUBLIC_PATHS = {"/api/register", "/api/login", "/api/logout"}


def shop_or_404(storage: Storage, shop_id: str) -> ShopRecord:
    shop = storage.get_shop_internal(shop_id)
    if not shop:
        raise HTTPException(404, "Shop not found")
    return shop


# Auth
auth_router = APIRouter(prefix="/api")


@auth_router.post("/register", response_model=User, status_code=201)
def register(
    user: UserCreate,
    response: Response,
    settings: Settings = Depends(get_settings),
    storage: Storage = Depends(get_storage),
):
    if storage.get_user_by_email(user.email):
        raise HTTPException(400, "Email already registered")
    data = user.model_copy(update={"password": get_password_hash(user.password)})
    try:
        created = storage.create_user(data)
    except ConflictError as e:
        raise HTTPException(400, str(e))
    start_session(response, created, settings)
    return public_user(created)


@auth_router.post("/login", response_model=User)
def login(
    req: LoginRequest,
    response: Response,
    settings: Settings = Depends(get_settings),
    storage: Storage = Depends(get_storage),
):
    user = storage.get_user_by_email(req.username) or storage.get_user_by_username(req.username)
    if not user or not verify_password(req.password, user.password):
        raise HTTPException(401, "Invalid email or password")
    start_session(response, user, settings)
    return public_user(user)


@auth_router.post("/logout")
def logout(response: Response, settings: Settings = Depends(get_settings)):
    end_session(response, settings)
    return {"success": True}


# Everything below requires a session
api = APIRouter(prefix="/api", dependencies=[Depends(get_current_user)])


@api.get("/user", response_model=User)
def me(current: User = Depends(get_current_user)):
    return current


# Shops
@api.get("/shops", response_model=List[Shop])
def list_shops(storage: Storage = Depends(get_storage)):
    return storage.get_shops()


@api.post("/shops", response_model=Shop, status_code=201)
def create_shop(payload: ShopCreate, storage: Storage = Depends(get_storage)):
    if not storage.test_connection(payload.mongo_uri):
        logger.warning("Refusing to create shop %s: database unreachable", payload.name)
        raise HTTPException(400, CONNECTION_FAILED)
    return storage.create_shop(payload, status="active")


@api.get("/shops/{shop_id}", response_model=Shop)
def get_shop(shop_id: str, storage: Storage = Depends(get_storage)):
    shop = storage.get_shop(shop_id)
    if not shop:
        raise HTTPException(404, "Shop not found")
    return shop


@api.put("/shops/{shop_id}", response_model=Shop)
def update_shop(shop_id: str, payload: ShopUpdate, storage: Storage = Depends(get_storage)):
    current = shop_or_404(storage, shop_id)
    if payload.mongo_uri and payload.mongo_uri != current.mongo_uri:
        if not storage.test_connection(payload.mongo_uri):
            raise HTTPException(400, CONNECTION_FAILED)
    shop = storage.update_shop(shop_id, payload)
    if not shop:
        raise HTTPException(404, "Shop not found")
    return shop


@api.delete("/shops/{shop_id}", status_code=204)
def delete_shop(shop_id: str, storage: Storage = Depends(get_storage)):
    if not storage.delete_shop(shop_id):
        raise HTTPException(404, "Shop not found")
    return Response(status_code=204)


# Shop categories
@api.get("/shops/{shop_id}/categories", response_model=List[Category])
def list_categories(shop_id: str, storage: Storage = Depends(get_storage)):
    shop = shop_or_404(storage, shop_id)
    return storage.get_shop_categories(shop.mongo_uri)


@api.post("/shops/{shop_id}/categories", response_model=Category, status_code=201)
def create_category(shop_id: str, payload: CategoryCreate, storage: Storage = Depends(get_storage)):
    shop = shop_or_404(storage, shop_id)
    return storage.create_shop_category(shop.mongo_uri, payload)


@api.put("/shops/{shop_id}/categories/{category_id}", response_model=Category)
def update_category(shop_id: str, category_id: str, payload: CategoryUpdate, storage: Storage = Depends(get_storage)):
    shop = shop_or_404(storage, shop_id)
    category = storage.update_shop_category(shop.mongo_uri, category_id, payload)
    if not category:
        raise HTTPException(404, "Category not found")
    return category


@api.delete("/shops/{shop_id}/categories/{category_id}", status_code=204)
def delete_category(shop_id: str, category_id: str, storage: Storage = Depends(get_storage)):
    shop = shop_or_404(storage, shop_id)
    if not storage.delete_shop_category(shop.mongo_uri, category_id):
        raise HTTPException(404, "Category not found")
    return Response(status_code=204)


# Shop products
@api.get("/shops/{shop_id}/products", response_model=List[Product])
def list_products(shop_id: str, category: Optional[str] = None, storage: Storage = Depends(get_storage)):
    shop = shop_or_404(storage, shop_id)
    return storage.get_shop_products(shop.mongo_uri, category)


@api.post("/shops/{shop_id}/products", response_model=Product, status_code=201)
def create_product(shop_id: str, payload: ProductCreate, storage: Storage = Depends(get_storage)):
    shop = shop_or_404(storage, shop_id)
    return storage.create_shop_product(shop.mongo_uri, payload)


@api.put("/shops/{shop_id}/products/{product_id}", response_model=Product)
def update_product(shop_id: str, product_id: str, payload: ProductUpdate, storage: Storage = Depends(get_storage)):
    shop = shop_or_404(storage, shop_id)
    product = storage.update_shop_product(shop.mongo_uri, product_id, payload)
    if not product:
        raise HTTPException(404, "Product not found")
    return product


@api.delete("/shops/{shop_id}/products/{product_id}", status_code=204)
def delete_product(shop_id: str, product_id: str, storage: Storage = Depends(get_storage)):
    shop = shop_or_404(storage, shop_id)
    if not storage.delete_shop_product(shop.mongo_uri, product_id):
        raise HTTPException(404, "Product not found")
    return Response(status_code=204)


# Dashboard
@api.get("/stats", response_model=Stats)
def stats(storage: Storage = Depends(get_storage)):
    shops = storage.get_shops()
    active = [s for s in shops if s.status == "active"]
    total_products = 0
    for shop in active:
        try:
            record = storage.get_shop_internal(shop.id)
            if record:
                total_products += storage.count_shop_products(record.mongo_uri)
        except PyMongoError:
            # skip shops whose database is unreachable
            logger.exception("Failed to count products for shop %s", shop.name)
    return Stats(
        total_shops=len(shops),
        total_products=total_products,
        active_connections=len(active),
    )


@api.post("/test-connection", response_model=ConnectionResult)
def probe_connection(payload: ConnectionTest, storage: Storage = Depends(get_storage)):
    uri = payload.mongo_uri if isinstance(payload.mongo_uri, str) else ""
    return ConnectionResult(connected=storage.test_connection(uri))


def create_app(settings: Optional[Settings] = None, storage: Optional[Storage] = None) -> FastAPI:
    settings = settings or Settings.from_env()
    configure_logging(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        store = app.state.storage
        if store is None:
            admin = AdminDatabase(settings.database_url, settings.database_name)
            store = Storage(admin, timeout_ms=settings.tenant_timeout_ms)
            app.state.storage = store
        store.admin.open()
        store.admin.ensure_indexes()
        yield
        store.admin.close()

    app = FastAPI(title="Shop Admin API", lifespan=lifespan)
    app.state.settings = settings
    app.state.storage = storage

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        # FastAPI reads the body before the session dependency runs
        path = request.url.path
        protected = path.startswith("/api/") and path not in PUBLIC_PATHS
        if protected and not session_user_id(request_token(request, settings), settings):
            return JSONResponse(status_code=status.HTTP_401_UNAUTHORIZED, content={"detail": "Authentication required"})
        first = exc.errors()[0]
        field = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
        message = f"{field}: {first['msg']}" if field else first["msg"]
        return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"detail": message})

    @app.exception_handler(PyMongoError)
    async def database_exception_handler(request: Request, exc: PyMongoError):
        logger.error("Database error on %s %s: %s", request.method, request.url.path, type(exc).__name__)
        return JSONResponse(status_code=500, content={"detail": "Database error"})

    @app.get("/")
    def read_root():
        return {"message": "Shop admin backend is running"}

    @app.get("/test")
    def test_database(request: Request):
        response = {
            "backend": "✅ Running",
            "database": "❌ Not Available",
            "database_url": "✅ Set" if settings.database_url else "❌ Not Set",
            "database_name": settings.database_name,
        }
        store = request.app.state.storage
        try:
            if store is not None and store.admin.db is not None:
                response["database"] = "✅ Available"
                store.admin.db.list_collection_names()
                response["database"] = "✅ Connected & Working"
        except PyMongoError as e:
            response["database"] = f"⚠️ Connected but Error: {str(e)[:50]}"
        return response

    app.include_router(auth_router)
    app.include_router(api)
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=app.state.settings.port)
