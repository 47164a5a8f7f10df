import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pymongo import MongoClient, ReturnDocument
from pymongo.errors import DuplicateKeyError, PyMongoError
from starlette.exceptions import HTTPException as StarletteHTTPException

from database import Store, connect, create_document, get_store, serialize_doc, to_object_id
from queries import InvalidQueryError, ProductQuery, list_products as run_product_listing
from schemas import DEFAULT_IMAGE_URL, LoginRequest, Product, ProductUpdate, RegisterRequest, User
from security import create_access_token, hash_password, verify_password
from settings import Settings, get_settings

logger = logging.getLogger(__name__)

INVALID_CREDENTIALS = "Invalid email or password"


class StoreError(HTTPException):
    """500 raised when a database call fails; the cause is logged, never returned."""

    def __init__(self, message: str):
        super().__init__(status_code=500, detail=message)
        self.code = "database_error"


def store_failure(message: str) -> StoreError:
    logger.exception(message)
    return StoreError(message)


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def issue_token(user: User, settings: Settings) -> str:
    return create_access_token(
        {"email": user.email, "role": user.role},
        settings.jwt_secret,
        settings.expires_in,
    )


# Error envelopes
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    body: Dict[str, Any] = {"success": False, "message": exc.detail}
    code = getattr(exc, "code", None)
    if code:
        body["error"] = code
    return JSONResponse(status_code=exc.status_code, content=body, headers=getattr(exc, "headers", None))


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=400,
        content={"success": False, "message": "Invalid request", "errors": jsonable_encoder(exc.errors())},
    )


async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=500,
        content={"success": False, "message": "Internal server error", "error": "internal_error"},
    )


def create_app(settings: Optional[Settings] = None, client: Optional[MongoClient] = None) -> FastAPI:
    settings = settings or get_settings()
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if client is None:
        store = connect(settings.mongodb_uri, settings.database_name)
    else:
        store = Store(client, settings.database_name)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        store.ensure_indexes()
        logger.info("Dress-Up API ready on port %s", settings.port)
        yield
        store.close()

    app = FastAPI(title="Dress-Up API", lifespan=lifespan)
    app.state.settings = settings
    app.state.store = store

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)

    register_routes(app)
    return app


def register_routes(app: FastAPI) -> None:
    # Health
    @app.get("/")
    def root():
        return {"message": "Server is running smoothly", "timestamp": datetime.now(timezone.utc).isoformat()}

    @app.get("/test")
    def test_database(store: Store = Depends(get_store)):
        response = {
            "backend": "✅ Running",
            "database": "❌ Not Available",
            "database_name": store.db.name,
            "connection_status": "Not Connected",
            "collections": [],
        }
        try:
            store.db.command("ping")
            response["database"] = "✅ Connected & Working"
            response["connection_status"] = "Connected"
            response["collections"] = store.db.list_collection_names()[:10]
        except PyMongoError as e:
            logger.warning("Database check failed: %s", e)
            response["database"] = f"❌ Error: {str(e)[:50]}"
        return response

    # Products
    @app.get("/api/v1/products")
    def list_products(
        page: Optional[str] = None,
        limit: Optional[str] = None,
        category: Optional[str] = None,
        sort: Optional[str] = None,
        store: Store = Depends(get_store),
    ):
        try:
            query = ProductQuery.from_params(page=page, limit=limit, category=category, sort=sort)
        except InvalidQueryError as e:
            raise HTTPException(status_code=400, detail=str(e))
        try:
            return run_product_listing(store.products, query)
        except PyMongoError:
            raise store_failure("Failed to get products")

    @app.get("/api/v1/products/{product_id}")
    def get_product(product_id: str, store: Store = Depends(get_store)):
        obj_id = to_object_id(product_id, "product id")
        try:
            product = store.products.find_one({"_id": obj_id})
        except PyMongoError:
            raise store_failure("Failed to get product")
        if not product:
            raise HTTPException(status_code=404, detail="Product not found")
        return {"success": True, "message": "Product retrieved successfully", "product": serialize_doc(product)}

    @app.post("/api/v1/products", status_code=201)
    def create_product(req: Product, store: Store = Depends(get_store)):
        try:
            created = create_document(store.products, req.model_dump())
        except PyMongoError:
            raise store_failure("Failed to create product")
        logger.info("Product %s created", created["_id"])
        return {"success": True, "message": "Product created successfully", "product": serialize_doc(created)}

    @app.put("/api/v1/products/{product_id}")
    def update_product(product_id: str, req: ProductUpdate, store: Store = Depends(get_store)):
        obj_id = to_object_id(product_id, "product id")
        updates = req.model_dump(exclude_unset=True)
        if not updates:
            raise HTTPException(status_code=400, detail="No fields to update")
        updates["updated_at"] = datetime.now(timezone.utc)
        try:
            product = store.products.find_one_and_update(
                {"_id": obj_id},
                {"$set": updates},
                return_document=ReturnDocument.AFTER,
            )
        except PyMongoError:
            raise store_failure("Failed to update product")
        if product is None:
            raise HTTPException(status_code=404, detail="Product not found")
        return {"success": True, "message": "Product updated successfully", "product": serialize_doc(product)}

    @app.delete("/api/v1/products/{product_id}")
    def delete_product(product_id: str, store: Store = Depends(get_store)):
        obj_id = to_object_id(product_id, "product id")
        try:
            result = store.products.delete_one({"_id": obj_id})
        except PyMongoError:
            raise store_failure("Failed to delete product")
        if result.deleted_count == 0:
            raise HTTPException(status_code=404, detail="Product not found")
        logger.info("Product %s deleted", product_id)
        return {"success": True, "message": "Product deleted successfully"}

    # Auth
    @app.post("/api/v1/register", status_code=201)
    def register(
        req: RegisterRequest,
        store: Store = Depends(get_store),
        settings: Settings = Depends(get_app_settings),
    ):
        user = User(
            username=req.username,
            email=req.email.lower(),
            password_hash=hash_password(req.password),
            image_url=req.image_url or DEFAULT_IMAGE_URL,
        )
        token = issue_token(user, settings)
        try:
            create_document(store.users, user.model_dump())
        except DuplicateKeyError:
            raise HTTPException(status_code=400, detail="User already exists!")
        except PyMongoError:
            raise store_failure("Failed to register user")
        logger.info("Registered user %s", user.email)
        return {
            "success": True,
            "message": "User registered successfully!",
            "accessToken": token,
            "user": user.public(),
        }

    @app.post("/api/v1/login")
    def login(
        req: LoginRequest,
        store: Store = Depends(get_store),
        settings: Settings = Depends(get_app_settings),
    ):
        try:
            doc = store.users.find_one({"email": req.email.strip().lower()})
        except PyMongoError:
            raise store_failure("Failed to log in")
        if not doc or not verify_password(req.password, doc.get("password_hash", "")):
            logger.info("Failed login for %s", req.email)
            raise HTTPException(status_code=401, detail=INVALID_CREDENTIALS)
        user = User(
            username=doc.get("username", ""),
            email=doc["email"],
            password_hash=doc["password_hash"],
            role=doc.get("role", "user"),
            image_url=doc.get("image_url") or DEFAULT_IMAGE_URL,
        )
        return {
            "success": True,
            "message": "User successfully logged in!",
            "accessToken": issue_token(user, settings),
            "user": user.public(),
        }


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run(create_app(settings), host="0.0.0.0", port=settings.port)
