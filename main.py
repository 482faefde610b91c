import logging
import os
from functools import lru_cache
from typing import Optional

import pydantic
from fastapi import APIRouter, Depends, FastAPI, Header, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pymongo.database import Database
from pymongo.errors import PyMongoError

import settings
from database import get_database
from errors import AuthError, ServiceError, ValidationError
from schemas import (
    AddressRequest,
    CartAddRequest,
    CartRemoveRequest,
    Envelope,
    FavoriteListRequest,
    FavoriteRequest,
    LoginRequest,
    NameRequest,
    PasswordRequest,
    SignupRequest,
    TokenClaims,
    User as UserSchema,
)
from security import CredentialService, default_credentials
from stores import CartStore, ProductStore, UserStore, make_cart_store, now_ts, serialize_doc

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title="Ecommerce API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

router = APIRouter(prefix=settings.BASE_PATH)


# Error envelopes

@app.exception_handler(ServiceError)
async def service_error_handler(request: Request, exc: ServiceError):
    return JSONResponse(status_code=exc.status_code, content={"error": True, "message": exc.message})


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    message = "invalid request body"
    if errors:
        first = errors[0]
        loc = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
        message = f"{loc}: {first.get('msg')}" if loc else first.get("msg", message)
    return JSONResponse(status_code=400, content={"error": True, "message": message})


@app.exception_handler(PyMongoError)
async def database_error_handler(request: Request, exc: PyMongoError):
    logger.exception("Database error on %s", request.url.path)
    return JSONResponse(status_code=500, content={"error": True, "message": "database error"})


# Dependencies

def get_user_store(db: Database = Depends(get_database)) -> UserStore:
    return UserStore(db)


def get_product_store(db: Database = Depends(get_database)) -> ProductStore:
    return ProductStore(db)


def get_cart_update_mode() -> str:
    return settings.CART_UPDATE_MODE


def get_cart_store(
    db: Database = Depends(get_database),
    products: ProductStore = Depends(get_product_store),
    mode: str = Depends(get_cart_update_mode),
) -> CartStore:
    return make_cart_store(db, products, mode)


@lru_cache(maxsize=1)
def get_credentials() -> CredentialService:
    return default_credentials()


def get_current_claims(
    authorization: Optional[str] = Header(default=None),
    credentials: CredentialService = Depends(get_credentials),
) -> TokenClaims:
    # raw token, no scheme keyword
    if not authorization:
        raise AuthError("token is required")
    return credentials.verify_token(authorization)


# Routes

@app.get("/")
def read_root():
    return {"message": "Ecommerce API"}


@router.get("/health")
def health(db: Database = Depends(get_database)):
    response = {"backend": "running", "database": "not connected"}
    try:
        db.command("ping")
        response["database"] = "connected"
    except PyMongoError as e:
        logger.warning("Health check could not reach database: %s", e)
        return JSONResponse(status_code=500, content={"error": True, "message": "database unavailable", "data": response})
    return Envelope(data=response).model_dump(exclude_none=True)


# Auth

@router.post("/signup", response_model=Envelope, response_model_exclude_none=True)
def signup(
    payload: SignupRequest,
    users: UserStore = Depends(get_user_store),
    credentials: CredentialService = Depends(get_credentials),
):
    payload.require("email", "name", "phone", "password")
    ts = now_ts()
    try:
        user = UserSchema(
            name=payload.name,
            email=payload.email,
            phone=payload.phone,
            password=credentials.hash_password(payload.password),
            created_at=ts,
            updated_at=ts,
        )
    except pydantic.ValidationError:
        raise ValidationError("invalid email")
    doc = user.model_dump()
    doc["email"] = payload.email
    created = users.create(doc)
    logger.info("Registered user %s", payload.email)
    token = credentials.issue_token(str(created["_id"]), created["email"], created["user_type"])
    return Envelope(data=serialize_doc(created), token=token)


@router.post("/login", response_model=Envelope, response_model_exclude_none=True)
def login(
    payload: LoginRequest,
    users: UserStore = Depends(get_user_store),
    credentials: CredentialService = Depends(get_credentials),
):
    payload.require("email", "password")
    user = users.get_by_email(payload.email)
    if not credentials.verify_password(payload.password, user.get("password")):
        logger.warning("Failed login for %s", payload.email)
        raise AuthError("password not matched")
    token = credentials.issue_token(str(user["_id"]), user["email"], user.get("user_type", "user"))
    return Envelope(data=serialize_doc(user), token=token)


@router.post("/logout", response_model=Envelope, response_model_exclude_none=True)
def logout():
    return Envelope()


# Profile

@router.post(
    "/address",
    response_model=Envelope,
    response_model_exclude_none=True,
    dependencies=[Depends(get_current_claims)],
)
def add_address(
    payload: AddressRequest,
    users: UserStore = Depends(get_user_store),
):
    payload.require("email", "address")
    user = users.set_fields(payload.email, address=payload.address)
    return Envelope(data=serialize_doc(user))


@router.post(
    "/password",
    response_model=Envelope,
    response_model_exclude_none=True,
    dependencies=[Depends(get_current_claims)],
)
def change_password(
    payload: PasswordRequest,
    users: UserStore = Depends(get_user_store),
    credentials: CredentialService = Depends(get_credentials),
):
    payload.require("email", "old_password", "new_password")
    user = users.get_by_email(payload.email)
    if not credentials.verify_password(payload.old_password, user.get("password")):
        raise AuthError("old password not matched")
    users.set_fields(payload.email, password=credentials.hash_password(payload.new_password))
    logger.info("Password changed for %s", payload.email)
    return Envelope()


@router.post(
    "/name",
    response_model=Envelope,
    response_model_exclude_none=True,
    dependencies=[Depends(get_current_claims)],
)
def change_name(
    payload: NameRequest,
    users: UserStore = Depends(get_user_store),
):
    payload.require("email", "name")
    user = users.set_fields(payload.email, name=payload.name)
    return Envelope(data=serialize_doc(user))


# Favourites

@router.post(
    "/favorite",
    response_model=Envelope,
    response_model_exclude_none=True,
    dependencies=[Depends(get_current_claims)],
)
def add_favorite(
    payload: FavoriteRequest,
    users: UserStore = Depends(get_user_store),
):
    payload.require("email", "product_id")
    favourite = users.add_favorite(payload.email, payload.product_id)
    logger.info("Favourite %s added for %s", payload.product_id, payload.email)
    return Envelope(data=favourite)


@router.post(
    "/favorite/remove",
    response_model=Envelope,
    response_model_exclude_none=True,
    dependencies=[Depends(get_current_claims)],
)
def remove_favorite(
    payload: FavoriteRequest,
    users: UserStore = Depends(get_user_store),
):
    payload.require("email", "product_id")
    favourite = users.remove_favorite(payload.email, payload.product_id)
    logger.info("Favourite %s removed for %s", payload.product_id, payload.email)
    return Envelope(data=favourite)


@router.post(
    "/favorite/list",
    response_model=Envelope,
    response_model_exclude_none=True,
    dependencies=[Depends(get_current_claims)],
)
def list_favorites(
    payload: FavoriteListRequest,
    users: UserStore = Depends(get_user_store),
    products: ProductStore = Depends(get_product_store),
):
    payload.require("email")
    return Envelope(data=products.resolve_many(users.favorites(payload.email)))


# Cart

@router.post("/cart", response_model=Envelope, response_model_exclude_none=True)
def add_to_cart(payload: CartAddRequest, carts: CartStore = Depends(get_cart_store)):
    payload.require("email", "product_id")
    cart = carts.add_item(payload.email, payload.product_id, payload.quantity)
    return Envelope(data=serialize_doc(cart))


@router.post("/cart/remove", response_model=Envelope, response_model_exclude_none=True)
def remove_from_cart(payload: CartRemoveRequest, carts: CartStore = Depends(get_cart_store)):
    payload.require("email", "product_id")
    cart = carts.remove_item(payload.email, payload.product_id)
    return Envelope(data=serialize_doc(cart))


app.include_router(router)


if __name__ == "__main__":
    import uvicorn
    port = int(os.getenv("PORT", 8000))
    uvicorn.run(app, host="0.0.0.0", port=port)
