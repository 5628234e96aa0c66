from __future__ import annotations

from typing import Any, Dict, List, Optional

from bson import ObjectId
from fastapi import Depends, FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, EmailStr, Field
from pymongo.database import Database
from pymongo.errors import PyMongoError
from starlette.exceptions import HTTPException as StarletteHTTPException

from storefront import __version__
from storefront.config import Config, load_config
from storefront.db import connect, init_db, parse_object_id
from storefront.errors import (
    ApiError,
    Conflict,
    Forbidden,
    InvalidCredentials,
    InvalidOrExpiredToken,
    NotFound,
    ServerError,
    ValidationError,
)
from storefront.notify import LogNotifier, Notifier

from storefront.auth import get_current_user, require_capability
from storefront.auth.crud import (
    bootstrap_admin_if_needed,
    create_user,
    find_user_by_reset_token,
    get_user_by_id,
    issue_reset_token,
    public_user,
    set_password,
    update_profile,
    verify_user_credentials,
)
from storefront.auth.deps import get_cfg, get_db
from storefront.auth.security import create_access_token, verify_password

from storefront.catalog import cart as cart_store
from storefront.catalog import categories as category_store
from storefront.catalog import products as product_store


def _debug(msg: str) -> None:
    print(f"[api] {msg}")


app = FastAPI(title="Storefront API", version=__version__)
cfg: Config = load_config()

# CORS is mainly needed for local development (SPA dev server -> API on :8000).
_cors_origins = [o.strip() for o in (cfg.CORS_ALLOW_ORIGINS or "").split(",") if o.strip()]
if _cors_origins:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=_cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )


@app.on_event("startup")
def _on_startup() -> None:
    # Tests (and embedders) may pre-populate cfg/db/notifier on app.state.
    if getattr(app.state, "cfg", None) is None:
        app.state.cfg = cfg
    if getattr(app.state, "notifier", None) is None:
        app.state.notifier = LogNotifier()
    if getattr(app.state, "db", None) is None:
        # An unreachable store is fatal: let the exception abort startup.
        app.state.db = connect(app.state.cfg)

    init_db(app.state.db)

    # Bootstrap first admin if needed (only when users collection is empty)
    boot = bootstrap_admin_if_needed(app.state.db, app.state.cfg)
    if boot:
        _debug(f"Bootstrapped initial admin user: email={boot.get('email')} role={boot.get('role')}")


# -----------------------------
# Error rendering
# -----------------------------


@app.exception_handler(ApiError)
def _api_error(request: Request, exc: ApiError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content=exc.body(), headers=exc.headers)


@app.exception_handler(RequestValidationError)
def _request_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    # Rejected input is left out: it may not be JSON-encodable (e.g. inf).
    details = [{k: e[k] for k in ("loc", "msg", "type") if k in e} for e in exc.errors()]
    err = ValidationError("Validation failed", detail=jsonable_encoder(details))
    return JSONResponse(status_code=err.status_code, content=err.body())


@app.exception_handler(StarletteHTTPException)
def _http_error(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    # Unknown routes, wrong methods and anything else the framework raises itself.
    message = "Endpoint not found" if exc.status_code == 404 else str(exc.detail)
    return JSONResponse(status_code=exc.status_code, content={"message": message}, headers=exc.headers)


@app.exception_handler(PyMongoError)
def _store_error(request: Request, exc: PyMongoError) -> JSONResponse:
    _debug(f"Store failure on {request.method} {request.url.path}: {type(exc).__name__}: {exc}")
    err = ServerError("Server error")
    return JSONResponse(status_code=err.status_code, content=err.body())


def _object_id(value: Any, message: str) -> ObjectId:
    oid = parse_object_id(value)
    if oid is None:
        raise ValidationError(message)
    return oid


def _user_error(e: ValueError) -> ApiError:
    """Map credential-store ValueError codes to API errors."""
    code = str(e)
    if code == "email_exists":
        return Conflict("User already exists")
    if code == "invalid_role":
        return ValidationError("Role must be one of admin, vendor, customer", key="message")
    if code == "password_blank":
        return ValidationError("Password is required", key="message")
    if code == "email_blank":
        return ValidationError("Email is required", key="message")
    if code == "name_blank":
        return ValidationError("Name is required", key="message")
    return ValidationError(code, key="message")


# -----------------------------
# Health
# -----------------------------


@app.get("/")
def root() -> Dict[str, Any]:
    return {
        "message": "API is running...",
        "documentation": "/docs",
        "endpoints": {
            "auth": "/auth",
            "products": "/products",
            "categories": "/categories",
            "cart": "/cart",
        },
    }


@app.get("/health")
def health() -> Dict[str, Any]:
    return {"status": "ok"}


# -----------------------------
# Auth
# -----------------------------


class _ApiModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class RegisterRequest(_ApiModel):
    name: str
    email: EmailStr
    password: str
    role: Optional[str] = None  # admin|vendor|customer, default customer


class LoginRequest(_ApiModel):
    email: EmailStr
    password: str


class UpdateProfileRequest(_ApiModel):
    name: Optional[str] = None
    email: Optional[EmailStr] = None


class ChangePasswordRequest(_ApiModel):
    current_password: str = Field(alias="currentPassword")
    new_password: str = Field(alias="newPassword")


class ForgotPasswordRequest(_ApiModel):
    email: EmailStr


class ResetPasswordRequest(_ApiModel):
    new_password: str = Field(alias="newPassword")


class CreateUserRequest(_ApiModel):
    name: str
    email: EmailStr
    password: str
    role: str = "customer"


def _issue_token(cfg: Config, user_id: str) -> str:
    return create_access_token(
        secret=cfg.AUTH_JWT_SECRET,
        user_id=user_id,
        expires_minutes=int(cfg.AUTH_TOKEN_EXPIRE_MINUTES),
    )


@app.post("/auth/register", status_code=201)
def auth_register(
    payload: RegisterRequest,
    db: Database = Depends(get_db),
    cfg: Config = Depends(get_cfg),
) -> Dict[str, Any]:
    try:
        u = create_user(
            db,
            name=payload.name,
            email=payload.email,
            password=payload.password,
            role=payload.role or "customer",
        )
    except ValueError as e:
        raise _user_error(e)

    _debug(f"Registered user id={u['id']} role={u['role']}")
    token = _issue_token(cfg, u["id"])
    return {"id": u["id"], "name": u["name"], "email": u["email"], "role": u["role"], "token": token}


@app.post("/auth/login")
def auth_login(
    payload: LoginRequest,
    db: Database = Depends(get_db),
    cfg: Config = Depends(get_cfg),
) -> Dict[str, Any]:
    row = verify_user_credentials(db, payload.email, payload.password)
    if row is None:
        _debug("Login failed: invalid credentials")
        raise InvalidCredentials("Invalid credentials")

    u = public_user(row)
    return {"user": u, "token": _issue_token(cfg, u["id"])}


@app.get("/auth/me")
def auth_me(user: Dict[str, Any] = Depends(get_current_user)) -> Dict[str, Any]:
    return user


@app.put("/auth/me")
def auth_update_me(
    payload: UpdateProfileRequest,
    user: Dict[str, Any] = Depends(get_current_user),
    db: Database = Depends(get_db),
) -> Dict[str, Any]:
    try:
        u = update_profile(db, user["id"], name=payload.name, email=payload.email)
    except ValueError as e:
        raise _user_error(e)
    if u is None:
        raise NotFound("User not found", key="message")
    return u


@app.put("/auth/change-password")
def auth_change_password(
    payload: ChangePasswordRequest,
    user: Dict[str, Any] = Depends(get_current_user),
    db: Database = Depends(get_db),
) -> Dict[str, Any]:
    row = get_user_by_id(db, user["id"], include_private=True)
    if row is None:
        raise NotFound("User not found", key="message")

    if not verify_password(payload.current_password, str(row.get("password") or "")):
        raise InvalidCredentials("Current password is incorrect")

    try:
        set_password(db, row["_id"], payload.new_password)
    except ValueError as e:
        raise _user_error(e)
    return {"message": "Password changed successfully"}


@app.post("/auth/forgot-password")
def auth_forgot_password(
    payload: ForgotPasswordRequest,
    request: Request,
    db: Database = Depends(get_db),
    cfg: Config = Depends(get_cfg),
) -> Dict[str, Any]:
    issued = issue_reset_token(db, payload.email, expires_minutes=int(cfg.AUTH_RESET_TOKEN_EXPIRE_MINUTES))
    if issued is None:
        raise NotFound("User not found", key="message")
    user, token = issued

    notifier: Notifier = getattr(request.app.state, "notifier", None) or LogNotifier()
    notifier.send_password_reset(str(user["email"]), token)

    if cfg.AUTH_RESET_TOKEN_IN_RESPONSE:
        return {"message": "Reset token generated", "resetToken": token}
    return {"message": "Reset token sent"}


@app.put("/auth/reset-password/{token}")
def auth_reset_password(
    token: str,
    payload: ResetPasswordRequest,
    db: Database = Depends(get_db),
) -> Dict[str, Any]:
    row = find_user_by_reset_token(db, token)
    if row is None:
        raise InvalidOrExpiredToken("Invalid or expired token")

    try:
        set_password(db, row["_id"], payload.new_password, clear_reset=True)
    except ValueError as e:
        raise _user_error(e)
    return {"message": "Password reset successfully"}


@app.post("/auth/logout")
def auth_logout(user: Dict[str, Any] = Depends(get_current_user)) -> Dict[str, Any]:
    """Stateless: the client drops its token."""
    return {"message": "Logged out successfully"}


# Admin: create users of any role
@app.post("/admin/users", status_code=201)
def admin_create_user(
    payload: CreateUserRequest,
    _admin: Dict[str, Any] = Depends(require_capability("user:create")),
    db: Database = Depends(get_db),
) -> Dict[str, Any]:
    try:
        u = create_user(db, name=payload.name, email=payload.email, password=payload.password, role=payload.role)
    except ValueError as e:
        raise _user_error(e)
    return {"user": u}


# -----------------------------
# Categories
# -----------------------------


class CategoryCreate(_ApiModel):
    name: str
    description: Optional[str] = None


@app.get("/categories")
def list_categories(db: Database = Depends(get_db)) -> List[Dict[str, Any]]:
    try:
        return category_store.list_categories(db)
    except PyMongoError as e:
        _debug(f"list_categories failed: {e}")
        raise ServerError("Server error")


@app.post("/categories", status_code=201)
def create_category(
    payload: CategoryCreate,
    _user: Dict[str, Any] = Depends(require_capability("category:create")),
    db: Database = Depends(get_db),
) -> Dict[str, Any]:
    try:
        return category_store.create_category(db, name=payload.name, description=payload.description)
    except ValueError as e:
        raise ValidationError(str(e))


# Must be registered before /categories/{category_id}.
@app.delete("/categories/clear")
def delete_all_categories(
    _admin: Dict[str, Any] = Depends(require_capability("category:delete_all")),
    db: Database = Depends(get_db),
) -> Dict[str, Any]:
    try:
        n = category_store.delete_all_categories(db)
    except PyMongoError as e:
        _debug(f"delete_all_categories failed: {e}")
        raise ServerError("Failed to delete all categories")
    return {"message": "All Categories deleted successfully!", "deleted": n}


@app.delete("/categories/{category_id}")
def delete_category(
    category_id: str,
    _user: Dict[str, Any] = Depends(require_capability("category:delete")),
    db: Database = Depends(get_db),
) -> Dict[str, Any]:
    oid = _object_id(category_id, "Category ID is invalid")
    if not category_store.delete_category(db, oid):
        raise NotFound("Category not found")
    return {"message": "Category deleted"}


# -----------------------------
# Products
# -----------------------------


class ProductCreate(_ApiModel):
    name: str
    price: float = Field(ge=0, allow_inf_nan=False)
    category: Optional[str] = None
    in_stock: bool = Field(True, alias="inStock")


class ProductUpdate(_ApiModel):
    name: Optional[str] = None
    price: Optional[float] = Field(None, ge=0, allow_inf_nan=False)
    category: Optional[str] = None
    in_stock: Optional[bool] = Field(None, alias="inStock")


def _check_category(db: Database, value: Any) -> ObjectId:
    """Format first (400), then existence (404)."""
    oid = _object_id(value, "Category ID is invalid")
    if not category_store.category_exists(db, oid):
        raise NotFound("Category not found in database")
    return oid


def _owned_product(db: Database, product_id: str, user: Dict[str, Any]) -> ObjectId:
    oid = _object_id(product_id, "Product ID is invalid")
    existing = product_store.get_product(db, oid)
    if existing is None:
        raise NotFound("Product not found in database")
    if not product_store.can_modify(user, existing):
        raise Forbidden("You can only modify your own products", key="error")
    return oid


@app.get("/products")
def list_products(db: Database = Depends(get_db)) -> List[Dict[str, Any]]:
    try:
        return product_store.list_products(db)
    except PyMongoError as e:
        _debug(f"list_products failed: {e}")
        raise ServerError("Server error")


@app.post("/products", status_code=201)
def create_product(
    payload: ProductCreate,
    user: Dict[str, Any] = Depends(require_capability("product:create")),
    db: Database = Depends(get_db),
) -> Dict[str, Any]:
    category = _check_category(db, payload.category)
    try:
        return product_store.create_product(
            db,
            name=payload.name,
            price=payload.price,
            category=category,
            vendor=ObjectId(user["id"]),
            in_stock=payload.in_stock,
        )
    except ValueError as e:
        raise ValidationError(str(e))


# Must be registered before /products/{product_id}.
@app.delete("/products/delete-all")
def delete_all_products(
    _admin: Dict[str, Any] = Depends(require_capability("product:delete_all")),
    db: Database = Depends(get_db),
) -> Dict[str, Any]:
    try:
        n = product_store.delete_all_products(db)
    except PyMongoError as e:
        _debug(f"delete_all_products failed: {e}")
        raise ServerError("Failed to delete all products")
    return {"message": "All products deleted successfully!", "deleted": n}


@app.put("/products/{product_id}")
def update_product(
    product_id: str,
    payload: ProductUpdate,
    user: Dict[str, Any] = Depends(require_capability("product:update")),
    db: Database = Depends(get_db),
) -> Dict[str, Any]:
    oid = _owned_product(db, product_id, user)

    changes = {k: v for k, v in payload.model_dump(exclude_unset=True, by_alias=True).items() if v is not None}
    if "category" in changes:
        changes["category"] = _check_category(db, changes["category"])

    try:
        updated = product_store.update_product(db, oid, changes)
    except ValueError as e:
        raise ValidationError(str(e))
    if updated is None:
        raise NotFound("Product not found in database")
    return updated


@app.delete("/products/{product_id}")
def delete_product(
    product_id: str,
    user: Dict[str, Any] = Depends(require_capability("product:delete")),
    db: Database = Depends(get_db),
) -> Dict[str, Any]:
    oid = _owned_product(db, product_id, user)
    if not product_store.delete_product(db, oid):
        raise NotFound("Product not found in database")
    return {"message": "Product deleted successfully"}


# -----------------------------
# Cart (scoped to the caller)
# -----------------------------


# Fits a 32-bit BSON int; larger values can't be stored.
MAX_QUANTITY = 2**31 - 1


class CartAdd(_ApiModel):
    product_id: Optional[str] = Field(None, alias="productId")
    quantity: int = Field(1, ge=1, le=MAX_QUANTITY)


@app.get("/cart")
def get_cart(
    user: Dict[str, Any] = Depends(require_capability("cart:use")),
    db: Database = Depends(get_db),
) -> List[Dict[str, Any]]:
    try:
        return cart_store.list_cart(db, ObjectId(user["id"]))
    except PyMongoError as e:
        _debug(f"get_cart failed: {e}")
        raise ServerError("Server error")


@app.post("/cart", status_code=201)
def add_to_cart(
    payload: CartAdd,
    user: Dict[str, Any] = Depends(require_capability("cart:use")),
    db: Database = Depends(get_db),
) -> Dict[str, Any]:
    product_oid = _object_id(payload.product_id, "ID not found")
    if product_store.get_product(db, product_oid) is None:
        raise NotFound("Product not found")
    try:
        return cart_store.add_to_cart(
            db,
            user_id=ObjectId(user["id"]),
            product_id=product_oid,
            quantity=payload.quantity,
        )
    except ValueError as e:
        raise ValidationError(str(e))


# Must be registered before /cart/{item_id}.
@app.delete("/cart/clear")
def clear_cart(
    user: Dict[str, Any] = Depends(require_capability("cart:use")),
    db: Database = Depends(get_db),
) -> Dict[str, Any]:
    try:
        n = cart_store.clear_cart(db, ObjectId(user["id"]))
    except PyMongoError as e:
        _debug(f"clear_cart failed: {e}")
        raise ServerError("Failed to clear cart")
    return {"message": "Cart cleared successfully!", "deleted": n}


@app.delete("/cart/{item_id}")
def remove_from_cart(
    item_id: str,
    user: Dict[str, Any] = Depends(require_capability("cart:use")),
    db: Database = Depends(get_db),
) -> Dict[str, Any]:
    oid = _object_id(item_id, "ID of cart is not correct")
    if not cart_store.remove_cart_item(db, ObjectId(user["id"]), oid):
        raise NotFound("Item not found in cart")
    return {"message": "Item removed from cart successfully"}
