"""HTTP route definitions for the account service."""

from __future__ import annotations

import logging
import secrets
from datetime import date, datetime

from fastapi import APIRouter, Depends, FastAPI, Header, HTTPException, Query, Request, Response, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from .. import metrics
from ..config import get_settings
from ..domain.account import Account, AccountSummary, DeliveryAddress, Role
from ..domain.contracts import AuthContext, DeliveryAddressInput, SignUpInput, TokenIssuer
from ..domain.delivery import DeliveryAddressService
from ..domain.errors import AccountError, InvalidTokenError
from ..domain.service import AccountService
from ..domain.validation import FieldError, validate_delivery_address, validate_sign_up
from ..security.login_throttle import FailedLoginThrottle
from ..security.redis_login_throttle import RedisFailedLoginThrottle
from ..security.tokens import ACCESS_TOKEN_TYPE

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api")

CSRF_COOKIE_NAME = "XSRF-TOKEN"
CSRF_HEADER_NAME = "X-XSRF-TOKEN"


class StatusResponse(BaseModel):
    status_code: str
    status_message: str


class SignUpRequest(BaseModel):
    """Sign-up form; field rules are applied by ``validate_sign_up``."""

    identification: str = ""
    password: str = ""
    confirm_password: str = ""
    name: str = ""
    birth_date: str = ""
    phone_number: str = ""

    def to_input(self) -> SignUpInput:
        return SignUpInput(
            identification=self.identification,
            password=self.password,
            confirm_password=self.confirm_password,
            name=self.name,
            birth_date=self.birth_date,
            phone_number=self.phone_number,
        )


class LoginRequest(BaseModel):
    identification: str = ""
    password: str = ""


class LoginResponse(BaseModel):
    """Token issuance response containing the bearer tokens and the user id."""

    status_code: str = "200"
    status_message: str = "Login successful."
    access_token: str
    token_type: str = "bearer"
    expires_in: int
    refresh_token: str
    refresh_expires_in: int
    user_id: int


class RefreshTokenRequest(BaseModel):
    refresh_token: str = ""


class RefreshTokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_in: int


class CsrfTokenResponse(BaseModel):
    header_name: str
    parameter_name: str
    token: str


class DeliveryAddressRequest(BaseModel):
    recipient_name: str = ""
    phone_number: str = ""
    zip_code: str = ""
    address: str = ""
    detail_address: str = ""

    def to_input(self) -> DeliveryAddressInput:
        return DeliveryAddressInput(
            recipient_name=self.recipient_name,
            phone_number=self.phone_number,
            zip_code=self.zip_code,
            address=self.address,
            detail_address=self.detail_address,
        )


class DeliveryAddressResponse(BaseModel):
    address_id: int
    recipient_name: str
    phone_number: str
    zip_code: str
    address: str
    detail_address: str
    created_at: datetime

    @classmethod
    def from_domain(cls, address: DeliveryAddress) -> "DeliveryAddressResponse":
        return cls(
            address_id=address.address_id,
            recipient_name=address.recipient_name,
            phone_number=address.phone_number,
            zip_code=address.zip_code,
            address=address.address,
            detail_address=address.detail_address,
            created_at=address.created_at,
        )


class ProfileResponse(BaseModel):
    """My-page view of an account and its delivery addresses."""

    user_id: int
    identification: str
    name: str | None
    birth_date: date | None
    phone_number: str | None
    role: str
    tier: str
    point: int
    amount_to_next_tier: int
    registration_date: date
    delivery_addresses: list[DeliveryAddressResponse]

    @classmethod
    def from_domain(cls, account: Account, addresses: list[DeliveryAddress]) -> "ProfileResponse":
        return cls(
            user_id=account.account_id,
            identification=account.identification,
            name=account.name,
            birth_date=account.birth_date,
            phone_number=account.phone_number,
            role=account.role.value,
            tier=account.tier.value,
            point=account.point,
            amount_to_next_tier=account.amount_to_next_tier,
            registration_date=account.registration_date,
            delivery_addresses=[DeliveryAddressResponse.from_domain(a) for a in addresses],
        )


class UserSummaryResponse(BaseModel):
    user_id: int
    identification: str
    name: str | None
    role: str
    tier: str
    registration_date: date

    @classmethod
    def from_domain(cls, summary: AccountSummary) -> "UserSummaryResponse":
        return cls(
            user_id=summary.account_id,
            identification=summary.identification,
            name=summary.name,
            role=summary.role.value,
            tier=summary.tier.value,
            registration_date=summary.registration_date,
        )


class UserPageResponse(BaseModel):
    items: list[UserSummaryResponse]
    page: int
    size: int
    total: int


settings = get_settings()


def _build_login_throttle() -> FailedLoginThrottle | RedisFailedLoginThrottle:
    """Instantiate the configured login throttle backend, preferring Redis when available."""
    if settings.login_throttle_backend == "redis" and settings.redis_url:
        try:
            import redis

            client = redis.from_url(settings.redis_url)
            client.ping()
            logger.info("login throttle configured for redis backend at %s", settings.redis_url)
            return RedisFailedLoginThrottle(
                client,
                max_failures=settings.login_max_failures,
                window_seconds=settings.login_failure_window_seconds,
            )
        except Exception as exc:  # pragma: no cover - depends on a live redis
            logger.warning("redis login throttle unavailable, falling back to in-memory: %s", exc)

    logger.info("login throttle using in-memory backend")
    return FailedLoginThrottle(
        max_failures=settings.login_max_failures,
        window_seconds=settings.login_failure_window_seconds,
    )


login_throttle = _build_login_throttle()


def get_service(request: Request) -> AccountService:
    """Resolve the `AccountService` stored on the FastAPI application state."""
    service: AccountService = request.app.state.account_service
    return service


def get_address_service(request: Request) -> DeliveryAddressService:
    service: DeliveryAddressService = request.app.state.delivery_address_service
    return service


def get_current_user(
    request: Request,
    authorization: str | None = Header(default=None),
) -> AuthContext:
    """Build the caller's `AuthContext` from a bearer access token or answer 401."""
    scheme, _, token = (authorization or "").partition(" ")
    if scheme.lower() != "bearer" or not token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="authentication required")
    issuer: TokenIssuer = request.app.state.token_issuer
    try:
        claims = issuer.decode_token(token)
    except InvalidTokenError as exc:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="invalid access token") from exc
    if claims.get("type") != ACCESS_TOKEN_TYPE:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="invalid access token")
    try:
        return AuthContext(account_id=int(claims["uid"]), identification=claims["sub"], role=Role(claims["role"]))
    except (TypeError, ValueError) as exc:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="invalid access token") from exc


def require_admin(user: AuthContext = Depends(get_current_user)) -> AuthContext:
    if not user.role.is_admin:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="admin role required")
    return user


def require_super_admin(user: AuthContext = Depends(get_current_user)) -> AuthContext:
    if user.role is not Role.SUPER_ADMIN:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="super admin role required")
    return user


@router.post("/signup", response_model=StatusResponse, status_code=status.HTTP_201_CREATED)
def sign_up(
    payload: SignUpRequest,
    service: AccountService = Depends(get_service),
) -> StatusResponse:
    """Register a member account with an empty cart and wish list."""
    form = payload.to_input()
    _raise_on_field_errors(validate_sign_up(form))
    try:
        service.sign_up(form)
    except AccountError as exc:
        raise _http_error(exc) from exc
    return StatusResponse(status_code="201", status_message="Sign up completed.")


@router.get("/signup/check-id", response_model=StatusResponse)
def check_identification(
    identification: str = Query(..., min_length=1),
    service: AccountService = Depends(get_service),
) -> StatusResponse:
    """Report whether an identification is still available."""
    try:
        service.check_duplicate_identification(identification)
    except AccountError as exc:
        raise _http_error(exc) from exc
    return StatusResponse(status_code="200", status_message="The ID is available.")


@router.post("/login", response_model=LoginResponse)
def login(
    payload: LoginRequest,
    service: AccountService = Depends(get_service),
) -> LoginResponse:
    """Authenticate with identification and password and issue a token pair."""
    throttle_key = payload.identification.lower()
    if login_throttle.is_blocked(throttle_key):
        metrics.LOGIN_ATTEMPTS.labels(outcome="throttled").inc()
        raise HTTPException(status_code=status.HTTP_429_TOO_MANY_REQUESTS, detail="too many failed login attempts")
    try:
        result = service.login(payload.identification, payload.password)
    except AccountError as exc:
        login_throttle.record_failure(throttle_key)
        metrics.LOGIN_ATTEMPTS.labels(outcome="failure").inc()
        logger.info("login failed identification=%s", payload.identification)
        raise _http_error(exc) from exc
    login_throttle.reset(throttle_key)
    metrics.LOGIN_ATTEMPTS.labels(outcome="success").inc()
    return LoginResponse(
        access_token=result.access_token,
        expires_in=result.access_expires_in,
        refresh_token=result.refresh_token,
        refresh_expires_in=result.refresh_expires_in,
        user_id=result.account.account_id,
    )


@router.post("/refresh-token", response_model=RefreshTokenResponse)
def refresh_token(
    payload: RefreshTokenRequest,
    service: AccountService = Depends(get_service),
) -> RefreshTokenResponse:
    """Exchange the current refresh token for a new access token."""
    try:
        bundle = service.refresh_access_token(payload.refresh_token)
    except AccountError as exc:
        metrics.TOKEN_REFRESHES.labels(outcome="failure").inc()
        logger.info("token refresh rejected: %s", exc.message)
        raise _http_error(exc) from exc
    metrics.TOKEN_REFRESHES.labels(outcome="success").inc()
    return RefreshTokenResponse(access_token=bundle.access_token, expires_in=bundle.access_expires_in)


@router.get("/csrf-token", response_model=CsrfTokenResponse)
def csrf_token(response: Response) -> CsrfTokenResponse:
    """Hand out a double-submit CSRF token for cookie-based browser clients."""
    token = secrets.token_urlsafe(32)
    response.set_cookie(CSRF_COOKIE_NAME, token, samesite="lax", secure=False, httponly=False)
    return CsrfTokenResponse(header_name=CSRF_HEADER_NAME, parameter_name="_csrf", token=token)


@router.get("/users/{user_id}", response_model=ProfileResponse)
def get_profile(
    user_id: int,
    user: AuthContext = Depends(get_current_user),
    service: AccountService = Depends(get_service),
) -> ProfileResponse:
    """Return the profile and delivery addresses of an account."""
    _ensure_access(user, user_id)
    try:
        profile = service.get_profile(user_id)
    except AccountError as exc:
        raise _http_error(exc) from exc
    return ProfileResponse.from_domain(profile.account, profile.delivery_addresses)


@router.post(
    "/users/{user_id}/delivery-addresses",
    response_model=DeliveryAddressResponse,
    status_code=status.HTTP_201_CREATED,
)
def add_delivery_address(
    user_id: int,
    payload: DeliveryAddressRequest,
    user: AuthContext = Depends(get_current_user),
    addresses: DeliveryAddressService = Depends(get_address_service),
) -> DeliveryAddressResponse:
    _ensure_access(user, user_id)
    form = payload.to_input()
    _raise_on_field_errors(validate_delivery_address(form))
    try:
        address = addresses.add_address(user_id, form)
    except AccountError as exc:
        raise _http_error(exc) from exc
    return DeliveryAddressResponse.from_domain(address)


@router.get("/users/{user_id}/delivery-addresses", response_model=list[DeliveryAddressResponse])
def list_delivery_addresses(
    user_id: int,
    user: AuthContext = Depends(get_current_user),
    addresses: DeliveryAddressService = Depends(get_address_service),
) -> list[DeliveryAddressResponse]:
    _ensure_access(user, user_id)
    try:
        items = addresses.list_addresses(user_id)
    except AccountError as exc:
        raise _http_error(exc) from exc
    return [DeliveryAddressResponse.from_domain(item) for item in items]


@router.delete("/users/{user_id}/delivery-addresses/{address_id}", response_model=StatusResponse)
def delete_delivery_address(
    user_id: int,
    address_id: int,
    user: AuthContext = Depends(get_current_user),
    addresses: DeliveryAddressService = Depends(get_address_service),
) -> StatusResponse:
    _ensure_access(user, user_id)
    try:
        addresses.delete_address(user_id, address_id)
    except AccountError as exc:
        raise _http_error(exc) from exc
    return StatusResponse(status_code="200", status_message="Delivery address deleted.")


@router.post("/admin/signup", response_model=StatusResponse, status_code=status.HTTP_201_CREATED)
def sign_up_admin(
    payload: SignUpRequest,
    _: AuthContext = Depends(require_super_admin),
    service: AccountService = Depends(get_service),
) -> StatusResponse:
    """Register an administrator account. Only the super admin may do this."""
    form = payload.to_input()
    _raise_on_field_errors(validate_sign_up(form))
    try:
        service.sign_up_admin(form)
    except AccountError as exc:
        raise _http_error(exc) from exc
    return StatusResponse(status_code="201", status_message="Admin sign up completed.")


@router.get("/admin/users", response_model=UserPageResponse)
def list_users(
    page: int = Query(default=0, ge=0),
    size: int = Query(default=20, ge=1, le=100),
    _: AuthContext = Depends(require_admin),
    service: AccountService = Depends(get_service),
) -> UserPageResponse:
    """Return a page of account summaries ordered by id."""
    result = service.list_users(page, size)
    return UserPageResponse(
        items=[UserSummaryResponse.from_domain(item) for item in result.items],
        page=result.page,
        size=result.size,
        total=result.total,
    )


def _ensure_access(user: AuthContext, account_id: int) -> None:
    if not user.can_access(account_id):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="access to this account is not allowed")


def _raise_on_field_errors(errors: list[FieldError]) -> None:
    if errors:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=[{"field": error.field, "message": error.message} for error in errors],
        )


def _http_error(exc: AccountError) -> HTTPException:
    return HTTPException(status_code=exc.status_code, detail=exc.message)


async def request_validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Answer malformed bodies, queries and paths with 400 in the field error shape."""
    detail = []
    for error in exc.errors():
        loc = [str(part) for part in error.get("loc", ())]
        # first element names the request part (body, query, path)
        field = ".".join(loc[1:]) or ".".join(loc) or "request"
        detail.append({"field": field, "message": error.get("msg", "invalid value")})
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"detail": detail})


def install_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(RequestValidationError, request_validation_error_handler)
