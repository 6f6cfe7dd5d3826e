import logging

from fastapi import Depends, FastAPI, Query, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import RedirectResponse, Response

from libs.errors import InvalidInput, RateLimited, Unauthorized, UpstreamFailure, install_error_handlers
from libs.observability import instrument
from libs.session_guard import SESSION_COOKIE, Identity, issue_session_token, require_auth
from libs.session_guard.tokens import SESSION_TTL_MINUTES

from .config import Settings, get_settings
from .deps import (
    enforce_login_rate_limit,
    enforce_signup_rate_limit,
    get_identity_provider,
    get_link_sender,
)
from .export import router as export_router
from .identity import (
    DuplicateAccount,
    IdentityProvider,
    IdentityProviderError,
    InvalidCredentials,
    InvalidEmail,
    ProviderRateLimited,
    WeakPassword,
)
from .links import LinkSender, build_sign_in_link
from .redirects import safe_redirect
from .schemas import Acknowledgement, LoginRequest, Me, SessionIssued, SignupRequest
from .security import PASSWORD_REQUIREMENTS_MESSAGE

SERVICE_NAME = "auth-service"

logger = logging.getLogger(__name__)

INVALID_LOGIN_MESSAGE = "Invalid email or password. Please try again."
DUPLICATE_ACCOUNT_MESSAGE = "An account with this email already exists. Please sign in instead."
INVALID_EMAIL_MESSAGE = "Enter a valid email address"
SIGNUP_THROTTLED_MESSAGE = "Too many signup attempts. Please try again later."
LOGIN_FAILURE_REDIRECT = "/auth/login?error=Could%20not%20authenticate"

app = FastAPI(title="Auth Service", version="0.1.0")
instrument(app, service_name=SERVICE_NAME)
install_error_handlers(app)

_settings = get_settings()
app.add_middleware(
    CORSMiddleware,
    allow_origins=_settings.allowed_origins,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Authorization", "Content-Type"],
    allow_credentials=True,
)
app.include_router(export_router)


def _set_session_cookie(response: Response, token: str, settings: Settings) -> None:
    response.set_cookie(
        SESSION_COOKIE,
        token,
        max_age=SESSION_TTL_MINUTES * 60,
        httponly=True,
        secure=settings.session_cookie_secure,
        samesite="lax",
    )


@app.post(
    "/auth/login",
    response_model=SessionIssued,
    dependencies=[Depends(enforce_login_rate_limit)],
)
def login(
    payload: LoginRequest,
    response: Response,
    provider: IdentityProvider = Depends(get_identity_provider),
    settings: Settings = Depends(get_settings),
):
    try:
        profile = provider.sign_in(payload.email, payload.password)
    except (InvalidCredentials, ProviderRateLimited) as exc:
        logger.info("Login rejected", extra={"reason": type(exc).__name__})
        raise Unauthorized(INVALID_LOGIN_MESSAGE) from None
    except IdentityProviderError as exc:
        logger.error("Identity provider failed during login", exc_info=True)
        raise UpstreamFailure() from exc

    token = issue_session_token(profile.id)
    _set_session_cookie(response, token, settings)
    return SessionIssued(access_token=token)


@app.post(
    "/auth/signup",
    response_model=Acknowledgement,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(enforce_signup_rate_limit)],
)
def signup(
    payload: SignupRequest,
    provider: IdentityProvider = Depends(get_identity_provider),
    sender: LinkSender = Depends(get_link_sender),
    settings: Settings = Depends(get_settings),
):
    try:
        profile = provider.sign_up(
            email=payload.email,
            password=payload.password,
            full_name=payload.full_name,
            phone=payload.phone,
        )
    except DuplicateAccount:
        raise InvalidInput(DUPLICATE_ACCOUNT_MESSAGE) from None
    except WeakPassword as exc:
        raise InvalidInput(str(exc) or PASSWORD_REQUIREMENTS_MESSAGE) from None
    except InvalidEmail:
        raise InvalidInput(INVALID_EMAIL_MESSAGE) from None
    except ProviderRateLimited as exc:
        raise RateLimited(retry_after=exc.retry_after, message=SIGNUP_THROTTLED_MESSAGE) from None
    except IdentityProviderError as exc:
        logger.error("Identity provider failed during signup", exc_info=True)
        raise UpstreamFailure() from exc

    # The account is committed; a failed link leaves password sign-in usable.
    try:
        code = provider.issue_code(profile.id)
    except IdentityProviderError:
        logger.error("Could not issue sign-in link", exc_info=True, extra={"user_id": profile.id})
    else:
        sender.send_sign_in_link(
            user_id=profile.id,
            email=profile.email,
            link=build_sign_in_link(settings.public_base_url, code),
        )
    return Acknowledgement()


@app.get("/auth/callback")
def auth_callback(
    code: str | None = None,
    next_path: str | None = Query(None, alias="next"),
    provider: IdentityProvider = Depends(get_identity_provider),
    settings: Settings = Depends(get_settings),
):
    """Exchange an authorization code for a session and return the caller."""

    target = safe_redirect(next_path)
    if code:
        try:
            profile = provider.exchange_code(code)
        except IdentityProviderError as exc:
            logger.info("Authorization code rejected", extra={"reason": type(exc).__name__})
        else:
            response = RedirectResponse(target, status_code=status.HTTP_303_SEE_OTHER)
            _set_session_cookie(response, issue_session_token(profile.id), settings)
            return response
    return RedirectResponse(LOGIN_FAILURE_REDIRECT, status_code=status.HTTP_303_SEE_OTHER)


@app.get("/auth/me", response_model=Me)
def me(identity: Identity = Depends(require_auth)):
    return Me(id=identity.user_id, email=identity.email, role=identity.role)


@app.post("/auth/logout", response_model=Acknowledgement)
def logout(response: Response):
    response.delete_cookie(SESSION_COOKIE)
    return Acknowledgement()
