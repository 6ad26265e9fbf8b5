import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import Cookie, Depends, FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

import accounts
import timesheet
from auth import create_session_token, decode_session_token
from config import (
    LOG_LEVEL,
    SESSION_COOKIE_NAME,
    SESSION_COOKIE_SECURE,
    SESSION_LIFETIME_DAYS,
)
from database import get_db, init_db
from errors import AuthError, DTRError, StorageError
from models import User
from schemas import (
    EntryRequest,
    FaceCheckRequest,
    LoginRequest,
    RegisterRequest,
    TimeOutRequest,
)

logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Schema setup happens once per process, not per request
    init_db()
    yield


app = FastAPI(title="Daily Time Record", lifespan=lifespan)


# ---------------- Error handling ----------------

@app.exception_handler(StorageError)
async def storage_error_handler(request: Request, exc: StorageError):
    # already logged where it was raised
    return JSONResponse({"error": "Internal server error"}, status_code=500)


@app.exception_handler(DTRError)
async def dtr_error_handler(request: Request, exc: DTRError):
    body = {"error": exc.message}
    field = getattr(exc, "field", None)
    if field:
        body["field"] = field
    return JSONResponse(body, status_code=exc.status_code)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    first = errors[0] if errors else {}
    location = [str(part) for part in first.get("loc", ()) if part != "body"]
    body = {"error": first.get("msg", "Invalid request")}
    if location:
        body["field"] = ".".join(location)
    return JSONResponse(body, status_code=400)


@app.exception_handler(SQLAlchemyError)
async def database_error_handler(request: Request, exc: SQLAlchemyError):
    logger.exception("Database error on %s %s", request.method, request.url.path)
    return JSONResponse({"error": "Internal server error"}, status_code=500)


# ---------------- Session ----------------

def get_current_user(
    token: Optional[str] = Cookie(None, alias=SESSION_COOKIE_NAME),
    db: Session = Depends(get_db),
) -> User:
    """
    Resolve the user for this request from the signed session cookie.
    """
    if not token:
        raise AuthError("Not authenticated")
    claims = decode_session_token(token)
    user = accounts.get_user(db, claims["user_id"])
    if user is None:
        raise AuthError("Not authenticated")
    return user


@app.get("/health")
def health():
    return {"status": "ok"}


# ---------------- Registration & login ----------------

@app.post("/auth/register", status_code=status.HTTP_201_CREATED)
def register(payload: RegisterRequest, db: Session = Depends(get_db)):
    """
    Create an account. The face descriptor is stored alongside the user
    but is not used to log in.
    """
    accounts.register_user(
        db,
        username=payload.username,
        email=payload.email,
        password=payload.password,
        confirm_password=payload.confirm_password,
        face_descriptor=payload.face_descriptor,
        face_image=payload.face_image,
    )
    return {"message": "Registration successful"}


@app.post("/auth/login")
def login(payload: LoginRequest, db: Session = Depends(get_db)):
    user = accounts.authenticate(db, payload.email, payload.password)
    token = create_session_token(user.id, user.email)

    response = JSONResponse({"message": "Login successful", "user": user.summary()})
    response.set_cookie(
        SESSION_COOKIE_NAME,
        token,
        max_age=SESSION_LIFETIME_DAYS * 24 * 60 * 60,
        httponly=True,
        secure=SESSION_COOKIE_SECURE,
        samesite="lax",
    )
    return response


@app.post("/auth/logout")
def logout():
    response = JSONResponse({"message": "Logged out"})
    response.delete_cookie(
        SESSION_COOKIE_NAME, httponly=True, secure=SESSION_COOKIE_SECURE, samesite="lax"
    )
    return response


@app.get("/auth/me")
def me(user: User = Depends(get_current_user)):
    return {"user": user.summary()}


@app.post("/auth/verify-face")
def verify_face(payload: FaceCheckRequest, user: User = Depends(get_current_user)):
    """
    Compare a fresh capture with the registration capture. Informational
    only: the session is left as it is.
    """
    return accounts.verify_face(user, payload.face_descriptor, payload.face_image)


# ---------------- Time entries ----------------

@app.get("/entries")
def list_entries(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return timesheet.summarize(db, user)


@app.post("/entries", status_code=status.HTTP_201_CREATED)
def create_entry(
    payload: EntryRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    entry = timesheet.add_entry(
        db, user, payload.time_in, payload.time_out, payload.reason, payload.entry_date
    )
    return entry.to_dict()


@app.post("/entries/time-in", status_code=status.HTTP_201_CREATED)
def time_in(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    entry = timesheet.clock_in(db, user)
    return entry.to_dict()


@app.post("/entries/time-out")
def time_out(
    payload: Optional[TimeOutRequest] = None,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    reason = payload.reason if payload else None
    entry = timesheet.clock_out(db, user, reason=reason)
    return entry.to_dict()


@app.put("/entries/{index}")
def update_entry(
    index: int,
    payload: EntryRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    entry = timesheet.edit_entry(
        db, user, index, payload.time_in, payload.time_out, payload.reason, payload.entry_date
    )
    return entry.to_dict()


@app.delete("/entries/{index}")
def delete_entry(
    index: int,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    timesheet.delete_entry(db, user, index)
    return {"message": "Entry deleted"}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)
