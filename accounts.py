"""Registration, login and face check for user accounts."""

import logging
import re
from typing import Optional, Sequence, Union

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from auth import hash_password, verify_password
from config import FACE_MATCH_THRESHOLD, MIN_PASSWORD_LENGTH, REQUIRE_FACE_CAPTURE
from errors import AuthError, ConflictError, StorageError, ValidationError
from face_utils import (
    capture_descriptor,
    compare_descriptors,
    decode_base64_image,
    decode_descriptor,
    encode_descriptor,
    encode_png_data_url,
    is_face_match,
)
from models import User

logger = logging.getLogger(__name__)

EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")

DescriptorInput = Union[str, Sequence[float], None]

# Dummy hash so an unknown email costs as much as a wrong password.
_DUMMY_HASH = hash_password("not-a-real-password")


def _resolve_descriptor(face_descriptor: DescriptorInput, face_image: Optional[str]):
    """
    Descriptor from the request, or sampled from the posted frame when only
    the image was sent. Returns (descriptor or None, image or None).
    """
    if face_descriptor:
        if face_image:
            # only stored, but it must still be a decodable frame
            decode_base64_image(face_image)
        return decode_descriptor(face_descriptor), face_image
    if face_image:
        descriptor, preview = capture_descriptor(face_image)
        return descriptor, encode_png_data_url(preview)
    return None, None


def register_user(
    db: Session,
    username: Optional[str],
    email: Optional[str],
    password: Optional[str],
    confirm_password: Optional[str],
    face_descriptor: DescriptorInput = None,
    face_image: Optional[str] = None,
) -> User:
    """
    Validate the form, reject duplicate identities and store a new user
    with a hashed password.
    """
    username = (username or "").strip()
    email = (email or "").strip().lower()

    if not username or not email or not password or not confirm_password:
        raise ValidationError("All fields are required")
    if not EMAIL_RE.match(email):
        raise ValidationError("Email address is not valid", field="email")
    if REQUIRE_FACE_CAPTURE and not face_descriptor and not face_image:
        raise ValidationError("Face recognition required for registration", field="faceDescriptor")
    if password != confirm_password:
        raise ValidationError("Passwords do not match", field="confirmPassword")
    if len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(
            f"Password must be at least {MIN_PASSWORD_LENGTH} characters", field="password"
        )

    descriptor, image = _resolve_descriptor(face_descriptor, face_image)

    existing = (
        db.query(User.id)
        .filter(or_(User.email == email, User.username == username))
        .first()
    )
    if existing:
        raise ConflictError("User with this email or username already exists")

    user = User(
        username=username,
        email=email,
        password_hash=hash_password(password),
        face_descriptor=encode_descriptor(descriptor) if descriptor else None,
        face_image=image,
    )
    db.add(user)
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise ConflictError("User with this email or username already exists") from exc
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("Could not store user %s", username)
        raise StorageError("Internal server error") from exc
    db.refresh(user)

    logger.info("Registered user id=%s username=%s", user.id, user.username)
    return user


def authenticate(db: Session, email: Optional[str], password: Optional[str]) -> User:
    """
    Password login. Unknown email and wrong password fail the same way.
    """
    if not email or not password:
        raise ValidationError("Email and password are required")

    user = db.query(User).filter(User.email == email.strip().lower()).first()
    if user is None:
        verify_password(password, _DUMMY_HASH)
        raise AuthError()
    if not verify_password(password, user.password_hash):
        raise AuthError()

    logger.info("User id=%s logged in", user.id)
    return user


def get_user(db: Session, user_id: int) -> Optional[User]:
    return db.get(User, user_id)


def verify_face(
    user: User, face_descriptor: DescriptorInput = None, face_image: Optional[str] = None
) -> dict:
    """
    Compare a fresh descriptor with the one stored at registration.
    The result is informational only; it never grants or revokes a session.
    """
    if not user.face_descriptor:
        raise ValidationError("No face data on file for this user", field="faceDescriptor")
    candidate, _ = _resolve_descriptor(face_descriptor, face_image)
    if candidate is None:
        raise ValidationError("Face descriptor or image is required", field="faceDescriptor")

    distance = compare_descriptors(candidate, decode_descriptor(user.face_descriptor))
    return {
        "match": is_face_match(distance, FACE_MATCH_THRESHOLD),
        "distance": distance,
        "threshold": FACE_MATCH_THRESHOLD,
    }
