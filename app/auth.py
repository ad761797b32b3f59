from jose import jwt, JWTError, ExpiredSignatureError
from datetime import datetime, timedelta, timezone
from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from sqlmodel import Session
from typing import Annotated, Optional

from .config import SECRET_KEY, ALGORITHM, ACCESS_TOKEN_EXPIRE_MINUTES
from .database import get_session
from .models.user import User

# Senders sign in through the account service, this API only checks their tokens
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="token")

def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )

def create_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES))
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)

def decode_token(token: str = Depends(oauth2_scheme)) -> dict:
    try:
        return jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
    except ExpiredSignatureError:
        raise _unauthorized("Token has expired")
    except JWTError:
        raise _unauthorized("Could not validate credentials")

async def get_current_user_id(payload: Annotated[dict, Depends(decode_token)]) -> int:
    # Refresh tokens carry the same subject but must not reach the API
    if payload.get("type") != "access" or not payload.get("sub"):
        raise _unauthorized("Invalid token type")
    return int(payload["sub"])

def get_current_sender(
    user_id: Annotated[int, Depends(get_current_user_id)],
    session: Session = Depends(get_session)
) -> User:
    sender = session.get(User, user_id)
    if not sender:
        raise HTTPException(status_code=404, detail="User not found")
    return sender
