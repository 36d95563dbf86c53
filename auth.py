import logging
from datetime import datetime, timedelta, timezone
from typing import Optional, Tuple

from fastapi import Depends
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt
from passlib.context import CryptContext
from pydantic import ValidationError
from pymongo.database import Database

from config import ACCESS_TOKEN_EXPIRE_MINUTES, ALGORITHM, BCRYPT_ROUNDS, SECRET_KEY
from database import get_db, store_call, strip_id, utcnow
from errors import Conflict, Unauthorized, translate_validation_error
from identifiers import next_account_id
from schemas import Account, LoginPayload, RegisterPayload

logger = logging.getLogger(__name__)

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=BCRYPT_ROUNDS)
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login", auto_error=False)

INVALID_LOGIN = "Invalid email or password"
EMAIL_TAKEN = "Email already exists"


def verify_password(plain_password, hashed_password):
    return pwd_context.verify(plain_password, hashed_password)


def get_password_hash(password):
    return pwd_context.hash(password)


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None):
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES))
    to_encode.update({"exp": expire})
    encoded_jwt = jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)
    return encoded_jwt


def public_account(account: dict) -> dict:
    """Account fields safe to hand back to a caller."""
    return {
        "userId": account["userId"],
        "fullName": account["fullName"],
        "email": account["email"],
        "createdAt": account.get("createdAt"),
        "updatedAt": account.get("updatedAt"),
    }


class AuthGate:
    """Registers accounts, checks passwords and resolves bearer tokens."""

    def __init__(self, db: Database):
        self.collection = db["account"]

    def _find(self, query: dict) -> Optional[dict]:
        with store_call(self.collection, "fetching"):
            return self.collection.find_one(query, {"_id": 0})

    def _issue(self, account: dict) -> str:
        return create_access_token(data={"sub": account["userId"]})

    def register(self, data: dict) -> Tuple[dict, str]:
        try:
            payload = RegisterPayload.model_validate(data)
        except ValidationError as e:
            raise translate_validation_error(e)

        if self._find({"email": payload.email}):
            logger.warning("Registration refused, email already in use")
            raise Conflict(EMAIL_TAKEN, field="email")

        user_id = next_account_id(lambda uid: self._find({"userId": uid}) is not None)
        account = Account(
            userId=user_id,
            fullName=payload.fullName,
            email=payload.email,
            passwordHash=get_password_hash(payload.password),
        ).model_dump()
        now = utcnow()
        account["createdAt"] = now
        account["updatedAt"] = now
        try:
            with store_call(self.collection, "registering", account, "account"):
                self.collection.insert_one(account)
        except Conflict as e:
            if e.field == "email":
                raise Conflict(EMAIL_TAKEN, field="email") from e
            raise
        strip_id(account)
        logger.info("Registered account %s", user_id)
        return public_account(account), self._issue(account)

    def login(self, data: dict) -> Tuple[dict, str]:
        try:
            payload = LoginPayload.model_validate(data)
        except ValidationError as e:
            raise translate_validation_error(e)

        account = self._find({"email": payload.email})
        if account is None:
            # same bcrypt cost as a wrong password
            pwd_context.dummy_verify()
        if not account or not verify_password(payload.password, account.get("passwordHash", "")):
            logger.warning("Failed login attempt")
            raise Unauthorized(INVALID_LOGIN)
        logger.info("Account %s logged in", account["userId"])
        return public_account(account), self._issue(account)

    def verify(self, token: Optional[str]) -> dict:
        credentials_exception = Unauthorized("Could not validate credentials")
        if not token:
            raise Unauthorized("Access token required")
        try:
            payload = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
        except JWTError:
            raise credentials_exception
        user_id = payload.get("sub")
        if user_id is None:
            raise credentials_exception
        account = self._find({"userId": user_id})
        if account is None:
            raise credentials_exception
        return public_account(account)


def get_auth_gate(db: Database = Depends(get_db)) -> AuthGate:
    return AuthGate(db)


def get_current_account(token: Optional[str] = Depends(oauth2_scheme),
                        gate: AuthGate = Depends(get_auth_gate)) -> dict:
    return gate.verify(token)
