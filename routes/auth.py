# routes/auth.py
from fastapi import APIRouter, HTTPException, Depends
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt
from datetime import timedelta
import bcrypt
import uuid
import logging

from config import ACCESS_TOKEN_EXPIRE_MINUTES, JWT_ALGORITHM, JWT_SECRET
from database import get_db
from models.common import utcnow
from models.user import LoginRequest, UserCreate

# Set up logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["auth"])
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login")


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(password: str, hashed: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        return False


def create_access_token(user: dict) -> str:
    expire = utcnow() + timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES)
    return jwt.encode({"id": user["id"], "role": user["role"], "exp": expire}, JWT_SECRET, algorithm=JWT_ALGORITHM)


def public_user(user: dict) -> dict:
    return {"id": user["id"], "name": user["name"], "email": user["email"], "role": user["role"]}


async def get_current_user(token: str = Depends(oauth2_scheme), db=Depends(get_db)):
    try:
        payload = jwt.decode(token, JWT_SECRET, algorithms=[JWT_ALGORITHM])
    except JWTError as e:
        logger.warning(f"JWTError: {str(e)}")
        raise HTTPException(status_code=401, detail="Invalid token")
    user_id = payload.get("id")
    role = payload.get("role")
    if not user_id or not role:
        logger.warning("Invalid token: Missing user id or role")
        raise HTTPException(status_code=401, detail="Invalid token")
    user = await db.users.find_one({"id": user_id}, {"_id": 0})
    if not user:
        logger.warning(f"User not found for id: {user_id}")
        raise HTTPException(status_code=401, detail="User not found")
    return public_user(user)


async def require_teacher(current_user: dict = Depends(get_current_user)):
    if current_user["role"] != "teacher":
        raise HTTPException(403, "Only teachers can perform this action")
    return current_user


async def require_student(current_user: dict = Depends(get_current_user)):
    if current_user["role"] != "student":
        raise HTTPException(403, "Only students can perform this action")
    return current_user


@router.post("/register", status_code=201)
async def register(request: UserCreate, db=Depends(get_db)):
    email = request.email.strip().lower()
    if await db.users.find_one({"email": email}):
        raise HTTPException(status_code=400, detail="Email already registered")
    user = {
        "id": str(uuid.uuid4()),
        "name": request.name,
        "email": email,
        "password": hash_password(request.password),
        "role": request.role,
        "createdAt": utcnow(),
    }
    await db.users.insert_one(user)
    logger.info(f"Registered {user['role']} {user['id']}")
    return {"access_token": create_access_token(user), "token_type": "bearer", "user": public_user(user)}


@router.post("/login")
async def login(request: LoginRequest, db=Depends(get_db)):
    logger.info(f"Login attempt for email: {request.email}")
    user = await db.users.find_one({"email": request.email.strip().lower()})
    if not user or not verify_password(request.password, user["password"]):
        raise HTTPException(status_code=401, detail="Invalid credentials")
    return {"access_token": create_access_token(user), "token_type": "bearer", "user": public_user(user)}


@router.get("/current-user")
async def get_current_user_endpoint(current_user: dict = Depends(get_current_user)):
    return current_user
