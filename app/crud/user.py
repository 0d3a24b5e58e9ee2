from motor.motor_asyncio import AsyncIOMotorDatabase
from app.schemas.user import UserCreate, UserInDB
from app.core.security import get_password_hash

_NO_MONGO_ID = {"_id": 0}


async def get_user_by_username(db: AsyncIOMotorDatabase, username: str):
    """Finds a user by username."""
    return await db["users"].find_one({"username": username.lower()}, _NO_MONGO_ID)


async def create_user(db: AsyncIOMotorDatabase, user: UserCreate) -> UserInDB:
    """Hashes the password and creates a new user in the database."""
    user_in_db = UserInDB(
        username=user.username.lower(),
        hashed_password=get_password_hash(user.password),
    )
    await db["users"].insert_one(user_in_db.model_dump())
    return user_in_db
