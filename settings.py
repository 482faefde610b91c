import os

DATABASE_URL = os.getenv("DATABASE_URL", "mongodb://localhost:27017")
DATABASE_NAME = os.getenv("DATABASE_NAME", "ecommerce")

# JWT Config
JWT_SECRET = os.getenv("JWT_SECRET", "dev-secret-change")
ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", 120))  # 2 hours

BCRYPT_ROUNDS = int(os.getenv("BCRYPT_ROUNDS", 12))

API_VERSION = os.getenv("API_VERSION", "/v1")
BASE_PATH = f"{API_VERSION.rstrip('/')}/ecommerce"

# "replace" rewrites the whole cart after reading it (legacy, racy);
# "atomic" uses a single $push/$inc update
CART_UPDATE_MODE = os.getenv("CART_UPDATE_MODE", "replace")

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
