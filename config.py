# config.py
import os
from dotenv import load_dotenv

load_dotenv()

MONGODB_URI = os.getenv("MONGODB_URI", "mongodb://localhost:27017")
MONGODB_DB = os.getenv("MONGODB_DB", "classroom_db")

JWT_SECRET = os.getenv("JWT_SECRET", "dev-secret-key-change-me")
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", str(60 * 24)))

GROQ_API_KEY = os.getenv("GROQ_API_KEY")
GROQ_BASE_URL = os.getenv("GROQ_BASE_URL", "https://api.groq.com/openai/v1")

# Tried in order; the first model that answers with parseable JSON wins
DEFAULT_GROQ_MODELS = [
    "llama-3.1-8b-instant",
    "llama3-groq-70b-8192-tool-use-preview",
    "llama3-groq-8b-8192-tool-use-preview",
]
GROQ_MODELS = [
    m.strip() for m in os.getenv("GROQ_MODELS", ",".join(DEFAULT_GROQ_MODELS)).split(",") if m.strip()
]
AI_REQUEST_TIMEOUT = float(os.getenv("AI_REQUEST_TIMEOUT", "30"))

MAX_GENERATED_QUESTIONS = int(os.getenv("MAX_GENERATED_QUESTIONS", "20"))
DOCUMENT_EXCERPT_LIMIT = int(os.getenv("DOCUMENT_EXCERPT_LIMIT", "3000"))

UPLOAD_DIR = os.getenv("UPLOAD_DIR", os.path.join(os.path.dirname(os.path.abspath(__file__)), "uploads"))
UPLOAD_URL_PREFIX = "/uploads/dpp-submissions"

CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "http://localhost:3000").split(",") if o.strip()]
