# config.py

import os
from dotenv import load_dotenv

load_dotenv()

# --- DEPLOYMENT SETTINGS ---
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite+aiosqlite:///./cvscreen.db")
APP_API_KEY = os.getenv("APP_API_KEY")
CV_STORAGE_DIR = os.getenv("CV_STORAGE_DIR", "./cvs")
KEYWORDS_FILE = os.getenv("KEYWORDS_FILE")  # None -> bundled data/keywords.json
SCREENING_CACHE_SIZE = int(os.getenv("SCREENING_CACHE_SIZE", "0"))

# --- LIMITS ---
MAX_FILE_BYTES = 10 * 1024 * 1024  # 10 MB limit for uploaded CVs
MAX_STORED_TEXT_CHARS = 50_000
MIN_USABLE_TEXT_LENGTH = 30
BATCH_CONCURRENCY = 5

# --- SCORING ---
SCORE_PER_KEYWORD = 10
MAX_SCORE = 100

# --- RETRIES ---
FETCH_ATTEMPTS = 3

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_FORMAT = "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>"
