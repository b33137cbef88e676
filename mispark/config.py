import os
from dotenv import load_dotenv

load_dotenv()

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./mispark.db")

# Access tokens issued by the backend auth service
JWT_SECRET = os.getenv("JWT_SECRET", "your_really_long_secret_key")
JWT_AUDIENCE = os.getenv("JWT_AUDIENCE", "authenticated")
ADMIN_EMAIL = os.getenv("ADMIN_EMAIL")

# OCR.Space compatible endpoint
OCR_API_URL = os.getenv("OCR_API_URL", "https://api.ocr.space/parse/image")
OCR_API_KEY = os.getenv("OCR_API_KEY", "")
OCR_TIMEOUT_SECONDS = float(os.getenv("OCR_TIMEOUT_SECONDS", "15"))

# S3 compatible object storage
S3_ENDPOINT_URL = os.getenv("S3_ENDPOINT_URL")
S3_REGION = os.getenv("S3_REGION", "auto")
AWS_ACCESS_KEY_ID = os.getenv("AWS_ACCESS_KEY_ID")
AWS_SECRET_ACCESS_KEY = os.getenv("AWS_SECRET_ACCESS_KEY")
STORAGE_PUBLIC_URL = os.getenv("STORAGE_PUBLIC_URL", "http://localhost:54321")
REPORT_PHOTOS_BUCKET = os.getenv("REPORT_PHOTOS_BUCKET", "report-photos")
PROFILE_PHOTOS_BUCKET = os.getenv("PROFILE_PHOTOS_BUCKET", "profile-photos")

# Realtime
REALTIME_CHANNEL = os.getenv("REALTIME_CHANNEL", "reports_changes")
REALTIME_RECONNECT_SECONDS = float(os.getenv("REALTIME_RECONNECT_SECONDS", "2"))
RESYNC_ON_RECONNECT = os.getenv("RESYNC_ON_RECONNECT", "1") == "1"

# Reverse geocoding for the map view
GEOCODER_URL = os.getenv("GEOCODER_URL", "https://nominatim.openstreetmap.org/reverse")
GEOCODER_USER_AGENT = os.getenv("GEOCODER_USER_AGENT", "mispark/1.0 (contact: admin@example.com)")
GEOCODER_TIMEOUT_SECONDS = float(os.getenv("GEOCODER_TIMEOUT_SECONDS", "3"))

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "http://localhost:8081").split(",") if o.strip()]
