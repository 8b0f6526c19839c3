import os

from dotenv import load_dotenv

load_dotenv()

# Database
DATABASE_URL = os.getenv("DATABASE_URL")
DATABASE_NAME = os.getenv("DATABASE_NAME", "capersports")
AZURE_COSMOS_CONNECTION_STRING = os.getenv("AZURE_COSMOS_CONNECTION_STRING")

# JWT Config
SECRET_KEY = os.getenv("JWT_SECRET", "dev-secret-change")
ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("JWT_EXPIRE_MINUTES", 60 * 24 * 7))  # 7 days

# Server
CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
PORT = int(os.getenv("PORT", 8000))

# Checkout rules (GST, INR)
TAX_RATE = float(os.getenv("TAX_RATE", 0.18))
FREE_SHIPPING_THRESHOLD = float(os.getenv("FREE_SHIPPING_THRESHOLD", 1000))
SHIPPING_FEE = float(os.getenv("SHIPPING_FEE", 100))
COUPONS = {"WELCOME10": 0.10}
RETURN_WINDOW_DAYS = 30
ORDER_NUMBER_PREFIX = "CS"

# Invoice letterhead
COMPANY_NAME = "CaperSports"
COMPANY_TAGLINE = "Premium Athletic Wear & Sports Equipment"
COMPANY_EMAIL = "support@capersports.com"
COMPANY_PHONE = "+91-1800-CAPER-SPORTS"
COMPANY_WEBSITE = "www.capersports.com"
COMPANY_ADDRESS = "CaperSports Private Limited, 123 Sports Avenue, Athletic District, Mumbai 400001"
COMPANY_GST = "27ABCCS1234A1Z5"
