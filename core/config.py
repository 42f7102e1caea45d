import os
from dotenv import load_dotenv

# Load environment variables from .env file, if it exists
load_dotenv()

# Attendance is bucketed by the civil date in this zone
ATTENDANCE_TIMEZONE = os.getenv("ATTENDANCE_TIMEZONE", "Asia/Kolkata")

# Geofence defaults (meters)
DEFAULT_RADIUS_METERS = int(os.getenv("DEFAULT_RADIUS_METERS", "500"))
MIN_SITE_RADIUS = 100
MAX_SITE_RADIUS = 1000

# Checkout before this many hours needs remarks
EARLY_CHECKOUT_HOURS = float(os.getenv("EARLY_CHECKOUT_HOURS", "7"))

# Shared secret for automation webhooks (X-API-Key)
API_KEY = os.getenv("API_KEY")

# Reminder times, "HH:MM" in ATTENDANCE_TIMEZONE
CHECK_IN_REMINDER_TIME = os.getenv("CHECK_IN_REMINDER_TIME", "09:30")
CHECK_OUT_REMINDER_TIME = os.getenv("CHECK_OUT_REMINDER_TIME", "18:30")

# CORS
DEV_DOMAIN = os.getenv("DEV_DOMAIN", "http://localhost:5173")
PRODUCTION_DOMAIN = os.getenv("PRODUCTION_DOMAIN")

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
