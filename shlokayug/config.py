# shlokayug/config.py

import os

# Application
API_VERSION = os.environ.get('API_VERSION', 'v1')
SECRET_KEY = os.environ.get('FLASK_SECRET_KEY', 'supersecret')
ENVIRONMENT = os.environ.get('APP_ENV', 'development')

# Admin bootstrap
ADMIN_EMAIL = os.environ.get('ADMIN_EMAIL', '')
ADMIN_PASSWORD = os.environ.get('ADMIN_PASSWORD', '')

# JWT
JWT_SECRET = os.environ.get('JWT_SECRET', 'supersecretjwt')
JWT_REFRESH_SECRET = os.environ.get('JWT_REFRESH_SECRET', 'supersecretrefresh')
JWT_ALGORITHM = 'HS256'
JWT_ACCESS_EXPIRES_HOURS = int(os.environ.get('JWT_ACCESS_EXPIRES_HOURS', 24 * 7))
JWT_REFRESH_EXPIRES_DAYS = int(os.environ.get('JWT_REFRESH_EXPIRES_DAYS', 30))

# Passwords and account security
BCRYPT_ROUNDS = int(os.environ.get('BCRYPT_ROUNDS', 12))
MAX_FAILED_LOGINS = 5
ACCOUNT_LOCK_MINUTES = 30
EMAIL_VERIFICATION_HOURS = 24
PASSWORD_RESET_MINUTES = 10

# Rate limiting (Flask-Limiter)
RATELIMIT_ENABLED = os.environ.get('RATELIMIT_ENABLED', 'true').lower() == 'true'
RATELIMIT_DEFAULT = os.environ.get('RATELIMIT_DEFAULT', '100 per 15 minutes')
RATELIMIT_AUTH = os.environ.get('RATELIMIT_AUTH', '10 per 15 minutes')
RATELIMIT_STORAGE_URI = os.environ.get('RATELIMIT_STORAGE_URI', 'memory://')
RATELIMIT_HEADERS_ENABLED = True

# CORS
CORS_ALLOWED_ORIGINS = [
    origin.strip() for origin in os.environ.get(
        'CORS_ALLOWED_ORIGINS',
        'http://localhost:3000,http://localhost:5173,http://localhost:19006'
    ).split(',') if origin.strip()
]

# Firebase (Firestore + Storage)
FIREBASE_CREDS = {
    "type": os.environ.get("type", "service_account"),
    "project_id": os.environ.get("project_id", ""),
    "private_key_id": os.environ.get("private_key_id", ""),
    "private_key": os.environ.get("private_key", "").replace('\\n', '\n'),
    "client_email": os.environ.get("client_email", ""),
    "client_id": os.environ.get("client_id", ""),
    "auth_uri": os.environ.get("auth_uri", "https://accounts.google.com/o/oauth2/auth"),
    "token_uri": os.environ.get("token_uri", "https://oauth2.googleapis.com/token"),
    "auth_provider_x509_cert_url": os.environ.get(
        "auth_provider_x509_cert_url", "https://www.googleapis.com/oauth2/v1/certs"
    ),
    "client_x509_cert_url": os.environ.get("client_x509_cert_url", "")
}

# S3-compatible video storage
AWS_ACCESS_KEY = os.environ.get('AWS_ACCESS_KEY', '')
AWS_SECRET_KEY = os.environ.get('AWS_SECRET_KEY', '')
REGION_NAME = os.environ.get('REGION_NAME', 'ap-south-1')
BUCKET_NAME = os.environ.get('BUCKET_NAME', 'shlokayug-media')
S3_ENDPOINT_URL = os.environ.get('S3_ENDPOINT_URL') or None
PRESIGNED_URL_EXPIRES = 604800  # 7 days

# Razorpay
RAZORPAY_KEY_ID = os.environ.get('RAZORPAY_KEY_ID', '')
RAZORPAY_KEY_SECRET = os.environ.get('RAZORPAY_KEY_SECRET', '')
RAZORPAY_WEBHOOK_SECRET = os.environ.get('RAZORPAY_WEBHOOK_SECRET', '')
RAZORPAY_API_URL = 'https://api.razorpay.com/v1'
RAZORPAY_TIMEOUT = 15
DEFAULT_CURRENCY = 'INR'
SUPPORTED_CURRENCIES = ('INR', 'USD', 'EUR')

# Certificates
CERTIFICATE_VERIFY_BASE_URL = os.environ.get(
    'CERTIFICATE_VERIFY_BASE_URL', 'http://localhost:5000/api/v1/certificates/verify/'
)
MASTER_REPORT_BLOB = 'reports/master_certificates.xlsx'

# Uploads
MAX_CONTENT_LENGTH = 500 * 1024 * 1024  # 500MB
ALLOWED_VIDEO_EXTENSIONS = {'.mp4', '.mov', '.mkv', '.webm', '.m4v', '.avi'}
ALLOWED_IMAGE_EXTENSIONS = {'.jpg', '.jpeg', '.png', '.webp'}

# Pagination
DEFAULT_PAGE_SIZE = 10
MAX_PAGE_SIZE = 50

# Scheduler
SCHEDULER_ENABLED = os.environ.get('SCHEDULER_ENABLED', 'false').lower() == 'true'
URL_REFRESH_INTERVAL_HOURS = 3
