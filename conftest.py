import os

# Default env for app settings in tests.
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("JWT_SECRET", "test-jwt-secret")
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("STRIPE_WEBHOOK_SECRET", "whsec_test")
os.environ.setdefault("STRIPE_STARTER_MONTHLY_PRICE_ID", "price_starter_month")
os.environ.setdefault("STRIPE_STARTER_YEARLY_PRICE_ID", "price_starter_year")
os.environ.setdefault("STRIPE_PRO_MONTHLY_PRICE_ID", "price_pro_month")
os.environ.setdefault("STRIPE_PRO_YEARLY_PRICE_ID", "price_pro_year")
os.environ.setdefault("RESEND_API_KEY", "")

