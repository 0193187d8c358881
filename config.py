import os

BASE_DIR = os.path.abspath(os.path.dirname(__file__))


def _env_bool(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).lower() == "true"


class Config:
    # Secrets
    SECRET_KEY = os.getenv("SECRET_KEY", "dev-only-change-me")

    # SQLite database file stored next to app.py as clinic.db
    SQLALCHEMY_DATABASE_URI = os.getenv(
        "DATABASE_URL",
        "sqlite:///" + os.path.join(BASE_DIR, "clinic.db")
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Identity is resolved upstream; the proxy forwards the user id in this header
    IDENTITY_HEADER = os.getenv("IDENTITY_HEADER", "X-User-Id")

    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

    # Payment gateway used for customer checkouts: midtrans | doku
    PAYMENT_GATEWAY = os.getenv("PAYMENT_GATEWAY", "midtrans")

    # Midtrans Snap
    MIDTRANS_SERVER_KEY = os.getenv("MIDTRANS_SERVER_KEY")
    MIDTRANS_CLIENT_KEY = os.getenv("MIDTRANS_CLIENT_KEY")
    MIDTRANS_IS_PRODUCTION = _env_bool("MIDTRANS_IS_PRODUCTION")

    # DOKU Checkout
    DOKU_CLIENT_ID = os.getenv("DOKU_CLIENT_ID")
    DOKU_SECRET_KEY = os.getenv("DOKU_SECRET_KEY")
    DOKU_IS_PRODUCTION = _env_bool("DOKU_IS_PRODUCTION")
    # Path DOKU posts notifications to (part of the signed string)
    DOKU_NOTIFICATION_TARGET = "/webhooks/doku"

    # Frontend base URL used to build gateway callback URLs
    SITE_URL = os.getenv("SITE_URL", "http://localhost:3000")

    # Hosted payment page lifetime at the provider
    PAYMENT_EXPIRY_MINUTES = int(os.getenv("PAYMENT_EXPIRY_MINUTES", "60"))
    GATEWAY_TIMEOUT_SECONDS = int(os.getenv("GATEWAY_TIMEOUT_SECONDS", "15"))

    # Reconciliation sweep: only pending payments older than this are re-checked
    RECONCILE_STALE_MINUTES = int(os.getenv("RECONCILE_STALE_MINUTES", "15"))
    RECONCILE_BATCH_SIZE = int(os.getenv("RECONCILE_BATCH_SIZE", "100"))

    # Create default roles on startup (needs the tables to exist)
    SEED_ROLES = _env_bool("SEED_ROLES", "true")

    # Basic app settings
    DEBUG = False


class MidtransSettings:
    SANDBOX_SNAP_URL = "https://app.sandbox.midtrans.com/snap/v1/transactions"
    PRODUCTION_SNAP_URL = "https://app.midtrans.com/snap/v1/transactions"
    SANDBOX_API_URL = "https://api.sandbox.midtrans.com"
    PRODUCTION_API_URL = "https://api.midtrans.com"

    def __init__(self, server_key, client_key=None, is_production=False,
                 expiry_minutes=60, timeout=15):
        self.server_key = server_key
        self.client_key = client_key
        self.is_production = is_production
        self.expiry_minutes = expiry_minutes
        self.timeout = timeout

    @property
    def configured(self) -> bool:
        return bool(self.server_key and self.client_key)

    @property
    def snap_url(self) -> str:
        return self.PRODUCTION_SNAP_URL if self.is_production else self.SANDBOX_SNAP_URL

    @property
    def api_url(self) -> str:
        return self.PRODUCTION_API_URL if self.is_production else self.SANDBOX_API_URL


class DokuSettings:
    SANDBOX_URL = "https://api-sandbox.doku.com"
    PRODUCTION_URL = "https://api.doku.com"

    def __init__(self, client_id, secret_key, is_production=False,
                 expiry_minutes=60, timeout=15, notification_target="/webhooks/doku"):
        self.client_id = client_id
        self.secret_key = secret_key
        self.is_production = is_production
        self.expiry_minutes = expiry_minutes
        self.timeout = timeout
        self.notification_target = notification_target

    @property
    def configured(self) -> bool:
        return bool(self.client_id and self.secret_key)

    @property
    def base_url(self) -> str:
        return self.PRODUCTION_URL if self.is_production else self.SANDBOX_URL


class GatewaySettings:
    """Provider credentials and URLs, built once from the Flask config."""

    def __init__(self, default_gateway, midtrans, doku, site_url, expiry_minutes=60):
        self.default_gateway = default_gateway
        self.expiry_minutes = expiry_minutes
        self.midtrans = midtrans
        self.doku = doku
        self.site_url = site_url.rstrip("/")

    @classmethod
    def from_config(cls, config):
        expiry = config.get("PAYMENT_EXPIRY_MINUTES", 60)
        timeout = config.get("GATEWAY_TIMEOUT_SECONDS", 15)
        midtrans = MidtransSettings(
            server_key=config.get("MIDTRANS_SERVER_KEY"),
            client_key=config.get("MIDTRANS_CLIENT_KEY"),
            is_production=config.get("MIDTRANS_IS_PRODUCTION", False),
            expiry_minutes=expiry,
            timeout=timeout,
        )
        doku = DokuSettings(
            client_id=config.get("DOKU_CLIENT_ID"),
            secret_key=config.get("DOKU_SECRET_KEY"),
            is_production=config.get("DOKU_IS_PRODUCTION", False),
            expiry_minutes=expiry,
            timeout=timeout,
            notification_target=config.get("DOKU_NOTIFICATION_TARGET", "/webhooks/doku"),
        )
        return cls(
            default_gateway=(config.get("PAYMENT_GATEWAY") or "midtrans").lower(),
            midtrans=midtrans,
            doku=doku,
            site_url=config.get("SITE_URL") or "http://localhost:3000",
            expiry_minutes=expiry,
        )

    def callback_urls(self) -> dict:
        base = f"{self.site_url}/user/dashboard/bookings/payment"
        return {
            "success": f"{base}/success",
            "error": f"{base}/error",
            "pending": f"{base}/pending",
        }
