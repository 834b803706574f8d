import os
from dotenv import load_dotenv

load_dotenv()

DEFAULT_RESERVED_SLUGS = (
    # system routes
    "admin", "api", "auth", "login", "logout", "signup", "dashboard",
    "analytics", "settings", "profile", "help", "about", "contact",
    "privacy", "terms", "robots", "sitemap", "favicon", "manifest", "sw",
    "landing", "www", "mail", "ftp", "blog", "docs", "support",
    "swagger", "openapi", "static",
    # content verbs and nouns used by the admin UI
    "page", "post", "image", "link", "block", "edit", "delete", "create",
    "new", "update", "view", "preview", "draft", "published",
)

DEFAULT_RENDERER_PRIORITIES = {
    "redirect": 1,
    "article": 2,
    "card": 3,
    "image": 4,
    "gallery": 5,
}


class BaseConfig:
    SECRET_KEY = os.getenv("SECRET_KEY", "dev-secret")
    JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY", SECRET_KEY)
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

    # Slug namespace
    RESERVED_SLUGS = DEFAULT_RESERVED_SLUGS
    RENDERER_PRIORITIES = DEFAULT_RENDERER_PRIORITIES
    SLUG_MIN_LENGTH = 3
    SLUG_MAX_LENGTH = 50

    # Analytics
    GEOIP_ENABLED = os.getenv("GEOIP_ENABLED", "true").lower() == "true"
    GEOIP_URL_TEMPLATE = os.getenv("GEOIP_URL_TEMPLATE", "https://ipapi.co/{ip}/country/")
    GEOIP_TIMEOUT = float(os.getenv("GEOIP_TIMEOUT", "3.0"))
    ANALYTICS_SYNC = False
    ANALYTICS_WORKERS = int(os.getenv("ANALYTICS_WORKERS", "4"))


class DevelopmentConfig(BaseConfig):
    DEBUG = True
    LOG_LEVEL = os.getenv("LOG_LEVEL", "DEBUG")
    SQLALCHEMY_DATABASE_URI = os.getenv("DEV_DATABASE_URI", "sqlite:///linkblocks-dev.db")


class TestingConfig(BaseConfig):
    TESTING = True
    SECRET_KEY = "test-secret"
    JWT_SECRET_KEY = "test-jwt-secret-with-enough-length-for-hs256"
    SQLALCHEMY_DATABASE_URI = "sqlite://"
    GEOIP_ENABLED = False
    ANALYTICS_SYNC = True


class ProductionConfig(BaseConfig):
    DEBUG = False
    SQLALCHEMY_DATABASE_URI = os.getenv("DATABASE_URI")


config_by_name = {
    "development": DevelopmentConfig,
    "testing": TestingConfig,
    "production": ProductionConfig
}
