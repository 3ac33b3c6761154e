"""Site access service: OIDC login, per-user site permissions and site pages."""

__version__ = "1.0.0"
__all__ = ["api", "common", "ellipsis", "errors", "oidc", "pages", "sites", "store"]