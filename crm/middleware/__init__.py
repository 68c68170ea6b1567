from crm.middleware.auth import AuthMiddleware

__all__ = ["AuthMiddleware"]
