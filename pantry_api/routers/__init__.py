from . import ai, auth, ocr, products, recipes, users

__all__ = ["ai", "auth", "ocr", "products", "recipes", "users"]
