from skinroutine.models.db import ProductRecord

__all__ = [
    "ProductRecord",
]
