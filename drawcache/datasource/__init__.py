from .base import ResultDataSource
from .caixa import CaixaDataSource, CaixaDataSourceConfig, normalize_payload

__all__ = [
    "ResultDataSource",
    "CaixaDataSource",
    "CaixaDataSourceConfig",
    "normalize_payload",
]
