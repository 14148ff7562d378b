"""Import engine turning raw provider rows into stored points."""

from tickerpipe.core.data.ingestion.config import ImportConfigError, ImportOptions
from tickerpipe.core.data.ingestion.dialects import (
    CboeDialect,
    FredDialect,
    PolygonDialect,
    SourceDialect,
    get_dialect,
)
from tickerpipe.core.data.ingestion.engine import ImportEngine, ImportResult
from tickerpipe.core.data.ingestion.models import AggregatePoint, DataPoint, RawRow, UnivariatePoint
from tickerpipe.core.data.ingestion.readers import RowParser, iter_csv_rows, read_csv_rows
from tickerpipe.core.data.ingestion.validator import validate_point

__all__ = [
    "AggregatePoint",
    "CboeDialect",
    "DataPoint",
    "FredDialect",
    "ImportConfigError",
    "ImportEngine",
    "ImportOptions",
    "ImportResult",
    "PolygonDialect",
    "RawRow",
    "RowParser",
    "SourceDialect",
    "UnivariatePoint",
    "get_dialect",
    "iter_csv_rows",
    "read_csv_rows",
    "validate_point",
]
