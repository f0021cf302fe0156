"""Analytics module for FlightBoard."""

from flightboard.analytics.classification import (
    CLASSIFICATION_RULES,
    Classification,
    ClassificationReason,
    ClassifiedSnapshot,
    classify,
    classify_all,
    measure,
)

__all__ = [
    'CLASSIFICATION_RULES',
    'Classification',
    'ClassificationReason',
    'ClassifiedSnapshot',
    'classify',
    'classify_all',
    'measure',
]
