from .stream_aggregation import StreamAggregationUseCase

__all__ = ["StreamAggregationUseCase"]
