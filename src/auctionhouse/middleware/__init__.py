from auctionhouse.middleware.metrics import PrometheusMiddleware, metrics_endpoint

__all__ = ["PrometheusMiddleware", "metrics_endpoint"]
