from execution.log_decoder import LogDecodeError, decode_log
from execution.log_fetcher import LogFetcher
from execution.redis_publisher import RedisBatchPublisher

__all__ = [
    "LogDecodeError",
    "LogFetcher",
    "RedisBatchPublisher",
    "decode_log",
]
