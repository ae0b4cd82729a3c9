from feedline.upstream.client import UpstreamClient

__all__ = ["UpstreamClient"]
