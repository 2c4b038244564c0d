class ProductLensError(Exception):
    """Base class for errors raised by the extraction pipeline."""


class BrowserLaunchError(ProductLensError):
    """The headless browser could not be started at all."""


class RenderTimeoutError(ProductLensError):
    """Dynamic rendering exceeded its navigation budget."""

    def __init__(self, url: str, timeout_ms: int):
        self.url = url
        self.timeout_ms = timeout_ms
        super().__init__(f"Navigation timeout of {timeout_ms} ms exceeded for {url}")
