import pytest
from httpx import ASGITransport, AsyncClient

from productlens.main import app


@pytest.fixture
async def client():
    """HTTP client bound to the ASGI app (no lifespan, no real browser)."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture
def product_html() -> str:
    """Server-rendered product page, well above the static-length threshold."""
    body = "\n".join(
        f"<p>Paragraph {i}: the Acme Trail Shoe keeps your feet dry on wet rock, "
        f"with a grippy outsole, a breathable mesh upper, and a cushioned midsole "
        f"built for long days on the trail.</p>"
        for i in range(12)
    )
    return (
        "<html><head>"
        "<title>Acme Trail Shoe</title>"
        '<meta name="description" content="Waterproof trail running shoe">'
        "</head><body>"
        "<nav><a href='/'>Home</a> <a href='/shop'>Shop</a></nav>"
        f"<article><h1>Acme Trail Shoe</h1>{body}</article>"
        "<footer>Copyright Acme</footer>"
        "</body></html>"
    )
