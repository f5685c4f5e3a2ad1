from app.pixabay.client import PixabayClient


def search_hits(query: str, media_type: str = "image", per_page: int = 20):
    return PixabayClient().search(query, media_type, per_page=per_page)


__all__ = ["PixabayClient", "search_hits"]
