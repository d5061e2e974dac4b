"""Page loading, content scraping and follow-up page discovery."""

from .loader import handle_loaded_page, load_and_handle_page, scroll_down_page

__all__ = ["handle_loaded_page", "load_and_handle_page", "scroll_down_page"]
