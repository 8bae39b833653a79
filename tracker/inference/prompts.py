"""Prompt templates for listing refresh inference."""

DEFAULT_MAX_PAGE_CHARS = 10000


def build_refresh_prompt(page_title: str, url: str, page_text: str, max_chars: int = DEFAULT_MAX_PAGE_CHARS) -> str:
    return f"""
    Analyze the following marketplace listing page and extract the current price and availability status.

    Page Title: {page_title}
    Page URL: {url}
    Page Content: {page_text[:max_chars]}... (truncated)

    Instructions:
    - Extract the current listing price as a number (no formatting, just the number)
    - Extract the currency code (PLN, EUR, USD, etc.)
    - Set isAvailable to false if the page shows the listing is no longer available, removed, expired, or is a "not found" type page
    - Set isSold to true if the page explicitly indicates the item was sold
    - If the page looks like a normal active listing, set isAvailable to true and isSold to false
    """
