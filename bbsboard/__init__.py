"""In-memory boards, articles, pages, privileges and game wallet for a terminal bulletin board system."""

__version__ = "1.3.6"