"""
FastAPI RESTful API for the Bookshelf service.

This module provides:
- Account registration, login, refresh and logout
- Cookie or bearer-token identity on every book request
- Owner-scoped book listing, search, creation, update and deletion
- Book creation from an ISBN via Google Books
"""
