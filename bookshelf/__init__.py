"""
Core of the Bookshelf service.

- Token issuing and validation
- Registration, login and refresh
- Owner-scoped book storage and queries
- ISBN metadata lookup through Google Books
"""
