"""
FastAPI RESTful API for the Bookshelf service.

This package provides REST endpoints for:
- Listing books and users with filters, creation time ranges and pagination
- Showing, creating and updating single records
- Pagination metadata in X-Total-Count / X-Total-Pages-Count style headers
"""
