"""
Storage layer for the Bookshelf API: record models and MongoDB access.
"""
