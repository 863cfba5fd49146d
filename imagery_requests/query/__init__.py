"""Listing query construction and pagination."""

from imagery_requests.query.listing import ListingQuery, ListingScope, Page

__all__ = ["ListingQuery", "ListingScope", "Page"]
