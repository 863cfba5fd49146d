"""CSV export of the admin listing."""
