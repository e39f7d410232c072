"""Business logic, independent of the HTTP layer."""
