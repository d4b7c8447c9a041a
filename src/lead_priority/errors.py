from __future__ import annotations


class LeadNotFoundError(LookupError):
    """The lead does not exist or is owned by another user."""

    def __init__(self, lead_id, user_id) -> None:
        super().__init__(f"Lead {lead_id} not found for user {user_id}")
        self.lead_id = lead_id
        self.user_id = user_id


class PersistenceError(RuntimeError):
    """The backing store rejected a read or write."""
