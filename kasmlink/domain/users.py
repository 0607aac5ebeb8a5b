"""
User directory operations.

Stateless: every read goes to the service, nothing is cached.
"""

from __future__ import annotations

from kasmlink.domain.client import KasmClient
from kasmlink.domain.types import UserAttributes, UserRecord


class UserDirectory:
    """Account management on top of KasmClient."""

    def __init__(self, client: KasmClient) -> None:
        self.client = client

    def create(self, user: UserRecord, password: str | None = None) -> UserRecord:
        return self.client.create_user(user, password)

    def get(self, user_id: str) -> UserRecord:
        return self.client.get_user(user_id=user_id)

    def get_by_username(self, username: str) -> UserRecord:
        return self.client.get_user(username=username)

    def list_all(self) -> list[UserRecord]:
        return self.client.list_users()

    def update(self, user: UserRecord, password: str | None = None) -> UserRecord:
        return self.client.update_user(user, password)

    def delete(self, user_id: str, force: bool = False) -> None:
        self.client.delete_user(user_id, force=force)

    def logout(self, user_id: str) -> None:
        self.client.logout_user(user_id)

    def get_attributes(self, user_id: str) -> UserAttributes:
        return self.client.get_user_attributes(user_id)

    def update_attributes(self, attributes: UserAttributes) -> None:
        self.client.update_user_attributes(attributes)

    def add_to_group(self, user_id: str, group_id: str) -> None:
        self.client.add_user_to_group(user_id, group_id)

    def remove_from_group(self, user_id: str, group_id: str) -> None:
        self.client.remove_user_from_group(user_id, group_id)

    def login_link(self, user_id: str) -> str:
        return self.client.get_login_link(user_id)

    def exists(self, username: str) -> bool:
        """Whether a user with this username is listed by the service."""
        return any(u.username == username for u in self.client.list_users())
