"""Sites of a user and the permissions granted on them."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from sitehub.common import User
from sitehub.errors import AppError, SecurityError, ValidationError
from sitehub.store import Repository, UserSiteEntity

ROLE_DELIMITER = ","


@dataclass
class SiteInfo:
    """A site with its URL and the permissions held there."""

    name: str = ""
    url: str = ""
    perm: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {"name": self.name, "url": self.url, "permissions": list(self.perm)}


@dataclass
class UserSites:
    """The sites of a user and whether the user may edit them."""

    user: str = ""
    editable: bool = False
    sites: list[SiteInfo] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "user": self.user,
            "editable": self.editable,
            "userSites": [site.to_dict() for site in self.sites],
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> UserSites:
        """Build from the JSON form produced by :meth:`to_dict`."""
        if not isinstance(data, Mapping):
            raise ValueError("the sites payload must be a JSON object")
        sites = [
            SiteInfo(
                name=str(entry.get("name") or ""),
                url=str(entry.get("url") or ""),
                perm=[str(p) for p in entry.get("permissions") or []],
            )
            for entry in data.get("userSites") or []
        ]
        return cls(
            user=str(data.get("user") or ""),
            editable=bool(data.get("editable", False)),
            sites=sites,
        )


@dataclass
class UserList:
    """The users having access to a site."""

    count: int = 0
    users: list[str] = field(default_factory=list)


def has_role(user: User, role: str) -> bool:
    """Tell whether ``user`` holds ``role``."""
    return role in user.roles


class SiteService:
    """Reads and stores the sites of users; changes need the admin role."""

    def __init__(self, admin_role: str, repository: Repository) -> None:
        self.admin_role = admin_role
        self.repository = repository

    def get_sites_for_user(self, user: User) -> UserSites:
        try:
            entities = self.repository.get_sites_for_user(user.email)
        except Exception as exc:
            raise AppError(f"could not get sites for user: {user.email}; {exc}") from exc
        return UserSites(
            user=user.username,
            editable=has_role(user, self.admin_role),
            sites=[
                SiteInfo(name=e.name, url=e.url, perm=e.perm_list.split(ROLE_DELIMITER))
                for e in entities
            ],
        )

    def get_users_for_site(self, site: str, user: User) -> list[str]:
        self._require_admin(user)
        try:
            return self.repository.get_users_for_site(site)
        except Exception as exc:
            raise AppError(f"could not get users for site {site}; {exc}") from exc

    def save_sites_for_user(self, sites: UserSites, user: User) -> None:
        self._require_admin(user)
        if not sites.sites:
            raise ValidationError("no sites supplied to store")
        entities = [
            UserSiteEntity(
                name=s.name,
                user=user.email,
                url=s.url,
                perm_list=ROLE_DELIMITER.join(s.perm),
            )
            for s in sites.sites
        ]
        try:
            self.repository.in_unit_of_work(lambda repo: repo.store_site_for_user(entities))
        except Exception as exc:
            raise AppError(f"could not store the supplied sites; {exc}") from exc

    def _require_admin(self, user: User) -> None:
        if not has_role(user, self.admin_role):
            raise SecurityError(
                f"not allowed to perform this action, missing admin-role for user '{user.email}'"
            )