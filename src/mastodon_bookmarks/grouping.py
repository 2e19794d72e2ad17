"""Group bookmarks by their author."""

from dataclasses import dataclass, field
from enum import Enum

from .models import Account, Status


class SortOption(Enum):
    NAME_ASC = "name-asc"
    NAME_DESC = "name-desc"
    POSTS_DESC = "posts-desc"
    POSTS_ASC = "posts-asc"


@dataclass
class AccountGroup:
    account: Account
    statuses: list[Status] = field(default_factory=list)

    @property
    def sort_name(self) -> str:
        return (self.account.display_name or self.account.username).lower()


def account_key(account: Account) -> str:
    return account.acct or account.username


def group_by_account(statuses: list[Status]) -> list[AccountGroup]:
    """Group statuses by author, in order of first appearance.

    The account snapshot of the first status seen for an author is kept.
    """
    groups: dict[str, AccountGroup] = {}
    for status in statuses:
        key = account_key(status.account)
        if key not in groups:
            groups[key] = AccountGroup(account=status.account)
        groups[key].statuses.append(status)
    return list(groups.values())


def sort_groups(groups: list[AccountGroup], option: SortOption) -> list[AccountGroup]:
    if option is SortOption.NAME_ASC:
        return sorted(groups, key=lambda g: g.sort_name)
    if option is SortOption.NAME_DESC:
        return sorted(groups, key=lambda g: g.sort_name, reverse=True)
    if option is SortOption.POSTS_DESC:
        return sorted(groups, key=lambda g: len(g.statuses), reverse=True)
    return sorted(groups, key=lambda g: len(g.statuses))
