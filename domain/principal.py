"""
Domain: authenticated principals and sale capabilities.

Authentication happens upstream; this module only models the principal it
hands us and the role-based capability checks used at the request seam.
The stock logic never inspects roles directly: it receives a
``can_edit_sale_line_items`` callable instead.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Callable
from uuid import UUID


class Role(str, Enum):
    ADMIN = "admin"
    MANAGER = "manager"
    EMPLOYEE = "employee"
    SPC = "spc"


_PRIVILEGED_SALE_ROLES = frozenset({Role.ADMIN, Role.MANAGER})


@dataclass(frozen=True, slots=True)
class Principal:
    """The caller of a sale operation, as vouched for by the auth layer."""

    user_id: UUID
    role: Role

    def is_sales_privileged(self) -> bool:
        """Admins and managers act on every sale; everyone else only on their own."""
        return self.role in _PRIVILEGED_SALE_ROLES


LineItemEditCheck = Callable[[Principal], bool]


def can_edit_sale_line_items(principal: Principal) -> bool:
    return principal.is_sales_privileged()


def can_change_sale_status(principal: Principal) -> bool:
    return principal.is_sales_privileged()


def can_delete_sale(principal: Principal) -> bool:
    return principal.is_sales_privileged()


def can_act_for(principal: Principal, sold_by: UUID) -> bool:
    """Whether the principal may create or touch a sale recorded for ``sold_by``."""
    return principal.is_sales_privileged() or principal.user_id == sold_by
