from dataclasses import dataclass, field

from django.conf import settings

from transfers.services.exceptions import AuthorizationError


def is_admin(user) -> bool:
    return getattr(user, "role", None) == "admin"


def is_dispatcher(user) -> bool:
    return getattr(user, "role", None) == "dispatcher"


def is_driver(user) -> bool:
    return getattr(user, "role", None) == "driver"


def is_staff_member(user) -> bool:
    return is_admin(user) or is_dispatcher(user)


def _normalize_email(value) -> str:
    return str(value or "").strip().lower()


@dataclass(frozen=True)
class AuthorizationPolicy:
    """
    Who may do what, across companies.

    Built once from settings and passed into services, so the core never reads
    environment state to decide whether someone is a system admin.
    """

    system_admin_user_ids: frozenset = field(default_factory=frozenset)
    system_admin_emails: frozenset = field(default_factory=frozenset)

    @classmethod
    def from_settings(cls):
        return cls(
            system_admin_user_ids=frozenset(
                str(pk) for pk in getattr(settings, "SYSTEM_ADMIN_USER_IDS", [])
            ),
            system_admin_emails=frozenset(
                _normalize_email(e) for e in getattr(settings, "SYSTEM_ADMIN_EMAILS", [])
            ),
        )

    def is_system_admin(self, user) -> bool:
        if user is None or not getattr(user, "is_authenticated", False):
            return False
        if str(user.pk) in self.system_admin_user_ids:
            return True
        return _normalize_email(user.email) in self.system_admin_emails

    def ensure_driver_in_company(self, driver, company_id):
        if driver is None or driver.company_id != company_id:
            raise AuthorizationError("Driver does not belong to this order's company.")

    def ensure_assigned_driver(self, driver, order):
        self.ensure_driver_in_company(driver, order.company_id)
        if order.assigned_driver_id != driver.pk:
            raise AuthorizationError("Only the driver assigned to this order may do this.")

    def ensure_staff(self, user, company_id):
        if self.is_system_admin(user):
            return
        if not is_staff_member(user) or user.company_id != company_id:
            raise AuthorizationError("Staff access to this company is required.")

    def ensure_can_reconcile(self, user, company_id):
        if self.is_system_admin(user):
            return
        if not is_admin(user) or user.company_id != company_id:
            raise AuthorizationError("Only company admins may run reconciliation.")


def default_policy() -> AuthorizationPolicy:
    return AuthorizationPolicy.from_settings()
