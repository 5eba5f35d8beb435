from collections import namedtuple
from enum import Enum

from .principals import Admin, AdminAccount, Customer, CustomerAccount
from .sessions import AdminSession, CustomerSession
from .verification import Verification
from .security import SecurityEvent


class PrincipalClass(str, Enum):
    ADMIN = "admin"
    CUSTOMER = "customer"


PrincipalModels = namedtuple("PrincipalModels", ["principal", "account", "session"])

_MODELS = {
    PrincipalClass.ADMIN: PrincipalModels(Admin, AdminAccount, AdminSession),
    PrincipalClass.CUSTOMER: PrincipalModels(Customer, CustomerAccount, CustomerSession),
}


def models_for(principal_class: PrincipalClass) -> PrincipalModels:
    """Model triple (principal, credential, session) for a principal class."""
    return _MODELS[PrincipalClass(principal_class)]


__all__ = [
    'Admin', 'AdminAccount', 'Customer', 'CustomerAccount',
    'AdminSession', 'CustomerSession',
    'Verification', 'SecurityEvent',
    'PrincipalClass', 'PrincipalModels', 'models_for',
]
