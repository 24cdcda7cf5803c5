from webgate.principals.models import ANONYMOUS, AnonymousPrincipal, Principal
from webgate.principals.serializer import PrincipalSerializer
from webgate.principals.store import PrincipalStore, SqlPrincipalStore

__all__ = [
    "ANONYMOUS",
    "AnonymousPrincipal",
    "Principal",
    "PrincipalSerializer",
    "PrincipalStore",
    "SqlPrincipalStore",
]
