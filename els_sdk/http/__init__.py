from .caller import APICaller, ELSAPICaller
from .handler import APIHandler, APIUtils, hash_password
from .rwlock import RWLock

__all__ = [
    "APICaller",
    "ELSAPICaller",
    "APIHandler",
    "APIUtils",
    "hash_password",
    "RWLock",
]
