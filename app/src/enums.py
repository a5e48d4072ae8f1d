from enum import IntEnum


class AppID(IntEnum):
    AUTH = 1
    CUSTOMER = 2
    VENDOR = 3


class OrderIn(IntEnum):
    ASC = 1
    DESC = 2


class AccountStatus(IntEnum):
    ACTIVE = 1
    SUSPENDED = 2


class PlatformType(IntEnum):
    OTHER = 1
    WEB = 2
    NATIVE = 3
    SERVER = 4


class Role(IntEnum):
    VENDOR = 1
    CUSTOMER = 2


class SubscriptionStatus(IntEnum):
    PENDING = 1
    ACTIVE = 2
    EXPIRED = 3


# Ordered, a call only ever moves to a greater value
class CallStatus(IntEnum):
    PENDING = 1
    ACKNOWLEDGED = 2
    COMPLETED = 3


class Operation(IntEnum):
    SELECT = 1
    INSERT = 2
    UPDATE = 3


class ChangeEvent(IntEnum):
    INSERT = 1
    UPDATE = 2
