"""
Event name constants: auth state changes and push row changes.
"""


class AuthEvent:
    SIGNED_IN = "SIGNED_IN"
    SIGNED_OUT = "SIGNED_OUT"


class ChangeType:
    INSERT = "INSERT"
    UPDATE = "UPDATE"
    DELETE = "DELETE"


class Resource:
    MESSAGES = "messages"
