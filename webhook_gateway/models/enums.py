from enum import Enum

class EventStatus(str, Enum):
    received = "received"
    verified = "verified"
    processed = "processed"
    failed = "failed"
