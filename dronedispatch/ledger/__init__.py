"""Request ledger: delivery requests and their status history.

Exports:
    Request: Delivery request record
    Requester: Requester contact details
    RequestStatus: Request status enumeration
    RequestLedger: Lock-guarded owner of all requests
"""

from .ledger import RequestLedger, utcnow
from .request import REQUEST_LIFECYCLE, Request, Requester, RequestStatus

__all__ = [
    "REQUEST_LIFECYCLE",
    "Request",
    "Requester",
    "RequestStatus",
    "RequestLedger",
    "utcnow",
]
