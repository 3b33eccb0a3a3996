"""CRM transport for the Salesforce composite data endpoint.

Exports:
    CRMTransport: Abstract "create records" interface.
    SalesforceTransport: httpx implementation with OAuth client credentials.
    CRMAcknowledgement, CRMErrorList: The two possible answers.
"""

from src.donation_sync.crm.transport import (
    CRMAcknowledgement,
    CRMErrorList,
    CRMTransport,
    MalformedResponseError,
    SalesforceTransport,
)

__all__ = [
    "CRMAcknowledgement",
    "CRMErrorList",
    "CRMTransport",
    "MalformedResponseError",
    "SalesforceTransport",
]
