from .user import User, Vendor, Venue
from .quote import QuoteRequest, QuoteRevision, QuoteComment, RequestStatus, RevisionStatus
