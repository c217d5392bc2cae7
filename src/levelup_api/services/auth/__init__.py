"""Registration, credential hashing and session issuance."""

from .passwords import hash_password, verify_password  # noqa: F401
from .registration import RegistrationService, normalize_referral_code  # noqa: F401
from .sessions import issue_session  # noqa: F401
