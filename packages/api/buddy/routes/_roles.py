# This project was developed with assistance from AI tools.
"""Role groups shared by the deal routers."""

from buddy_db.enums import UserRole

ALL_AUTHENTICATED = (
    UserRole.ADMIN,
    UserRole.BANKER,
    UserRole.UNDERWRITER,
    UserRole.EXAMINER,
    UserRole.BORROWER,
)

# Bank-side roles; examiners read but never write
BANK_READ = (
    UserRole.ADMIN,
    UserRole.BANKER,
    UserRole.UNDERWRITER,
    UserRole.EXAMINER,
)

BANK_WRITE = (
    UserRole.ADMIN,
    UserRole.BANKER,
    UserRole.UNDERWRITER,
)

UPLOAD = (
    UserRole.ADMIN,
    UserRole.BANKER,
    UserRole.UNDERWRITER,
    UserRole.BORROWER,
)
