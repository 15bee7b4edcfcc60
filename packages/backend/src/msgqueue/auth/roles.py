"""Access roles attached to issued keys.

Learn: A closed two-level hierarchy: user < admin. Routes declare the
role they need; admin satisfies every requirement. Keeping the check in
one predicate means a typo'd role string can't quietly slip past an
equality comparison somewhere else.
"""

import enum
from typing import Optional


class Role(str, enum.Enum):
    USER = "user"
    ADMIN = "admin"

    def satisfies(self, required: Optional["Role"]) -> bool:
        """True if a key with this role may call a route requiring `required`.

        None means "any valid key".
        """
        if required is None:
            return True
        return self is required or self is Role.ADMIN
