"""Business ID generation.

Every entity id (listing, transaction, payment, dispute, ...) is a UUID4
string generated in the application so that pure decision functions can
reference the id in audit records before the row is written.
"""

import uuid


def generate_id() -> str:
    return str(uuid.uuid4())
