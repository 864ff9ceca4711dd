from typing import List

from ..common import Warn
from ..format_identify import is_der_file


def der_warnings(path) -> List[dict]:
    """Advisory only: a missing SEQUENCE tag never blocks a conversion."""
    try:
        if is_der_file(path):
            return []
    except OSError:
        return []
    return [
        Warn(
            "DER_HEURISTIC",
            f"{path} may not be DER encoded (does not start with an ASN.1 SEQUENCE tag)",
        ).as_dict()
    ]
