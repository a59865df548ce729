"""Normalisation of declared license expressions.

Crates declare licenses as SPDX expressions, but older manifests still use
the ``MIT/Apache-2.0`` shorthand. Both are turned into canonical SPDX
expressions with the license-expression library.
"""

import logging
import re
from functools import lru_cache
from typing import Optional

from license_expression import ExpressionError, get_spdx_licensing

logger = logging.getLogger(__name__)

# Initialize SPDX licensing library for normalization
SPDX = get_spdx_licensing()

_SLASH_RE = re.compile(r"\s*/\s*")


@lru_cache(maxsize=1024)
def normalize_license_expression(expression: Optional[str]) -> Optional[str]:
    """Normalize a declared license to a canonical SPDX expression.

    Args:
        expression: License field as declared by the package.

    Returns:
        The canonical expression, the declared string itself when it is not
        a valid SPDX expression, or None when nothing was declared.
    """
    if expression is None:
        return None

    declared = " ".join(expression.split())
    if not declared:
        return None

    try:
        parsed = SPDX.parse(_SLASH_RE.sub(" OR ", declared), validate=True)
    except ExpressionError as e:
        logger.debug("Keeping non-SPDX license expression %r: %s", declared, e)
        return declared

    if parsed is None:
        return declared
    return str(parsed)
