"""Ownership classification of payment identifiers (IUV).

A creditor domain mints identifiers according to its ``aux_digit`` scheme:

* ``0``: single intermediary, 15-digit numeric identifiers.
* ``1``: single intermediary, 17-digit numeric identifiers.
* ``3``: several intermediaries share the domain; an identifier is ours when it
  carries the domain's two-digit segregation code, either in a creditor
  reference (``RF`` + two check characters + segregation code + suffix) or as
  the leading digits of a 17-digit numeric identifier.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Final

if TYPE_CHECKING:
    from fdrsync.domain.model import CreditorDomain

CREDITOR_REFERENCE_PREFIX: Final[str] = "RF"
_SEGREGATION_SLICE: Final[slice] = slice(4, 6)
_LEGACY_LENGTH: Final[int] = 15
_NUMERIC_LENGTH: Final[int] = 17


def _is_numeric(iuv: str) -> bool:
    return iuv.isascii() and iuv.isdigit()


def _segregation_prefix(domain: CreditorDomain) -> str | None:
    if domain.segregation_code is None:
        return None
    return f"{domain.segregation_code:02d}"


def is_internal(domain: CreditorDomain | None, iuv: str | None) -> bool:
    """Return whether ``iuv`` was minted by this operator for ``domain``.

    Never raises: unknown domains, missing identifiers and malformed strings are
    all reported as not internal.
    """

    if domain is None or not iuv:
        return False

    numeric = _is_numeric(iuv)
    match domain.aux_digit:
        case 0:
            return numeric and len(iuv) == _LEGACY_LENGTH
        case 1:
            return numeric and len(iuv) == _NUMERIC_LENGTH
        case 3:
            segregation = _segregation_prefix(domain)
            if segregation is None:
                return False
            if iuv.startswith(CREDITOR_REFERENCE_PREFIX):
                return iuv[_SEGREGATION_SLICE] == segregation
            return numeric and len(iuv) == _NUMERIC_LENGTH and iuv.startswith(segregation)
        case _:
            return False
