"""
Special functions behind the hydrogen-like wavefunctions.

Each function has a numba kernel (``*_fast``) for use inside compiled loops and a
validated wrapper for callers outside them. The kernels assume arguments inside
the ranges the wrappers check.
"""
import numbers

import numpy as np
from numba import jit

from quantum_orbitals.utils import ErrorHandler, ErrorCode, ErrorLevel


@jit(nopython=True, cache=True)
def factorial_fast(n: int) -> float:
    result = 1.0
    for i in range(2, n + 1):
        result *= i
    return result


@jit(nopython=True, cache=True)
def double_factorial_fast(n: int) -> float:
    result = 1.0
    k = n
    while k > 1:
        result *= k
        k -= 2
    return result


@jit(nopython=True, cache=True)
def generalized_laguerre_fast(n: int, alpha: float, x: float) -> float:
    """L_n^alpha(x) by the three-term recurrence."""
    if n == 0:
        return 1.0
    l_prev = 1.0
    l_curr = 1.0 + alpha - x
    for k in range(2, n + 1):
        l_next = ((2.0 * k - 1.0 + alpha - x) * l_curr - (k - 1.0 + alpha) * l_prev) / k
        l_prev = l_curr
        l_curr = l_next
    return l_curr


@jit(nopython=True, cache=True)
def associated_legendre_fast(l: int, m: int, x: float) -> float:
    """
    P_l^m(x) including the Condon-Shortley phase.

    Builds P_|m|^|m| directly, steps up to P_l^|m| and converts to negative m
    with (-1)^|m| (l-|m|)!/(l+|m|)!.
    """
    abs_m = abs(m)
    if abs_m > l:
        return 0.0
    if x > 1.0:
        x = 1.0
    elif x < -1.0:
        x = -1.0

    pmm = 1.0
    if abs_m > 0:
        somx2 = np.sqrt((1.0 - x) * (1.0 + x))
        fact = 1.0
        for _ in range(abs_m):
            pmm *= -fact * somx2
            fact += 2.0

    if l == abs_m:
        result = pmm
    else:
        pmmp1 = x * (2.0 * abs_m + 1.0) * pmm
        if l == abs_m + 1:
            result = pmmp1
        else:
            pll = 0.0
            for ll in range(abs_m + 2, l + 1):
                pll = ((2.0 * ll - 1.0) * x * pmmp1 - (ll + abs_m - 1.0) * pmm) / (ll - abs_m)
                pmm = pmmp1
                pmmp1 = pll
            result = pll

    if m < 0:
        sign = -1.0 if abs_m % 2 == 1 else 1.0
        result *= sign * factorial_fast(l - abs_m) / factorial_fast(l + abs_m)
    return result


def _is_integer(value) -> bool:
    return isinstance(value, numbers.Integral) and not isinstance(value, bool)


def _domain_error(message: str, details: dict):
    error = ErrorHandler().handle(message, ErrorCode.DOMAIN, ErrorLevel.CRITICAL, details)
    if error:
        raise error


def factorial(n: int) -> float:
    """
    n! as a float.

    Raises:
        DomainError: for negative or non-integer n
    """
    if not _is_integer(n) or n < 0:
        _domain_error(f"factorial is undefined for n={n!r}", {"n": n})
    return float(factorial_fast(int(n)))


def double_factorial(n: int) -> float:
    """
    n!! as a float, with (-1)!! = 0!! = 1.

    Raises:
        DomainError: for n < -1 or non-integer n
    """
    if not _is_integer(n) or n < -1:
        _domain_error(f"double factorial is undefined for n={n!r}", {"n": n})
    return float(double_factorial_fast(int(n)))


def generalized_laguerre(n: int, alpha: float, x: float) -> float:
    if not _is_integer(n) or n < 0:
        _domain_error(f"Laguerre degree must be a non-negative integer, got {n!r}", {"n": n})
    return float(generalized_laguerre_fast(int(n), float(alpha), float(x)))


def associated_legendre(l: int, m: int, x: float) -> float:
    if not _is_integer(l) or not _is_integer(m) or l < 0:
        _domain_error(f"Legendre degree/order must be integers with l >= 0, got l={l!r}, m={m!r}", {"l": l, "m": m})
    return float(associated_legendre_fast(int(l), int(m), float(x)))
