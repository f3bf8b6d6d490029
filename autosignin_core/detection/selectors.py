"""
Login Selectors - Centralized selector definitions for login form detection

Common-attribute selectors (Tier 2) are plain CSS in a fixed priority order.
Structural selectors (Tier 3) are XPath expressions built from the semantic
terms of each field; Playwright treats any selector starting with `//` as
XPath.

Usage:
    from autosignin_core.detection.selectors import COMMON_SELECTORS, structural_selectors

    for selector in COMMON_SELECTORS['password']:
        ...
"""

from typing import Dict, List


# Inputs a user can type a name into
TEXT_INPUT = (
    "input:not([type='hidden']):not([type='password']):not([type='submit'])"
    ":not([type='button']):not([type='checkbox']):not([type='radio'])"
)


# =============================================================================
# COMMON ATTRIBUTE SELECTORS
# =============================================================================

COMMON_SELECTORS: Dict[str, List[str]] = {
    'username': [
        "input[name='username']",
        "input[id='username']",
        "input[name='user']",
        "input[id='user']",
        "input[autocomplete='username']",
        "input[type='email']",
        "input[name='email']",
        "input[id='email']",
        f"{TEXT_INPUT}[name='login']",
        f"{TEXT_INPUT}[id='login']",
        f"{TEXT_INPUT}[name*='user' i]",
        f"{TEXT_INPUT}[id*='user' i]",
        f"{TEXT_INPUT}[placeholder*='user' i]",
        f"{TEXT_INPUT}[aria-label*='user' i]",
        f"{TEXT_INPUT}[name*='login' i]",
        f"{TEXT_INPUT}[id*='login' i]",
        f"{TEXT_INPUT}[placeholder*='login' i]",
        f"{TEXT_INPUT}[aria-label*='login' i]",
        f"{TEXT_INPUT}[name*='email' i]",
        f"{TEXT_INPUT}[placeholder*='email' i]",
        f"{TEXT_INPUT}[aria-label*='email' i]",
        f"{TEXT_INPUT}[data-testid*='user' i]",
        f"{TEXT_INPUT}[class*='user' i]",
    ],

    'password': [
        "input[type='password']",
        "input[autocomplete='current-password']",
        "input[name='password']",
        "input[id='password']",
        "input[name='pass']",
        "input[name='pwd']",
        "input[name*='password' i]",
        "input[id*='password' i]",
        "input[placeholder*='password' i]",
        "input[aria-label*='password' i]",
        "input[data-testid*='password' i]",
    ],

    'domain': [
        "select[name='domain']",
        "select[id='domain']",
        "input[name='domain']",
        "input[id='domain']",
        "select[name='tenant']",
        "input[name='tenant']",
        "select[name='organization']",
        "input[name='organization']",
        "select[name*='domain' i]",
        "select[id*='domain' i]",
        f"{TEXT_INPUT}[name*='domain' i]",
        f"{TEXT_INPUT}[id*='domain' i]",
        f"{TEXT_INPUT}[placeholder*='domain' i]",
        "select[aria-label*='domain' i]",
        f"{TEXT_INPUT}[aria-label*='domain' i]",
        "select[name*='tenant' i]",
        f"{TEXT_INPUT}[name*='tenant' i]",
        "select[name*='realm' i]",
    ],

    'submit': [
        "button[type='submit']",
        "input[type='submit']",
        "button[id*='login' i]",
        "button[name*='login' i]",
        "button[id*='signin' i]",
        "button[class*='login' i]",
        "input[type='button'][value*='log in' i]",
        "input[type='button'][value*='sign in' i]",
        "button[aria-label*='sign in' i]",
        "button[aria-label*='log in' i]",
        "[role='button'][id*='login' i]",
        "form button:not([type])",
    ],
}


# =============================================================================
# STRUCTURAL (XPATH) SELECTORS
# =============================================================================

SEMANTIC_TERMS: Dict[str, List[str]] = {
    'username': ['username', 'user name', 'user id', 'login', 'email', 'user'],
    'password': ['password', 'passcode', 'pass'],
    'domain': ['domain', 'tenant', 'organization', 'realm'],
    'submit': ['sign in', 'log in', 'login', 'logon', 'submit', 'continue'],
}

_UPPER = "ABCDEFGHIJKLMNOPQRSTUVWXYZ"
_LOWER = "abcdefghijklmnopqrstuvwxyz"

# What a label may point at, per field
_TARGETS = {
    'username': "input[not(@type='hidden') and not(@type='password') and not(@type='submit') and not(@type='button')]",
    'password': "input[@type='password']",
    'domain': "*[self::select or (self::input and not(@type='hidden') and not(@type='password'))]",
}


def _lower(expr: str) -> str:
    return f"translate({expr}, '{_UPPER}', '{_LOWER}')"


def _contains(expr: str, term: str) -> str:
    return f"contains({_lower(expr)}, '{term}')"


def label_selectors(field_name: str, term: str) -> List[str]:
    """Label-proximity XPaths: `label[@for]` resolution, then the nearest following input."""
    target = _TARGETS[field_name]
    label = f"//label[{_contains('normalize-space(.)', term)}]"
    return [
        f"//{target}[@id={label}/@for]",
        f"{label}/following::{target}[1]",
        f"{label}//{target}",
    ]


def attribute_selectors(field_name: str, term: str) -> List[str]:
    """Case-insensitive attribute containment via translate()."""
    target = _TARGETS[field_name]
    return [
        f"//{target}[{_contains('@' + attr, term)}]"
        for attr in ('id', 'name', 'placeholder', 'aria-label', 'title')
    ]


def submit_selectors(term: str) -> List[str]:
    text = _contains('normalize-space(.)', term)
    return [
        f"//button[{text}]",
        f"//input[(@type='submit' or @type='button') and {_contains('@value', term)}]",
        f"//*[@role='button' and {text}]",
        f"//a[{text} and (contains(@href, 'javascript') or @href='#' or not(@href))]",
    ]


def structural_selectors(field_name: str) -> List[str]:
    """All Tier 3 XPaths for a field, label proximity first."""
    terms = SEMANTIC_TERMS.get(field_name, [])
    if field_name == 'submit':
        return [xp for term in terms for xp in submit_selectors(term)]
    selectors = [xp for term in terms for xp in label_selectors(field_name, term)]
    selectors += [xp for term in terms for xp in attribute_selectors(field_name, term)]
    return selectors
