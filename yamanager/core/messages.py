"""
Localized error messages keyed by error code.

The web client sends ``lang`` on every call; unknown or missing languages
fall back to English.
"""

from __future__ import annotations

DEFAULT_LANGUAGE = "en"

_CATALOGUE: dict[str, dict[str, str]] = {
    "en": {
        "UNAUTHENTICATED": "You are not signed in or your session has expired.",
        "UNAUTHORIZED_ACTOR": "You are not allowed to perform this action.",
        "OVERLAPPING_ENTRY": "Another entry already occupies this day.",
        "INSUFFICIENT_BALANCE": "Not enough remaining balance for this request.",
        "LEAD_TIME_VIOLATED": "The vacation is requested too close to today.",
        "DATE_OUT_OF_RANGE": "The date or duration is outside the accepted range.",
        "ILLEGAL_STATUS_TRANSITION": "The request cannot be moved to that status.",
        "NEGATIVE_BUDGET": "Budgets must not be negative.",
        "LEAD_TIME_OUT_OF_RANGE": "Notification lead time must be between 0 and 365 days.",
        "IDENTITY_PROFILE_INCOMPLETE": "Your identity profile is missing a name or e-mail.",
        "INVALID_REQUEST": "The request is malformed.",
        "CONCURRENT_MODIFICATION": "The data was modified concurrently, please try again.",
        "TIMEOUT": "The operation took too long and was cancelled.",
        "NOT_FOUND": "The requested item does not exist.",
        "INTERNAL": "An unexpected error occurred.",
        "RATE_LIMITED": "Too many requests, please slow down.",
    },
    "cz": {
        "UNAUTHENTICATED": "Nejste přihlášeni nebo vypršela platnost přihlášení.",
        "UNAUTHORIZED_ACTOR": "K této akci nemáte oprávnění.",
        "OVERLAPPING_ENTRY": "Tento den je již obsazen jiným záznamem.",
        "INSUFFICIENT_BALANCE": "Na tuto žádost nemáte dostatečný zůstatek.",
        "LEAD_TIME_VIOLATED": "Dovolená je požadována příliš brzy.",
        "DATE_OUT_OF_RANGE": "Datum nebo délka je mimo povolený rozsah.",
        "ILLEGAL_STATUS_TRANSITION": "Žádost nelze převést do tohoto stavu.",
        "NEGATIVE_BUDGET": "Rozpočet nesmí být záporný.",
        "LEAD_TIME_OUT_OF_RANGE": "Doba upozornění musí být mezi 0 a 365 dny.",
        "IDENTITY_PROFILE_INCOMPLETE": "Vašemu profilu chybí jméno nebo e-mail.",
        "INVALID_REQUEST": "Požadavek je chybně formulován.",
        "CONCURRENT_MODIFICATION": "Data byla souběžně změněna, zkuste to znovu.",
        "TIMEOUT": "Operace trvala příliš dlouho a byla zrušena.",
        "NOT_FOUND": "Požadovaná položka neexistuje.",
        "INTERNAL": "Došlo k neočekávané chybě.",
        "RATE_LIMITED": "Příliš mnoho požadavků, zpomalte prosím.",
    },
}

_ALIASES = {"cs": "cz", "cs-cz": "cz", "en-us": "en", "en-gb": "en"}


def resolve_language(lang: str | None) -> str:
    if not lang:
        return DEFAULT_LANGUAGE
    key = lang.strip().lower()
    key = _ALIASES.get(key, key)
    return key if key in _CATALOGUE else DEFAULT_LANGUAGE


def get_message(code: str, lang: str | None = None) -> str:
    catalogue = _CATALOGUE[resolve_language(lang)]
    return catalogue.get(code) or _CATALOGUE[DEFAULT_LANGUAGE].get(code, code)
