"""Regex-based intelligence extraction and risk scoring.

Extracts bank accounts, UPI IDs, phone numbers, links, emails, card numbers,
IFSC codes, suspicious keywords and credential-request types from scammer
messages. Accounts and cards are masked to their last four digits before
they are stored; the raw numbers never leave this module.

All categories are de-duplicated preserving first-seen order. The risk
score is always derived from the current content, so merging two results
can never leave a stale score behind."""

import logging
import re
from dataclasses import dataclass, field, fields
from typing import Any, Iterable, List, Mapping
from urllib.parse import urlparse

logger = logging.getLogger(__name__)


RISK_WEIGHTS = {
    "bank_accounts": 0.15,
    "upi_ids": 0.15,
    "phone_numbers": 0.10,
    "phishing_links": 0.20,
    "emails": 0.05,
    "card_numbers": 0.20,
    "ifsc_codes": 0.10,
    "suspicious_keywords": 0.05,
    "credential_requests": 0.25,
}

OUTWARD_NAMES = {
    "bank_accounts": "bankAccounts",
    "upi_ids": "upiIds",
    "phone_numbers": "phoneNumbers",
    "phishing_links": "phishingLinks",
    "emails": "emails",
    "card_numbers": "cardNumbers",
    "ifsc_codes": "ifscCodes",
    "suspicious_keywords": "suspiciousKeywords",
    "credential_requests": "credentialRequests",
}


@dataclass
class Intelligence:
    """Artifacts collected for one conversation."""
    bank_accounts: List[str] = field(default_factory=list)
    upi_ids: List[str] = field(default_factory=list)
    phone_numbers: List[str] = field(default_factory=list)
    phishing_links: List[str] = field(default_factory=list)
    emails: List[str] = field(default_factory=list)
    card_numbers: List[str] = field(default_factory=list)
    ifsc_codes: List[str] = field(default_factory=list)
    suspicious_keywords: List[str] = field(default_factory=list)
    credential_requests: List[str] = field(default_factory=list)

    @classmethod
    def categories(cls) -> List[str]:
        return [f.name for f in fields(cls)]

    def add(self, category: str, value: str) -> None:
        values = getattr(self, category)
        if value and value not in values:
            values.append(value)

    def merge(self, other: "Intelligence") -> "Intelligence":
        """Duplicate-insensitive union per category. Neither side is mutated."""
        merged = Intelligence()
        for category in self.categories():
            for value in getattr(self, category) + getattr(other, category):
                merged.add(category, value)
        return merged

    @property
    def risk_score(self) -> int:
        score = 0.0
        for category, weight in RISK_WEIGHTS.items():
            count = len(getattr(self, category))
            if count:
                score += min(count * weight, weight * 3)
        return max(0, min(int(round(score * 100)), 100))

    def actionable_count(self) -> int:
        """Pieces of intelligence a responder can act on."""
        return (len(self.bank_accounts) + len(self.upi_ids) + len(self.phone_numbers)
                + len(self.phishing_links) + len(self.card_numbers))

    def is_empty(self) -> bool:
        return not any(getattr(self, category) for category in self.categories())

    def to_dict(self) -> dict:
        data = {OUTWARD_NAMES[c]: list(getattr(self, c)) for c in self.categories()}
        data["riskScore"] = self.risk_score
        return data


def merge_intelligence(items: Iterable[Intelligence]) -> Intelligence:
    merged = Intelligence()
    for item in items:
        merged = merged.merge(item)
    return merged


def luhn_valid(number: str) -> bool:
    if not re.fullmatch(r'\d{13,19}', number):
        return False
    total = 0
    for i, ch in enumerate(reversed(number)):
        digit = int(ch)
        if i % 2 == 1:
            digit *= 2
            if digit > 9:
                digit -= 9
        total += digit
    return total % 10 == 0


def mask_account(digits: str) -> str:
    return "XXXX-XXXX-" + digits[-4:]


def mask_card(digits: str) -> str:
    return "XXXX-XXXX-XXXX-" + digits[-4:]


def _looks_like_phone(digits: str) -> bool:
    if len(digits) == 10:
        return digits[0] in "6789"
    if len(digits) == 11 and digits[0] == "0":
        return digits[1] in "6789"
    if len(digits) == 12 and digits.startswith("91"):
        return digits[2] in "6789"
    return False


def _message_parts(message: Any):
    if isinstance(message, Mapping):
        return message.get("sender"), message.get("text")
    return getattr(message, "sender", None), getattr(message, "text", None)


class IntelligenceExtractor:
    """Stateless extractor; one Intelligence per call."""

    BANK_ACCOUNT_PATTERNS = [
        # Keyword-adjacent, allows dashes inside the number
        re.compile(r'(?:account|a/c|acct)\s*(?:number|no|num)?\.?\s*[:#-]?\s*((?:\d-?){8,17}\d)(?!\d)', re.I),
        re.compile(r'(?<![\d+])\d{9,18}(?!\d)'),
    ]

    UPI_PATTERNS = [
        re.compile(r'(?:upi\s*(?:id|address|handle)?|vpa|pay\s*to|send\s*to|transfer\s*to)\s*[:#-]?\s*'
                   r'([\w.-]{2,}@[a-z][a-z0-9]{1,30})(?![\w-]|\.[a-z0-9])', re.I),
        re.compile(r'(?<![\w.-])([\w.-]{2,}@[a-z][a-z0-9]{1,30})(?![\w-]|\.[a-z0-9])', re.I),
    ]

    PHONE_PATTERNS = [
        re.compile(r'(?<![\d+])(?:\+91|91|0)?[\s-]?([6-9]\d{4}[\s-]?\d{5})(?!\d)'),
        re.compile(r'(?<![\d+])(?:\+91[\s-]?)?([6-9]\d{2}[\s-]\d{3}[\s-]\d{4})(?!\d)'),
    ]

    URL_PATTERNS = [
        re.compile(r'https?://[^\s<>"{}|\\^`\[\]]+', re.I),
        re.compile(r'(?<![/\w.])www\.[^\s<>"{}|\\^`\[\]]+', re.I),
        re.compile(r'(?<![/\w.])(?:bit\.ly|tinyurl\.com|t\.co|goo\.gl|rb\.gy|cutt\.ly|is\.gd|short\.link)/[\w-]+', re.I),
        re.compile(r'\b(?:click|visit|open|go\s*to)\s*:?\s*((?!https?://)(?!www\.)[\w-]+(?:\.[\w-]+)+(?:/\S*)?)', re.I),
    ]

    EMAIL_PATTERN = re.compile(r'\b[a-z0-9._%+-]+@[a-z0-9.-]+\.[a-z]{2,}\b', re.I)

    CARD_PATTERN = re.compile(r'(?<!\d)(\d{4}(?:[\s-]?\d{4}){2}[\s-]?\d{1,7})(?!\d)')

    IFSC_PATTERNS = [
        re.compile(r'ifsc\s*(?:code)?\s*[:#-]?\s*([a-z]{4}0[a-z0-9]{6})\b', re.I),
        re.compile(r'\b([A-Z]{4}0[A-Z0-9]{6})\b'),
    ]

    SUSPICIOUS_KEYWORDS = [
        "urgent", "immediately", "now", "today", "asap", "hurry", "quick",
        "verify", "verification", "confirm", "validate", "update",
        "block", "suspend", "close", "terminate", "deactivate",
        "account", "bank", "upi", "payment", "transfer",
        "otp", "password", "pin", "cvv", "card details",
        "kyc", "pan", "aadhaar", "document",
        "win", "winner", "prize", "lottery", "lucky",
        "free", "offer", "discount", "cashback", "reward",
        "click", "link", "website", "portal", "login",
        "download", "install", "app", "apk",
        "customer care", "helpline", "support", "service center",
    ]

    CREDENTIAL_TYPES = [
        ("otp", ("otp", "one time password", "verification code")),
        ("password", ("password", "login password", "net banking password")),
        ("pin", ("pin", "atm pin", "card pin", "mpin")),
        ("cvv", ("cvv", "cvv2", "card verification")),
        ("card_number", ("card number", "debit card", "credit card number")),
    ]

    URL_TRAILING = '.,;:!?)\'"'

    def __init__(self) -> None:
        self._keywords = [
            (kw, re.compile(rf'\b{re.escape(kw)}\b')) for kw in self.SUSPICIOUS_KEYWORDS
        ]
        self._credentials = [
            (kind, [re.compile(rf'\b{re.escape(p)}\b') for p in phrases])
            for kind, phrases in self.CREDENTIAL_TYPES
        ]

    def extract(self, messages: Iterable[Any]) -> Intelligence:
        """Scan every scammer-authored message and merge the results."""
        intel = Intelligence()
        try:
            for message in messages or []:
                sender, text = _message_parts(message)
                if sender != "scammer" or not text:
                    continue
                intel = intel.merge(self.extract_text(text))
        except Exception as e:
            logger.error(f"Intelligence extraction failed: {e}", exc_info=True)
            return Intelligence()
        return intel

    def extract_text(self, text: str) -> Intelligence:
        intel = Intelligence()
        if not text:
            return intel

        for value in self._extract_bank_accounts(text):
            intel.add("bank_accounts", value)
        for value in self._extract_upi_ids(text):
            intel.add("upi_ids", value)
        for value in self._extract_phones(text):
            intel.add("phone_numbers", value)
        for value in self._extract_urls(text):
            intel.add("phishing_links", value)
        for value in self._extract_emails(text):
            intel.add("emails", value)
        for value in self._extract_cards(text):
            intel.add("card_numbers", value)
        for value in self._extract_ifsc(text):
            intel.add("ifsc_codes", value)

        lowered = text.lower()
        for keyword, regex in self._keywords:
            if regex.search(lowered):
                intel.add("suspicious_keywords", keyword)
        for kind, regexes in self._credentials:
            if any(regex.search(lowered) for regex in regexes):
                intel.add("credential_requests", kind)
        return intel

    # ------------------------------------------------------------------
    # Per-category extraction
    # ------------------------------------------------------------------

    @staticmethod
    def _group(match: "re.Match") -> str:
        return match.group(1) if match.groups() and match.group(1) else match.group(0)

    def _extract_bank_accounts(self, text: str) -> List[str]:
        found = []
        labelled, bare = self.BANK_ACCOUNT_PATTERNS
        for match in labelled.finditer(text):
            digits = re.sub(r'[\s-]', '', self._group(match))
            if re.fullmatch(r'\d{9,18}', digits):
                found.append(mask_account(digits))
        # Unlabelled runs may be phones or cards
        for match in bare.finditer(text):
            digits = match.group(0)
            if _looks_like_phone(digits) or luhn_valid(digits):
                continue
            found.append(mask_account(digits))
        return found

    def _extract_upi_ids(self, text: str) -> List[str]:
        emails = {e.lower() for e in self.EMAIL_PATTERN.findall(text)}
        found = []
        for pattern in self.UPI_PATTERNS:
            for match in pattern.finditer(text):
                handle = self._group(match).lower().strip()
                if not re.fullmatch(r'[\w.-]+@[a-z][a-z0-9]+', handle):
                    continue
                if any(email.startswith(handle + ".") for email in emails):
                    continue
                found.append(handle)
        return found

    def _extract_phones(self, text: str) -> List[str]:
        found = []
        for pattern in self.PHONE_PATTERNS:
            for match in pattern.finditer(text):
                digits = re.sub(r'\D', '', self._group(match))
                if re.fullmatch(r'[6-9]\d{9}', digits):
                    found.append("+91" + digits)
        return found

    def _extract_urls(self, text: str) -> List[str]:
        found = []
        for pattern in self.URL_PATTERNS:
            for match in pattern.finditer(text):
                url = self._group(match).lower().strip().rstrip(self.URL_TRAILING)
                if self._is_valid_url(url):
                    found.append(url)
        return found

    @staticmethod
    def _is_valid_url(url: str) -> bool:
        if not url or "@" in url.split("/")[0]:
            return False
        candidate = url if url.startswith(("http://", "https://")) else "https://" + url
        try:
            host = urlparse(candidate).hostname
        except ValueError:
            return False
        return bool(host) and "." in host and not host.startswith(".") and not host.endswith(".")

    def _extract_emails(self, text: str) -> List[str]:
        return [email.lower() for email in self.EMAIL_PATTERN.findall(text)]

    def _extract_cards(self, text: str) -> List[str]:
        found = []
        for match in self.CARD_PATTERN.finditer(text):
            digits = re.sub(r'[\s-]', '', match.group(1))
            if luhn_valid(digits):
                found.append(mask_card(digits))
        return found

    def _extract_ifsc(self, text: str) -> List[str]:
        found = []
        for pattern in self.IFSC_PATTERNS:
            for match in pattern.finditer(text):
                found.append(self._group(match).upper())
        return found


def identify_primary_threat(intel: Intelligence) -> str:
    if intel.phishing_links:
        return "PHISHING"
    if intel.card_numbers:
        return "CARD_FRAUD"
    if intel.upi_ids:
        return "UPI_FRAUD"
    if intel.bank_accounts:
        return "BANKING_FRAUD"
    if intel.credential_requests:
        return "CREDENTIAL_HARVESTING"
    return "GENERAL_SCAM"


def format_for_report(intel: Intelligence) -> dict:
    """Outward intelligence plus a severity summary."""
    score = intel.risk_score
    if score > 70:
        severity = "HIGH"
    elif score > 40:
        severity = "MEDIUM"
    else:
        severity = "LOW"
    report = intel.to_dict()
    report["summary"] = {
        "totalIndicators": intel.actionable_count(),
        "severity": severity,
        "primaryThreat": identify_primary_threat(intel),
    }
    return report

