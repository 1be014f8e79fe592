# vat_checker/adapters/base.py
# Спільний результат перевірки та інтерфейс провайдера lookup()

from dataclasses import asdict, dataclass
from typing import Optional, Protocol


@dataclass(frozen=True)
class ValidationResult:
    valid: bool
    country_code: str
    vat_number: str
    name: str
    address: str
    request_date: str                      # YYYY-MM-DD
    consultation_number: Optional[str] = None

    def to_dict(self) -> dict:
        return asdict(self)


class LookupProvider(Protocol):
    SOURCE: str

    def lookup(self, country_code: str, vat_number: str) -> ValidationResult: ...
