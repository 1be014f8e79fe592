import json
import sys

from vat_checker.config import Config, LookupSettings
from vat_checker.errors import VatCheckError
from vat_checker.services.check_service import lookup_full_identifier

settings = LookupSettings.from_mapping(vars(Config))
for vat in sys.argv[1:] or ["IE6388047V", "DE811220642"]:
    try:
        res = lookup_full_identifier(vat, settings).to_dict()
    except VatCheckError as e:
        res = e.to_dict()
    print(vat)
    print(json.dumps(res, ensure_ascii=False, indent=2))
    print('-' * 40)
