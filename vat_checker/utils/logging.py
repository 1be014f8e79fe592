import logging

logger = logging.getLogger('vat_checker')
if not logger.handlers:
    handler = logging.StreamHandler()
    fmt = logging.Formatter('%(asctime)s %(levelname)s %(name)s: %(message)s')
    handler.setFormatter(fmt)
    logger.addHandler(handler)
    logger.setLevel(logging.INFO)


def get_logger():
    return logger


def set_level(level: str):
    logger.setLevel(getattr(logging, (level or "INFO").upper(), logging.INFO))


def mask_vat(vat_number: str) -> str:
    vat_number = vat_number or ""
    if len(vat_number) <= 4:
        return "*" * len(vat_number)
    return vat_number[:2] + "*" * (len(vat_number) - 4) + vat_number[-2:]
