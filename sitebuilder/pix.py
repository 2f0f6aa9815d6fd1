# sitebuilder/pix.py
"""
Geração do código PIX "copia e cola" (BR Code estático).

O payload segue o padrão EMV MPM usado pelo Banco Central: campos
ID + tamanho (2 dígitos) + valor, terminando no campo 63 com o CRC16
CCITT-FALSE calculado sobre todo o texto anterior, incluindo "6304".
Só monta o código; não há confirmação de pagamento.
"""
import os
import re
import unicodedata
from decimal import Decimal
from typing import Optional

PIX_DEFAULT_CITY = os.getenv("PIX_DEFAULT_CITY", "SAO PAULO")
PIX_GUI = "BR.GOV.BCB.PIX"
KEY_TYPES = ("cpf", "cnpj", "email", "phone", "random")

MAX_NAME = 25
MAX_CITY = 15
MAX_TXID = 25
# campo 26 tem no máximo 99: GUI (18) + id e tamanho da chave (4)
PIX_KEY_MAX = 77
MAX_AMOUNT = Decimal("9999999999.99")


def crc16_ccitt(payload: str) -> str:
    crc = 0xFFFF
    for byte in payload.encode("utf-8"):
        crc ^= byte << 8
        for _ in range(8):
            if crc & 0x8000:
                crc = ((crc << 1) ^ 0x1021) & 0xFFFF
            else:
                crc = (crc << 1) & 0xFFFF
    return f"{crc:04X}"


def emv(field_id: str, value: str) -> str:
    if len(value) > 99:
        raise ValueError(f"campo {field_id} excede 99 caracteres")
    return f"{field_id}{len(value):02d}{value}"


def _ascii(text: str) -> str:
    folded = unicodedata.normalize("NFKD", text).encode("ascii", "ignore").decode("ascii")
    return re.sub(r"\s+", " ", folded).strip()


def normalize_key(key: str, key_type: Optional[str] = None) -> str:
    key = (key or "").strip()
    if key_type in ("cpf", "cnpj"):
        return re.sub(r"\D", "", key)
    if key_type == "phone":
        digits = re.sub(r"\D", "", key)
        if not digits.startswith("55") or len(digits) <= 11:
            digits = "55" + digits
        return "+" + digits
    if key_type == "email":
        return key.lower()
    return key


def build_pix_code(
    key: str,
    merchant_name: str,
    amount: Optional[Decimal] = None,
    key_type: Optional[str] = None,
    city: Optional[str] = None,
    txid: str = "***",
    description: Optional[str] = None,
) -> str:
    if not key:
        raise ValueError("chave PIX não configurada")

    account = emv("00", PIX_GUI) + emv("01", normalize_key(key, key_type))
    if description:
        account += emv("02", _ascii(description))

    name = _ascii(merchant_name or "")[:MAX_NAME] or "Estabelecimento"
    city_ = _ascii(city or PIX_DEFAULT_CITY)[:MAX_CITY] or PIX_DEFAULT_CITY
    txid_ = re.sub(r"[^A-Za-z0-9]", "", txid)[:MAX_TXID] if txid != "***" else txid

    payload = (
        emv("00", "01")
        + emv("26", account)
        + emv("52", "0000")
        + emv("53", "986")
    )
    if amount is not None and Decimal(amount) > 0:
        if Decimal(amount) > MAX_AMOUNT:
            raise ValueError("valor acima do limite do campo 54")
        payload += emv("54", f"{Decimal(amount).quantize(Decimal('0.01'))}")
    payload += (
        emv("58", "BR")
        + emv("59", name)
        + emv("60", city_)
        + emv("62", emv("05", txid_ or "***"))
    )
    payload += "6304"
    return payload + crc16_ccitt(payload)
