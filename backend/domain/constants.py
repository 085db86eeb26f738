"""
Domain constants used across services/routers.
"""

# PIX / EMV merchant-presented payload (BR Code)
PIX_PAYLOAD_FORMAT = "01"
PIX_GUI = "br.gov.bcb.pix"
PIX_MERCHANT_CATEGORY = "0000"
PIX_CURRENCY_BRL = "986"
PIX_COUNTRY = "BR"

PIX_MAX_NAME = 25
PIX_MAX_CITY = 15
PIX_MAX_TXID = 25
PIX_MAX_AMOUNT_LEN = 13

# Prefixes for generated transaction ids
ORDER_TXID_PREFIX = "PED"
ADHOC_TXID_PREFIX = "PIX"

# Push endpoints answering with these statuses no longer exist
PUSH_GONE_STATUSES = frozenset({404, 410})
