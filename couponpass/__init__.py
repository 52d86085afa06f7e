"""
Coupon Pass

Turns a discount, service label, expiry date and optional banner image into a
signed Apple Wallet coupon (.pkpass) and a URL to download it.
"""

__version__ = "1.0.0"
