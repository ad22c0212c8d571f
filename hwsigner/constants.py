# -*- coding: utf-8 -*-
#
# hwsigner - host-side driver for HID hardware signing devices
# Copyright (C) 2017 The hwsigner developers
#
# Permission is hereby granted, free of charge, to any person
# obtaining a copy of this software and associated documentation files
# (the "Software"), to deal in the Software without restriction,
# including without limitation the rights to use, copy, modify, merge,
# publish, distribute, sublicense, and/or sell copies of the Software,
# and to permit persons to whom the Software is furnished to do so,
# subject to the following conditions:
#
# The above copyright notice and this permission notice shall be
# included in all copies or substantial portions of the Software.
#
# THE SOFTWARE IS PROVIDED "AS IS", WITHOUT WARRANTY OF ANY KIND,
# EXPRESS OR IMPLIED, INCLUDING BUT NOT LIMITED TO THE WARRANTIES OF
# MERCHANTABILITY, FITNESS FOR A PARTICULAR PURPOSE AND
# NONINFRINGEMENT. IN NO EVENT SHALL THE AUTHORS OR COPYRIGHT HOLDERS
# BE LIABLE FOR ANY CLAIM, DAMAGES OR OTHER LIABILITY, WHETHER IN AN
# ACTION OF CONTRACT, TORT OR OTHERWISE, ARISING FROM, OUT OF OR IN
# CONNECTION WITH THE SOFTWARE OR THE USE OR OTHER DEALINGS IN THE
# SOFTWARE.

from typing import Tuple


# --- USB identity

TREZOR_VID = 0x534c
# Trezor One
TREZOR_PIDS = (0x0001,)  # type: Tuple[int, ...]
# vendor-defined usage page of the "normal" (non-debug) interface
TREZOR_USAGE_PAGE = 0xFF00


# --- derivation paths (BIP-44, four hardened-prefix levels)

HARDENED_FLAG = 1 << 31

ETH_DERIVATION_PATH = (0x8000002C, 0x8000003C, 0x80000000, 0)  # m/44'/60'/0'/0
ETC_DERIVATION_PATH = (0x8000002C, 0x8000003D, 0x80000000, 0)  # m/44'/61'/0'/0


# --- HID framing

# 1 report-id placeholder byte + 1 '?' marker byte + 63 body bytes
HID_REPORT_SIZE = 65
HID_CHUNK_SIZE = 63
HID_REPORT_ID = 0x00
HID_REPORT_MARKER = b"?"
# hidapi strips the report id on reads; a read yields marker + body
HID_READ_SIZE = HID_REPORT_SIZE - 1

MESSAGE_MAGIC = b"##"
# ">HL": 2 bytes message type, 4 bytes payload length, both big-endian
MESSAGE_HEADER_FORMAT = ">HL"
MESSAGE_HEADER_SIZE = 2 + 4

READ_TIMEOUT_MS = 10_000


# --- session opening

OPEN_ATTEMPTS = 10
OPEN_RETRY_DELAY = 0.2  # seconds


# --- signing

# transaction data sent inline with the sign request
DATA_INITIAL_CHUNK_SIZE = 1024
BUTTON_ACK_DELAY = 0.2  # seconds
