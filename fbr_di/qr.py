"""QR code printed on an FBR-posted invoice."""

import logging
from io import BytesIO

import qrcode

logger = logging.getLogger(__name__)

# FBR requires a version 2 (25x25) code holding the FBR invoice number
QR_VERSION = 2
QR_WIDTH = 25


def build_qr(fbr_invoice_number, box_size=3, border=4):
    qr = qrcode.QRCode(
        version=QR_VERSION,
        error_correction=qrcode.constants.ERROR_CORRECT_L,
        box_size=box_size,
        border=border,
    )
    qr.add_data(fbr_invoice_number)
    # fit=False keeps the version fixed instead of letting qrcode pick one
    qr.make(fit=False)

    width = len(qr.get_matrix()) - 2 * border
    if width != QR_WIDTH:
        logger.warning('QR for %s is %dx%d, expected %dx%d',
                       fbr_invoice_number, width, width, QR_WIDTH, QR_WIDTH)
    return qr


def qr_png(fbr_invoice_number):
    """PNG bytes of the invoice QR code"""
    img = build_qr(fbr_invoice_number).make_image(fill_color='black', back_color='white')
    buffered = BytesIO()
    img.save(buffered, format='PNG')
    return buffered.getvalue()
